"""Tests for speech-friendly rewriting and listing truncation."""

import pytest

from voicehook.speech import format_price, make_speech_friendly, shorten_for_listing


@pytest.mark.parametrize(
    "text, expected",
    [
        ("16GB RAM", "16 gigabytes RAM"),
        ("256GB SSD", "256 gigabytes S S D"),
        ("2TB HDD", "2 terabytes H D D"),
        ("512 mb cache", "512 megabytes cache"),
        ("DDR4", "D D R 4"),
        ("DDR5 Memory", "D D R 5 Memory"),
        ("Intel i5-1145G7", "Intel i5 1145 G 7"),
        ("Core i7-12700", "Core i7 12700"),
        ("USB", "U S B"),
        ("HDMI", "H D M I"),
        ("LED", "L E D"),
        ("LCD", "L C D"),
        ("LG G8", "LG G 8"),
    ],
)
def test_make_speech_friendly(text, expected):
    assert make_speech_friendly(text) == expected


def test_speech_rules_are_case_insensitive():
    assert make_speech_friendly("usb hub 16gb") == "U S B hub 16 gigabytes"


@pytest.mark.parametrize("text", ["Gaming Mouse", "Wireless Keyboard Black", "", "Logitech MX Master"])
def test_plain_text_is_unchanged(text):
    assert make_speech_friendly(text) == text


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Apple iPhone 14 Pro", "Apple iPhone 14 Pro"),
        ("Dell Laptop 15inch 16GB RAM 512GB SSD", "Dell Laptop 15inch"),
        ("Samsung 256GB SSD Internal", "Samsung 256GB SSD"),
        ("LG Monitor 27inch 1920x1080 LED", "LG Monitor 27inch"),
        ("Brand Model Series Pro Max Edition 2024", "Brand Model Series Pro Max"),
        ("Palit RTX 5070 16GB GamingPro", "Palit RTX 5070"),
        ("Kingston Fury - Beast, 32GB DDR5", "Kingston Fury Beast"),
    ],
)
def test_shorten_for_listing(name, expected):
    assert shorten_for_listing(name) == expected


@pytest.mark.parametrize(
    "name",
    [
        "Mouse",
        "USB Hub",
        "Corsair Vengeance RGB 32GB",
        "A B C D E F G H I J",
        "Seagate 2TB",
        "ASUS ROG Strix GeForce RTX 4090 OC Edition 24GB GDDR6X",
    ],
)
def test_listing_length_bounds(name):
    words = shorten_for_listing(name).split()

    assert 1 <= len(words) <= 5


def test_listing_keeps_three_words_before_sizes():
    assert shorten_for_listing("Acme Turbo Fan 120mm") == "Acme Turbo Fan"
    assert shorten_for_listing("Acme 120mm Fan Quiet") == "Acme 120mm Fan"


def test_format_price():
    assert format_price("499.000000") == "€499.00"
    assert format_price(12.5, "$") == "$12.50"
    assert format_price(None) == "€0.00"
