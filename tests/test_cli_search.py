import asyncio

import cli_search
from conftest import make_settings
from voicehook.state import build_state
from voicehook.vocabulary import SearchVocabulary


def test_variations_come_from_the_loaded_vocabulary(shop, monkeypatch):
    shop.add_product(1, "Intel Arc 770 Limited Edition", 329.0)
    vocabulary = SearchVocabulary(gpu_prefixes=["arc"], gpu_suffixes=["0"], brands=["intel"])
    monkeypatch.setattr(
        cli_search,
        "build_state",
        lambda config: build_state(make_settings(), vocabulary=vocabulary, transport=shop.transport),
    )

    payload = asyncio.run(cli_search.perform_query("intel arc 77", 5))

    assert "ARC 770" in payload["variations"]
    assert payload["error"] is None
    assert [item["id"] for item in payload["results"]] == [1]


def test_pretty_print_lists_payload_variations(capsys):
    payload = {"results": [{"id": 1, "name": "Mouse", "price": "€15.00", "score": 2}], "eta_ms": 12.0, "variations": ["mouse", "MOUSE"]}

    cli_search.pretty_print_response("mouse", payload, show_variations=True)

    out = capsys.readouterr().out
    assert "  ~ mouse" in out
    assert "  ~ MOUSE" in out
    assert "score=2 | 1 | €15.00 | Mouse" in out
