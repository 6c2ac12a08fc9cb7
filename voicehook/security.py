"""HMAC request signing shared with the voice platform."""
from __future__ import annotations

import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


class SignatureError(Exception):
    """The request signature is missing or does not match the body."""


def sign_body(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str) -> None:
    """Raise :class:`SignatureError` unless ``signature`` signs ``body``.

    The header carries the lowercase hex HMAC-SHA256 of the raw body,
    optionally prefixed with ``sha256=``.
    """
    if not signature:
        raise SignatureError("missing signature")
    provided = signature.strip()
    if provided.lower().startswith(SIGNATURE_PREFIX):
        provided = provided[len(SIGNATURE_PREFIX):]
    expected = sign_body(body, secret)
    if not hmac.compare_digest(expected.encode("ascii"), provided.lower().encode("utf-8")):
        raise SignatureError("signature mismatch")
