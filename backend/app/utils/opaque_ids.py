"""
Opaque external ids for assets: the numeric primary key plus a truncated
HMAC-SHA256 signature, base64url encoded. Tokens that fail verification are
treated exactly like unknown ids.
"""
import base64
import binascii
import hashlib
import hmac
import os

_SIG_BYTES = 10
_ID_BYTES = 8


def _secret() -> bytes:
    return (os.getenv("ASSET_ID_SECRET") or "dev-secret").encode("utf-8")


def _sign(payload: bytes) -> bytes:
    return hmac.new(_secret(), payload, hashlib.sha256).digest()[:_SIG_BYTES]


def encode_id(value: int) -> str:
    payload = value.to_bytes(_ID_BYTES, "big")
    return base64.urlsafe_b64encode(_sign(payload) + payload).decode("ascii").rstrip("=")


def decode_id(token: str) -> int | None:
    """Return the numeric id, or None when the token is malformed or forged."""
    try:
        raw = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4))
    except (binascii.Error, ValueError):
        return None
    if len(raw) != _SIG_BYTES + _ID_BYTES:
        return None
    sig, payload = raw[:_SIG_BYTES], raw[_SIG_BYTES:]
    if not hmac.compare_digest(sig, _sign(payload)):
        return None
    return int.from_bytes(payload, "big")
