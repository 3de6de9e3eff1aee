"""
Magic link token codec.

Raw tokens are 256 random bits, URL-safe base64 without padding.
The stored lookup key is the SHA-256 hex digest of the raw token.
"""

import base64
import hashlib
import hmac
import secrets

TOKEN_BYTES = 32
TOKEN_HASH_LENGTH = 64


def _draw(nbytes: int = TOKEN_BYTES) -> bytes:
    return secrets.token_bytes(nbytes)


# Fail at import (process startup) if the OS random source is unusable
if len(_draw()) != TOKEN_BYTES:
    raise RuntimeError("Secure random source returned a short read")


def encode_token(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def hash_token(raw_token: str) -> str:
    """SHA-256 hex digest of a raw token."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate() -> tuple[str, str]:
    """Return (raw_token, token_hash) for a new link."""
    raw_token = encode_token(_draw())
    return raw_token, hash_token(raw_token)


def constant_time_equals(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def hash_prefix(token_hash: str) -> str:
    """Short, log-safe identifier for a token hash."""
    return token_hash[:8]
