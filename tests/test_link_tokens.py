"""Tests for the magic link token codec."""
import hashlib
import re

from app.services import link_tokens


URLSAFE = re.compile(r"^[A-Za-z0-9_-]+$")


class TestGenerate:
    def test_token_is_urlsafe_without_padding(self):
        raw, _ = link_tokens.generate()
        assert URLSAFE.match(raw)
        assert "=" not in raw
        # 32 bytes -> 43 base64 characters once padding is stripped
        assert len(raw) == 43

    def test_hash_is_sha256_hex_of_raw_token(self):
        raw, token_hash = link_tokens.generate()
        assert token_hash == hashlib.sha256(raw.encode()).hexdigest()
        assert len(token_hash) == link_tokens.TOKEN_HASH_LENGTH

    def test_tokens_are_unique(self):
        tokens = {link_tokens.generate()[0] for _ in range(500)}
        assert len(tokens) == 500


class TestHashToken:
    def test_deterministic(self):
        assert link_tokens.hash_token("abc") == link_tokens.hash_token("abc")

    def test_known_digest(self):
        assert link_tokens.hash_token("abc") == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    def test_different_tokens_differ(self):
        assert link_tokens.hash_token("abc") != link_tokens.hash_token("abd")


class TestHelpers:
    def test_encode_token_strips_padding(self):
        assert link_tokens.encode_token(b"\xff") == "_w"

    def test_constant_time_equals(self):
        assert link_tokens.constant_time_equals("same", "same")
        assert not link_tokens.constant_time_equals("same", "diff")

    def test_hash_prefix_is_short(self):
        token_hash = link_tokens.hash_token("abc")
        assert link_tokens.hash_prefix(token_hash) == "ba7816bf"
