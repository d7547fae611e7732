"""Unit tests for password hashing and random secret generation."""

import hashlib

import pytest

from tokenkeep.service import credentials
from tokenkeep.service.credentials import (
    ALPHABET,
    CHARACTER_CLASSES,
    SIMILAR_CHARACTERS,
    generate_random_string,
    generate_salt,
    hash_password,
    make_credential,
    verify_password,
)
from tokenkeep.service.errors import TokenGenerationError


class TestHashPassword:
    def test_digest_is_sha3_of_secret_then_salt(self):
        expected = hashlib.sha3_256(b"p@sss").digest()
        assert hash_password(b"p@ss", b"s") == expected

    def test_str_and_bytes_inputs_agree(self):
        assert hash_password("p@ss", "s") == hash_password(b"p@ss", b"s")

    def test_digest_is_fixed_width(self):
        assert len(hash_password("", "")) == 32
        assert len(hash_password("x" * 1000, "salt")) == 32

    def test_salt_changes_digest(self):
        assert hash_password("p@ss", "s1") != hash_password("p@ss", "s2")


class TestVerifyPassword:
    def test_matching_secret_verifies(self):
        digest = hash_password("p@ss", "s")
        assert verify_password("p@ss", "s", digest) is True

    @pytest.mark.parametrize("wrong", ["p@sS", "p@s", "p@ss ", "q@ss", ""])
    def test_any_differing_secret_fails(self, wrong):
        digest = hash_password("p@ss", "s")
        assert verify_password(wrong, "s", digest) is False

    def test_wrong_salt_fails(self):
        digest = hash_password("p@ss", "s")
        assert verify_password("p@ss", "t", digest) is False

    def test_wrong_length_digest_returns_false(self):
        assert verify_password("p@ss", "s", b"short") is False
        assert verify_password("p@ss", "s", b"") is False


class TestRandomStrings:
    def test_length_is_exact(self):
        assert len(generate_random_string(64)) == 64
        assert len(generate_random_string(4)) == 4

    def test_every_class_is_present(self):
        for _ in range(50):
            value = generate_random_string(8)
            for chars in CHARACTER_CLASSES:
                assert any(ch in chars for ch in value)

    def test_similar_characters_never_appear(self):
        value = "".join(generate_random_string(64) for _ in range(20))
        assert not SIMILAR_CHARACTERS.intersection(value)
        assert set(value) <= set(ALPHABET)

    def test_values_differ(self):
        assert generate_random_string(64) != generate_random_string(64)

    def test_too_short_rejected(self):
        with pytest.raises(ValueError):
            generate_random_string(3)

    def test_entropy_failure_raises_generation_error(self, monkeypatch):
        def broken_choice(seq):
            raise OSError("no entropy")

        monkeypatch.setattr(credentials.secrets, "choice", broken_choice)
        with pytest.raises(TokenGenerationError):
            generate_random_string(64)

    def test_salt_default_length(self):
        assert len(generate_salt()) == 16


def test_make_credential_round_trip():
    salt, digest = make_credential("hunter2!", salt_length=16)

    assert len(salt) == 16
    assert verify_password("hunter2!", salt, digest)
    assert not verify_password("hunter2", salt, digest)
