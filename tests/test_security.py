"""Tests for the credential verifier and token value generation."""

import hashlib

import bcrypt
import pytest

from utils.security import (
    CredentialKind,
    classify_credential,
    generate_opaque_token,
    hash_password,
    legacy_digest,
    verify_password,
)


@pytest.fixture(scope="module")
def bcrypt_hash():
    return hash_password("secret123", rounds=4)


class TestClassification:
    def test_bcrypt_hash_is_adaptive(self, bcrypt_hash):
        assert classify_credential(bcrypt_hash) is CredentialKind.ADAPTIVE

    @pytest.mark.parametrize("prefix", ["$2a$", "$2b$", "$2y$"])
    def test_all_bcrypt_prefixes_are_adaptive(self, prefix):
        stored = prefix + "10$" + "a" * 53
        assert classify_credential(stored) is CredentialKind.ADAPTIVE

    def test_wrong_remainder_length_is_not_adaptive(self):
        assert classify_credential("$2b$12$" + "a" * 52) is CredentialKind.PLAIN_FALLBACK

    def test_trailing_newline_is_not_adaptive(self, bcrypt_hash):
        assert classify_credential(bcrypt_hash + "\n") is not CredentialKind.ADAPTIVE

    def test_sha256_hex_is_legacy_digest(self):
        assert classify_credential(legacy_digest("secret123")) is CredentialKind.LEGACY_DIGEST

    def test_uppercase_hex_is_legacy_digest(self):
        assert classify_credential(legacy_digest("x").upper()) is CredentialKind.LEGACY_DIGEST

    def test_63_hex_chars_fall_back_to_plain(self):
        assert classify_credential("a" * 63) is CredentialKind.PLAIN_FALLBACK

    def test_classification_is_by_shape(self):
        # a "plaintext" password that happens to be 64 hex chars is read as a digest
        assert classify_credential("0" * 64) is CredentialKind.LEGACY_DIGEST


class TestVerify:
    def test_adaptive_accepts_correct_password(self, bcrypt_hash):
        assert verify_password("secret123", bcrypt_hash) is True

    @pytest.mark.parametrize("attempt", ["secret124", "secret12", "secret1234", ""])
    def test_adaptive_rejects_wrong_password(self, bcrypt_hash, attempt):
        assert verify_password(attempt, bcrypt_hash) is False

    def test_adaptive_compares_only_the_first_72_bytes(self):
        # hashes written by implementations that silently cut long input
        long_password = "p" * 80
        stored = bcrypt.hashpw(long_password.encode("utf-8")[:72], bcrypt.gensalt(rounds=4)).decode("utf-8")

        assert verify_password(long_password, stored) is True
        assert verify_password("p" * 72, stored) is True
        assert verify_password("p" * 71, stored) is False

    def test_legacy_digest_accepts_correct_password(self):
        stored = hashlib.sha256(b"secret123").hexdigest()
        assert verify_password("secret123", stored) is True

    def test_legacy_digest_uppercase_stored_value(self):
        stored = hashlib.sha256(b"secret123").hexdigest().upper()
        assert verify_password("secret123", stored) is True

    @pytest.mark.parametrize("attempt", ["secret124", "secret12", "secret1234"])
    def test_legacy_digest_rejects_wrong_password(self, attempt):
        stored = legacy_digest("secret123")
        assert verify_password(attempt, stored) is False

    def test_legacy_digest_does_not_accept_the_digest_itself(self):
        stored = legacy_digest("secret123")
        assert verify_password(stored, stored) is False

    def test_plain_fallback_accepts_exact_match(self):
        assert verify_password("old-plain", "old-plain") is True

    @pytest.mark.parametrize("attempt", ["old-plaiN", "old-plai", "old-plain!"])
    def test_plain_fallback_rejects_wrong_password(self, attempt):
        assert verify_password(attempt, "old-plain") is False

    @pytest.mark.parametrize(
        "password, stored",
        [
            (None, "x"),
            ("x", None),
            ("x", ""),
            (123, "123"),
            ("x", "$2b$12$" + "!" * 53),  # bcrypt shape, invalid salt
        ],
    )
    def test_malformed_input_returns_false(self, password, stored):
        assert verify_password(password, stored) is False


class TestHashing:
    def test_new_credentials_are_adaptive(self):
        stored = hash_password("brand-new", rounds=4)
        assert classify_credential(stored) is CredentialKind.ADAPTIVE
        assert verify_password("brand-new", stored)

    def test_hashes_are_salted(self):
        assert hash_password("same", rounds=4) != hash_password("same", rounds=4)


def test_opaque_tokens_are_256_bit_hex():
    token = generate_opaque_token()
    assert len(token) == 64
    int(token, 16)
    assert token != generate_opaque_token()
