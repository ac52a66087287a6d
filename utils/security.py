"""
security helpers:
- bcrypt password hashing for every credential this service writes
- shape-based verification of stored credentials of unknown encoding
- opaque token generation for refresh and session tokens

Stored credentials come in three historical shapes and carry no type tag:

1. bcrypt  ``$2a$`` / ``$2b$`` / ``$2y$`` + cost + 53 chars   (current)
2. 64 hex characters: unsalted SHA-256 digest                (legacy)
3. anything else: compared verbatim                          (legacy, insecure)

The order matters. A 64-hex string is always treated as a digest, even if it
was meant to be a plaintext password.
"""
from __future__ import annotations

import enum
import hashlib
import hmac
import logging
import re
import secrets

import bcrypt

logger = logging.getLogger(__name__)

BCRYPT_PATTERN = re.compile(r"^\$2[aby]\$\d{1,2}\$.{53}$")
LEGACY_DIGEST_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")

DEFAULT_BCRYPT_ROUNDS = 12
BCRYPT_MAX_BYTES = 72
OPAQUE_TOKEN_BYTES = 32  # 256 bits, hex-encoded to 64 chars


class CredentialKind(enum.Enum):
    ADAPTIVE = "adaptive"
    LEGACY_DIGEST = "legacy_digest"
    PLAIN_FALLBACK = "plain_fallback"


def classify_credential(stored: str) -> CredentialKind:
    """Decide how a stored credential is encoded by its shape alone. First match wins."""
    if BCRYPT_PATTERN.fullmatch(stored):
        return CredentialKind.ADAPTIVE
    if LEGACY_DIGEST_PATTERN.fullmatch(stored):
        return CredentialKind.LEGACY_DIGEST
    return CredentialKind.PLAIN_FALLBACK


def legacy_digest(password: str) -> str:
    """Unsalted SHA-256 hex digest, as written by the old users service."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def hash_password(password: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Hash a plaintext password with bcrypt. The only encoding used for new credentials."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password, stored) -> bool:
    """
    Check a plaintext password against a stored credential of unknown encoding.
    Never raises: malformed input of any kind is a mismatch.
    """
    if not isinstance(password, str) or not isinstance(stored, str) or not stored:
        return False

    kind = classify_credential(stored)
    logger.debug("verifying credential via %s path", kind.value)
    try:
        if kind is CredentialKind.ADAPTIVE:
            # bcrypt reads at most 72 bytes; hashes written elsewhere were cut there
            candidate = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
            return bcrypt.checkpw(candidate, stored.encode("utf-8"))
        if kind is CredentialKind.LEGACY_DIGEST:
            # hex case carries no information; upper-case digests from older writers still match
            return hmac.compare_digest(legacy_digest(password), stored.lower())
        return hmac.compare_digest(password.encode("utf-8"), stored.encode("utf-8"))
    except (ValueError, TypeError, UnicodeEncodeError):
        # e.g. bcrypt rejecting a salt that matched the pattern but is not valid
        return False


def generate_opaque_token() -> str:
    """Cryptographically random token value; uniqueness relies on entropy, not a lookup."""
    return secrets.token_hex(OPAQUE_TOKEN_BYTES)
