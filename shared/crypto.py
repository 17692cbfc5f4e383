"""
Cryptographic helpers — token hashing and constant-time comparison.

OTP codes and confirmation tokens are stored as SHA-256 digests so the
plaintext never reaches the key-value store.
"""

from __future__ import annotations

import hashlib
import hmac


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Args:
        token: The plaintext token string to hash.

    Returns:
        64-character lowercase hex string.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_matches(supplied: str, expected_hash: str) -> bool:
    """Compare *supplied* against a stored digest in constant time."""
    return hmac.compare_digest(hash_token(supplied), expected_hash)


def secrets_equal(a: str, b: str) -> bool:
    """Constant-time equality for two plaintext credentials."""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))
