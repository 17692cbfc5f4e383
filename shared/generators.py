"""
Random code, token and identifier generators.

All generators use cryptographically secure sources (``secrets`` module).
"""

from __future__ import annotations

import hashlib
import secrets
import string
import time


def generate_otp_code(length: int = 6) -> str:
    """Generate a cryptographically secure numeric OTP.

    Every digit is drawn independently and uniformly, so leading zeros occur
    and the whole 10**length space is reachable.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of random decimal digits.
    """
    if length < 1:
        raise ValueError("OTP length must be positive")
    return "".join(secrets.choice(string.digits) for _ in range(length))


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure URL-safe random token.

    Args:
        length: Number of random bytes before base64 encoding (default 32).
            The resulting string will be longer than *length* characters.

    Returns:
        URL-safe base64-encoded token string.
    """
    return secrets.token_urlsafe(length)


def generate_device_id(descriptor: str, origin_address: str, salt: str = "") -> str:
    """Derive an opaque device id for a single login event.

    The id mixes the client descriptor and origin with a nanosecond timestamp,
    a server-side salt and a random nonce, so two logins from the same
    hardware never produce the same id.

    Returns:
        24-character lowercase hex string.
    """
    material = "|".join(
        (
            descriptor or "unknown",
            origin_address or "unknown",
            str(time.time_ns()),
            salt,
            secrets.token_hex(8),
        )
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()[:24]
