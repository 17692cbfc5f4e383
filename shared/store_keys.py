"""Key builders for every record persisted in the key-value store.

    refresh:{principal_id}:{device_id}       refresh credential (string)
    session:{principal_id}:{device_id}       DeviceSession JSON
    devices:{principal_id}                   set of device ids
    otp:{purpose}:{identifier}               Challenge JSON
    otp_cooldown:{purpose}:{identifier}      last issuance, epoch millis
"""

from __future__ import annotations


def refresh_key(principal_id: str, device_id: str) -> str:
    return f"refresh:{principal_id}:{device_id}"


def session_key(principal_id: str, device_id: str) -> str:
    return f"session:{principal_id}:{device_id}"


def devices_key(principal_id: str) -> str:
    return f"devices:{principal_id}"


def otp_key(purpose: str, identifier: str) -> str:
    return f"otp:{purpose}:{identifier}"


def otp_cooldown_key(purpose: str, identifier: str) -> str:
    return f"otp_cooldown:{purpose}:{identifier}"
