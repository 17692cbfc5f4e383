"""
Principal model.

A principal is owned by the user directory; this subsystem only ever reads
it and refers to it by id.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Principal(BaseModel):
    """Authenticated actor as resolved by the user directory."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    role: str = "customer"
    verified: bool = False
