"""MongoDB-backed UserDirectory.

Reads the user service's ``users`` collection with the async PyMongo
client. Only the fields this subsystem needs are projected; password hashes
never leave the database.
"""

from __future__ import annotations

from typing import Any, Optional

from bson import ObjectId
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from errors import StoreUnavailableError
from schemas.models.principal import Principal
from shared.logging import get_logger

log = get_logger(__name__)

_PROJECTION = {"email": 1, "role": 1, "email_verified": 1, "isVerified": 1}


def principal_from_doc(doc: Optional[dict[str, Any]]) -> Optional[Principal]:
    """Map a raw ``users`` document to a Principal; None passes through.

    Accepts both ``email_verified`` and the legacy camelCase ``isVerified``.
    """
    if doc is None:
        return None
    verified = doc.get("email_verified", doc.get("isVerified", False))
    return Principal(
        id=str(doc["_id"]),
        email=str(doc.get("email", "")).lower(),
        role=doc.get("role") or "customer",
        verified=bool(verified),
    )


class MongoUserDirectory:
    def __init__(self, db: AsyncDatabase, collection: str = "users") -> None:
        self._users = db[collection]

    async def _find_one(self, query: dict[str, Any]) -> Optional[Principal]:
        try:
            doc = await self._users.find_one(query, _PROJECTION)
        except PyMongoError as e:
            log.error(
                "user_directory_lookup_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StoreUnavailableError("User directory unavailable") from e
        return principal_from_doc(doc)

    async def find_by_id(self, principal_id: str) -> Optional[Principal]:
        if not ObjectId.is_valid(principal_id):
            return None
        return await self._find_one({"_id": ObjectId(principal_id)})

    async def find_by_email(self, email: str) -> Optional[Principal]:
        return await self._find_one({"email": email.strip().lower()})


class NullUserDirectory:
    """Used when no MongoDB URI is configured: nobody resolves."""

    async def find_by_id(self, principal_id: str) -> Optional[Principal]:
        return None

    async def find_by_email(self, email: str) -> Optional[Principal]:
        return None
