"""UserDirectory protocol — read-only principal lookup owned by the user service."""

from typing import Optional, Protocol

from schemas.models.principal import Principal


class UserDirectory(Protocol):
    async def find_by_id(self, principal_id: str) -> Optional[Principal]: ...

    async def find_by_email(self, email: str) -> Optional[Principal]: ...
