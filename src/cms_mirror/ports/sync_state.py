"""ISyncStateStore: persistence for the sync cursor."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

SYNC_TOKEN_KEY = "sync:token"


@runtime_checkable
class ISyncStateStore(Protocol):
    """Stores the opaque sync token issued by the CMS."""

    async def get_token(self, key: str = SYNC_TOKEN_KEY) -> str | None:
        ...

    async def save_token(self, token: str, key: str = SYNC_TOKEN_KEY) -> None:
        ...

    async def reset_token(self, key: str = SYNC_TOKEN_KEY) -> None:
        ...
