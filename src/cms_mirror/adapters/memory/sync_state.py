"""InMemorySyncStateStore: for tests and memory-synced deployments."""

from __future__ import annotations

from ...ports.sync_state import SYNC_TOKEN_KEY


class InMemorySyncStateStore:
    def __init__(self) -> None:
        self._tokens: dict[str, str] = {}

    async def get_token(self, key: str = SYNC_TOKEN_KEY) -> str | None:
        return self._tokens.get(key)

    async def save_token(self, token: str, key: str = SYNC_TOKEN_KEY) -> None:
        self._tokens[key] = token

    async def reset_token(self, key: str = SYNC_TOKEN_KEY) -> None:
        self._tokens.pop(key, None)
