"""Lockable resource identifiers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ResourceIdentifier:
    """
    Identifies a single lockable resource.

    Examples:
        >>> ResourceIdentifier("entry", "6KntaYXaHSyIw8M6eo26OK")
        >>> ResourceIdentifier("sync", "full")
    """

    resource_type: str
    resource_id: str

    def __lt__(self, other: ResourceIdentifier) -> bool:
        return (self.resource_type, self.resource_id) < (
            other.resource_type,
            other.resource_id,
        )

    def __str__(self) -> str:
        return f"{self.resource_type}:{self.resource_id}"
