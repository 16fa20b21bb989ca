"""Exceptions for the SQLAlchemy store backend."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from ...primitives.exceptions import StoreBackendError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class SQLAlchemyStoreError(StoreBackendError):
    """Base exception for SQLAlchemy-specific store failures."""


@contextlib.asynccontextmanager
async def translate_errors(operation: str) -> AsyncIterator[None]:
    """Re-raise driver and ORM failures as :class:`SQLAlchemyStoreError`."""
    try:
        yield
    except SQLAlchemyError as err:
        raise SQLAlchemyStoreError(f"{operation} failed: {err}") from err


__all__: list[str] = ["SQLAlchemyStoreError", "translate_errors"]
