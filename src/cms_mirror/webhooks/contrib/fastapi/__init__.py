"""FastAPI integration for the webhook receiver."""

from __future__ import annotations

from .router import DEFAULT_PATH, build_webhook_router

__all__ = ["DEFAULT_PATH", "build_webhook_router"]
