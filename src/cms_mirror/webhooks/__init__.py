"""Webhook ingestion."""

from __future__ import annotations

from .receiver import WebhookReceiver, WebhookResponse

__all__ = ["WebhookReceiver", "WebhookResponse"]
