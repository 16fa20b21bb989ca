"""WebhookReceiver: authenticates and parses CMS change notifications."""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from ..domain.entry import DELETED_TYPES, ENTRY_TYPES, Entry
from ..domain.events import WebhookAction, WebhookEvent
from ..primitives.exceptions import MalformedWebhookError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from ..config import MirrorConfig

logger = logging.getLogger("cms_mirror.webhooks")

TOPIC_HEADER = "x-contentful-topic"
ACCEPTED_MEDIA_TYPES = frozenset(
    {"application/vnd.contentful.management.v1+json", "application/json"}
)
UNKNOWN_CONTENT_TYPE = "Unknown"

_TOPIC_ACTIONS = {
    "create": WebhookAction.CREATE,
    "save": WebhookAction.SAVE,
    "auto_save": WebhookAction.AUTO_SAVE,
    "publish": WebhookAction.PUBLISH,
    "unpublish": WebhookAction.UNPUBLISH,
    "archive": WebhookAction.ARCHIVE,
    "unarchive": WebhookAction.SAVE,
    "delete": WebhookAction.DELETE,
}


@dataclass(frozen=True)
class WebhookResponse:
    """Status, JSON body and headers to send back to the CMS."""

    status: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return 200 <= self.status < 300


class WebhookReceiver:
    """
    Boundary for inbound webhooks.

    :meth:`receive` checks credentials first and does nothing else when
    they are wrong. Accepted events go to *sink* (normally
    ``WebhookEventWorker.submit``), which must not block; the receiver
    answers without waiting for the store mutation.
    """

    def __init__(
        self,
        sink: Callable[[WebhookEvent], None],
        *,
        username: str | None = None,
        password: str | None = None,
    ) -> None:
        self._sink = sink
        self._username = username
        self._password = password

    @classmethod
    def from_config(
        cls, config: MirrorConfig, sink: Callable[[WebhookEvent], None]
    ) -> WebhookReceiver:
        return cls(sink, username=config.webhook_username, password=config.webhook_password)

    @property
    def auth_enabled(self) -> bool:
        return bool(self._username and self._password)

    # ── Authentication ───────────────────────────────────────────

    def authenticate(self, headers: Mapping[str, str]) -> bool:
        """Check HTTP Basic credentials in constant time."""
        if not self.auth_enabled:
            return True
        credentials = _basic_credentials(_lower_keys(headers).get("authorization"))
        if credentials is None:
            return False
        username, password = credentials
        expected_username = self._username or ""
        expected_password = self._password or ""
        user_ok = hmac.compare_digest(username.encode(), expected_username.encode())
        password_ok = hmac.compare_digest(password.encode(), expected_password.encode())
        return user_ok and password_ok

    # ── Parsing ──────────────────────────────────────────────────

    def parse(self, headers: Mapping[str, str], body: bytes | str | Mapping[str, Any]) -> WebhookEvent | None:
        """
        Build a :class:`WebhookEvent` from a request.

        Returns ``None`` for well-formed notifications about things that are
        not entries or assets (content types, environments).

        Raises:
            MalformedWebhookError: If the payload cannot describe an event.
        """
        payload = _decode(body)
        sys = payload.get("sys")
        if not isinstance(sys, dict) or not sys.get("id") or not sys.get("type"):
            raise MalformedWebhookError("Payload requires sys.id and sys.type")

        topic = _lower_keys(headers).get(TOPIC_HEADER)
        sys_type = sys["type"]
        if sys_type not in ENTRY_TYPES and sys_type not in DELETED_TYPES:
            logger.info("Ignoring webhook for %s %s", sys_type, sys["id"])
            return None
        action = _action(topic, sys_type)

        raw = dict(payload)
        if action.removes or action is WebhookAction.UNPUBLISH:
            raw["sys"] = {"contentType": {"sys": {"id": UNKNOWN_CONTENT_TYPE}}, **sys}
        try:
            entry = Entry.from_raw(raw, delivery=action is WebhookAction.PUBLISH)
        except (KeyError, TypeError, ValidationError) as err:
            raise MalformedWebhookError(f"Invalid entry payload: {err}") from err
        return WebhookEvent(action=action, entry=entry, topic=topic)

    # ── Request handling ─────────────────────────────────────────

    def receive(
        self,
        headers: Mapping[str, str],
        body: bytes | str | Mapping[str, Any],
    ) -> WebhookResponse:
        if not self.authenticate(headers):
            logger.warning("Rejected webhook with invalid credentials")
            return WebhookResponse(
                401,
                {"error": "unauthorized"},
                {"WWW-Authenticate": 'Basic realm="webhook"'},
            )

        content_type = _lower_keys(headers).get("content-type", "")
        media_type = content_type.split(";", 1)[0].strip().lower()
        if media_type not in ACCEPTED_MEDIA_TYPES:
            logger.warning("Rejected webhook with content type %r", content_type)
            return WebhookResponse(415, {"error": "unsupported media type"})

        try:
            event = self.parse(headers, body)
        except MalformedWebhookError as err:
            logger.warning("Rejected malformed webhook: %s", err)
            return WebhookResponse(400, {"error": str(err)})

        if event is None:
            return WebhookResponse(202, {"accepted": False})
        self._sink(event)
        logger.debug("Accepted %s for %s", event.action.value, event.entry_id)
        return WebhookResponse(202, {"accepted": True, "id": event.entry_id})


def _lower_keys(headers: Mapping[str, str]) -> dict[str, str]:
    return {key.lower(): value for key, value in headers.items()}


def _basic_credentials(header: str | None) -> tuple[str, str] | None:
    if not header:
        return None
    scheme, _, encoded = header.partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


def _decode(body: bytes | str | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(body, (bytes, str)):
        try:
            payload = json.loads(body)
        except (ValueError, UnicodeDecodeError) as err:
            raise MalformedWebhookError("Body is not valid JSON") from err
    else:
        payload = dict(body)
    if not isinstance(payload, dict):
        raise MalformedWebhookError("Body must be a JSON object")
    return payload


def _action(topic: str | None, sys_type: str) -> WebhookAction:
    if topic:
        # ContentManagement.Entry.publish
        name = topic.rsplit(".", 1)[-1].lower()
        try:
            return _TOPIC_ACTIONS[name]
        except KeyError:
            raise MalformedWebhookError(f"Unsupported webhook topic {topic!r}") from None
    return WebhookAction.DELETE if sys_type in DELETED_TYPES else WebhookAction.PUBLISH
