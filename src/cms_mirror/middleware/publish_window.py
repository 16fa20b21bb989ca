"""PublishWindowMiddleware: hides entries outside their publish window."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from ..query.operators import parse_datetime
from .base import StoreMiddleware

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..domain.entry import Entry
    from .context import MiddlewareContext

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PublishWindowMiddleware(StoreMiddleware):
    """
    Keeps an entry iff ``publishAt <= now < unpublishAt``.

    A missing ``publishAt`` counts as already published and a missing
    ``unpublishAt`` as never unpublished. Preview contexts skip the stage.
    """

    def __init__(
        self,
        *,
        publish_field: str = "publishAt",
        unpublish_field: str = "unpublishAt",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.publish_field = publish_field
        self.unpublish_field = unpublish_field
        self._clock = clock

    @classmethod
    def applies(cls, context: MiddlewareContext) -> bool:
        return not context.preview

    def select(self, entry: Entry, context: MiddlewareContext) -> bool:
        now = self._clock()
        publish_at = self._read_time(entry, self.publish_field, context)
        if publish_at is not None and now < publish_at:
            return False
        unpublish_at = self._read_time(entry, self.unpublish_field, context)
        return unpublish_at is None or now < unpublish_at

    @staticmethod
    def _read_time(
        entry: Entry, field_id: str, context: MiddlewareContext
    ) -> datetime | None:
        value: Any = None
        for locale in (entry.sys.locale, context.locale, context.default_locale):
            if locale is not None:
                value = entry.field(field_id, locale)
                if value is not None:
                    break
        if value is None or isinstance(value, datetime):
            return value
        try:
            parsed = parse_datetime(str(value))
        except ValueError:
            logger.warning("Entry %s has an unparseable %s: %r", entry.id, field_id, value)
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
