"""
SearchResult: a lazy result you can await for a list or stream item by item.

Usage::

    # Batch mode: await to get all entries at once
    entries = await store.find_all("article")

    # Stream mode: iterate without materializing the whole set
    async for entry in store.find_all("article").stream(batch_size=100):
        process(entry)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Coroutine, Generator

T = TypeVar("T")


class SearchResult(Generic[T]):
    """
    Lazy query result: ``await`` for a ``list[T]`` or ``.stream()``
    for an ``AsyncIterator[T]``.

    Nothing executes at construction time.

    Parameters
    ----------
    list_fn:
        Zero-argument async callable that returns a ``list[T]``.
    stream_fn:
        Callable ``(batch_size: int | None) -> AsyncIterator[T]``. Defaults
        to iterating the result of *list_fn*.
    """

    __slots__ = ("_list_fn", "_stream_fn")

    def __init__(
        self,
        list_fn: Callable[[], Coroutine[Any, Any, list[T]]],
        stream_fn: Callable[[int | None], AsyncIterator[T]] | None = None,
    ) -> None:
        self._list_fn = list_fn
        self._stream_fn = stream_fn or self._stream_from_list

    def __await__(self) -> Generator[Any, None, list[T]]:
        return self._list_fn().__await__()

    def stream(self, *, batch_size: int | None = None) -> AsyncIterator[T]:
        return self._stream_fn(batch_size)

    async def first(self) -> T | None:
        items = await self._list_fn()
        return items[0] if items else None

    async def count(self) -> int:
        """Return the number of results (evaluates the whole query)."""
        items = await self._list_fn()
        return len(items)

    async def _stream_from_list(self, batch_size: int | None) -> AsyncIterator[T]:  # noqa: ARG002
        for item in await self._list_fn():
            yield item
