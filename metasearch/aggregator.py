"""Single-engine aggregation: serve the cached prefix, fetch only the missing suffix."""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from loguru import logger

from metasearch.cache import normalize_query
from metasearch.contracts import Engine, ResultCache, ResultRow, ResultView
from metasearch.errors import NotAvailable


class KeyedLocks:
    """One asyncio.Lock per (engine, normalized query).

    Serializes aggregations of the same key so two callers never compute
    the same missing range and append it twice. An entry lives only while
    some caller holds or waits on it.
    """

    def __init__(self) -> None:
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._users: Counter[tuple[str, str]] = Counter()

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, engine: str, query: str) -> AsyncIterator[None]:
        key = (engine, query)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


def _view(row: ResultRow, backend: str, cached: bool) -> ResultView:
    return ResultView(
        url=row["url"],
        title=row["title"],
        description=row["description"],
        backend=backend,
        cached=cached,
    )


async def aggregate(
    engine: Engine,
    cache: ResultCache,
    query: str,
    start: int,
    count: int,
    *,
    locks: KeyedLocks | None = None,
) -> list[ResultView]:
    """Return the window ``[start, start + count)`` for one engine.

    Rows already cached are served with ``cached=True``. If the window
    reaches past the cached length, exactly one ``engine.search`` call
    fetches ``[cached_len, start + count)``; those rows are appended to the
    cache and returned with ``cached=False``. A short engine answer yields a
    short window.

    Without ``locks`` the caller must guarantee a single in-flight
    aggregation per (engine, query).
    """
    key = normalize_query(query)
    backend = engine.name.value

    if locks is None:
        return await _aggregate(engine, cache, key, start, count)
    async with locks.hold(backend, key):
        return await _aggregate(engine, cache, key, start, count)


async def _aggregate(
    engine: Engine,
    cache: ResultCache,
    query: str,
    start: int,
    count: int,
) -> list[ResultView]:
    backend = engine.name.value
    engine_id = cache.get_engine_id(engine.name)
    record = cache.get_query_record(query, engine_id)
    cached = cache.get_rows(record["id"]) if record else []
    cached_len = len(cached)

    end = start + count
    served = cached[min(start, cached_len) : min(end, cached_len)]
    window = [_view(r, backend, True) for r in served]
    if end <= cached_len:
        return window

    need = end - cached_len
    async with engine.lock:
        if not engine.is_available():
            raise NotAvailable(backend, "breaker open or cooling down")
        fresh = await engine.search(query, cached_len, need)

    logger.debug(
        "{} {!r}: {} cached, fetched {}/{} from offset {}",
        backend,
        query,
        cached_len,
        len(fresh),
        need,
        cached_len,
    )
    if fresh:
        cache.append_rows(engine_id, query, fresh, datetime.now(timezone.utc).isoformat())

    # Fresh rows start at cached_len; keep only those inside the window.
    skip = max(start - cached_len, 0)
    window.extend(_view(r, backend, False) for r in fresh[skip:])
    return window
