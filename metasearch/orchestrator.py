"""Multi-engine fan-out with per-engine timeouts and partial-failure tolerance."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from loguru import logger

from metasearch.aggregator import KeyedLocks, aggregate
from metasearch.cache import SqliteResultCache
from metasearch.config import Settings
from metasearch.contracts import Engine, Engines, ResultCache, ResultView, SearchResponse
from metasearch.engines import available_engines, get_engine, load_builtin_engines
from metasearch.errors import AllEnginesFailed, EngineTimeout, InvalidRequest

DEFAULT_MAX_COUNT = 25


def validate_request(
    query: str, start: int, count: int, max_count: int = DEFAULT_MAX_COUNT
) -> None:
    """Reject requests outside the accepted bounds."""
    if not query or not query.strip():
        raise InvalidRequest("query must not be empty")
    if start < 0:
        raise InvalidRequest(f"start must be >= 0, got {start}")
    if count < 1:
        raise InvalidRequest(f"count must be >= 1, got {count}")
    if count > max_count:
        raise InvalidRequest(f"maximum allowed count is {max_count}, got {count}")


@dataclass
class EngineOutcome:
    backend: str
    status: str  # "success" | "timeout" | "error"
    rows: list[ResultView] = field(default_factory=list)
    error: str = ""


class Orchestrator:
    """Runs the single-engine aggregator concurrently across engines.

    Engine instances are long-lived: their breaker and cooldown state carry
    over between requests. Aggregations of the same (engine, query) are
    serialized through a shared ``KeyedLocks``.
    """

    def __init__(
        self,
        engines: Mapping[Engines, Engine],
        cache: ResultCache,
        *,
        engine_timeout: float = 15.0,
        max_count: int = DEFAULT_MAX_COUNT,
    ) -> None:
        self.engines = dict(engines)
        self.cache = cache
        self.engine_timeout = engine_timeout
        self.max_count = max_count
        self.locks = KeyedLocks()

    async def _run_one(self, backend: str, query: str, start: int, count: int) -> EngineOutcome:
        try:
            engine = self.engines[Engines(backend)]
        except (KeyError, ValueError):
            return EngineOutcome(backend, "error", error=f"engine {backend!r} is not configured")

        try:
            rows = await asyncio.wait_for(
                aggregate(engine, self.cache, query, start, count, locks=self.locks),
                timeout=self.engine_timeout,
            )
        except (asyncio.TimeoutError, EngineTimeout):
            return EngineOutcome(backend, "timeout")
        except Exception as e:
            return EngineOutcome(backend, "error", error=str(e))
        return EngineOutcome(backend, "success", rows=rows)

    async def search(
        self,
        query: str,
        start: int,
        count: int,
        backends: Iterable[Engines | str],
    ) -> SearchResponse:
        """Search all ``backends`` and concatenate their rows in the given order.

        Raises AllEnginesFailed if no backend succeeded. Otherwise returns the
        successful rows with the timed-out and failed backends listed
        alongside.
        """
        validate_request(query, start, count, self.max_count)

        ordered: list[str] = []
        for b in backends:
            name = b.value if isinstance(b, Engines) else str(b).lower()
            if name not in ordered:
                ordered.append(name)

        tasks = [asyncio.create_task(self._run_one(b, query, start, count)) for b in ordered]
        outcomes: list[EngineOutcome] = list(await asyncio.gather(*tasks))

        results: list[ResultView] = []
        timeouts: list[str] = []
        errors: dict[str, str] = {}
        succeeded = 0

        for outcome in outcomes:
            if outcome.status == "success":
                succeeded += 1
                results.extend(outcome.rows)
            elif outcome.status == "timeout":
                timeouts.append(outcome.backend)
            else:
                errors[outcome.backend] = outcome.error

        if not succeeded:
            raise AllEnginesFailed(timeouts, errors)

        if timeouts or errors:
            logger.warning(
                "Degraded search for {!r}: timeouts={} errors={}",
                query,
                timeouts,
                list(errors),
            )

        return SearchResponse(results=results, timeouts=timeouts, errors=errors)

    async def aclose(self) -> None:
        for engine in self.engines.values():
            close = getattr(engine, "aclose", None)
            if close is not None:
                await close()


def build_orchestrator(settings: Settings) -> Orchestrator:
    """Build the cache and one engine instance per configured, registered engine."""
    cache = SqliteResultCache(settings.cache_db)
    load_builtin_engines()
    registered = set(available_engines())

    engines: dict[Engines, Engine] = {}
    for name in settings.engines:
        key = Engines(name)
        if key not in registered:
            logger.warning("Engine {} has no implementation, skipping", name)
            continue
        engines[key] = get_engine(
            key,
            request_timeout=settings.request_timeout,
            timeout_penalty=settings.timeout_penalty,
            cooldown=settings.cooldown,
            user_agent=settings.user_agent,
            region=settings.region,
            max_pages=settings.max_pages,
        )

    return Orchestrator(
        engines,
        cache,
        engine_timeout=settings.engine_timeout,
        max_count=settings.max_count,
    )
