"""Single source of truth for result types, engine identities, and protocols."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Protocol, TypedDict, runtime_checkable

# --- Enums ---


class Engines(str, Enum):
    """Backend identities. The value is the persisted identifier."""

    DUCKDUCKGO = "duckduckgo"
    GOOGLE = "google"
    BING = "bing"
    BRAVE = "brave"


# --- Data Types ---


class ResultRow(TypedDict):
    url: str
    title: str
    description: str


class QueryRecord(TypedDict):
    id: int
    engine_id: int
    query: str  # normalized
    fetched_at: str  # ISO 8601, last append


class ResultView(TypedDict):
    """A row as delivered to callers, tagged with its backend and provenance."""

    url: str
    title: str
    description: str
    backend: str  # Engines value
    cached: bool  # served from cache (True) or fetched during this call (False)


class SearchResponse(TypedDict):
    results: list[ResultView]
    timeouts: list[str]  # degraded backends, soft condition
    errors: dict[str, str]  # backend -> message


# --- Protocols ---


@runtime_checkable
class Engine(Protocol):
    name: Engines
    lock: asyncio.Lock

    def is_available(self) -> bool: ...

    async def search(self, query: str, start: int, need: int) -> list[ResultRow]: ...


@runtime_checkable
class ResultCache(Protocol):
    def get_engine_id(self, engine: Engines) -> int: ...

    def get_query_record(self, query: str, engine_id: int) -> QueryRecord | None: ...

    def get_rows(self, query_id: int) -> list[ResultRow]: ...

    def append_rows(
        self,
        engine_id: int,
        query: str,
        rows: list[ResultRow],
        fetched_at: str,
    ) -> int: ...
