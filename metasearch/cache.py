"""SQLite result cache keyed on (engine, normalized query), append-only per key."""

from __future__ import annotations

import sqlite3
from contextlib import closing
from pathlib import Path

from metasearch.contracts import Engines, QueryRecord, ResultRow
from metasearch.errors import PersistenceError

_SCHEMA = """
CREATE TABLE IF NOT EXISTS engines (
    id   INTEGER PRIMARY KEY,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS queries (
    id         INTEGER PRIMARY KEY,
    engine_id  INTEGER NOT NULL REFERENCES engines(id),
    query      TEXT NOT NULL,
    fetched_at TEXT NOT NULL,
    UNIQUE (engine_id, query)
);
CREATE TABLE IF NOT EXISTS results (
    query_id    INTEGER NOT NULL REFERENCES queries(id),
    position    INTEGER NOT NULL,
    url         TEXT NOT NULL,
    title       TEXT NOT NULL,
    description TEXT NOT NULL,
    PRIMARY KEY (query_id, position)
);
"""


def normalize_query(query: str) -> str:
    """Cache key form of a query: whitespace collapsed, case folded."""
    return " ".join(query.split()).casefold()


class SqliteResultCache:
    """Persistent result store.

    Rows for a (engine, query) pair are only ever appended; positions are
    assigned contiguously from the current length. A connection is opened
    per operation, so one instance can serve concurrent tasks.

    Writers of the same key are NOT serialized here. Two callers that both
    observe the same length and append will store the range twice; hold a
    per-key lock (see ``metasearch.aggregator.KeyedLocks``) around
    read-then-append.
    """

    def __init__(self, db_path: str | Path, *, timeout: float = 5.0) -> None:
        self._path = Path(db_path)
        self._timeout = timeout
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with closing(self._connect()) as conn, conn:
                conn.executescript(_SCHEMA)
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"cannot initialise cache at {self._path}: {e}") from e

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        return conn

    def get_engine_id(self, engine: Engines) -> int:
        """Return the persisted id for ``engine``, creating it on first use."""
        name = Engines(engine).value
        try:
            with closing(self._connect()) as conn, conn:
                conn.execute("INSERT OR IGNORE INTO engines (name) VALUES (?)", (name,))
                row = conn.execute("SELECT id FROM engines WHERE name = ?", (name,)).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"get_engine_id({name}) failed: {e}") from e
        return int(row["id"])

    def get_query_record(self, query: str, engine_id: int) -> QueryRecord | None:
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    "SELECT id, engine_id, query, fetched_at FROM queries "
                    "WHERE engine_id = ? AND query = ?",
                    (engine_id, query),
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"get_query_record failed: {e}") from e
        if row is None:
            return None
        return QueryRecord(
            id=row["id"],
            engine_id=row["engine_id"],
            query=row["query"],
            fetched_at=row["fetched_at"],
        )

    def get_rows(self, query_id: int) -> list[ResultRow]:
        """Return the rows stored for a query, in position order."""
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(
                    "SELECT url, title, description FROM results "
                    "WHERE query_id = ? ORDER BY position",
                    (query_id,),
                ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"get_rows({query_id}) failed: {e}") from e
        return [
            ResultRow(url=r["url"], title=r["title"], description=r["description"]) for r in rows
        ]

    def append_rows(
        self,
        engine_id: int,
        query: str,
        rows: list[ResultRow],
        fetched_at: str,
    ) -> int:
        """Append ``rows`` after the existing sequence and touch ``fetched_at``.

        Creates the query record if absent. Returns the query id.
        """
        try:
            with closing(self._connect()) as conn, conn:
                conn.execute(
                    "INSERT INTO queries (engine_id, query, fetched_at) VALUES (?, ?, ?) "
                    "ON CONFLICT (engine_id, query) DO UPDATE SET fetched_at = excluded.fetched_at",
                    (engine_id, query, fetched_at),
                )
                query_id = conn.execute(
                    "SELECT id FROM queries WHERE engine_id = ? AND query = ?",
                    (engine_id, query),
                ).fetchone()["id"]
                next_pos = conn.execute(
                    "SELECT COALESCE(MAX(position) + 1, 0) FROM results WHERE query_id = ?",
                    (query_id,),
                ).fetchone()[0]
                conn.executemany(
                    "INSERT INTO results (query_id, position, url, title, description) "
                    "VALUES (?, ?, ?, ?, ?)",
                    [
                        (query_id, next_pos + i, r["url"], r["title"], r["description"])
                        for i, r in enumerate(rows)
                    ],
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"append_rows failed: {e}") from e
        return int(query_id)
