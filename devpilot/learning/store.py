"""SQLite-backed pattern store.

Manages the pattern database connection, schema creation and the CRUD
operations the pattern tracker needs. Uses aiosqlite for async access with
WAL mode for concurrent read performance.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

from devpilot.schemas.patterns import Pattern, PatternExample

logger = logging.getLogger(__name__)

# SQL schema for the patterns database
_SCHEMA = """
CREATE TABLE IF NOT EXISTS patterns (
    signature      TEXT PRIMARY KEY,
    problem_key    TEXT NOT NULL,
    type           TEXT NOT NULL,
    category       TEXT,
    keywords_json  TEXT NOT NULL DEFAULT '[]',
    solution       TEXT,
    success_count  INTEGER NOT NULL DEFAULT 0,
    failure_count  INTEGER NOT NULL DEFAULT 0,
    confidence     REAL NOT NULL DEFAULT 0.5,
    examples_json  TEXT NOT NULL DEFAULT '[]',
    metadata_json  TEXT NOT NULL DEFAULT '{}',
    discovered_at  TEXT NOT NULL,
    last_seen      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_patterns_problem ON patterns(problem_key, last_seen);
CREATE INDEX IF NOT EXISTS idx_patterns_type_conf ON patterns(type, confidence);
CREATE INDEX IF NOT EXISTS idx_patterns_stale ON patterns(last_seen, success_count);
"""

_COLUMNS = (
    "signature, problem_key, type, category, keywords_json, solution, "
    "success_count, failure_count, confidence, examples_json, metadata_json, "
    "discovered_at, last_seen"
)


def _iso(value: datetime) -> str:
    """Fixed-width UTC timestamp so stored values compare as strings."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


async def init_db(db_path: str) -> aiosqlite.Connection:
    """Initialize the database connection and create tables if needed.

    Creates parent directories if they don't exist, enables WAL mode,
    then runs the schema DDL.

    Args:
        db_path: Path to the SQLite database file. Supports ~ expansion.

    Returns:
        An open aiosqlite connection ready for use.
    """
    if db_path == ":memory:":
        db = await aiosqlite.connect(db_path)
    else:
        resolved = Path(db_path).expanduser()
        resolved.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(resolved))
        await db.execute("PRAGMA journal_mode=WAL")
    await db.executescript(_SCHEMA)
    await db.commit()

    logger.info("Pattern database initialized at %s", db_path)
    return db


async def close_db(db: aiosqlite.Connection) -> None:
    """Close the database connection."""
    await db.close()


class PatternStore:
    """Durable pattern storage backed by SQLite.

    All methods are async and operate on an aiosqlite connection
    initialized by init_db(). Errors propagate as aiosqlite.Error; the
    tracker decides how to degrade.
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db
        self._db.row_factory = aiosqlite.Row

    async def get(self, signature: str) -> Pattern | None:
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM patterns WHERE signature = ?",  # noqa: S608
            (signature,),
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_pattern(row) if row else None

    async def latest_for_problem(self, problem_key: str) -> Pattern | None:
        """Most recently seen pattern sharing a problem key."""
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM patterns WHERE problem_key = ?"  # noqa: S608
            " ORDER BY last_seen DESC, signature ASC LIMIT 1",
            (problem_key,),
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_pattern(row) if row else None

    async def insert(self, pattern: Pattern) -> None:
        """Insert a new pattern.

        Raises:
            aiosqlite.IntegrityError: If the signature already exists.
        """
        await self._db.execute(
            f"INSERT INTO patterns ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",  # noqa: S608
            self._pattern_params(pattern),
        )
        await self._db.commit()

    async def update(self, pattern: Pattern) -> None:
        """Persist counters, confidence, examples and timestamps of a pattern."""
        await self._db.execute(
            """
            UPDATE patterns SET
                solution = ?, success_count = ?, failure_count = ?, confidence = ?,
                examples_json = ?, metadata_json = ?, last_seen = ?
            WHERE signature = ?
            """,
            (
                pattern.solution,
                pattern.success_count,
                pattern.failure_count,
                pattern.confidence,
                json.dumps([e.model_dump(mode="json") for e in pattern.examples]),
                json.dumps(pattern.metadata, default=str),
                _iso(pattern.last_seen),
                pattern.signature,
            ),
        )
        await self._db.commit()

    async def query(
        self,
        type: str | None = None,
        min_confidence: float = 0.0,
        limit: int = 20,
    ) -> list[Pattern]:
        """Patterns at or above ``min_confidence``, best first.

        Ordered by confidence, then success count (both descending), then
        signature for a stable order among equals.
        """
        conditions = ["confidence >= ?"]
        params: list[object] = [min_confidence]
        if type is not None:
            conditions.append("type = ?")
            params.append(type)
        params.append(limit)

        sql = (
            f"SELECT {_COLUMNS} FROM patterns WHERE {' AND '.join(conditions)}"  # noqa: S608
            " ORDER BY confidence DESC, success_count DESC, signature ASC LIMIT ?"
        )
        async with self._db.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_pattern(row) for row in rows]

    async def qualifying(
        self, min_confidence: float, min_success_count: int,
    ) -> list[Pattern]:
        """Every pattern meeting both thresholds, uncapped, best first."""
        async with self._db.execute(
            f"SELECT {_COLUMNS} FROM patterns"  # noqa: S608
            " WHERE confidence >= ? AND success_count >= ?"
            " ORDER BY confidence DESC, success_count DESC, signature ASC",
            (min_confidence, min_success_count),
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_pattern(row) for row in rows]

    async def delete_stale(self, cutoff: datetime, min_success_count: int = 3) -> int:
        """Delete patterns last seen before ``cutoff`` with few successes."""
        cursor = await self._db.execute(
            "DELETE FROM patterns WHERE last_seen < ? AND success_count < ?",
            (_iso(cutoff), min_success_count),
        )
        await self._db.commit()
        return cursor.rowcount

    async def count(self, min_confidence: float | None = None) -> int:
        if min_confidence is None:
            sql, params = "SELECT COUNT(*) FROM patterns", ()
        else:
            sql, params = "SELECT COUNT(*) FROM patterns WHERE confidence >= ?", (min_confidence,)
        async with self._db.execute(sql, params) as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    # ── Row mapping ──────────────────────────────────────────────

    @staticmethod
    def _pattern_params(pattern: Pattern) -> tuple:
        return (
            pattern.signature,
            pattern.problem_key,
            pattern.type,
            pattern.category,
            json.dumps(pattern.keywords),
            pattern.solution,
            pattern.success_count,
            pattern.failure_count,
            pattern.confidence,
            json.dumps([e.model_dump(mode="json") for e in pattern.examples]),
            json.dumps(pattern.metadata, default=str),
            _iso(pattern.discovered_at),
            _iso(pattern.last_seen),
        )

    @staticmethod
    def _row_to_pattern(row: aiosqlite.Row) -> Pattern:
        return Pattern(
            signature=row["signature"],
            problem_key=row["problem_key"],
            type=row["type"],
            category=row["category"],
            keywords=json.loads(row["keywords_json"]),
            solution=row["solution"],
            success_count=row["success_count"],
            failure_count=row["failure_count"],
            confidence=row["confidence"],
            examples=[PatternExample(**e) for e in json.loads(row["examples_json"])],
            metadata=json.loads(row["metadata_json"]),
            discovered_at=datetime.fromisoformat(row["discovered_at"]),
            last_seen=datetime.fromisoformat(row["last_seen"]),
        )
