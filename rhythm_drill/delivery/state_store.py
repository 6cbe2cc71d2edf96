"""
Durable State Stores for the drill engine.

Provides persistence for:
- MasteryRecord and ConfusionRecord per module (key-value, JSON payloads)
- SM-2 state per SRS key, used by the local SRS scheduler

Implementations:
- SQLiteDrillStore: portable file store, default ~/.rhythm_drill/state.db
- MemoryDrillStore: process-local store for tests and dry runs
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, replace
from datetime import date, datetime
from pathlib import Path
from typing import Protocol

from loguru import logger

from rhythm_drill.core.records import ConfusionRecord, MasteryRecord

MASTERY_KIND = "mastery"
CONFUSION_KIND = "confusion"

# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class SM2State:
    """SM-2 algorithm state for a single SRS key."""

    key: str
    easiness_factor: float = 2.5  # EF starts at 2.5
    interval_days: int = 1  # Days until next review
    repetitions: int = 0  # Consecutive passing grades
    next_review: date | None = None
    last_reviewed: datetime | None = None

    @property
    def is_due(self) -> bool:
        """Check if this key is due for review."""
        if self.next_review is None:
            return True  # Never reviewed = due
        return date.today() >= self.next_review


# =============================================================================
# Store Protocol
# =============================================================================


class DrillStore(Protocol):
    """Two records per module, read at startup and written after every mutation."""

    def load_mastery(self, module_tag: str) -> MasteryRecord: ...

    def save_mastery(self, module_tag: str, record: MasteryRecord) -> None: ...

    def load_confusion(self, module_tag: str) -> ConfusionRecord: ...

    def save_confusion(self, module_tag: str, record: ConfusionRecord) -> None: ...


# =============================================================================
# In-memory Store
# =============================================================================


class MemoryDrillStore:
    """
    Dictionary-backed store.

    Payloads are kept as JSON strings so loads go through the same
    serialization path as the SQLite store.
    """

    def __init__(self):
        self._records: dict[tuple[str, str], str] = {}
        self._sm2: dict[str, SM2State] = {}

    def load_mastery(self, module_tag: str) -> MasteryRecord:
        payload = self._records.get((module_tag, MASTERY_KIND))
        return MasteryRecord.model_validate_json(payload) if payload else MasteryRecord()

    def save_mastery(self, module_tag: str, record: MasteryRecord) -> None:
        self._records[(module_tag, MASTERY_KIND)] = record.model_dump_json()

    def load_confusion(self, module_tag: str) -> ConfusionRecord:
        payload = self._records.get((module_tag, CONFUSION_KIND))
        return ConfusionRecord.model_validate_json(payload) if payload else ConfusionRecord()

    def save_confusion(self, module_tag: str, record: ConfusionRecord) -> None:
        self._records[(module_tag, CONFUSION_KIND)] = record.model_dump_json()

    def get_sm2_state(self, key: str) -> SM2State:
        state = self._sm2.get(key)
        return replace(state) if state else SM2State(key=key)

    def save_sm2_state(self, state: SM2State) -> None:
        self._sm2[state.key] = replace(state)

    def get_due_keys(self, prefix: str, limit: int = 100) -> list[str]:
        today = date.today()
        due = [
            s for s in self._sm2.values()
            if s.key.startswith(prefix) and s.next_review is not None and s.next_review <= today
        ]
        due.sort(key=lambda s: (s.next_review, s.interval_days))
        return [s.key for s in due[:limit]]


# =============================================================================
# SQLite Store
# =============================================================================


class SQLiteDrillStore:
    """
    SQLite-backed persistence for drill records.

    Handles:
    - drill_records: (module_tag, kind) -> JSON payload
    - sm2_state: SM-2 scheduling state per SRS key
    """

    DEFAULT_DB_PATH = Path.home() / ".rhythm_drill" / "state.db"

    def __init__(self, db_path: Path | None = None):
        """
        Initialize the store.

        Args:
            db_path: Custom database path (defaults to ~/.rhythm_drill/state.db)
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._init_schema()

        logger.info(f"SQLiteDrillStore initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS drill_records (
                module_tag TEXT NOT NULL,
                kind TEXT NOT NULL,
                payload TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (module_tag, kind)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS sm2_state (
                key TEXT PRIMARY KEY,
                easiness_factor REAL DEFAULT 2.5,
                interval_days INTEGER DEFAULT 1,
                repetitions INTEGER DEFAULT 0,
                next_review TEXT,
                last_reviewed TEXT
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_sm2_next_review
            ON sm2_state(next_review)
        """)

        self.conn.commit()

    # =========================================================================
    # Record Operations
    # =========================================================================

    def _read(self, module_tag: str, kind: str) -> str | None:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT payload FROM drill_records WHERE module_tag = ? AND kind = ?",
            (module_tag, kind),
        )
        row = cursor.fetchone()
        return row["payload"] if row else None

    def _write(self, module_tag: str, kind: str, payload: str) -> None:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO drill_records (module_tag, kind, payload, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(module_tag, kind) DO UPDATE SET
                payload = excluded.payload,
                updated_at = excluded.updated_at
        """,
            (module_tag, kind, payload, datetime.now().isoformat()),
        )
        self.conn.commit()

    def load_mastery(self, module_tag: str) -> MasteryRecord:
        payload = self._read(module_tag, MASTERY_KIND)
        return MasteryRecord.model_validate_json(payload) if payload else MasteryRecord()

    def save_mastery(self, module_tag: str, record: MasteryRecord) -> None:
        self._write(module_tag, MASTERY_KIND, record.model_dump_json())

    def load_confusion(self, module_tag: str) -> ConfusionRecord:
        payload = self._read(module_tag, CONFUSION_KIND)
        return ConfusionRecord.model_validate_json(payload) if payload else ConfusionRecord()

    def save_confusion(self, module_tag: str, record: ConfusionRecord) -> None:
        self._write(module_tag, CONFUSION_KIND, record.model_dump_json())

    # =========================================================================
    # SM-2 State Operations
    # =========================================================================

    def get_sm2_state(self, key: str) -> SM2State:
        """
        Get SM-2 state for a key.

        Returns:
            SM2State (default values if not found)
        """
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM sm2_state WHERE key = ?", (key,))
        row = cursor.fetchone()

        if row is None:
            return SM2State(key=key)

        return SM2State(
            key=row["key"],
            easiness_factor=row["easiness_factor"],
            interval_days=row["interval_days"],
            repetitions=row["repetitions"],
            next_review=date.fromisoformat(row["next_review"]) if row["next_review"] else None,
            last_reviewed=(
                datetime.fromisoformat(row["last_reviewed"]) if row["last_reviewed"] else None
            ),
        )

    def save_sm2_state(self, state: SM2State) -> None:
        """Save or update SM-2 state for a key."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO sm2_state (
                key, easiness_factor, interval_days,
                repetitions, next_review, last_reviewed
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                easiness_factor = excluded.easiness_factor,
                interval_days = excluded.interval_days,
                repetitions = excluded.repetitions,
                next_review = excluded.next_review,
                last_reviewed = excluded.last_reviewed
        """,
            (
                state.key,
                state.easiness_factor,
                state.interval_days,
                state.repetitions,
                state.next_review.isoformat() if state.next_review else None,
                state.last_reviewed.isoformat() if state.last_reviewed else None,
            ),
        )
        self.conn.commit()

    def get_due_keys(self, prefix: str, limit: int = 100) -> list[str]:
        """
        Get keys under a prefix that are due today or earlier.

        Args:
            prefix: Key prefix, e.g. 'rhythm:'
            limit: Maximum keys to return
        """
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT key FROM sm2_state
            WHERE key LIKE ? AND next_review <= ?
            ORDER BY next_review ASC, interval_days ASC
            LIMIT ?
        """,
            (f"{prefix}%", date.today().isoformat(), limit),
        )
        return [row["key"] for row in cursor.fetchall()]

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
