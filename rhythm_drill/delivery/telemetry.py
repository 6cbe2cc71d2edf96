"""
Session Telemetry.

Tracks in-memory performance during a drill session:
- PerformanceRecord: one evaluated answer
- PerformanceLog: rolling log of records (never persisted in full)
- SessionStats: counters, streaks and mean response time
- MasteryStats: per-item accuracy summary for display
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

# =============================================================================
# Performance Records
# =============================================================================


@dataclass(frozen=True)
class PerformanceRecord:
    """A single evaluated answer."""

    item_id: str
    time_signature: str
    correct: bool
    response_time_ms: int
    play_count: int
    used_hint: bool
    tempo: int
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class MasteryStats:
    """Accuracy summary for one item."""

    item_id: str
    seen: int
    correct: int
    mastered: bool = False

    @property
    def accuracy(self) -> int:
        """Accuracy as a rounded percentage."""
        if self.seen == 0:
            return 0
        return round(self.correct / self.seen * 100)

    @property
    def status(self) -> str:
        if self.accuracy >= 80:
            return "mastered"
        if self.accuracy >= 50:
            return "learning"
        return "needs-work"


class PerformanceLog:
    """Rolling, bounded log of performance records."""

    def __init__(self, capacity: int = 500):
        self._records: deque[PerformanceRecord] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._records)

    def append(self, record: PerformanceRecord) -> None:
        self._records.append(record)

    def clear(self) -> None:
        self._records.clear()

    @property
    def records(self) -> list[PerformanceRecord]:
        """All retained records, oldest first."""
        return list(self._records)

    def recent(self, n: int) -> list[PerformanceRecord]:
        if n <= 0:
            return []
        return list(self._records)[-n:]

    def recent_results(self, n: int) -> list[bool]:
        return [r.correct for r in self.recent(n)]

    def recent_accuracy(self, n: int) -> float:
        window = self.recent(n)
        if not window:
            return 0.0
        return sum(1 for r in window if r.correct) / len(window)

    def average_response_ms(self, n: int | None = None) -> float:
        window = self.records if n is None else self.recent(n)
        if not window:
            return 0.0
        return sum(r.response_time_ms for r in window) / len(window)

    def mastery_stats(
        self,
        item_ids: Iterable[str],
        mastered: Iterable[str] = (),
    ) -> list[MasteryStats]:
        """
        Per-item accuracy summaries, weakest first.

        Args:
            item_ids: Items to summarize (unseen items report zero)
            mastered: Ids flagged in the mastery set
        """
        mastered_ids = set(mastered)
        seen: dict[str, int] = {}
        correct: dict[str, int] = {}
        for r in self._records:
            seen[r.item_id] = seen.get(r.item_id, 0) + 1
            if r.correct:
                correct[r.item_id] = correct.get(r.item_id, 0) + 1

        stats = [
            MasteryStats(
                item_id=item_id,
                seen=seen.get(item_id, 0),
                correct=correct.get(item_id, 0),
                mastered=item_id in mastered_ids,
            )
            for item_id in item_ids
        ]
        stats.sort(key=lambda s: (s.accuracy, s.seen))
        return stats


# =============================================================================
# Session Stats
# =============================================================================


@dataclass
class SessionStats:
    """Counters for the current session. Reset only at session start."""

    correct_count: int = 0
    total_count: int = 0
    streak: int = 0
    perfect_streak: int = 0
    average_response_time_ms: float = 0.0
    started_at: datetime = field(default_factory=datetime.now)

    def record(self, correct: bool, perfect: bool, response_time_ms: int) -> None:
        """
        Fold one evaluated answer into the counters.

        Args:
            correct: Whether the answer was correct
            perfect: Correct on the first play without a hint
            response_time_ms: Time from presentation to evaluation
        """
        self.total_count += 1
        self.average_response_time_ms += (
            response_time_ms - self.average_response_time_ms
        ) / self.total_count

        if correct:
            self.correct_count += 1
            self.streak += 1
        else:
            self.streak = 0

        self.perfect_streak = self.perfect_streak + 1 if correct and perfect else 0

    @property
    def accuracy(self) -> float:
        """Cumulative accuracy between 0 and 1."""
        if self.total_count == 0:
            return 0.0
        return self.correct_count / self.total_count

    @property
    def duration_minutes(self) -> float:
        return (datetime.now() - self.started_at).total_seconds() / 60

    def to_dict(self) -> dict[str, float | int]:
        return {
            "correct_count": self.correct_count,
            "total_count": self.total_count,
            "streak": self.streak,
            "perfect_streak": self.perfect_streak,
            "average_response_time_ms": round(self.average_response_time_ms, 1),
            "accuracy": round(self.accuracy, 3),
        }
