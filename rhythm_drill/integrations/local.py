"""
In-process collaborators.

Lightweight implementations of every collaborator protocol so the drill
can run standalone (terminal CLI, simulations) without external services:
- review / LocalSrsScheduler: SM-2 review intervals over a state store
- LocalDifficultyController: one-level-at-a-time promotion and demotion
- LocalLedger: running XP total with level thresholds
- LoguruAnalytics: activity events written to the log

The drill sends quality 5 (clean first try), 4 (hint or replay) or 2
(miss); anything below 3 restarts an item.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any, Protocol

from loguru import logger

from rhythm_drill.adaptive.pool_builder import MAX_LEVEL, MIN_LEVEL
from rhythm_drill.delivery.state_store import SM2State
from rhythm_drill.integrations.collaborators import DifficultyConfig

# =============================================================================
# SRS
# =============================================================================

MIN_EASINESS = 1.3
PASSING_QUALITY = 3
EARLY_INTERVALS = (1, 6)  # days after the first and second passing review


def review(state: SM2State, quality: int, today: date | None = None) -> SM2State:
    """
    Apply one SM-2 review to an item's state.

    A failing quality restarts the item at the first interval; passing
    reviews walk the early intervals, then grow by the easiness factor.
    """
    today = today or date.today()
    miss = 5 - quality
    easiness = max(MIN_EASINESS, state.easiness_factor + 0.1 - miss * (0.08 + miss * 0.02))

    streak = state.repetitions + 1 if quality >= PASSING_QUALITY else 0
    if streak == 0:
        interval = EARLY_INTERVALS[0]
    elif streak <= len(EARLY_INTERVALS):
        interval = EARLY_INTERVALS[streak - 1]
    else:
        interval = round(state.interval_days * easiness)

    return replace(
        state,
        easiness_factor=easiness,
        interval_days=interval,
        repetitions=streak,
        next_review=today + timedelta(days=interval),
        last_reviewed=datetime.now(),
    )


class SM2StateStore(Protocol):
    def get_sm2_state(self, key: str) -> SM2State: ...

    def save_sm2_state(self, state: SM2State) -> None: ...

    def get_due_keys(self, prefix: str, limit: int = 100) -> list[str]: ...


class LocalSrsScheduler:
    """SRS collaborator keeping SM-2 state per drill key in a store."""

    def __init__(self, store: SM2StateStore):
        self.store = store

    async def get_due_items(self, module_tag: str, limit: int) -> list[str]:
        return self.store.get_due_keys(f"{module_tag}:", limit)

    async def update_item(
        self,
        key: str,
        quality: int,
        response_time_ms: int,
        metadata: dict[str, Any],
    ) -> None:
        updated = review(self.store.get_sm2_state(key), quality)
        self.store.save_sm2_state(updated)
        logger.debug(f"SRS {key}: q={quality} -> next review in {updated.interval_days}d")


# =============================================================================
# Difficulty
# =============================================================================

LEVEL_LABELS = {
    1: "easy",
    2: "easy+",
    3: "medium",
    4: "medium+",
    5: "hard",
    6: "expert",
}


@dataclass
class ModulePerformance:
    """Per-module history kept by the local controller."""

    level: int = 1
    sessions: int = 0
    accuracy_history: list[float] = field(default_factory=list)
    cumulative_accuracy: float = 0.0


class LocalDifficultyController:
    """
    Level controller with conservative one-step moves.

    Promotes at >= 90% recent accuracy, demotes at <= 65%.
    """

    PROMOTE_ACCURACY = 0.9
    DEMOTE_ACCURACY = 0.65

    def __init__(self, start_level: int = 1, option_count: int = 4):
        self.start_level = max(MIN_LEVEL, min(MAX_LEVEL, start_level))
        self.option_count = option_count
        self.performance: dict[str, ModulePerformance] = {}

    def _perf(self, module_tag: str) -> ModulePerformance:
        if module_tag not in self.performance:
            self.performance[module_tag] = ModulePerformance(level=self.start_level)
        return self.performance[module_tag]

    async def get_adaptive_config(self, module_tag: str) -> DifficultyConfig:
        level = self._perf(module_tag).level
        return DifficultyConfig(
            level=level,
            difficulty_label=LEVEL_LABELS[level],
            option_count=self.option_count,
        )

    async def adjust_difficulty(
        self,
        module_tag: str,
        recent_accuracy: float,
        avg_response_time_s: float,
    ) -> None:
        perf = self._perf(module_tag)
        perf.accuracy_history = [*perf.accuracy_history[-9:], recent_accuracy]
        previous = perf.level

        if recent_accuracy >= self.PROMOTE_ACCURACY:
            perf.level = min(MAX_LEVEL, perf.level + 1)
        elif recent_accuracy <= self.DEMOTE_ACCURACY:
            perf.level = max(MIN_LEVEL, perf.level - 1)

        if perf.level != previous:
            logger.info(f"Difficulty for '{module_tag}': level {previous} -> {perf.level}")

    async def record_performance(
        self,
        module_tag: str,
        cumulative_accuracy: float,
        avg_response_time_s: float,
        correct_count: int,
        context: dict[str, Any],
    ) -> None:
        perf = self._perf(module_tag)
        perf.sessions += 1
        perf.cumulative_accuracy = cumulative_accuracy


# =============================================================================
# Gamification & Analytics
# =============================================================================

LEVEL_THRESHOLDS = [0, 100, 250, 500, 1000, 2000, 3500, 5500, 8000, 12000]


class LocalLedger:
    """Running XP total."""

    def __init__(self, xp: int = 0):
        self.xp = xp
        self.events: list[tuple[int, str]] = []

    @property
    def level(self) -> int:
        return sum(1 for threshold in LEVEL_THRESHOLDS if self.xp >= threshold)

    async def add_xp(self, amount: int, reason: str) -> None:
        if amount <= 0:
            return
        old_level = self.level
        self.xp += amount
        self.events.append((amount, reason))
        if self.level > old_level:
            logger.info(f"Level up! {old_level} -> {self.level} ({self.xp} XP)")


class LoguruAnalytics:
    """Writes activity events to the log and keeps them for inspection."""

    def __init__(self):
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    async def track_activity(self, module_tag: str, event: str, payload: dict[str, Any]) -> None:
        self.events.append((module_tag, event, payload))
        logger.bind(module=module_tag).debug(f"[{module_tag}] {event}: {payload}")
