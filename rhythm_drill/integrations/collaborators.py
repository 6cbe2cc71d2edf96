"""
Collaborator interfaces consumed by the drill session.

One explicit protocol per external service. The session is constructed
with concrete implementations; it never looks collaborators up globally
and never looks for alternative shapes.

Async calls may be slow or fail. The session awaits them only after its
local state already reflects an evaluation.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from rhythm_drill.core.catalog import Item, TimeSignature


@dataclass(frozen=True)
class DifficultyConfig:
    """Response of the difficulty controller's getAdaptiveConfig."""

    level: int = 1
    difficulty_label: str = "easy"
    option_count: int = 4

    @classmethod
    def fallback(cls) -> DifficultyConfig:
        return cls()


class SrsScheduler(Protocol):
    async def get_due_items(self, module_tag: str, limit: int) -> list[str]:
        """SRS keys due for review."""
        ...

    async def update_item(
        self,
        key: str,
        quality: int,
        response_time_ms: int,
        metadata: dict[str, Any],
    ) -> None: ...


class DifficultyController(Protocol):
    async def get_adaptive_config(self, module_tag: str) -> DifficultyConfig: ...

    async def adjust_difficulty(
        self,
        module_tag: str,
        recent_accuracy: float,
        avg_response_time_s: float,
    ) -> None: ...

    async def record_performance(
        self,
        module_tag: str,
        cumulative_accuracy: float,
        avg_response_time_s: float,
        correct_count: int,
        context: dict[str, Any],
    ) -> None: ...


class GamificationLedger(Protocol):
    async def add_xp(self, amount: int, reason: str) -> None: ...


class AnalyticsSink(Protocol):
    async def track_activity(self, module_tag: str, event: str, payload: dict[str, Any]) -> None: ...


class AudioEngine(Protocol):
    def play_rhythm_pattern(self, item: Item, tempo: int, time_signature: TimeSignature) -> bool:
        """
        Play a whole pattern natively.

        Returns False when the engine cannot, in which case the session
        drives play_metronome_tick through its own playback scheduler.
        """
        ...

    def play_metronome_tick(self, is_accent: bool, volume: float) -> None: ...

    def stop(self) -> None: ...


# Optional replacement for the computed reward: (module_tag, correct, context) -> xp
RewardOverride = Callable[[str, bool, dict[str, Any]], Awaitable[int]]


def srs_key(module_tag: str, item: Item) -> str:
    """SRS key for an item, e.g. 'rhythm:4/4:quarters'."""
    return f"{module_tag}:{item.time_signature}:{item.id}"


def parse_srs_key(key: str) -> tuple[str, str, str] | None:
    """Split an SRS key into (module_tag, time_signature, item_id)."""
    parts = key.split(":", 2)
    if len(parts) != 3:
        return None
    return parts[0], parts[1], parts[2]
