"""
Question lifecycle types.

- DrillPhase: states of the session state machine
- QuestionState: the single active question and its answer slots
- AdaptiveConfig: current level, label, option count and weighted pool
- DrillEvent: payload delivered to session subscribers
- EvaluationOutcome: everything decided by one check_answer() call
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from rhythm_drill.adaptive.pool_builder import WeightedEntry
from rhythm_drill.adaptive.tempo_adapter import TempoDecision
from rhythm_drill.core.catalog import DurationKind, Item
from rhythm_drill.learning.evaluator import Evaluation, EvaluationResult


class DrillPhase(str, Enum):
    """Session state machine states."""

    IDLE = "idle"
    PRESENTING = "presenting"
    COLLECTING = "collecting"
    EVALUATED = "evaluated"
    ADVANCING = "advancing"


@dataclass
class QuestionState:
    """One presented item and the learner's answer so far."""

    item: Item
    answer_slots: list[DurationKind | None]
    generation: int
    shown_at_ms: float
    revealed: bool = False
    hint_used: bool = False
    play_count: int = 0

    @classmethod
    def create(cls, item: Item, generation: int, shown_at_ms: float) -> QuestionState:
        """New question with one empty slot per beat event."""
        return cls(
            item=item,
            answer_slots=[None] * len(item.beat_events),
            generation=generation,
            shown_at_ms=shown_at_ms,
        )

    @property
    def is_complete(self) -> bool:
        return all(slot is not None for slot in self.answer_slots)

    @property
    def empty_slots(self) -> list[int]:
        return [i for i, slot in enumerate(self.answer_slots) if slot is None]

    @property
    def first_attempt(self) -> bool:
        return self.play_count <= 1


@dataclass
class AdaptiveConfig:
    """Difficulty settings in force plus the pool built from them."""

    level: int = 1
    difficulty_label: str = "easy"
    option_count: int = 4
    pool: list[WeightedEntry] = field(default_factory=list)


@dataclass(frozen=True)
class DrillEvent:
    """Notification sent to session subscribers."""

    name: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class EvaluationOutcome:
    """Result of one check_answer() call."""

    result: EvaluationResult
    evaluation: Evaluation
    item_id: str
    xp: int = 0
    quality: int | None = None
    response_time_ms: int = 0
    tempo: int = 0
    mixups_detected: bool = False
    newly_mastered: bool = False
    tempo_decision: TempoDecision | None = None

    @property
    def accepted(self) -> bool:
        """False when the answer was rejected as incomplete."""
        return self.result != EvaluationResult.INCOMPLETE

    @property
    def correct(self) -> bool:
        return self.result == EvaluationResult.CORRECT
