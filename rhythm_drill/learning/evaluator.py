"""
Response evaluation.

A pure comparison of an answer against the target beat events. It never
touches session state.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from rhythm_drill.core.catalog import DurationKind


class EvaluationResult(str, Enum):
    """Outcome of comparing an answer to its target."""

    CORRECT = "correct"
    INCORRECT = "incorrect"
    INCOMPLETE = "incomplete"


@dataclass(frozen=True)
class Mismatch:
    """One position where the answer differs from the target."""

    index: int
    expected: DurationKind
    given: DurationKind


@dataclass(frozen=True)
class Evaluation:
    """Result plus the positions that did not match."""

    result: EvaluationResult
    mismatches: tuple[Mismatch, ...] = field(default_factory=tuple)
    empty_slots: tuple[int, ...] = field(default_factory=tuple)

    @property
    def is_correct(self) -> bool:
        return self.result == EvaluationResult.CORRECT


def evaluate(
    target: Sequence[DurationKind],
    answer: Sequence[DurationKind | None],
) -> EvaluationResult:
    """
    Compare a completed answer with its target.

    Returns:
        INCOMPLETE if any slot is unset, CORRECT on an exact positional
        match of equal length, INCORRECT otherwise
    """
    return evaluate_detailed(target, answer).result


def evaluate_detailed(
    target: Sequence[DurationKind],
    answer: Sequence[DurationKind | None],
) -> Evaluation:
    """Like evaluate, also reporting empty slots and mismatched positions."""
    empty = tuple(i for i, value in enumerate(answer) if value is None)
    if empty:
        return Evaluation(result=EvaluationResult.INCOMPLETE, empty_slots=empty)

    mismatches = tuple(
        Mismatch(index=i, expected=expected, given=given)
        for i, (expected, given) in enumerate(zip(target, answer))
        if expected != given
    )

    if len(target) == len(answer) and not mismatches:
        return Evaluation(result=EvaluationResult.CORRECT)
    return Evaluation(result=EvaluationResult.INCORRECT, mismatches=mismatches)
