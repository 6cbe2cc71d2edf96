"""
Local tempo adaptation.

Every Nth answered question the trailing window of results decides whether
the tempo moves one step up, one step down, or stays put. No collaborator
is consulted.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger


@dataclass
class TempoConfig:
    """Configuration for tempo adaptation."""

    step: int = 5
    minimum: int = 40
    maximum: int = 160
    interval: int = 5  # check every N answers, over the last N results
    raise_accuracy: float = 0.8
    lower_accuracy: float = 0.4


@dataclass(frozen=True)
class TempoDecision:
    """Outcome of one adaptation check."""

    previous: int
    tempo: int
    accuracy: float

    @property
    def changed(self) -> bool:
        return self.tempo != self.previous


class TempoAdapter:
    """Nudges a single tempo value from trailing accuracy."""

    def __init__(self, tempo: int, config: TempoConfig | None = None):
        self.config = config or TempoConfig()
        self.tempo = self.clamp(tempo)

    def clamp(self, tempo: int) -> int:
        return max(self.config.minimum, min(self.config.maximum, int(tempo)))

    def set_tempo(self, tempo: int) -> int:
        """Manually set the tempo, clamped to the configured bounds."""
        self.tempo = self.clamp(tempo)
        return self.tempo

    def is_check_due(self, total_answered: int) -> bool:
        return total_answered > 0 and total_answered % self.config.interval == 0

    def maybe_adapt(self, total_answered: int, recent_results: Sequence[bool]) -> TempoDecision | None:
        """
        Run the adaptation check if this answer count triggers it.

        Args:
            total_answered: Answers so far, including the current one
            recent_results: Correctness of answers, oldest first

        Returns:
            TempoDecision when a check ran, None otherwise
        """
        if not self.is_check_due(total_answered):
            return None

        window = list(recent_results)[-self.config.interval:]
        if not window:
            return None

        accuracy = sum(1 for correct in window if correct) / len(window)
        previous = self.tempo

        if accuracy >= self.config.raise_accuracy:
            self.tempo = self.clamp(previous + self.config.step)
        elif accuracy <= self.config.lower_accuracy:
            self.tempo = self.clamp(previous - self.config.step)

        decision = TempoDecision(previous=previous, tempo=self.tempo, accuracy=accuracy)
        if decision.changed:
            logger.info(f"Tempo {previous} -> {self.tempo} BPM (accuracy {accuracy:.0%})")
        return decision
