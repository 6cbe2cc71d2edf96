"""
XP reward calculation.

Correct answer, starting from the base reward B:
    x1.3 if tempo is above the fast threshold   (ceiling)
    x1.2 on a first attempt (play count <= 1)   (ceiling)
    x0.5 if a hint was used                     (floor)
    + 2 x level
    + floor(0.5 x perfect streak) once the perfect streak reaches 10

Incorrect answer: floor(0.3 x B) participation credit, no modifiers.

Multipliers are exact fractions so 10 x 1.2 is 12, not 12.000000000000002.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from fractions import Fraction


@dataclass
class RewardConfig:
    """Reward constants."""

    base_xp: int = 10
    fast_tempo_threshold: int = 100
    fast_tempo_multiplier: Fraction = Fraction(13, 10)
    first_attempt_multiplier: Fraction = Fraction(6, 5)
    hint_multiplier: Fraction = Fraction(1, 2)
    level_bonus: int = 2
    perfect_streak_min: int = 10
    perfect_streak_rate: Fraction = Fraction(1, 2)
    participation_rate: Fraction = Fraction(3, 10)


@dataclass(frozen=True)
class RewardContext:
    """Inputs for one reward computation."""

    correct: bool
    tempo: int
    play_count: int
    hint_used: bool
    level: int
    perfect_streak: int = 0


class RewardCalculator:
    """Derives XP for an evaluated answer."""

    def __init__(self, config: RewardConfig | None = None):
        self.config = config or RewardConfig()

    def compute(self, ctx: RewardContext) -> int:
        """
        Compute XP for one evaluation.

        Args:
            ctx: Correctness, tempo, attempt, hint, level and streak inputs

        Returns:
            Non-negative XP amount
        """
        cfg = self.config

        if not ctx.correct:
            return math.floor(cfg.base_xp * cfg.participation_rate)

        xp = cfg.base_xp
        if ctx.tempo > cfg.fast_tempo_threshold:
            xp = math.ceil(xp * cfg.fast_tempo_multiplier)
        if ctx.play_count <= 1:
            xp = math.ceil(xp * cfg.first_attempt_multiplier)
        if ctx.hint_used:
            xp = math.floor(xp * cfg.hint_multiplier)

        xp += cfg.level_bonus * ctx.level

        if ctx.perfect_streak >= cfg.perfect_streak_min:
            xp += math.floor(cfg.perfect_streak_rate * ctx.perfect_streak)

        return max(0, xp)


def quality_score(correct: bool, hint_used: bool, play_count: int) -> int:
    """
    SRS quality for an evaluation.

    5 = correct, no hint, first try
    4 = correct with a hint or a replay
    2 = incorrect
    """
    if not correct:
        return 2
    if hint_used or play_count > 1:
        return 4
    return 5
