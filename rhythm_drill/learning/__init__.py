"""
Learning Module - evaluation, confusion/mastery tracking and rewards.
"""

from rhythm_drill.learning.confusion_tracker import ConfusionMasteryTracker, MasteryRule
from rhythm_drill.learning.evaluator import (
    Evaluation,
    EvaluationResult,
    Mismatch,
    evaluate,
    evaluate_detailed,
)
from rhythm_drill.learning.rewards import (
    RewardCalculator,
    RewardConfig,
    RewardContext,
    quality_score,
)

__all__ = [
    "ConfusionMasteryTracker",
    "MasteryRule",
    "Evaluation",
    "EvaluationResult",
    "Mismatch",
    "evaluate",
    "evaluate_detailed",
    "RewardCalculator",
    "RewardConfig",
    "RewardContext",
    "quality_score",
]
