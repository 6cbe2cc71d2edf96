"""
Drill Module - question lifecycle and the session controller.

Components:
- RhythmDrillSession: state machine driving present/collect/evaluate/advance
- QuestionState: the active question and its answer slots
- DrillPhase / DrillEvent: states and subscriber notifications
"""

from rhythm_drill.drill.question import (
    AdaptiveConfig,
    DrillEvent,
    DrillPhase,
    EvaluationOutcome,
    QuestionState,
)
from rhythm_drill.drill.session import RhythmDrillSession

__all__ = [
    "AdaptiveConfig",
    "DrillEvent",
    "DrillPhase",
    "EvaluationOutcome",
    "QuestionState",
    "RhythmDrillSession",
]
