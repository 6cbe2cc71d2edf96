"""
Unit tests for the response evaluator.
"""

import pytest

from rhythm_drill.core.catalog import DurationKind
from rhythm_drill.learning.evaluator import EvaluationResult, evaluate, evaluate_detailed

Q, E, S = DurationKind.QUARTER, DurationKind.EIGHTH, DurationKind.SIXTEENTH


class TestEvaluate:
    """Tests for evaluate()."""

    def test_exact_match_is_correct(self):
        assert evaluate([Q, Q, E, E], [Q, Q, E, E]) == EvaluationResult.CORRECT

    def test_any_difference_is_incorrect(self):
        assert evaluate([Q, Q, E, E], [Q, E, E, E]) == EvaluationResult.INCORRECT

    def test_empty_slot_is_incomplete(self):
        assert evaluate([Q, Q, E, E], [Q, None, E, E]) == EvaluationResult.INCOMPLETE

    def test_incomplete_wins_over_mismatch(self):
        assert evaluate([Q, Q], [S, None]) == EvaluationResult.INCOMPLETE

    @pytest.mark.parametrize("answer", [[Q, Q, E], [Q, Q, E, E, E]])
    def test_length_mismatch_is_incorrect(self, answer):
        assert evaluate([Q, Q, E, E], answer) == EvaluationResult.INCORRECT

    def test_inputs_not_mutated(self):
        target = [Q, E]
        answer = [E, E]
        evaluate(target, answer)
        assert target == [Q, E]
        assert answer == [E, E]


class TestEvaluateDetailed:
    """Tests for evaluate_detailed()."""

    def test_reports_mismatches(self):
        evaluation = evaluate_detailed([Q, Q, E, E], [Q, E, E, S])

        assert not evaluation.is_correct
        assert [(m.index, m.expected, m.given) for m in evaluation.mismatches] == [
            (1, Q, E),
            (3, E, S),
        ]

    def test_reports_empty_slots(self):
        evaluation = evaluate_detailed([Q, Q, E], [None, Q, None])

        assert evaluation.result == EvaluationResult.INCOMPLETE
        assert evaluation.empty_slots == (0, 2)
