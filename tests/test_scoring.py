from dataclasses import replace

import pytest

from mocktest.errors import MalformedResponse
from mocktest.models import MarkingScheme
from mocktest.patterns import EXAM_PATTERNS
from mocktest.scoring import ScoringEngine, grade, lag_analysis, timing_category

from conftest import FIXED_NOW

STANDARD = EXAM_PATTERNS["Custom_Template"]


class TestScore:
    def test_marks_and_breakdowns(self, small_instance, responses):
        result = ScoringEngine().score(
            small_instance,
            responses({"a1": 0, "a2": 0, "b1": None, "b2": 3}, time_spent={"a1": 30, "a2": 45.5}),
            STANDARD,
        )
        assert result.correct_answers == 2
        assert result.incorrect_answers == 1
        assert result.unanswered == 1
        assert result.raw_score == pytest.approx(1.67)
        assert result.score == 50.0
        assert result.total_questions == 4
        assert result.time_spent_seconds == 75.5
        assert result.passed is True
        assert result.grade == "C-"
        assert result.type == "custom"
        assert result.pattern_name == "Custom Test"
        assert result.date == FIXED_NOW.isoformat()
        assert result.subject_breakdown == {"Alpha": {"total": 2, "correct": 1}, "Beta": {"total": 2, "correct": 1}}
        assert result.difficulty_breakdown == {
            "Easy": {"total": 1, "correct": 1, "incorrect": 0, "unanswered": 0, "accuracy_rate": 100.0, "attempt_rate": 100.0},
            "Medium": {"total": 2, "correct": 1, "incorrect": 1, "unanswered": 0, "accuracy_rate": 50.0, "attempt_rate": 100.0},
            "Hard": {"total": 1, "correct": 0, "incorrect": 0, "unanswered": 1, "accuracy_rate": 0.0, "attempt_rate": 0.0},
        }
        assert result.timing_distribution == {"fast": 2, "optimal": 2, "slow": 0, "too_slow": 0}
        assert result.subject_time == {
            "Alpha": {"total_time": 75.5, "question_count": 2, "average_time": 37.75},
            "Beta": {"total_time": 0.0, "question_count": 2, "average_time": 0.0},
        }

    def test_missing_and_negative_answers_count_as_unanswered(self, small_instance, responses):
        result = ScoringEngine().score(small_instance, responses({"a1": -1}), STANDARD)
        assert result.unanswered == 4
        assert result.raw_score == 0
        assert result.score == 0
        assert result.grade == "F"
        assert result.passed is False

    def test_custom_marking_scheme(self, small_instance, responses):
        pattern = replace(STANDARD, marking_scheme=MarkingScheme(positive=2, negative=-0.5, unanswered=0.25))
        result = ScoringEngine().score(small_instance, responses({"a1": 0, "a2": 2, "b2": 3}), pattern)
        # 2 + 2 - 0.5 + 0.25
        assert result.raw_score == pytest.approx(3.75)

    def test_scoring_is_idempotent(self, small_instance, responses):
        answers = responses({"a1": 0, "b1": 2})
        engine = ScoringEngine()
        first = engine.score(small_instance, answers, STANDARD)
        second = engine.score(small_instance, answers, STANDARD)
        assert first == second
        assert first.id == second.id

    def test_unknown_question_is_rejected(self, small_instance, responses):
        with pytest.raises(MalformedResponse):
            ScoringEngine().score(small_instance, responses({"zz": 0}), STANDARD)

    def test_out_of_range_option_is_rejected(self, small_instance, responses):
        with pytest.raises(MalformedResponse):
            ScoringEngine().score(small_instance, responses({"a1": 4}), STANDARD)

    @pytest.mark.parametrize("choice", ["2", 1.0, True])
    def test_non_integer_option_is_rejected(self, small_instance, responses, choice):
        with pytest.raises(MalformedResponse):
            ScoringEngine().score(small_instance, responses({"a2": choice}), STANDARD)

    def test_passing_percentage(self, small_instance, responses):
        strict = replace(STANDARD, passing_percentage=75)
        result = ScoringEngine().score(small_instance, responses({"a1": 0, "a2": 1}), strict)
        assert result.score == 50.0
        assert result.passed is False


@pytest.mark.parametrize(
    "pct, letter",
    [(100, "A+"), (90, "A+"), (89.9, "A"), (80, "A-"), (72, "B"), (60, "C+"), (50, "C-"), (40, "D"), (39.99, "F")],
)
def test_grade_bands(pct, letter):
    assert grade(pct) == letter


def test_lag_analysis_ranks_weakest_first(small_instance, responses):
    result = ScoringEngine().score(small_instance, responses({"a1": 0, "a2": 1, "b1": 0}), STANDARD)
    lags = lag_analysis(result)
    weakest, stats = lags["weak_areas"][0]
    assert weakest == "Beta"
    assert stats["accuracy_percent"] == 0
    assert stats["lag_factor"] == 200
    assert lags["all_subjects"]["Alpha"]["accuracy_percent"] == 100
    assert lags["strong_areas"] == []


@pytest.mark.parametrize(
    "seconds, category",
    [(0, "fast"), (29.9, "fast"), (30, "optimal"), (54, "optimal"), (54.1, "slow"), (120, "slow"), (121, "too_slow")],
)
def test_timing_category(seconds, category):
    assert timing_category(seconds) == category
