"""Scoring: marking scheme applied to a response set, plus grade and weak-area helpers."""
import logging
from decimal import Decimal
from typing import Dict, List
from uuid import NAMESPACE_DNS, uuid5

from mocktest.errors import MalformedResponse
from mocktest.models import DIFFICULTIES, ExamPattern, ResponseSet, TestInstance, TestResult

logger = logging.getLogger(__name__)

# Seconds per question: under FAST is fast, up to OPTIMAL optimal, up to SLOW slow, else too slow
FAST_SECONDS = 30
OPTIMAL_SECONDS = 54
SLOW_SECONDS = 120
TIMING_CATEGORIES = ("fast", "optimal", "slow", "too_slow")

GRADE_BANDS = (
    (90, "A+"), (85, "A"), (80, "A-"), (75, "B+"), (70, "B"), (65, "B-"),
    (60, "C+"), (55, "C"), (50, "C-"), (40, "D"),
)


def grade(percentage: float) -> str:
    for floor, letter in GRADE_BANDS:
        if percentage >= floor:
            return letter
    return "F"


def timing_category(seconds: float) -> str:
    if seconds < FAST_SECONDS:
        return "fast"
    if seconds <= OPTIMAL_SECONDS:
        return "optimal"
    if seconds <= SLOW_SECONDS:
        return "slow"
    return "too_slow"


def _difficulty_stats() -> Dict:
    return {"total": 0, "correct": 0, "incorrect": 0, "unanswered": 0}


def _is_unanswered(choice) -> bool:
    # The UI uses -1 for an explicit skip
    return choice is None or (isinstance(choice, int) and choice < 0)


class ScoringEngine:
    """Pure function of (instance, responses, pattern); holds no state."""

    def score(self, instance: TestInstance, responses: ResponseSet, pattern: ExamPattern) -> TestResult:
        """
        Apply the pattern's marking scheme to every question in the instance.

        Correct +positive, incorrect -negative, unanswered +unanswered. `score` on the
        result is the percentage of correct answers; `raw_score` is the sum of marks.

        Raises:
            MalformedResponse: a response names a question not in the instance, or an
                option index the question does not have
        """
        known = {item.question_id: item for item in instance.items}
        for question_id, choice in responses.answers.items():
            item = known.get(question_id)
            if item is None:
                raise MalformedResponse(f"Response for unknown question {question_id!r} in test {instance.id}")
            if _is_unanswered(choice):
                continue
            if not isinstance(choice, int) or isinstance(choice, bool):
                raise MalformedResponse(f"Option {choice!r} for question {question_id!r} is not an option index")
            if not 0 <= choice < len(item.options):
                raise MalformedResponse(
                    f"Option {choice} out of range for question {question_id!r} ({len(item.options)} options)"
                )

        scheme = pattern.marking_scheme
        positive = Decimal(str(scheme.positive))
        negative = Decimal(str(abs(scheme.negative)))
        unanswered_mark = Decimal(str(scheme.unanswered))

        marks = Decimal("0")
        correct = incorrect = skipped = 0
        by_subject: Dict[str, Dict[str, int]] = {}
        by_difficulty: Dict[str, Dict] = {d: _difficulty_stats() for d in DIFFICULTIES}
        timing = {c: 0 for c in TIMING_CATEGORIES}
        subject_time: Dict[str, Dict[str, float]] = {}

        for item in instance.items:
            choice = responses.answers.get(item.question_id)
            subject_stats = by_subject.setdefault(item.subject, {"total": 0, "correct": 0})
            difficulty_stats = by_difficulty.setdefault(item.difficulty, _difficulty_stats())
            subject_stats["total"] += 1
            difficulty_stats["total"] += 1

            seconds = float(responses.time_spent.get(item.question_id, 0) or 0)
            timing[timing_category(seconds)] += 1
            sub_time = subject_time.setdefault(item.subject, {"total_time": 0.0, "question_count": 0, "average_time": 0.0})
            sub_time["total_time"] += seconds
            sub_time["question_count"] += 1

            if _is_unanswered(choice):
                skipped += 1
                difficulty_stats["unanswered"] += 1
                marks += unanswered_mark
            elif choice == item.correct_index:
                correct += 1
                marks += positive
                subject_stats["correct"] += 1
                difficulty_stats["correct"] += 1
            else:
                incorrect += 1
                difficulty_stats["incorrect"] += 1
                marks -= negative

        for stats in by_difficulty.values():
            attempted = stats["correct"] + stats["incorrect"]
            stats["accuracy_rate"] = stats["correct"] / attempted * 100 if attempted else 0.0
            stats["attempt_rate"] = attempted / stats["total"] * 100 if stats["total"] else 0.0
        for sub_time in subject_time.values():
            sub_time["average_time"] = sub_time["total_time"] / sub_time["question_count"]

        total = len(instance.items)
        percentage = correct / total * 100 if total else 0.0
        submitted = responses.submitted_at or instance.created_at

        result = TestResult(
            id=str(uuid5(NAMESPACE_DNS, f"mocktest-result:{instance.id}")),
            date=submitted.isoformat(),
            type=pattern.type,
            pattern_name=pattern.name,
            score=round(percentage, 2),
            raw_score=float(marks),
            total_questions=total,
            correct_answers=correct,
            incorrect_answers=incorrect,
            unanswered=skipped,
            time_spent_seconds=responses.total_time,
            passed=percentage >= pattern.passing_percentage,
            grade=grade(percentage),
            subject_breakdown=by_subject,
            difficulty_breakdown={d: s for d, s in by_difficulty.items() if s["total"]},
            timing_distribution=timing,
            subject_time=subject_time,
        )
        logger.info(
            f"Test {instance.id} scored: {correct}/{total} correct, marks={result.raw_score}, passed={result.passed}"
        )
        return result


def lag_analysis(result: TestResult, top: int = 5) -> Dict:
    """
    Rank subjects by failure weighted by how many questions they carried.

    Returns:
        weak_areas / strong_areas as (subject, stats) pairs, and all_subjects
    """
    lags = {}
    for subject, stats in result.subject_breakdown.items():
        if stats["total"] > 0:
            accuracy = stats["correct"] / stats["total"] * 100
            lags[subject] = {
                "total": stats["total"],
                "correct": stats["correct"],
                "accuracy_percent": accuracy,
                "lag_factor": (100 - accuracy) * stats["total"],
            }

    ranked: List = sorted(lags.items(), key=lambda x: x[1]["lag_factor"], reverse=True)
    return {
        "weak_areas": ranked[:top],
        "strong_areas": ranked[-top:][::-1] if len(ranked) > top else [],
        "all_subjects": dict(ranked),
    }
