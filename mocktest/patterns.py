"""
Exam pattern catalog and validation.

Patterns are static definitions built once at import time. A custom pattern is a
copy of `Custom_Template` with overrides; nothing here mutates a pattern.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from mocktest.errors import PatternValidationError
from mocktest.models import ExamPattern, MarkingScheme, SubjectQuota

logger = logging.getLogger(__name__)

SUM_TOLERANCE = 0.01
STANDARD_MINUTES_PER_QUESTION = 0.9  # 54 seconds

_RRB_SUBJECTS = (
    ("General Awareness", 0.10, "Current affairs, geography, polity, economy, science & technology"),
    ("General Intelligence & Reasoning", 0.15, "Logical reasoning, analytical ability, pattern recognition"),
    ("Basics of Computers and Applications", 0.20, "Computer fundamentals, MS Office, internet, basic programming"),
    ("Mathematics", 0.20, "Arithmetic, algebra, geometry, mensuration, statistics"),
    ("Basic Science & Engineering", 0.35, "Physics, chemistry, electronics, electrical, signal & telecom"),
)


def _rrb_quotas(total: int, minutes: float) -> Dict[str, SubjectQuota]:
    return {
        name: SubjectQuota(
            question_count=round(total * weight),
            weight=weight,
            time_allocation=round(minutes * weight, 2),
            description=desc,
        )
        for name, weight, desc in _RRB_SUBJECTS
    }


STANDARD_MARKING = MarkingScheme(positive=1, negative=0.33, unanswered=0)
STANDARD_MIX = {"Easy": 0.40, "Medium": 0.45, "Hard": 0.15}

EXAM_PATTERNS: Dict[str, ExamPattern] = {
    "CBT_Technician_GrI_Signal": ExamPattern(
        name="RRB Technician Grade-3 Signal CBT",
        description="Official Computer Based Test pattern for RRB Technician Grade-3 Signal",
        type="full_mock",
        total_questions=100,
        time_limit_minutes=90,
        subjects=_rrb_quotas(100, 90),
        difficulty_distribution=dict(STANDARD_MIX),
        marking_scheme=STANDARD_MARKING,
        passing_percentage=40,
        warning_time_minutes=15,
    ),
    "SubjectWise_Standard": ExamPattern(
        name="Subject-wise Practice Test",
        description="Focused practice test for individual subjects",
        type="subject_wise",
        total_questions=25,
        time_limit_minutes=22.5,
        difficulty_distribution=dict(STANDARD_MIX),
        marking_scheme=STANDARD_MARKING,
        require_all_chapters=True,
        passing_percentage=50,
    ),
    "ChapterWise_Standard": ExamPattern(
        name="Chapter-wise Practice Test",
        description="Targeted practice for specific chapters",
        type="chapter_wise",
        total_questions=20,
        time_limit_minutes=18,
        difficulty_distribution=dict(STANDARD_MIX),
        marking_scheme=STANDARD_MARKING,
        passing_percentage=60,
    ),
    "PYQ_Standard": ExamPattern(
        name="Previous Year Questions Test",
        description="Practice test using previous year questions",
        type="pyq",
        total_questions=50,
        time_limit_minutes=45,
        difficulty_distribution={"Easy": 0.30, "Medium": 0.50, "Hard": 0.20},
        marking_scheme=STANDARD_MARKING,
        year_range=(2018, 2024),
        prioritize_recent=True,
        passing_percentage=45,
        # Keep original PYQ option order
        shuffle_options=False,
    ),
    "Quick_Practice": ExamPattern(
        name="Quick Practice Test",
        description="Short practice test for quick revision",
        type="quick_test",
        total_questions=10,
        time_limit_minutes=9,
        difficulty_distribution={"Easy": 0.50, "Medium": 0.40, "Hard": 0.10},
        marking_scheme=MarkingScheme(positive=1, negative=0.25, unanswered=0),
        passing_percentage=70,
        allow_review=False,
        allow_bookmark=False,
        instant_feedback=True,
    ),
    "Custom_Template": ExamPattern(
        name="Custom Test",
        description="Customizable test pattern",
        type="custom",
        total_questions=25,
        time_limit_minutes=22.5,
        difficulty_distribution=dict(STANDARD_MIX),
        marking_scheme=STANDARD_MARKING,
        passing_percentage=50,
        customizable=True,
    ),
    "Full_Mock_Extended": ExamPattern(
        name="Extended Mock Test",
        description="Comprehensive mock test with additional questions",
        type="full_mock",
        total_questions=120,
        time_limit_minutes=108,
        subjects=_rrb_quotas(120, 108),
        difficulty_distribution={"Easy": 0.35, "Medium": 0.50, "Hard": 0.15},
        marking_scheme=STANDARD_MARKING,
        passing_percentage=40,
        warning_time_minutes=15,
    ),
}


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)

    def raise_for_errors(self, pattern_name: str = ""):
        if not self.valid:
            raise PatternValidationError(pattern_name, self.errors)


def validate_pattern(pattern: ExamPattern) -> ValidationResult:
    """Check a pattern's arithmetic. Every violated check is reported, in order."""
    errors = []

    if not pattern.total_questions or pattern.total_questions < 1:
        errors.append("Total questions must be at least 1")

    if not pattern.time_limit_minutes or pattern.time_limit_minutes < 1:
        errors.append("Time limit must be at least 1 minute")

    if pattern.subjects:
        quota_sum = sum(q.question_count for q in pattern.subjects.values())
        if quota_sum != pattern.total_questions:
            errors.append(
                f"Subject questions sum ({quota_sum}) does not match total questions ({pattern.total_questions})"
            )
        weight_sum = sum(q.weight for q in pattern.subjects.values())
        if abs(weight_sum - 1.0) > SUM_TOLERANCE:
            errors.append(f"Subject weights must sum to 1.0 (got {weight_sum:.2f})")

    if pattern.difficulty_distribution:
        mix_sum = sum(pattern.difficulty_distribution.values())
        if abs(mix_sum - 1.0) > SUM_TOLERANCE:
            errors.append(f"Difficulty distribution must sum to 1.0 (got {mix_sum:.2f})")

    return ValidationResult(valid=not errors, errors=errors)


class PatternCatalog:
    """Read-only registry of exam patterns keyed by pattern name."""

    def __init__(self, patterns: Optional[Dict[str, ExamPattern]] = None):
        self._patterns = dict(EXAM_PATTERNS if patterns is None else patterns)

    def get(self, name: str) -> Optional[ExamPattern]:
        return self._patterns.get(name)

    def all(self) -> List[Tuple[str, ExamPattern]]:
        return list(self._patterns.items())

    def names(self) -> List[str]:
        return list(self._patterns)

    def by_type(self, pattern_type: str) -> List[ExamPattern]:
        return [p for p in self._patterns.values() if p.type == pattern_type]

    def __contains__(self, name: str) -> bool:
        return name in self._patterns

    def __len__(self) -> int:
        return len(self._patterns)

    def create_custom(self, **overrides) -> ExamPattern:
        """Copy Custom_Template with overrides (e.g. total_questions=40)."""
        template = self._patterns.get("Custom_Template", EXAM_PATTERNS["Custom_Template"])
        fields = {
            "difficulty_distribution": dict(template.difficulty_distribution),
            "subjects": dict(template.subjects),
        }
        fields.update(overrides)
        pattern = replace(template, **fields)
        logger.debug("Custom pattern %r: %d questions, %s min", pattern.name, pattern.total_questions, pattern.time_limit_minutes)
        return pattern

    def recommended(self, time_available: float, test_type: str = "", subject: Optional[str] = None) -> str:
        """Name of the pattern that best fits the time and test type asked for."""
        if test_type == "quick" or time_available < 15:
            return "Quick_Practice"
        if subject and test_type == "subject_wise":
            return "SubjectWise_Standard"
        if test_type == "chapter_wise":
            return "ChapterWise_Standard"
        if test_type == "pyq":
            return "PYQ_Standard"
        if time_available >= 90:
            return "CBT_Technician_GrI_Signal"
        return "SubjectWise_Standard"


def time_allocation(pattern: ExamPattern) -> Dict[str, float]:
    """Minutes per subject, time limit split by subject weight."""
    return {name: pattern.time_limit_minutes * quota.weight for name, quota in pattern.subjects.items()}


def expected_time(pattern: ExamPattern, minutes_per_question: Optional[float] = None) -> float:
    return pattern.total_questions * (minutes_per_question or STANDARD_MINUTES_PER_QUESTION)
