"""
Domain records for the mock test engine.

Questions and results travel as dicts in storage (JSON blobs); these dataclasses
are the in-memory shapes. `to_dict` / `from_dict` convert between the two.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

DIFFICULTIES = ("Easy", "Medium", "Hard")
PATTERN_TYPES = ("full_mock", "subject_wise", "chapter_wise", "custom", "pyq", "quick_test")
DEFAULT_SUBJECT = "General"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value) -> Optional[datetime]:
    """Accept datetime, ISO string (with trailing Z) or None."""
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass
class Question:
    id: str
    subject: str
    text: str
    options: List[str]
    correct_index: int
    difficulty: str = "Medium"
    chapter: Optional[str] = None
    is_pyq: bool = False
    year: Optional[int] = None
    source: Optional[str] = None
    explanation: str = ""
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict:
        d = asdict(self)
        d["created_at"] = self.created_at.isoformat()
        return d

    @classmethod
    def from_dict(cls, raw: Dict) -> "Question":
        created = parse_datetime(raw.get("created_at")) or utcnow()
        year = raw.get("year")
        return cls(
            id=str(raw.get("id") or uuid4()),
            subject=raw.get("subject") or DEFAULT_SUBJECT,
            text=raw.get("text") or raw.get("question_text") or "",
            options=list(raw.get("options") or []),
            correct_index=int(raw.get("correct_index", raw.get("correct_answer_idx", 0))),
            difficulty=raw.get("difficulty") or "Medium",
            chapter=raw.get("chapter") or None,
            is_pyq=bool(raw.get("is_pyq", False)),
            year=int(year) if year not in (None, "") else None,
            source=raw.get("source") or None,
            explanation=raw.get("explanation") or "",
            created_at=created,
        )


@dataclass(frozen=True)
class SubjectQuota:
    question_count: int
    weight: float
    time_allocation: float = 0.0
    description: str = ""


@dataclass(frozen=True)
class MarkingScheme:
    positive: float = 1.0
    # Stored as a positive magnitude; scoring subtracts it.
    negative: float = 0.33
    unanswered: float = 0.0


@dataclass(frozen=True)
class ExamPattern:
    name: str
    type: str
    total_questions: int
    time_limit_minutes: float
    difficulty_distribution: Dict[str, float] = field(default_factory=dict)
    marking_scheme: MarkingScheme = field(default_factory=MarkingScheme)
    subjects: Dict[str, SubjectQuota] = field(default_factory=dict)
    passing_percentage: float = 40.0
    description: str = ""
    shuffle_questions: bool = True
    shuffle_options: bool = True
    allow_review: bool = True
    allow_bookmark: bool = True
    require_all_chapters: bool = False
    year_range: Optional[Tuple[int, int]] = None
    prioritize_recent: bool = False
    warning_time_minutes: Optional[float] = None
    auto_submit: bool = True
    instant_feedback: bool = False
    customizable: bool = False


@dataclass(frozen=True)
class TestItem:
    """One question as presented in a generated test (options possibly reordered)."""
    __test__ = False

    question_id: str
    subject: str
    difficulty: str
    text: str
    options: Tuple[str, ...]
    correct_index: int
    chapter: Optional[str] = None
    explanation: str = ""


@dataclass(frozen=True)
class TestInstance:
    __test__ = False

    pattern_name: str
    pattern_type: str
    items: Tuple[TestItem, ...]
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utcnow)
    seed: Optional[int] = None

    @property
    def question_ids(self) -> List[str]:
        return [item.question_id for item in self.items]

    def item(self, question_id: str) -> Optional[TestItem]:
        return next((i for i in self.items if i.question_id == question_id), None)


@dataclass
class ResponseSet:
    # question_id -> selected option index, or None when unanswered
    answers: Dict[str, Optional[int]] = field(default_factory=dict)
    time_spent: Dict[str, float] = field(default_factory=dict)
    submitted_at: Optional[datetime] = None

    @property
    def total_time(self) -> float:
        return float(sum(self.time_spent.values()))


@dataclass(frozen=True)
class TestResult:
    __test__ = False

    id: str
    date: str
    type: str
    score: float
    total_questions: int
    correct_answers: int
    time_spent_seconds: float
    subject_breakdown: Dict[str, Dict[str, int]]
    pattern_name: str = ""
    raw_score: float = 0.0
    incorrect_answers: int = 0
    unanswered: int = 0
    passed: bool = False
    grade: str = ""
    difficulty_breakdown: Dict[str, Dict[str, float]] = field(default_factory=dict)
    # fast / optimal / slow / too_slow question counts
    timing_distribution: Dict[str, int] = field(default_factory=dict)
    # subject -> {total_time, question_count, average_time}
    subject_time: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict) -> "TestResult":
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in raw.items() if k in known})
