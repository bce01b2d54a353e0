import itertools
from datetime import datetime, timezone

import pytest

from mocktest.models import DIFFICULTIES, Question, ResponseSet, TestInstance, TestItem
from mocktest.storage import MemoryBlobStore

FIXED_NOW = datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)

_ids = itertools.count(1)


def _question(subject="Mathematics", difficulty="Medium", **overrides) -> Question:
    n = next(_ids)
    fields = {
        "id": f"q{n}",
        "subject": subject,
        "text": f"Sample question {n} on {subject}?",
        "options": [f"Option {k} of {n}" for k in "ABCD"],
        "correct_index": n % 4,
        "difficulty": difficulty,
    }
    fields.update(overrides)
    return Question(**fields)


@pytest.fixture
def store():
    return MemoryBlobStore()


@pytest.fixture
def make_question():
    return _question


@pytest.fixture
def make_pool():
    """Factory: `per_bucket` questions for every (subject, difficulty) pair."""

    def _pool(per_bucket=10, subjects=("Mathematics",), difficulties=DIFFICULTIES, **overrides):
        return [
            _question(subject, difficulty, **overrides)
            for subject in subjects
            for difficulty in difficulties
            for _ in range(per_bucket)
        ]

    return _pool


@pytest.fixture
def small_instance():
    """Four-question test over two subjects with known correct indexes 0..3."""
    items = (
        TestItem("a1", "Alpha", "Easy", "Alpha question one?", ("w", "x", "y", "z"), 0),
        TestItem("a2", "Alpha", "Medium", "Alpha question two?", ("w", "x", "y", "z"), 1),
        TestItem("b1", "Beta", "Hard", "Beta question one?", ("w", "x", "y", "z"), 2, explanation="Because y"),
        TestItem("b2", "Beta", "Medium", "Beta question two?", ("w", "x", "y", "z"), 3),
    )
    return TestInstance(pattern_name="Small", pattern_type="custom", items=items, id="inst-1", created_at=FIXED_NOW)


@pytest.fixture
def responses():
    def _responses(answers, time_spent=None, submitted_at=FIXED_NOW):
        return ResponseSet(answers=dict(answers), time_spent=dict(time_spent or {}), submitted_at=submitted_at)

    return _responses
