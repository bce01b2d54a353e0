"""
Test Session: answer recording, navigation and timing for one generated test.
Scoring happens after the session ends (see mocktest.scoring).
"""
import logging
from datetime import datetime
from typing import Dict, Optional, Set
from uuid import uuid4

from mocktest.models import ExamPattern, ResponseSet, TestInstance, TestItem, utcnow

logger = logging.getLogger(__name__)


class TestSession:
    """Manages a single test-taking session over a TestInstance."""

    __test__ = False

    def __init__(self, instance: TestInstance, pattern: ExamPattern, started_at: Optional[datetime] = None):
        """
        Args:
            instance: Generated test (from QuestionSelector.select)
            pattern: Pattern the test was generated from (time limit, review/bookmark flags)
            started_at: Start time; defaults to now (UTC)
        """
        self.session_id = uuid4()
        self.instance = instance
        self.pattern = pattern

        self.answers: Dict[str, Optional[int]] = {}  # {question_id: choice_idx or None}
        self.time_spent: Dict[str, float] = {}
        # Explicit times from submit_answer win over measured on-screen time
        self.view_time: Dict[str, float] = {}
        self.bookmarks: Set[str] = set()

        self.started_at = started_at or utcnow()
        self.ended_at: Optional[datetime] = None
        self.status = "in_progress"

        # Track current position in exam
        self.current_question_idx = 0
        self._shown_at: Optional[datetime] = None

    @property
    def time_limit_seconds(self) -> float:
        return self.pattern.time_limit_minutes * 60

    def _item(self, question_id: str) -> Optional[TestItem]:
        return self.instance.item(question_id)

    def submit_answer(self, question_id: str, user_choice_idx: Optional[int], time_spent_sec: float = 0) -> Dict:
        """
        Record an answer (None = skip). Explicit time spent accumulates across revisits;
        without it the measured on-screen time is used (see go_to / end_session).

        Returns:
            {recorded, question_id} plus {is_correct, correct_index, explanation}
            when the pattern gives instant feedback
        """
        if self.status != "in_progress":
            raise RuntimeError(f"Session {self.session_id} is {self.status}; answers are closed")
        item = self._item(question_id)
        if not item:
            logger.error(f"Question {question_id} not found in session")
            return {"recorded": False, "error": "Question not found"}

        self.answers[question_id] = user_choice_idx
        if time_spent_sec:
            self.time_spent[question_id] = self.time_spent.get(question_id, 0) + time_spent_sec

        out = {"recorded": True, "question_id": question_id}
        if self.pattern.instant_feedback and user_choice_idx is not None:
            out.update({
                "is_correct": user_choice_idx == item.correct_index,
                "correct_index": item.correct_index,
                "explanation": item.explanation,
            })
        logger.debug(f"Answer recorded: Q={question_id[:8]}, choice={user_choice_idx}")
        return out

    def clear_answer(self, question_id: str) -> bool:
        return self.answers.pop(question_id, None) is not None

    def toggle_bookmark(self, question_id: str) -> bool:
        """Flip the bookmark on a question. Returns the new state (always False if not allowed)."""
        if not self.pattern.allow_bookmark or not self._item(question_id):
            return False
        if question_id in self.bookmarks:
            self.bookmarks.discard(question_id)
            return False
        self.bookmarks.add(question_id)
        return True

    # ============= Navigation =============

    def get_current_question(self) -> Optional[TestItem]:
        if self.current_question_idx >= len(self.instance.items):
            return None
        return self.instance.items[self.current_question_idx]

    def _credit_view(self, now: datetime):
        """Add the time the current question has been on screen to view_time."""
        item = self.get_current_question()
        shown = self._shown_at or self.started_at
        if item is not None:
            elapsed = max(0.0, (now - shown).total_seconds())
            self.view_time[item.question_id] = self.view_time.get(item.question_id, 0) + elapsed
        self._shown_at = now

    def go_to(self, index: int, now: Optional[datetime] = None) -> bool:
        if not 0 <= index < len(self.instance.items):
            return False
        if index < self.current_question_idx and not self.pattern.allow_review:
            return False
        self._credit_view(now or utcnow())
        self.current_question_idx = index
        return True

    def next_question(self, now: Optional[datetime] = None) -> bool:
        return self.go_to(self.current_question_idx + 1, now)

    def previous_question(self, now: Optional[datetime] = None) -> bool:
        return self.go_to(self.current_question_idx - 1, now)

    # ============= Timing =============

    def time_elapsed(self, now: Optional[datetime] = None) -> float:
        return ((now or utcnow()) - self.started_at).total_seconds()

    def time_remaining(self, now: Optional[datetime] = None) -> float:
        return max(0.0, self.time_limit_seconds - self.time_elapsed(now))

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.time_remaining(now) <= 0

    def warning_due(self, now: Optional[datetime] = None) -> bool:
        if not self.pattern.warning_time_minutes:
            return False
        return 0 < self.time_remaining(now) <= self.pattern.warning_time_minutes * 60

    def get_session_summary(self, now: Optional[datetime] = None) -> Dict:
        """Real-time summary for display during exam."""
        answered = sum(1 for a in self.answers.values() if a is not None)
        n = len(self.instance.items)
        return {
            "session_id": str(self.session_id),
            "current_question": self.current_question_idx + 1,
            "total_questions": n,
            "questions_answered": answered,
            "questions_skipped": n - answered,
            "bookmarked": len(self.bookmarks),
            "time_elapsed_sec": self.time_elapsed(now),
            "time_remaining_sec": self.time_remaining(now),
        }

    def end_session(self, now: Optional[datetime] = None) -> ResponseSet:
        """Close the session and hand back the responses for scoring."""
        self.ended_at = now or utcnow()
        self._credit_view(self.ended_at)
        expired = self.is_expired(self.ended_at)
        self.status = "auto_submitted" if expired and self.pattern.auto_submit else "completed"
        responses = ResponseSet(
            answers={qid: self.answers.get(qid) for qid in self.instance.question_ids},
            time_spent={
                qid: self.time_spent.get(qid, self.view_time.get(qid, 0.0))
                for qid in self.instance.question_ids
                if qid in self.time_spent or qid in self.view_time
            },
            submitted_at=self.ended_at,
        )
        logger.info(f"Session {self.session_id} {self.status}: {len(self.answers)} answers recorded")
        return responses
