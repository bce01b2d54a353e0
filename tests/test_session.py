from dataclasses import replace
from datetime import timedelta

import pytest

from mocktest.patterns import EXAM_PATTERNS
from mocktest.session import TestSession as Session

from conftest import FIXED_NOW

# 25 questions, 22.5 minutes, review and bookmarks allowed
PRACTICE = EXAM_PATTERNS["Custom_Template"]
QUICK = EXAM_PATTERNS["Quick_Practice"]


def make_session(instance, pattern=PRACTICE):
    return Session(instance, pattern, started_at=FIXED_NOW)


class TestAnswers:
    def test_submit_answer(self, small_instance):
        session = make_session(small_instance)
        out = session.submit_answer("a1", 2, time_spent_sec=12)
        assert out == {"recorded": True, "question_id": "a1"}
        session.submit_answer("a1", 0, time_spent_sec=8)
        assert session.answers["a1"] == 0
        assert session.time_spent["a1"] == 20

    def test_unknown_question(self, small_instance):
        out = make_session(small_instance).submit_answer("nope", 0)
        assert out["recorded"] is False

    def test_instant_feedback(self, small_instance):
        session = make_session(small_instance, QUICK)
        out = session.submit_answer("b1", 1)
        assert out["is_correct"] is False
        assert out["correct_index"] == 2
        assert out["explanation"] == "Because y"
        assert session.submit_answer("b1", 2)["is_correct"] is True

    def test_clear_answer(self, small_instance):
        session = make_session(small_instance)
        session.submit_answer("a2", 1)
        assert session.clear_answer("a2") is True
        assert session.clear_answer("a2") is False

    def test_bookmarks(self, small_instance):
        session = make_session(small_instance)
        assert session.toggle_bookmark("a1") is True
        assert session.bookmarks == {"a1"}
        assert session.toggle_bookmark("a1") is False
        assert make_session(small_instance, QUICK).toggle_bookmark("a1") is False


class TestNavigation:
    def test_next_and_previous(self, small_instance):
        session = make_session(small_instance)
        assert session.get_current_question().question_id == "a1"
        assert session.next_question()
        assert session.next_question()
        assert session.previous_question()
        assert session.get_current_question().question_id == "a2"
        assert not session.go_to(4)

    def test_no_going_back_without_review(self, small_instance):
        session = make_session(small_instance, QUICK)
        assert session.next_question()
        assert session.previous_question() is False
        assert session.current_question_idx == 1


class TestTiming:
    def test_remaining_and_expiry(self, small_instance):
        session = make_session(small_instance)
        assert session.time_remaining(FIXED_NOW + timedelta(minutes=10)) == pytest.approx(12.5 * 60)
        assert not session.is_expired(FIXED_NOW + timedelta(minutes=22))
        assert session.is_expired(FIXED_NOW + timedelta(minutes=23))
        assert session.time_remaining(FIXED_NOW + timedelta(hours=2)) == 0

    def test_warning_window(self, small_instance):
        pattern = replace(PRACTICE, warning_time_minutes=5)
        session = make_session(small_instance, pattern)
        assert not session.warning_due(FIXED_NOW + timedelta(minutes=10))
        assert session.warning_due(FIXED_NOW + timedelta(minutes=20))
        assert not session.warning_due(FIXED_NOW + timedelta(minutes=30))
        assert not make_session(small_instance).warning_due(FIXED_NOW + timedelta(minutes=20))

    def test_summary(self, small_instance):
        session = make_session(small_instance)
        session.submit_answer("a1", 0)
        session.submit_answer("a2", None)
        session.toggle_bookmark("b2")
        summary = session.get_session_summary(FIXED_NOW + timedelta(seconds=90))
        assert summary["questions_answered"] == 1
        assert summary["questions_skipped"] == 3
        assert summary["bookmarked"] == 1
        assert summary["time_elapsed_sec"] == 90


class TestEndSession:
    def test_completed(self, small_instance):
        session = make_session(small_instance)
        session.submit_answer("a1", 0, time_spent_sec=5)
        responses = session.end_session(FIXED_NOW + timedelta(minutes=5))
        assert session.status == "completed"
        assert responses.answers == {"a1": 0, "a2": None, "b1": None, "b2": None}
        assert responses.total_time == 5
        assert responses.submitted_at == FIXED_NOW + timedelta(minutes=5)

    def test_on_screen_time_recorded_without_explicit_times(self, small_instance):
        session = make_session(small_instance, QUICK)
        session.submit_answer("a1", 0)
        session.next_question(now=FIXED_NOW + timedelta(seconds=30))
        session.submit_answer("a2", 1)
        session.next_question(now=FIXED_NOW + timedelta(seconds=90))
        session.submit_answer("b1", 2)
        responses = session.end_session(FIXED_NOW + timedelta(minutes=8))
        assert responses.time_spent == {"a1": 30, "a2": 60, "b1": 390}
        assert responses.total_time == 480

    def test_explicit_time_overrides_on_screen_time(self, small_instance):
        session = make_session(small_instance)
        session.submit_answer("a1", 0, time_spent_sec=12)
        session.next_question(now=FIXED_NOW + timedelta(seconds=100))
        responses = session.end_session(FIXED_NOW + timedelta(seconds=150))
        assert responses.time_spent == {"a1": 12, "a2": 50}

    def test_auto_submitted_after_time_limit(self, small_instance):
        session = make_session(small_instance)
        session.end_session(FIXED_NOW + timedelta(minutes=30))
        assert session.status == "auto_submitted"

    def test_closed_session_rejects_answers(self, small_instance):
        session = make_session(small_instance)
        session.end_session(FIXED_NOW)
        with pytest.raises(RuntimeError):
            session.submit_answer("a1", 0)
