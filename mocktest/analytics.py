"""
Analytics aggregator: folds completed test results into running statistics.

State (persisted as one blob):
    test_history        ordered results, bounded by history_limit
    subject_performance subject -> cumulative stats
    time_analytics      result id -> per-test time stats
    progress_tracking   {date, score, type, trend}, most recent PROGRESS_LIMIT entries
"""
import copy
import csv
import io
import json
import logging
import time
from statistics import mean
from typing import Callable, Dict, List, Optional, Union

from mocktest.events import ANALYTICS_GENERATED, EventBus
from mocktest.models import TestResult
from mocktest.scoring import TIMING_CATEGORIES
from mocktest.storage import ANALYTICS_KEY, BlobStore, load_json, remove, save_json

logger = logging.getLogger(__name__)

PROGRESS_LIMIT = 50
TREND_WINDOW = 5
TREND_THRESHOLD = 5.0
RECENT_WINDOW = 10
WEAK_SUBJECT_SCORE = 60
STRONG_SUBJECT_SCORE = 80

CSV_HEADER = ["Date", "Type", "Score", "Total Questions", "Correct Answers", "Time Spent"]


def default_state() -> Dict:
    return {
        "test_history": [],
        "subject_performance": {},
        "time_analytics": {},
        "progress_tracking": [],
    }


def classify_trend(score: float, previous: List[Dict]) -> str:
    """Compare a score with the mean of the last TREND_WINDOW progress entries."""
    if len(previous) < 2:
        return "stable"
    window = previous[-TREND_WINDOW:]
    diff = score - mean(p["score"] for p in window)
    if diff > TREND_THRESHOLD:
        return "improving"
    if diff < -TREND_THRESHOLD:
        return "declining"
    return "stable"


class AnalyticsAggregator:
    """Sole owner (and mutator) of the analytics state."""

    def __init__(
        self,
        store: Optional[BlobStore] = None,
        events: Optional[EventBus] = None,
        history_limit: int = 1000,
        autosave_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.events = events
        self.history_limit = history_limit
        self.autosave_seconds = autosave_seconds
        self.clock = clock
        self.state = default_state()
        self.dirty = False
        self.last_saved = clock()

    # ============= Persistence =============

    def load(self):
        """Merge persisted fields over defaults; bad or missing fields stay empty."""
        self.state = default_state()
        if self.store is None:
            return
        data = load_json(self.store, ANALYTICS_KEY, {})
        if not isinstance(data, dict):
            logger.warning("Analytics blob is not an object, starting empty")
            return
        for key, empty in default_state().items():
            value = data.get(key)
            if isinstance(value, type(empty)):
                self.state[key] = value
        logger.info(f"Loaded analytics: {len(self.state['test_history'])} tests")

    def save(self) -> bool:
        if self.store is None:
            return False
        ok = save_json(self.store, ANALYTICS_KEY, self.state)
        if ok:
            self.dirty = False
            self.last_saved = self.clock()
        return ok

    def maybe_autosave(self, now: Optional[float] = None) -> bool:
        """Save when there are unsaved changes and the autosave interval has passed."""
        now = self.clock() if now is None else now
        if not self.dirty or now - self.last_saved < self.autosave_seconds:
            return False
        return self.save()

    # ============= Ingest =============

    def ingest(self, result: Union[TestResult, Dict]) -> Dict:
        """Fold one result into the state. Returns the progress entry added."""
        r = result.to_dict() if isinstance(result, TestResult) else dict(result)
        history = self.state["test_history"]
        history.append(r)
        if len(history) > self.history_limit:
            del history[: len(history) - self.history_limit]

        for subject, stats in (r.get("subject_breakdown") or {}).items():
            self._update_subject(subject, stats, r.get("date"))

        total = r.get("total_questions") or 0
        spent = r.get("time_spent_seconds") or 0
        self.state["time_analytics"][r["id"]] = {
            "total_time": spent,
            "average_time_per_question": spent / total if total else 0,
            "questions": total,
            "date": r.get("date"),
            "timing_distribution": dict(r.get("timing_distribution") or {}),
            "subject_time": copy.deepcopy(r.get("subject_time") or {}),
        }
        kept = {h.get("id") for h in history}
        for stale in [rid for rid in self.state["time_analytics"] if rid not in kept]:
            del self.state["time_analytics"][stale]

        progress = self.state["progress_tracking"]
        entry = {
            "date": r.get("date"),
            "score": r.get("score", 0),
            "type": r.get("type"),
            "trend": classify_trend(r.get("score", 0), progress),
        }
        progress.append(entry)
        if len(progress) > PROGRESS_LIMIT:
            del progress[: len(progress) - PROGRESS_LIMIT]

        self.dirty = True
        logger.debug("Ingested result %s (score=%s, trend=%s)", r["id"], entry["score"], entry["trend"])
        return entry

    def _update_subject(self, subject: str, stats: Dict, date):
        perf = self.state["subject_performance"].setdefault(
            subject,
            {
                "total_tests": 0,
                "total_questions": 0,
                "correct_answers": 0,
                "average_score": 0.0,
                "best_score": 0.0,
                "last_test_date": None,
            },
        )
        asked = stats.get("total", 0)
        correct = stats.get("correct", 0)
        perf["total_tests"] += 1
        perf["total_questions"] += asked
        perf["correct_answers"] += correct
        if perf["total_questions"]:
            perf["average_score"] = perf["correct_answers"] / perf["total_questions"] * 100
        this_test = correct / asked * 100 if asked else 0.0
        perf["best_score"] = max(perf["best_score"], this_test)
        perf["last_test_date"] = date

    # ============= Reports =============

    def report(self) -> Dict:
        report = self._build_report()
        if self.events is not None:
            self.events.emit(ANALYTICS_GENERATED, report)
        return report

    def _build_report(self) -> Dict:
        progress = self.progress_analysis()
        return {
            "overview": self.overview(),
            "subject_analysis": copy.deepcopy(self.state["subject_performance"]),
            "time_analysis": self.time_analysis(),
            "progress_analysis": progress,
            "recommendations": self.recommendations(progress["current_trend"] if progress else None),
        }

    def overview(self) -> Optional[Dict]:
        history = self.state["test_history"]
        if not history:
            return None
        scores = [h.get("score", 0) for h in history]
        return {
            "total_tests": len(history),
            "average_score": mean(scores),
            "best_score": max(scores),
            "total_time_spent": sum(h.get("time_spent_seconds") or 0 for h in history),
            "last_test_date": history[-1].get("date"),
        }

    def time_analysis(self) -> Optional[Dict]:
        times = list(self.state["time_analytics"].values())
        if not times:
            return None
        timing = {c: 0 for c in TIMING_CATEGORIES}
        by_subject: Dict[str, Dict[str, float]] = {}
        for t in times:
            for category, count in (t.get("timing_distribution") or {}).items():
                timing[category] = timing.get(category, 0) + count
            for subject, s in (t.get("subject_time") or {}).items():
                agg = by_subject.setdefault(subject, {"total_time": 0.0, "question_count": 0, "average_time": 0.0})
                agg["total_time"] += s.get("total_time", 0)
                agg["question_count"] += s.get("question_count", 0)
        for agg in by_subject.values():
            agg["average_time"] = agg["total_time"] / agg["question_count"] if agg["question_count"] else 0.0
        return {
            "average_time_per_question": mean(t["average_time_per_question"] for t in times),
            "total_time_spent": sum(t["total_time"] for t in times),
            "tests_analyzed": len(times),
            "timing_distribution": timing,
            "subject_time": by_subject,
        }

    def progress_analysis(self) -> Optional[Dict]:
        progress = self.state["progress_tracking"]
        if not progress:
            return None
        recent = progress[-RECENT_WINDOW:]
        older = progress[:-RECENT_WINDOW]
        recent_avg = mean(p["score"] for p in recent)
        improvement = recent_avg - mean(p["score"] for p in older) if older else 0.0
        return {
            "current_trend": progress[-1]["trend"],
            "improvement": improvement,
            "recent_average": recent_avg,
            "total_progress_points": len(progress),
        }

    def recommendations(self, current_trend: Optional[str] = None) -> List[Dict]:
        recs = []
        for subject, perf in self.state["subject_performance"].items():
            avg = perf.get("average_score", 0)
            if avg < WEAK_SUBJECT_SCORE:
                recs.append({
                    "type": "improvement",
                    "priority": "high",
                    "subject": subject,
                    "message": f"Focus on improving {subject} - current average: {avg:.1f}%",
                })
            elif avg > STRONG_SUBJECT_SCORE:
                recs.append({
                    "type": "strength",
                    "priority": "low",
                    "subject": subject,
                    "message": f"Strong in {subject} ({avg:.1f}%) - keep practicing to maintain it",
                })
        if current_trend == "declining":
            recs.append({
                "type": "warning",
                "priority": "high",
                "subject": None,
                "message": "Recent scores are declining - review weak subjects and take more practice tests",
            })
        return recs

    def export(self, fmt: str = "json") -> str:
        fmt = fmt.lower()
        if fmt == "json":
            return json.dumps(self._build_report(), indent=2, default=str)
        if fmt == "csv":
            buf = io.StringIO()
            writer = csv.writer(buf, lineterminator="\n")
            writer.writerow(CSV_HEADER)
            for h in self.state["test_history"]:
                writer.writerow([
                    h.get("date"),
                    h.get("type"),
                    h.get("score"),
                    h.get("total_questions"),
                    h.get("correct_answers"),
                    h.get("time_spent_seconds"),
                ])
            return buf.getvalue().rstrip("\n")
        raise ValueError(f"Unsupported export format: {fmt!r} (use 'json' or 'csv')")

    def clear(self):
        self.state = default_state()
        self.dirty = False
        if self.store is not None:
            remove(self.store, ANALYTICS_KEY)
        logger.info("Analytics cleared")
