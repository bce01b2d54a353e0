"""
Application wiring: one MockTestService built at startup and passed to the UI.

generate_test -> TestSession (UI collects answers) -> finish/submit -> TestResult,
which is appended to the result history and folded into analytics.
"""
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Union

from mocktest.analytics import AnalyticsAggregator
from mocktest.config import Settings
from mocktest.events import TEST_COMPLETED, EventBus
from mocktest.models import ExamPattern, ResponseSet, TestInstance, TestResult
from mocktest.patterns import PatternCatalog, validate_pattern
from mocktest.question_bank import QuestionBank
from mocktest.scoring import ScoringEngine
from mocktest.selector import QuestionSelector
from mocktest.session import TestSession
from mocktest.storage import RESULTS_KEY, BlobStore, build_store, load_json, remove, save_json

logger = logging.getLogger(__name__)


class ResultHistory:
    """Completed test results, newest last, persisted under RESULTS_KEY."""

    def __init__(self, store: Optional[BlobStore] = None, limit: int = 1000):
        self.store = store
        self.limit = limit
        self._rows: List[Dict] = []

    def load(self):
        rows = load_json(self.store, RESULTS_KEY, []) if self.store is not None else []
        self._rows = [r for r in rows if isinstance(r, dict)] if isinstance(rows, list) else []

    def append(self, result: TestResult):
        self._rows.append(result.to_dict())
        if len(self._rows) > self.limit:
            del self._rows[: len(self._rows) - self.limit]
        if self.store is not None:
            save_json(self.store, RESULTS_KEY, self._rows)

    def all(self) -> List[TestResult]:
        return [TestResult.from_dict(r) for r in self._rows]

    def get(self, result_id: str) -> Optional[TestResult]:
        row = next((r for r in self._rows if r.get("id") == result_id), None)
        return TestResult.from_dict(row) if row else None

    def clear(self):
        self._rows = []
        if self.store is not None:
            remove(self.store, RESULTS_KEY)

    def __len__(self) -> int:
        return len(self._rows)


class MockTestService:
    def __init__(
        self,
        store: Optional[BlobStore] = None,
        settings: Optional[Settings] = None,
        catalog: Optional[PatternCatalog] = None,
        events: Optional[EventBus] = None,
    ):
        settings = settings or Settings()
        self.settings = settings
        self.store = store
        self.catalog = catalog or PatternCatalog()
        self.events = events or EventBus()
        self.bank = QuestionBank(store)
        self.selector = QuestionSelector()
        self.scorer = ScoringEngine()
        self.analytics = AnalyticsAggregator(
            store,
            self.events,
            history_limit=settings.history_limit,
            autosave_seconds=settings.autosave_seconds,
        )
        self.results = ResultHistory(store, limit=settings.history_limit)

    def load(self):
        self.bank.load()
        self.results.load()
        self.analytics.load()

    def pattern(self, name: str) -> ExamPattern:
        pattern = self.catalog.get(name)
        if pattern is None:
            raise KeyError(f"Unknown exam pattern: {name}")
        return pattern

    def generate_test(
        self,
        pattern: Union[str, ExamPattern],
        seed: Optional[int] = None,
        *,
        subject: Optional[str] = None,
        chapters: Optional[Iterable[str]] = None,
        stats: Optional[Mapping[str, Mapping]] = None,
    ) -> TestInstance:
        """
        Validate the pattern, then select questions from the bank.

        Raises:
            PatternValidationError: pattern arithmetic is inconsistent
            InsufficientQuestions: the bank cannot meet a quota
        """
        if isinstance(pattern, str):
            pattern = self.pattern(pattern)
        validate_pattern(pattern).raise_for_errors(pattern.name)
        return self.selector.select(
            self.bank.get_questions(), pattern, seed, subject=subject, chapters=chapters, stats=stats
        )

    def start_session(self, instance: TestInstance, pattern: ExamPattern) -> TestSession:
        return TestSession(instance, pattern)

    def submit(self, instance: TestInstance, responses: ResponseSet, pattern: ExamPattern) -> TestResult:
        """Score, record and fold into analytics; notifies TEST_COMPLETED subscribers."""
        result = self.scorer.score(instance, responses, pattern)
        self.results.append(result)
        self.analytics.ingest(result)
        self.analytics.save()
        self.events.emit(TEST_COMPLETED, result)
        return result

    def finish(self, session: TestSession, now=None) -> TestResult:
        responses = session.end_session(now)
        return self.submit(session.instance, responses, session.pattern)


def build_service(settings: Optional[Settings] = None) -> MockTestService:
    """Construct and load the service from environment settings."""
    settings = settings or Settings.from_env()
    service = MockTestService(build_store(settings), settings=settings)
    service.load()
    logger.info(
        f"Mock test service ready ({settings.storage} storage): "
        f"{len(service.bank)} questions, {len(service.results)} results"
    )
    return service
