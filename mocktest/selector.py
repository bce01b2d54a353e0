"""
Question Selector: builds a test instance from a question pool and an exam pattern.

Subject quotas are split into difficulty buckets by largest-remainder rounding, so
bucket counts always add up to the subject quota. A short bucket borrows from the
nearest difficulty of the same subject before the selection fails.

Draw order inside a bucket is uniform random by default; with per-question stats
it is weighted toward weak areas: priority = (fail_count x 2) + days_since_last_practiced.
"""
import logging
import math
import random
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from mocktest.errors import InsufficientQuestions
from mocktest.models import (
    DIFFICULTIES,
    ExamPattern,
    Question,
    TestInstance,
    TestItem,
    parse_datetime,
    utcnow,
)

logger = logging.getLogger(__name__)

# Nearest difficulty first
DEFAULT_BORROW_ORDER: Dict[str, Tuple[str, ...]] = {
    "Easy": ("Medium", "Hard"),
    "Medium": ("Easy", "Hard"),
    "Hard": ("Medium", "Easy"),
}


def largest_remainder(total: int, fractions: Mapping[str, float], tie_order: Sequence[str] = DIFFICULTIES) -> Dict[str, int]:
    """
    Split `total` by `fractions` so the integer counts sum to `total` exactly.

    Fractions are normalized to sum to 1 first (validation allows 1.0 +/- 0.01).
    Each key gets floor(total x fraction); the leftover units go to the keys with the
    largest fractional parts. Equal remainders are broken by `tie_order`.
    e.g. 15 by {Easy: 0.4, Medium: 0.45, Hard: 0.15} -> Easy=6, Medium=7, Hard=2.
    """
    if not fractions:
        return {}
    scale = sum(fractions.values())
    if scale <= 0:
        return {k: 0 for k in fractions}
    # Round away float noise (15 * 0.4 == 6.000000000000001)
    raw = {k: round(total * f / scale, 9) for k, f in fractions.items()}
    counts = {k: int(math.floor(v)) for k, v in raw.items()}
    leftover = total - sum(counts.values())

    def tie_rank(key):
        return tie_order.index(key) if key in tie_order else len(tie_order)

    order = sorted(raw, key=lambda k: (-(raw[k] - counts[k]), tie_rank(k)))
    for i in range(max(0, leftover)):
        counts[order[i % len(order)]] += 1
    return counts


def _priority(stat: Mapping, now: datetime) -> float:
    """(fail_count x 2) + days since last practice; never-practiced counts as 999 days."""
    fail_count = stat.get("fail_count", 0) or 0
    last = parse_datetime(stat.get("last_attempted_at"))
    days_since = 999
    if last:
        if last.tzinfo is None:
            last = last.replace(tzinfo=now.tzinfo)
        days_since = max(0, (now - last).days)
    return fail_count * 2.0 + days_since * 1.0


def _interleave_chapters(questions: List[Question]) -> List[Question]:
    """Round-robin across chapters, keeping each chapter's internal order."""
    by_chapter: Dict[str, List[Question]] = {}
    for q in questions:
        by_chapter.setdefault(q.chapter or "", []).append(q)
    out = []
    queues = list(by_chapter.values())
    while queues:
        for queue in queues:
            out.append(queue.pop(0))
        queues = [q for q in queues if q]
    return out


class QuestionSelector:
    """Stateless apart from the clock; safe to share across sessions."""

    def __init__(
        self,
        borrow_order: Optional[Mapping[str, Sequence[str]]] = None,
        tie_order: Sequence[str] = DIFFICULTIES,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.borrow_order = {k: tuple(v) for k, v in (borrow_order or DEFAULT_BORROW_ORDER).items()}
        self.tie_order = tuple(tie_order)
        self.clock = clock

    def select(
        self,
        pool: Iterable[Union[Question, Dict]],
        pattern: ExamPattern,
        seed: Optional[int] = None,
        *,
        subject: Optional[str] = None,
        chapters: Optional[Iterable[str]] = None,
        stats: Optional[Mapping[str, Mapping]] = None,
    ) -> TestInstance:
        """
        Pick `pattern.total_questions` questions from `pool`.

        Args:
            pool: Questions (or question dicts) to choose from
            pattern: Exam pattern supplying quotas, difficulty mix and shuffle flags
            seed: RNG seed; the same seed, pool and pattern give the same test
            subject: Restrict to one subject (subject-wise practice)
            chapters: Restrict to these chapters (chapter-wise practice)
            stats: question_id -> {fail_count, last_attempted_at} for weak-area weighting

        Raises:
            InsufficientQuestions: a subject (or the whole pool) cannot meet its quota
        """
        rng = random.Random(seed)
        questions = self._eligible(pool, pattern, subject, chapters)

        selected: List[Question] = []
        if pattern.subjects:
            for name, quota in pattern.subjects.items():
                candidates = [q for q in questions if q.subject == name]
                selected.extend(self._fill(name, candidates, quota.question_count, pattern, rng, stats))
        else:
            label = subject or "all subjects"
            selected = self._fill(label, questions, pattern.total_questions, pattern, rng, stats)

        if pattern.shuffle_questions:
            rng.shuffle(selected)  # Fisher-Yates

        items = tuple(self._present(q, pattern, rng) for q in selected)
        instance = TestInstance(
            pattern_name=pattern.name,
            pattern_type=pattern.type,
            items=items,
            seed=seed,
        )
        logger.info(f"Test {instance.id}: selected {len(items)} questions for {pattern.name!r}")
        return instance

    def _eligible(self, pool, pattern: ExamPattern, subject, chapters) -> List[Question]:
        seen = set()
        out = []
        wanted_chapters = set(chapters) if chapters else None
        for raw in pool:
            q = raw if isinstance(raw, Question) else Question.from_dict(raw)
            if q.id in seen:
                continue
            seen.add(q.id)
            if pattern.type == "pyq":
                if not q.is_pyq:
                    continue
                if pattern.year_range:
                    lo, hi = pattern.year_range
                    if q.year is None or not (lo <= q.year <= hi):
                        continue
            if subject and q.subject != subject:
                continue
            if wanted_chapters is not None and q.chapter not in wanted_chapters:
                continue
            out.append(q)
        logger.debug("Eligible questions for %r: %d", pattern.name, len(out))
        return out

    def _fill(self, label: str, candidates: List[Question], quota: int, pattern: ExamPattern, rng, stats) -> List[Question]:
        if len(candidates) < quota:
            logger.warning(f"Only {len(candidates)} questions available for {label}, need {quota}")
            raise InsufficientQuestions(label, quota, len(candidates))
        if quota == 0:
            return []

        if not pattern.difficulty_distribution:
            return self._rank(candidates, pattern, rng, stats)[:quota]

        targets = largest_remainder(quota, pattern.difficulty_distribution, self.tie_order)
        buckets: Dict[str, List[Question]] = {}
        for q in candidates:
            buckets.setdefault(q.difficulty, []).append(q)
        # Sorted keys keep bucket ranking (and RNG consumption) independent of pool order
        for difficulty in sorted(buckets):
            buckets[difficulty] = self._rank(buckets[difficulty], pattern, rng, stats)

        picked: Dict[str, List[Question]] = {}
        for difficulty, target in targets.items():
            bucket = buckets.get(difficulty, [])
            picked[difficulty] = bucket[:target]
            buckets[difficulty] = bucket[target:]

        for difficulty, target in targets.items():
            deficit = target - len(picked[difficulty])
            if deficit <= 0:
                continue
            donors = list(self.borrow_order.get(difficulty, ())) + sorted(
                d for d in buckets if d != difficulty and d not in self.borrow_order.get(difficulty, ())
            )
            for donor in donors:
                if deficit <= 0:
                    break
                spare = buckets.get(donor, [])
                taken, buckets[donor] = spare[:deficit], spare[deficit:]
                if taken:
                    logger.debug("%s: borrowed %d %s question(s) for %s", label, len(taken), donor, difficulty)
                picked[difficulty].extend(taken)
                deficit -= len(taken)

        out = [q for difficulty in targets for q in picked[difficulty]]
        if len(out) < quota:
            raise InsufficientQuestions(label, quota, len(out))
        return out

    def _rank(self, questions: List[Question], pattern: ExamPattern, rng, stats) -> List[Question]:
        """Preference order for drawing without replacement."""
        if stats:
            now = self.clock()
            keyed = []
            for q in questions:
                weight = max(0.1, _priority(stats.get(q.id, {}), now))  # Min weight 0.1
                # Efraimidis-Spirakis: top-k of u^(1/w) is a weighted sample without replacement
                keyed.append((rng.random() ** (1.0 / weight), q))
            ranked = [q for _, q in sorted(keyed, key=lambda kq: kq[0], reverse=True)]
        elif pattern.prioritize_recent:
            tiebreak = {q.id: rng.random() for q in questions}
            ranked = sorted(questions, key=lambda q: (-(q.year or 0), tiebreak[q.id]))
        else:
            ranked = rng.sample(questions, len(questions))

        if pattern.require_all_chapters:
            ranked = _interleave_chapters(ranked)
        return ranked

    def _present(self, q: Question, pattern: ExamPattern, rng) -> TestItem:
        options = list(q.options)
        correct = q.correct_index
        if pattern.shuffle_options and pattern.type != "pyq" and len(options) > 1:
            order = list(range(len(options)))
            rng.shuffle(order)
            options = [q.options[i] for i in order]
            correct = order.index(q.correct_index)
        return TestItem(
            question_id=q.id,
            subject=q.subject,
            difficulty=q.difficulty,
            text=q.text,
            options=tuple(options),
            correct_index=correct,
            chapter=q.chapter,
            explanation=q.explanation,
        )
