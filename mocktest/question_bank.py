"""Question bank: CRUD over the question pool, persisted as one blob."""
import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from mocktest.errors import QuestionValidationError
from mocktest.models import DEFAULT_SUBJECT, DIFFICULTIES, Question
from mocktest.storage import QUESTIONS_KEY, BlobStore, load_json, remove, save_json

logger = logging.getLogger(__name__)

MIN_QUESTION_LENGTH = 10
MAX_QUESTION_LENGTH = 1000
MIN_OPTIONS = 2
MAX_OPTIONS = 10
MAX_OPTION_LENGTH = 200


def normalize_question(data: Dict) -> Dict:
    """Trim text fields and fill subject/difficulty defaults."""
    d = dict(data)
    if isinstance(d.get("text"), str):
        d["text"] = d["text"].strip()
    if isinstance(d.get("explanation"), str):
        d["explanation"] = d["explanation"].strip()
    if isinstance(d.get("options"), list):
        d["options"] = [o.strip() if isinstance(o, str) else o for o in d["options"]]
    d["subject"] = (d.get("subject") or "").strip() or DEFAULT_SUBJECT
    d["difficulty"] = d.get("difficulty") or "Medium"
    if d.get("correct_index") is not None:
        try:
            d["correct_index"] = int(d["correct_index"])
        except (TypeError, ValueError):
            pass
    return d


def validate_question(data: Dict) -> List[str]:
    """All problems with a question dict (empty list when valid)."""
    errors = []
    text = data.get("text") or ""
    if not text:
        errors.append("text is required")
    elif len(text) < MIN_QUESTION_LENGTH:
        errors.append(f"Question text is too short (min {MIN_QUESTION_LENGTH} characters)")
    elif len(text) > MAX_QUESTION_LENGTH:
        errors.append(f"Question text is too long (max {MAX_QUESTION_LENGTH} characters)")

    options = data.get("options")
    if not isinstance(options, list):
        errors.append("Options must be a list")
        options = []
    else:
        if len(options) < MIN_OPTIONS:
            errors.append(f"At least {MIN_OPTIONS} options required")
        if len(options) > MAX_OPTIONS:
            errors.append(f"Maximum {MAX_OPTIONS} options allowed")
        for i, option in enumerate(options):
            if not isinstance(option, str) or not option.strip():
                errors.append(f"Option {i + 1} cannot be empty")
            elif len(option) > MAX_OPTION_LENGTH:
                errors.append(f"Option {i + 1} is too long (max {MAX_OPTION_LENGTH} characters)")

    correct = data.get("correct_index")
    if not isinstance(correct, int) or isinstance(correct, bool) or not (0 <= correct < len(options)):
        errors.append("Correct answer index is invalid")

    if data.get("difficulty") not in DIFFICULTIES:
        errors.append(f"Difficulty must be one of {', '.join(DIFFICULTIES)}")
    return errors


class QuestionBank:
    """Question pool provider. Every mutation is written through to the store."""

    def __init__(self, store: Optional[BlobStore] = None):
        self.store = store
        self._questions: Dict[str, Question] = {}

    def load(self):
        rows = load_json(self.store, QUESTIONS_KEY, []) if self.store is not None else []
        self._questions = {}
        for row in rows if isinstance(rows, list) else []:
            try:
                q = Question.from_dict(row)
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping unreadable stored question: {e}")
                continue
            self._questions[q.id] = q
        logger.info(f"Loaded {len(self._questions)} questions")

    def save(self) -> bool:
        if self.store is None:
            return False
        return save_json(self.store, QUESTIONS_KEY, [q.to_dict() for q in self._questions.values()])

    # ============= Queries =============

    def get_question(self, question_id: str) -> Optional[Question]:
        return self._questions.get(question_id)

    def get_questions(
        self,
        subject: Optional[str] = None,
        chapter: Optional[str] = None,
        difficulty: Optional[str] = None,
        is_pyq: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> List[Question]:
        out = []
        needle = search.lower() if search else None
        for q in self._questions.values():
            if subject and q.subject != subject:
                continue
            if chapter and q.chapter != chapter:
                continue
            if difficulty and q.difficulty != difficulty:
                continue
            if is_pyq is not None and q.is_pyq != is_pyq:
                continue
            if needle and needle not in q.text.lower():
                continue
            out.append(q)
        return out

    def subjects(self) -> List[str]:
        return sorted({q.subject for q in self._questions.values()})

    def chapters(self, subject: Optional[str] = None) -> List[str]:
        return sorted({q.chapter for q in self.get_questions(subject=subject) if q.chapter})

    def statistics(self) -> Dict:
        qs = list(self._questions.values())
        return {
            "total": len(qs),
            "by_subject": dict(Counter(q.subject for q in qs)),
            "by_difficulty": dict(Counter(q.difficulty for q in qs)),
            "pyq": sum(1 for q in qs if q.is_pyq),
        }

    def __len__(self) -> int:
        return len(self._questions)

    # ============= Mutations =============

    def add_question(self, data: Dict) -> Question:
        d = normalize_question(data)
        errors = validate_question(d)
        if errors:
            raise QuestionValidationError(errors)
        d["id"] = str(d.get("id") or f"q_{uuid4().hex[:12]}")
        if d["id"] in self._questions:
            raise QuestionValidationError([f"Question {d['id']} already exists"])
        q = Question.from_dict(d)
        self._questions[q.id] = q
        self.save()
        logger.debug("Added question %s (%s)", q.id, q.subject)
        return q

    def update_question(self, question_id: str, data: Dict) -> Optional[Question]:
        current = self._questions.get(question_id)
        if current is None:
            return None
        merged = normalize_question({**current.to_dict(), **data, "id": question_id})
        errors = validate_question(merged)
        if errors:
            raise QuestionValidationError(errors)
        q = Question.from_dict(merged)
        self._questions[question_id] = q
        self.save()
        return q

    def delete_question(self, question_id: str) -> bool:
        if self._questions.pop(question_id, None) is None:
            return False
        self.save()
        return True

    def bulk_import(self, rows: Iterable[Dict]) -> Tuple[int, List[str]]:
        """Add many questions, saving once. Rows with an existing id replace it (upsert)."""
        added = 0
        errors = []
        for n, row in enumerate(rows, 1):
            d = normalize_question(row)
            problems = validate_question(d)
            if problems:
                errors.append(f"Row {n}: " + "; ".join(problems))
                continue
            d["id"] = str(d.get("id") or f"q_{uuid4().hex[:12]}")
            q = Question.from_dict(d)
            self._questions[q.id] = q
            added += 1
        if added:
            self.save()
        logger.info(f"Imported {added} questions ({len(errors)} rejected)")
        return added, errors

    def delete_by_source(self, source: str) -> int:
        """Delete all questions with the given source tag. Returns how many were removed."""
        doomed = [qid for qid, q in self._questions.items() if q.source == source]
        for qid in doomed:
            del self._questions[qid]
        if doomed:
            self.save()
        return len(doomed)

    def export(self) -> List[Dict]:
        return [q.to_dict() for q in self._questions.values()]

    def clear(self):
        self._questions = {}
        if self.store is not None:
            remove(self.store, QUESTIONS_KEY)
