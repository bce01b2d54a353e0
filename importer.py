"""Ingest .jsonl question dumps into the question bank (topic -> chapter, subject by topic map)."""
import json
import argparse
import logging
from pathlib import Path
from uuid import uuid5, NAMESPACE_DNS

from mocktest.config import Settings, configure_logging
from mocktest.models import DIFFICULTIES
from mocktest.question_bank import MAX_OPTIONS, QuestionBank
from mocktest.storage import build_store

logger = logging.getLogger(__name__)

# Topic keywords -> RRB CBT subject. Anything unmatched keeps its own subject field or "General".
SUBJECT_BY_TOPIC = {
    "current affairs": "General Awareness",
    "geography": "General Awareness",
    "polity": "General Awareness",
    "reasoning": "General Intelligence & Reasoning",
    "analogy": "General Intelligence & Reasoning",
    "series": "General Intelligence & Reasoning",
    "coding decoding": "General Intelligence & Reasoning",
    "computer": "Basics of Computers and Applications",
    "ms office": "Basics of Computers and Applications",
    "internet": "Basics of Computers and Applications",
    "arithmetic": "Mathematics",
    "algebra": "Mathematics",
    "geometry": "Mathematics",
    "mensuration": "Mathematics",
    "physics": "Basic Science & Engineering",
    "chemistry": "Basic Science & Engineering",
    "electronic": "Basic Science & Engineering",
    "electrical": "Basic Science & Engineering",
}


def topic_to_subject(topic: str, fallback: str | None = None) -> str:
    """Map a topic to a subject by keyword; `fallback` (the row's own subject) wins when given."""
    if fallback:
        return fallback
    t = (topic or "").strip().lower().replace("_", " ").replace("-", " ")
    for keyword, subject in SUBJECT_BY_TOPIC.items():
        if keyword in t:
            return subject
    return "General"


def parse_line(line: str, source: str = "jsonl") -> dict | None:
    """Parse one JSONL line into a question row. Returns None if invalid/skip."""
    line = line.strip()
    if not line:
        return None
    try:
        raw = json.loads(line)
    except json.JSONDecodeError:
        return None
    question_id = raw.get("question_id") or raw.get("id")
    if not question_id:
        return None
    topic = (raw.get("topic") or raw.get("chapter") or "").strip()
    text = raw.get("text") or raw.get("question_text") or ""
    options = raw.get("options")
    if not isinstance(options, list) or len(options) < 2:
        return None
    correct_option = raw.get("correct_option", raw.get("correct_index", 0))
    if not isinstance(correct_option, int) or correct_option < 0 or correct_option >= len(options):
        correct_option = 0
    if len(options) > MAX_OPTIONS:
        options = options[:MAX_OPTIONS]
        correct_option = min(correct_option, MAX_OPTIONS - 1)
    steps = raw.get("explanation_steps") or raw.get("explanation") or []
    explanation = " ".join(steps) if isinstance(steps, list) else str(steps)
    difficulty = (raw.get("difficulty") or "Medium").strip().capitalize()
    if difficulty not in DIFFICULTIES:
        difficulty = "Medium"
    year = raw.get("year")

    return {
        "id": str(uuid5(NAMESPACE_DNS, str(question_id))),
        "subject": topic_to_subject(topic, raw.get("subject")),
        "chapter": topic or None,
        "difficulty": difficulty,
        "text": text,
        "options": options,
        "correct_index": correct_option,
        "explanation": explanation,
        "is_pyq": bool(raw.get("is_pyq") or year),
        "year": int(year) if isinstance(year, (int, str)) and str(year).isdigit() else None,
        "source": raw.get("source") or source,
    }


def load_and_transform(path: Path, source: str = "jsonl"):
    """Read JSONL and yield transformed question rows."""
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            row = parse_line(line, source=source)
            if row:
                yield row


def run_import(jsonl_path: Path, bank: QuestionBank, source: str = "jsonl", dry_run: bool = False, replace: bool = False) -> int:
    if not jsonl_path.exists():
        raise FileNotFoundError(f"JSONL not found: {jsonl_path}")
    rows = list(load_and_transform(jsonl_path, source=source))
    if dry_run:
        print(f"Dry run: would import {len(rows)} questions from {jsonl_path}")
        if rows:
            print("Sample row:", rows[0])
        return len(rows)
    if replace:
        removed = bank.delete_by_source(source)
        print(f"Deleted {removed} existing {source} questions")
    added, errors = bank.bulk_import(rows)
    for err in errors[:20]:
        logger.warning(err)
    print(f"Imported {added} questions from {jsonl_path} ({len(errors)} rejected)")
    return added


if __name__ == "__main__":
    settings = Settings.from_env()
    configure_logging(settings)
    parser = argparse.ArgumentParser(description="Import a JSONL question dump into the question bank.")
    parser.add_argument("jsonl", help="Path to .jsonl")
    parser.add_argument("--source", default="jsonl", help="Source tag stored on each question (default jsonl)")
    parser.add_argument("--dry-run", action="store_true", help="Parse only, do not import")
    parser.add_argument("--replace", action="store_true", help="Delete existing questions from this source first")
    args = parser.parse_args()
    bank = QuestionBank(build_store(settings))
    bank.load()
    run_import(Path(args.jsonl), bank, source=args.source, dry_run=args.dry_run, replace=args.replace)
