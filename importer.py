"""Ingest .jsonl question dumps into an exam: clean HTML, validate options, bulk insert."""
import json
import argparse
import logging
from pathlib import Path
from typing import Iterator, Optional
from uuid import uuid5, NAMESPACE_DNS

from engine import MAX_OPTIONS
from examprep.models import DIFFICULTIES, Question
from examprep.text_utils import clean_question_text

logger = logging.getLogger(__name__)


def question_id_for(exam_id: str, key: str) -> str:
    """Stable id so re-importing the same dump upserts instead of duplicating."""
    return str(uuid5(NAMESPACE_DNS, f"{exam_id}:{key}"))


def parse_line(line: str, exam_id: str) -> Optional[Question]:
    """Parse one JSONL line into a Question. Returns None if invalid/skip."""
    line = line.strip()
    if not line:
        return None
    try:
        raw = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(raw, dict):
        return None
    text = clean_question_text(raw.get("question_text") or raw.get("text") or "")
    if not text:
        return None
    options = raw.get("options")
    if not isinstance(options, list) or len(options) < 2:
        return None
    options = [clean_question_text(str(o)) for o in options[:MAX_OPTIONS]]
    correct_option = raw.get("correct_option", 0)
    if not isinstance(correct_option, int) or isinstance(correct_option, bool):
        return None
    if not 0 <= correct_option < len(options):
        return None
    explanation = raw.get("explanation") or raw.get("explanation_steps") or ""
    if isinstance(explanation, list):
        explanation = " ".join(str(s) for s in explanation)
    difficulty = (raw.get("difficulty") or "medium").strip().lower()
    if difficulty not in DIFFICULTIES:
        difficulty = "medium"

    key = str(raw.get("question_id") or text)
    return Question(
        id=question_id_for(exam_id, key),
        exam_id=exam_id,
        section_id=raw.get("section_id"),
        question_text=text,
        options=options,
        correct_option_index=correct_option,
        subject=(raw.get("subject") or "General").strip() or "General",
        topic=(raw.get("topic") or "").strip(),
        difficulty=difficulty,
        explanation=clean_question_text(str(explanation)) or None,
    )


def load_and_transform(path: Path, exam_id: str) -> Iterator[Question]:
    """Read JSONL and yield parsed questions, logging skipped lines."""
    with path.open("r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, 1):
            question = parse_line(line, exam_id)
            if question:
                yield question
            elif line.strip():
                logger.warning(f"Skipping invalid line {line_no} in {path.name}")


def run_import(jsonl_path: Path, exam_id: str, chunk_size: int = 200, dry_run: bool = False, replace: bool = False, database=None):
    if not jsonl_path.exists():
        raise FileNotFoundError(f"JSONL not found: {jsonl_path}")
    questions = list(load_and_transform(jsonl_path, exam_id))
    if dry_run:
        print(f"Dry run: would insert {len(questions)} questions into exam {exam_id} from {jsonl_path}")
        if questions:
            print("Sample row:", questions[0].to_row())
        return len(questions)
    if database is None:
        from db import get_database_uncached

        database = get_database_uncached()
    database.get_exam(exam_id)
    if replace:
        database.delete_questions_for_exam(exam_id)
        print(f"Deleted existing questions for exam {exam_id}")
    total = database.add_questions(exam_id, questions, chunk_size=chunk_size)
    print(f"Inserted {total} questions into exam {exam_id} from {jsonl_path}")
    return total


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    parser = argparse.ArgumentParser(description="Import a JSONL question dump into an exam.")
    parser.add_argument("jsonl", help="Path to .jsonl")
    parser.add_argument("--exam-id", required=True, help="Exam to attach the questions to")
    parser.add_argument("--chunk-size", type=int, default=200, help="Insert chunk size (default 200)")
    parser.add_argument("--dry-run", action="store_true", help="Parse only, do not insert")
    parser.add_argument("--replace", action="store_true", help="Delete the exam's existing questions first")
    args = parser.parse_args()
    run_import(Path(args.jsonl), args.exam_id, chunk_size=args.chunk_size, dry_run=args.dry_run, replace=args.replace)
