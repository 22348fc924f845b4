# pppk_exam/scripts/seed_questions.py
"""
Load the question bank from JSON files.

Every ``*.json`` file under the data directory holds a list of
``{"id", "category", "question_text", "options": [{"option_text", "score"}]}``.
The existing bank is replaced in a single transaction; one bad record
aborts the whole run.

    python -m pppk_exam.scripts.seed_questions [DATA_DIR]
"""
import argparse
import json
import logging
from pathlib import Path
from typing import List

from pydantic import TypeAdapter
from sqlalchemy.orm import Session

from pppk_exam.core.config import settings
from pppk_exam.core.exam_rules import CATEGORIES
from pppk_exam.core.logging_config import setup_logging
from pppk_exam.models.exam import ExamQuestion, UserAnswer
from pppk_exam.schemas.question import QuestionSeed
from pppk_exam.services import question_service

logger = logging.getLogger(__name__)

_records = TypeAdapter(List[QuestionSeed])


def read_question_files(data_dir: Path) -> List[QuestionSeed]:
    if not data_dir.is_dir():
        raise FileNotFoundError(f"question data directory not found: {data_dir}")

    questions: List[QuestionSeed] = []
    for path in sorted(data_dir.rglob("*.json")):
        with path.open(encoding="utf-8") as fh:
            questions.extend(_records.validate_python(json.load(fh)))
        logger.info("Read %s", path)
    return questions


def seed_questions(db: Session, questions: List[QuestionSeed]) -> dict:
    """
    Replace the bank with ``questions``. Assigned exam questions and their
    answers reference the old bank and are removed with it.
    """
    try:
        db.query(UserAnswer).delete(synchronize_session=False)
        db.query(ExamQuestion).delete(synchronize_session=False)
        removed = question_service.delete_all_questions(db)
        if removed:
            logger.info("Removed %d existing questions", removed)

        for q in questions:
            if q.category not in CATEGORIES:
                logger.warning("Unknown category %r for question %s", q.category, q.id)
            question_service.create_question(
                db,
                category=q.category,
                question_text=q.question_text,
                options=[(opt.option_text, opt.score) for opt in q.options],
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    counts = question_service.count_by_category(db)
    for category, count in sorted(counts.items()):
        logger.info("%s: %d questions", category, count)
    return counts


def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed the exam question bank")
    parser.add_argument("data_dir", nargs="?", default=settings.QUESTION_DATA_DIR)
    args = parser.parse_args(argv)

    setup_logging(settings.LOG_LEVEL)

    from pppk_exam.db.init_db import init_db
    from pppk_exam.db.session import SessionLocal

    init_db()
    questions = read_question_files(Path(args.data_dir))
    logger.info("Total questions read from JSON files: %d", len(questions))

    db = SessionLocal()
    try:
        seed_questions(db, questions)
    finally:
        db.close()
    logger.info("Seeding completed successfully")


if __name__ == "__main__":
    main()
