# pppk_exam/services/question_service.py
import random
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from pppk_exam.models.question import Question, QuestionOption
from pppk_exam.services.errors import InsufficientQuestions, OptionNotFound


def create_question(
    db: Session,
    *,
    category: str,
    question_text: str,
    options: Iterable[Tuple[str, int]],
) -> Question:
    """
    Add a question with its (option_text, score) pairs; caller commits.
    """
    db_obj = Question(category=category, question_text=question_text)
    db_obj.options = [
        QuestionOption(option_text=text, score=score) for text, score in options
    ]
    db.add(db_obj)
    db.flush()
    return db_obj


def get_question(db: Session, question_id: int) -> Optional[Question]:
    return db.get(Question, question_id)


def questions_by_category(db: Session, category: str) -> List[Question]:
    return (
        db.query(Question)
        .filter(Question.category == category)
        .order_by(Question.id.asc())
        .all()
    )


def count_by_category(db: Session) -> Dict[str, int]:
    rows = (
        db.query(Question.category, func.count(Question.id))
        .group_by(Question.category)
        .all()
    )
    return {category: count for category, count in rows}


def random_sample(
    db: Session,
    category: str,
    n: int,
    rng: Optional[random.Random] = None,
) -> List[int]:
    """
    Draw ``n`` distinct question ids of ``category`` uniformly at random.

    Ids are loaded in a stable order first so a seeded ``rng`` always
    yields the same draw for the same bank.
    """
    rng = rng or random.Random()
    ids = [
        row[0]
        for row in db.query(Question.id)
        .filter(Question.category == category)
        .order_by(Question.id.asc())
        .all()
    ]
    if len(ids) < n:
        raise InsufficientQuestions(category, n, len(ids))
    return rng.sample(ids, n)


def get_option(
    db: Session,
    option_id: int,
    *,
    question_id: Optional[int] = None,
) -> QuestionOption:
    option = db.get(QuestionOption, option_id)
    if option is None:
        raise OptionNotFound(f"question option {option_id} not found")
    if question_id is not None and option.question_id != question_id:
        raise OptionNotFound(
            f"question option {option_id} does not belong to question {question_id}"
        )
    return option


def best_option(question: Question) -> Optional[QuestionOption]:
    """Highest scoring option; first one wins on ties."""
    best = None
    for option in question.options:
        if best is None or option.score > best.score:
            best = option
    return best


def delete_all_questions(db: Session) -> int:
    """Remove the whole bank; caller commits."""
    db.query(QuestionOption).delete(synchronize_session=False)
    return db.query(Question).delete(synchronize_session=False)
