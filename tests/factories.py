from datetime import datetime, timedelta, timezone

from pppk_exam.core.exam_rules import ExamRules
from pppk_exam.services import question_service

T0 = datetime(2026, 1, 28, 9, 0, 0, tzinfo=timezone.utc)

# 3 TEKNIS at 5 points max, 2 MANAJERIAL at 4 points max
SMALL_RULES = ExamRules(
    categories=("TEKNIS", "MANAJERIAL"),
    quotas={"TEKNIS": 3, "MANAJERIAL": 2},
    max_scores={"TEKNIS": 15, "MANAJERIAL": 8},
    thresholds={"TEKNIS": 90.0, "MANAJERIAL": 90.0},
    overall_threshold=90.0,
    duration_minutes=130,
)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_bank(db, sizes, top_scores):
    """
    ``sizes[category]`` questions per category, each with options scored
    0, 1 and ``top_scores[category]``.
    """
    for category, size in sizes.items():
        for i in range(size):
            question_service.create_question(
                db,
                category=category,
                question_text=f"{category} question {i + 1}",
                options=[
                    ("Tidak setuju", 0),
                    ("Ragu-ragu", 1),
                    ("Setuju", top_scores[category]),
                ],
            )
    db.commit()


def best_option_id(exam_question):
    return question_service.best_option(exam_question.question).id


def worst_option_id(exam_question):
    return min(exam_question.question.options, key=lambda o: o.score).id
