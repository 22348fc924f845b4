# pppk_exam/core/exam_rules.py
"""
Grading rules for a PPPK exam attempt.

The category order, question quotas, official max scores and pass
thresholds live in one immutable ``ExamRules`` value that the exam
service receives at construction.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple

TEKNIS = "TEKNIS"
MANAJERIAL = "MANAJERIAL"
SOSIAL_KULTURAL = "SOSIAL KULTURAL"
WAWANCARA = "WAWANCARA"

CATEGORIES: Tuple[str, ...] = (TEKNIS, MANAJERIAL, SOSIAL_KULTURAL, WAWANCARA)


def calculate_grade(percentage: float) -> str:
    """
    100% = A, 90% = B, 80% = C, 70% = D, below 70% = E.
    """
    if percentage >= 100:
        return "A"
    if percentage >= 90:
        return "B"
    if percentage >= 80:
        return "C"
    if percentage >= 70:
        return "D"
    return "E"


@dataclass(frozen=True)
class ExamRules:
    categories: Tuple[str, ...]
    quotas: Mapping[str, int]
    max_scores: Mapping[str, int]
    thresholds: Mapping[str, float]
    overall_threshold: float = 90.0
    duration_minutes: int = 130
    overall_max_score: int = field(default=0)

    def __post_init__(self) -> None:
        if not self.categories:
            raise ValueError("exam rules need at least one category")
        if len(set(self.categories)) != len(self.categories):
            raise ValueError("exam categories must be unique")

        for table_name in ("quotas", "max_scores", "thresholds"):
            table = getattr(self, table_name)
            missing = [c for c in self.categories if c not in table]
            if missing:
                raise ValueError(f"{table_name} missing categories: {missing}")
            # frozen dataclass: bypass __setattr__ to freeze the mapping
            object.__setattr__(self, table_name, MappingProxyType(dict(table)))

        for category in self.categories:
            if self.quotas[category] <= 0:
                raise ValueError(f"quota for {category} must be positive")
            if self.max_scores[category] <= 0:
                raise ValueError(f"max score for {category} must be positive")

        if self.duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")

        if not self.overall_max_score:
            object.__setattr__(
                self,
                "overall_max_score",
                sum(self.max_scores[c] for c in self.categories),
            )

    @property
    def total_questions(self) -> int:
        return sum(self.quotas[c] for c in self.categories)

    def with_duration(self, minutes: int) -> "ExamRules":
        return ExamRules(
            categories=self.categories,
            quotas=dict(self.quotas),
            max_scores=dict(self.max_scores),
            thresholds=dict(self.thresholds),
            overall_threshold=self.overall_threshold,
            duration_minutes=minutes,
            overall_max_score=self.overall_max_score,
        )


# Official PPPK composition: 145 questions, 690 points.
DEFAULT_RULES = ExamRules(
    categories=CATEGORIES,
    quotas={
        TEKNIS: 90,
        MANAJERIAL: 25,
        SOSIAL_KULTURAL: 20,
        WAWANCARA: 10,
    },
    max_scores={
        TEKNIS: 450,
        MANAJERIAL: 100,
        SOSIAL_KULTURAL: 100,
        WAWANCARA: 40,
    },
    # only grade A and B pass
    thresholds={
        TEKNIS: 90.0,
        MANAJERIAL: 90.0,
        SOSIAL_KULTURAL: 90.0,
        WAWANCARA: 90.0,
    },
    overall_threshold=90.0,
    duration_minutes=130,
)
