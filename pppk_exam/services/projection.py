# pppk_exam/services/projection.py
from typing import Dict, List, Mapping, Sequence

from pppk_exam.core.clock import as_utc
from pppk_exam.core.exam_rules import ExamRules
from pppk_exam.models.exam import ExamResult, ExamSession, ExamSummary, UserAnswer
from pppk_exam.models.question import Question, QuestionOption
from pppk_exam.schemas.exam import (
    CategoryStats,
    DetailedAnswer,
    ExamQuestionPublic,
    ExamResultPublic,
    ExamResultsPublic,
    ExamSessionPublic,
    ExamSummaryPublic,
    QuestionOptionPublic,
)


def to_exam_session_public(
    session: ExamSession,
    *,
    rules: ExamRules,
    answered_by_category: Mapping[str, int] | None = None,
) -> ExamSessionPublic:
    """
    Candidate-facing view of a session. Option scores are never exposed.
    """
    answered_by_category = answered_by_category or {}

    questions: List[ExamQuestionPublic] = []
    totals: Dict[str, int] = {}
    for eq in sorted(session.exam_questions, key=lambda item: item.order_number):
        questions.append(
            ExamQuestionPublic(
                exam_question_id=eq.id,
                question_id=eq.question_id,
                category=eq.category,
                order_number=eq.order_number,
                question_text=eq.question.question_text,
                options=[
                    QuestionOptionPublic.model_validate(opt)
                    for opt in eq.question.options
                ],
            )
        )
        totals[eq.category] = totals.get(eq.category, 0) + 1

    # configured categories first, anything unexpected after
    ordered = [c for c in rules.categories if c in totals]
    ordered += [c for c in totals if c not in rules.categories]
    category_stats = [
        CategoryStats(
            category=category,
            total_questions=totals[category],
            answered_count=answered_by_category.get(category, 0),
        )
        for category in ordered
    ]

    return ExamSessionPublic(
        session_id=session.id,
        user_id=session.user_id,
        session_code=session.session_code,
        status=session.status,
        expires_at=as_utc(session.expires_at),
        duration=session.duration,
        questions=questions,
        category_stats=category_stats,
    )


def to_exam_results_public(
    summary: ExamSummary,
    results: Sequence[ExamResult],
) -> ExamResultsPublic:
    return ExamResultsPublic(
        summary=ExamSummaryPublic.model_validate(summary),
        results_by_category=[ExamResultPublic.model_validate(r) for r in results],
    )


def to_detailed_answer(
    answer: UserAnswer,
    *,
    question: Question,
    best: QuestionOption,
) -> DetailedAnswer:
    return DetailedAnswer(
        exam_question_id=answer.exam_question_id,
        question_id=answer.question_id,
        order_number=answer.exam_question.order_number,
        question_text=question.question_text,
        selected_option=answer.question_option.option_text,
        score=answer.score,
        max_score=best.score,
        is_correct=answer.score == best.score,
        correct_option=best.option_text,
        correct_score=best.score,
        answered_at=as_utc(answer.answered_at),
    )
