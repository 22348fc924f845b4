# pppk_exam/api/v1/endpoints/exam.py
from typing import Dict

from fastapi import APIRouter, Depends

from pppk_exam.api.deps import get_exam_service, http_error, valid_user_id
from pppk_exam.core.clock import as_utc
from pppk_exam.schemas.dashboard import Dashboard
from pppk_exam.schemas.exam import (
    CompleteExamResponse,
    DetailedAnswersByCategory,
    ExamResultsPublic,
    ExamSessionPublic,
    StartExamResponse,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
)
from pppk_exam.services import projection
from pppk_exam.services.errors import ExamError
from pppk_exam.services.exam_service import ExamService

router = APIRouter(prefix="/exam", tags=["exam"])


@router.get("/{user_id}", response_model=ExamSessionPublic)
def get_or_create_exam(
    user_id: str = Depends(valid_user_id),
    service: ExamService = Depends(get_exam_service),
):
    """
    Return the user's active exam session, creating one with a fresh
    random question set when there is none.
    """
    try:
        session = service.get_or_create_session(user_id)
    except ExamError as exc:
        raise http_error(exc) from exc

    return projection.to_exam_session_public(
        session,
        rules=service.rules,
        answered_by_category=service.answered_counts_by_category(session.id),
    )


@router.post("/{user_id}/start", response_model=StartExamResponse)
def start_exam(
    user_id: str = Depends(valid_user_id),
    service: ExamService = Depends(get_exam_service),
):
    try:
        session = service.start_session(user_id)
    except ExamError as exc:
        raise http_error(exc) from exc

    return StartExamResponse(
        session_id=session.id,
        status=session.status,
        started_at=as_utc(session.started_at),
    )


@router.post("/{user_id}/answer", response_model=SubmitAnswerResponse)
def submit_answer(
    payload: SubmitAnswerRequest,
    user_id: str = Depends(valid_user_id),
    service: ExamService = Depends(get_exam_service),
):
    try:
        answer = service.submit_answer(
            user_id, payload.exam_question_id, payload.question_option_id
        )
    except ExamError as exc:
        raise http_error(exc) from exc

    return SubmitAnswerResponse(
        exam_question_id=answer.exam_question_id,
        question_option_id=answer.question_option_id,
    )


@router.post("/{user_id}/complete", response_model=CompleteExamResponse)
def complete_exam(
    user_id: str = Depends(valid_user_id),
    service: ExamService = Depends(get_exam_service),
):
    try:
        summary = service.complete_session(user_id)
    except ExamError as exc:
        raise http_error(exc) from exc

    return CompleteExamResponse(
        session_id=summary.exam_session_id,
        status="COMPLETED",
        completed_at=as_utc(summary.completed_at),
    )


@router.get("/{user_id}/results", response_model=ExamResultsPublic)
def get_exam_results(
    user_id: str = Depends(valid_user_id),
    service: ExamService = Depends(get_exam_service),
):
    try:
        summary, results = service.get_results(user_id)
    except ExamError as exc:
        raise http_error(exc) from exc
    return projection.to_exam_results_public(summary, results)


@router.get("/{user_id}/dashboard", response_model=Dashboard)
def get_dashboard(
    user_id: str = Depends(valid_user_id),
    service: ExamService = Depends(get_exam_service),
):
    return service.get_dashboard(user_id)


@router.get("/{user_id}/answers", response_model=Dict[int, int])
def get_user_answers(
    user_id: str = Depends(valid_user_id),
    service: ExamService = Depends(get_exam_service),
):
    """
    exam_question_id -> chosen option id, so a client can restore its
    state after a reload.
    """
    return service.get_user_answers(user_id)


@router.get("/{user_id}/detailed-answers", response_model=DetailedAnswersByCategory)
def get_detailed_answers(
    user_id: str = Depends(valid_user_id),
    service: ExamService = Depends(get_exam_service),
):
    try:
        return service.get_detailed_answers(user_id)
    except ExamError as exc:
        raise http_error(exc) from exc
