# pppk_exam/schemas/exam.py
from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, Field


class SubmitAnswerRequest(BaseModel):
    exam_question_id: int = Field(..., gt=0)
    question_option_id: int = Field(..., gt=0)


class QuestionOptionPublic(BaseModel):
    """Options as shown to the candidate: no score."""
    id: int
    option_text: str

    model_config = {"from_attributes": True}


class ExamQuestionPublic(BaseModel):
    exam_question_id: int
    question_id: int
    category: str
    order_number: int
    question_text: str
    options: List[QuestionOptionPublic]


class CategoryStats(BaseModel):
    category: str
    total_questions: int
    answered_count: int


class ExamSessionPublic(BaseModel):
    session_id: int
    user_id: str
    session_code: str
    status: str
    expires_at: datetime
    duration: int
    questions: List[ExamQuestionPublic]
    category_stats: List[CategoryStats]


class StartExamResponse(BaseModel):
    session_id: int
    status: str
    started_at: datetime | None = None


class CompleteExamResponse(BaseModel):
    session_id: int
    status: str
    completed_at: datetime | None = None


class SubmitAnswerResponse(BaseModel):
    message: str = "Answer submitted successfully"
    exam_question_id: int
    question_option_id: int


class ExamSummaryPublic(BaseModel):
    id: int
    exam_session_id: int
    user_id: str
    total_questions: int
    total_answered: int
    total_score: int
    max_score: int
    overall_percentage: float
    overall_grade: str
    is_passed: bool
    completed_at: datetime

    model_config = {"from_attributes": True}


class ExamResultPublic(BaseModel):
    id: int
    exam_session_id: int
    category: str
    total_questions: int
    total_answered: int
    total_score: int
    max_score: int
    percentage: float
    grade: str
    is_passed: bool

    model_config = {"from_attributes": True}


class ExamResultsPublic(BaseModel):
    summary: ExamSummaryPublic
    results_by_category: List[ExamResultPublic]


class DetailedAnswer(BaseModel):
    """A graded answer on a completed exam, with the best option for comparison."""
    exam_question_id: int
    question_id: int
    order_number: int
    question_text: str
    selected_option: str
    score: int
    max_score: int
    is_correct: bool
    correct_option: str
    correct_score: int
    answered_at: datetime


DetailedAnswersByCategory = Dict[str, List[DetailedAnswer]]
