# pppk_exam/schemas/dashboard.py
from datetime import datetime
from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, Field

from pppk_exam.schemas.exam import ExamResultsPublic, ExamSessionPublic


class ProgressInfo(BaseModel):
    total_questions: int
    answered_questions: int
    remaining_time: int  # minutes


class NoExamDashboard(BaseModel):
    user_id: str
    has_exam: Literal[False] = False
    exam_status: Literal["NO_EXAM"] = "NO_EXAM"


class ActiveExamDashboard(BaseModel):
    user_id: str
    has_exam: Literal[True] = True
    exam_status: Literal["NOT_STARTED", "IN_PROGRESS"]
    exam_session: ExamSessionPublic
    progress_info: ProgressInfo


class CompletedExamDashboard(BaseModel):
    user_id: str
    has_exam: Literal[True] = True
    exam_status: Literal["COMPLETED"] = "COMPLETED"
    exam_session: ExamSessionPublic
    exam_results: ExamResultsPublic


class ExpiredExamDashboard(BaseModel):
    user_id: str
    has_exam: Literal[True] = True
    exam_status: Literal["EXPIRED"] = "EXPIRED"
    exam_session: ExamSessionPublic


Dashboard = Annotated[
    Union[NoExamDashboard, ActiveExamDashboard, CompletedExamDashboard, ExpiredExamDashboard],
    Field(discriminator="exam_status"),
]


class UserDashboardSummary(BaseModel):
    user_id: str
    exam_status: str
    session_code: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    total_score: int | None = None
    max_score: int | None = None
    percentage: float | None = None
    grade: str | None = None
    is_passed: bool | None = None


class UserListDashboard(BaseModel):
    total_users: int
    users: List[UserDashboardSummary]
