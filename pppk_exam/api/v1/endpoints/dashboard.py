# pppk_exam/api/v1/endpoints/dashboard.py
from fastapi import APIRouter, Depends

from pppk_exam.api.deps import get_exam_service
from pppk_exam.schemas.dashboard import UserListDashboard
from pppk_exam.services.exam_service import ExamService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/users", response_model=UserListDashboard)
def get_all_users_dashboard(service: ExamService = Depends(get_exam_service)):
    """
    Latest exam of every user with its score when completed.
    """
    return service.get_all_users_dashboard()
