# pppk_exam/api/deps.py
from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from pppk_exam.core.config import settings
from pppk_exam.core.exam_rules import DEFAULT_RULES, ExamRules
from pppk_exam.db.session import get_db
from pppk_exam.services.errors import ExamError
from pppk_exam.services.exam_service import ExamService


def get_exam_rules() -> ExamRules:
    if settings.EXAM_DURATION_MINUTES == DEFAULT_RULES.duration_minutes:
        return DEFAULT_RULES
    return DEFAULT_RULES.with_duration(settings.EXAM_DURATION_MINUTES)


def get_exam_service(
    db: Session = Depends(get_db),
    rules: ExamRules = Depends(get_exam_rules),
) -> ExamService:
    return ExamService(db, rules)


def valid_user_id(user_id: str) -> str:
    if not user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid user ID",
        )
    return user_id


def http_error(exc: ExamError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))
