# pppk_exam/services/dashboard_service.py
"""
Per-user and all-user exam dashboards.

These only compose reads from the exam service; the single state change
is the expiry sweep that runs before anything is looked up.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select

from pppk_exam.core.clock import as_utc
from pppk_exam.models.exam import ExamSession, ExamStatus, ExamSummary
from pppk_exam.schemas.dashboard import (
    ActiveExamDashboard,
    CompletedExamDashboard,
    Dashboard,
    ExpiredExamDashboard,
    NoExamDashboard,
    ProgressInfo,
    UserDashboardSummary,
    UserListDashboard,
)
from pppk_exam.services import projection

if TYPE_CHECKING:
    from pppk_exam.services.exam_service import ExamService

__all__ = ["Dashboard", "build_user_dashboard", "build_all_users_dashboard"]


def remaining_minutes(session: ExamSession, now) -> int:
    seconds = (as_utc(session.expires_at) - now).total_seconds()
    return max(0, int(seconds // 60))


def build_user_dashboard(service: "ExamService", user_id: str) -> Dashboard:
    service.expire_stale_sessions()

    session = service.get_latest_session(user_id)
    if session is None:
        return NoExamDashboard(user_id=user_id)

    answered_by_category = service.answered_counts_by_category(session.id)
    session_view = projection.to_exam_session_public(
        session,
        rules=service.rules,
        answered_by_category=answered_by_category,
    )

    if session.status == ExamStatus.COMPLETED:
        summary, results = service.get_results(user_id)
        return CompletedExamDashboard(
            user_id=user_id,
            exam_session=session_view,
            exam_results=projection.to_exam_results_public(summary, results),
        )

    if session.status in ExamStatus.ACTIVE:
        return ActiveExamDashboard(
            user_id=user_id,
            exam_status=session.status,
            exam_session=session_view,
            progress_info=ProgressInfo(
                total_questions=service.rules.total_questions,
                answered_questions=service.answered_count(session.id),
                remaining_time=remaining_minutes(session, service.clock()),
            ),
        )

    return ExpiredExamDashboard(user_id=user_id, exam_session=session_view)


def build_all_users_dashboard(service: "ExamService") -> UserListDashboard:
    """Each user's latest session, with its summary when completed."""
    service.expire_stale_sessions()

    latest_ids = select(func.max(ExamSession.id)).group_by(ExamSession.user_id)
    rows = (
        service.db.query(ExamSession, ExamSummary)
        .outerjoin(ExamSummary, ExamSummary.exam_session_id == ExamSession.id)
        .filter(ExamSession.id.in_(latest_ids))
        .order_by(ExamSession.created_at.desc(), ExamSession.id.desc())
        .all()
    )

    users = []
    for session, summary in rows:
        users.append(
            UserDashboardSummary(
                user_id=session.user_id,
                exam_status=session.status,
                session_code=session.session_code,
                started_at=as_utc(session.started_at),
                completed_at=as_utc(session.completed_at),
                total_score=summary.total_score if summary else None,
                max_score=summary.max_score if summary else None,
                percentage=summary.overall_percentage if summary else None,
                grade=summary.overall_grade if summary else None,
                is_passed=summary.is_passed if summary else None,
            )
        )

    return UserListDashboard(total_users=len(users), users=users)
