# pppk_exam/services/exam_service.py
from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from pppk_exam.core.clock import as_utc, utcnow
from pppk_exam.core.exam_rules import DEFAULT_RULES, ExamRules, calculate_grade
from pppk_exam.models.exam import (
    ExamQuestion,
    ExamResult,
    ExamSession,
    ExamStatus,
    ExamSummary,
    UserAnswer,
)
from pppk_exam.models.question import Question
from pppk_exam.schemas.dashboard import UserListDashboard
from pppk_exam.schemas.exam import DetailedAnswersByCategory
from pppk_exam.services import dashboard_service, projection, question_service
from pppk_exam.services.errors import (
    ExamAlreadyCompleted,
    ExamExpired,
    ExamNotStarted,
    OptionNotFound,
    QuestionNotInSession,
    ResultsNotFound,
    SessionNotFound,
)

logger = logging.getLogger(__name__)


class ExamService:
    """
    Exam session lifecycle and scoring.

    NOT_STARTED -> IN_PROGRESS -> COMPLETED, and any active session
    becomes EXPIRED once its expiry passes. Every multi-step write runs in
    a single transaction on ``db`` and rolls back on failure.
    """

    def __init__(
        self,
        db: Session,
        rules: ExamRules = DEFAULT_RULES,
        *,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.rules = rules
        self.rng = rng or random.Random()
        self.clock = clock

    # ------------------------------------------------------------------
    # session creation / retrieval
    # ------------------------------------------------------------------

    def create_session(self, user_id: str) -> ExamSession:
        """
        Create a NOT_STARTED session and draw every category quota at random.

        All or nothing: if any category is short of questions, no session
        and no assignment is persisted.
        """
        if not user_id or not user_id.strip():
            raise ValueError("user_id must be a non-empty string")

        now = self.clock()
        session = ExamSession(
            user_id=user_id,
            session_code=f"EXAM_{user_id}_{int(now.timestamp())}",
            status=ExamStatus.NOT_STARTED,
            created_at=now,
            expires_at=now + timedelta(minutes=self.rules.duration_minutes),
            duration=self.rules.duration_minutes,
        )

        try:
            self.db.add(session)
            self.db.flush()

            order_number = 1
            for category in self.rules.categories:
                question_ids = question_service.random_sample(
                    self.db, category, self.rules.quotas[category], self.rng
                )
                for question_id in question_ids:
                    self.db.add(
                        ExamQuestion(
                            exam_session_id=session.id,
                            question_id=question_id,
                            category=category,
                            order_number=order_number,
                        )
                    )
                    order_number += 1

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Created exam session %s for user %s with %d questions",
            session.session_code,
            user_id,
            order_number - 1,
        )
        return self._load_session(session.id)

    def expire_stale_sessions(self) -> int:
        """Mark every active session past its expiry as EXPIRED."""
        now = self.clock()
        try:
            count = (
                self.db.query(ExamSession)
                .filter(
                    ExamSession.status.in_(ExamStatus.ACTIVE),
                    ExamSession.expires_at < now,
                )
                .update({ExamSession.status: ExamStatus.EXPIRED}, synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if count:
            logger.info("Expired %d stale exam session(s)", count)
        return count

    def get_active_session(self, user_id: str) -> ExamSession:
        """
        Latest NOT_STARTED / IN_PROGRESS session for the user, after the sweep.

        Raises SessionNotFound when the user has no active session.
        """
        self.expire_stale_sessions()

        session = (
            self._session_query()
            .filter(
                ExamSession.user_id == user_id,
                ExamSession.status.in_(ExamStatus.ACTIVE),
            )
            .order_by(ExamSession.created_at.desc(), ExamSession.id.desc())
            .first()
        )
        if session is None:
            raise SessionNotFound(f"exam session not found for user {user_id}")
        return session

    def get_or_create_session(self, user_id: str) -> ExamSession:
        try:
            return self.get_active_session(user_id)
        except SessionNotFound:
            return self.create_session(user_id)

    def get_latest_session(self, user_id: str) -> Optional[ExamSession]:
        """Most recent session of any status, or None."""
        return (
            self._session_query()
            .filter(ExamSession.user_id == user_id)
            .order_by(ExamSession.created_at.desc(), ExamSession.id.desc())
            .first()
        )

    # ------------------------------------------------------------------
    # start
    # ------------------------------------------------------------------

    def start_exam(self, session_id: int) -> ExamSession:
        """
        NOT_STARTED -> IN_PROGRESS. Starting twice keeps the first started_at.
        """
        session = self._get_session(session_id)

        if session.status == ExamStatus.IN_PROGRESS:
            return session
        if session.status == ExamStatus.COMPLETED:
            raise ExamAlreadyCompleted("exam has already been completed")
        if session.status == ExamStatus.EXPIRED:
            raise ExamExpired("exam has expired")

        session.status = ExamStatus.IN_PROGRESS
        session.started_at = self.clock()
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)

        logger.info("Started exam session %s", session.session_code)
        return session

    def start_session(self, user_id: str) -> ExamSession:
        session = self.get_active_session(user_id)
        return self.start_exam(session.id)

    # ------------------------------------------------------------------
    # answers
    # ------------------------------------------------------------------

    def submit_exam_answer(
        self,
        session_id: int,
        exam_question_id: int,
        option_id: int,
    ) -> UserAnswer:
        """
        Record (or overwrite) the answer to one assigned question.

        Guards run in a fixed order, each with its own error. A session
        found past its expiry is committed as EXPIRED before ExamExpired
        is raised.
        """
        try:
            session = self.db.get(ExamSession, session_id)
            if session is None:
                raise SessionNotFound(f"exam session {session_id} not found")

            if session.status == ExamStatus.COMPLETED:
                raise ExamAlreadyCompleted(
                    "exam has already been completed, cannot submit more answers"
                )
            if session.status == ExamStatus.EXPIRED:
                raise ExamExpired("exam has expired, cannot submit answers")
            if session.status == ExamStatus.NOT_STARTED:
                raise ExamNotStarted("exam has not been started yet")

            now = self.clock()
            if now > as_utc(session.expires_at):
                session.status = ExamStatus.EXPIRED
                self.db.commit()
                logger.info("Exam session %s expired on answer submission", session.session_code)
                raise ExamExpired("exam has expired, cannot submit answers")

            option = question_service.get_option(self.db, option_id)

            exam_question = (
                self.db.query(ExamQuestion)
                .filter(
                    ExamQuestion.id == exam_question_id,
                    ExamQuestion.exam_session_id == session.id,
                )
                .first()
            )
            if exam_question is None:
                raise QuestionNotInSession(
                    f"exam question {exam_question_id} not found "
                    f"or doesn't belong to exam session {session.id}"
                )
            if option.question_id != exam_question.question_id:
                raise OptionNotFound(
                    f"question option {option_id} does not belong to "
                    f"exam question {exam_question_id}"
                )

            answer = (
                self.db.query(UserAnswer)
                .filter(
                    UserAnswer.exam_session_id == session.id,
                    UserAnswer.exam_question_id == exam_question.id,
                )
                .first()
            )
            if answer is None:
                answer = UserAnswer(
                    exam_session_id=session.id,
                    exam_question_id=exam_question.id,
                    question_id=exam_question.question_id,
                    question_option_id=option.id,
                    score=option.score,
                    answered_at=now,
                )
            else:
                answer.question_option_id = option.id
                answer.score = option.score
                answer.answered_at = now

            self.db.add(answer)
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            if not isinstance(exc, ExamExpired):
                logger.warning(
                    "Rejected answer for session %s question %s: %s",
                    session_id,
                    exam_question_id,
                    exc,
                )
            raise

        self.db.refresh(answer)
        return answer

    def submit_answer(self, user_id: str, exam_question_id: int, option_id: int) -> UserAnswer:
        session = self.get_active_session(user_id)
        return self.submit_exam_answer(session.id, exam_question_id, option_id)

    def answered_count(self, session_id: int) -> int:
        return (
            self.db.query(func.count(UserAnswer.id))
            .filter(UserAnswer.exam_session_id == session_id)
            .scalar()
        )

    def answered_counts_by_category(self, session_id: int) -> Dict[str, int]:
        rows = (
            self.db.query(ExamQuestion.category, func.count(UserAnswer.id))
            .select_from(UserAnswer)
            .join(ExamQuestion, ExamQuestion.id == UserAnswer.exam_question_id)
            .filter(UserAnswer.exam_session_id == session_id)
            .group_by(ExamQuestion.category)
            .all()
        )
        return {category: count for category, count in rows}

    def get_user_answers(self, user_id: str) -> Dict[int, int]:
        """exam_question_id -> chosen option id for the active session."""
        session = (
            self.db.query(ExamSession)
            .filter(
                ExamSession.user_id == user_id,
                ExamSession.status.in_(ExamStatus.ACTIVE),
            )
            .order_by(ExamSession.created_at.desc(), ExamSession.id.desc())
            .first()
        )
        if session is None:
            return {}

        answers = (
            self.db.query(UserAnswer)
            .filter(UserAnswer.exam_session_id == session.id)
            .all()
        )
        return {a.exam_question_id: a.question_option_id for a in answers}

    # ------------------------------------------------------------------
    # completion / scoring
    # ------------------------------------------------------------------

    def complete_exam(self, session_id: int) -> ExamSummary:
        """
        Close the session and persist one ExamResult per category plus the
        ExamSummary, all in one transaction.
        """
        try:
            session = self._get_session(session_id)
            if session.status == ExamStatus.COMPLETED:
                raise ExamAlreadyCompleted("exam has already been completed")
            if session.status == ExamStatus.EXPIRED:
                raise ExamExpired("exam has expired")

            now = self.clock()
            session.status = ExamStatus.COMPLETED
            session.completed_at = now
            self.db.add(session)

            total_score = 0
            total_answered = 0
            for category in self.rules.categories:
                answered, score = self._category_stats(session.id, category)
                max_score = self.rules.max_scores[category]
                percentage = score / max_score * 100.0

                self.db.add(
                    ExamResult(
                        exam_session_id=session.id,
                        category=category,
                        total_questions=self.rules.quotas[category],
                        total_answered=answered,
                        total_score=score,
                        max_score=max_score,
                        percentage=percentage,
                        grade=calculate_grade(percentage),
                        is_passed=percentage >= self.rules.thresholds[category],
                    )
                )
                total_score += score
                total_answered += answered

            overall_percentage = total_score / self.rules.overall_max_score * 100.0
            summary = ExamSummary(
                exam_session_id=session.id,
                user_id=session.user_id,
                total_questions=self.rules.total_questions,
                total_answered=total_answered,
                total_score=total_score,
                max_score=self.rules.overall_max_score,
                overall_percentage=overall_percentage,
                overall_grade=calculate_grade(overall_percentage),
                is_passed=overall_percentage >= self.rules.overall_threshold,
                completed_at=now,
            )
            self.db.add(summary)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(summary)
        logger.info(
            "Completed exam session %s: %d/%d (%.2f%%) grade %s",
            session_id,
            summary.total_score,
            summary.max_score,
            summary.overall_percentage,
            summary.overall_grade,
        )
        return summary

    def complete_session(self, user_id: str) -> ExamSummary:
        session = self.get_active_session(user_id)
        return self.complete_exam(session.id)

    def get_results(self, user_id: str) -> Tuple[ExamSummary, List[ExamResult]]:
        summary = (
            self.db.query(ExamSummary)
            .filter(ExamSummary.user_id == user_id)
            .order_by(ExamSummary.completed_at.desc(), ExamSummary.id.desc())
            .first()
        )
        if summary is None:
            raise ResultsNotFound(f"exam summary not found for user {user_id}")

        results = (
            self.db.query(ExamResult)
            .filter(ExamResult.exam_session_id == summary.exam_session_id)
            .order_by(ExamResult.category.asc())
            .all()
        )
        return summary, results

    def get_detailed_answers(self, user_id: str) -> DetailedAnswersByCategory:
        """
        Answers of the latest completed exam grouped by category, each
        compared against the question's best option.
        """
        session = (
            self.db.query(ExamSession)
            .filter(
                ExamSession.user_id == user_id,
                ExamSession.status == ExamStatus.COMPLETED,
            )
            .order_by(ExamSession.created_at.desc(), ExamSession.id.desc())
            .first()
        )
        if session is None:
            raise ResultsNotFound(f"no completed exam session found for user {user_id}")

        answers = (
            self.db.query(UserAnswer)
            .join(ExamQuestion, ExamQuestion.id == UserAnswer.exam_question_id)
            .options(
                selectinload(UserAnswer.exam_question)
                .selectinload(ExamQuestion.question)
                .selectinload(Question.options),
                selectinload(UserAnswer.question_option),
            )
            .filter(UserAnswer.exam_session_id == session.id)
            .order_by(ExamQuestion.order_number.asc())
            .all()
        )

        grouped: DetailedAnswersByCategory = {c: [] for c in self.rules.categories}
        for answer in answers:
            question = answer.exam_question.question
            best = question_service.best_option(question)
            grouped.setdefault(answer.exam_question.category, []).append(
                projection.to_detailed_answer(answer, question=question, best=best)
            )
        return grouped

    # ------------------------------------------------------------------
    # dashboards
    # ------------------------------------------------------------------

    def get_dashboard(self, user_id: str) -> dashboard_service.Dashboard:
        return dashboard_service.build_user_dashboard(self, user_id)

    def get_all_users_dashboard(self) -> UserListDashboard:
        return dashboard_service.build_all_users_dashboard(self)

    # ------------------------------------------------------------------

    def _session_query(self):
        return self.db.query(ExamSession).options(
            selectinload(ExamSession.exam_questions)
            .selectinload(ExamQuestion.question)
            .selectinload(Question.options)
        )

    def _load_session(self, session_id: int) -> ExamSession:
        session = self._session_query().filter(ExamSession.id == session_id).first()
        if session is None:
            raise SessionNotFound(f"exam session {session_id} not found")
        return session

    def _get_session(self, session_id: int) -> ExamSession:
        session = self.db.get(ExamSession, session_id)
        if session is None:
            raise SessionNotFound(f"exam session {session_id} not found")
        return session

    def _category_stats(self, session_id: int, category: str) -> Tuple[int, int]:
        answered, score = (
            self.db.query(
                func.count(UserAnswer.id),
                func.coalesce(func.sum(UserAnswer.score), 0),
            )
            .select_from(UserAnswer)
            .join(ExamQuestion, ExamQuestion.id == UserAnswer.exam_question_id)
            .filter(
                UserAnswer.exam_session_id == session_id,
                ExamQuestion.category == category,
            )
            .one()
        )
        return int(answered), int(score)
