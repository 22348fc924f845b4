# pppk_exam/models/exam.py
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pppk_exam.db.base import Base


class ExamStatus:
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"

    ACTIVE = (NOT_STARTED, IN_PROGRESS)


class ExamSession(Base):
    __tablename__ = "exam_sessions"

    id = Column(Integer, primary_key=True, index=True)
    # opaque, supplied by the caller
    user_id = Column(String(50), nullable=False, index=True)
    session_code = Column(String(100), nullable=False, unique=True)

    # NOT_STARTED / IN_PROGRESS / COMPLETED / EXPIRED
    status = Column(String(20), nullable=False, default=ExamStatus.NOT_STARTED, index=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    duration = Column(Integer, nullable=False)  # minutes

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    exam_questions = relationship(
        "ExamQuestion",
        back_populates="exam_session",
        cascade="all, delete-orphan",
        order_by="ExamQuestion.order_number",
    )


class ExamQuestion(Base):
    __tablename__ = "exam_questions"

    id = Column(Integer, primary_key=True, index=True)
    exam_session_id = Column(
        Integer, ForeignKey("exam_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)

    # copied from the question at assignment time
    category = Column(String(100), nullable=False, index=True)
    order_number = Column(Integer, nullable=False)

    exam_session = relationship("ExamSession", back_populates="exam_questions")
    question = relationship("Question")


class UserAnswer(Base):
    __tablename__ = "user_answers"
    __table_args__ = (
        UniqueConstraint("exam_session_id", "exam_question_id", name="uq_answer_per_exam_question"),
    )

    id = Column(Integer, primary_key=True, index=True)
    exam_session_id = Column(
        Integer, ForeignKey("exam_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    exam_question_id = Column(
        Integer, ForeignKey("exam_questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    question_option_id = Column(Integer, ForeignKey("question_options.id"), nullable=False)

    # option score at answer time
    score = Column(Integer, nullable=False)
    answered_at = Column(DateTime(timezone=True), nullable=False)

    exam_question = relationship("ExamQuestion")
    question_option = relationship("QuestionOption")


class ExamResult(Base):
    __tablename__ = "exam_results"

    id = Column(Integer, primary_key=True, index=True)
    exam_session_id = Column(
        Integer, ForeignKey("exam_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category = Column(String(100), nullable=False)

    total_questions = Column(Integer, nullable=False)
    total_answered = Column(Integer, nullable=False)
    total_score = Column(Integer, nullable=False)
    max_score = Column(Integer, nullable=False)
    percentage = Column(Float, nullable=False)
    grade = Column(String(5), nullable=False)
    is_passed = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ExamSummary(Base):
    __tablename__ = "exam_summaries"

    id = Column(Integer, primary_key=True, index=True)
    exam_session_id = Column(
        Integer, ForeignKey("exam_sessions.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    user_id = Column(String(50), nullable=False, index=True)

    total_questions = Column(Integer, nullable=False)
    total_answered = Column(Integer, nullable=False)
    total_score = Column(Integer, nullable=False)
    max_score = Column(Integer, nullable=False)
    overall_percentage = Column(Float, nullable=False)
    overall_grade = Column(String(5), nullable=False)
    is_passed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    exam_session = relationship("ExamSession")
