import random
from datetime import timedelta

import pytest

from pppk_exam.core.clock import as_utc
from pppk_exam.core.exam_rules import DEFAULT_RULES
from pppk_exam.models.exam import (
    ExamQuestion,
    ExamResult,
    ExamSession,
    ExamStatus,
    ExamSummary,
    UserAnswer,
)
from pppk_exam.services.errors import (
    ExamAlreadyCompleted,
    ExamExpired,
    ExamNotStarted,
    InsufficientQuestions,
    OptionNotFound,
    QuestionNotInSession,
    ResultsNotFound,
    SessionNotFound,
)
from pppk_exam.services.exam_service import ExamService
from tests.factories import (
    SMALL_RULES,
    T0,
    FakeClock,
    best_option_id,
    make_bank,
    worst_option_id,
)


def _started(service, user_id="42"):
    session = service.create_session(user_id)
    service.start_exam(session.id)
    return service.get_active_session(user_id)


class TestSessionCreation:
    def test_assigns_every_quota(self, service, small_bank):
        session = service.create_session("42")

        assert session.status == ExamStatus.NOT_STARTED
        assert session.session_code == f"EXAM_42_{int(T0.timestamp())}"
        assert session.duration == 130
        assert as_utc(session.expires_at) == T0 + timedelta(minutes=130)

        categories = [eq.category for eq in session.exam_questions]
        assert categories == ["TEKNIS"] * 3 + ["MANAJERIAL"] * 2
        assert [eq.order_number for eq in session.exam_questions] == [1, 2, 3, 4, 5]

        question_ids = [eq.question_id for eq in session.exam_questions]
        assert len(set(question_ids)) == len(question_ids)
        for eq in session.exam_questions:
            assert eq.question.category == eq.category

    def test_insufficient_bank_persists_nothing(self, db_session, clock):
        make_bank(
            db_session,
            sizes={"TEKNIS": 6, "MANAJERIAL": 1},
            top_scores={"TEKNIS": 5, "MANAJERIAL": 4},
        )
        service = ExamService(db_session, SMALL_RULES, clock=clock)
        with pytest.raises(InsufficientQuestions):
            service.create_session("42")

        assert db_session.query(ExamSession).count() == 0
        assert db_session.query(ExamQuestion).count() == 0

    def test_rejects_blank_user(self, service, small_bank):
        with pytest.raises(ValueError):
            service.create_session("  ")

    def test_get_or_create_reuses_active_session(self, service, small_bank, clock):
        first = service.get_or_create_session("42")
        clock.advance(minutes=5)
        second = service.get_or_create_session("42")

        assert first.id == second.id
        assert service.db.query(ExamSession).count() == 1

    def test_sessions_are_per_user(self, service, small_bank):
        a = service.get_or_create_session("a")
        b = service.get_or_create_session("b")
        assert a.id != b.id

    def test_full_default_composition(self, db_session, clock):
        make_bank(
            db_session,
            sizes={"TEKNIS": 95, "MANAJERIAL": 30, "SOSIAL KULTURAL": 22, "WAWANCARA": 10},
            top_scores={"TEKNIS": 5, "MANAJERIAL": 4, "SOSIAL KULTURAL": 5, "WAWANCARA": 4},
        )
        service = ExamService(db_session, DEFAULT_RULES, rng=random.Random(0), clock=clock)

        session = service.create_session("42")

        assert len(session.exam_questions) == 145
        orders = [eq.order_number for eq in session.exam_questions]
        assert orders == list(range(1, 146))
        categories = [eq.category for eq in session.exam_questions]
        assert categories == (
            ["TEKNIS"] * 90 + ["MANAJERIAL"] * 25 + ["SOSIAL KULTURAL"] * 20 + ["WAWANCARA"] * 10
        )
        assert len({eq.question_id for eq in session.exam_questions}) == 145

        service.start_exam(session.id)
        for eq in session.exam_questions:
            service.submit_exam_answer(session.id, eq.id, best_option_id(eq))
        summary = service.complete_exam(session.id)

        assert summary.total_questions == 145
        assert summary.total_answered == 145
        assert summary.total_score == 690
        assert summary.overall_percentage == 100.0
        assert summary.overall_grade == "A"
        assert summary.is_passed is True


class TestExpirySweep:
    def test_sweep_expires_stale_active_sessions(self, service, small_bank, clock):
        session = service.create_session("42")
        clock.advance(minutes=131)

        assert service.expire_stale_sessions() == 1
        service.db.expire_all()
        assert service.db.get(ExamSession, session.id).status == ExamStatus.EXPIRED

    def test_sweep_leaves_fresh_and_completed_sessions(self, service, small_bank, clock):
        done = _started(service, "a")
        service.complete_exam(done.id)
        service.create_session("b")
        clock.advance(minutes=60)

        assert service.expire_stale_sessions() == 0

    def test_expired_session_is_not_active(self, service, small_bank, clock):
        old = service.create_session("42")
        clock.advance(minutes=131)

        with pytest.raises(SessionNotFound):
            service.get_active_session("42")

        fresh = service.get_or_create_session("42")
        assert fresh.id != old.id
        assert fresh.status == ExamStatus.NOT_STARTED


class TestStart:
    def test_start_moves_to_in_progress(self, service, small_bank, clock):
        session = service.create_session("42")
        clock.advance(minutes=1)

        started = service.start_session("42")

        assert started.id == session.id
        assert started.status == ExamStatus.IN_PROGRESS
        assert as_utc(started.started_at) == T0 + timedelta(minutes=1)

    def test_start_twice_keeps_first_timestamp(self, service, small_bank, clock):
        session = service.create_session("42")
        service.start_exam(session.id)
        clock.advance(minutes=5)

        again = service.start_exam(session.id)

        assert again.status == ExamStatus.IN_PROGRESS
        assert as_utc(again.started_at) == T0

    def test_start_completed_session_fails(self, service, small_bank):
        session = _started(service)
        service.complete_exam(session.id)

        with pytest.raises(ExamAlreadyCompleted):
            service.start_exam(session.id)

    def test_start_without_session(self, service, small_bank):
        with pytest.raises(SessionNotFound):
            service.start_session("nobody")


class TestSubmitAnswer:
    def test_first_answer_snapshots_score(self, service, small_bank, clock):
        session = _started(service)
        eq = session.exam_questions[0]
        clock.advance(minutes=3)

        answer = service.submit_exam_answer(session.id, eq.id, best_option_id(eq))

        assert answer.score == 5
        assert answer.question_id == eq.question_id
        assert as_utc(answer.answered_at) == T0 + timedelta(minutes=3)

    def test_reanswer_overwrites_single_row(self, service, small_bank, clock):
        session = _started(service)
        eq = session.exam_questions[0]

        service.submit_exam_answer(session.id, eq.id, best_option_id(eq))
        clock.advance(minutes=1)
        service.submit_exam_answer(session.id, eq.id, worst_option_id(eq))

        rows = service.db.query(UserAnswer).filter(UserAnswer.exam_question_id == eq.id).all()
        assert len(rows) == 1
        assert rows[0].question_option_id == worst_option_id(eq)
        assert rows[0].score == 0
        assert as_utc(rows[0].answered_at) == T0 + timedelta(minutes=1)

    def test_snapshot_survives_later_score_edit(self, service, small_bank):
        session = _started(service)
        eq = session.exam_questions[0]
        option_id = best_option_id(eq)
        service.submit_exam_answer(session.id, eq.id, option_id)

        option = next(o for o in eq.question.options if o.id == option_id)
        option.score = 1
        service.db.commit()

        answer = service.db.query(UserAnswer).one()
        assert answer.score == 5

    def test_completed_session_rejects_any_payload(self, service, small_bank):
        session = _started(service)
        service.complete_exam(session.id)

        with pytest.raises(ExamAlreadyCompleted):
            service.submit_exam_answer(session.id, 99999, 99999)

    def test_expired_session_rejects(self, service, small_bank, clock):
        session = _started(service)
        clock.advance(minutes=131)
        service.expire_stale_sessions()

        with pytest.raises(ExamExpired):
            service.submit_exam_answer(session.id, 99999, 99999)

    def test_not_started_session_rejects(self, service, small_bank):
        session = service.create_session("42")
        eq = session.exam_questions[0]

        with pytest.raises(ExamNotStarted):
            service.submit_exam_answer(session.id, eq.id, best_option_id(eq))

    def test_unknown_session(self, service, small_bank):
        with pytest.raises(SessionNotFound):
            service.submit_exam_answer(12345, 1, 1)

    def test_late_answer_expires_session(self, service, small_bank, clock, session_factory):
        session = _started(service)
        eq = session.exam_questions[0]
        clock.advance(minutes=130, seconds=1)

        with pytest.raises(ExamExpired):
            service.submit_exam_answer(session.id, eq.id, best_option_id(eq))

        other = session_factory()
        try:
            assert other.get(ExamSession, session.id).status == ExamStatus.EXPIRED
            assert other.query(UserAnswer).count() == 0
        finally:
            other.close()

    def test_unknown_option(self, service, small_bank):
        session = _started(service)
        eq = session.exam_questions[0]

        with pytest.raises(OptionNotFound):
            service.submit_exam_answer(session.id, eq.id, 99999)

    def test_option_of_another_question(self, service, small_bank):
        session = _started(service)
        first, second = session.exam_questions[:2]

        with pytest.raises(OptionNotFound):
            service.submit_exam_answer(session.id, first.id, best_option_id(second))
        assert service.db.query(UserAnswer).count() == 0

    def test_question_from_another_session(self, service, small_bank, clock):
        mine = _started(service, "a")
        theirs = _started(service, "b")
        foreign = theirs.exam_questions[0]

        with pytest.raises(QuestionNotInSession):
            service.submit_exam_answer(mine.id, foreign.id, best_option_id(foreign))
        assert service.db.query(UserAnswer).count() == 0

    def test_submit_by_user(self, service, small_bank):
        session = _started(service)
        eq = session.exam_questions[-1]

        answer = service.submit_answer("42", eq.id, best_option_id(eq))

        assert answer.exam_session_id == session.id
        assert service.get_user_answers("42") == {eq.id: best_option_id(eq)}

    def test_user_answers_empty_without_active_session(self, service, small_bank):
        assert service.get_user_answers("42") == {}


class TestCompletion:
    def test_perfect_exam(self, service, small_bank):
        session = _started(service)
        for eq in session.exam_questions:
            service.submit_exam_answer(session.id, eq.id, best_option_id(eq))

        summary = service.complete_exam(session.id)

        assert summary.user_id == "42"
        assert summary.total_questions == 5
        assert summary.total_answered == 5
        assert summary.total_score == 23
        assert summary.max_score == 23
        assert summary.overall_percentage == 100.0
        assert summary.overall_grade == "A"
        assert summary.is_passed is True

        service.db.expire_all()
        assert service.db.get(ExamSession, session.id).status == ExamStatus.COMPLETED

    def test_partial_exam_per_category(self, service, small_bank):
        session = _started(service)
        for eq in session.exam_questions:
            if eq.category == "TEKNIS":
                service.submit_exam_answer(session.id, eq.id, best_option_id(eq))

        summary = service.complete_exam(session.id)
        _, results = service.get_results("42")
        by_category = {r.category: r for r in results}

        teknis = by_category["TEKNIS"]
        assert (teknis.total_answered, teknis.total_score, teknis.max_score) == (3, 15, 15)
        assert teknis.percentage == 100.0
        assert teknis.grade == "A"
        assert teknis.is_passed is True

        manajerial = by_category["MANAJERIAL"]
        assert (manajerial.total_answered, manajerial.total_score) == (0, 0)
        assert manajerial.total_questions == 2
        assert manajerial.percentage == 0.0
        assert manajerial.grade == "E"
        assert manajerial.is_passed is False

        assert summary.total_score == 15
        assert summary.overall_percentage == pytest.approx(15 / 23 * 100)
        assert summary.overall_grade == "E"
        assert summary.is_passed is False

    def test_category_threshold(self, service, small_bank):
        session = _started(service)
        teknis = [eq for eq in session.exam_questions if eq.category == "TEKNIS"]
        # 5 + 5 + 1 = 11 / 15 -> 73.3%
        service.submit_exam_answer(session.id, teknis[0].id, best_option_id(teknis[0]))
        service.submit_exam_answer(session.id, teknis[1].id, best_option_id(teknis[1]))
        ragu = next(o for o in teknis[2].question.options if o.score == 1)
        service.submit_exam_answer(session.id, teknis[2].id, ragu.id)

        service.complete_exam(session.id)
        _, results = service.get_results("42")
        result = next(r for r in results if r.category == "TEKNIS")

        assert result.total_score == 11
        assert result.grade == "D"
        assert result.is_passed is False

    def test_results_written_once(self, service, small_bank):
        session = _started(service)
        service.complete_exam(session.id)

        with pytest.raises(ExamAlreadyCompleted):
            service.complete_exam(session.id)
        with pytest.raises(SessionNotFound):
            service.complete_session("42")

        assert service.db.query(ExamSummary).count() == 1
        assert service.db.query(ExamResult).count() == 2

    def test_expired_session_cannot_complete(self, service, small_bank, clock):
        session = _started(service)
        clock.advance(minutes=131)
        service.expire_stale_sessions()

        with pytest.raises(ExamExpired):
            service.complete_exam(session.id)
        assert service.db.query(ExamSummary).count() == 0

    def test_results_ordered_by_category_name(self, service, small_bank):
        service.complete_session(_started(service).user_id)

        summary, results = service.get_results("42")

        assert [r.category for r in results] == ["MANAJERIAL", "TEKNIS"]
        assert all(r.exam_session_id == summary.exam_session_id for r in results)

    def test_results_latest_summary_wins(self, service, small_bank, clock):
        first = _started(service)
        service.complete_exam(first.id)
        clock.advance(minutes=10)
        second = _started(service)
        for eq in second.exam_questions:
            service.submit_exam_answer(second.id, eq.id, best_option_id(eq))
        service.complete_exam(second.id)

        summary, _ = service.get_results("42")
        assert summary.exam_session_id == second.id
        assert summary.overall_grade == "A"

    def test_no_results(self, service, small_bank):
        service.create_session("42")
        with pytest.raises(ResultsNotFound):
            service.get_results("42")


class TestDetailedAnswers:
    def test_grouped_by_category(self, service, small_bank):
        session = _started(service)
        teknis = [eq for eq in session.exam_questions if eq.category == "TEKNIS"]
        service.submit_exam_answer(session.id, teknis[0].id, best_option_id(teknis[0]))
        service.submit_exam_answer(session.id, teknis[1].id, worst_option_id(teknis[1]))
        service.complete_exam(session.id)

        detailed = service.get_detailed_answers("42")

        assert list(detailed) == ["TEKNIS", "MANAJERIAL"]
        assert detailed["MANAJERIAL"] == []
        right, wrong = detailed["TEKNIS"]
        assert right.order_number < wrong.order_number
        assert right.is_correct is True
        assert right.selected_option == "Setuju"
        assert (right.score, right.max_score) == (5, 5)
        assert wrong.is_correct is False
        assert wrong.selected_option == "Tidak setuju"
        assert (wrong.correct_option, wrong.correct_score) == ("Setuju", 5)

    def test_requires_completed_exam(self, service, small_bank):
        _started(service)
        with pytest.raises(ResultsNotFound):
            service.get_detailed_answers("42")


def test_clock_is_injected(db_session, small_bank):
    clock = FakeClock(T0 + timedelta(days=1))
    service = ExamService(db_session, SMALL_RULES, clock=clock)
    session = service.create_session("7")
    assert as_utc(session.created_at) == T0 + timedelta(days=1)
