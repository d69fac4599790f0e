"""
Integration tests for attempt recording and session resolution.
"""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from src.core.errors import NotFoundError, ValidationError
from src.db.models import QuestionAttempt, SessionStatus, TestSession, utcnow
from src.practice import AttemptRecorder


def _attempt_count(session, session_id, question_id=None):
    query = select(func.count(QuestionAttempt.id)).where(QuestionAttempt.test_session_id == session_id)
    if question_id is not None:
        query = query.where(QuestionAttempt.question_id == question_id)
    return session.scalar(query)


class TestRecordAttempt:
    def test_first_attempt_creates_session(self, db_session, catalog, maths, user_id):
        question = catalog.linear_questions[0]
        outcome = AttemptRecorder(maths, db_session).record_attempt(
            user_id, question.id, catalog.linear.id, is_correct=True, user_answer="a", time_spent=12
        )

        assert outcome.already_attempted is False
        assert (outcome.total_questions, outcome.correct_answers, outcome.score) == (1, 1, 100)
        test_session = db_session.get(TestSession, outcome.session_id)
        assert test_session.user_id == user_id
        assert test_session.status == SessionStatus.IN_PROGRESS

    def test_duplicate_attempt_is_ignored(self, db_session, catalog, maths, user_id):
        recorder = AttemptRecorder(maths, db_session)
        question = catalog.linear_questions[0]
        first = recorder.record_attempt(user_id, question.id, catalog.linear.id, True, "a")
        second = recorder.record_attempt(
            user_id, question.id, catalog.linear.id, False, "b", session_id_hint=first.session_id
        )

        assert second.already_attempted is True
        assert second.session_id == first.session_id
        assert (second.total_questions, second.correct_answers, second.score) == (1, 1, 100)
        assert _attempt_count(db_session, first.session_id, question.id) == 1
        stored = db_session.scalar(select(QuestionAttempt).where(QuestionAttempt.question_id == question.id))
        assert stored.user_answer == "a"

    def test_aggregates_count_distinct_questions(self, db_session, catalog, maths, user_id):
        recorder = AttemptRecorder(maths, db_session)
        outcomes = [
            recorder.record_attempt(user_id, q.id, catalog.linear.id, index % 3 != 0)
            for index, q in enumerate(catalog.linear_questions[:6])
        ]
        last = outcomes[-1]
        # Indexes 0 and 3 are incorrect
        assert (last.total_questions, last.correct_answers) == (6, 4)
        assert last.score == 67
        assert len({o.session_id for o in outcomes}) == 1

    def test_hint_for_another_users_session_is_not_used(self, db_session, catalog, maths, user_id, other_user_id):
        recorder = AttemptRecorder(maths, db_session)
        foreign = recorder.init_session(other_user_id, catalog.linear.id)
        outcome = recorder.record_attempt(
            user_id, catalog.linear_questions[0].id, catalog.linear.id, True, session_id_hint=foreign
        )
        assert outcome.session_id != foreign
        assert _attempt_count(db_session, foreign) == 0

    def test_hint_for_another_subjects_session_is_not_used(self, db_session, catalog, maths, quantitative, user_id):
        foreign = AttemptRecorder(quantitative, db_session).init_session(user_id, catalog.ratios.id)
        outcome = AttemptRecorder(maths, db_session).record_attempt(
            user_id, catalog.linear_questions[0].id, catalog.linear.id, True, session_id_hint=foreign
        )
        assert outcome.session_id != foreign
        assert _attempt_count(db_session, foreign) == 0
        assert db_session.get(TestSession, outcome.session_id).subtopic_id == catalog.linear.id

    def test_hint_for_another_subtopic_is_not_used(self, db_session, catalog, maths, user_id):
        recorder = AttemptRecorder(maths, db_session)
        quad_session = recorder.init_session(user_id, catalog.quadratics.id)
        outcome = recorder.record_attempt(
            user_id, catalog.linear_questions[0].id, catalog.linear.id, True, session_id_hint=quad_session
        )
        assert outcome.session_id != quad_session
        assert _attempt_count(db_session, quad_session) == 0

    def test_completed_session_hint_starts_new_session(self, db_session, catalog, maths, user_id):
        recorder = AttemptRecorder(maths, db_session)
        first = recorder.record_attempt(user_id, catalog.linear_questions[0].id, catalog.linear.id, True)
        db_session.get(TestSession, first.session_id).status = SessionStatus.COMPLETED
        db_session.commit()

        second = recorder.record_attempt(
            user_id, catalog.linear_questions[0].id, catalog.linear.id, True, session_id_hint=first.session_id
        )
        assert second.session_id != first.session_id
        assert second.already_attempted is False

    def test_recent_session_is_reused_without_hint(self, db_session, catalog, maths, user_id):
        recorder = AttemptRecorder(maths, db_session)
        session_id = recorder.init_session(user_id, catalog.linear.id)
        outcome = recorder.record_attempt(user_id, catalog.linear_questions[0].id, catalog.linear.id, True)
        assert outcome.session_id == session_id

    def test_stale_session_is_not_reused(self, db_session, catalog, maths, user_id):
        recorder = AttemptRecorder(maths, db_session)
        session_id = recorder.init_session(user_id, catalog.linear.id)
        db_session.get(TestSession, session_id).start_time = utcnow() - timedelta(hours=2)
        db_session.commit()

        outcome = recorder.record_attempt(user_id, catalog.linear_questions[0].id, catalog.linear.id, True)
        assert outcome.session_id != session_id

    def test_sessions_are_scoped_to_subtopic(self, db_session, catalog, maths, user_id):
        recorder = AttemptRecorder(maths, db_session)
        linear = recorder.record_attempt(user_id, catalog.linear_questions[0].id, catalog.linear.id, True)
        quad = recorder.record_attempt(user_id, catalog.quadratic_questions[0].id, catalog.quadratics.id, True)
        assert linear.session_id != quad.session_id


class TestRecordAttemptErrors:
    def test_missing_ids(self, db_session, catalog, maths, user_id):
        recorder = AttemptRecorder(maths, db_session)
        with pytest.raises(ValidationError):
            recorder.record_attempt("", catalog.linear_questions[0].id, catalog.linear.id, True)
        with pytest.raises(ValidationError):
            recorder.record_attempt(user_id, None, catalog.linear.id, True)

    def test_negative_time(self, db_session, catalog, maths, user_id):
        with pytest.raises(ValidationError):
            AttemptRecorder(maths, db_session).record_attempt(
                user_id, catalog.linear_questions[0].id, catalog.linear.id, True, time_spent=-1
            )

    def test_unknown_question(self, db_session, catalog, maths, user_id):
        with pytest.raises(NotFoundError):
            AttemptRecorder(maths, db_session).record_attempt(user_id, 9999, catalog.linear.id, True)

    def test_question_outside_subtopic(self, db_session, catalog, maths, user_id):
        with pytest.raises(NotFoundError):
            AttemptRecorder(maths, db_session).record_attempt(
                user_id, catalog.quadratic_questions[0].id, catalog.linear.id, True
            )

    def test_subject_mismatch(self, db_session, catalog, quantitative, user_id):
        with pytest.raises(NotFoundError):
            AttemptRecorder(quantitative, db_session).record_attempt(
                user_id, catalog.linear_questions[0].id, catalog.linear.id, True
            )

    def test_init_session_unknown_subtopic(self, db_session, catalog, maths, user_id):
        with pytest.raises(NotFoundError):
            AttemptRecorder(maths, db_session).init_session(user_id, 9999)


class TestInitSession:
    def test_always_creates(self, db_session, catalog, maths, user_id):
        recorder = AttemptRecorder(maths, db_session)
        first = recorder.init_session(user_id, catalog.linear.id)
        second = recorder.init_session(user_id, catalog.linear.id)
        assert first != second
        assert db_session.scalar(select(func.count(TestSession.id))) == 2
