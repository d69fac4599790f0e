"""
Integration tests for session completion and progress upserts.
"""

import pytest
from sqlalchemy import func, select

from src.core.errors import NotFoundError
from src.db.models import Question, SessionStatus, SubtopicProgress, TestSession, TopicProgress
from src.practice import AttemptRecorder, SessionCompleter


def _play(recorder, user_id, catalog, results):
    """Answer the first len(results) linear questions; returns the session id."""
    outcome = None
    for question, is_correct in zip(catalog.linear_questions, results):
        outcome = recorder.record_attempt(
            user_id,
            question.id,
            catalog.linear.id,
            is_correct,
            session_id_hint=outcome.session_id if outcome else None,
        )
    return outcome.session_id


class TestCompleteSession:
    def test_aggregates_seven_of_ten(self, db_session, catalog, maths, user_id):
        session_id = _play(AttemptRecorder(maths, db_session), user_id, catalog, [True] * 7 + [False] * 3)
        summary = SessionCompleter(maths, db_session).complete_session(session_id, user_id)

        assert summary.total_questions == 10
        assert summary.correct_answers == 7
        assert summary.score == 70
        assert summary.time_spent >= 0
        assert summary.already_completed is False

        stored = db_session.get(TestSession, session_id)
        assert stored.status == SessionStatus.COMPLETED
        assert stored.end_time is not None

    def test_second_completion_is_a_no_op(self, db_session, catalog, maths, user_id):
        session_id = _play(AttemptRecorder(maths, db_session), user_id, catalog, [True, False, True])
        completer = SessionCompleter(maths, db_session)
        first = completer.complete_session(session_id, user_id)
        second = completer.complete_session(session_id, user_id)

        assert second.already_completed is True
        assert (second.total_questions, second.correct_answers, second.score, second.time_spent) == (
            first.total_questions,
            first.correct_answers,
            first.score,
            first.time_spent,
        )
        assert db_session.scalar(select(func.count(SubtopicProgress.id))) == 1
        assert db_session.scalar(select(func.count(TopicProgress.id))) == 1
        progress = db_session.scalar(select(SubtopicProgress))
        assert progress.questions_attempted == 3

    def test_progress_uses_active_question_total(self, db_session, catalog, maths, user_id):
        session_id = _play(AttemptRecorder(maths, db_session), user_id, catalog, [True, True, True, False])
        SessionCompleter(maths, db_session).complete_session(session_id, user_id)

        db_session.expire_all()
        subtopic = db_session.scalar(select(SubtopicProgress).where(SubtopicProgress.user_id == user_id))
        topic = db_session.scalar(select(TopicProgress).where(TopicProgress.user_id == user_id))
        # 3 of 12 active linear questions; 3 of 15 active algebra questions
        assert (subtopic.questions_attempted, subtopic.questions_correct, subtopic.mastery_level) == (4, 3, 25)
        assert (topic.questions_attempted, topic.questions_correct, topic.mastery_level) == (4, 3, 20)
        assert subtopic.last_attempt_at is not None

    def test_progress_is_all_time_across_sessions(self, db_session, catalog, maths, user_id):
        recorder = AttemptRecorder(maths, db_session)
        completer = SessionCompleter(maths, db_session)
        first = _play(recorder, user_id, catalog, [True, True])
        completer.complete_session(first, user_id)

        # Same two questions again in a fresh session, plus one new one
        second = recorder.init_session(user_id, catalog.linear.id)
        for question, is_correct in zip(catalog.linear_questions[:3], [False, False, True]):
            recorder.record_attempt(user_id, question.id, catalog.linear.id, is_correct, session_id_hint=second)
        completer.complete_session(second, user_id)

        db_session.expire_all()
        progress = db_session.scalar(select(SubtopicProgress))
        assert progress.questions_attempted == 3
        assert progress.questions_correct == 3
        assert progress.mastery_level == 25

    def test_mastery_is_clamped_after_deactivation(self, db_session, catalog, maths, user_id):
        session_id = _play(AttemptRecorder(maths, db_session), user_id, catalog, [True] * 4)
        # Leave only two active questions in the subtopic
        for question in catalog.linear_questions[2:]:
            db_session.get(Question, question.id).is_active = False
        db_session.commit()

        SessionCompleter(maths, db_session).complete_session(session_id, user_id)
        db_session.expire_all()
        progress = db_session.scalar(select(SubtopicProgress))
        assert progress.questions_correct == 4
        assert progress.mastery_level == 100

    def test_unknown_session(self, db_session, catalog, maths, user_id):
        with pytest.raises(NotFoundError):
            SessionCompleter(maths, db_session).complete_session(9999, user_id)

    def test_foreign_session(self, db_session, catalog, maths, user_id, other_user_id):
        session_id = _play(AttemptRecorder(maths, db_session), user_id, catalog, [True])
        with pytest.raises(NotFoundError):
            SessionCompleter(maths, db_session).complete_session(session_id, other_user_id)

    def test_session_of_other_subject(self, db_session, catalog, maths, quantitative, user_id):
        session_id = _play(AttemptRecorder(maths, db_session), user_id, catalog, [True])
        with pytest.raises(NotFoundError):
            SessionCompleter(quantitative, db_session).complete_session(session_id, user_id)

    def test_empty_session_completes_with_zero_score(self, db_session, catalog, maths, user_id):
        session_id = AttemptRecorder(maths, db_session).init_session(user_id, catalog.linear.id)
        summary = SessionCompleter(maths, db_session).complete_session(session_id, user_id)
        assert (summary.total_questions, summary.correct_answers, summary.score) == (0, 0, 0)
