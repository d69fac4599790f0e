"""
Integration tests for the vocabulary drill: service and API.
"""
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from src.core.errors import NotFoundError, ValidationError
from src.db.models import UserStreak, VocabularyAttempt, VocabularyProgress, utcnow
from src.practice import VocabularyService


class TestWordLists:
    def test_active_categories_in_letter_order(self, db_session, word_list):
        categories = VocabularyService(db_session).list_categories()
        assert [category["letter"] for category in categories] == ["A", "B"]

    def test_words_sorted_alphabetically(self, db_session, word_list):
        words = VocabularyService(db_session).list_words(word_list.letter_a.id)
        assert [word["word"] for word in words] == ["abate", "abundant"]
        assert words[0]["part_of_speech"] == "verb"

    def test_word_in_other_category_is_not_found(self, db_session, word_list):
        service = VocabularyService(db_session)
        assert service.get_word(word_list.letter_b.id, word_list.benevolent.id)["word"] == "benevolent"
        with pytest.raises(NotFoundError):
            service.get_word(word_list.letter_a.id, word_list.benevolent.id)


class TestTrackAttempt:
    def test_attempt_is_logged(self, db_session, word_list, user_id):
        attempt = VocabularyService(db_session).track_attempt(
            user_id, word_list.abate.id, "definition", True, response="to lessen", time_spent=8
        )
        assert attempt["is_successful"] is True
        assert attempt["time_spent"] == 8
        assert db_session.scalar(select(func.count(VocabularyAttempt.id))) == 1

    @pytest.mark.parametrize(
        "vocabulary_id,step_type",
        [(None, "definition"), (1, None), (1, "spelling")],
    )
    def test_invalid_input_is_rejected(self, db_session, word_list, user_id, vocabulary_id, step_type):
        with pytest.raises(ValidationError):
            VocabularyService(db_session).track_attempt(user_id, vocabulary_id, step_type, True)
        assert db_session.scalar(select(func.count(VocabularyAttempt.id))) == 0

    def test_unknown_word_is_not_found(self, db_session, word_list, user_id):
        with pytest.raises(NotFoundError):
            VocabularyService(db_session).track_attempt(user_id, 9999, "usage", True)


class TestUpdateMastery:
    def test_steps_accumulate_into_mastery(self, db_session, word_list, user_id):
        service = VocabularyService(db_session)
        service.update_mastery(user_id, word_list.abate.id, "definition", True)
        progress = service.update_mastery(user_id, word_list.abate.id, "synonym", True)

        assert progress["mastery_level"] == 2
        assert progress["step_completion"] == {
            "definition": True,
            "usage": False,
            "synonym": True,
            "antonym": False,
        }
        assert db_session.scalar(select(func.count(VocabularyProgress.id))) == 1

    def test_failed_step_lowers_mastery(self, db_session, word_list, user_id):
        service = VocabularyService(db_session)
        service.update_mastery(user_id, word_list.abate.id, "usage", True)
        progress = service.update_mastery(user_id, word_list.abate.id, "usage", False)
        assert progress["mastery_level"] == 0

    def test_progress_is_per_user(self, db_session, word_list, user_id, other_user_id):
        service = VocabularyService(db_session)
        service.update_mastery(user_id, word_list.abate.id, "usage", True)
        other = service.update_mastery(other_user_id, word_list.abate.id, "antonym", True)
        assert other["step_completion"]["usage"] is False
        assert db_session.scalar(select(func.count(VocabularyProgress.id))) == 2

    def test_invalid_step_type(self, db_session, word_list, user_id):
        with pytest.raises(ValidationError):
            VocabularyService(db_session).update_mastery(user_id, word_list.abate.id, "spelling", True)


class TestUpdateStreak:
    def test_first_activity(self, db_session, user_id):
        streak = VocabularyService(db_session).update_streak(user_id)
        assert (streak["current_streak"], streak["longest_streak"]) == (1, 1)

    def test_consecutive_days_then_break(self, db_session, user_id):
        service = VocabularyService(db_session)
        start = utcnow() - timedelta(days=10)
        service.update_streak(user_id, now=start)
        service.update_streak(user_id, now=start + timedelta(hours=2))
        service.update_streak(user_id, now=start + timedelta(days=1, hours=3))
        third = service.update_streak(user_id, now=start + timedelta(days=2, hours=4))
        assert (third["current_streak"], third["longest_streak"]) == (3, 3)

        broken = service.update_streak(user_id, now=start + timedelta(days=6))
        assert (broken["current_streak"], broken["longest_streak"]) == (1, 3)
        assert db_session.scalar(select(func.count(UserStreak.id))) == 1


class TestMetrics:
    def test_no_activity(self, db_session, user_id):
        metrics = VocabularyService(db_session).get_metrics(user_id)
        assert metrics == {
            "success_rate": 0.0,
            "current_streak": 0,
            "average_attempts": 0.0,
            "total_words": 0,
            "performance_by_type": [],
            "recent_activity": [],
        }

    def test_dashboard_figures(self, db_session, word_list, user_id, other_user_id):
        service = VocabularyService(db_session)
        service.track_attempt(user_id, word_list.abate.id, "definition", True)
        service.track_attempt(user_id, word_list.abate.id, "usage", False)
        service.track_attempt(user_id, word_list.abate.id, "usage", True)
        service.track_attempt(user_id, word_list.benevolent.id, "definition", False)
        service.track_attempt(user_id, word_list.abundant.id, "definition", True)
        service.track_attempt(user_id, word_list.abundant.id, "synonym", True)
        service.track_attempt(other_user_id, word_list.abate.id, "definition", False)
        service.update_mastery(user_id, word_list.abate.id, "definition", True)
        service.update_mastery(user_id, word_list.abundant.id, "synonym", True)
        service.update_streak(user_id)

        metrics = service.get_metrics(user_id)

        # 4 of 6 successful over 3 distinct words
        assert metrics["success_rate"] == 66.7
        assert metrics["average_attempts"] == 2.0
        assert metrics["total_words"] == 2
        assert metrics["current_streak"] == 1
        assert metrics["performance_by_type"] == [
            {"category": "definition", "value": 66.67},
            {"category": "synonym", "value": 100.0},
            {"category": "usage", "value": 50.0},
        ]
        assert len(metrics["recent_activity"]) == 5
        assert metrics["recent_activity"][0]["word"] == "abundant"
        assert metrics["recent_activity"][0]["step_type"] == "synonym"


class TestVocabularyEndpoints:
    def test_categories_and_words(self, client, word_list):
        categories = client.get("/api/vocabulary/categories").json()["categories"]
        assert [category["letter"] for category in categories] == ["A", "B"]

        words = client.get(f"/api/vocabulary/categories/{word_list.letter_a.id}/words").json()["words"]
        assert [word["word"] for word in words] == ["abate", "abundant"]

        response = client.get(f"/api/vocabulary/categories/{word_list.letter_a.id}/words/{word_list.benevolent.id}")
        assert response.status_code == 404

    def test_drill_flow(self, client, word_list, auth_headers):
        step = {"vocabulary_id": word_list.abate.id, "step_type": "definition", "is_successful": True}

        attempt = client.post("/api/vocabulary/attempts", json={**step, "time_spent": 5}, headers=auth_headers)
        assert attempt.status_code == 200
        assert attempt.json()["step_type"] == "definition"

        progress = client.put("/api/vocabulary/mastery", json=step, headers=auth_headers)
        assert progress.status_code == 200
        assert progress.json()["mastery_level"] == 1

        streak = client.post("/api/vocabulary/streak", headers=auth_headers)
        assert streak.json()["current_streak"] == 1

        metrics = client.get("/api/vocabulary/metrics", headers=auth_headers).json()["metrics"]
        assert metrics["success_rate"] == 100.0
        assert metrics["total_words"] == 1

    def test_invalid_step_is_bad_request(self, client, word_list, auth_headers):
        response = client.post(
            "/api/vocabulary/mastery",
            json={"vocabulary_id": word_list.abate.id, "step_type": "spelling"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_missing_fields_are_bad_request(self, client, word_list, auth_headers):
        response = client.post("/api/vocabulary/attempts", json={"is_successful": True}, headers=auth_headers)
        assert response.status_code == 400

    def test_drill_requires_user(self, client, word_list):
        assert client.get("/api/vocabulary/metrics").status_code == 401
        assert client.post("/api/vocabulary/streak").status_code == 401
