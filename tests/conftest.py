"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Tests run against an in-memory SQLite database; the environment is set
before any application module reads its settings.
"""
import os
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_FILE"] = ""
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

USER_ID = "user_test_123"
OTHER_USER_ID = "user_other_456"


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (require database)")
    config.addinivalue_line("markers", "slow: Slow tests")
    config.addinivalue_line("markers", "smoke: CLI smoke tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def user_id():
    return USER_ID


@pytest.fixture
def other_user_id():
    return OTHER_USER_ID


@pytest.fixture
def db_session():
    """Fresh schema per test and a session bound to it."""
    from src.db.database import SessionLocal, drop_db, init_db

    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        drop_db()


def make_question(session, subtopic, question_type_id=1, difficulty=3, is_active=True, text=None):
    """Insert one multiple-choice question."""
    from src.db.models import Question

    question = Question(
        topic_id=subtopic.topic_id,
        subtopic_id=subtopic.id,
        question_type_id=question_type_id,
        difficulty_level_id=difficulty,
        question=text or f"Question of type {question_type_id} at level {difficulty}",
        options=[{"id": "a", "text": "1"}, {"id": "b", "text": "2"}, {"id": "c", "text": "3"}],
        correct_answer="a",
        explanation="Because.",
        is_active=is_active,
    )
    session.add(question)
    session.flush()
    return question


@pytest.fixture
def catalog(db_session):
    """
    Seeded catalog.

    maths / Algebra:
        linear     - 12 questions: types 1, 2, 3 (4 each), difficulty 1-4
        quadratics - 3 questions
        fractions  - empty
    quantitative / Reasoning:
        ratios     - 2 questions
    """
    from src.db.models import Subtopic, Topic

    algebra = Topic(subject="maths", name="Algebra", description="Equations")
    reasoning = Topic(subject="quantitative", name="Reasoning", description="Quantitative reasoning")
    db_session.add_all([algebra, reasoning])
    db_session.flush()

    linear = Subtopic(topic_id=algebra.id, name="Linear Equations")
    quadratics = Subtopic(topic_id=algebra.id, name="Quadratics")
    fractions = Subtopic(topic_id=algebra.id, name="Fractions")
    ratios = Subtopic(topic_id=reasoning.id, name="Ratios")
    db_session.add_all([linear, quadratics, fractions, ratios])
    db_session.flush()

    linear_questions = [
        make_question(db_session, linear, question_type_id=type_id, difficulty=1 + index % 4)
        for type_id in (1, 2, 3)
        for index in range(4)
    ]
    quadratic_questions = [make_question(db_session, quadratics, question_type_id=4) for _ in range(3)]
    ratio_questions = [make_question(db_session, ratios, question_type_id=7) for _ in range(2)]
    db_session.commit()

    return SimpleNamespace(
        algebra=algebra,
        reasoning=reasoning,
        linear=linear,
        quadratics=quadratics,
        fractions=fractions,
        ratios=ratios,
        linear_questions=linear_questions,
        quadratic_questions=quadratic_questions,
        ratio_questions=ratio_questions,
    )


@pytest.fixture
def maths():
    from src.core.subjects import get_profile

    return get_profile("maths")


@pytest.fixture
def quantitative():
    from src.core.subjects import get_profile

    return get_profile("quantitative")


@pytest.fixture
def client(catalog):
    """API client over the seeded database."""
    from fastapi.testclient import TestClient

    from src.api.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(user_id):
    return {"X-User-Id": user_id}


@pytest.fixture
def question_factory(db_session):
    """``make_question`` bound to the test session."""

    def factory(subtopic, **kwargs):
        return make_question(db_session, subtopic, **kwargs)

    return factory


@pytest.fixture
def word_list(db_session):
    """
    Seeded vocabulary.

    A: abate, abundant    B: benevolent    Z: inactive, no words
    """
    from src.db.models import AlphabetCategory, VocabularyWord

    letter_a = AlphabetCategory(letter="A", description="Words starting with A")
    letter_b = AlphabetCategory(letter="B", description="Words starting with B")
    letter_z = AlphabetCategory(letter="Z", description="Words starting with Z", is_active=False)
    db_session.add_all([letter_b, letter_z, letter_a])
    db_session.flush()

    abundant = VocabularyWord(
        word="abundant",
        definition="Existing in large quantities",
        synonyms="plentiful, ample",
        antonyms="scarce",
        part_of_speech="adjective",
        sentence="The orchard produced an abundant harvest.",
        category_id=letter_a.id,
    )
    abate = VocabularyWord(
        word="abate",
        definition="To become less intense",
        synonyms="subside, lessen",
        antonyms="intensify",
        part_of_speech="verb",
        sentence="The storm began to abate.",
        category_id=letter_a.id,
    )
    benevolent = VocabularyWord(
        word="benevolent",
        definition="Well meaning and kindly",
        synonyms="kind",
        antonyms="malevolent",
        part_of_speech="adjective",
        category_id=letter_b.id,
    )
    db_session.add_all([abundant, abate, benevolent])
    db_session.commit()
    return SimpleNamespace(
        letter_a=letter_a,
        letter_b=letter_b,
        letter_z=letter_z,
        abate=abate,
        abundant=abundant,
        benevolent=benevolent,
    )
