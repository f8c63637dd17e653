"""Shared test fixtures for API tests."""

import pytest
from fastapi.testclient import TestClient

from interviewer_bot.api.dependencies import get_question_service, get_session_driver, get_storage
from interviewer_bot.api.main import app
from interviewer_bot.core.services import (
    InMemorySubscriptionProvider,
    QuestionService,
    SessionDriver,
    SessionFinalizationService,
)
from interviewer_bot.core.storage import DatabaseManager
from tests.mocks.mock_provider import MockProvider


@pytest.fixture
def mock_provider():
    return MockProvider()


@pytest.fixture
def subscriptions():
    return InMemorySubscriptionProvider()


@pytest.fixture
def test_db(tmp_path):
    """Isolated SQLite database for one test."""
    db_manager = DatabaseManager(db_path=str(tmp_path / "api_test.db"))
    yield db_manager
    db_manager.engine.dispose()


@pytest.fixture
def client(test_db, mock_provider, subscriptions):
    """Test client wired to the mock oracle and an isolated database."""
    question_service = QuestionService(mock_provider, timeout=2.0)
    driver = SessionDriver(
        test_db,
        question_service,
        subscriptions,
        SessionFinalizationService(subscriptions),
    )
    app.dependency_overrides[get_storage] = lambda: test_db
    app.dependency_overrides[get_question_service] = lambda: question_service
    app.dependency_overrides[get_session_driver] = lambda: driver

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def next_question_payload():
    return {
        "jobTitle": "Backend Engineer",
        "jobDescription": "Design and run Python services.",
        "avatarType": "easy",
        "language": "en",
        "turns": [
            {"role": "ai", "text": "Tell me about yourself."},
            {"role": "user", "text": "I have five years of backend experience."},
        ],
        "plan": "free",
    }


@pytest.fixture
def session_payload():
    return {
        "owner_id": "candidate-1",
        "job_title": "Backend Engineer",
        "job_description": "Design and run Python services.",
        "difficulty": "easy",
        "language": "en",
    }
