"""Fixtures for F4 tests - Web API."""

import pytest
from fastapi.testclient import TestClient

from tutoring.web.api import create_app
from tutoring.web.dependencies import get_chat_client, get_exam_client, get_grading_client

PASSWORD = "secret123"


def signup(client: TestClient, email: str, password: str = PASSWORD, **extra):
    return client.post("/api/auth/signup", json={"email": email, "password": password, **extra})


@pytest.fixture
def app(db):
    """App bound to a fresh SQLite database, LLM not configured."""
    return create_app()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_client(app):
    """Client holding the session cookie of a freshly signed-up student."""
    client = TestClient(app)
    response = signup(client, "ana@school.org", firstName="Ana", lastName="Rolle")
    assert response.status_code == 200, response.text
    return client


@pytest.fixture
def other_client(app):
    """Second student, for ownership checks."""
    client = TestClient(app)
    response = signup(client, "ben@school.org")
    assert response.status_code == 200, response.text
    return client


@pytest.fixture
def override_llm(app):
    """Route every LLM dependency to the given mock client."""

    def _override(llm_client):
        for dependency in (get_chat_client, get_exam_client, get_grading_client):
            app.dependency_overrides[dependency] = lambda: llm_client
        return llm_client

    yield _override
    app.dependency_overrides.clear()
