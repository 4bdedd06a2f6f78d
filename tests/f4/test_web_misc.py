"""Tests for subjects, dashboard, health and the error envelope (F4)."""

from fastapi.testclient import TestClient

from tutoring.db.database import DatabaseUnavailableError

MESSAGES = [{"role": "user", "content": "What is a cell?"}]


class TestSubjects:
    def test_list(self, client):
        response = client.get("/api/subjects")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 8
        ids = [s["id"] for s in data["subjects"]]
        assert "bjc-math" in ids
        assert "bgcse-physics" in ids

    def test_subject_shape(self, client):
        subjects = {s["id"]: s for s in client.get("/api/subjects").json()["subjects"]}
        bjc = subjects["bjc-math"]

        assert bjc["duration"] == 30
        assert bjc["multipleChoiceQuestions"] == 10
        assert bjc["shortAnswerQuestions"] == 5
        assert bjc["totalQuestions"] == 15
        assert bjc["totalPoints"] == 80


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["database"] is True
        assert data["version"]
        assert data["llm"] is None

    def test_llm_check_is_opt_in(self, client, override_llm, mock_llm_client):
        mock_llm_client.is_available.return_value = True
        override_llm(mock_llm_client)

        assert client.get("/health").json()["llm"] is None
        assert client.get("/health", params={"llm": "true"}).json()["llm"] is True
        mock_llm_client.is_available.assert_called_once_with()

    def test_llm_unreachable(self, client, override_llm, mock_llm_client):
        mock_llm_client.is_available.return_value = False
        override_llm(mock_llm_client)

        response = client.get("/health", params={"llm": "true"})

        assert response.status_code == 200
        assert response.json()["llm"] is False


class TestDashboard:
    def test_new_student(self, auth_client):
        response = auth_client.get("/api/dashboard")

        assert response.status_code == 200
        data = response.json()
        assert data["learningSessions"] == 0
        assert data["practiceExams"] == 0
        assert data["weeklyActivity"] == [0] * 7
        assert data["streakMessage"] == "Start your learning streak today!"

    def test_counts_today_activity(self, auth_client):
        auth_client.post("/api/chat-sessions", json={"subject": "science", "messages": MESSAGES})
        auth_client.post(
            "/api/exam-results",
            json={"subject": "bjc-math", "score": 60, "maxScore": 80, "percentage": 75, "totalQuestions": 15},
        )

        data = auth_client.get("/api/dashboard").json()

        assert data["learningSessions"] == 1
        assert data["topicsExplored"] == 1
        assert data["practiceExams"] == 1
        assert data["averageScore"] == 75
        assert data["currentStreak"] == 1
        assert data["weeklyActivity"][-1] == 1
        assert data["recentSessions"][0]["topic"] == "biology"


class TestErrorEnvelope:
    def test_database_unavailable_is_503(self, auth_client, monkeypatch):
        def unavailable(*args, **kwargs):
            raise DatabaseUnavailableError("connection refused")

        monkeypatch.setattr("tutoring.db.chat_sessions_repository.list_sessions", unavailable)

        response = auth_client.get("/api/chat-sessions")

        assert response.status_code == 503
        assert response.json() == {"error": "Database unavailable", "code": "DATABASE_UNAVAILABLE"}

    def test_unexpected_error_is_500(self, app, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("tutoring.web.routes.subjects.list_subjects", broken)
        client = TestClient(app, raise_server_exceptions=False)

        response = client.get("/api/subjects")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

    def test_unknown_route_uses_envelope(self, client):
        response = client.get("/api/nope")

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}
