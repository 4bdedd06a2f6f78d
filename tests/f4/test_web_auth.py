"""Tests for auth endpoints and edge authentication (F4)."""

from tutoring.core.auth import verify_token
from tutoring.db import users_repository

PASSWORD = "secret123"


def signup(client, email, password=PASSWORD, **extra):
    return client.post("/api/auth/signup", json={"email": email, "password": password, **extra})


class TestSignup:
    """Tests for POST /api/auth/signup."""

    def test_signup_success(self, client):
        response = signup(client, "a@b.com", password="secret1", firstName="Ana")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "User created successfully"
        assert data["user"]["email"] == "a@b.com"
        assert data["user"]["firstName"] == "Ana"
        assert "passwordHash" not in data["user"]
        assert verify_token(data["token"]).email == "a@b.com"

    def test_signup_sets_http_only_cookie(self, client):
        response = signup(client, "a@b.com")

        cookie = response.headers["set-cookie"]
        assert cookie.startswith("auth-token=")
        assert "HttpOnly" in cookie
        assert "samesite=lax" in cookie.lower()
        assert "Max-Age=604800" in cookie
        assert "Path=/" in cookie

    def test_duplicate_email(self, client):
        signup(client, "a@b.com")
        response = signup(client, "A@B.com")

        assert response.status_code == 409
        assert response.json() == {"error": "User with this email already exists"}

    def test_missing_fields(self, client):
        response = client.post("/api/auth/signup", json={"email": "a@b.com"})

        assert response.status_code == 400
        assert response.json()["error"] == "Email and password are required"

    def test_short_password(self, client):
        response = signup(client, "a@b.com", password="12345")

        assert response.status_code == 400
        assert response.json()["error"] == "Password must be at least 6 characters long"

    def test_invalid_email(self, client):
        response = signup(client, "not-an-email")

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"
        assert response.json()["details"][0]["field"] == "email"

    def test_password_not_stored_in_plaintext(self, client):
        signup(client, "a@b.com")
        user = users_repository.get_user_by_email("a@b.com")

        assert user.password_hash != PASSWORD


class TestLogin:
    """Tests for POST /api/auth/login."""

    def test_login_success(self, client):
        signup(client, "a@b.com")
        response = client.post("/api/auth/login", json={"email": "a@b.com", "password": PASSWORD})

        assert response.status_code == 200
        assert response.json()["message"] == "Login successful"
        assert response.json()["user"]["email"] == "a@b.com"
        assert verify_token(response.cookies["auth-token"]) is not None

    def test_wrong_password(self, client):
        signup(client, "a@b.com")
        response = client.post("/api/auth/login", json={"email": "a@b.com", "password": "nope-nope"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password"}

    def test_unknown_email_is_401(self, client):
        response = client.post("/api/auth/login", json={"email": "x@b.com", "password": PASSWORD})
        assert response.status_code == 401

    def test_missing_fields(self, client):
        response = client.post("/api/auth/login", json={})
        assert response.status_code == 400


class TestMeAndLogout:
    def test_me(self, auth_client):
        response = auth_client.get("/api/auth/me")

        assert response.status_code == 200
        assert response.json()["user"]["email"] == "ana@school.org"

    def test_me_without_cookie(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"error": "Not authenticated"}

    def test_me_invalid_token(self, client):
        client.cookies.set("auth-token", "garbage")
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid token"}

    def test_logout_clears_cookie(self, auth_client):
        response = auth_client.post("/api/auth/logout")

        assert response.status_code == 200
        assert "auth-token=" in response.headers["set-cookie"]
        assert auth_client.get("/api/auth/me").status_code == 401


class TestEdgeAuthentication:
    """AuthMiddleware rejects protected routes before any handler runs."""

    PROTECTED = [
        ("get", "/api/user/profile"),
        ("get", "/api/chat-sessions"),
        ("post", "/api/chat-sessions"),
        ("delete", "/api/chat-sessions"),
        ("get", "/api/exam-results"),
        ("get", "/api/exam-results/some-id"),
        ("post", "/api/grade-exam"),
        ("get", "/api/dashboard"),
    ]

    def test_protected_without_cookie(self, client):
        for method, path in self.PROTECTED:
            response = getattr(client, method)(path)
            assert response.status_code == 401, path
            assert response.json() == {"error": "Unauthorized"}

    def test_rejected_before_database(self, client, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("database touched")

        monkeypatch.setattr("tutoring.db.chat_sessions_repository.list_sessions", fail)
        assert client.get("/api/chat-sessions").status_code == 401

    def test_forged_identity_header_ignored(self, client):
        response = client.get("/api/user/profile", headers={"x-user-id": "someone", "x-user-email": "x@y.z"})
        assert response.status_code == 401

    def test_student_pages_redirect_to_login(self, client):
        response = client.get("/student/dashboard", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    def test_public_routes_open(self, client):
        assert client.get("/api/subjects").status_code == 200
        assert client.get("/health").status_code == 200

    def test_request_id_header(self, client):
        response = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"
