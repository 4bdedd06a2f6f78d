"""Tests for password hashing and session tokens."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from tutoring.config.app_config import AppConfig, AuthSettings
from tutoring.core.auth import (
    AuthConfigurationError,
    Principal,
    hash_password,
    issue_token,
    token_max_age_seconds,
    verify_password,
    verify_token,
)

PRINCIPAL = Principal(id="user-1", email="ana@school.org")


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("secret123")

        assert hashed != "secret123"
        assert hashed.startswith("$2")
        assert verify_password("secret123", hashed)

    def test_wrong_password(self):
        assert not verify_password("wrong", hash_password("secret123"))

    def test_hashes_are_salted(self):
        assert hash_password("secret123") != hash_password("secret123")

    def test_empty_password_rejected(self):
        with pytest.raises(ValueError):
            hash_password("")

    def test_non_bcrypt_hash_does_not_verify(self):
        assert not verify_password("secret123", "plaintext")

    def test_long_passwords_compare_on_first_72_bytes(self):
        base = "x" * 72
        hashed = hash_password(base + "tail-one")

        assert verify_password(base + "tail-two", hashed)


class TestTokens:
    def test_round_trip(self):
        token = issue_token(PRINCIPAL)
        assert verify_token(token) == PRINCIPAL

    def test_claims_and_seven_day_expiry(self):
        now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        config = AppConfig(auth=AuthSettings(jwt_secret="k"))
        token = issue_token(PRINCIPAL, now=now, config=config)

        claims = jwt.get_unverified_claims(token)
        assert claims["id"] == "user-1"
        assert claims["email"] == "ana@school.org"
        assert claims["exp"] - claims["iat"] == 7 * 24 * 3600

    def test_expired_token_rejected(self):
        issued = datetime.now(timezone.utc) - timedelta(days=8)
        assert verify_token(issue_token(PRINCIPAL, now=issued)) is None

    def test_token_signed_with_other_secret_rejected(self):
        other = AppConfig(auth=AuthSettings(jwt_secret="another-secret"))
        token = issue_token(PRINCIPAL, config=other)

        assert verify_token(token) is None

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b.c"])
    def test_missing_or_malformed(self, token):
        assert verify_token(token) is None

    def test_token_without_identity_claims_rejected(self):
        config = AppConfig()
        token = jwt.encode({"sub": "x"}, config.effective_jwt_secret(), algorithm="HS256")

        assert verify_token(token, config=config) is None

    def test_production_without_secret_cannot_issue(self):
        with pytest.raises(AuthConfigurationError):
            issue_token(PRINCIPAL, config=AppConfig(environment="production"))

    def test_production_without_secret_verifies_nothing(self):
        token = issue_token(PRINCIPAL)
        assert verify_token(token, config=AppConfig(environment="production")) is None

    def test_cookie_max_age_matches_ttl(self):
        assert token_max_age_seconds() == 7 * 24 * 60 * 60
