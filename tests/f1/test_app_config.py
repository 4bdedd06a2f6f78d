"""Tests for application configuration loading."""

from pathlib import Path

import pytest

from tutoring.config.app_config import (
    DEV_JWT_SECRET,
    AppConfig,
    AuthSettings,
    clear_config_cache,
    describe_env_var,
    load_app_config,
)


def write_config(text: str) -> Path:
    path = Path("data/config/app_config_v1.yaml")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:
    """Config without file or environment."""

    def test_defaults_when_no_file(self):
        config = load_app_config()

        assert config.environment == "development"
        assert config.llm.chat_model == "gpt-4o"
        assert config.llm.grading_model == "gpt-4o-mini"
        assert config.llm.grading_timeout == 15
        assert config.database.url == "sqlite:///data/tutoring.db"
        assert config.database.retries == 3
        assert config.auth.token_ttl_days == 7
        assert config.auth.cookie_name == "auth-token"
        assert config.cors_origins == ["http://localhost:3000"]

    def test_no_api_key_means_none(self):
        assert load_app_config().llm.api_key is None

    def test_blank_api_key_is_none(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "   ")
        assert load_app_config().llm.api_key is None

    def test_config_is_cached(self):
        assert load_app_config() is load_app_config()

    def test_force_reload_builds_new_config(self):
        first = load_app_config()
        assert load_app_config(force_reload=True) is not first


class TestFileOverrides:
    """Values from data/config/app_config_v1.yaml."""

    def test_file_values_merge_with_defaults(self):
        write_config(
            """
llm:
  chat_model: gpt-4.1
database:
  retries: 5
"""
        )
        config = load_app_config()

        assert config.llm.chat_model == "gpt-4.1"
        # Untouched keys keep their defaults
        assert config.llm.exam_model == "gpt-4o"
        assert config.database.retries == 5
        assert config.database.backoff_seconds == 0.1

    def test_empty_file_uses_defaults(self):
        write_config("")
        assert load_app_config().llm.chat_model == "gpt-4o"


class TestEnvironmentOverrides:
    """Environment variables win over file and defaults."""

    def test_env_overrides_file(self, monkeypatch):
        write_config("database:\n  url: sqlite:///from-file.db\n")
        monkeypatch.setenv("DATABASE_URL", "sqlite:///from-env.db")

        assert load_app_config().database.url == "sqlite:///from-env.db"

    def test_app_env_sets_environment(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "Production")
        config = load_app_config()

        assert config.environment == "production"
        assert config.is_production

    def test_node_env_is_honored(self, monkeypatch):
        monkeypatch.setenv("NODE_ENV", "production")
        assert load_app_config().is_production

    def test_cors_origins_comma_separated(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example ,")
        assert load_app_config().cors_origins == ["https://a.example", "https://b.example"]

    def test_llm_model_overrides_chat_and_exam_models(self, monkeypatch):
        monkeypatch.setenv("LLM_MODEL", "local-model")
        config = load_app_config()

        assert config.llm.chat_model == "local-model"
        assert config.llm.exam_model == "local-model"
        assert config.llm.grading_model == "gpt-4o-mini"

    def test_hosted_backend_public_names(self, monkeypatch):
        monkeypatch.setenv("NEXT_PUBLIC_SUPABASE_URL", "https://project.supabase.co")
        monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
        config = load_app_config()

        assert config.hosted_backend.url == "https://project.supabase.co"
        assert config.hosted_backend.configured

    def test_clear_cache_picks_up_new_env(self, monkeypatch):
        load_app_config()
        monkeypatch.setenv("JWT_SECRET", "s3cret")
        clear_config_cache()

        assert load_app_config().auth.jwt_secret == "s3cret"


class TestJwtSecret:
    """Signing secret selection."""

    def test_configured_secret_wins(self):
        config = AppConfig(auth=AuthSettings(jwt_secret="abc"))
        assert config.effective_jwt_secret() == "abc"

    def test_dev_secret_outside_production(self):
        assert AppConfig().effective_jwt_secret() == DEV_JWT_SECRET

    def test_no_secret_in_production(self):
        assert AppConfig(environment="production").effective_jwt_secret() is None


class TestDescribeEnvVar:
    """Display values for `tutor check-env`."""

    def test_missing(self):
        assert describe_env_var("OPENAI_API_KEY") == (False, "NOT SET")

    def test_secret_is_truncated(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-1234567890abcdef")
        assert describe_env_var("OPENAI_API_KEY") == (True, "sk-1234567...")

    @pytest.mark.parametrize("name", ["JWT_SECRET", "SUPABASE_ANON_KEY"])
    def test_secret_markers(self, monkeypatch, name):
        monkeypatch.setenv(name, "x" * 40)
        assert describe_env_var(name) == (True, "x" * 10 + "...")

    def test_plain_value_shown(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co")
        assert describe_env_var("SUPABASE_URL") == (True, "https://project.supabase.co")
