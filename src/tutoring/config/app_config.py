"""Application configuration loader.

Loads centralized configuration from data/config/app_config_v1.yaml and
overlays environment variables on top of it. Every setting has a default so a
missing key degrades the service (mock AI responses, local SQLite database)
instead of crashing it.

Usage:
    from tutoring.config.app_config import load_app_config

    config = load_app_config()
    if config.llm.api_key is None:
        ...
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/app_config_v1.yaml")

# Secret used outside production when JWT_SECRET is unset
DEV_JWT_SECRET = "dev-only-insecure-jwt-secret"

DEFAULT_CORS_ORIGINS = ("http://localhost:3000",)

# Variables reported by `tutor check-env`
REQUIRED_ENV_VARS = [
    "OPENAI_API_KEY",
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "SUPABASE_SERVICE_ROLE_KEY",
    "JWT_SECRET",
    "DATABASE_URL",
]

SECRET_MARKERS = ("KEY", "SECRET")


@dataclass
class LLMSettings:
    """Settings for the completion service."""

    provider: str = "openai"
    base_url: str | None = None
    api_key_env: str = "OPENAI_API_KEY"
    chat_model: str = "gpt-4o"
    exam_model: str = "gpt-4o"
    grading_model: str = "gpt-4o-mini"
    timeout: int = 60
    grading_timeout: int = 15

    @property
    def api_key(self) -> str | None:
        """Get API key from environment variable."""
        value = os.environ.get(self.api_key_env, "").strip()
        return value or None


@dataclass
class DatabaseSettings:
    """Settings for the credential store."""

    url: str = "sqlite:///data/tutoring.db"
    retries: int = 3
    backoff_seconds: float = 0.1
    echo: bool = False


@dataclass
class AuthSettings:
    """Settings for token issuing and the session cookie."""

    jwt_secret: str | None = None
    algorithm: str = "HS256"
    token_ttl_days: int = 7
    cookie_name: str = "auth-token"


@dataclass
class HostedBackendSettings:
    """Settings for the hosted backend (profile/avatar storage project)."""

    url: str | None = None
    anon_key: str | None = None
    service_role_key: str | None = None

    @property
    def configured(self) -> bool:
        return bool(self.url and self.service_role_key)


@dataclass
class AppConfig:
    """Application-wide configuration."""

    environment: str = "development"
    llm: LLMSettings = field(default_factory=LLMSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    auth: AuthSettings = field(default_factory=AuthSettings)
    hosted_backend: HostedBackendSettings = field(default_factory=HostedBackendSettings)
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    paths: dict[str, str] = field(default_factory=dict)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def state_dir(self) -> Path:
        return Path(self.paths.get("state_dir", "data/state"))

    @property
    def config_dir(self) -> Path:
        return Path(self.paths.get("config_dir", "data/config"))

    def effective_jwt_secret(self) -> str | None:
        """Return the signing secret, or a development secret outside production."""
        if self.auth.jwt_secret:
            return self.auth.jwt_secret
        if self.is_production:
            return None
        return DEV_JWT_SECRET


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "environment": "development",
        "llm": {
            "provider": "openai",
            "base_url": None,
            "api_key_env": "OPENAI_API_KEY",
            "chat_model": "gpt-4o",
            "exam_model": "gpt-4o",
            "grading_model": "gpt-4o-mini",
            "timeout": 60,
            "grading_timeout": 15,
        },
        "database": {
            "url": "sqlite:///data/tutoring.db",
            "retries": 3,
            "backoff_seconds": 0.1,
            "echo": False,
        },
        "auth": {
            "algorithm": "HS256",
            "token_ttl_days": 7,
            "cookie_name": "auth-token",
        },
        "hosted_backend": {},
        "cors_origins": list(DEFAULT_CORS_ORIGINS),
        "paths": {
            "state_dir": "data/state",
            "config_dir": "data/config",
        },
    }


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into a copy of base."""
    result = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay environment variables on the file/default configuration."""
    env = os.environ

    if env.get("APP_ENV"):
        data["environment"] = env["APP_ENV"]
    elif env.get("NODE_ENV"):
        # Deployments configured for the previous stack still set NODE_ENV
        data["environment"] = env["NODE_ENV"]

    if env.get("DATABASE_URL"):
        data["database"]["url"] = env["DATABASE_URL"]
    if env.get("JWT_SECRET"):
        data["auth"]["jwt_secret"] = env["JWT_SECRET"]
    if env.get("LLM_BASE_URL"):
        data["llm"]["base_url"] = env["LLM_BASE_URL"]
    if env.get("CORS_ORIGINS"):
        data["cors_origins"] = [o.strip() for o in env["CORS_ORIGINS"].split(",") if o.strip()]
    if env.get("LLM_MODEL"):
        data["llm"]["chat_model"] = env["LLM_MODEL"]
        data["llm"]["exam_model"] = env["LLM_MODEL"]

    backend = data.setdefault("hosted_backend", {})
    for key, names in (
        ("url", ("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL")),
        ("anon_key", ("SUPABASE_ANON_KEY", "NEXT_PUBLIC_SUPABASE_ANON_KEY")),
        ("service_role_key", ("SUPABASE_SERVICE_ROLE_KEY",)),
    ):
        for name in names:
            if env.get(name):
                backend[key] = env[name]
                break

    return data


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    llm_data = data.get("llm", {})
    db_data = data.get("database", {})
    auth_data = data.get("auth", {})
    backend_data = data.get("hosted_backend", {})

    return AppConfig(
        environment=str(data.get("environment", "development")).lower(),
        llm=LLMSettings(
            provider=llm_data.get("provider", "openai"),
            base_url=llm_data.get("base_url"),
            api_key_env=llm_data.get("api_key_env", "OPENAI_API_KEY"),
            chat_model=llm_data.get("chat_model", "gpt-4o"),
            exam_model=llm_data.get("exam_model", "gpt-4o"),
            grading_model=llm_data.get("grading_model", "gpt-4o-mini"),
            timeout=int(llm_data.get("timeout", 60)),
            grading_timeout=int(llm_data.get("grading_timeout", 15)),
        ),
        database=DatabaseSettings(
            url=db_data.get("url", "sqlite:///data/tutoring.db"),
            retries=int(db_data.get("retries", 3)),
            backoff_seconds=float(db_data.get("backoff_seconds", 0.1)),
            echo=bool(db_data.get("echo", False)),
        ),
        auth=AuthSettings(
            jwt_secret=auth_data.get("jwt_secret"),
            algorithm=auth_data.get("algorithm", "HS256"),
            token_ttl_days=int(auth_data.get("token_ttl_days", 7)),
            cookie_name=auth_data.get("cookie_name", "auth-token"),
        ),
        hosted_backend=HostedBackendSettings(
            url=backend_data.get("url"),
            anon_key=backend_data.get("anon_key"),
            service_role_key=backend_data.get("service_role_key"),
        ),
        cors_origins=list(data.get("cors_origins") or DEFAULT_CORS_ORIGINS),
        paths=data.get("paths", {}),
    )


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config: defaults, then YAML file, then environment.

    Args:
        force_reload: If True, ignore cached config and reload.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data = _get_defaults()

    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        file_data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
        data = _merge(data, file_data)
    else:
        logger.debug("using_default_config")

    data = _apply_env(data)
    config = _parse_config(data)

    if config.auth.jwt_secret is None:
        if config.is_production:
            logger.error("jwt_secret_missing", environment=config.environment)
        else:
            logger.warning("jwt_secret_missing_using_dev_secret", environment=config.environment)

    _cached_config = config
    return _cached_config


def describe_env_var(name: str) -> tuple[bool, str]:
    """Return (is_set, display_value) for an environment variable.

    Secret-looking values are truncated to their first 10 characters.
    """
    value = os.environ.get(name)
    if not value:
        return False, "NOT SET"
    if any(marker in name for marker in SECRET_MARKERS):
        return True, f"{value[:10]}..."
    return True, value


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when the environment is modified at runtime.
    """
    global _cached_config
    _cached_config = None
