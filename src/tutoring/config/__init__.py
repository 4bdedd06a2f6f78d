"""Configuration package for the tutoring service."""

from tutoring.config.app_config import (
    AppConfig,
    AuthSettings,
    DatabaseSettings,
    HostedBackendSettings,
    LLMSettings,
    clear_config_cache,
    load_app_config,
)
from tutoring.config.subjects import (
    SubjectConfig,
    clear_subjects_cache,
    get_subject,
    list_subjects,
    load_subjects,
)

__all__ = [
    "AppConfig",
    "AuthSettings",
    "DatabaseSettings",
    "HostedBackendSettings",
    "LLMSettings",
    "clear_config_cache",
    "load_app_config",
    "SubjectConfig",
    "clear_subjects_cache",
    "get_subject",
    "list_subjects",
    "load_subjects",
]
