"""Prompt Registry - Load prompts from packaged Markdown files.

Prompts live under ``tutoring/prompts/templates`` and support ``{variable}``
substitution. Literal braces (JSON examples) are left untouched unless they
name a supplied variable.

Usage:
    from tutoring.prompts.registry import get_prompt

    prompt = get_prompt(
        "exam/generate",
        title="BJC Mathematics Practice Exam",
        level="Middle School (BJC)",
    )
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

PROMPTS_DIR = Path(__file__).parent / "templates"


def _get_prompt_uncached(key: str) -> str:
    """Load raw prompt from file without caching.

    Args:
        key: Path-like key, e.g., "tutor/base"

    Returns:
        Raw prompt content

    Raises:
        FileNotFoundError: If prompt file doesn't exist
    """
    file_path = PROMPTS_DIR / f"{key}.md"
    if not file_path.exists():
        raise FileNotFoundError(f"Prompt not found: {key} (looked at {file_path})")

    return file_path.read_text(encoding="utf-8")


@lru_cache(maxsize=64)
def _get_cached_prompt(key: str) -> str:
    """Cached version of prompt loading."""
    return _get_prompt_uncached(key)


def has_prompt(key: str) -> bool:
    """Check whether a prompt file exists for ``key``."""
    return (PROMPTS_DIR / f"{key}.md").exists()


def get_prompt(key: str, use_cache: bool = True, **variables: object) -> str:
    """Load prompt from file and substitute variables.

    Args:
        key: Path-like key, e.g., "exam/generate"
        use_cache: Whether to use cached version (default True)
        **variables: Variables to substitute, e.g., subject_name="Chemistry"

    Returns:
        Prompt string with variables substituted

    Raises:
        FileNotFoundError: If prompt file doesn't exist
    """
    if use_cache:
        content = _get_cached_prompt(key)
    else:
        content = _get_prompt_uncached(key)

    for var_name, var_value in variables.items():
        content = content.replace(f"{{{var_name}}}", str(var_value))

    return content


def list_prompts() -> list[str]:
    """List all available prompt keys.

    Returns:
        Sorted list of prompt keys (e.g., ["exam/generate", "tutor/base"])
    """
    if not PROMPTS_DIR.exists():
        logger.warning("prompts_dir_not_found", path=str(PROMPTS_DIR))
        return []

    prompts = []
    for path in PROMPTS_DIR.rglob("*.md"):
        key = path.relative_to(PROMPTS_DIR).with_suffix("").as_posix()
        prompts.append(key)
    return sorted(prompts)


def clear_cache() -> None:
    """Clear the prompt cache.

    Useful for testing or when prompts are modified at runtime.
    """
    _get_cached_prompt.cache_clear()
