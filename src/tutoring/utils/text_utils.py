"""Text and number helpers.

Common manipulation functions used across modules.
"""

import math
import re

# Patterns for removing thinking/reasoning blocks from LLM output
THINK_PATTERNS = [
    re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<thinking>.*?</thinking>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<analysis>.*?</analysis>", re.DOTALL | re.IGNORECASE),
    re.compile(r"<reasoning>.*?</reasoning>", re.DOTALL | re.IGNORECASE),
]


def strip_think(text: str) -> str:
    """Remove thinking/reasoning tags from LLM output.

    Args:
        text: Raw LLM output text

    Returns:
        Cleaned text without thinking artifacts
    """
    result = text
    for pattern in THINK_PATTERNS:
        result = pattern.sub("", result)
    return result.strip()


def truncate(text: str, limit: int, suffix: str = "...") -> str:
    """Cut text to ``limit`` characters, appending ``suffix`` only when cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + suffix


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up.

    Scores and percentages use this instead of the builtin ``round``,
    which rounds halves to even (``round(2.5) == 2``).
    """
    return int(math.floor(value + 0.5))
