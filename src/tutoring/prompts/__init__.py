"""Prompt templates and registry."""

from tutoring.prompts.registry import clear_cache, get_prompt, has_prompt, list_prompts

__all__ = ["clear_cache", "get_prompt", "has_prompt", "list_prompts"]
