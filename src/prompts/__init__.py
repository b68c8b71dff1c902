"""Prompts package for centralized prompt management."""

from .prompt_templates import (
    # Classes
    PromptTemplate,

    # Drafting prompts
    EMAIL_DRAFT_SYSTEM_PROMPT,
    EMAIL_DRAFT_USER_PROMPT,
    DEFAULT_INSTRUCTIONS,

    # Deterministic fallback
    FALLBACK_SUBJECT,
    FALLBACK_BODY,

    # Helper functions
    render_custom_template,
)

__all__ = [
    'PromptTemplate',
    'EMAIL_DRAFT_SYSTEM_PROMPT',
    'EMAIL_DRAFT_USER_PROMPT',
    'DEFAULT_INSTRUCTIONS',
    'FALLBACK_SUBJECT',
    'FALLBACK_BODY',
    'render_custom_template',
]
