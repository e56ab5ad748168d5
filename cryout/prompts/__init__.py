"""
Prompt and reply templates for the bot.

This module contains the default moderation prompt and the fixed texts sent to users.
"""

from .moderation import DEFAULT_MODERATION_PROMPT, RULES_MESSAGE

__all__ = ["DEFAULT_MODERATION_PROMPT", "RULES_MESSAGE"]
