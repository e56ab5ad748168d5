"""Cry Out: anonymous Telegram relay with LLM moderation."""

__version__ = "0.1.0"
