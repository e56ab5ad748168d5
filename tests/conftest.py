"""
Pytest configuration and shared fixtures.

This module provides:
- Environment variable setup for tests
- A controllable clock for the submission gate
- Mock gateway and classifier
"""

import os
from unittest.mock import AsyncMock

import pytest

from cryout.schemas.messages import ClassificationVerdict, InboundMessage
from cryout.services.submission_gate import SubmissionGate


# Set test environment variables BEFORE settings are loaded
os.environ["TELEGRAM_BOT_TOKEN"] = "123456:test-token"
os.environ["OPENAI_API_KEY"] = "sk-test-key"
os.environ["TELEGRAM_BOT_CHANNEL_NAME"] = "@cryout_test"
os.environ.pop("WEBHOOK_URL", None)
os.environ.pop("OPENAI_PROMPT", None)
os.environ.pop("RATE_LIMIT_MINUTES", None)

CHANNEL = "@cryout_test"
WINDOW_SECONDS = 20 * 60


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gate(clock):
    """Submission gate with the default 20 minute window and a fake clock."""
    from datetime import timedelta
    return SubmissionGate(window=timedelta(seconds=WINDOW_SECONDS), clock=clock)


@pytest.fixture
def mock_gateway():
    """Mock messaging gateway publishing as message id 42."""
    gateway = AsyncMock()
    gateway.send_to_user = AsyncMock(return_value=None)
    gateway.send_to_channel = AsyncMock(return_value=42)
    return gateway


@pytest.fixture
def mock_classifier():
    """Mock classifier approving everything."""
    classifier = AsyncMock()
    classifier.classify = AsyncMock(
        return_value=ClassificationVerdict(approved=True, raw_answer="да")
    )
    return classifier


@pytest.fixture
def make_message():
    """Factory for inbound messages from one default user."""
    def _make(text, user_id=1001, chat_id=1001, display_name="anon_user"):
        return InboundMessage(
            user_id=user_id,
            chat_id=chat_id,
            text=text,
            display_name=display_name,
        )
    return _make
