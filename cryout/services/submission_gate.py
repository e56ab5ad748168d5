"""
Per-user Submission Gate

Decides whether a user's submission may proceed to moderation, based on
the last message that user actually got published.

Key features:
- Cooldown window between published submissions (rate limiting)
- Exact-text duplicate detection against the last published message
- State changes only on commit, i.e. after a successful publish
- Safe for concurrent workers via asyncio.Lock plus per-user holds
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import AsyncIterator, Callable, Dict, Optional


class GateDecision(str, Enum):
    """Outcome of a gate evaluation."""
    ALLOWED = "allowed"
    RATE_LIMITED = "rate_limited"
    DUPLICATE = "duplicate"


@dataclass
class SubmissionRecord:
    """Last published submission of one user."""
    last_submission_time: float
    last_submission_text: str


class SubmissionGate:
    """
    In-memory rate limiter and duplicate detector keyed by user id.

    Records live for the lifetime of the process. Only evaluate() and
    commit() touch them; callers never see the underlying mapping.

    Attributes:
        window_seconds: Minimum interval between two published submissions
    """

    def __init__(
        self,
        window: timedelta = timedelta(minutes=20),
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize gate.

        Args:
            window: Cooldown between two accepted submissions (default: 20 minutes)
            clock: Monotonic clock in seconds, used when callers omit `now`
        """
        window_seconds = window.total_seconds()
        if window_seconds <= 0:
            raise ValueError("Rate limit window must be positive")

        self.window_seconds = window_seconds
        self._clock = clock
        self._records: Dict[int, SubmissionRecord] = {}
        self._lock = asyncio.Lock()
        self._user_locks: Dict[int, asyncio.Lock] = {}

    def now(self) -> float:
        return self._clock()

    async def evaluate(
        self,
        user_id: int,
        text: str,
        now: Optional[float] = None
    ) -> GateDecision:
        """
        Check a submission against the user's last published message.

        Args:
            user_id: Sender id
            text: Submission text
            now: Clock reading in seconds (default: gate clock)

        Returns:
            RATE_LIMITED if the cooldown has not elapsed (regardless of text),
            DUPLICATE if the text equals the last published text,
            ALLOWED otherwise (including a user's first submission)
        """
        if now is None:
            now = self._clock()

        async with self._lock:
            record = self._records.get(user_id)

        if record is None:
            return GateDecision.ALLOWED
        if now - record.last_submission_time < self.window_seconds:
            return GateDecision.RATE_LIMITED
        if text == record.last_submission_text:
            return GateDecision.DUPLICATE
        return GateDecision.ALLOWED

    async def commit(
        self,
        user_id: int,
        text: str,
        now: Optional[float] = None
    ) -> None:
        """
        Record a published submission.

        Must only be called after the message reached the channel; rejected
        or failed submissions leave the gate untouched so the user can retry.

        Args:
            user_id: Sender id
            text: Published text
            now: Clock reading in seconds (default: gate clock)
        """
        if now is None:
            now = self._clock()

        async with self._lock:
            record = self._records.get(user_id)
            if record is None:
                self._records[user_id] = SubmissionRecord(now, text)
            else:
                # Submission time never moves backwards for a user
                record.last_submission_time = max(record.last_submission_time, now)
                record.last_submission_text = text

    @asynccontextmanager
    async def hold(self, user_id: int) -> AsyncIterator[None]:
        """
        Serialize one user's evaluate..commit sequence across workers.

        Another worker checking the same user waits until the holder has
        either committed or given up. Different users never block each other.
        """
        async with self._lock:
            user_lock = self._user_locks.setdefault(user_id, asyncio.Lock())
        async with user_lock:
            yield

    def get_record(self, user_id: int) -> Optional[SubmissionRecord]:
        """
        Snapshot of a user's record (None if the user never published).

        Note:
            - Returns a copy; mutating it does not affect the gate
            - Test-support accessor; the pipeline never reads records
        """
        record = self._records.get(user_id)
        if record is None:
            return None
        return SubmissionRecord(record.last_submission_time, record.last_submission_text)
