"""
Moderation Pipeline / Update Loop

Consumes inbound messages one at a time, strictly in arrival order:

1. Ignore messages without text
2. Answer the start command with the rules
3. Gate check (cooldown, then duplicate)
4. Classifier verdict
5. Publish to the channel
6. Commit to the gate and reply with a link to the post

Every rejection or failure ends in exactly one reply to the sender. No
per-message failure stops the loop.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Optional

from cryout.core.exceptions import ClassifierError, PublishError
from cryout.prompts.moderation import (
    CLASSIFY_FAILED_MESSAGE,
    DUPLICATE_MESSAGE,
    PUBLISH_FAILED_MESSAGE,
    PUBLISHED_PREFIX,
    RULES_MESSAGE,
    policy_rejected_message,
    rate_limited_message,
)
from cryout.schemas.messages import InboundMessage
from cryout.services.interfaces.content_classifier import IContentClassifier
from cryout.services.interfaces.messaging_gateway import IMessagingGateway
from cryout.services.submission_gate import GateDecision, SubmissionGate

logger = logging.getLogger(__name__)


class ProcessingOutcome(str, Enum):
    """Terminal state of one processed message."""
    IGNORED = "ignored"
    RULES_SENT = "rules_sent"
    REJECTED_RATE = "rejected_rate"
    REJECTED_DUPLICATE = "rejected_duplicate"
    CLASSIFY_FAILED = "classify_failed"
    REJECTED_POLICY = "rejected_policy"
    PUBLISH_FAILED = "publish_failed"
    PUBLISHED = "published"


def build_post_link(channel: str, message_id: int) -> str:
    """Public link to a channel post: https://t.me/<channel>/<id>."""
    return f"https://t.me/{channel.removeprefix('@')}/{message_id}"


class ModerationPipeline:
    """
    Sequential update loop tying the gateway, gate and classifier together.

    Implements graceful shutdown through an external stop event and
    structured logging of every decision.
    """

    def __init__(
        self,
        gateway: IMessagingGateway,
        classifier: IContentClassifier,
        gate: SubmissionGate,
        channel: str,
        prompt: Optional[str] = None,
        rules_text: str = RULES_MESSAGE,
        start_command: str = "/start",
    ):
        """
        Initialize pipeline with injected dependencies.

        Args:
            gateway: Messaging transport (ingestion and sends)
            classifier: Content classifier judging each submission
            gate: Per-user rate limit and duplicate detector
            channel: Broadcast channel username (e.g. "@cryout")
            prompt: Moderation prompt (None: classifier default)
            rules_text: Rules sent on the start command and on policy rejections
            start_command: Command answered with the rules
        """
        self.gateway = gateway
        self.classifier = classifier
        self.gate = gate
        self.channel = channel
        self.prompt = prompt
        self.rules_text = rules_text
        self.start_command = start_command

        self._handled = 0

    @property
    def handled_count(self) -> int:
        """Messages with text handled so far, start command replies included."""
        return self._handled

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Process messages until the stop event is set.

        The stop event is checked only while waiting for the next message;
        a message already being processed runs to completion. Messages still
        queued when the event fires are not processed.

        Args:
            stop_event: Set by the lifecycle controller on shutdown
        """
        logger.info("Update processing started", extra={"channel": self.channel})

        while not stop_event.is_set():
            message = await self._next_message(stop_event)
            if message is None:
                break

            try:
                await self.process(message)
            except Exception as e:
                logger.error(
                    "Unexpected error while processing message",
                    extra={
                        "user_id": message.user_id,
                        "display_name": message.display_name,
                        "message_text": message.text,
                        "error": str(e),
                    },
                    exc_info=True
                )

        logger.info("Stopping update processing.", extra={"handled": self._handled})

    async def _next_message(self, stop_event: asyncio.Event) -> Optional[InboundMessage]:
        """Wait for the next message or the stop event, whichever comes first."""
        receive_task = asyncio.ensure_future(self.gateway.receive())
        stop_task = asyncio.ensure_future(stop_event.wait())
        try:
            await asyncio.wait({receive_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (receive_task, stop_task):
                if not task.done():
                    task.cancel()

        if stop_event.is_set():
            if receive_task.done() and not receive_task.cancelled():
                logger.debug("Dropping message received during shutdown")
            return None
        return receive_task.result()

    async def process(self, message: InboundMessage) -> ProcessingOutcome:
        """
        Run one message through the moderation pipeline.

        Args:
            message: Inbound private message

        Returns:
            ProcessingOutcome naming the terminal state reached
        """
        if not message.text:
            return ProcessingOutcome.IGNORED

        self._handled += 1

        if message.text == self.start_command:
            self._log(logging.INFO, "Rules requested", message, ProcessingOutcome.RULES_SENT)
            await self._reply(message, self.rules_text)
            return ProcessingOutcome.RULES_SENT

        async with self.gate.hold(message.user_id):
            return await self._moderate(message)

    async def _moderate(self, message: InboundMessage) -> ProcessingOutcome:
        text = message.text

        decision = await self.gate.evaluate(message.user_id, text, self.gate.now())
        if decision is GateDecision.RATE_LIMITED:
            self._log(logging.INFO, "User error: RateLimited message", message, ProcessingOutcome.REJECTED_RATE)
            await self._reply(message, rate_limited_message(self.gate.window_seconds / 60))
            return ProcessingOutcome.REJECTED_RATE
        if decision is GateDecision.DUPLICATE:
            self._log(logging.INFO, "User error: Duplicated message", message, ProcessingOutcome.REJECTED_DUPLICATE)
            await self._reply(message, DUPLICATE_MESSAGE)
            return ProcessingOutcome.REJECTED_DUPLICATE

        try:
            verdict = await self.classifier.classify(self.prompt, text)
        except Exception as e:
            # Anything but ClassifierError is unexpected and logged with its traceback
            self._log(
                logging.ERROR, "Classifier error", message, ProcessingOutcome.CLASSIFY_FAILED,
                exc_info=not isinstance(e, ClassifierError),
                error=str(e.__cause__ or e),
            )
            await self._reply(message, CLASSIFY_FAILED_MESSAGE)
            return ProcessingOutcome.CLASSIFY_FAILED

        if not verdict.approved:
            self._log(
                logging.INFO, "Submission rejected by classifier", message, ProcessingOutcome.REJECTED_POLICY,
                classifier_answer=verdict.raw_answer,
            )
            await self._reply(message, policy_rejected_message(self.rules_text))
            return ProcessingOutcome.REJECTED_POLICY

        try:
            message_id = await self.gateway.send_to_channel(self.channel, text)
        except Exception as e:
            self._log(
                logging.ERROR, "Telegram error", message, ProcessingOutcome.PUBLISH_FAILED,
                exc_info=not isinstance(e, PublishError),
                classifier_answer=verdict.raw_answer, error=str(e),
            )
            await self._reply(message, PUBLISH_FAILED_MESSAGE)
            return ProcessingOutcome.PUBLISH_FAILED

        await self.gate.commit(message.user_id, text, self.gate.now())

        link = build_post_link(self.channel, message_id)
        self._log(
            logging.INFO, "Submission published", message, ProcessingOutcome.PUBLISHED,
            classifier_answer=verdict.raw_answer, channel_message_id=message_id,
        )
        await self._reply(message, PUBLISHED_PREFIX + link)
        return ProcessingOutcome.PUBLISHED

    async def _reply(self, message: InboundMessage, text: str) -> None:
        """Send a reply; a failed reply is logged and never raised."""
        try:
            await self.gateway.send_to_user(message.chat_id, text)
        except PublishError as e:
            logger.warning(
                "Failed to deliver reply",
                extra={"user_id": message.user_id, "chat_id": message.chat_id, "error": str(e)}
            )

    def _log(
        self,
        level: int,
        event: str,
        message: InboundMessage,
        outcome: ProcessingOutcome,
        exc_info: bool = False,
        **details: Any
    ) -> None:
        logger.log(
            level,
            event,
            exc_info=exc_info,
            extra={
                "user_id": message.user_id,
                "display_name": message.display_name,
                "message_text": message.text,
                "outcome": outcome.value,
                **details,
            }
        )
