"""
OpenAI Content Classifier Implementation.

Asks a chat model whether a submission fits the channel rules and reduces
the answer to a yes/no verdict.

Features:
- Operator prompt with built-in fallback
- Small completion budget (single-word verdict)
- Request timeout so a stuck call cannot hang the update loop
- Correlation ID logging for observability
"""

import logging
import uuid
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from cryout.core.config import Settings
from cryout.core.exceptions import ClassifierError
from cryout.prompts.moderation import AFFIRMATIVE_ANSWER, DEFAULT_MODERATION_PROMPT
from cryout.schemas.messages import ClassificationVerdict
from cryout.services.interfaces.content_classifier import IContentClassifier

logger = logging.getLogger(__name__)


def normalize_answer(content: Optional[str]) -> str:
    return (content or "").strip().lower()


def is_affirmative(answer: str) -> bool:
    return normalize_answer(answer) == AFFIRMATIVE_ANSWER


class OpenAIContentClassifier(IContentClassifier):
    """OpenAI chat-completion classifier (any OpenAI-compatible API)"""

    DEFAULT_MODEL = "gpt-3.5-turbo"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        max_tokens: int = 10,
        timeout: float = 30.0,
    ):
        """
        Initialize classifier.

        Args:
            api_key: API key for the completion service
            model: Chat model name (default: gpt-3.5-turbo)
            base_url: Optional OpenAI-compatible endpoint
            max_tokens: Completion token cap (default: 10)
            timeout: Request timeout in seconds (default: 30)
        """
        # Retries are left to the user: a failed check is reported back to them
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )
        self.model = model
        self.max_tokens = max_tokens

        logger.info(
            "OpenAIContentClassifier initialized",
            extra={
                "model": self.model,
                "max_tokens": self.max_tokens,
                "base_url": base_url or "default",
            }
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIContentClassifier":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            max_tokens=settings.openai_max_tokens,
            timeout=settings.openai_timeout_seconds,
        )

    async def classify(
        self,
        prompt: Optional[str],
        text: str,
    ) -> ClassificationVerdict:
        """
        Classify a submission with one chat-completion request.

        The prompt and the text are sent together as a single system message.
        The answer is lower-cased and stripped; only an exact "да" approves.

        Args:
            prompt: Moderation instruction (None or empty: built-in default)
            text: Candidate message text

        Returns:
            ClassificationVerdict(approved, raw_answer)

        Raises:
            ClassifierError: On API/transport failure or a response without choices
        """
        correlation_id = str(uuid.uuid4())
        instruction = prompt or DEFAULT_MODERATION_PROMPT

        logger.debug(
            "Classifying submission",
            extra={
                "correlation_id": correlation_id,
                "model": self.model,
                "text_length": len(text),
                "custom_prompt": bool(prompt),
            }
        )

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "system", "content": instruction + text}],
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            logger.error(
                "Classifier request failed",
                extra={
                    "correlation_id": correlation_id,
                    "error": str(e),
                    "error_type": type(e).__name__
                }
            )
            raise ClassifierError(f"Classifier request failed: {e}") from e

        if not response.choices:
            raise ClassifierError("Classifier returned no choices")

        answer = normalize_answer(response.choices[0].message.content)
        verdict = ClassificationVerdict(approved=is_affirmative(answer), raw_answer=answer)

        logger.debug(
            "Classification completed",
            extra={
                "correlation_id": correlation_id,
                "approved": verdict.approved,
                "classifier_answer": answer,
            }
        )

        return verdict

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        await self.client.close()
