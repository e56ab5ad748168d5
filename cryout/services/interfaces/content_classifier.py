"""
Content Classifier Interface Contract.

Defines the contract for the external service that judges whether a
submission satisfies the publication policy.
"""

from abc import ABC, abstractmethod
from typing import Optional

from cryout.schemas.messages import ClassificationVerdict


class IContentClassifier(ABC):
    """
    Abstract base class for content classifiers.

    Implementations handle:
    - Pairing the moderation prompt with the candidate text
    - API communication with the verdict-producing service
    - Normalizing the reply into a boolean verdict
    """

    @abstractmethod
    async def classify(
        self,
        prompt: Optional[str],
        text: str,
    ) -> ClassificationVerdict:
        """
        Judge a submission.

        Args:
            prompt: Moderation instruction (None or empty: built-in default)
            text: Candidate message text

        Returns:
            ClassificationVerdict with:
                - approved: True only for the affirmative answer
                - raw_answer: Normalized answer text, kept for logs

        Raises:
            ClassifierError: For transport failures (network, auth, quota,
                malformed response). A negative verdict is never an error.
        """
        pass
