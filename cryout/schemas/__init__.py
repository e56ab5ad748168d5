"""Pydantic models passed between the gateway, classifier and pipeline."""

from cryout.schemas.messages import ClassificationVerdict, InboundMessage

__all__ = ["ClassificationVerdict", "InboundMessage"]
