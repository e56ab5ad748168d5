"""
Pydantic schemas for the webhook listener's health endpoint.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """
    Response model for basic health check.

    Attributes:
        status: Health status ("ok" if the listener is running)
        timestamp: Current UTC timestamp
        queued_updates: Messages received but not yet processed
    """
    status: Literal["ok"] = Field(
        description="Health status indicator"
    )
    timestamp: datetime = Field(
        description="Current UTC timestamp"
    )
    queued_updates: int = Field(
        default=0,
        description="Inbound messages waiting for the update loop"
    )
