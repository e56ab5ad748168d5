"""
Pydantic schemas for messages flowing through the moderation pipeline.

Both models are transient: an InboundMessage is consumed once by the
update loop, a ClassificationVerdict is produced fresh per request.
"""

from typing import Optional

from pydantic import BaseModel, Field


class InboundMessage(BaseModel):
    """
    A private message delivered to the bot.

    Attributes:
        user_id: Telegram id of the sender (key of per-user gate state)
        chat_id: Chat the replies go to
        text: Message text, None for non-text updates (stickers, photos, ...)
        display_name: Sender's username or full name, for logs only
    """
    user_id: int = Field(description="Telegram user id of the sender")
    chat_id: int = Field(description="Chat id replies are sent to")
    text: Optional[str] = Field(default=None, description="Message text")
    display_name: str = Field(default="", description="Sender username or full name")


class ClassificationVerdict(BaseModel):
    """Boolean classifier outcome plus the normalized answer it was derived from."""
    approved: bool
    raw_answer: str = ""
