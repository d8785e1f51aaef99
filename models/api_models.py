"""
Pydantic data models for the inbound Telegram webhook payload.
"""
from typing import Any, ClassVar, List, Optional
from pydantic import BaseModel, ConfigDict


class Chat(BaseModel):
    """Telegram chat reference."""
    model_config = ConfigDict(extra="ignore")

    id: int
    type: Optional[str] = None


class TelegramMessage(BaseModel):
    """Subset of a Telegram message the bot cares about."""
    model_config = ConfigDict(extra="ignore")

    message_id: int
    chat: Chat
    text: Optional[str] = None
    caption: Optional[str] = None
    photo: Optional[List[Any]] = None
    document: Optional[Any] = None
    voice: Optional[Any] = None
    audio: Optional[Any] = None
    video: Optional[Any] = None
    sticker: Optional[Any] = None

    MEDIA_FIELDS: ClassVar[tuple[str, ...]] = ("photo", "document", "voice", "audio", "video", "sticker")

    @property
    def conversation_id(self) -> str:
        return str(self.chat.id)

    @property
    def has_media(self) -> bool:
        """True when the message carries non-text content."""
        return any(getattr(self, name) for name in self.MEDIA_FIELDS)


class Update(BaseModel):
    """Telegram webhook update."""
    model_config = ConfigDict(extra="ignore")

    update_id: int
    message: Optional[TelegramMessage] = None
    edited_message: Optional[TelegramMessage] = None
