# gemini_chat/schemas/message.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from gemini_chat.models.message import Role


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    conversation_id: Optional[str] = None
    role: Role
    content: str
    raw_content: str
    thinking: Optional[str] = None
    thinking_time: Optional[float] = None
    created_at: Optional[datetime] = None

    @classmethod
    def pending(cls, text: str) -> "MessageOut":
        """A user message that has not been stored yet."""
        return cls(role=Role.USER, content=text, raw_content=text)
