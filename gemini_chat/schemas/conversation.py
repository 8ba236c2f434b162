# gemini_chat/schemas/conversation.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ConversationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    model: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
