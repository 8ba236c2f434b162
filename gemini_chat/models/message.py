# gemini_chat/models/message.py
import datetime
import enum
import uuid

from sqlalchemy import Column, Float, ForeignKey, String, Text, TIMESTAMP
from sqlalchemy.orm import relationship

from gemini_chat.database import Base


class Role(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Message(Base):
    __tablename__ = "messages"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    conversation_id = Column(
        String, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(String, nullable=False)  # 'user' or 'assistant'
    content = Column(Text, nullable=False)  # text shown to the user
    raw_content = Column(Text, nullable=False)  # text sent back to the model
    thinking = Column(Text, nullable=True)
    thinking_time = Column(Float, nullable=True)  # seconds
    created_at = Column(TIMESTAMP, default=datetime.datetime.utcnow, nullable=False)

    conversation = relationship("Conversation", back_populates="messages")
