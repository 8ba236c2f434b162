# gemini_chat/schemas/chat.py
from pydantic import BaseModel, ConfigDict


class ModelInfo(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: str  # stable id used for selection, e.g. "gemini-2.5-flash"
    display_name: str


class TitledReply(BaseModel):
    title: str
    reply: str
