# gemini_chat/services/history.py
"""
Maps the stored message log onto the role-tagged turns a Gemini chat
session is seeded with.
"""
from typing import Iterable, List

from google.genai import types

from gemini_chat.models.message import Role

REMOTE_USER = "user"
REMOTE_MODEL = "model"

# ----- Priming pair -----
PRIMING_INSTRUCTION = (
    "You are a helpful Chatbot, that helps users by answering their questions. "
    "The responses should be short, and precise."
)
PRIMING_ACK = "Understood. I will do my best to be helpful!"


def _turn(role: str, text: str) -> types.Content:
    return types.Content(role=role, parts=[types.Part(text=text)])


def priming_history() -> List[types.Content]:
    return [
        _turn(REMOTE_USER, PRIMING_INSTRUCTION),
        _turn(REMOTE_MODEL, PRIMING_ACK),
    ]


def to_remote_role(role) -> str:
    """user -> user, assistant -> model. Anything else raises ValueError."""
    role = Role(role)
    if role is Role.ASSISTANT:
        return REMOTE_MODEL
    return REMOTE_USER


def build_history(messages: Iterable) -> List[types.Content]:
    """
    Priming pair followed by one turn per message, oldest first.

    `messages` must not include the newest user message that is still waiting
    for a reply; that one goes out as the live turn.
    """
    history = priming_history()
    for m in messages:
        history.append(_turn(to_remote_role(m.role), m.raw_content))
    return history
