# gemini_chat/config.py
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from gemini_chat.exceptions import MissingCredentialError

DEFAULT_DATABASE_URL = "sqlite:///convo.db"
DEFAULT_LOG_LEVEL = "WARNING"

# ----- Generation parameters -----
MAX_OUTPUT_TOKENS = 2048
TEMPERATURE = 0.7
TOP_P = 0.9
SAFETY_THRESHOLD = "BLOCK_LOW_AND_ABOVE"
SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)

# ----- Typing effect -----
STREAM_CHUNK_DELAY = 0.2
TYPE_CHAR_DELAY = 0.05


class Settings(BaseSettings):
    """GEMINI_CHAT_* environment variables, plus GEMINI_API_KEY."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_CHAT_", env_ignore_empty=True, extra="ignore", populate_by_name=True
    )

    api_key: Optional[str] = Field(default=None, validation_alias="GEMINI_API_KEY")
    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: Optional[str] = None
    typing_effect: bool = True

    def require_api_key(self) -> str:
        if not self.api_key:
            raise MissingCredentialError("GEMINI_API_KEY environment variable not set")
        return self.api_key


def load_settings(**overrides) -> Settings:
    """
    Build settings from the environment (and a .env file if present).
    Keyword overrides that are not None win over the environment.
    """
    load_dotenv()
    return Settings(**{k: v for k, v in overrides.items() if v is not None})
