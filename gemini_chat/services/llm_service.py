# gemini_chat/services/llm_service.py
import logging
import re
import time
from typing import Callable, Iterable, List, Optional, Sequence

import httpx
from google import genai
from google.genai import errors, types

from gemini_chat import config
from gemini_chat.exceptions import (
    ConfigurationError,
    EmptyHistoryError,
    EmptyResponseError,
    ParseError,
    StreamInterruptedError,
    TransportError,
)
from gemini_chat.schemas.chat import ModelInfo, TitledReply
from gemini_chat.services.history import build_history

logger = logging.getLogger(__name__)

TITLE_DELIMITER = "---"
MODEL_PREFIX = "models/"
REPLY_LABEL = "REPLY:"

# ----- Prompt Template -----
BOOTSTRAP_TEMPLATE = """You are a helpful chatbot. I will provide an initial message. Respond with two parts, separated by "{delimiter}":

1.  TITLE: A concise title (maximum 5 words) for this conversation.
2.  REPLY: A response to my initial message.

Initial message: {user_message}"""

_REPLY_LABEL = re.compile(r"^\s*REPLY\s*:\s*", re.IGNORECASE)
# "**1. TITLE:", "2. REPLY:", "TITLE:" ...
_PART_LABEL = r"^[\s*#]*(?:\d+\.\s*)?[\s*]*{label}\s*:[\s*]*"


def _may_be_label(head: str) -> bool:
    """True while `head` is empty, a prefix of "REPLY:", or the label with nothing after it."""
    if not head:
        return True
    if len(head) < len(REPLY_LABEL) and REPLY_LABEL.lower().startswith(head.lower()):
        return True
    return bool(_REPLY_LABEL.match(head)) and not _REPLY_LABEL.sub("", head, count=1)


def build_bootstrap_prompt(user_message: str) -> str:
    return BOOTSTRAP_TEMPLATE.format(delimiter=TITLE_DELIMITER, user_message=user_message.strip())


def normalize_reply(text: str) -> str:
    """Drop a stray leading "REPLY:" label and surrounding whitespace."""
    return _REPLY_LABEL.sub("", text or "", count=1).strip()


def clean_title(title: str) -> str:
    """Strip a TITLE: label plus markdown/numbering left around it ("**1. Foo**" -> "Foo")."""
    title = re.sub(_PART_LABEL.format(label="TITLE"), "", title.strip(), count=1, flags=re.IGNORECASE)
    title = re.sub(r"^\*\*\s*(?:\d+\.\s*)?", "", title)
    return title.strip().strip("*").strip().strip('"').strip()


def split_title_reply(text: str) -> TitledReply:
    """
    Split a bootstrap response "TITLE---REPLY" on the first delimiter.

    Raises ParseError when the delimiter is missing or either side is empty.
    """
    head, sep, tail = (text or "").partition(TITLE_DELIMITER)
    if not sep:
        raise ParseError(
            f"could not parse title and reply. Expected format 'TITLE{TITLE_DELIMITER}REPLY', got: {text!r}"
        )
    title = clean_title(head)
    reply = re.sub(_PART_LABEL.format(label="REPLY"), "", tail.strip(), count=1, flags=re.IGNORECASE)
    reply = normalize_reply(reply)
    if not title or not reply:
        raise ParseError(f"title or reply is empty in response: {text!r}")
    return TitledReply(title=title, reply=reply)


def generation_config() -> types.GenerateContentConfig:
    safety = [
        types.SafetySetting(
            category=types.HarmCategory(category),
            threshold=types.HarmBlockThreshold(config.SAFETY_THRESHOLD),
        )
        for category in config.SAFETY_CATEGORIES
    ]
    return types.GenerateContentConfig(
        safety_settings=safety,
        max_output_tokens=config.MAX_OUTPUT_TOKENS,
        temperature=config.TEMPERATURE,
        top_p=config.TOP_P,
    )


def _response_parts(response) -> Optional[List[str]]:
    """Text parts of every candidate, or None when there are no candidates."""
    candidates = getattr(response, "candidates", None)
    if not candidates:
        return None
    texts = []
    for cand in candidates:
        content = cand.content
        if content is None:
            continue
        for part in content.parts or []:
            if part.thought:
                continue
            if part.text:
                texts.append(part.text)
    return texts


def consume_stream(
    stream: Iterable,
    on_fragment: Optional[Callable[[str], None]] = None,
    delay: float = 0.0,
) -> str:
    """
    Drain a streamed response and join its fragments in arrival order.

    The stream is forward-only: once drained it cannot be replayed.
    """
    fragments = []
    saw_candidates = False
    # echo is held back while the text so far could still be a bare REPLY: label
    pending = ""
    echoing = False
    try:
        for chunk in stream:
            texts = _response_parts(chunk)
            if texts is None:
                continue
            saw_candidates = True
            for text in texts:
                fragments.append(text)
                if on_fragment is None:
                    continue
                if echoing:
                    on_fragment(text)
                    continue
                pending += text
                if not _may_be_label(pending.lstrip()):
                    echoing = True
                    on_fragment(_REPLY_LABEL.sub("", pending, count=1).lstrip())
            if delay:
                time.sleep(delay)
    except KeyboardInterrupt as e:
        raise StreamInterruptedError("Stream interrupted") from e
    except (errors.APIError, httpx.HTTPError) as e:
        raise TransportError(f"error during streaming: {e}") from e

    if not saw_candidates:
        raise EmptyResponseError("no response candidates received")
    if on_fragment is not None and not echoing and normalize_reply(pending):
        on_fragment(normalize_reply(pending))
    return "".join(fragments)


class LLMService:
    """Gemini calls: streaming replies, conversation bootstrap and model listing."""

    def __init__(self, client, chunk_delay: float = 0.0):
        self.client = client
        self.chunk_delay = chunk_delay

    @classmethod
    def from_settings(cls, settings: config.Settings) -> "LLMService":
        api_key = settings.require_api_key()
        try:
            client = genai.Client(api_key=api_key)
        except Exception as e:
            raise ConfigurationError(f"failed to create genai client: {e}") from e
        delay = config.STREAM_CHUNK_DELAY if settings.typing_effect else 0.0
        return cls(client, chunk_delay=delay)

    def _start_chat(self, model: str, history):
        return self.client.chats.create(model=model, config=generation_config(), history=history)

    def generate_reply(
        self,
        model: str,
        messages: Sequence,
        on_fragment: Optional[Callable[[str], None]] = None,
    ) -> str:
        """
        Stream the reply to messages[-1] with messages[:-1] as context.

        Raises EmptyHistoryError before touching the network when there is
        nothing to answer.
        """
        if not messages:
            raise EmptyHistoryError("no messages in conversation")

        history = build_history(messages[:-1])
        logger.debug("Sending %d history turns to %s", len(history), model)
        try:
            chat = self._start_chat(model, history)
            stream = chat.send_message_stream(messages[-1].raw_content)
        except KeyboardInterrupt as e:
            raise StreamInterruptedError("Request interrupted") from e
        except (errors.APIError, httpx.HTTPError) as e:
            raise TransportError(f"error sending message: {e}") from e

        reply = normalize_reply(consume_stream(stream, on_fragment=on_fragment, delay=self.chunk_delay))
        if not reply:
            # e.g. finish_reason=SAFETY with no content; empty turns are never stored
            raise EmptyResponseError("model returned an empty reply")
        return reply

    def start_conversation(self, model: str, initial_message: str) -> TitledReply:
        """One non-streaming call that returns both a title and the first reply."""
        try:
            chat = self._start_chat(model, build_history([]))
            response = chat.send_message(build_bootstrap_prompt(initial_message))
        except KeyboardInterrupt as e:
            raise StreamInterruptedError("Request interrupted") from e
        except (errors.APIError, httpx.HTTPError) as e:
            raise TransportError(f"error sending message: {e}") from e

        texts = _response_parts(response)
        if texts is None:
            raise EmptyResponseError("no response candidates received")
        return split_title_reply("".join(texts))

    def list_models(self) -> List[ModelInfo]:
        try:
            models = list(self.client.models.list())
        except (errors.APIError, httpx.HTTPError) as e:
            raise TransportError(f"error listing models: {e}") from e

        out = []
        for m in models:
            actions = m.supported_actions
            if actions and "generateContent" not in actions:
                continue
            name = m.name or ""
            model_id = name[len(MODEL_PREFIX):] if name.startswith(MODEL_PREFIX) else name
            if not model_id:
                continue
            out.append(ModelInfo(model_id=model_id, display_name=m.display_name or model_id))
        return out
