from types import SimpleNamespace

import pytest
from google.genai import types

from gemini_chat.database import Database
from gemini_chat.services.llm_service import LLMService
from gemini_chat.services.store import ConversationStore


def make_response(*texts, candidates=True):
    """A GenerateContentResponse with one candidate holding `texts` as parts."""
    if not candidates:
        return types.GenerateContentResponse(candidates=[])
    content = types.Content(role="model", parts=[types.Part(text=t) for t in texts])
    return types.GenerateContentResponse(candidates=[types.Candidate(content=content)])


class FakeChat:
    def __init__(self, client, model, config, history):
        self.client = client
        self.model = model
        self.config = config
        self.history = history

    def send_message_stream(self, message):
        self.client.sent.append(message)
        return iter(self.client.stream_chunks)

    def send_message(self, message):
        self.client.sent.append(message)
        if isinstance(self.client.response, BaseException):
            raise self.client.response
        return self.client.response


class FakeClient:
    """Stands in for genai.Client; records every call."""

    def __init__(self, stream_chunks=(), response=None, models=()):
        self.stream_chunks = list(stream_chunks)
        self.response = response
        self.sent = []
        self.chats_created = []
        self.chats = SimpleNamespace(create=self._create_chat)
        self.models = SimpleNamespace(list=self._list_models)
        self._models = models

    def _list_models(self):
        if isinstance(self._models, BaseException):
            raise self._models
        return list(self._models)

    def _create_chat(self, model, config=None, history=None):
        chat = FakeChat(self, model, config, history)
        self.chats_created.append(chat)
        return chat


@pytest.fixture
def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'convo.db'}")
    db.init()
    yield db
    db.close()


@pytest.fixture
def store(database):
    return ConversationStore(database)


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def llm(fake_client):
    return LLMService(fake_client)
