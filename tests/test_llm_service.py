import httpx
import pytest
from google.genai import errors, types

from conftest import FakeClient, make_response
from gemini_chat.exceptions import (
    EmptyHistoryError,
    EmptyResponseError,
    ParseError,
    StreamInterruptedError,
    TransportError,
)
from gemini_chat.models.message import Role
from gemini_chat.schemas.message import MessageOut
from gemini_chat.services.history import PRIMING_INSTRUCTION
from gemini_chat.services.llm_service import (
    LLMService,
    clean_title,
    consume_stream,
    generation_config,
    normalize_reply,
    split_title_reply,
)


def _msg(role, text):
    return MessageOut(role=role, content=text, raw_content=text)


# ---------- reply normalization / bootstrap parsing ----------

def test_normalize_reply_strips_label_and_whitespace():
    assert normalize_reply("REPLY:  Hello") == "Hello"
    assert normalize_reply("  reply: Hi there \n") == "Hi there"
    assert normalize_reply("Plain answer") == "Plain answer"


def test_normalize_reply_keeps_label_in_the_middle():
    assert normalize_reply("Say REPLY: now") == "Say REPLY: now"


def test_split_title_reply():
    parsed = split_title_reply("Title Text---Reply Text")
    assert parsed.title == "Title Text"
    assert parsed.reply == "Reply Text"


def test_split_title_reply_strips_labels():
    parsed = split_title_reply("1.  TITLE: Trip to Rome\n---\n2.  REPLY: Rome is lovely.")
    assert parsed.title == "Trip to Rome"
    assert parsed.reply == "Rome is lovely."


def test_split_title_reply_only_splits_on_first_delimiter():
    parsed = split_title_reply("T---a---b")
    assert parsed.title == "T"
    assert parsed.reply == "a---b"


def test_split_title_reply_without_delimiter():
    with pytest.raises(ParseError):
        split_title_reply("Just a reply with no title")


@pytest.mark.parametrize("text", ["---reply", "title---", "TITLE:---REPLY:", "   ---   "])
def test_split_title_reply_empty_parts(text):
    with pytest.raises(ParseError):
        split_title_reply(text)


def test_clean_title_removes_markdown_numbering():
    assert clean_title("**1. Weekend Plans**") == "Weekend Plans"
    assert clean_title("Weekend Plans") == "Weekend Plans"


def test_generation_config():
    cfg = generation_config()
    assert cfg.max_output_tokens == 2048
    assert cfg.temperature == pytest.approx(0.7)
    assert cfg.top_p == pytest.approx(0.9)
    assert len(cfg.safety_settings) == 4
    assert all(s.threshold == types.HarmBlockThreshold.BLOCK_LOW_AND_ABOVE for s in cfg.safety_settings)


# ---------- streaming ----------

def test_consume_stream_joins_fragments_in_order():
    seen = []
    chunks = [make_response("Hel"), make_response("lo, "), make_response("world", "!")]
    assert consume_stream(iter(chunks), on_fragment=seen.append) == "Hello, world!"
    assert seen == ["Hel", "lo, ", "world", "!"]


def test_stream_matches_non_streaming_text():
    pieces = ["The answer ", "is ", "42."]
    streamed = consume_stream(iter([make_response(p) for p in pieces]))
    assert streamed == make_response("".join(pieces)).text


def test_consume_stream_is_forward_only():
    stream = iter([make_response("once")])
    assert consume_stream(stream) == "once"
    with pytest.raises(EmptyResponseError):
        consume_stream(stream)


def test_consume_stream_without_candidates():
    with pytest.raises(EmptyResponseError):
        consume_stream(iter([make_response(candidates=False)]))


def test_consume_stream_interrupted():
    def chunks():
        yield make_response("partial")
        raise KeyboardInterrupt

    with pytest.raises(StreamInterruptedError):
        consume_stream(chunks())


def test_consume_stream_api_error():
    def chunks():
        yield make_response("partial")
        raise errors.APIError(500, {"error": {"message": "boom", "status": "INTERNAL"}})

    with pytest.raises(TransportError):
        consume_stream(chunks())


def test_consume_stream_skips_thought_parts():
    content = types.Content(
        role="model",
        parts=[types.Part(text="thinking...", thought=True), types.Part(text="answer")],
    )
    chunk = types.GenerateContentResponse(candidates=[types.Candidate(content=content)])
    assert consume_stream(iter([chunk])) == "answer"


# ---------- LLMService ----------

def test_generate_reply_sends_history_and_live_turn():
    client = FakeClient(stream_chunks=[make_response("REPLY: "), make_response(" Sure thing ")])
    llm = LLMService(client)
    messages = [
        _msg(Role.USER, "hi"),
        _msg(Role.ASSISTANT, "hello"),
        _msg(Role.USER, "help me"),
    ]

    reply = llm.generate_reply("gemini-test", messages)

    assert reply == "Sure thing"
    assert client.sent == ["help me"]
    chat = client.chats_created[0]
    assert chat.model == "gemini-test"
    assert [c.role for c in chat.history] == ["user", "model", "user", "model"]
    assert chat.history[0].parts[0].text == PRIMING_INSTRUCTION
    assert chat.history[-1].parts[0].text == "hello"


def test_generate_reply_echoes_fragments():
    client = FakeClient(stream_chunks=[make_response("a"), make_response("b")])
    seen = []
    LLMService(client).generate_reply("m", [_msg(Role.USER, "x")], on_fragment=seen.append)
    assert seen == ["a", "b"]


def test_generate_reply_empty_history_makes_no_call():
    client = FakeClient()
    with pytest.raises(EmptyHistoryError):
        LLMService(client).generate_reply("m", [])
    assert client.chats_created == []
    assert client.sent == []


def test_start_conversation():
    client = FakeClient(response=make_response("Python Help---REPLY: Happy to help."))
    parsed = LLMService(client).start_conversation("m", "I need help with Python")
    assert parsed.title == "Python Help"
    assert parsed.reply == "Happy to help."
    assert "I need help with Python" in client.sent[0]
    assert "---" in client.sent[0]


def test_start_conversation_parse_error():
    client = FakeClient(response=make_response("no delimiter here"))
    with pytest.raises(ParseError):
        LLMService(client).start_conversation("m", "hello")


def test_start_conversation_no_candidates():
    client = FakeClient(response=make_response(candidates=False))
    with pytest.raises(EmptyResponseError):
        LLMService(client).start_conversation("m", "hello")


def test_list_models_uses_stable_ids():
    models = [
        types.Model(name="models/gemini-2.5-flash", display_name="Gemini 2.5 Flash",
                    supported_actions=["generateContent", "countTokens"]),
        types.Model(name="models/text-embedding-004", display_name="Text Embedding 004",
                    supported_actions=["embedContent"]),
        types.Model(name="models/gemini-x"),
    ]
    result = LLMService(FakeClient(models=models)).list_models()
    assert [(m.model_id, m.display_name) for m in result] == [
        ("gemini-2.5-flash", "Gemini 2.5 Flash"),
        ("gemini-x", "gemini-x"),
    ]


def test_consume_stream_http_error():
    def chunks():
        yield make_response("partial")
        raise httpx.ConnectError("connection refused")

    with pytest.raises(TransportError):
        consume_stream(chunks())


def test_consume_stream_holds_back_reply_label_from_echo():
    seen = []
    chunks = [make_response("REP"), make_response("LY: "), make_response(" Hi"), make_response(" there")]
    text = consume_stream(iter(chunks), on_fragment=seen.append)
    assert seen == ["Hi", " there"]
    assert normalize_reply(text) == "Hi there"


def test_consume_stream_flushes_short_held_text():
    seen = []
    assert consume_stream(iter([make_response("Re")]), on_fragment=seen.append) == "Re"
    assert seen == ["Re"]


def test_generate_reply_blocked_by_safety():
    blocked = types.GenerateContentResponse(
        candidates=[types.Candidate(finish_reason=types.FinishReason.SAFETY)]
    )
    client = FakeClient(stream_chunks=[blocked])
    with pytest.raises(EmptyResponseError):
        LLMService(client).generate_reply("m", [_msg(Role.USER, "bad question")])


def test_generate_reply_label_only_is_empty():
    client = FakeClient(stream_chunks=[make_response("REPLY:  ")])
    with pytest.raises(EmptyResponseError):
        LLMService(client).generate_reply("m", [_msg(Role.USER, "x")])


def test_start_conversation_api_error():
    client = FakeClient(response=errors.APIError(503, {"error": {"message": "overloaded", "status": "UNAVAILABLE"}}))
    with pytest.raises(TransportError):
        LLMService(client).start_conversation("m", "hello")


def test_start_conversation_interrupted():
    client = FakeClient(response=KeyboardInterrupt())
    with pytest.raises(StreamInterruptedError):
        LLMService(client).start_conversation("m", "hello")


def test_list_models_api_error():
    client = FakeClient(models=errors.APIError(403, {"error": {"message": "denied", "status": "PERMISSION_DENIED"}}))
    with pytest.raises(TransportError):
        LLMService(client).list_models()
