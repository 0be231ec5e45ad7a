import json
from contextlib import contextmanager
from unittest.mock import MagicMock

import httpx
import pytest

from bingchain.config import Settings
from bingchain.models import StreamEventKind
from bingchain.providers import (
    AnthropicProvider,
    CompletionProvider,
    OpenAIProvider,
    ProviderError,
    STOP_SEQUENCES,
)
from bingchain.stream import TIMEOUT_FALLBACK, StreamDecoder, decode_record, finalize

from conftest import sse_lines


def _chat(content: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]})


# ---------------------------------------------------------------------------
# Record decoding
# ---------------------------------------------------------------------------

def test_decode_chat_delta():
    event = decode_record(_chat("Hel"))
    assert event.kind is StreamEventKind.DELTA
    assert event.text == "Hel"

def test_decode_completion_text():
    event = decode_record('data: {"choices": [{"text": "lo", "index": 0}]}')
    assert event.kind is StreamEventKind.DELTA
    assert event.text == "lo"

def test_decode_legacy_anthropic_completion():
    event = decode_record('data: {"completion": " world", "stop_reason": null}')
    assert event.text == " world"

def test_decode_done_sentinel():
    assert decode_record("data: [DONE]").kind is StreamEventKind.DONE
    assert decode_record(b"[DONE]").kind is StreamEventKind.DONE

def test_decode_malformed_record_is_a_stutter():
    event = decode_record('data: {"choices": [')
    assert event.kind is StreamEventKind.ERROR
    assert event.text.startswith("(Stutter:")

def test_decode_error_payload():
    event = decode_record('data: {"error": {"message": "Rate limit reached"}}')
    assert event.kind is StreamEventKind.ERROR
    assert event.text == "Rate limit reached"

def test_decode_skips_framing_lines():
    assert decode_record("") is None
    assert decode_record("   ") is None
    assert decode_record("event: completion") is None
    assert decode_record(": keep-alive") is None

def test_decode_delta_without_content():
    event = decode_record('data: {"choices": [{"delta": {"role": "assistant"}}]}')
    assert event.kind is StreamEventKind.DELTA
    assert event.text == ""

@pytest.mark.parametrize("record", [
    'data: {"choices": [{"delta": "x"}]}',
    'data: {"choices": [{"text": 5}]}',
    'data: {"choices": {"text": "x"}}',
    'data: {"choices": ["x"]}',
    'data: {"completion": ["x"]}',
])
def test_decode_wrong_shape_is_a_stutter(record):
    event = decode_record(record)
    assert event.kind is StreamEventKind.ERROR
    assert event.text.startswith("(Stutter:")


# ---------------------------------------------------------------------------
# Stream consumption
# ---------------------------------------------------------------------------

def test_consume_accumulates_in_order():
    decoder = StreamDecoder(sink=None)
    result = decoder.consume(sse_lines("Thought: I know.\nFinal Answer: 42\n"))
    assert result == "Thought: I know.\nFinal Answer: 42\n\n"

def test_bad_record_does_not_stop_decoding():
    decoder = StreamDecoder(sink=None)
    lines = [_chat("one "), "data: {oops", _chat("two"), "data: [DONE]"]
    assert decoder.consume(lines) == "one two\n"

def test_wrong_shape_record_does_not_stop_decoding():
    decoder = StreamDecoder(sink=None)
    lines = [
        'data: {"choices": [{"delta": "x"}]}',
        _chat("Final Answer: ok"),
        'data: {"choices": {"text": "x"}}',
        "data: [DONE]",
    ]
    assert decoder.consume(lines) == "Final Answer: ok\n"

def test_records_after_done_are_ignored():
    decoder = StreamDecoder(sink=None)
    lines = [_chat("kept"), "data: [DONE]", _chat("dropped")]
    assert decoder.consume(lines) == "kept\n"

def test_events_are_lazy():
    decoder = StreamDecoder(sink=None)
    source = iter([_chat("a"), _chat("b"), "data: [DONE]"])
    events = decoder.events(source)
    first = next(events)
    assert first.text == "a"
    assert next(source) == _chat("b")

def test_sink_receives_each_delta():
    sink = MagicMock()
    StreamDecoder(sink=sink).consume([_chat("a"), _chat("b"), "data: [DONE]"])
    assert [c.args[0] for c in sink.call_args_list] == ["a", "b"]

def test_sink_failure_does_not_affect_decoding():
    sink = MagicMock(side_effect=OSError("broken pipe"))
    result = StreamDecoder(sink=sink).consume([_chat("still "), _chat("here"), "data: [DONE]"])
    assert result == "still here\n"
    assert sink.call_count == 2

def test_finalize_rules():
    assert finalize("abc") == "abc\n"
    assert finalize("abc\n") == "abc\n\n"
    assert finalize("abc\n\n") == "abc\n\n"
    assert finalize(" Answer: 1") == "Answer: 1\n"


# ---------------------------------------------------------------------------
# Provider failures
# ---------------------------------------------------------------------------

class FailingProvider(CompletionProvider):
    @contextmanager
    def stream(self, prompt):
        raise ProviderError("connection refused")
        yield []

def test_provider_failure_returns_fallback():
    assert StreamDecoder(sink=None).complete(FailingProvider(), "hi") == TIMEOUT_FALLBACK

def test_anthropic_non_success_status_returns_fallback():
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    provider = AnthropicProvider(Settings(provider="anthropic", model="claude-2"), client=client)
    assert StreamDecoder(sink=None).complete(provider, "hi") == TIMEOUT_FALLBACK

def test_anthropic_stream_is_decoded():
    body = (
        'event: completion\ndata: {"completion": "Final", "stop_reason": null}\n\n'
        'event: completion\ndata: {"completion": " Answer: yes", "stop_reason": "stop_sequence"}\n\n'
    )
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, text=body)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    provider = AnthropicProvider(Settings(provider="anthropic", model="claude-2"), client=client)
    result = StreamDecoder(sink=None).complete(provider, "Question: ok?")
    assert result == "Final Answer: yes\n"
    assert seen["body"]["stream"] is True
    assert seen["body"]["stop_sequences"] == STOP_SEQUENCES


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

def test_openai_chat_request_body():
    body = OpenAIProvider(Settings(model="gpt-4o-mini")).request_body("Question: hi")
    assert body["stream"] is True
    assert body["stop"] == ["Observation:", "Question:"]
    assert body["messages"][-1] == {"role": "user", "content": "Question: hi"}
    assert "prompt" not in body

def test_openai_legacy_completion_request_body():
    body = OpenAIProvider(Settings(model="text-davinci-003", response_limit=64)).request_body("Q")
    assert body["prompt"] == "Q"
    assert body["max_tokens"] == 64
    assert "messages" not in body

@pytest.mark.parametrize("model, provider", [("claude-2", "anthropic"), ("gpt-4o", "openai")])
def test_provider_inferred_from_model(monkeypatch, model, provider):
    monkeypatch.setenv("MODEL", model)
    monkeypatch.delenv("PROVIDER", raising=False)
    assert Settings.from_env().provider == provider
