# stream.py
# Stream Decoder: raw provider records in, ordered text deltas out.
#
# Records arrive one per line, optionally wrapped as "data: {...}". Each
# record is decoded on its own: a bad record becomes an ERROR event and
# decoding carries on with the next one. Connection failures never leave
# this module as exceptions; the caller gets TIMEOUT_FALLBACK instead.

import json
from typing import Callable, Iterable, Iterator

from bingchain import display
from bingchain.models import StreamEvent, StreamEventKind
from bingchain.providers import CompletionProvider, ProviderError

TIMEOUT_FALLBACK = "I took too long thinking about that."

DONE_SENTINEL = "[DONE]"
_DONE_TOKEN = '["DONE"]'


def decode_record(line: str | bytes) -> StreamEvent | None:
    """
    Decode one framed record.

    Returns None for lines that carry no payload (blank lines, SSE
    comments and event-name lines).
    """
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    record = line.strip()
    if not record or record.startswith(":") or record.startswith("event:"):
        return None
    if record.startswith("data:"):
        record = record[len("data:"):].strip()

    # The end marker is not valid JSON on its own.
    if record == DONE_SENTINEL:
        record = _DONE_TOKEN

    try:
        payload = json.loads(record)
    except json.JSONDecodeError as exc:
        return StreamEvent(kind=StreamEventKind.ERROR, text=f"(Stutter: {exc})")

    if payload == ["DONE"]:
        return StreamEvent(kind=StreamEventKind.DONE)
    if not isinstance(payload, dict):
        return StreamEvent(kind=StreamEventKind.ERROR, text=f"(Stutter: unexpected record {record!r})")

    error = payload.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else None
        return StreamEvent(kind=StreamEventKind.ERROR, text=str(message or error))

    try:
        text = _delta_text(payload)
    except ValueError as exc:
        return StreamEvent(kind=StreamEventKind.ERROR, text=f"(Stutter: {exc})")
    return StreamEvent(kind=StreamEventKind.DELTA, text=text)


def _delta_text(payload: dict) -> str:
    """Text carried by a chat delta, a completion choice or a legacy completion."""
    choices = payload.get("choices")
    if choices is None:
        choices = [{}]
    if not isinstance(choices, list):
        raise ValueError(f"choices is a {type(choices).__name__}, not a list")
    choice = choices[0] if choices else {}
    if not isinstance(choice, dict):
        raise ValueError(f"choice is a {type(choice).__name__}, not an object")

    delta = choice.get("delta")
    if delta is not None and not isinstance(delta, dict):
        raise ValueError(f"delta is a {type(delta).__name__}, not an object")
    text = delta.get("content") if delta else choice.get("text")
    if text is None:
        # Anthropic legacy completions put the delta at the top level.
        text = payload.get("completion")
    if text is None:
        return ""
    if not isinstance(text, str):
        raise ValueError(f"text is a {type(text).__name__}, not a string")
    return text


def finalize(completion: str) -> str:
    """Drop one leading space and make sure the text ends with a blank line."""
    if completion.startswith(" "):
        completion = completion[1:]
    if not completion.endswith("\n\n"):
        completion += "\n"
    return completion


class StreamDecoder:
    """
    Consumes one provider stream at a time and accumulates the completion.

    `sink` receives every text delta as it is decoded (the console by
    default). Sink failures are reported and otherwise ignored.
    """

    def __init__(self, sink: Callable[[str], None] | None = display.stream_delta) -> None:
        self._sink = sink
        self.completion = ""

    def events(self, lines: Iterable[str | bytes]) -> Iterator[StreamEvent]:
        """Lazily decode `lines`, stopping after the DONE record."""
        for line in lines:
            if display.debug_level() >= 3:
                display.stream_record(line if isinstance(line, str) else line.decode("utf-8", "replace"))
            event = decode_record(line)
            if event is None:
                continue
            yield event
            if event.kind is StreamEventKind.DONE:
                return

    def _echo(self, text: str) -> None:
        if self._sink is None or not text:
            return
        try:
            self._sink(text)
        except Exception as exc:
            display.sink_failed(str(exc))

    def consume(self, lines: Iterable[str | bytes]) -> str:
        """Decode a whole stream into the accumulated, finalised completion."""
        self.completion = ""
        for event in self.events(lines):
            if event.kind is StreamEventKind.DELTA:
                self.completion += event.text
                self._echo(event.text)
            elif event.kind is StreamEventKind.ERROR:
                display.stream_stutter(event.text)
        display.stream_end()
        return finalize(self.completion)

    def complete(self, provider: CompletionProvider, prompt: str) -> str:
        """Run one provider call. Returns TIMEOUT_FALLBACK if the provider fails."""
        self.completion = ""
        try:
            with provider.stream(prompt) as lines:
                return self.consume(lines)
        except ProviderError as exc:
            display.provider_failed(str(exc))
            return TIMEOUT_FALLBACK
