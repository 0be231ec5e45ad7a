import json
from contextlib import contextmanager

import httpx
import pytest

from bingchain.budget import TokenBudgeter
from bingchain.config import Settings
from bingchain.providers import CompletionProvider
from bingchain.session import Session


def sse_lines(text: str, chunk: int = 7) -> list[str]:
    """Frame `text` as a chat-completions SSE stream, a few characters per record."""
    lines = []
    for i in range(0, len(text), chunk):
        record = {"choices": [{"delta": {"content": text[i:i + chunk]}}]}
        lines.append(f"data: {json.dumps(record)}")
        lines.append("")
    lines.append("data: [DONE]")
    return lines


class ScriptedProvider(CompletionProvider):
    """Returns canned completions in order and records every prompt it receives."""

    def __init__(self, completions: list[str], fallback: str = "Final Answer: done\n") -> None:
        self.completions = list(completions)
        self.fallback = fallback
        self.prompts: list[str] = []

    @contextmanager
    def stream(self, prompt: str):
        self.prompts.append(prompt)
        text = self.completions.pop(0) if self.completions else self.fallback
        yield sse_lines(text)


def word_count(text: str) -> int:
    return len(text.split())


@pytest.fixture
def settings(tmp_path):
    return Settings(
        prompt_file=str(tmp_path / "prompt.txt"),
        merge_file=str(tmp_path / "merge.txt"),
        plugin_file=str(tmp_path / "plugin.txt"),
        history_file=str(tmp_path / "history.yaml"),
        search_backend="ddg",
        max_iterations=5,
    )


@pytest.fixture
def make_session(settings):
    """Build a Session whose HTTP client is served by `handler`."""

    def factory(handler=None, counter=word_count):
        transport = httpx.MockTransport(handler or (lambda request: httpx.Response(404)))
        return Session.create(
            settings,
            budgeter=TokenBudgeter(settings.prompt_budget, settings.response_limit, counter=counter),
            http=httpx.Client(transport=transport, follow_redirects=True),
        )

    return factory


@pytest.fixture
def session(make_session):
    return make_session()
