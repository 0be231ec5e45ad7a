# providers.py
# Completion provider collaborators.
#
# A provider turns a prompt into a context-managed iterable of raw stream
# lines. It knows the wire request for its vendor and nothing about the
# framing of the records that come back; that belongs to stream.py.

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterable, Iterator

import httpx
import openai
from openai import OpenAI

from bingchain.config import Settings

STOP_SEQUENCES = ["Observation:", "Question:"]

SYSTEM_MESSAGE = (
    "You are a helpful assistant who tries to answer all questions accurately and comprehensively."
)


class ProviderError(Exception):
    """Raised when the completion endpoint cannot be reached or refuses the request."""


class CompletionProvider(ABC):
    @abstractmethod
    def stream(self, prompt: str) -> Iterator[Iterable[str | bytes]]:
        """Context manager yielding the raw record lines of one streamed completion."""


class OpenAIProvider(CompletionProvider):
    """
    OpenAI-compatible endpoint through the openai SDK.

    Uses the SDK's raw streaming response so the record lines reach the
    decoder untouched. Models whose name starts with 'text' go to the
    legacy completions endpoint; everything else is sent as chat.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._client: OpenAI | None = None

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                base_url=self._settings.openai_base_url,
                api_key=self._settings.openai_api_key,
                timeout=self._settings.request_timeout,
            )
        return self._client

    def request_body(self, prompt: str) -> dict:
        body = {
            "model": self._settings.model,
            "max_tokens": self._settings.response_limit,
            "temperature": self._settings.temperature,
            "stream": True,
            "user": "BingChain",
            "n": 1,
            "stop": STOP_SEQUENCES,
        }
        if self._settings.model.startswith("text"):
            body["prompt"] = prompt
        else:
            body["messages"] = [
                {"role": "system", "content": SYSTEM_MESSAGE},
                {"role": "user", "content": prompt},
            ]
        return body

    @contextmanager
    def stream(self, prompt: str) -> Iterator[Iterable[str]]:
        body = self.request_body(prompt)
        try:
            client = self._get_client()
            if "prompt" in body:
                endpoint = client.completions.with_streaming_response
            else:
                endpoint = client.chat.completions.with_streaming_response
            with endpoint.create(**body) as response:
                yield response.iter_lines()
        except (openai.OpenAIError, httpx.HTTPError) as exc:
            raise ProviderError(str(exc)) from exc


class AnthropicProvider(CompletionProvider):
    """Anthropic legacy text completions, streamed over httpx."""

    URL = "https://api.anthropic.com/v1/complete"

    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        self._settings = settings
        self._client = client or httpx.Client(timeout=settings.request_timeout, follow_redirects=True)

    def request_body(self, prompt: str) -> dict:
        return {
            "prompt": f"\n\nHuman: {prompt}\n\nAssistant:",
            "model": self._settings.model,
            "max_tokens_to_sample": self._settings.response_limit,
            "stream": True,
            "temperature": self._settings.temperature,
            "metadata": {"user_id": "BingChain"},
            "stop_sequences": STOP_SEQUENCES,
        }

    @contextmanager
    def stream(self, prompt: str) -> Iterator[Iterable[str]]:
        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self._settings.anthropic_api_key or "",
            "anthropic-version": "2023-06-01",
        }
        try:
            with self._client.stream(
                "POST", self.URL, json=self.request_body(prompt), headers=headers
            ) as response:
                response.raise_for_status()
                yield response.iter_lines()
        except httpx.HTTPError as exc:
            raise ProviderError(str(exc)) from exc


def make_provider(settings: Settings) -> CompletionProvider:
    if settings.provider == "anthropic":
        return AnthropicProvider(settings)
    return OpenAIProvider(settings)
