# config.py
# Runtime settings, read once from the environment (and .env) at startup.

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _env(key: str, default: str | None = None) -> str | None:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return value.strip()


class Settings(BaseModel):
    """All tunables for one BingChain process."""

    model: str = "gpt-4o-mini"
    provider: str = Field(default="openai", description="'openai' or 'anthropic'.")
    response_limit: int = Field(default=512, gt=0, description="max_tokens per completion.")
    temperature: float = 0.25
    token_limit: int = Field(
        default=4096,
        gt=0,
        description="Model context size. Half of it is the budget for prompt text.",
    )
    max_iterations: int = Field(default=10, gt=0)
    debug: int = 0
    language: str = "English"

    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_api_key: str | None = None
    bing_api_key: str | None = None
    search_backend: str = "ddg"

    gui: bool = False
    request_timeout: float = 30.0
    script_timeout: float = 30.0

    prompt_file: str = "prompt.txt"
    merge_file: str = "merge.txt"
    plugin_file: str = "plugin.txt"
    history_file: str = "history.yaml"

    @property
    def prompt_budget(self) -> int:
        return self.token_limit // 2

    @classmethod
    def from_env(cls) -> "Settings":
        model = _env("MODEL", "gpt-4o-mini")
        bing_key = _env("BING_API_KEY")
        values = {
            "model": model,
            "provider": _env("PROVIDER", "anthropic" if model.startswith("claude") else "openai"),
            "response_limit": _env("RESPONSE_LIMIT", "512"),
            "temperature": _env("TEMPERATURE", "0.25"),
            "token_limit": _env("TOKEN_LIMIT", "4096"),
            "max_iterations": _env("MAX_ITERATIONS", "10"),
            "debug": _env("DEBUG", "0"),
            "language": _env("LANGUAGE", "English"),
            "openai_api_key": _env("OPENAI_API_KEY"),
            "openai_base_url": _env("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            "anthropic_api_key": _env("ANTHROPIC_API_KEY"),
            "bing_api_key": bing_key,
            "search_backend": _env("SEARCH_BACKEND", "bing" if bing_key else "ddg"),
            "gui": _env("GUI", "false").lower() in ("1", "true", "yes"),
            "request_timeout": _env("REQUEST_TIMEOUT", "30"),
            "script_timeout": _env("SCRIPT_TIMEOUT", "30"),
            "prompt_file": _env("PROMPT_FILE", "prompt.txt"),
            "merge_file": _env("MERGE_FILE", "merge.txt"),
            "plugin_file": _env("PLUGIN_FILE", "plugin.txt"),
            "history_file": _env("HISTORY_FILE", "history.yaml"),
        }
        return cls.model_validate(values)
