# session.py
# Session: every piece of mutable state the agent loop and its tools share.
#
# One session per conversation. Tools receive the session at construction
# and change it only through the methods below.

import os

import httpx

from bingchain.budget import TokenBudgeter
from bingchain.config import Settings
from bingchain.history import HistoryManager
from bingchain.models import PluginRegistration
from bingchain.registry import ToolRegistry

USER_AGENT = "postman-open-technologies/BingChain/1.1.0"


class Session:
    def __init__(
        self,
        settings: Settings,
        budgeter: TokenBudgeter | None = None,
        http: httpx.Client | None = None,
    ) -> None:
        self.settings = settings
        self.registry = ToolRegistry()
        self.history = HistoryManager()
        self.budgeter = budgeter or TokenBudgeter(settings.prompt_budget, settings.response_limit)
        self.http = http or httpx.Client(
            timeout=settings.request_timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )
        self._plugin: PluginRegistration | None = None
        self._variables: dict[str, str] = {}
        self.prompt = ""
        self.retrieved_text = ""

    @classmethod
    def create(cls, settings: Settings, **kwargs) -> "Session":
        """A session with every built-in tool registered (not yet initialised)."""
        from bingchain.tools import register_default_tools

        session = cls(settings, **kwargs)
        register_default_tools(session)
        return session

    # ------------------------------------------------------------------
    # Installed API
    # ------------------------------------------------------------------

    @property
    def plugin(self) -> PluginRegistration | None:
        return self._plugin

    @property
    def api_base(self) -> str:
        return self._plugin.api_base_url if self._plugin else ""

    def install_plugin(self, registration: PluginRegistration) -> None:
        """Replace the installed API. Only one is addressable at a time."""
        self._plugin = registration

    # ------------------------------------------------------------------
    # Text shared with tools
    # ------------------------------------------------------------------

    def record_prompt(self, prompt: str) -> str:
        self.prompt = prompt
        return prompt

    def set_retrieved_text(self, text: str) -> str:
        self.retrieved_text = text
        return text

    def truncate(self, text: str) -> str:
        return self.budgeter.truncate(text, self.history.render())

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def set_variable(self, key: str, value: str) -> None:
        self._variables[key.upper().strip()] = value

    def get_variable(self, key: str) -> str | None:
        """
        Look up a variable: explicit ones first, then the live CHAT_*
        values, then '<tool>' enablement, then the process environment.
        """
        key = key.upper().strip()
        if key in self._variables:
            return self._variables[key]
        if key == "CHAT_HISTORY":
            return self.history.render()
        if key == "CHAT_QUERIES":
            return ", ".join(self.history.questions())
        if key == "CHAT_PROMPT":
            return self.prompt
        if key.lower() in self.registry:
            return "enabled" if self.registry.is_enabled(key.lower()) else "disabled"
        if key.endswith("_TOOLS"):
            return ", ".join(self.registry.list())
        return os.environ.get(key)
