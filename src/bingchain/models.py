# models.py
# Data contracts for the BingChain agent loop.
# No business logic lives here, only schema and validation.

from enum import Enum

from pydantic import BaseModel, Field


class StreamEventKind(str, Enum):
    DELTA = "delta"
    DONE = "done"
    ERROR = "error"


class StreamEvent(BaseModel):
    """One decoded unit of a provider stream."""

    kind: StreamEventKind
    text: str = Field(default="", description="Text delta or error message.")


class ActionDirective(BaseModel):
    """A tool invocation parsed out of completion text. Never persisted."""

    tool_name: str = Field(..., description="Lower-cased tool name from the last Action: marker.")
    raw_input: str = Field(..., description="Extracted Action Input text.")


class Verdict(str, Enum):
    ACTION = "action"
    ANSWER = "answer"
    RETRY = "retry"


class Classification(BaseModel):
    """Outcome of scanning one completion."""

    verdict: Verdict
    action: ActionDirective | None = None
    answer: str | None = None


class Markers(BaseModel):
    """Marker literals the parser looks for. Swap for alternate prompting conventions."""

    action: str = "Action:"
    action_input: str = "Action Input:"
    answers: tuple[str, ...] = ("Final Answer:", "Answer:")
    observation: str = "Observation:"
    fence: str = "```"
    iife: str = ")()"


class HistoryEntry(BaseModel):
    question: str
    answer: str

    def render(self) -> str:
        return f"Q:{self.question}\nA:{self.answer}\n"


class PluginRegistration(BaseModel):
    """State left behind by a successful plugin install."""

    domain: str
    api_base_url: str = Field(..., description="servers[0].url of the installed API description.")
    summary_text: str = Field(default="", description="Plugin template plus the re-serialised API.")


class MediaLinks(BaseModel):
    """Media URLs found in a completion, in order of first appearance."""

    images: list[str] = Field(default_factory=list)
    videos: list[str] = Field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.images or self.videos)
