# agent.py
# BingChain agent loop
#
# The Agent owns control flow for one question at a time. The model only
# ever sees the prompt; tools only ever see their input string.
#
# Control flow:
#   BUILD_PROMPT → AWAIT_COMPLETION → CLASSIFY
#     → DISPATCH_ACTION → AWAIT_COMPLETION (same, growing prompt)
#     → RETURN_ANSWER
#
# The prompt is append-only within a question: each completion is added
# verbatim, then "Observation: <result>\n" for each dispatched action, in
# the order the actions were classified.
#
# All terminal output is delegated to display.py..

from enum import Enum
from typing import Callable

from bingchain import display
from bingchain.media import MediaRenderer, scan_media
from bingchain.models import MediaLinks, Verdict
from bingchain.parser import ActionParser
from bingchain.prompts import DEFAULT_PROMPT, MERGE_PROMPT, render
from bingchain.providers import CompletionProvider
from bingchain.session import Session
from bingchain.stream import StreamDecoder

ITERATION_LIMIT_ANSWER = "I could not find an answer within the allowed number of steps."


class AgentState(str, Enum):
    BUILD_PROMPT = "build_prompt"
    AWAIT_COMPLETION = "await_completion"
    CLASSIFY = "classify"
    DISPATCH_ACTION = "dispatch_action"
    RETURN_ANSWER = "return_answer"


class Agent:
    """
    Reason + Act loop over a completion provider and a session's tools.

    Example:
        session = Session.create(Settings.from_env())
        agent = Agent(session, make_provider(session.settings))
        answer = agent.ask("What is the weather in Paris today?")
    """

    def __init__(
        self,
        session: Session,
        provider: CompletionProvider,
        template: str = DEFAULT_PROMPT,
        merge_template: str = MERGE_PROMPT,
        decoder: StreamDecoder | None = None,
        parser: ActionParser | None = None,
        media_sink: Callable[[MediaLinks], None] | None = None,
        max_iterations: int | None = None,
    ) -> None:
        self.session = session
        self.provider = provider
        self.template = template
        self.merge_template = merge_template
        self.decoder = decoder or StreamDecoder()
        self.parser = parser or ActionParser()
        self.media_sink = media_sink if media_sink is not None else MediaRenderer(session.registry)
        self.max_iterations = max_iterations or session.settings.max_iterations
        self.state = AgentState.BUILD_PROMPT
        self.prompt = ""

    # ------------------------------------------------------------------
    # Prompt construction
    # ------------------------------------------------------------------

    def build_prompt(self, question: str) -> str:
        registry = self.session.registry
        prompt = render(
            self.template,
            question=question,
            tools=registry.describe(),
            toolList=", ".join(registry.list()),
            language=self.session.settings.language,
            history=self.session.history.render(),
        )
        return self.session.record_prompt(prompt)

    # ------------------------------------------------------------------
    # Model calls
    # ------------------------------------------------------------------

    def complete(self, prompt: str) -> str:
        return self.decoder.complete(self.provider, prompt)

    def merge_history(self, question: str) -> str:
        """Ask the model to fold the running transcript into a standalone question."""
        prompt = render(self.merge_template, question=question, history=self.session.history.render())
        return self.complete(prompt)

    # ------------------------------------------------------------------
    # Side channel
    # ------------------------------------------------------------------

    def _notify_media(self, completion: str) -> None:
        links = scan_media(completion)
        if not links or self.media_sink is None:
            return
        try:
            self.media_sink(links)
        except Exception as exc:
            display.media_failed(", ".join(links.images + links.videos), str(exc))

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def answer(self, question: str) -> str:
        """Run the loop for one question and return the final answer text."""
        display.question_received(question)

        self.state = AgentState.BUILD_PROMPT
        self.prompt = self.build_prompt(question)

        for _ in range(self.max_iterations):
            self.state = AgentState.AWAIT_COMPLETION
            completion = self.complete(self.prompt)
            self.prompt += completion

            self.state = AgentState.CLASSIFY
            result = self.parser.classify(completion, self.session.registry.__contains__)
            self._notify_media(completion)

            if result.verdict is Verdict.ANSWER:
                self.state = AgentState.RETURN_ANSWER
                return result.answer

            if result.verdict is Verdict.RETRY:
                display.unknown_action(self.parser.tool_name(completion) or "")
                continue

            self.state = AgentState.DISPATCH_ACTION
            action = result.action
            self.session.record_prompt(self.prompt)
            display.calling_tool(action.tool_name, action.raw_input)
            observation = self.session.registry.dispatch(action.tool_name, action.raw_input)
            display.observation(observation or "None")
            self.prompt += f"Observation: {observation or 'None'}\n"

        display.iteration_limit(self.max_iterations)
        self.state = AgentState.RETURN_ANSWER
        return ITERATION_LIMIT_ANSWER

    def ask(self, question: str) -> str:
        """answer() plus recording the exchange in the session history."""
        answer = self.answer(question)
        display.final_answer(answer)
        self.session.history.add(question, answer)
        return answer
