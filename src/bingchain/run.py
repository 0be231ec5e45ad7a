# run.py
# Entry point. Config and wiring only, no agent logic lives here.
#
# Questions are read from the terminal until EOF. A question whose first
# word (after dropping "please") names a tool runs that tool directly and
# uses its result as the question, e.g. "install example.com".

from rich.prompt import Prompt

from bingchain import display
from bingchain.agent import Agent
from bingchain.config import Settings
from bingchain.history import QuestionStore
from bingchain.prompts import DEFAULT_PROMPT, MERGE_PROMPT, load_template
from bingchain.providers import make_provider
from bingchain.session import Session


def shortcut(session: Session, question: str) -> str:
    """Run a leading tool verb, returning the text to ask next."""
    stripped = question.replace("please", "").strip()
    verb, _, rest = stripped.partition(" ")
    verb = verb.lower().strip()
    if not verb or verb not in session.registry:
        return question
    result = session.registry.dispatch(verb, rest.strip()) or ""
    display.shortcut_result(result)
    return result


def build_agent(settings: Settings) -> Agent:
    session = Session.create(settings)
    session.registry.initialize_all()
    return Agent(
        session,
        make_provider(settings),
        template=load_template(settings.prompt_file, DEFAULT_PROMPT),
        merge_template=load_template(settings.merge_file, MERGE_PROMPT),
    )


RECALL_QUESTION = (
    "These are the previous questions I have asked, most recent first: {queries}. "
    "Please remember them. You do not need to list them."
)


def recall(agent: Agent, queries: list[str]) -> str | None:
    """Remind the model of earlier questions at startup; the exchange joins the history."""
    if not queries:
        return None
    return agent.ask(RECALL_QUESTION.format(queries=", ".join(queries)))


def main() -> None:
    settings = Settings.from_env()
    display.set_debug(settings.debug)
    display.banner(settings.model, settings.provider)

    agent = build_agent(settings)
    store = QuestionStore(settings.history_file)
    queries = store.load()
    agent.session.set_variable("CHAT_QUERIES", ", ".join(queries))
    recall(agent, queries)

    while True:
        try:
            question = Prompt.ask("[red]How can I help?[/red]")
        except (EOFError, KeyboardInterrupt):
            break
        if not question.strip():
            continue
        queries = store.remember(question)
        agent.session.set_variable("CHAT_QUERIES", ", ".join(queries))

        question = shortcut(agent.session, question)
        if not question.strip():
            continue
        agent.ask(question)


if __name__ == "__main__":
    main()
