# display.py
# All terminal output for the BingChain agent loop.
#
# This module owns presentation entirely. No other module formats strings
# for the console; they call named functions here.
#
# Colour language:
#   grey: streamed completion text
#   blue: tool calls
#   magenta: observations, truncation, tool lists
#   green: answers and successes
#   red: failures
#   yellow: warnings
#   cyan: debug traces

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

console = Console()

_debug_level = 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return value[:max_len] + "…"
    return value


def set_debug(level: int) -> None:
    global _debug_level
    _debug_level = level


def debug_level() -> int:
    return _debug_level


def debug(text: str, level: int = 1) -> None:
    if _debug_level >= level:
        console.print(Text(text, style="cyan"))


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def banner(model: str, provider: str) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]BingChain[/bold cyan]\n"
            "[dim]Reason + Act agent loop[/dim]\n\n"
            f"[dim]Model    :[/dim] [white]{model}[/white]\n"
            f"[dim]Provider :[/dim] [white]{provider}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def tool_initialised(name: str, enabled: bool) -> None:
    if enabled:
        console.print(f"[blue]Initialising {name}…[/blue] [green]ok[/green]")
    else:
        console.print(f"[blue]Initialising {name}…[/blue] [red]disabled[/red]")


def tool_init_failed(name: str, error: str) -> None:
    console.print(f"[red]  {name} failed to initialise: {error}[/red]")


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


def stream_delta(text: str) -> None:
    console.print(Text(text, style="grey50"), end="")


def stream_record(record: str) -> None:
    debug(record, level=3)


def stream_stutter(message: str) -> None:
    console.print(Text(message, style="red"))


def stream_end() -> None:
    debug("(End of stream)", level=1)


def provider_failed(message: str) -> None:
    console.print(Text(f"({message})", style="red"))


def sink_failed(message: str) -> None:
    debug(f"(Echo failed: {message})", level=1)


# ---------------------------------------------------------------------------
# Agent loop
# ---------------------------------------------------------------------------


def question_received(question: str) -> None:
    console.print()
    console.print(Rule("[cyan]QUESTION[/cyan]", style="cyan"))
    debug(question, level=2)


def calling_tool(name: str, tool_input: str) -> None:
    console.print()
    console.print(
        _label("ACTION", "blue"),
        Text(f" Calling {name} with {_mono(tool_input, 200)}", style="blue"),
    )


def observation(text: str) -> None:
    console.print(_label("OBSERVE", "magenta"), Text(f" {_mono(text, 200)}", style="magenta"))
    debug(text, level=1)


def unknown_action(name: str) -> None:
    console.print(Text(f"(No tool named {name!r}; asking again.)", style="yellow"))


def iteration_limit(limit: int) -> None:
    console.print(
        Panel(
            f"[bold white]No answer after {limit} completion(s). Stopping.[/bold white]",
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


def final_answer(answer: str) -> None:
    console.print()
    console.print(
        Panel(
            Text(answer.lstrip(), style="white"),
            title=_label("ANSWER", "green"),
            border_style="green",
            padding=(1, 2),
        )
    )
    console.print()


def shortcut_result(text: str) -> None:
    console.print(Text(text, style="magenta"))


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


def tool_failed(name: str, error: str) -> None:
    console.print(Text(f"({name} failed: {error})", style="red"))


def truncating() -> None:
    console.print(Text("(Truncating)", style="magenta"), end="")


def search_hits(count: int) -> None:
    console.print(Text(f"Found {count} search results.", style="cyan"))


def tool_list(names: str) -> None:
    console.print(Text(names, style="magenta"))


def history_reset() -> None:
    console.print(Text("Resetting chat history.", style="cyan"))


def media_link(kind: str, url: str) -> None:
    console.print(f"[magenta]{kind}:[/magenta] [link={url}]{url}[/link]")


def media_failed(url: str, error: str) -> None:
    console.print(Text(f"{url} - {error}", style="red"))


def script_start() -> None:
    console.print(Text("Evaluating script…", style="green"))


def script_output(text: str) -> None:
    console.print(Text(text, style="grey50"))


def api_request(method: str, url: str) -> None:
    console.print(Text(f"Using the {method} method to call the {url} endpoint", style="blue"))


def api_response(status: int, content_type: str | None) -> None:
    console.print(Text(f"{status} - {content_type or 'No Content-Type specified'}.", style="green"))


# ---------------------------------------------------------------------------
# Plugins
# ---------------------------------------------------------------------------


def install_ok(domain: str) -> None:
    console.print(Text(f"Successfully installed the {domain} plugin and API.", style="green"))


def install_failed(message: str) -> None:
    console.print(Text(message, style="red"))


def warning(message: str) -> None:
    console.print(Text(message, style="yellow"))
