# tools.py
# Built-in tools. The agent loop never calls these directly; it goes
# through the registry, which register_default_tools() fills.
#
# Every tool takes one string and returns text for the Observation.
# Expected failures come back as text; anything unexpected is caught by
# the registry.

import ast
import json
import math
import operator
import os
import subprocess
import sys
import tempfile
import webbrowser
from typing import TYPE_CHECKING

import httpx
import yaml
from bs4 import BeautifulSoup

from bingchain import display
from bingchain.registry import UNKNOWN_MESSAGE, Tool

if TYPE_CHECKING:
    from bingchain.session import Session

BING_URL = "https://api.bing.microsoft.com/v7.0/search"

# Stripped before converting a page to text.
REMOVED_TAGS = [
    "aside", "script", "style", "frame", "iframe", "applet",
    "audio", "canvas", "datagrid", "table", "noscript",
]


class SessionTool(Tool):
    def __init__(self, session: "Session") -> None:
        self.session = session


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class SearchTool(SessionTool):
    name = "search"
    description = (
        "A search engine. Useful for when you need to answer questions about current events "
        "or retrieve in-depth answers. Input should be a search query."
    )

    def initialize(self) -> bool:
        settings = self.session.settings
        if settings.search_backend == "bing" and not settings.bing_api_key:
            return False
        return True

    def execute(self, tool_input: str) -> str:
        query = tool_input.strip()
        if not query:
            return "Error: no query provided."
        if self.session.settings.search_backend == "bing":
            return self._bing(query)
        return self._ddg(query)

    def _bing(self, query: str) -> str:
        response = self.session.http.get(
            BING_URL,
            params={"q": query},
            headers={"Ocp-Apim-Subscription-Key": self.session.settings.bing_api_key or ""},
        )
        data: dict = {}
        if response.is_success:
            data = response.json()
        else:
            display.tool_failed(self.name, f"{response.status_code} - {response.reason_phrase}")

        hits = 0
        lines = ["Results:"]
        for value in (data.get("images") or {}).get("value", []):
            hits += 1
            lines.append(
                f"{value.get('name')}:\n{value.get('description', '')}\n"
                f"To retrieve, use this URL {value.get('contentUrl')} with the image tool."
            )
        for value in (data.get("videos") or {}).get("value", []):
            hits += 1
            lines.append(
                f"{value.get('name')}:\n{value.get('description', '')}\n"
                f"To retrieve, use this URL: {value.get('contentUrl')} with the video tool."
            )
        for value in (data.get("webPages") or {}).get("value", []):
            hits += 1
            lines.append(
                f"{value.get('name')}:\n{value.get('snippet', '')}\n"
                f"For further details, retrieve this URL: {value.get('url')}"
            )
        if hits == 0:
            lines.append("None found.")
        lines.append("\nEnd of results.")
        display.search_hits(hits)
        return "\n".join(lines)

    def _ddg(self, query: str) -> str:
        from ddgs import DDGS

        try:
            # Coerce the generator to a list to ensure actual execution
            results = list(DDGS().text(query, max_results=5))
        except Exception as e:
            return f"Search failed: {e}"

        display.search_hits(len(results))
        if not results:
            return "No results found."

        lines = []
        for r in results:
            lines.append(
                f"{r.get('title', 'No Title')}:\n{r.get('body', '')}\n"
                f"For further details, retrieve this URL: {r.get('href', '')}"
            )
        return "\n\n".join(lines)


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------

_BINARY = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY = {ast.USub: operator.neg, ast.UAdd: operator.pos}

_FUNCTIONS = {
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "sqrt": math.sqrt,
    "cbrt": lambda x: math.copysign(abs(x) ** (1 / 3), x),
    "exp": math.exp,
    "log": math.log,
    "ln": math.log,
    "log10": math.log10,
    "log2": math.log2,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "floor": math.floor,
    "ceil": math.ceil,
}

_CONSTANTS = {"pi": math.pi, "PI": math.pi, "e": math.e, "E": math.e}

MAX_EXPONENT = 10_000
MAX_RESULT_BITS = 14_000


def _evaluate_node(node: ast.AST) -> float:
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.Name) and node.id in _CONSTANTS:
        return _CONSTANTS[node.id]
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY:
        left = _evaluate_node(node.left)
        right = _evaluate_node(node.right)
        if isinstance(node.op, ast.Pow):
            if abs(right) > MAX_EXPONENT:
                raise ValueError("Exponent too large.")
            if isinstance(left, int) and isinstance(right, int) and right > 0:
                if abs(left).bit_length() * right > MAX_RESULT_BITS:
                    raise ValueError("Result too large.")
        result = _BINARY[type(node.op)](left, right)
        if isinstance(result, int) and result.bit_length() > MAX_RESULT_BITS:
            raise ValueError("Result too large.")
        return result
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY:
        return _UNARY[type(node.op)](_evaluate_node(node.operand))
    if (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id in _FUNCTIONS
        and not node.keywords
    ):
        return _FUNCTIONS[node.func.id](*[_evaluate_node(arg) for arg in node.args])
    raise ValueError(f"Unsupported expression: {ast.dump(node)}")


def evaluate_expression(expression: str) -> str:
    """Evaluate an arithmetic expression without eval(). '^' means power."""
    tree = ast.parse(expression.strip().replace("^", "**"), mode="eval")
    result = _evaluate_node(tree.body)
    if isinstance(result, float) and result.is_integer():
        result = int(result)
    return str(result)


class CalculatorTool(Tool):
    name = "calculator"
    description = (
        "Useful for getting the result of a mathematical expression. The input to this tool "
        "should be a valid mathematical expression that could be executed by a simple "
        "scientific calculator."
    )

    def execute(self, tool_input: str) -> str:
        try:
            return evaluate_expression(tool_input)
        except (SyntaxError, ValueError, TypeError, ZeroDivisionError, OverflowError) as exc:
            display.debug(f"calculator: {exc}")
            return ""


# ---------------------------------------------------------------------------
# Web retrieval
# ---------------------------------------------------------------------------


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(REMOVED_TAGS):
        tag.decompose()
    return soup.get_text("\n", strip=True)


def _clean_url(url: str) -> str:
    return url.strip().strip("\"'").strip()


class RetrieveTool(SessionTool):
    name = "retrieve"
    description = (
        "A URL retrieval tool. Useful for returning the plain text of a web site from its URL. "
        "Javascript is not supported. Input should be in the form of an absolute URL. If using "
        "Wikipedia, always use https://simple.wikipedia.org in preference to https://en.wikipedia.org"
    )
    raw = False

    def execute(self, tool_input: str) -> str:
        url = _clean_url(tool_input)
        try:
            response = self.session.http.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            display.tool_failed(self.name, str(exc))
            return f"That URL returned an error: {exc}"

        text = response.text if self.raw else html_to_text(response.text)
        text = self.session.set_retrieved_text(self.session.truncate(text))
        display.debug(text)
        return text


class PageSourceTool(RetrieveTool):
    name = "pagesource"
    description = (
        "A URL retrieval tool. Useful for returning the source HTML of a web site from its URL. "
        "Javascript is not supported. Input should be in the form of an absolute URL."
    )
    raw = True


class MetadataTool(SessionTool):
    name = "metadata"
    description = (
        "A tool used to retrieve metadata from a web page, including videos. Input should be in "
        "the form of a URL. The response will be in YAML format."
    )

    def execute(self, tool_input: str) -> str:
        url = _clean_url(tool_input)
        try:
            response = self.session.http.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            display.tool_failed(self.name, str(exc))
            return "No metadata found."

        soup = BeautifulSoup(response.text, "html.parser")
        metadata: dict[str, str] = {}
        if soup.title and soup.title.string:
            metadata["title"] = soup.title.string.strip()
        for meta in soup.find_all("meta"):
            key = meta.get("property") or meta.get("name")
            content = meta.get("content")
            if key and content:
                metadata[key] = content
        if not metadata:
            return "No metadata found."
        result = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True)
        display.debug(result)
        return self.session.set_retrieved_text(result)


# ---------------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------------


class MediaTool(SessionTool):
    kind = "image"

    def execute(self, tool_input: str) -> str:
        url = _clean_url(tool_input)
        if self.session.settings.gui:
            webbrowser.open(url)
            return f"The {self.kind} was displayed successfully in the browser."
        display.media_link(self.kind, url)
        return f"The {self.kind} was displayed successfully in the terminal."


class ImageTool(MediaTool):
    name = "image"
    description = (
        "A tool which allows you to retrieve and really display images from a web page. "
        "Prefer PNG and JPEG images. Input should be in the form of a URL."
    )
    kind = "image"


class VideoTool(MediaTool):
    name = "video"
    description = (
        "A tool which allows you to retrieve and really display videos from a web page. "
        "Input should be in the form of a URL."
    )
    kind = "video"


# ---------------------------------------------------------------------------
# GraphQL
# ---------------------------------------------------------------------------


class GraphQLTool(SessionTool):
    name = "graphql"
    description = (
        "A tool which should always be used to execute GraphQL queries. Input should be a JSON "
        "object in text form containing a url, and a query properties."
    )

    def execute(self, tool_input: str) -> str:
        try:
            request = yaml.safe_load(tool_input)
        except yaml.YAMLError as exc:
            return f"An error occurred: {exc}"
        if not isinstance(request, dict) or not request.get("url") or not request.get("query"):
            return "Input should be a JSON object with url and query properties."

        payload = {"query": request["query"]}
        if request.get("variables"):
            payload["variables"] = request["variables"]
        try:
            response = self.session.http.post(request["url"], json=payload)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            display.tool_failed(self.name, str(exc))
            return f"An error occurred: {exc}"

        result = yaml.safe_dump(body, sort_keys=False, allow_unicode=True)
        display.debug(result)
        return self.session.truncate(result)


# ---------------------------------------------------------------------------
# Script sandbox
# ---------------------------------------------------------------------------

# Builtins and modules a script may use. Scripts run through exec() with
# nothing else in scope, so open() and arbitrary imports are unavailable.
SCRIPT_BUILTINS = (
    "abs", "all", "any", "ascii", "bin", "bool", "bytearray", "bytes", "callable", "chr",
    "complex", "dict", "divmod", "enumerate", "filter", "float", "format", "frozenset",
    "hash", "hex", "int", "isinstance", "issubclass", "iter", "len", "list", "map", "max",
    "min", "next", "object", "oct", "ord", "pow", "print", "range", "repr", "reversed",
    "round", "set", "slice", "sorted", "str", "sum", "tuple", "zip",
    "super", "property", "staticmethod", "classmethod", "__build_class__",
    "Exception", "ArithmeticError", "AssertionError", "AttributeError", "ImportError",
    "IndexError", "KeyError", "LookupError", "NameError", "NotImplementedError",
    "RuntimeError", "StopIteration", "TypeError", "ValueError", "ZeroDivisionError",
)

SCRIPT_MODULES = (
    "bisect", "calendar", "cmath", "collections", "datetime", "decimal", "difflib",
    "fractions", "functools", "heapq", "itertools", "json", "math", "operator", "random",
    "re", "statistics", "string", "textwrap", "unicodedata",
)

_SCRIPT_WRAPPER = """\
import builtins as _builtins
import json as _json
import os as _os
import sys as _sys

_ALLOWED_MODULES = frozenset(_json.loads(_os.environ["SCRIPT_MODULES"]))


def _safe_import(name, globals=None, locals=None, fromlist=(), level=0):
    if level or name.split(".")[0] not in _ALLOWED_MODULES:
        raise ImportError(f"Import of '{name}' is not allowed")
    return __import__(name, globals, locals, fromlist, level)


_safe_builtins = {n: getattr(_builtins, n) for n in _json.loads(_os.environ["SCRIPT_BUILTINS"])}
_safe_builtins["__import__"] = _safe_import
_namespace = {
    "__builtins__": _safe_builtins,
    "__name__": "__script__",
    "prompt": _os.environ.get("CHAT_PROMPT", ""),
    "retrieved_text": _os.environ.get("CHAT_RETRIEVED_TEXT", ""),
    "chat_response": "",
}
_source = _sys.stdin.read()
exec(compile(_source, "<script>", "exec"), _namespace)
if _namespace.get("chat_response"):
    print("\\x1e" + str(_namespace["chat_response"]), end="")
"""

RESPONSE_SEPARATOR = "\x1e"


def private_access(source: str) -> str | None:
    """First underscore attribute or dunder name the script touches, if any."""
    for node in ast.walk(ast.parse(source, "<script>")):
        if isinstance(node, ast.Attribute) and node.attr.startswith("_"):
            return node.attr
        if isinstance(node, ast.Name) and node.id.startswith("__"):
            return node.id
    return None


class ScriptTool(SessionTool):
    name = "script"
    description = (
        "A Python execution sandbox. Use this to evaluate Python programs. You do not need to use "
        "this tool just to have output displayed. The input should be a self-contained Python "
        "script. To return text, either print it or assign it to the pre-existing global variable "
        "chat_response. You have access to the global variables prompt and retrieved_text. "
        "Files, the network and most imports are unavailable; math, json, re, datetime, "
        "statistics and similar modules can be imported."
    )

    def initialize(self) -> bool:
        return bool(sys.executable)

    def execute(self, tool_input: str) -> str:
        try:
            blocked = private_access(tool_input)
        except (SyntaxError, ValueError) as exc:
            return f"Running your script threw an error: {type(exc).__name__}: {exc}"
        if blocked:
            return f"Running your script threw an error: access to {blocked} is not allowed"

        env = {
            "PATH": os.environ.get("PATH", ""),
            "CHAT_PROMPT": self.session.prompt,
            "CHAT_RETRIEVED_TEXT": self.session.retrieved_text,
            "SCRIPT_BUILTINS": json.dumps(SCRIPT_BUILTINS),
            "SCRIPT_MODULES": json.dumps(SCRIPT_MODULES),
        }
        display.script_start()
        with tempfile.TemporaryDirectory() as workdir:
            try:
                completed = subprocess.run(
                    [sys.executable, "-I", "-c", _SCRIPT_WRAPPER],
                    input=tool_input,
                    cwd=workdir,
                    env=env,
                    capture_output=True,
                    text=True,
                    timeout=self.session.settings.script_timeout,
                )
            except subprocess.TimeoutExpired:
                return f"Running your script timed out after {self.session.settings.script_timeout:g} seconds."

        if completed.returncode != 0:
            errors = completed.stderr.strip().splitlines()
            message = errors[-1] if errors else f"exit code {completed.returncode}"
            return f"Running your script threw an error: {message}"

        output, _, response = completed.stdout.partition(RESPONSE_SEPARATOR)
        result = response.strip() or output.strip()
        if not result:
            return "No results."
        display.script_output(result)
        return result


# ---------------------------------------------------------------------------
# History and tool control
# ---------------------------------------------------------------------------


class ResetTool(SessionTool):
    name = "reset"
    description = (
        "A tool which simply resets the chat history to be blank. You must only call this when "
        "the chat history length exceeds half of your token limit."
    )

    def execute(self, tool_input: str) -> str:
        display.history_reset()
        self.session.history.reset()
        return "The chat history has been reset."


class ListTool(SessionTool):
    name = "list"
    description = "A tool used to list all the available enabled tools."

    def execute(self, tool_input: str) -> str:
        names = ", ".join(sorted(self.session.registry.list()))
        display.tool_list(names)
        return f"Can you confirm that you have access to the following available tools: {names}"


class EnableTool(SessionTool):
    name = "enable"
    description = "A tool used to enable another tool."

    def execute(self, tool_input: str) -> str:
        name = tool_input.strip().lower()
        if not self.session.registry.enable(name):
            return UNKNOWN_MESSAGE.format(name=name)
        return f"The {name} tool has been enabled."


class DisableTool(SessionTool):
    name = "disable"
    description = "A tool used to disable another tool. Use if a tool seems to be permanently broken."

    def execute(self, tool_input: str) -> str:
        name = tool_input.strip().lower()
        if not self.session.registry.disable(name):
            return UNKNOWN_MESSAGE.format(name=name)
        return f"The {name} tool has been disabled."


# ---------------------------------------------------------------------------
# Variables and local files (get and readfile start disabled)
# ---------------------------------------------------------------------------


class SetTool(SessionTool):
    name = "set"
    description = (
        "A tool used to set environment variables. Input should be a string containing the key in "
        "uppercase, then an equals sign (=), then a value, with no quoting."
    )

    def execute(self, tool_input: str) -> str:
        key, sep, value = tool_input.partition("=")
        key = key.upper().strip()
        if not sep or not key:
            return "Input should be a KEY=value pair."
        value = value.strip()
        self.session.set_variable(key, value)
        return f'The environment variable {key} has been set to "{value}".'


class GetTool(SessionTool):
    name = "get"
    description = (
        "A tool used to get environment variables. Input should be a string containing the key in "
        "uppercase. The result is the value of the given environment variable."
    )
    enabled_by_default = False

    def execute(self, tool_input: str) -> str:
        key = tool_input.split("=")[0].upper().strip()
        value = self.session.get_variable(key) or ""
        return f'The environment variable {key} currently has the value "{value}".'


class ReadFileTool(SessionTool):
    name = "readfile"
    description = (
        "A tool used to read text files from the local filesystem we share. Input should be a "
        "relative or absolute file path. The result is the contents of the given file."
    )
    enabled_by_default = False

    def execute(self, tool_input: str) -> str:
        path = _clean_url(tool_input)
        try:
            with open(path, encoding="utf-8") as fh:
                text = fh.read()
        except (OSError, UnicodeDecodeError) as exc:
            return str(exc)
        display.debug(text)
        return self.session.set_retrieved_text(self.session.truncate(text))


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def register_default_tools(session: "Session") -> None:
    from bingchain.plugins import ApiCallTool, InstallTool

    for tool in (
        SearchTool(session),
        CalculatorTool(),
        RetrieveTool(session),
        PageSourceTool(session),
        MetadataTool(session),
        ImageTool(session),
        VideoTool(session),
        InstallTool(session),
        ApiCallTool(session),
        GraphQLTool(session),
        ResetTool(session),
        ScriptTool(session),
        ListTool(session),
        EnableTool(session),
        DisableTool(session),
        SetTool(session),
        GetTool(session),
        ReadFileTool(session),
    ):
        session.registry.register(tool)
