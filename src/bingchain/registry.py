# registry.py
# Tool registry: the only way the agent loop reaches a tool.
#
# Tools never raise past dispatch(): any exception becomes Observation
# text so one broken tool cannot stop the loop.

from abc import ABC, abstractmethod
from typing import Callable

from bingchain import display

DISABLED_MESSAGE = "The {name} tool is currently disabled for security reasons."
UNKNOWN_MESSAGE = "There is no tool called {name}."


class Tool(ABC):
    """
    A named capability the model can invoke.

    Subclasses set `name` and `description`, implement `execute`, and may
    override `initialize` to switch themselves off at startup (for example
    when a credential is missing). Tools with `enabled_by_default = False`
    start disabled and must be enabled explicitly.
    """

    name: str = ""
    description: str = ""
    enabled_by_default: bool = True

    def initialize(self) -> bool:
        return True

    @abstractmethod
    def execute(self, tool_input: str) -> str | None: ...


class FunctionTool(Tool):
    """Wraps a plain callable as a tool."""

    def __init__(
        self,
        name: str,
        description: str,
        fn: Callable[[str], str | None],
        enabled_by_default: bool = True,
    ) -> None:
        self.name = name
        self.description = description
        self.enabled_by_default = enabled_by_default
        self._fn = fn

    def execute(self, tool_input: str) -> str | None:
        return self._fn(tool_input)


class ToolRegistry:
    """Name → Tool mapping plus the set of disabled names."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}
        self._disabled: set[str] = set()

    def register(self, tool: Tool) -> None:
        name = tool.name.lower().strip()
        if not name:
            raise ValueError("Tools must have a name.")
        if name in self._tools:
            raise ValueError(f"A tool called {name!r} is already registered.")
        self._tools[name] = tool
        if not tool.enabled_by_default:
            self._disabled.add(name)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name.lower().strip())

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def enable(self, name: str) -> bool:
        name = name.lower().strip()
        if name not in self._tools:
            return False
        self._disabled.discard(name)
        return True

    def disable(self, name: str) -> bool:
        name = name.lower().strip()
        if name not in self._tools:
            return False
        self._disabled.add(name)
        return True

    def is_enabled(self, name: str) -> bool:
        name = name.lower().strip()
        return name in self._tools and name not in self._disabled

    def names(self) -> list[str]:
        return list(self._tools)

    def describe(self) -> str:
        """One 'name: description' line per enabled tool."""
        return "\n".join(f"{name}: {self._tools[name].description}" for name in self.list())

    def initialize_all(self) -> None:
        """Run every tool's initialize() once; tools that decline are disabled."""
        for name in sorted(self._tools):
            try:
                ok = self._tools[name].initialize()
            except Exception as exc:
                display.tool_init_failed(name, str(exc))
                ok = False
            if not ok:
                self.disable(name)
            display.tool_initialised(name, self.is_enabled(name))

    def dispatch(self, name: str, tool_input: str) -> str | None:
        tool = self.get(name)
        if tool is None:
            return UNKNOWN_MESSAGE.format(name=name)
        if not self.is_enabled(name):
            return DISABLED_MESSAGE.format(name=tool.name)
        try:
            return tool.execute(tool_input)
        except Exception as exc:
            display.tool_failed(tool.name, str(exc))
            return f"The {tool.name} tool failed with an error: {exc}"

    # Defined last: the method name shadows the builtin in the class body.
    def list(self) -> list[str]:
        """Enabled tool names in registration order."""
        return [name for name in self._tools if name not in self._disabled]
