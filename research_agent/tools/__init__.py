"""Tool registry: name-based lookup of per-turn LangChain tool factories.

Tools stream UI as a side effect, so each turn builds fresh ``BaseTool``
objects bound to that turn's ``ToolContext``. Factories are registered with
``@register("name")``::

    @register("my_tool")
    def make_my_tool(context: ToolContext) -> BaseTool:
        @tool("my_tool")
        async def my_tool(query: str) -> str:
            ...
        return my_tool
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from langchain_core.tools import BaseTool

    from research_agent.config import Settings
    from research_agent.search import SearchProvider
    from research_agent.streaming import StreamableUI


def _ignore_error(message: str) -> None:
    pass


@dataclass
class ToolContext:
    """Per-turn collaborators handed to every tool factory."""

    ui_stream: StreamableUI
    settings: Settings
    search_provider: SearchProvider
    # Called with a user-facing notice when a tool degrades to an empty result.
    report_error: Callable[[str], None] = field(default=_ignore_error)


ToolFactory = Callable[[ToolContext], "BaseTool"]

_registry: dict[str, ToolFactory] = {}


def register(name: str) -> Callable[[ToolFactory], ToolFactory]:
    """Add a tool factory to the registry under ``name``."""

    def decorator(factory: ToolFactory) -> ToolFactory:
        _registry[name] = factory
        return factory

    return decorator


def get_tools(context: ToolContext, names: list[str] | None = None) -> list[BaseTool]:
    """Build the named tools (all registered tools by default) for one turn.

    Raises ``ValueError`` if any name is not registered.
    """
    names = list(_registry) if names is None else names
    missing = [n for n in names if n not in _registry]
    if missing:
        raise ValueError(
            f"Unknown tool(s): {missing}. Available: {list(_registry.keys())}"
        )
    return [_registry[n](context) for n in names]


def list_tools() -> list[str]:
    """Return all registered tool names."""
    return list(_registry.keys())


# Import tool modules so the registry is populated on first access.
import research_agent.tools.search as _search  # noqa: E402, F401
import research_agent.tools.retrieve as _retrieve  # noqa: E402, F401
