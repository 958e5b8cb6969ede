"""MCP tool modules and the catalog that merges them.

Each domain module exposes ``register() -> (tools, handlers)``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from mcp.types import Tool

from fogbugz_mcp.mcp_tools import cases, projects
from fogbugz_mcp.mcp_tools.common import ToolHandler

_MODULES = (cases, projects)


@dataclass(frozen=True)
class ToolCatalog:
    """Fixed tool set for a session: ordered descriptors plus name -> handler."""

    tools: tuple[Tool, ...]
    handlers: dict[str, ToolHandler] = field(default_factory=dict)
    _descriptors: tuple[dict[str, Any], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # Serialized once so every tools/list reply is identical.
        object.__setattr__(
            self,
            "_descriptors",
            tuple(t.model_dump(by_alias=True, exclude_none=True) for t in self.tools),
        )

    def descriptors(self) -> list[dict[str, Any]]:
        return list(self._descriptors)

    def get(self, name: object) -> ToolHandler | None:
        if not isinstance(name, str):
            return None
        return self.handlers.get(name)

    def names(self) -> list[str]:
        return [t.name for t in self.tools]


def build_catalog() -> ToolCatalog:
    """Merge every module's tools; duplicate names are a programming error."""
    tools: list[Tool] = []
    handlers: dict[str, ToolHandler] = {}
    for module in _MODULES:
        mod_tools, mod_handlers = module.register()
        for tool in mod_tools:
            if tool.name in handlers:
                msg = f"Duplicate tool name: {tool.name}"
                raise ValueError(msg)
            if tool.name not in mod_handlers:
                msg = f"Tool {tool.name} has no handler"
                raise ValueError(msg)
            tools.append(tool)
            handlers[tool.name] = mod_handlers[tool.name]
    return ToolCatalog(tools=tuple(tools), handlers=handlers)


__all__ = ["ToolCatalog", "ToolHandler", "build_catalog"]
