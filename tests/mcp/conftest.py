"""Fixtures for MCP tool handler tests."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from fogbugz_mcp.client import FogBugzClient
from fogbugz_mcp.mcp_tools import ToolCatalog, build_catalog


@pytest.fixture
def catalog() -> ToolCatalog:
    return build_catalog()


@pytest.fixture
def call_tool(catalog: ToolCatalog, client: FogBugzClient) -> Callable[[str, dict[str, Any]], Awaitable[str]]:
    """Invoke a tool handler directly, bypassing the JSON-RPC layer."""

    async def _call(name: str, arguments: dict[str, Any]) -> str:
        handler = catalog.get(name)
        assert handler is not None, f"no handler for {name}"
        return await handler(client, arguments)

    return _call
