"""MCP tools for project administration."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mcp.types import Tool

from fogbugz_mcp.errors import FogBugzError
from fogbugz_mcp.mcp_tools.common import ToolHandler, _error, _parse_args, _text
from fogbugz_mcp.types.api import CreateProjectPayload
from fogbugz_mcp.types.core import ProjectParams
from fogbugz_mcp.types.inputs import CreateProjectArgs

if TYPE_CHECKING:
    from fogbugz_mcp.client import FogBugzClient


def register() -> tuple[list[Tool], dict[str, ToolHandler]]:
    """Return (tool_definitions, handler_map) for project tools."""
    tools = [
        Tool(
            name="fogbugz_create_project",
            description="Creates a new project in FogBugz.",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Name of the project to create"},
                    "primaryContact": {
                        "type": ["string", "number"],
                        "description": "User ID, full name or email of the primary contact for the project",
                    },
                    "isInbox": {"type": "boolean", "description": "Whether this is an inbox project (default: false)"},
                    "allowPublicSubmit": {
                        "type": "boolean",
                        "description": "Whether to allow public submissions to this project",
                    },
                },
                "required": ["name"],
            },
        ),
    ]

    handlers: dict[str, ToolHandler] = {
        "fogbugz_create_project": _handle_create_project,
    }
    return tools, handlers


async def _handle_create_project(client: FogBugzClient, arguments: dict[str, Any]) -> str:
    args = _parse_args("fogbugz_create_project", arguments, CreateProjectArgs)

    params = ProjectParams(sProject=args["name"])
    if "isInbox" in args:
        params["fInbox"] = args["isInbox"]
    if "allowPublicSubmit" in args:
        params["fAllowPublicSubmit"] = args["allowPublicSubmit"]
    try:
        contact = args.get("primaryContact")
        if contact is not None and contact != "":
            params["ixPersonPrimaryContact"] = await client.resolve_person(contact)
        project = await client.create_project(params)
    except FogBugzError as e:
        return _error(e)

    name = project.get("sProject")
    project_id = project.get("ixProject")
    return _text(
        CreateProjectPayload(
            projectId=project_id,
            projectName=name,
            message=f'Created new project: "{name}" (ID: {project_id})',
        )
    )
