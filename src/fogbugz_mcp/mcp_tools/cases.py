"""MCP tools for creating, editing, assigning, searching and viewing cases."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mcp.types import Tool

from fogbugz_mcp.errors import FogBugzError
from fogbugz_mcp.mcp_tools.common import (
    _DEFAULT_LIMIT,
    ToolHandler,
    _apply_common_case_fields,
    _attachments,
    _case_summary,
    _error,
    _event_summary,
    _parse_args,
    _search_summary,
    _text,
)
from fogbugz_mcp.types.api import CaseDetail, CaseLinkPayload, SearchPayload, UserCasesPayload, ViewCasePayload
from fogbugz_mcp.types.core import CaseParams
from fogbugz_mcp.types.inputs import (
    AssignCaseArgs,
    CreateCaseArgs,
    GetCaseLinkArgs,
    ListUserCasesArgs,
    SearchCasesArgs,
    UpdateCaseArgs,
    ViewCaseArgs,
)

if TYPE_CHECKING:
    from fogbugz_mcp.client import FogBugzClient

# Columns requested by the list/search tools.
_LIST_COLUMNS = ["ixBug", "sTitle", "sStatus", "sPriority", "sProject", "sArea", "sFixFor"]
_SEARCH_COLUMNS = [*_LIST_COLUMNS, "sPersonAssignedTo"]

_PRIORITY_SCHEMA = {
    "type": ["number", "string"],
    "description": "Priority level (number 1-7) or name",
}
_ATTACHMENT_SCHEMA = {
    "type": "string",
    "description": "Path to a screenshot or file to attach",
}


def register() -> tuple[list[Tool], dict[str, ToolHandler]]:
    """Return (tool_definitions, handler_map) for case tools."""
    tools = [
        Tool(
            name="fogbugz_create_case",
            description="Creates a new FogBugz case with optional screenshot attachments.",
            inputSchema={
                "type": "object",
                "properties": {
                    "title": {"type": "string", "description": "Title or summary of the issue"},
                    "description": {"type": "string", "description": "Detailed description of the issue"},
                    "project": {"type": "string", "description": "Project name where the case should be created"},
                    "area": {"type": "string", "description": "Area name within the project"},
                    "milestone": {"type": "string", "description": "Milestone (FixFor) name"},
                    "priority": _PRIORITY_SCHEMA,
                    "assignee": {"type": "string", "description": "Person to assign the case to"},
                    "attachmentPath": _ATTACHMENT_SCHEMA,
                },
                "required": ["title"],
            },
        ),
        Tool(
            name="fogbugz_update_case",
            description="Updates an existing FogBugz case with new field values.",
            inputSchema={
                "type": "object",
                "properties": {
                    "caseId": {"type": "number", "description": "The ID of the case to update"},
                    "title": {"type": "string", "description": "New title for the case"},
                    "description": {"type": "string", "description": "Additional comment to add to the case"},
                    "project": {"type": "string", "description": "Project to move the case to"},
                    "area": {"type": "string", "description": "Area within the project"},
                    "milestone": {"type": "string", "description": "Milestone (FixFor) name"},
                    "priority": _PRIORITY_SCHEMA,
                    "attachmentPath": _ATTACHMENT_SCHEMA,
                },
                "required": ["caseId"],
            },
        ),
        Tool(
            name="fogbugz_assign_case",
            description="Assigns a FogBugz case to a specific user.",
            inputSchema={
                "type": "object",
                "properties": {
                    "caseId": {"type": "number", "description": "The ID of the case to assign"},
                    "assignee": {"type": "string", "description": "Name or email of the person to assign the case to"},
                },
                "required": ["caseId", "assignee"],
            },
        ),
        Tool(
            name="fogbugz_list_my_cases",
            description="Lists FogBugz cases assigned to a specific user.",
            inputSchema={
                "type": "object",
                "properties": {
                    "assignee": {
                        "type": "string",
                        "description": "Name or email of the person whose cases to list (defaults to current user if empty)",
                    },
                    "status": {"type": "string", "description": 'Filter by status (e.g., "active", "closed")'},
                    "limit": {
                        "type": "number",
                        "description": f"Maximum number of cases to return (default {_DEFAULT_LIMIT})",
                    },
                },
                "required": [],
            },
        ),
        Tool(
            name="fogbugz_search_cases",
            description="Searches for FogBugz cases based on a query string. Supports FogBugz search syntax.",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": 'Search query string. Supports FogBugz search syntax (e.g., "project:Website status:Active")',
                    },
                    "limit": {
                        "type": "number",
                        "description": f"Maximum number of cases to return (default {_DEFAULT_LIMIT})",
                    },
                },
                "required": ["query"],
            },
        ),
        Tool(
            name="fogbugz_get_case_link",
            description="Gets a direct URL link to a FogBugz case.",
            inputSchema={
                "type": "object",
                "properties": {
                    "caseId": {"type": "number", "description": "The ID of the case to get a link for"},
                },
                "required": ["caseId"],
            },
        ),
        Tool(
            name="fogbugz_view_case",
            description="Views detailed information about a specific FogBugz case.",
            inputSchema={
                "type": "object",
                "properties": {
                    "caseId": {"type": "number", "description": "The ID of the case to view"},
                    "includeEvents": {
                        "type": "boolean",
                        "description": "Whether to include the case event history (comments and changes)",
                    },
                },
                "required": ["caseId"],
            },
        ),
    ]

    handlers: dict[str, ToolHandler] = {
        "fogbugz_create_case": _handle_create_case,
        "fogbugz_update_case": _handle_update_case,
        "fogbugz_assign_case": _handle_assign_case,
        "fogbugz_list_my_cases": _handle_list_user_cases,
        "fogbugz_search_cases": _handle_search_cases,
        "fogbugz_get_case_link": _handle_get_case_link,
        "fogbugz_view_case": _handle_view_case,
    }
    return tools, handlers


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_create_case(client: FogBugzClient, arguments: dict[str, Any]) -> str:
    args = _parse_args("fogbugz_create_case", arguments, CreateCaseArgs)
    title = args["title"]
    project = args.get("project")
    assignee = args.get("assignee")

    params = CaseParams(sTitle=title)
    if assignee:
        params["sPersonAssignedTo"] = assignee
    try:
        await _apply_common_case_fields(client, params, dict(args))
        case = await client.create_case(params, _attachments(args.get("attachmentPath")))
    except FogBugzError as e:
        return _error(e)

    case_id = case.get("ixBug", 0)
    message = f'Created case #{case_id}: "{title}"'
    if project:
        message += f" in {project}"
    if assignee:
        message += f", assigned to {assignee}"
    return _text(CaseLinkPayload(caseId=case_id, caseLink=client.get_case_link(case_id), message=message + "."))


async def _handle_update_case(client: FogBugzClient, arguments: dict[str, Any]) -> str:
    args = _parse_args("fogbugz_update_case", arguments, UpdateCaseArgs)
    title = args.get("title")

    params = CaseParams(ixBug=args["caseId"])
    if title:
        params["sTitle"] = title
    try:
        await _apply_common_case_fields(client, params, dict(args))
        case = await client.update_case(params, _attachments(args.get("attachmentPath")))
    except FogBugzError as e:
        return _error(e)

    case_id = case.get("ixBug", args["caseId"])
    message = f"Updated case #{case_id}"
    if title:
        message += f': "{title}"'
    return _text(CaseLinkPayload(caseId=case_id, caseLink=client.get_case_link(case_id), message=message + "."))


async def _handle_assign_case(client: FogBugzClient, arguments: dict[str, Any]) -> str:
    args = _parse_args("fogbugz_assign_case", arguments, AssignCaseArgs)
    assignee = args["assignee"]
    try:
        case = await client.assign_case(args["caseId"], assignee)
    except FogBugzError as e:
        return _error(e)

    case_id = case.get("ixBug", args["caseId"])
    return _text(
        CaseLinkPayload(
            caseId=case_id,
            caseLink=client.get_case_link(case_id),
            message=f"Assigned case #{case_id} to {assignee}.",
        )
    )


async def _handle_list_user_cases(client: FogBugzClient, arguments: dict[str, Any]) -> str:
    args = _parse_args("fogbugz_list_my_cases", arguments, ListUserCasesArgs)
    assignee = args.get("assignee")
    status = args.get("status") or "active"

    query = f'assignedto:"{assignee}"' if assignee else "assignedto:me"
    query += f" status:{status}"
    try:
        cases = await client.search_cases({"q": query, "cols": _LIST_COLUMNS, "max": args.get("limit") or _DEFAULT_LIMIT})
    except FogBugzError as e:
        return _error(e)

    who = assignee or "current user"
    summaries = [_case_summary(client, c) for c in cases]
    return _text(
        UserCasesPayload(
            assignee=who,
            count=len(summaries),
            cases=summaries,
            message=f"Found {len(summaries)} {status} cases assigned to {who}.",
        )
    )


async def _handle_search_cases(client: FogBugzClient, arguments: dict[str, Any]) -> str:
    args = _parse_args("fogbugz_search_cases", arguments, SearchCasesArgs)
    query = args["query"]
    try:
        cases = await client.search_cases({"q": query, "cols": _SEARCH_COLUMNS, "max": args.get("limit") or _DEFAULT_LIMIT})
    except FogBugzError as e:
        return _error(e)

    summaries = [_search_summary(client, c) for c in cases]
    return _text(
        SearchPayload(
            query=query,
            count=len(summaries),
            cases=summaries,
            message=f'Found {len(summaries)} cases matching query: "{query}".',
        )
    )


async def _handle_get_case_link(client: FogBugzClient, arguments: dict[str, Any]) -> str:
    args = _parse_args("fogbugz_get_case_link", arguments, GetCaseLinkArgs)
    case_id = args["caseId"]
    link = client.get_case_link(case_id)
    return _text(CaseLinkPayload(caseId=case_id, caseLink=link, message=f"Link to case #{case_id}: {link}"))


async def _handle_view_case(client: FogBugzClient, arguments: dict[str, Any]) -> str:
    args = _parse_args("fogbugz_view_case", arguments, ViewCaseArgs)
    case_id = args["caseId"]
    include_events = args.get("includeEvents", False)
    try:
        case = await client.view_case(case_id, include_events)
    except FogBugzError as e:
        return _error(e)

    detail = CaseDetail(**_search_summary(client, case))
    detail["link"] = client.get_case_link(case_id)
    if include_events and case.get("events"):
        detail["events"] = [_event_summary(ev) for ev in case["events"]]
    return _text(ViewCasePayload(case=detail, message=f'Retrieved case #{case_id}: "{case.get("sTitle")}"'))
