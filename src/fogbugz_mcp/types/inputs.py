"""TypedDict contracts for MCP tool handler input arguments.

Each TypedDict mirrors the JSON Schema ``inputSchema`` on the corresponding
``mcp.types.Tool`` definition.  The ``TOOL_ARGS_MAP`` registry maps tool names
to their TypedDict class so the sync test can verify structural agreement.

Unlike a bare ``cast()``, handlers pass these classes to
``mcp_tools.common._parse_args``, which checks presence and JSON types of
every annotated key at runtime before the handler reads a single field.
"""

# NOTE: Do NOT add ``from __future__ import annotations`` to this module.
# It breaks TypedDict.__required_keys__ / __optional_keys__ introspection
# on Python <3.14, which both the sync test and _parse_args depend on.

from typing import NotRequired, TypedDict

# ---------------------------------------------------------------------------
# cases.py handlers
# ---------------------------------------------------------------------------


class CreateCaseArgs(TypedDict):
    title: str
    description: NotRequired[str]
    project: NotRequired[str]
    area: NotRequired[str]
    milestone: NotRequired[str]
    priority: NotRequired[int | str]
    assignee: NotRequired[str]
    attachmentPath: NotRequired[str]


class UpdateCaseArgs(TypedDict):
    caseId: int
    title: NotRequired[str]
    description: NotRequired[str]
    project: NotRequired[str]
    area: NotRequired[str]
    milestone: NotRequired[str]
    priority: NotRequired[int | str]
    attachmentPath: NotRequired[str]


class AssignCaseArgs(TypedDict):
    caseId: int
    assignee: str


class ListUserCasesArgs(TypedDict):
    assignee: NotRequired[str]
    status: NotRequired[str]
    limit: NotRequired[int]


class SearchCasesArgs(TypedDict):
    query: str
    limit: NotRequired[int]


class GetCaseLinkArgs(TypedDict):
    caseId: int


class ViewCaseArgs(TypedDict):
    caseId: int
    includeEvents: NotRequired[bool]


# ---------------------------------------------------------------------------
# projects.py handlers
# ---------------------------------------------------------------------------


class CreateProjectArgs(TypedDict):
    name: str
    primaryContact: NotRequired[int | str]
    isInbox: NotRequired[bool]
    allowPublicSubmit: NotRequired[bool]


# Registry: tool_name -> TypedDict class.
TOOL_ARGS_MAP: dict[str, type] = {
    # cases.py
    "fogbugz_create_case": CreateCaseArgs,
    "fogbugz_update_case": UpdateCaseArgs,
    "fogbugz_assign_case": AssignCaseArgs,
    "fogbugz_list_my_cases": ListUserCasesArgs,
    "fogbugz_search_cases": SearchCasesArgs,
    "fogbugz_get_case_link": GetCaseLinkArgs,
    "fogbugz_view_case": ViewCaseArgs,
    # projects.py
    "fogbugz_create_project": CreateProjectArgs,
}
