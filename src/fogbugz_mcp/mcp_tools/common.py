"""Pure helpers shared across MCP tool modules.

This module has NO dependency on ``mcp_server``, so it can be imported
freely without triggering circular-import issues.
"""

from __future__ import annotations

import json
import logging
import types
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar, Union, cast, get_args, get_origin, get_type_hints

from fogbugz_mcp.errors import InvalidArgumentsError

if TYPE_CHECKING:
    from fogbugz_mcp.client import FogBugzClient
from fogbugz_mcp.types.api import CaseSummary, ErrorPayload, EventSummary, SearchCaseSummary
from fogbugz_mcp.types.core import CaseParams, CaseRecord, EventRecord, FileAttachment

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

# Every handler: (client, raw arguments) -> JSON text.
ToolHandler = Callable[["FogBugzClient", dict[str, Any]], Awaitable[str]]

# Default page size for search-style tools when the caller gives no limit.
_DEFAULT_LIMIT = 20

_JSON_TYPE_NAMES = {str: "a string", int: "an integer", bool: "a boolean", float: "a number"}


def _coerce(value: Any, hint: Any) -> tuple[bool, Any]:
    """Check *value* against a TypedDict annotation; return (ok, converted value)."""
    origin = get_origin(hint)
    allowed = get_args(hint) if origin in (Union, types.UnionType) else (hint,)
    for t in allowed:
        if t is bool:
            if isinstance(value, bool):
                return True, value
        elif t is int:
            if isinstance(value, int) and not isinstance(value, bool):
                return True, value
            # JSON has one number type; accept 12.0 for an integer id.
            if isinstance(value, float) and value.is_integer():
                return True, int(value)
        elif t is float:
            if isinstance(value, int | float) and not isinstance(value, bool):
                return True, float(value)
        elif isinstance(t, type) and isinstance(value, t):
            return True, value
    return False, value


def _describe(hint: Any) -> str:
    origin = get_origin(hint)
    allowed = get_args(hint) if origin in (Union, types.UnionType) else (hint,)
    return " or ".join(_JSON_TYPE_NAMES.get(t, getattr(t, "__name__", str(t))) for t in allowed)


def _parse_args(tool: str, arguments: Any, cls: type[_T]) -> _T:
    """Validate a raw argument bag against the TypedDict *cls*.

    Required keys must be present, every annotated key must carry a value of
    the declared JSON type, ``null`` counts as absent and unknown keys are
    dropped. Raises :class:`InvalidArgumentsError` listing every problem.
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise InvalidArgumentsError(tool, ["arguments must be an object"])

    required: frozenset[str] = getattr(cls, "__required_keys__", frozenset())
    problems: list[str] = []
    parsed: dict[str, Any] = {}
    for key, hint in get_type_hints(cls).items():
        value = arguments.get(key)
        if value is None:
            if key in required:
                problems.append(f"{key} is required")
            continue
        ok, converted = _coerce(value, hint)
        if not ok:
            problems.append(f"{key} must be {_describe(hint)}")
            continue
        parsed[key] = converted
    if problems:
        raise InvalidArgumentsError(tool, problems)
    return cast(_T, parsed)


def _text(content: object) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, indent=2, default=str)


def _error(exc: BaseException) -> str:
    return _text(ErrorPayload(error=str(exc)))


def _attachments(path: str | None) -> list[FileAttachment]:
    if not path:
        return []
    return [FileAttachment(path=path, fieldName="File1")]


async def _apply_common_case_fields(
    client: FogBugzClient,
    params: CaseParams,
    arguments: dict[str, Any],
) -> None:
    """Copy the shared create/update fields onto *params*, resolving priority names."""
    if arguments.get("description"):
        params["sEvent"] = arguments["description"]
    if arguments.get("project"):
        params["sProject"] = arguments["project"]
    if arguments.get("area"):
        params["sArea"] = arguments["area"]
    if arguments.get("milestone"):
        params["sFixFor"] = arguments["milestone"]
    priority = arguments.get("priority")
    if isinstance(priority, int):
        params["ixPriority"] = priority
    elif priority:
        params["ixPriority"] = await client.resolve_priority(priority)


def _case_summary(client: FogBugzClient, case: CaseRecord) -> CaseSummary:
    """Return the compact per-case shape used by list results."""
    return CaseSummary(
        id=case.get("ixBug"),
        title=case.get("sTitle"),
        status=case.get("sStatus"),
        priority=case.get("sPriority"),
        project=case.get("sProject"),
        area=case.get("sArea"),
        milestone=case.get("sFixFor"),
        link=client.get_case_link(case.get("ixBug", 0)),
    )


def _search_summary(client: FogBugzClient, case: CaseRecord) -> SearchCaseSummary:
    return SearchCaseSummary(**_case_summary(client, case), assignee=case.get("sPersonAssignedTo"))


def _event_summary(event: EventRecord) -> EventSummary:
    return EventSummary(
        id=event.get("ixBugEvent"),
        person=event.get("sPerson"),
        verb=event.get("sVerb"),
        text=event.get("sText") or event.get("sHTML") or event.get("s"),
        description=event.get("s"),
        date=event.get("dt"),
    )
