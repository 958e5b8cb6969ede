"""TypedDicts for records and command parameters of the FogBugz JSON API.

Field names follow the tracker's Hungarian-prefixed wire format (``ixBug``,
``sTitle`` ...). Records are ``total=False`` because the column set of a
reply depends on the ``cols`` the caller asked for.
"""

from __future__ import annotations

from typing import Any, NotRequired, TypedDict


class EventRecord(TypedDict, total=False):
    ixBugEvent: int
    ixBug: int
    evt: int
    sVerb: str
    ixPerson: int
    sPerson: str
    ixPersonAssignedTo: int
    dt: str
    s: str
    sHTML: str
    sText: str
    fEmail: bool
    fExternal: bool
    sFormat: str
    sChanges: str


class CaseRecord(TypedDict, total=False):
    ixBug: int
    sTitle: str
    sStatus: str
    ixStatus: int
    sPriority: str
    ixPriority: int
    sProject: str
    ixProject: int
    sArea: str
    ixArea: int
    sFixFor: str
    ixFixFor: int
    sPersonAssignedTo: str
    ixPersonAssignedTo: int
    events: list[EventRecord]
    latestEvent: EventRecord


class ProjectRecord(TypedDict, total=False):
    ixProject: int
    sProject: str
    ixPersonOwner: int
    sPersonOwner: str
    fInbox: bool


class AreaRecord(TypedDict, total=False):
    ixArea: int
    sArea: str
    ixProject: int
    sProject: str


class FixForRecord(TypedDict, total=False):
    ixFixFor: int
    sFixFor: str
    ixProject: int
    dt: str | None


class PriorityRecord(TypedDict, total=False):
    ixPriority: int
    sPriority: str
    fDefault: bool


class PersonRecord(TypedDict, total=False):
    ixPerson: int
    sPerson: str
    sFullName: str
    sEmail: str
    fAdministrator: bool


# ---------------------------------------------------------------------------
# Command parameters (the body merged into {"cmd": ..., "token": ...})
# ---------------------------------------------------------------------------


class CaseParams(TypedDict, total=False):
    """Fields shared by the ``new`` and ``edit`` commands."""

    ixBug: int
    sTitle: str
    sEvent: str
    sProject: str
    ixProject: int
    sArea: str
    ixArea: int
    sFixFor: str
    ixFixFor: int
    sPriority: str
    ixPriority: int
    sPersonAssignedTo: str
    ixPersonAssignedTo: int


class SearchParams(TypedDict):
    q: str
    cols: NotRequired[list[str] | str]
    max: NotRequired[int]


class ProjectParams(TypedDict):
    sProject: str
    ixPersonPrimaryContact: NotRequired[int]
    fAllowPublicSubmit: NotRequired[bool]
    fInbox: NotRequired[bool]


class FileAttachment(TypedDict):
    path: str
    fieldName: NotRequired[str]


class ApiReply(TypedDict, total=False):
    """Top-level JSON reply of ``/f/api/0/jsonapi``."""

    data: dict[str, Any]
    errors: list[dict[str, Any]]
    warnings: list[Any]
    meta: dict[str, Any]
