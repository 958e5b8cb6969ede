"""TypedDicts for the JSON payloads returned by the MCP tool handlers."""

from __future__ import annotations

from typing import NotRequired, TypedDict


class ErrorPayload(TypedDict):
    """Domain failure reported inside a normal tool result."""

    error: str


class CaseLinkPayload(TypedDict):
    """Shape shared by create, update, assign and get-link results."""

    caseId: int
    caseLink: str
    message: str


class EventSummary(TypedDict):
    id: int | None
    person: str | None
    verb: str | None
    text: str | None
    description: str | None
    date: str | None


class CaseSummary(TypedDict):
    id: int | None
    title: str | None
    status: str | None
    priority: str | None
    project: str | None
    area: str | None
    milestone: str | None
    link: str


class SearchCaseSummary(CaseSummary):
    assignee: str | None


class CaseDetail(SearchCaseSummary):
    events: NotRequired[list[EventSummary]]


class UserCasesPayload(TypedDict):
    assignee: str
    count: int
    cases: list[CaseSummary]
    message: str


class SearchPayload(TypedDict):
    query: str
    count: int
    cases: list[SearchCaseSummary]
    message: str


class ViewCasePayload(TypedDict):
    case: CaseDetail
    message: str


class CreateProjectPayload(TypedDict):
    projectId: int | None
    projectName: str | None
    message: str
