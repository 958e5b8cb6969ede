"""Async client for the FogBugz JSON API (``/f/api/0/jsonapi``).

Every command is a POST of ``{"cmd": ..., "token": ..., **params}``. When
files are attached the same payload travels as a ``json`` form field of a
multipart request, next to one part per file.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

import httpx

from fogbugz_mcp.config import DEFAULT_TIMEOUT, normalize_base_url
from fogbugz_mcp.errors import (
    CaseNotFoundError,
    FogBugzAPIError,
    FogBugzConnectionError,
    LookupFailedError,
)

if TYPE_CHECKING:
    from types import TracebackType

    from fogbugz_mcp.config import TrackerConfig
from fogbugz_mcp.types.core import (
    ApiReply,
    AreaRecord,
    CaseParams,
    CaseRecord,
    FileAttachment,
    FixForRecord,
    PersonRecord,
    PriorityRecord,
    ProjectParams,
    ProjectRecord,
    SearchParams,
)

logger = logging.getLogger(__name__)

API_PATH = "/f/api/0/jsonapi"

# Columns fetched by view_case; events are appended on request.
VIEW_CASE_COLUMNS = (
    "ixBug",
    "sTitle",
    "sStatus",
    "ixStatus",
    "sPriority",
    "ixPriority",
    "sProject",
    "ixProject",
    "sArea",
    "ixArea",
    "sFixFor",
    "ixFixFor",
    "sPersonAssignedTo",
    "ixPersonAssignedTo",
)

# "3 - Must Fix" / "3 – Must Fix": the numeric prefix is the priority id.
_PRIORITY_PREFIX = re.compile(r"^\s*(\d+)\s*[-–]\s*")


def _error_messages(errors: Any) -> list[str]:
    if not isinstance(errors, list):
        return []
    messages = []
    for err in errors:
        if isinstance(err, dict):
            messages.append(str(err.get("message", err)))
        else:
            messages.append(str(err))
    return messages


def _as_identifier(value: int | str) -> int | None:
    """Return *value* as an integer id when it is one (or a numeric string)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = value.strip()
    if text.isdigit():
        return int(text)
    return None


class FogBugzClient:
    """Typed access to one FogBugz site.

    Holds no per-call state, so a single instance is shared by every tool
    handler. Pass *http_client* to reuse a configured ``httpx.AsyncClient``
    (tests inject one built on ``httpx.MockTransport``); otherwise the client
    owns and closes its own.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = normalize_base_url(base_url)
        self.api_key = api_key
        self.api_endpoint = f"{self.base_url}{API_PATH}"
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def from_config(cls, config: TrackerConfig, *, http_client: httpx.AsyncClient | None = None) -> FogBugzClient:
        return cls(config.base_url, config.api_key, timeout=config.timeout, http_client=http_client)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> FogBugzClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        cmd: str,
        params: dict[str, Any] | None = None,
        files: list[FileAttachment] | None = None,
    ) -> dict[str, Any]:
        """Run one API command and return its ``data`` object.

        Raises :class:`FogBugzConnectionError` when the site is unreachable and
        :class:`FogBugzAPIError` on an HTTP error or a non-empty ``errors`` list.
        """
        payload: dict[str, Any] = {"cmd": cmd, "token": self.api_key, **(params or {})}
        if isinstance(payload.get("cols"), str):
            payload["cols"] = [c.strip() for c in payload["cols"].split(",") if c.strip()]

        parts: list[tuple[str, tuple[str, bytes]]] = []
        for i, attachment in enumerate(files or [], start=1):
            path = Path(attachment["path"]).expanduser()
            if not path.is_file():
                logger.warning("Skipping missing attachment", extra={"args_data": {"path": str(path), "cmd": cmd}})
                continue
            parts.append((attachment.get("fieldName") or f"File{i}", (path.name, path.read_bytes())))

        logger.debug("fogbugz_request", extra={"args_data": {"cmd": cmd, "files": len(parts)}})
        try:
            if parts:
                payload["nFileCount"] = len(parts)
                response = await self._http.post(self.api_endpoint, data={"json": json.dumps(payload)}, files=parts)
            else:
                response = await self._http.post(self.api_endpoint, json=payload)
        except httpx.TimeoutException as exc:
            msg = f"Timed out talking to FogBugz at {self.base_url} ({cmd})"
            raise FogBugzConnectionError(msg) from exc
        except httpx.HTTPError as exc:
            msg = f"Failed to connect to FogBugz at {self.base_url}: {exc}"
            raise FogBugzConnectionError(msg) from exc

        body: Any
        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = response.text

        errors = body.get("errors") if isinstance(body, dict) else None
        messages = _error_messages(errors)
        if response.status_code >= 400:
            detail = ", ".join(messages) if messages else (body if isinstance(body, str) else json.dumps(body))
            raise FogBugzAPIError(detail, status_code=response.status_code, cmd=cmd, errors=errors or [])
        if messages:
            raise FogBugzAPIError(", ".join(messages), cmd=cmd, errors=errors)
        if not isinstance(body, dict):
            msg = "reply is not a JSON object"
            raise FogBugzAPIError(msg, status_code=response.status_code, cmd=cmd)

        data = cast(ApiReply, body).get("data")
        return data if isinstance(data, dict) else {}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_current_user(self) -> PersonRecord:
        """Return the person the API token belongs to."""
        data = await self._request("viewPerson")
        return cast(PersonRecord, data.get("person") or {})

    async def list_projects(self) -> list[ProjectRecord]:
        data = await self._request("listProjects")
        return cast(list[ProjectRecord], data.get("projects") or [])

    async def list_areas(self) -> list[AreaRecord]:
        data = await self._request("listAreas")
        return cast(list[AreaRecord], data.get("areas") or [])

    async def list_milestones(self) -> list[FixForRecord]:
        data = await self._request("listFixFors")
        return cast(list[FixForRecord], data.get("fixfors") or [])

    async def list_priorities(self) -> list[PriorityRecord]:
        data = await self._request("listPriorities")
        return cast(list[PriorityRecord], data.get("priorities") or [])

    async def list_people(self) -> list[PersonRecord]:
        data = await self._request("listPeople")
        return cast(list[PersonRecord], data.get("people") or [])

    async def resolve_priority(self, value: int | str) -> int:
        """Map a priority id, ``"<n> - <name>"`` or a priority name to its id."""
        ident = _as_identifier(value)
        if ident is not None:
            return ident
        text = str(value)
        prefixed = _PRIORITY_PREFIX.match(text)
        if prefixed:
            return int(prefixed.group(1))

        wanted = text.strip().casefold()
        priorities = await self.list_priorities()
        for priority in priorities:
            if str(priority.get("sPriority", "")).strip().casefold() == wanted:
                return int(priority["ixPriority"])
        raise LookupFailedError("priority", text, [str(p.get("sPriority")) for p in priorities if p.get("sPriority")])

    async def resolve_person(self, value: int | str) -> int:
        """Map a person id, full name, username or email address to ``ixPerson``."""
        ident = _as_identifier(value)
        if ident is not None:
            return ident

        wanted = str(value).strip().casefold()
        for person in await self.list_people():
            candidates = (person.get("sFullName"), person.get("sPerson"), person.get("sEmail"))
            if any(c and str(c).strip().casefold() == wanted for c in candidates):
                return int(person["ixPerson"])
        raise LookupFailedError("person", str(value))

    # ------------------------------------------------------------------
    # Cases
    # ------------------------------------------------------------------

    async def create_case(self, params: CaseParams, attachments: list[FileAttachment] | None = None) -> CaseRecord:
        data = await self._request("new", dict(params), attachments)
        return cast(CaseRecord, data.get("case") or {})

    async def update_case(self, params: CaseParams, attachments: list[FileAttachment] | None = None) -> CaseRecord:
        data = await self._request("edit", dict(params), attachments)
        return cast(CaseRecord, data.get("case") or {})

    async def assign_case(self, case_id: int, person: str) -> CaseRecord:
        data = await self._request("assign", {"ixBug": case_id, "sPersonAssignedTo": person})
        return cast(CaseRecord, data.get("case") or {})

    async def search_cases(self, params: SearchParams) -> list[CaseRecord]:
        data = await self._request("search", dict(params))
        return cast(list[CaseRecord], data.get("cases") or [])

    async def view_case(self, case_id: int, include_events: bool = False) -> CaseRecord:
        """Fetch one case; raises :class:`CaseNotFoundError` when the search is empty."""
        cols = list(VIEW_CASE_COLUMNS)
        if include_events:
            cols += ["events", "latestEvent"]
        cases = await self.search_cases({"q": str(case_id), "cols": cols})
        if not cases:
            raise CaseNotFoundError(case_id)
        return cases[0]

    def get_case_link(self, case_id: int) -> str:
        return f"{self.base_url}/default.asp?{case_id}"

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def create_project(self, params: ProjectParams) -> ProjectRecord:
        api_params: dict[str, Any] = {"sProject": params["sProject"]}
        if "ixPersonPrimaryContact" in params:
            api_params["ixPersonPrimaryContact"] = params["ixPersonPrimaryContact"]
        # The API expects 0/1 rather than JSON booleans.
        if "fInbox" in params:
            api_params["fInbox"] = 1 if params["fInbox"] else 0
        if "fAllowPublicSubmit" in params:
            api_params["fAllowPublicSubmit"] = 1 if params["fAllowPublicSubmit"] else 0
        data = await self._request("newProject", api_params)
        return cast(ProjectRecord, data.get("project") or {})
