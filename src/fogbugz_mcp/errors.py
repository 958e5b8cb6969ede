"""Exception taxonomy for the FogBugz bridge.

Two tiers matter to the dispatcher:

* :class:`FogBugzError` and subclasses are *domain faults*. Tool handlers
  catch them and report ``{"error": message}`` inside a normal result.
* Everything else (:class:`InvalidArgumentsError`, :class:`UnknownToolError`,
  plain programming errors) propagates and becomes a ``-32000`` envelope.
"""

from __future__ import annotations

from typing import Any


class FogBugzError(RuntimeError):
    """Base class for failures reported by, or while talking to, the tracker."""


class FogBugzConnectionError(FogBugzError):
    """Raised when the tracker cannot be reached or the request timed out."""


class FogBugzAPIError(FogBugzError):
    """Raised on an HTTP error status or an application-level ``errors`` list."""

    def __init__(
        self,
        detail: str,
        *,
        status_code: int | None = None,
        cmd: str | None = None,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        self.detail = detail
        self.status_code = status_code
        self.cmd = cmd
        self.errors = errors or []
        status_hint = f"{status_code} - " if status_code is not None else ""
        super().__init__(f"FogBugz API Error: {status_hint}{detail}")


class CaseNotFoundError(FogBugzError):
    """Raised when a case lookup returns no rows."""

    def __init__(self, case_id: int) -> None:
        self.case_id = case_id
        super().__init__(f"Case #{case_id} not found")


class LookupFailedError(FogBugzError):
    """Raised when a name cannot be resolved to a tracker identifier."""

    def __init__(self, kind: str, value: str, choices: list[str] | None = None) -> None:
        self.kind = kind
        self.value = value
        self.choices = choices or []
        msg = f"Unknown {kind}: {value!r}"
        if self.choices:
            msg += f" (valid: {', '.join(self.choices)})"
        super().__init__(msg)


class InvalidArgumentsError(ValueError):
    """Raised when a tool's argument bag does not match its declared parameters."""

    def __init__(self, tool: str, problems: list[str]) -> None:
        self.tool = tool
        self.problems = problems
        super().__init__(f"Invalid arguments for {tool}: {'; '.join(problems)}")


class UnknownToolError(LookupError):
    """Raised when ``tools/call`` names a tool that is not in the catalog."""

    def __init__(self, name: object) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")

    def __str__(self) -> str:
        # LookupError.__str__ would repr() a single KeyError-style arg.
        return str(self.args[0])


class ConfigError(ValueError):
    """Raised for missing or malformed startup configuration."""


class InvalidRequestError(ValueError):
    """Raised when a decoded line is JSON but not a JSON-RPC request object."""

    def __init__(self, message: str, request_id: Any = None) -> None:
        self.request_id = request_id
        super().__init__(message)
