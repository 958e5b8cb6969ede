"""JSON-RPC envelopes and per-connection session state.

Pure data and builders; reading and writing the stream is
``mcp_server``'s job.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import IntEnum, StrEnum
from typing import Any, TypedDict

from mcp.types import TextContent

from fogbugz_mcp import __version__
from fogbugz_mcp.errors import InvalidRequestError

JSONRPC_VERSION = "2.0"
DEFAULT_PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "FogBugz MCP Server"
SERVER_VERSION = __version__

NOTIFICATION_PREFIX = "notifications/"

RequestId = str | int | float | None


class ErrorCode(IntEnum):
    PARSE_ERROR = -32700
    METHOD_NOT_FOUND = -32601
    SERVER_ERROR = -32000


class Method(StrEnum):
    """Every method name the dispatcher understands."""

    INITIALIZE = "initialize"
    SHUTDOWN = "shutdown"
    INITIALIZED = "notifications/initialized"
    PING = "mcp.ping"
    LIST_TOOLS = "mcp.listTools"
    TOOLS_LIST = "tools/list"
    CALL_TOOL = "mcp.callTool"
    TOOLS_CALL = "tools/call"

    @classmethod
    def lookup(cls, name: str) -> Method | None:
        try:
            return cls(name)
        except ValueError:
            return None


class SessionState(StrEnum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    SHUTTING_DOWN = "shutting_down"


class ServerInfo(TypedDict):
    name: str
    version: str


class InitializeResult(TypedDict):
    protocolVersion: str
    capabilities: dict[str, Any]
    serverInfo: ServerInfo


@dataclass
class Session:
    """Lifecycle of one client connection, owned by a single dispatcher."""

    state: SessionState = SessionState.UNINITIALIZED
    protocol_version: str = DEFAULT_PROTOCOL_VERSION
    client_info: dict[str, Any] = field(default_factory=dict)
    initialized_notified: bool = False

    @property
    def is_initialized(self) -> bool:
        return self.state is SessionState.INITIALIZED

    def initialize(self, params: dict[str, Any]) -> InitializeResult:
        """Record the client's protocol version and describe this server."""
        requested = params.get("protocolVersion")
        self.protocol_version = requested if isinstance(requested, str) and requested else DEFAULT_PROTOCOL_VERSION
        client_info = params.get("clientInfo")
        self.client_info = client_info if isinstance(client_info, dict) else {}
        self.state = SessionState.INITIALIZED
        return {
            "protocolVersion": self.protocol_version,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
        }

    def mark_initialized(self) -> None:
        self.initialized_notified = True

    def shutdown(self) -> None:
        self.state = SessionState.SHUTTING_DOWN


@dataclass(frozen=True)
class Request:
    id: RequestId
    method: str
    params: dict[str, Any]

    @property
    def is_notification(self) -> bool:
        return self.method.startswith(NOTIFICATION_PREFIX)

    @classmethod
    def from_payload(cls, payload: Any) -> Request:
        """Build a request from a decoded JSON value.

        Raises :class:`InvalidRequestError` when *payload* is not an object
        with a string ``method``.
        """
        if not isinstance(payload, dict):
            msg = "Parse error"
            raise InvalidRequestError(msg)
        request_id = payload.get("id")
        if not isinstance(request_id, str | int | float) or isinstance(request_id, bool):
            request_id = None
        method = payload.get("method")
        if not isinstance(method, str):
            msg = f"Method not found: {method}"
            raise InvalidRequestError(msg, request_id)
        params = payload.get("params")
        return cls(id=request_id, method=method, params=params if isinstance(params, dict) else {})


def result_response(request_id: RequestId, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def error_response(request_id: RequestId, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": {"code": int(code), "message": message}}


def text_content(text: str) -> dict[str, Any]:
    """Wrap a tool's string result as a ``tools/call`` result."""
    block = TextContent(type="text", text=text)
    return {"content": [block.model_dump(by_alias=True, exclude_none=True)]}


def encode(message: dict[str, Any]) -> str:
    """Serialize one envelope as a single ASCII line; non-ASCII and lone surrogates are \\u-escaped."""
    return json.dumps(message, separators=(",", ":"), default=str)
