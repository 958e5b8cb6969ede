"""Line-delimited JSON-RPC server bridging MCP clients to FogBugz.

One JSON value per line in on stdin, one per line out on stdout. Requests
are handled strictly in order: a line is read only after the previous
request (including its HTTP round trip) has been answered.

Usage:
    fogbugz-mcp https://example.fogbugz.com <api-key>
    FOGBUGZ_URL=... FOGBUGZ_API_KEY=... fogbugz-mcp
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import os
import signal
import sys
import time
from collections.abc import AsyncIterable, Callable
from io import TextIOWrapper
from typing import TYPE_CHECKING, Any

import anyio

from fogbugz_mcp.errors import InvalidRequestError, UnknownToolError
from fogbugz_mcp.mcp_tools import ToolCatalog, build_catalog
from fogbugz_mcp.protocol import (
    ErrorCode,
    Method,
    Request,
    Session,
    encode,
    error_response,
    result_response,
    text_content,
)

if TYPE_CHECKING:
    from fogbugz_mcp.client import FogBugzClient

logger = logging.getLogger(__name__)

Emit = Callable[[str], Any]


class Dispatcher:
    """Owns one session: decodes lines, routes methods, encodes replies.

    Every non-notification line yields exactly one response line. Nothing a
    client sends can make :meth:`handle_line` raise.
    """

    def __init__(
        self,
        client: FogBugzClient,
        *,
        catalog: ToolCatalog | None = None,
        call_timeout: float | None = None,
    ) -> None:
        self.client = client
        self.catalog = catalog or build_catalog()
        self.call_timeout = call_timeout
        self.session = Session()

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def run(self, lines: AsyncIterable[str], emit: Emit) -> None:
        """Answer each line of *lines* through *emit* until the input ends."""
        async for line in lines:
            response = await self.handle_line(line)
            if response is None:
                continue
            result = emit(response)
            if inspect.isawaitable(result):
                await result

    async def handle_line(self, line: str) -> str | None:
        """Process one input line; return the encoded reply or ``None`` for notifications."""
        try:
            payload = json.loads(line)
        except (ValueError, RecursionError):
            # RecursionError: nesting deeper than the decoder's stack.
            payload = None
        if not isinstance(payload, dict):
            logger.warning("parse_error", extra={"args_data": {"line": line[:200]}})
            return encode(error_response(None, ErrorCode.PARSE_ERROR, "Parse error"))

        try:
            request = Request.from_payload(payload)
        except InvalidRequestError as e:
            logger.warning("invalid_method", extra={"args_data": {"method": repr(payload.get("method"))}})
            return encode(error_response(e.request_id, ErrorCode.METHOD_NOT_FOUND, str(e)))

        response = await self.handle_request(request)
        return None if response is None else encode(response)

    async def handle_request(self, request: Request) -> dict[str, Any] | None:
        logger.info("request", extra={"method": request.method})
        method = Method.lookup(request.method)

        if method is None:
            if request.is_notification:
                logger.debug("Ignoring notification", extra={"method": request.method})
                return None
            return error_response(request.id, ErrorCode.METHOD_NOT_FOUND, f"Method not found: {request.method}")

        try:
            result = await self._dispatch(method, request)
        except Exception as exc:
            logger.error("request_error", extra={"method": request.method, "error": str(exc)}, exc_info=True)
            if request.is_notification:
                return None
            return error_response(request.id, ErrorCode.SERVER_ERROR, str(exc) or "Internal server error")

        if request.is_notification:
            return None
        return result_response(request.id, result)

    # ------------------------------------------------------------------
    # Methods
    # ------------------------------------------------------------------

    async def _dispatch(self, method: Method, request: Request) -> Any:
        params = request.params
        match method:
            case Method.INITIALIZE:
                info = params.get("clientInfo") or {}
                logger.info(
                    "initialize",
                    extra={"args_data": {"client": info, "protocolVersion": params.get("protocolVersion")}},
                )
                return self.session.initialize(params)

            case Method.INITIALIZED:
                self.session.mark_initialized()
                logger.info("Client sent initialized notification")
                return None

            case Method.SHUTDOWN:
                logger.info("Client requested shutdown")
                self.session.shutdown()
                return None

            case Method.PING:
                return {"pong": params.get("ping") or "pong"}

            case Method.LIST_TOOLS | Method.TOOLS_LIST:
                return {"tools": self.catalog.descriptors()}

            case Method.CALL_TOOL | Method.TOOLS_CALL:
                return await self.call_tool(params.get("name"), params.get("arguments"))

    async def call_tool(self, name: Any, arguments: Any) -> dict[str, Any]:
        handler = self.catalog.get(name)
        if handler is None:
            raise UnknownToolError(name)
        if arguments is None:
            arguments = {}
        if not self.session.is_initialized:
            logger.warning("Tool call before initialize", extra={"tool": name})

        t0 = time.monotonic()
        try:
            if self.call_timeout:
                try:
                    text = await asyncio.wait_for(handler(self.client, arguments), timeout=self.call_timeout)
                except TimeoutError:
                    msg = f"Tool call timed out after {self.call_timeout:g}s: {name}"
                    raise TimeoutError(msg) from None
            else:
                text = await handler(self.client, arguments)
        except Exception:
            logger.error("tool_error", extra={"tool": name, "args_data": arguments}, exc_info=True)
            raise
        duration_ms = round((time.monotonic() - t0) * 1000, 1)
        logger.info("tool_call", extra={"tool": name, "args_data": arguments, "duration_ms": duration_ms})
        return text_content(text)


# ---------------------------------------------------------------------------
# stdio transport
# ---------------------------------------------------------------------------


class _NonClosingTextIOWrapper(TextIOWrapper):
    """Text wrapper that never closes the process' real stdio handle."""

    def close(self) -> None:
        if self.closed:
            return
        if self.writable():
            self.flush()


async def serve_stdio(dispatcher: Dispatcher) -> None:
    """Run *dispatcher* over UTF-8 stdin/stdout until stdin reaches EOF."""
    # Undecodable bytes become U+FFFD so the line still gets a parse-error reply.
    stdin = anyio.wrap_file(_NonClosingTextIOWrapper(sys.stdin.buffer, encoding="utf-8", errors="replace"))
    stdout = anyio.wrap_file(_NonClosingTextIOWrapper(sys.stdout.buffer, encoding="utf-8", line_buffering=True))

    async def emit(line: str) -> None:
        await stdout.write(line + "\n")
        await stdout.flush()

    await dispatcher.run(stdin, emit)
    logger.info("stdin closed, exiting")


def _handle_signal(signum: int, frame: object) -> None:
    logger.info("Received %s, shutting down...", signal.Signals(signum).name)
    logging.shutdown()
    # The stdin reader thread may be blocked; skip interpreter teardown.
    os._exit(0)


def install_signal_handlers() -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _handle_signal)


__all__ = ["Dispatcher", "install_signal_handlers", "serve_stdio"]
