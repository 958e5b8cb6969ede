"""Tests for the JSON-RPC dispatcher: framing, routing, lifecycle and errors."""

from __future__ import annotations

import asyncio
import io
import json
import sys
from collections.abc import AsyncIterator
from types import SimpleNamespace
from typing import Any

import pytest
from mcp.types import Tool

from fogbugz_mcp.client import FogBugzClient
from fogbugz_mcp.mcp_server import Dispatcher, serve_stdio
from fogbugz_mcp.mcp_tools import ToolCatalog
from fogbugz_mcp.protocol import DEFAULT_PROTOCOL_VERSION, SERVER_NAME, SessionState
from tests._tracker_factory import BASE_URL, FakeTracker, make_case
from tests.mcp._helpers import _parse


async def _send(dispatcher: Dispatcher, message: dict[str, Any] | str) -> dict[str, Any] | None:
    line = message if isinstance(message, str) else json.dumps(message)
    reply = await dispatcher.handle_line(line)
    if reply is None:
        return None
    assert "\n" not in reply
    return json.loads(reply)


def _req(req_id: Any, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
    msg: dict[str, Any] = {"jsonrpc": "2.0", "id": req_id, "method": method}
    if params is not None:
        msg["params"] = params
    return msg


class TestFraming:
    async def test_parse_error(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, "{not json")
        assert reply == {"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "Parse error"}}

    async def test_blank_line_is_parse_error(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, "")
        assert reply is not None
        assert reply["error"]["code"] == -32700

    @pytest.mark.parametrize("line", ["[1, 2, 3]", "null", "42", '"initialize"'])
    async def test_non_object_is_parse_error(self, dispatcher: Dispatcher, line: str) -> None:
        reply = await _send(dispatcher, line)
        assert reply == {"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "Parse error"}}

    async def test_deeply_nested_json_is_parse_error(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, "[" * 100000 + "]" * 100000)
        assert reply is not None
        assert reply["id"] is None
        assert reply["error"]["code"] == -32700

    async def test_missing_method_keeps_id(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, {"jsonrpc": "2.0", "id": 4})
        assert reply == {"jsonrpc": "2.0", "id": 4, "error": {"code": -32601, "message": "Method not found: None"}}

    async def test_non_string_method_is_method_not_found(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, {"jsonrpc": "2.0", "id": 5, "method": 12})
        assert reply == {"jsonrpc": "2.0", "id": 5, "error": {"code": -32601, "message": "Method not found: 12"}}

    async def test_lone_surrogate_method_is_ascii_encoded(self, dispatcher: Dispatcher) -> None:
        line = await dispatcher.handle_line('{"jsonrpc":"2.0","id":1,"method":"\\ud800"}')
        assert line is not None
        line.encode("ascii")
        assert json.loads(line)["error"] == {"code": -32601, "message": "Method not found: \ud800"}

    async def test_unknown_method(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, _req(9, "foo/bar"))
        assert reply == {"jsonrpc": "2.0", "id": 9, "error": {"code": -32601, "message": "Method not found: foo/bar"}}

    async def test_string_id_echoed(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, _req("abc", "mcp.ping"))
        assert reply is not None
        assert reply["id"] == "abc"

    async def test_unicode_survives(self, dispatcher: Dispatcher, tracker: FakeTracker) -> None:
        tracker.reply("new", {"case": {"ixBug": 1}})
        await _send(dispatcher, _req(1, "initialize", {}))
        reply = await _send(dispatcher, _req(2, "tools/call", {"name": "fogbugz_create_case", "arguments": {"title": "Café ☕"}}))
        assert reply is not None
        assert _parse(reply["result"])["message"] == 'Created case #1: "Café ☕".'
        assert tracker.last("new")["sTitle"] == "Café ☕"


class TestLifecycle:
    async def test_initialize(self, dispatcher: Dispatcher) -> None:
        reply = await _send(
            dispatcher,
            _req(1, "initialize", {"protocolVersion": "2025-03-26", "clientInfo": {"name": "pytest", "version": "1"}}),
        )
        assert reply is not None
        result = reply["result"]
        assert result["protocolVersion"] == "2025-03-26"
        assert result["capabilities"] == {"tools": {"listChanged": False}}
        assert result["serverInfo"]["name"] == SERVER_NAME
        assert isinstance(result["serverInfo"]["version"], str)
        assert dispatcher.session.state is SessionState.INITIALIZED
        assert dispatcher.session.client_info == {"name": "pytest", "version": "1"}

    async def test_initialize_without_version_uses_default(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, _req(1, "initialize"))
        assert reply is not None
        assert reply["result"]["protocolVersion"] == DEFAULT_PROTOCOL_VERSION

    async def test_initialized_notification_has_no_reply(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, {"jsonrpc": "2.0", "method": "notifications/initialized"})
        assert reply is None
        assert dispatcher.session.initialized_notified is True

    async def test_unknown_notification_ignored(self, dispatcher: Dispatcher) -> None:
        assert await _send(dispatcher, {"jsonrpc": "2.0", "method": "notifications/cancelled", "params": {"requestId": 3}}) is None

    async def test_shutdown(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, _req(5, "shutdown"))
        assert reply == {"jsonrpc": "2.0", "id": 5, "result": None}
        assert dispatcher.session.state is SessionState.SHUTTING_DOWN
        # The loop keeps answering until stdin closes.
        assert await _send(dispatcher, _req(6, "mcp.ping")) is not None

    async def test_ping(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, _req(1, "mcp.ping"))
        assert reply is not None
        assert reply["result"] == {"pong": "pong"}

    async def test_ping_echo(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, _req(1, "mcp.ping", {"ping": "hello"}))
        assert reply is not None
        assert reply["result"] == {"pong": "hello"}


class TestToolListing:
    @pytest.mark.parametrize("method", ["tools/list", "mcp.listTools"])
    async def test_lists_all_tools(self, dispatcher: Dispatcher, method: str) -> None:
        reply = await _send(dispatcher, _req(1, method))
        assert reply is not None
        names = [t["name"] for t in reply["result"]["tools"]]
        assert names == [
            "fogbugz_create_case",
            "fogbugz_update_case",
            "fogbugz_assign_case",
            "fogbugz_list_my_cases",
            "fogbugz_search_cases",
            "fogbugz_get_case_link",
            "fogbugz_view_case",
            "fogbugz_create_project",
        ]
        for tool in reply["result"]["tools"]:
            assert tool["description"]
            assert tool["inputSchema"]["type"] == "object"

    async def test_listing_is_stable(self, dispatcher: Dispatcher) -> None:
        first = await dispatcher.handle_line(json.dumps(_req(1, "tools/list")))
        second = await dispatcher.handle_line(json.dumps(_req(1, "tools/list")))
        assert first == second


class TestToolCalls:
    async def test_unknown_tool(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, _req(3, "tools/call", {"name": "nope", "arguments": {}}))
        assert reply == {"jsonrpc": "2.0", "id": 3, "error": {"code": -32000, "message": "Unknown tool: nope"}}

    async def test_invalid_arguments_are_server_errors(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, _req(3, "tools/call", {"name": "fogbugz_view_case", "arguments": {}}))
        assert reply is not None
        assert reply["error"]["code"] == -32000
        assert "caseId is required" in reply["error"]["message"]

    async def test_domain_error_is_result(self, dispatcher: Dispatcher, tracker: FakeTracker) -> None:
        tracker.reply("assign", errors=[{"message": "Case is closed"}])
        reply = await _send(
            dispatcher,
            _req(3, "mcp.callTool", {"name": "fogbugz_assign_case", "arguments": {"caseId": 1, "assignee": "Jane Doe"}}),
        )
        assert reply is not None
        assert "error" not in reply
        assert _parse(reply["result"]) == {"error": "FogBugz API Error: Case is closed"}

    async def test_call_before_initialize_allowed(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, _req(1, "tools/call", {"name": "fogbugz_get_case_link", "arguments": {"caseId": 12}}))
        assert reply is not None
        assert _parse(reply["result"])["caseLink"] == f"{BASE_URL}/default.asp?12"

    async def test_missing_arguments_treated_as_empty(self, dispatcher: Dispatcher, tracker: FakeTracker) -> None:
        tracker.reply("search", {"cases": []})
        reply = await _send(dispatcher, _req(1, "tools/call", {"name": "fogbugz_list_my_cases"}))
        assert reply is not None
        assert _parse(reply["result"])["count"] == 0

    async def test_result_is_single_text_block(self, dispatcher: Dispatcher) -> None:
        reply = await _send(dispatcher, _req(1, "tools/call", {"name": "fogbugz_get_case_link", "arguments": {"caseId": 3}}))
        assert reply is not None
        content = reply["result"]["content"]
        assert len(content) == 1
        assert content[0]["type"] == "text"
        assert content[0]["text"].startswith("{\n  ")

    async def test_call_timeout(self, client: FogBugzClient) -> None:
        async def _slow(_client: FogBugzClient, _arguments: dict[str, Any]) -> str:
            await asyncio.sleep(5)
            return "late"

        catalog = ToolCatalog(
            tools=(Tool(name="slow", description="Sleeps", inputSchema={"type": "object", "properties": {}}),),
            handlers={"slow": _slow},
        )
        dispatcher = Dispatcher(client, catalog=catalog, call_timeout=0.05)
        reply = await _send(dispatcher, _req(1, "tools/call", {"name": "slow", "arguments": {}}))
        assert reply == {
            "jsonrpc": "2.0",
            "id": 1,
            "error": {"code": -32000, "message": "Tool call timed out after 0.05s: slow"},
        }

    async def test_unexpected_exception_message(self, client: FogBugzClient) -> None:
        async def _broken(_client: FogBugzClient, _arguments: dict[str, Any]) -> str:
            raise RuntimeError

        catalog = ToolCatalog(
            tools=(Tool(name="broken", description="Fails", inputSchema={"type": "object", "properties": {}}),),
            handlers={"broken": _broken},
        )
        reply = await _send(Dispatcher(client, catalog=catalog), _req(1, "tools/call", {"name": "broken"}))
        assert reply is not None
        assert reply["error"] == {"code": -32000, "message": "Internal server error"}


class TestRun:
    async def test_end_to_end_search(self, dispatcher: Dispatcher, tracker: FakeTracker) -> None:
        tracker.reply("search", {"cases": [make_case(1, "One"), make_case(2, "Two")]})
        lines = [
            json.dumps(_req(1, "initialize", {"protocolVersion": DEFAULT_PROTOCOL_VERSION})),
            json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}),
            json.dumps(_req(2, "tools/call", {"name": "fogbugz_search_cases", "arguments": {"query": "status:Active"}})),
        ]

        async def _lines() -> AsyncIterator[str]:
            for line in lines:
                yield line + "\n"

        out: list[str] = []
        await dispatcher.run(_lines(), out.append)

        assert len(out) == 2
        init, search = (json.loads(line) for line in out)
        assert init["id"] == 1
        assert init["result"]["serverInfo"]["name"] == SERVER_NAME
        assert search["id"] == 2
        payload = _parse(search["result"])
        assert payload["count"] == 2
        assert payload["message"] == 'Found 2 cases matching query: "status:Active".'
        assert tracker.last("search")["q"] == "status:Active"

    async def test_replies_in_order_with_async_emit(self, dispatcher: Dispatcher) -> None:
        async def _lines() -> AsyncIterator[str]:
            yield "garbage\n"
            yield json.dumps(_req(1, "mcp.ping")) + "\n"
            yield json.dumps(_req(2, "nope")) + "\n"

        out: list[dict[str, Any]] = []

        async def _emit(line: str) -> None:
            out.append(json.loads(line))

        await dispatcher.run(_lines(), _emit)
        assert [m["id"] for m in out] == [None, 1, 2]
        assert out[0]["error"]["code"] == -32700
        assert "result" in out[1]
        assert out[2]["error"]["code"] == -32601

    async def test_survives_deeply_nested_line(self, dispatcher: Dispatcher) -> None:
        async def _lines() -> AsyncIterator[str]:
            yield "[" * 100000 + "]" * 100000 + "\n"
            yield json.dumps(_req(2, "mcp.ping")) + "\n"

        out: list[str] = []
        await dispatcher.run(_lines(), out.append)
        replies = [json.loads(line) for line in out]
        assert replies[0]["error"]["code"] == -32700
        assert replies[1] == {"jsonrpc": "2.0", "id": 2, "result": {"pong": "pong"}}


class TestServeStdio:
    @staticmethod
    async def _serve(dispatcher: Dispatcher, monkeypatch: pytest.MonkeyPatch, raw: bytes) -> list[dict[str, Any]]:
        stdout = io.BytesIO()
        monkeypatch.setattr(sys, "stdin", SimpleNamespace(buffer=io.BytesIO(raw)))
        monkeypatch.setattr(sys, "stdout", SimpleNamespace(buffer=stdout))
        await serve_stdio(dispatcher)
        return [json.loads(line) for line in stdout.getvalue().decode("utf-8").splitlines()]

    async def test_round_trip(self, dispatcher: Dispatcher, monkeypatch: pytest.MonkeyPatch) -> None:
        raw = (json.dumps(_req(1, "initialize")) + "\n" + json.dumps(_req(2, "mcp.ping")) + "\n").encode()
        replies = await self._serve(dispatcher, monkeypatch, raw)
        assert [r["id"] for r in replies] == [1, 2]
        assert replies[1]["result"] == {"pong": "pong"}

    async def test_invalid_utf8_line_is_parse_error(self, dispatcher: Dispatcher, monkeypatch: pytest.MonkeyPatch) -> None:
        raw = b"\xff\xfe garbage\n" + json.dumps(_req(2, "mcp.ping")).encode() + b"\n"
        replies = await self._serve(dispatcher, monkeypatch, raw)
        assert replies[0] == {"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "Parse error"}}
        assert replies[1]["id"] == 2
        assert replies[1]["result"] == {"pong": "pong"}

    async def test_lone_surrogate_does_not_break_stdout(self, dispatcher: Dispatcher, monkeypatch: pytest.MonkeyPatch) -> None:
        raw = b'{"jsonrpc":"2.0","id":1,"method":"\\ud800"}\n' + json.dumps(_req(2, "mcp.ping")).encode() + b"\n"
        replies = await self._serve(dispatcher, monkeypatch, raw)
        assert replies[0]["id"] == 1
        assert replies[0]["error"] == {"code": -32601, "message": "Method not found: \ud800"}
        assert replies[1]["id"] == 2
        assert replies[1]["result"] == {"pong": "pong"}

    async def test_unicode_written_as_utf8_safe_json(self, dispatcher: Dispatcher, monkeypatch: pytest.MonkeyPatch) -> None:
        raw = json.dumps(_req("Zoë", "mcp.ping", {"ping": "☕"}), ensure_ascii=False).encode("utf-8") + b"\n"
        replies = await self._serve(dispatcher, monkeypatch, raw)
        assert replies == [{"jsonrpc": "2.0", "id": "Zoë", "result": {"pong": "☕"}}]
