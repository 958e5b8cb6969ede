"""Shared pytest fixtures for fogbugz-mcp tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import httpx
import pytest
from click.testing import CliRunner

from fogbugz_mcp.client import FogBugzClient
from fogbugz_mcp.mcp_server import Dispatcher
from tests._tracker_factory import API_KEY, BASE_URL, FakeTracker


@pytest.fixture
def tracker() -> FakeTracker:
    """Fresh fake FogBugz site with a known current user and priority list."""
    fake = FakeTracker()
    fake.reply("viewPerson", {"person": {"ixPerson": 7, "sFullName": "Jane Doe", "sEmail": "jane@example.com"}})
    fake.reply(
        "listPriorities",
        {
            "priorities": [
                {"ixPriority": 1, "sPriority": "Must Fix"},
                {"ixPriority": 3, "sPriority": "Should Fix"},
                {"ixPriority": 7, "sPriority": "Don't Fix"},
            ]
        },
    )
    fake.reply(
        "listPeople",
        {
            "people": [
                {"ixPerson": 2, "sFullName": "Akari Lara", "sEmail": "akari@example.com"},
                {"ixPerson": 7, "sFullName": "Jane Doe", "sEmail": "jane@example.com"},
            ]
        },
    )
    return fake


@pytest.fixture
async def client(tracker: FakeTracker) -> AsyncGenerator[FogBugzClient, None]:
    """FogBugzClient whose HTTP traffic goes to the fake tracker."""
    async with httpx.AsyncClient(transport=tracker.transport()) as http_client:
        yield FogBugzClient(BASE_URL, API_KEY, http_client=http_client)


@pytest.fixture
def dispatcher(client: FogBugzClient) -> Dispatcher:
    """Dispatcher with a fresh session over the fake tracker."""
    return Dispatcher(client)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()
