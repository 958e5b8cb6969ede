# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.
# NEVER import from client.py, mcp_server.py or mcp_tools/; this prevents circular imports.
"""Typed record and payload contracts for the FogBugz bridge."""

from __future__ import annotations

from fogbugz_mcp.types.core import (
    AreaRecord,
    CaseRecord,
    EventRecord,
    FixForRecord,
    PersonRecord,
    PriorityRecord,
    ProjectRecord,
)

__all__ = [
    "AreaRecord",
    "CaseRecord",
    "EventRecord",
    "FixForRecord",
    "PersonRecord",
    "PriorityRecord",
    "ProjectRecord",
]
