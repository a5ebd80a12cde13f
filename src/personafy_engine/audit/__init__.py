# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from personafy_engine.audit.ledger import append_event, create_event, tail
from personafy_engine.audit.query import (
    AuditFilter,
    AuditQueryResult,
    aggregate_decisions,
    query_audit,
)

__all__ = [
    "AuditFilter",
    "AuditQueryResult",
    "aggregate_decisions",
    "append_event",
    "create_event",
    "query_audit",
    "tail",
]
