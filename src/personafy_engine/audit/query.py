# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from personafy_engine.models import AuditEvent
from personafy_engine.timeutil import parse_instant
from personafy_engine.types import AuditDecision, AuditDecisionName


class AuditFilter(BaseModel, frozen=True):
    """
    Filter criteria for querying the audit ledger.

    All fields are optional. Multiple criteria are combined with AND logic:
    an event must satisfy every provided criterion to be included.

    Attributes:
        recipient_domain: Only include events for this recipient.
        decision: Only include events with this decision.
        request_id: Only include events for this request or rule id.
        since: Only include events at or after this timestamp.
        until: Only include events before this timestamp.
        limit: Maximum number of events to return. 0 means no limit.
        offset: Number of events to skip before collecting results.
    """

    recipient_domain: str | None = None
    decision: AuditDecisionName | None = None
    request_id: str | None = None
    since: datetime | None = None
    until: datetime | None = None
    limit: int = 0
    offset: int = 0


class AuditQueryResult(BaseModel, frozen=True):
    """
    Result of an audit query.

    Attributes:
        records: The matching events, oldest first.
        total_matched: Number of events that matched before ``limit`` and
            ``offset`` were applied.
        filter_applied: The :class:`AuditFilter` used.
    """

    records: list[AuditEvent]
    total_matched: int
    filter_applied: AuditFilter


def query_audit(
    events: Sequence[AuditEvent],
    audit_filter: AuditFilter | None = None,
) -> AuditQueryResult:
    """
    Apply an :class:`AuditFilter` to a sequence of events.

    Args:
        events: The ledger to search, oldest first.
        audit_filter: The criteria. All events match when omitted.

    Returns:
        An :class:`AuditQueryResult` with the matching events.
    """
    effective = audit_filter or AuditFilter()
    matched = [event for event in events if _event_matches(event, effective)]

    paginated = matched[effective.offset :]
    if effective.limit > 0:
        paginated = paginated[: effective.limit]

    return AuditQueryResult(
        records=paginated,
        total_matched=len(matched),
        filter_applied=effective,
    )


def _event_matches(event: AuditEvent, audit_filter: AuditFilter) -> bool:
    """Return True if ``event`` satisfies all criteria in ``audit_filter``."""
    if audit_filter.decision is not None and event.decision != audit_filter.decision:
        return False

    if (
        audit_filter.recipient_domain is not None
        and event.recipient_domain != audit_filter.recipient_domain
    ):
        return False

    if audit_filter.request_id is not None and event.request_id != audit_filter.request_id:
        return False

    if audit_filter.since is not None or audit_filter.until is not None:
        stamp = parse_instant(event.timestamp)
        if stamp is None:
            return False
        if audit_filter.since is not None and stamp < audit_filter.since:
            return False
        if audit_filter.until is not None and stamp >= audit_filter.until:
            return False

    return True


def aggregate_decisions(events: Sequence[AuditEvent]) -> dict[str, Any]:
    """
    Count decisions across a sequence of events.

    Returns:
        Dict with one count per decision kind, plus ``'total'`` and
        ``'denial_rate'`` (the fraction of events that were ``deny`` or
        ``ask_denied``).
    """
    counts: dict[str, int] = {
        AuditDecision.ALLOW: 0,
        AuditDecision.DENY: 0,
        AuditDecision.ASK_APPROVED: 0,
        AuditDecision.ASK_DENIED: 0,
    }
    for event in events:
        counts[event.decision] += 1

    total = len(events)
    denials = counts[AuditDecision.DENY] + counts[AuditDecision.ASK_DENIED]

    return {
        "allow": counts[AuditDecision.ALLOW],
        "deny": counts[AuditDecision.DENY],
        "ask_approved": counts[AuditDecision.ASK_APPROVED],
        "ask_denied": counts[AuditDecision.ASK_DENIED],
        "total": total,
        "denial_rate": denials / total if total > 0 else 0.0,
    }
