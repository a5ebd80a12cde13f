# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Tests for the audit ledger and audit queries."""

from __future__ import annotations

from datetime import timedelta

import pytest

from builders import NOW, make_vault
from personafy_engine.audit import (
    AuditFilter,
    aggregate_decisions,
    append_event,
    create_event,
    query_audit,
    tail,
)
from personafy_engine.models import AuditEvent


def _ledger() -> list[AuditEvent]:
    return [
        create_event("allow", "req_1", "nordstrom.com", "shopping/find_item", ["apparel.pants.waist"], now=NOW),
        create_event("ask_approved", "req_2", "zara.com", "shopping/find_item", ["apparel.shirt.size"], now=NOW + timedelta(minutes=1)),
        create_event("ask_denied", "req_3", "nordstrom.com", "shopping/checkout", ["budget.monthly_clothing"], now=NOW + timedelta(minutes=2)),
        create_event("deny", "req_4", "zara.com", "shopping/find_item", now=NOW + timedelta(minutes=3)),
    ]


# ---------------------------------------------------------------------------
# TestLedger
# ---------------------------------------------------------------------------


class TestLedger:
    def test_create_event_fields(self) -> None:
        event = create_event("allow", "req_1", "nordstrom.com", "shopping/find_item", ["a.b"], now=NOW)
        assert event.id.startswith("aud_")
        assert event.timestamp == "2026-10-18T12:00:00.000Z"
        assert event.fields_released == ["a.b"]

    @pytest.mark.parametrize("decision", ["deny", "ask_denied"])
    def test_denials_never_record_released_fields(self, decision: str) -> None:
        event = create_event(decision, "req_1", "nordstrom.com", "shopping/find_item", ["a.b"], now=NOW)
        assert event.fields_released == []

    def test_event_ids_are_unique(self) -> None:
        assert len({event.id for event in _ledger()}) == 4

    def test_append_event_returns_new_snapshot(self) -> None:
        vault = make_vault()
        event = _ledger()[0]
        updated = append_event(vault, event)
        assert updated.audit_log == [event]
        assert vault.audit_log == []

    def test_append_preserves_existing_events(self) -> None:
        first, second = _ledger()[:2]
        vault = append_event(append_event(make_vault(), first), second)
        assert vault.audit_log == [first, second]

    def test_tail_returns_most_recent_oldest_first(self) -> None:
        events = _ledger()
        assert tail(events, 2) == events[2:]
        assert tail(events, 10) == events

    def test_tail_rejects_non_positive_count(self) -> None:
        with pytest.raises(ValueError):
            tail(_ledger(), 0)


# ---------------------------------------------------------------------------
# TestAuditQuery
# ---------------------------------------------------------------------------


class TestAuditQuery:
    def test_no_filter_returns_everything(self) -> None:
        result = query_audit(_ledger())
        assert result.total_matched == 4
        assert len(result.records) == 4

    def test_filter_by_recipient(self) -> None:
        result = query_audit(_ledger(), AuditFilter(recipient_domain="zara.com"))
        assert [e.request_id for e in result.records] == ["req_2", "req_4"]

    def test_filter_by_decision(self) -> None:
        result = query_audit(_ledger(), AuditFilter(decision="ask_denied"))
        assert [e.request_id for e in result.records] == ["req_3"]

    def test_filter_by_request_id(self) -> None:
        result = query_audit(_ledger(), AuditFilter(request_id="req_2"))
        assert result.total_matched == 1

    def test_time_range_is_half_open(self) -> None:
        audit_filter = AuditFilter(since=NOW + timedelta(minutes=1), until=NOW + timedelta(minutes=3))
        result = query_audit(_ledger(), audit_filter)
        assert [e.request_id for e in result.records] == ["req_2", "req_3"]

    def test_limit_and_offset(self) -> None:
        result = query_audit(_ledger(), AuditFilter(offset=1, limit=2))
        assert [e.request_id for e in result.records] == ["req_2", "req_3"]
        assert result.total_matched == 4

    def test_criteria_combine_with_and(self) -> None:
        audit_filter = AuditFilter(recipient_domain="nordstrom.com", decision="allow")
        assert [e.request_id for e in query_audit(_ledger(), audit_filter).records] == ["req_1"]


# ---------------------------------------------------------------------------
# TestAggregate
# ---------------------------------------------------------------------------


class TestAggregate:
    def test_counts_each_decision(self) -> None:
        summary = aggregate_decisions(_ledger())
        assert summary["allow"] == 1
        assert summary["ask_approved"] == 1
        assert summary["ask_denied"] == 1
        assert summary["deny"] == 1
        assert summary["total"] == 4
        assert summary["denial_rate"] == pytest.approx(0.5)

    def test_empty_ledger(self) -> None:
        summary = aggregate_decisions([])
        assert summary["total"] == 0
        assert summary["denial_rate"] == 0.0
