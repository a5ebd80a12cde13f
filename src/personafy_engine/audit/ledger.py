# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Append-only audit ledger.

The ledger lives in the vault snapshot as ``audit_log``. The only way to
change it is :func:`append_event`, which returns a new snapshot with one more
event at the end. Existing events are never edited, reordered or removed.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from personafy_engine.ids import new_audit_id
from personafy_engine.models import AuditEvent, Vault
from personafy_engine.timeutil import to_iso, utc_now
from personafy_engine.types import AuditDecision, AuditDecisionName


def create_event(
    decision: AuditDecisionName,
    request_id: str,
    recipient_domain: str,
    purpose: str,
    fields_released: Sequence[str] | None = None,
    now: datetime | None = None,
) -> AuditEvent:
    """
    Construct an :class:`AuditEvent` with a fresh ``aud_`` id.

    Denials always record an empty ``fields_released`` whatever the caller
    passes.

    Args:
        decision: ``allow``, ``deny``, ``ask_approved`` or ``ask_denied``.
        request_id: The request (or rule) id the event belongs to.
        recipient_domain: Who received, or would have received, the data.
        purpose: ``category/action`` of the request.
        fields_released: Canonical keys of the facts released.
        now: Event time; defaults to the current UTC time.

    Returns:
        A frozen :class:`AuditEvent`.
    """
    released: list[str] = []
    if decision not in (AuditDecision.DENY, AuditDecision.ASK_DENIED):
        released = list(fields_released or [])
    return AuditEvent(
        id=new_audit_id(),
        timestamp=to_iso(now or utc_now()),
        request_id=request_id,
        decision=decision,
        recipient_domain=recipient_domain,
        purpose=purpose,
        fields_released=released,
    )


def append_event(vault: Vault, event: AuditEvent) -> Vault:
    """Return a new snapshot whose audit log ends with ``event``."""
    return vault.model_copy(update={"audit_log": [*vault.audit_log, event]})


def tail(events: Sequence[AuditEvent], n: int = 5) -> list[AuditEvent]:
    """
    Return the ``n`` most recent events, oldest first.

    Raises:
        ValueError: If ``n`` is less than 1.
    """
    if n < 1:
        raise ValueError(f"n must be >= 1; got {n}.")
    return list(events[-n:])
