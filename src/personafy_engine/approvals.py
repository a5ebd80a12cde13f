# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Approval lifecycle.

A challenge moves ``pending -> approved`` or ``pending -> denied`` exactly
once. It also expires when the clock passes ``expires_at_ms``; that state is
derived at lookup time and never written. Once an entry has left
``pending``, by any route, every further lookup of its id fails with
:class:`~personafy_engine.errors.ApprovalNotFoundError`.
"""

from __future__ import annotations

from collections.abc import Sequence

from personafy_engine.decisions import Challenge, ChallengeField
from personafy_engine.errors import ApprovalNotFoundError
from personafy_engine.models import ApprovalRequest, Fact, PendingApproval, Persona, Vault
from personafy_engine.requests import ContextRequest
from personafy_engine.types import ApprovalStatus, ApprovalStatusName, Sensitivity

HIDDEN_PREVIEW = "[hidden]"


def live_approvals(vault: Vault, now_ms: int) -> list[PendingApproval]:
    """Return the entries that can still be approved or denied."""
    return [entry for entry in vault.approval_queue if entry.is_live(now_ms)]


def sweep_queue(
    queue: Sequence[PendingApproval],
    now_ms: int,
    keep_resolved: int,
) -> list[PendingApproval]:
    """
    Drop aged-out challenges and prune resolved history.

    Pending entries past their expiry are removed. Resolved entries are kept
    as history, trimmed to the newest ``keep_resolved`` by creation time.
    Relative order of the remaining entries is preserved.
    """
    current = [entry for entry in queue if not entry.is_expired(now_ms)]

    resolved = [entry for entry in current if entry.status != ApprovalStatus.PENDING]
    excess = len(resolved) - keep_resolved
    if excess <= 0:
        return current

    oldest = sorted(resolved, key=lambda entry: entry.created_at_ms)[:excess]
    dropped = {entry.id for entry in oldest}
    return [entry for entry in current if entry.id not in dropped]


def lookup_live(
    queue: Sequence[PendingApproval],
    request_id: str,
    now_ms: int,
) -> PendingApproval:
    """
    Find a challenge that can still be resolved.

    Raises:
        ApprovalNotFoundError: If the id is unknown, already resolved, or
            its window has passed.
    """
    for entry in queue:
        if entry.id != request_id:
            continue
        if entry.is_live(now_ms):
            return entry
        break
    raise ApprovalNotFoundError(request_id)


def open_approval(
    request_id: str,
    request: ContextRequest,
    persona: Persona,
    facts: Sequence[Fact],
    now_ms: int,
    ttl_seconds: int,
) -> PendingApproval:
    """Create the pending entry stored for a new challenge."""
    return PendingApproval(
        id=request_id,
        created_at_ms=now_ms,
        expires_at_ms=now_ms + ttl_seconds * 1000,
        status=ApprovalStatus.PENDING,
        request=ApprovalRequest(
            agent_id=request.recipient.value,
            purpose=request.purpose.label,
            persona=persona.name,
            fields=[fact.key for fact in facts],
        ),
        matched_facts=list(facts),
    )


def mark_resolved(
    queue: Sequence[PendingApproval],
    request_id: str,
    status: ApprovalStatusName,
    now_ms: int,
) -> list[PendingApproval]:
    """Return a queue in which ``request_id`` carries its terminal status."""
    return [
        entry.model_copy(update={"status": status, "resolved_at_ms": now_ms})
        if entry.id == request_id
        else entry
        for entry in queue
    ]


def build_challenge(
    request_id: str,
    request: ContextRequest,
    persona: Persona,
    facts: Sequence[Fact],
    ttl_seconds: int,
) -> Challenge:
    """
    Summarise a pending approval for the user.

    Values of high-sensitivity facts are replaced by ``"[hidden]"``; only
    their presence is shown.
    """
    purpose = request.purpose
    recipient = request.recipient.value
    detail = f" ({purpose.detail})" if purpose.detail else ""
    return Challenge(
        summary=(
            f"Share {len(facts)} preference fields with {recipient} "
            f"for {purpose.label}?"
        ),
        persona=persona.name,
        recipient=recipient,
        purpose=f"{purpose.category} → {purpose.action}{detail}",
        fields=[
            ChallengeField(
                key=fact.key,
                sensitivity=fact.sensitivity,
                preview=HIDDEN_PREVIEW if fact.sensitivity == Sensitivity.HIGH else fact.value,
            )
            for fact in facts
        ],
        expires_in_seconds=ttl_seconds,
        approval_instructions=(
            "Show the user what would be shared and ask them to APPROVE or "
            "DENY. If they approve, call this tool again with approve=true "
            f"and request_id='{request_id}'."
        ),
    )
