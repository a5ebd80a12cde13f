# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from pydantic import BaseModel

from personafy_engine.audit.ledger import tail
from personafy_engine.models import AuditEvent, Vault


class VaultStatus(BaseModel, frozen=True):
    """
    Counts shown by a status command.

    Attributes:
        posture: The vault's privacy posture.
        personas: Number of personas, hidden ones included.
        total_facts: Number of facts across all personas.
        active_rules: Number of enabled standing rules, expired ones included.
        scheduled_rules: Number of scheduled rules.
        audit_events: Length of the audit ledger.
        pending_requests: Challenges still awaiting a decision.
        recent_audit: Tail of the ledger, oldest first.
    """

    posture: str
    personas: int
    total_facts: int
    active_rules: int
    scheduled_rules: int
    audit_events: int
    pending_requests: int
    recent_audit: list[AuditEvent]


def build_status(vault: Vault, now_ms: int, audit_tail: int = 5) -> VaultStatus:
    """Summarise ``vault`` as of ``now_ms``."""
    rules_enabled = sum(1 for rule in vault.rules if rule.enabled)
    return VaultStatus(
        posture=vault.privacy_posture,
        personas=len(vault.personas),
        total_facts=sum(len(persona.facts) for persona in vault.personas),
        active_rules=rules_enabled,
        scheduled_rules=len(vault.scheduled_rules),
        audit_events=len(vault.audit_log),
        pending_requests=sum(1 for entry in vault.approval_queue if entry.is_live(now_ms)),
        recent_audit=tail(vault.audit_log, audit_tail) if vault.audit_log else [],
    )
