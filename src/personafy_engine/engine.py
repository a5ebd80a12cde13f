# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from datetime import datetime

from personafy_engine.approvals import (
    build_challenge,
    live_approvals,
    lookup_live,
    mark_resolved,
    open_approval,
    sweep_queue,
)
from personafy_engine.audit.ledger import append_event, create_event
from personafy_engine.config import EngineConfig
from personafy_engine.decisions import (
    AllowDecision,
    AskDecision,
    DenyDecision,
    EngineOutcome,
    ErrorDecision,
    NoDataDecision,
    ReleasedFact,
    ReleasePackage,
    RuleOffer,
    SuggestedRule,
)
from personafy_engine.errors import ApprovalNotFoundError
from personafy_engine.ids import new_request_id
from personafy_engine.matching import find_hidden_persona, find_matching_persona, match_facts
from personafy_engine.models import Fact, PendingApproval, Vault
from personafy_engine.posture import max_sensitivity_name
from personafy_engine.requests import ContextRequest, ResolutionRequest
from personafy_engine.rules import RuleCreated, RuleExists, create_rule, evaluate_auto_allow
from personafy_engine.status import VaultStatus, build_status
from personafy_engine.timeutil import ensure_aware, to_epoch_ms, utc_now
from personafy_engine.types import ApprovalStatus, AuditDecision, SensitivityName

logger = logging.getLogger("personafy.engine")


def context_ttl_seconds(vault: Vault, default_minutes: int = 10) -> int:
    """
    Lifetime of released context, from the vault settings.

    Missing or non-finite values fall back to ``default_minutes``. Zero or
    negative values mean the context never expires and yield 0.
    """
    raw = vault.settings.context_ttl_minutes if vault.settings else None
    if raw is None or not math.isfinite(raw):
        return default_minutes * 60
    if raw <= 0:
        return 0
    return round(raw * 60)


def _package(facts: Sequence[Fact], ttl_seconds: int) -> ReleasePackage:
    return ReleasePackage(
        ttl_seconds=ttl_seconds,
        facts=[
            ReleasedFact(key=fact.key, value=fact.value, confidence=fact.confidence)
            for fact in facts
        ],
    )


def _split_purpose(purpose: str) -> tuple[str, str]:
    category, _, action = purpose.partition("/")
    return category, action


class PolicyEngine:
    """
    Decides what happens to each incoming data request.

    The engine is a pure function of its inputs: every entry point takes a
    vault snapshot and returns an :class:`EngineOutcome` holding the typed
    result and the next snapshot. Nothing is persisted here; the caller
    (normally :class:`~personafy_engine.service.PolicyService`) owns the
    read-modify-write cycle.

    Each cycle first sweeps the approval queue: aged-out challenges are
    dropped and resolved history is pruned.

    Example::

        engine = PolicyEngine()
        outcome = engine.decide(vault, parse_request({
            "purpose": {"category": "shopping", "action": "find_item"},
            "recipient": {"type": "domain", "value": "nordstrom.com"},
            "fields_requested": ["apparel.pants.*"],
        }))
        if outcome.result.decision == "ask":
            outcome = engine.approve(outcome.vault, outcome.result.request_id)
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or EngineConfig()

    @property
    def config(self) -> EngineConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def decide(
        self,
        vault: Vault,
        request: ContextRequest | ResolutionRequest,
        now: datetime | None = None,
    ) -> EngineOutcome:
        """
        Run one decision cycle for a validated request.

        Args:
            vault: The current snapshot.
            request: Output of :func:`~personafy_engine.requests.parse_request`.
            now: Decision time; defaults to the current UTC time.

        Returns:
            The decision and the next snapshot.
        """
        if isinstance(request, ResolutionRequest):
            if request.approve:
                return self.approve(vault, request.request_id, now)
            return self.deny(vault, request.request_id, now)
        return self.ask(vault, request, now)

    def ask(
        self,
        vault: Vault,
        request: ContextRequest,
        now: datetime | None = None,
    ) -> EngineOutcome:
        """
        Handle a new context request.

        Resolves the persona, matches facts and consults the rule engine.
        Auto-allowed facts are released and audited immediately. Anything
        else opens a challenge that releases nothing and writes no audit
        event until it is resolved.
        """
        moment = self._now(now)
        base = self._swept(vault, moment)

        persona = find_matching_persona(
            base, request.persona_hint, request.purpose.category
        )
        if persona is None:
            hidden = find_hidden_persona(
                base, request.persona_hint, request.purpose.category
            )
            if hidden is not None:
                message = (
                    f'Persona "{hidden.name}" is hidden from agents. Enable it in '
                    f"Personafy → Personas → {hidden.name} → Settings."
                )
            else:
                available = ", ".join(p.name for p in base.personas)
                message = (
                    f'No persona found for category "{request.purpose.category}". '
                    f"Available personas: {available}"
                )
            return self._no_data(base, request, message)

        facts = match_facts(persona, request.fields_requested)
        if not facts:
            return self._no_data(
                base,
                request,
                f'No matching facts found in "{persona.name}" persona '
                "for the requested fields.",
            )

        check = evaluate_auto_allow(
            base,
            request.recipient.value,
            request.purpose.category,
            request.purpose.action,
            facts,
            persona.persona_settings,
            moment,
        )

        request_id = new_request_id()
        if check.allowed:
            event = create_event(
                decision=AuditDecision.ALLOW,
                request_id=request_id,
                recipient_domain=request.recipient.value,
                purpose=request.purpose.label,
                fields_released=[fact.key for fact in facts],
                now=moment,
            )
            logger.info(
                "context_decision",
                extra={
                    "request_id": request_id,
                    "decision": "allow",
                    "recipient": request.recipient.value,
                    "purpose": request.purpose.label,
                    "field_count": len(facts),
                    "rule_id": check.rule_id,
                },
            )
            return EngineOutcome(
                result=AllowDecision(
                    request_id=request_id,
                    package=_package(facts, self._ttl(base)),
                    audit_id=event.id,
                ),
                vault=append_event(base, event),
            )

        ttl_seconds = self._config.approval_ttl_seconds
        entry = open_approval(
            request_id, request, persona, facts, to_epoch_ms(moment), ttl_seconds
        )
        logger.info(
            "context_decision",
            extra={
                "request_id": request_id,
                "decision": "ask",
                "recipient": request.recipient.value,
                "purpose": request.purpose.label,
                "field_count": len(facts),
                "reason": check.reason,
            },
        )
        return EngineOutcome(
            result=AskDecision(
                request_id=request_id,
                challenge=build_challenge(request_id, request, persona, facts, ttl_seconds),
            ),
            vault=base.model_copy(update={"approval_queue": [*base.approval_queue, entry]}),
        )

    def approve(
        self,
        vault: Vault,
        request_id: str,
        now: datetime | None = None,
    ) -> EngineOutcome:
        """
        Approve a live challenge and release its facts.

        Unknown, expired and already-resolved ids yield an
        :class:`ErrorDecision` and leave the ledger untouched.
        """
        moment = self._now(now)
        base = self._swept(vault, moment)
        now_ms = to_epoch_ms(moment)

        try:
            pending = lookup_live(base.approval_queue, request_id, now_ms)
        except ApprovalNotFoundError as exc:
            return self._lookup_failed(base, exc)
        if pending.matched_facts is None:
            return self._lookup_failed(base, ApprovalNotFoundError(request_id))

        facts = pending.matched_facts
        event = create_event(
            decision=AuditDecision.ASK_APPROVED,
            request_id=request_id,
            recipient_domain=pending.request.agent_id,
            purpose=pending.request.purpose,
            fields_released=[fact.key for fact in facts],
            now=moment,
        )
        queue = mark_resolved(base.approval_queue, request_id, ApprovalStatus.APPROVED, now_ms)
        next_vault = append_event(base.model_copy(update={"approval_queue": queue}), event)

        logger.info(
            "approval_resolved",
            extra={
                "request_id": request_id,
                "decision": AuditDecision.ASK_APPROVED,
                "recipient": pending.request.agent_id,
                "field_count": len(facts),
            },
        )
        return EngineOutcome(
            result=AllowDecision(
                request_id=request_id,
                package=_package(facts, self._ttl(base)),
                audit_id=event.id,
                offer_rule=self._rule_offer(pending, facts),
            ),
            vault=next_vault,
        )

    def deny(
        self,
        vault: Vault,
        request_id: str,
        now: datetime | None = None,
    ) -> EngineOutcome:
        """
        Deny a live challenge.

        The audit event records no released fields. Unknown, expired and
        already-resolved ids yield an :class:`ErrorDecision`.
        """
        moment = self._now(now)
        base = self._swept(vault, moment)
        now_ms = to_epoch_ms(moment)

        try:
            pending = lookup_live(base.approval_queue, request_id, now_ms)
        except ApprovalNotFoundError as exc:
            return self._lookup_failed(base, exc)

        event = create_event(
            decision=AuditDecision.ASK_DENIED,
            request_id=request_id,
            recipient_domain=pending.request.agent_id,
            purpose=pending.request.purpose,
            now=moment,
        )
        queue = mark_resolved(base.approval_queue, request_id, ApprovalStatus.DENIED, now_ms)
        next_vault = append_event(base.model_copy(update={"approval_queue": queue}), event)

        logger.info(
            "approval_resolved",
            extra={
                "request_id": request_id,
                "decision": AuditDecision.ASK_DENIED,
                "recipient": pending.request.agent_id,
            },
        )
        return EngineOutcome(
            result=DenyDecision(
                request_id=request_id,
                message="User denied the context request. Proceed without personal preferences.",
            ),
            vault=next_vault,
        )

    def create_rule(
        self,
        vault: Vault,
        recipient_domain: str,
        purpose_category: str,
        purpose_action: str,
        allowed_fields: Sequence[str],
        max_sensitivity: SensitivityName | None = None,
        duration_days: int | None = None,
        now: datetime | None = None,
    ) -> tuple[Vault, RuleCreated | RuleExists]:
        """Create a standing rule, using the configured defaults for omitted options."""
        return create_rule(
            vault,
            recipient_domain=recipient_domain,
            purpose_category=purpose_category,
            purpose_action=purpose_action,
            allowed_fields=allowed_fields,
            max_sensitivity=(
                max_sensitivity
                if max_sensitivity is not None
                else self._config.default_rule_max_sensitivity
            ),
            duration_days=(
                duration_days
                if duration_days is not None
                else self._config.default_rule_duration_days
            ),
            now=now,
        )

    def pending(self, vault: Vault, now: datetime | None = None) -> list[PendingApproval]:
        """Return the challenges still awaiting a decision. Safe to poll."""
        return live_approvals(vault, to_epoch_ms(self._now(now)))

    def status(self, vault: Vault, now: datetime | None = None) -> VaultStatus:
        """Summarise the vault for a status command."""
        return build_status(
            vault, to_epoch_ms(self._now(now)), self._config.status_audit_tail
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _now(now: datetime | None) -> datetime:
        return ensure_aware(now) if now is not None else utc_now()

    def _swept(self, vault: Vault, moment: datetime) -> Vault:
        queue = sweep_queue(
            vault.approval_queue,
            to_epoch_ms(moment),
            self._config.keep_resolved_approvals,
        )
        if len(queue) == len(vault.approval_queue):
            return vault
        return vault.model_copy(update={"approval_queue": queue})

    def _ttl(self, vault: Vault) -> int:
        return context_ttl_seconds(vault, self._config.default_context_ttl_minutes)

    @staticmethod
    def _no_data(vault: Vault, request: ContextRequest, message: str) -> EngineOutcome:
        logger.info(
            "context_decision",
            extra={
                "decision": "no_data",
                "recipient": request.recipient.value,
                "purpose": request.purpose.label,
            },
        )
        return EngineOutcome(result=NoDataDecision(message=message), vault=vault)

    @staticmethod
    def _lookup_failed(vault: Vault, exc: ApprovalNotFoundError) -> EngineOutcome:
        logger.warning(
            "approval_lookup_failed",
            extra={"request_id": exc.request_id, "code": exc.code},
        )
        return EngineOutcome(
            result=ErrorDecision(error=exc.message, code=exc.code),
            vault=vault,
        )

    @staticmethod
    def _rule_offer(pending: PendingApproval, facts: Sequence[Fact]) -> RuleOffer:
        recipient = pending.request.agent_id
        category, action = _split_purpose(pending.request.purpose)
        return RuleOffer(
            hint=(
                "After using this data, ask the user: 'Want me to remember this? "
                f"I can auto-allow {recipient} to see these fields next time "
                "without asking.' If they agree, create a rule with the "
                "suggested settings."
            ),
            suggested_rule=SuggestedRule(
                recipient_domain=recipient,
                purpose_category=category,
                purpose_action=action,
                allowed_fields=[fact.key for fact in facts],
                max_sensitivity=max_sensitivity_name(facts),
            ),
        )
