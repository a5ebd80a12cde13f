# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Rule engine: decides whether matched facts may be released without asking.

The decision combines the vault posture, the persona's auto-release
override and the standing rules. See :func:`evaluate_auto_allow` for the
exact order of evaluation.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta

from pydantic import BaseModel

from personafy_engine.audit.ledger import append_event, create_event
from personafy_engine.errors import RuleNotFoundError
from personafy_engine.ids import new_id
from personafy_engine.matching import covered_by_any
from personafy_engine.models import Fact, PersonaSettings, PolicyRule, Vault
from personafy_engine.posture import (
    has_sensitivity_ceiling,
    is_locked,
    max_sensitivity_rank,
    posture_allows,
)
from personafy_engine.timeutil import ensure_aware, to_iso, utc_now
from personafy_engine.types import (
    SENSITIVITY_RANK,
    AuditDecision,
    AutoRelease,
    IdPrefix,
    Sensitivity,
    SensitivityName,
    sensitivity_rank,
)


class AutoAllowCheck(BaseModel, frozen=True):
    """
    Result of an auto-allow evaluation.

    Attributes:
        allowed: True if the facts may be released without asking.
        reason: Human-readable explanation of the outcome.
        rule_id: The standing rule that allowed the release, if any.
    """

    allowed: bool
    reason: str
    rule_id: str | None = None


class RuleCreated(BaseModel, frozen=True):
    """Returned by :func:`create_rule` when a new rule was stored."""

    created: bool = True
    rule: PolicyRule
    duration_days: int


class RuleExists(BaseModel, frozen=True):
    """Returned by :func:`create_rule` when an equivalent enabled rule exists."""

    created: bool = False
    rule_id: str
    message: str


def rule_covers(
    rule: PolicyRule,
    recipient_domain: str,
    purpose_category: str,
    purpose_action: str,
    facts: Sequence[Fact],
) -> bool:
    """
    Check a single rule against a request, ignoring expiry.

    The recipient and purpose must match exactly. The rule's sensitivity
    ceiling must be at least that of the most sensitive fact. A non-empty
    ``allowed_fields`` list must cover every fact.
    """
    if rule.recipient_domain != recipient_domain:
        return False
    if rule.purpose_category != purpose_category:
        return False
    if rule.purpose_action != purpose_action:
        return False
    if sensitivity_rank(rule.max_sensitivity) < max_sensitivity_rank(facts):
        return False
    if rule.allowed_fields:
        return all(covered_by_any(fact.key, rule.allowed_fields) for fact in facts)
    return True


def find_covering_rule(
    rules: Sequence[PolicyRule],
    recipient_domain: str,
    purpose_category: str,
    purpose_action: str,
    facts: Sequence[Fact],
    now: datetime,
) -> PolicyRule | None:
    """Return the first enabled, unexpired rule covering the request, if any."""
    for rule in rules:
        if not rule.is_active(now):
            continue
        if rule_covers(rule, recipient_domain, purpose_category, purpose_action, facts):
            return rule
    return None


def evaluate_posture_gates(
    posture: str,
    facts: Sequence[Fact],
    persona_settings: PersonaSettings | None,
) -> AutoAllowCheck | None:
    """
    Apply the posture and persona override gates that run before any rule.

    Returns:
        A final :class:`AutoAllowCheck` when a gate decides the outcome, or
        None when standing rules should be consulted.
    """
    override = persona_settings.auto_release if persona_settings else None

    if is_locked(posture):
        return AutoAllowCheck(
            allowed=False,
            reason="Locked-down posture requires approval for every release.",
        )

    if override == AutoRelease.ALWAYS_ASK:
        return AutoAllowCheck(
            allowed=False,
            reason="Persona is set to always ask before releasing.",
        )

    if not facts:
        return AutoAllowCheck(allowed=False, reason="No facts matched the request.")

    max_rank = max_sensitivity_rank(facts)
    low_rank = SENSITIVITY_RANK[Sensitivity.LOW]

    if override == AutoRelease.AUTO_LOW and max_rank <= low_rank:
        return AutoAllowCheck(
            allowed=True,
            reason="Persona auto-releases low-sensitivity facts.",
        )

    if posture_allows(posture, max_rank):
        return AutoAllowCheck(
            allowed=True,
            reason=f"Posture '{posture}' auto-releases low-sensitivity facts.",
        )

    if has_sensitivity_ceiling(posture) and max_rank > low_rank:
        return AutoAllowCheck(
            allowed=False,
            reason=(
                f"Posture '{posture}' requires approval for medium and high "
                "sensitivity facts, regardless of standing rules."
            ),
        )

    return None


def evaluate_auto_allow(
    vault: Vault,
    recipient_domain: str,
    purpose_category: str,
    purpose_action: str,
    facts: Sequence[Fact],
    persona_settings: PersonaSettings | None = None,
    now: datetime | None = None,
) -> AutoAllowCheck:
    """
    Decide whether ``facts`` may be released to a recipient without asking.

    Evaluation short-circuits in this order:

    1. Locked-down posture: never.
    2. Persona override ``always_ask``: never.
    3. No facts: never.
    4. Persona override ``auto_low`` with only low facts: always.
    5. Posture default allows: always.
    6. Balanced posture with medium or high facts: never (rules cannot lift it).
    7. First enabled, unexpired standing rule covering the request: allowed.

    Args:
        vault: The snapshot holding posture and rules.
        recipient_domain: The recipient asking for data.
        purpose_category: e.g. ``shopping``.
        purpose_action: e.g. ``find_item``.
        facts: The facts that matched the request.
        persona_settings: The persona's settings, if any.
        now: Evaluation time; defaults to the current UTC time.

    Returns:
        An :class:`AutoAllowCheck` describing the outcome.
    """
    gate = evaluate_posture_gates(vault.privacy_posture, facts, persona_settings)
    if gate is not None:
        return gate

    moment = ensure_aware(now) if now is not None else utc_now()
    rule = find_covering_rule(
        vault.rules, recipient_domain, purpose_category, purpose_action, facts, moment
    )
    if rule is None:
        return AutoAllowCheck(
            allowed=False,
            reason=(
                f"No active rule allows '{recipient_domain}' "
                f"for {purpose_category}/{purpose_action}."
            ),
        )
    return AutoAllowCheck(
        allowed=True,
        reason=f"Standing rule '{rule.id}' allows this release.",
        rule_id=rule.id,
    )


def check_auto_allow(
    vault: Vault,
    recipient_domain: str,
    purpose_category: str,
    purpose_action: str,
    facts: Sequence[Fact],
    persona_settings: PersonaSettings | None = None,
    now: datetime | None = None,
) -> bool:
    """Boolean form of :func:`evaluate_auto_allow`."""
    return evaluate_auto_allow(
        vault,
        recipient_domain,
        purpose_category,
        purpose_action,
        facts,
        persona_settings,
        now,
    ).allowed


# ---------------------------------------------------------------------------
# Rule management
# ---------------------------------------------------------------------------


def list_active_rules(vault: Vault, now: datetime | None = None) -> list[PolicyRule]:
    """Return the rules that are enabled and not expired."""
    moment = ensure_aware(now) if now is not None else utc_now()
    return [rule for rule in vault.rules if rule.is_active(moment)]


def create_rule(
    vault: Vault,
    recipient_domain: str,
    purpose_category: str,
    purpose_action: str,
    allowed_fields: Sequence[str],
    max_sensitivity: SensitivityName = "medium",
    duration_days: int = 180,
    now: datetime | None = None,
) -> tuple[Vault, RuleCreated | RuleExists]:
    """
    Store a new standing rule and record its creation in the audit ledger.

    If an enabled rule already exists for the same recipient and purpose,
    the vault is returned unchanged together with a :class:`RuleExists`.

    Args:
        vault: The current snapshot.
        recipient_domain: Recipient the rule applies to.
        purpose_category: Purpose category the rule applies to.
        purpose_action: Purpose action the rule applies to.
        allowed_fields: Field patterns the rule may release.
        max_sensitivity: Most sensitive fact the rule may release.
        duration_days: Lifetime of the rule.
        now: Creation time; defaults to the current UTC time.

    Returns:
        The next snapshot and the outcome.

    Raises:
        ValueError: If any identifier is empty or ``duration_days`` < 1.
    """
    if not recipient_domain:
        raise ValueError("recipient_domain must be a non-empty string.")
    if not purpose_category or not purpose_action:
        raise ValueError("purpose_category and purpose_action must be non-empty strings.")
    if duration_days < 1:
        raise ValueError(f"duration_days must be >= 1; got {duration_days}.")

    existing = next(
        (
            rule
            for rule in vault.rules
            if rule.enabled
            and rule.recipient_domain == recipient_domain
            and rule.purpose_category == purpose_category
            and rule.purpose_action == purpose_action
        ),
        None,
    )
    if existing is not None:
        return vault, RuleExists(
            rule_id=existing.id,
            message=(
                f"A rule already exists for {recipient_domain} "
                f"({purpose_category}/{purpose_action}). Rule ID: {existing.id}"
            ),
        )

    moment = ensure_aware(now) if now is not None else utc_now()
    rule = PolicyRule(
        id=new_id(IdPrefix.RULE),
        recipient_domain=recipient_domain,
        purpose_category=purpose_category,
        purpose_action=purpose_action,
        max_sensitivity=max_sensitivity,
        allowed_fields=list(allowed_fields),
        expires_at=to_iso(moment + timedelta(days=duration_days)),
        enabled=True,
    )
    event = create_event(
        decision=AuditDecision.ALLOW,
        request_id=rule.id,
        recipient_domain=recipient_domain,
        purpose=f"rule_created/{purpose_category}/{purpose_action}",
        fields_released=rule.allowed_fields,
        now=moment,
    )
    updated = vault.model_copy(update={"rules": [*vault.rules, rule]})
    return append_event(updated, event), RuleCreated(rule=rule, duration_days=duration_days)


def disable_rule(vault: Vault, rule_id: str) -> Vault:
    """
    Return a snapshot in which ``rule_id`` is disabled.

    Raises:
        RuleNotFoundError: If no rule has this id.
    """
    if not any(rule.id == rule_id for rule in vault.rules):
        raise RuleNotFoundError(rule_id)
    rules = [
        rule.model_copy(update={"enabled": False}) if rule.id == rule_id else rule
        for rule in vault.rules
    ]
    return vault.model_copy(update={"rules": rules})
