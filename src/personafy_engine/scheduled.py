# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Scheduled rule evaluator.

Scheduled rules answer non-interactive triggers (heartbeats and crons). They
share the recipient, purpose, sensitivity and field checks of standing rules.
They also require a matching trigger kind and, optionally, a time-of-day
window. Windows are compared against the wall-clock time of ``now`` as
given, so callers pass a datetime in the user's local zone. A naive ``now``
is read as local time of this host, for the window and the expiry alike.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from personafy_engine.ids import new_id
from personafy_engine.matching import find_matching_persona, match_facts
from personafy_engine.models import (
    Fact,
    PersonaSettings,
    ScheduledRule,
    TimeWindow,
    Vault,
    VaultModel,
)
from personafy_engine.rules import AutoAllowCheck, evaluate_posture_gates, rule_covers
from personafy_engine.timeutil import to_epoch_ms, to_iso, utc_now
from personafy_engine.types import (
    IdPrefix,
    RequestTypeName,
    ScheduledKindName,
    SensitivityName,
    sensitivity_rank,
)

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")
MINUTES_PER_DAY = 24 * 60


class ScheduledRequest(BaseModel):
    """
    A context request raised by a scheduled trigger.

    Attributes:
        request_type: What initiated the request. Only ``heartbeat`` and
            ``cron`` can ever match a scheduled rule.
        source_id: The heartbeat or cron id. When given, only rules linked
            to this source match.
        recipient_domain: The recipient asking for data.
        purpose_category: e.g. ``fitness``.
        purpose_action: e.g. ``sync_data``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    request_type: RequestTypeName
    source_id: str | None = None
    recipient_domain: str
    purpose_category: str
    purpose_action: str


def parse_time_of_day(value: str) -> int | None:
    """
    Parse ``H:MM`` or ``HH:MM`` into minutes after midnight.

    Returns None for malformed or out-of-range values.
    """
    match = _HHMM.match(value.strip())
    if match is None:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def is_within_time_window(window: TimeWindow, now: datetime) -> bool:
    """
    Check whether the time of day of ``now`` falls inside ``window``.

    Both bounds are inclusive at minute granularity. A window whose start is
    later than its end wraps past midnight. A malformed window never matches.
    """
    start = parse_time_of_day(window.from_)
    end = parse_time_of_day(window.to)
    if start is None or end is None:
        return False

    current = now.hour * 60 + now.minute
    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


def as_local_moment(now: datetime) -> datetime:
    """Attach the host's local zone to a naive ``now``; aware values pass through."""
    if now.tzinfo is None:
        return now.astimezone()
    return now


def is_scheduled_rule_active(rule: ScheduledRule, now: datetime) -> bool:
    """A scheduled rule is active when enabled, unexpired and inside its window."""
    moment = as_local_moment(now)
    if not rule.is_active(moment):
        return False
    if rule.time_window is not None and not is_within_time_window(rule.time_window, moment):
        return False
    return True


def find_scheduled_rule(
    rules: Sequence[ScheduledRule],
    request: ScheduledRequest,
    facts: Sequence[Fact],
    now: datetime,
) -> ScheduledRule | None:
    """Return the first active scheduled rule covering ``request``, if any."""
    for rule in rules:
        if rule.kind != request.request_type:
            continue
        if request.source_id is not None and rule.source_id != request.source_id:
            continue
        if not is_scheduled_rule_active(rule, now):
            continue
        if rule_covers(
            rule,
            request.recipient_domain,
            request.purpose_category,
            request.purpose_action,
            facts,
        ):
            return rule
    return None


def evaluate_scheduled_auto_allow(
    vault: Vault,
    request: ScheduledRequest,
    facts: Sequence[Fact],
    persona_settings: PersonaSettings | None = None,
    now: datetime | None = None,
) -> AutoAllowCheck:
    """
    Decide whether a scheduled trigger may receive ``facts`` without asking.

    The posture and persona gates of the interactive rule engine run first,
    so a locked-down vault or an ``always_ask`` persona is never bypassed by
    a schedule, and the balanced ceiling still holds.
    """
    gate = evaluate_posture_gates(vault.privacy_posture, facts, persona_settings)
    if gate is not None:
        return gate

    moment = as_local_moment(now) if now is not None else utc_now().astimezone()
    rule = find_scheduled_rule(vault.scheduled_rules, request, facts, moment)
    if rule is None:
        return AutoAllowCheck(
            allowed=False,
            reason=(
                f"No active {request.request_type} rule allows "
                f"'{request.recipient_domain}' for "
                f"{request.purpose_category}/{request.purpose_action}."
            ),
        )
    return AutoAllowCheck(
        allowed=True,
        reason=f"Scheduled rule '{rule.id}' allows this release.",
        rule_id=rule.id,
    )


def check_scheduled_auto_allow(
    vault: Vault,
    request: ScheduledRequest,
    facts: Sequence[Fact],
    persona_settings: PersonaSettings | None = None,
    now: datetime | None = None,
) -> bool:
    """Boolean form of :func:`evaluate_scheduled_auto_allow`."""
    return evaluate_scheduled_auto_allow(vault, request, facts, persona_settings, now).allowed


# ---------------------------------------------------------------------------
# Scheduled rule management
# ---------------------------------------------------------------------------


def _new_scheduled_rule(
    kind: ScheduledKindName,
    source_id: str,
    recipient_domain: str,
    purpose_category: str,
    purpose_action: str,
    allowed_fields: Sequence[str],
    max_sensitivity: SensitivityName,
    expires_at: datetime,
    time_window: TimeWindow | None = None,
) -> ScheduledRule:
    if not source_id:
        raise ValueError("source_id must be a non-empty string.")
    return ScheduledRule(
        id=new_id(IdPrefix.SCHEDULED_RULE),
        kind=kind,
        source_id=source_id,
        recipient_domain=recipient_domain,
        purpose_category=purpose_category,
        purpose_action=purpose_action,
        max_sensitivity=max_sensitivity,
        allowed_fields=list(allowed_fields),
        time_window=time_window,
        expires_at=to_iso(expires_at),
        enabled=True,
    )


def create_heartbeat_rule(
    heartbeat_id: str,
    recipient_domain: str,
    purpose_category: str,
    purpose_action: str,
    allowed_fields: Sequence[str],
    ttl: timedelta,
    max_sensitivity: SensitivityName = "low",
    now: datetime | None = None,
) -> ScheduledRule:
    """Build a heartbeat rule that lives for ``ttl``."""
    moment = as_local_moment(now) if now is not None else utc_now()
    return _new_scheduled_rule(
        kind="heartbeat",
        source_id=heartbeat_id,
        recipient_domain=recipient_domain,
        purpose_category=purpose_category,
        purpose_action=purpose_action,
        allowed_fields=allowed_fields,
        max_sensitivity=max_sensitivity,
        expires_at=moment + ttl,
    )


def create_cron_rule(
    cron_id: str,
    recipient_domain: str,
    purpose_category: str,
    purpose_action: str,
    allowed_fields: Sequence[str],
    time_window: TimeWindow | None = None,
    expires_in_days: int = 30,
    max_sensitivity: SensitivityName = "low",
    now: datetime | None = None,
) -> ScheduledRule:
    """Build a cron rule, optionally restricted to a time-of-day window."""
    if expires_in_days < 1:
        raise ValueError(f"expires_in_days must be >= 1; got {expires_in_days}.")
    moment = as_local_moment(now) if now is not None else utc_now()
    return _new_scheduled_rule(
        kind="cron",
        source_id=cron_id,
        recipient_domain=recipient_domain,
        purpose_category=purpose_category,
        purpose_action=purpose_action,
        allowed_fields=allowed_fields,
        max_sensitivity=max_sensitivity,
        expires_at=moment + timedelta(days=expires_in_days),
        time_window=time_window,
    )


def add_scheduled_rule(vault: Vault, rule: ScheduledRule) -> Vault:
    return vault.model_copy(update={"scheduled_rules": [*vault.scheduled_rules, rule]})


def expire_scheduled_rules(vault: Vault, now: datetime | None = None) -> tuple[Vault, int]:
    """
    Drop scheduled rules that have expired.

    Returns:
        The next snapshot and the number of rules removed.
    """
    moment = as_local_moment(now) if now is not None else utc_now()
    kept = [rule for rule in vault.scheduled_rules if not rule.is_expired(moment)]
    removed = len(vault.scheduled_rules) - len(kept)
    if removed == 0:
        return vault, 0
    return vault.model_copy(update={"scheduled_rules": kept}), removed


def list_scheduled_rules(
    vault: Vault,
    kind: ScheduledKindName | None = None,
    source_id: str | None = None,
) -> list[ScheduledRule]:
    rules = list(vault.scheduled_rules)
    if kind is not None:
        rules = [rule for rule in rules if rule.kind == kind]
    if source_id is not None:
        rules = [rule for rule in rules if rule.source_id == source_id]
    return rules


def revoke_scheduled_rule(vault: Vault, rule_id: str) -> tuple[Vault, bool]:
    """
    Remove a scheduled rule.

    Returns:
        The next snapshot and whether a rule was removed.
    """
    kept = [rule for rule in vault.scheduled_rules if rule.id != rule_id]
    if len(kept) == len(vault.scheduled_rules):
        return vault, False
    return vault.model_copy(update={"scheduled_rules": kept}), True


# ---------------------------------------------------------------------------
# Cron context pre-warming
# ---------------------------------------------------------------------------

DEFAULT_PRE_WARM_TTL = timedelta(minutes=10)


class PreWarmedContext(VaultModel):
    """
    Facts resolved ahead of a cron run, valid until ``expires_at_ms``.

    The holder keeps the value; dropping it is the only way to clear it.
    """

    cron_id: str
    persona_id: str
    facts: list[Fact]
    prepared_at_ms: int
    expires_at_ms: int

    def is_expired(self, now_ms: int) -> bool:
        return now_ms > self.expires_at_ms


def pre_warm_context(
    vault: Vault,
    cron_id: str,
    ttl: timedelta = DEFAULT_PRE_WARM_TTL,
    now: datetime | None = None,
) -> PreWarmedContext | None:
    """
    Resolve the facts a cron job's scheduled rules would release.

    Every active rule linked to ``cron_id`` contributes the facts its field
    patterns cover up to its own sensitivity ceiling. The persona is the one
    serving the first rule's purpose category. The posture and persona gates
    of a live scheduled request apply, so nothing is prepared that the run
    could not receive.

    Returns:
        The prepared context, or None when no rule, persona or fact applies.

    Raises:
        ValueError: If ``ttl`` is not positive.
    """
    if ttl <= timedelta(0):
        raise ValueError("Pre-warm ttl must be positive.")

    moment = as_local_moment(now) if now is not None else utc_now()
    rules = [
        rule
        for rule in vault.scheduled_rules
        if rule.source_id == cron_id and rule.is_active(moment)
    ]
    if not rules:
        return None

    persona = find_matching_persona(vault, purpose_category=rules[0].purpose_category)
    if persona is None:
        return None

    seen: set[tuple[str, str]] = set()
    facts: list[Fact] = []
    for rule in rules:
        ceiling = sensitivity_rank(rule.max_sensitivity)
        for fact in match_facts(persona, rule.allowed_fields):
            identity = (fact.key, fact.value.lower())
            if sensitivity_rank(fact.sensitivity) > ceiling or identity in seen:
                continue
            seen.add(identity)
            facts.append(fact)

    gate = evaluate_posture_gates(vault.privacy_posture, facts, persona.persona_settings)
    if gate is not None and not gate.allowed:
        return None

    prepared_at_ms = to_epoch_ms(moment)
    return PreWarmedContext(
        cron_id=cron_id,
        persona_id=persona.id,
        facts=facts,
        prepared_at_ms=prepared_at_ms,
        expires_at_ms=prepared_at_ms + ttl // timedelta(milliseconds=1),
    )


def read_pre_warmed_context(
    context: PreWarmedContext | None,
    now: datetime | None = None,
) -> PreWarmedContext | None:
    """Return ``context`` while it is fresh, None once it has expired."""
    if context is None:
        return None
    moment = as_local_moment(now) if now is not None else utc_now()
    if context.is_expired(to_epoch_ms(moment)):
        return None
    return context
