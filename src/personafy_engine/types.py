# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from typing import Literal

SensitivityName = Literal["low", "medium", "high"]
AutoReleaseName = Literal["follow_posture", "always_ask", "auto_low"]
AuditDecisionName = Literal["allow", "deny", "ask_approved", "ask_denied"]
ApprovalStatusName = Literal["pending", "approved", "denied"]
ScheduledKindName = Literal["heartbeat", "cron"]
RequestTypeName = Literal["message", "heartbeat", "cron", "webhook", "hook"]


class Sensitivity(str):
    """Sensitivity labels carried by every fact, ordered low < medium < high."""

    LOW: Literal["low"] = "low"
    MEDIUM: Literal["medium"] = "medium"
    HIGH: Literal["high"] = "high"


SENSITIVITY_RANK: dict[str, int] = {
    Sensitivity.LOW: 1,
    Sensitivity.MEDIUM: 2,
    Sensitivity.HIGH: 3,
}


def sensitivity_rank(value: str) -> int:
    """Return the numeric rank of a sensitivity label (unknown labels rank as medium)."""
    return SENSITIVITY_RANK.get(value, SENSITIVITY_RANK[Sensitivity.MEDIUM])


class Posture(str):
    """
    Stored names of the three global privacy postures.

    ``SIMPLE_LOCK`` is the open-ish stance, ``ALARM_SYSTEM`` the balanced
    one and ``SAFE_ROOM`` the locked-down one.
    """

    SIMPLE_LOCK = "simple_lock"
    ALARM_SYSTEM = "alarm_system"
    SAFE_ROOM = "safe_room"


POSTURE_ALIASES: dict[str, str] = {
    "open_ish": Posture.SIMPLE_LOCK,
    "open": Posture.SIMPLE_LOCK,
    "balanced": Posture.ALARM_SYSTEM,
    "guarded": Posture.ALARM_SYSTEM,
    "locked_down": Posture.SAFE_ROOM,
    "locked": Posture.SAFE_ROOM,
}


class AutoRelease(str):
    """Per-persona overrides of the posture outcome."""

    FOLLOW_POSTURE = "follow_posture"
    ALWAYS_ASK = "always_ask"
    AUTO_LOW = "auto_low"


class AuditDecision(str):
    """Decision kinds recorded in the audit ledger."""

    ALLOW = "allow"
    DENY = "deny"
    ASK_APPROVED = "ask_approved"
    ASK_DENIED = "ask_denied"


AUDIT_DECISION_VALUES = frozenset(
    {"allow", "deny", "ask_approved", "ask_denied"}
)


class ApprovalStatus(str):
    """
    Statuses of a pending approval.

    ``EXPIRED`` is never stored; it is derived from the clock at lookup time.
    """

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    EXPIRED = "expired"


class IdPrefix(str):
    """Prefixes of the opaque ids minted by the engine."""

    REQUEST = "req_"
    AUDIT = "aud_"
    RULE = "rule_"
    SCHEDULED_RULE = "srl_"


WILDCARD_SUFFIX = ".*"
