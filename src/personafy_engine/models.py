# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Vault snapshot models.

All models are frozen Pydantic v2 models using camelCase aliases, so a vault
JSON file round-trips through :meth:`Vault.model_validate` and
:meth:`Vault.to_json_dict` without renaming keys. The engine never mutates a
snapshot in place; it derives the next one with ``model_copy``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from personafy_engine.posture import canonical_posture
from personafy_engine.timeutil import parse_instant
from personafy_engine.types import (
    ApprovalStatus,
    ApprovalStatusName,
    AuditDecisionName,
    AutoReleaseName,
    Posture,
    ScheduledKindName,
    SensitivityName,
)


class VaultModel(BaseModel):
    """Base for every snapshot model: frozen, camelCase on the wire."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class Fact(VaultModel):
    """
    A single piece of personal data held by a persona.

    Attributes:
        key: Dotted hierarchical key, e.g. ``apparel.pants.waist``.
        value: The stored value.
        sensitivity: ``low``, ``medium`` or ``high``.
        confidence: Extraction confidence in ``[0, 1]``.
    """

    key: str
    value: str
    sensitivity: SensitivityName
    confidence: Annotated[float, Field(ge=0.0, le=1.0)] = 1.0

    def with_key(self, key: str) -> Fact:
        """Return a copy of this fact under a different key."""
        if key == self.key:
            return self
        return self.model_copy(update={"key": key})


class PersonaSettings(VaultModel):
    """Per-persona visibility and auto-release override."""

    visible: bool = True
    auto_release: AutoReleaseName = "follow_posture"
    retention: str = "never"


class Persona(VaultModel):
    """A named bundle of facts representing one facet of the user's profile."""

    id: str
    name: str
    category: str = ""
    facts: list[Fact] = Field(default_factory=list)
    persona_settings: PersonaSettings | None = None


class PolicyRule(VaultModel):
    """
    A standing allow-rule for one recipient and purpose pair.

    ``expires_at`` is kept as the raw string from the vault. An empty or
    unparseable value makes the rule inactive.
    """

    id: str
    recipient_domain: str
    purpose_category: str
    purpose_action: str
    max_sensitivity: SensitivityName = "medium"
    allowed_fields: list[str] = Field(default_factory=list)
    expires_at: str = ""
    enabled: bool = True

    def is_expired(self, now: datetime) -> bool:
        """True unless ``expires_at`` parses to an instant after ``now``."""
        expires = parse_instant(self.expires_at)
        return expires is None or expires <= now

    def is_active(self, now: datetime) -> bool:
        return self.enabled and not self.is_expired(now)


class TimeWindow(VaultModel):
    """Time-of-day window in ``HH:MM``. ``from_`` after ``to`` wraps past midnight."""

    from_: str = Field(alias="from")
    to: str


class ScheduledRule(PolicyRule):
    """
    A standing rule for non-interactive triggers (heartbeats and crons).

    Attributes:
        kind: The trigger kind the rule answers to.
        source_id: The heartbeat or cron identifier the rule is linked to.
        time_window: Optional window of the day in which the rule applies.
    """

    kind: ScheduledKindName
    source_id: str
    max_sensitivity: SensitivityName = "low"
    time_window: TimeWindow | None = None


class ApprovalRequest(VaultModel):
    """What a pending approval asks for, as shown to the user."""

    agent_id: str
    purpose: str
    persona: str
    fields: list[str] = Field(default_factory=list)


class PendingApproval(VaultModel):
    """
    A challenge awaiting the user's decision.

    Only ``pending``, ``approved`` and ``denied`` are stored. Expiry is
    derived from the clock by :meth:`effective_status`.
    """

    id: str
    created_at_ms: int
    expires_at_ms: int
    status: ApprovalStatusName = "pending"
    resolved_at_ms: int | None = None
    request: ApprovalRequest
    matched_facts: list[Fact] | None = None

    def is_expired(self, now_ms: int) -> bool:
        return self.status == ApprovalStatus.PENDING and now_ms > self.expires_at_ms

    def is_live(self, now_ms: int) -> bool:
        """True while the entry can still be approved or denied."""
        return self.status == ApprovalStatus.PENDING and now_ms <= self.expires_at_ms

    def effective_status(self, now_ms: int) -> str:
        if self.is_expired(now_ms):
            return ApprovalStatus.EXPIRED
        return self.status


class AuditEvent(VaultModel):
    """An immutable ledger entry for one terminal decision."""

    id: str
    timestamp: str
    request_id: str
    decision: AuditDecisionName
    recipient_domain: str
    purpose: str
    fields_released: list[str] = Field(default_factory=list)


class VaultSettings(VaultModel):
    """User settings the engine reads. Unknown settings are preserved."""

    model_config = ConfigDict(extra="allow")

    context_ttl_minutes: float | None = None
    hide_high_sensitivity: bool | None = None
    approval_notifications: bool | None = None


class Vault(VaultModel):
    """
    A read-only snapshot of the user's vault.

    Keys owned by other collaborators (devices, sync metadata) are kept as
    extra fields so writing the snapshot back never drops them.
    """

    model_config = ConfigDict(extra="allow")

    version: str = "1"
    created_at: str | None = None
    privacy_posture: str = Posture.ALARM_SYSTEM
    settings: VaultSettings | None = None
    personas: list[Persona] = Field(default_factory=list)
    rules: list[PolicyRule] = Field(default_factory=list)
    scheduled_rules: list[ScheduledRule] = Field(default_factory=list)
    audit_log: list[AuditEvent] = Field(default_factory=list)
    approval_queue: list[PendingApproval] = Field(default_factory=list)

    @field_validator("privacy_posture", mode="before")
    @classmethod
    def _canonical_posture(cls, value: Any) -> Any:
        if isinstance(value, str):
            return canonical_posture(value)
        return value

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_string(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    def to_json_dict(self) -> dict[str, Any]:
        """Dump the snapshot in its on-disk camelCase shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
