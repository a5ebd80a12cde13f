# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from personafy_engine.models import Vault
from personafy_engine.types import SensitivityName


class ReleasedFact(BaseModel, frozen=True):
    """A fact as handed to the recipient: sensitivity is not disclosed."""

    key: str
    value: str
    confidence: float


class ReleasePackage(BaseModel, frozen=True):
    """
    The released facts and how long the recipient may keep them.

    Attributes:
        ttl_seconds: Lifetime of the released context. 0 means no expiry.
        facts: The released facts.
    """

    ttl_seconds: int
    facts: list[ReleasedFact]


class SuggestedRule(BaseModel, frozen=True):
    """A standing rule that would have auto-allowed an approved request."""

    recipient_domain: str
    purpose_category: str
    purpose_action: str
    allowed_fields: list[str]
    max_sensitivity: SensitivityName


class RuleOffer(BaseModel, frozen=True):
    """Offer to remember an approval as a standing rule."""

    hint: str
    suggested_rule: SuggestedRule


class ChallengeField(BaseModel, frozen=True):
    """
    One field shown in an approval challenge.

    ``preview`` is ``"[hidden]"`` for high-sensitivity facts; their value
    never appears in a challenge.
    """

    key: str
    sensitivity: SensitivityName
    preview: str


class Challenge(BaseModel, frozen=True):
    """The human-readable summary shown before the user decides."""

    summary: str
    persona: str
    recipient: str
    purpose: str
    fields: list[ChallengeField]
    expires_in_seconds: int
    approval_instructions: str


class AllowDecision(BaseModel, frozen=True):
    """Facts were released, either automatically or after approval."""

    decision: Literal["allow"] = "allow"
    request_id: str | None = None
    package: ReleasePackage
    audit_id: str
    offer_rule: RuleOffer | None = None


class AskDecision(BaseModel, frozen=True):
    """The user must approve or deny before anything is released."""

    decision: Literal["ask"] = "ask"
    request_id: str
    challenge: Challenge


class DenyDecision(BaseModel, frozen=True):
    """The user denied the request. Nothing was released."""

    decision: Literal["deny"] = "deny"
    request_id: str
    message: str


class NoDataDecision(BaseModel, frozen=True):
    """No persona or no facts matched. Distinct from a denial and never audited."""

    decision: Literal["no_data"] = "no_data"
    message: str


class ErrorDecision(BaseModel, frozen=True):
    """The request could not be processed, e.g. an expired request id."""

    decision: Literal["error"] = "error"
    error: str
    code: str


DecisionResult = Annotated[
    Union[AllowDecision, AskDecision, DenyDecision, NoDataDecision, ErrorDecision],
    Field(discriminator="decision"),
]


class EngineOutcome(BaseModel, frozen=True):
    """
    Everything one decision cycle produces.

    Attributes:
        result: The typed decision handed back to the agent.
        vault: The next snapshot for the caller to persist.
    """

    result: DecisionResult
    vault: Vault
