# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Vault and request builders shared by the personafy-engine tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


from personafy_engine.models import Vault

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
FUTURE = "2027-01-01T00:00:00.000Z"
PAST = "2026-01-01T00:00:00.000Z"


def fact(key: str, value: str, sensitivity: str = "low", confidence: float = 0.9) -> dict[str, Any]:
    return {"key": key, "value": value, "sensitivity": sensitivity, "confidence": confidence}


def rule(
    rule_id: str = "rule_nord",
    recipient: str = "nordstrom.com",
    category: str = "shopping",
    action: str = "find_item",
    max_sensitivity: str = "medium",
    allowed_fields: list[str] | None = None,
    expires_at: str = FUTURE,
    enabled: bool = True,
) -> dict[str, Any]:
    return {
        "id": rule_id,
        "recipientDomain": recipient,
        "purposeCategory": category,
        "purposeAction": action,
        "maxSensitivity": max_sensitivity,
        "allowedFields": allowed_fields if allowed_fields is not None else ["apparel.*"],
        "expiresAt": expires_at,
        "enabled": enabled,
    }


def vault_data(
    posture: str = "simple_lock",
    facts: list[dict[str, Any]] | None = None,
    rules: list[dict[str, Any]] | None = None,
    persona_settings: dict[str, Any] | None = None,
    settings: dict[str, Any] | None = None,
    extra_personas: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """A camelCase vault document as the web app writes it."""
    persona: dict[str, Any] = {
        "id": "shopping",
        "name": "Shopping",
        "category": "Shopping",
        "facts": facts if facts is not None else [fact("apparel.pants.waist", "32")],
    }
    if persona_settings is not None:
        persona["personaSettings"] = persona_settings
    data: dict[str, Any] = {
        "version": "1",
        "privacyPosture": posture,
        "personas": [persona, *(extra_personas or [])],
        "rules": rules or [],
        "auditLog": [],
        "approvalQueue": [],
    }
    if settings is not None:
        data["settings"] = settings
    return data


def make_vault(**kwargs: Any) -> Vault:
    return Vault.model_validate(vault_data(**kwargs))


def context_payload(
    fields: list[str] | None = None,
    recipient: str = "nordstrom.com",
    category: str = "shopping",
    action: str = "find_item",
    persona_hint: str | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "purpose": {"category": category, "action": action},
        "recipient": {"type": "domain", "value": recipient},
        "fields_requested": fields if fields is not None else ["apparel.pants.*"],
    }
    if persona_hint is not None:
        payload["persona_hint"] = persona_hint
    return payload


