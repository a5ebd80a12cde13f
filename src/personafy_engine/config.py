# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, Field

from personafy_engine.types import SensitivityName

VAULT_PATH_ENV = "PERSONAFY_VAULT_PATH"


def default_vault_path() -> Path:
    """Return the vault location, honouring ``PERSONAFY_VAULT_PATH`` when set."""
    override = os.environ.get(VAULT_PATH_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".openclaw" / "workspace" / "Personafy" / "vault-data.json"


class EngineConfig(BaseModel, frozen=True):
    """
    Configuration for the PolicyEngine.

    Attributes:
        approval_ttl_seconds: Lifetime of an approval challenge. Resolving a
            request after this window fails with an expired error.
        default_context_ttl_minutes: Lifetime of released context when the
            vault settings do not specify one.
        default_rule_duration_days: Lifetime of a standing rule created
            without an explicit duration.
        default_rule_max_sensitivity: Sensitivity ceiling of a standing rule
            created without an explicit one.
        keep_resolved_approvals: Number of resolved approvals retained in
            the queue as history. Older entries are pruned first.
        status_audit_tail: Number of audit events shown by the status summary.
    """

    approval_ttl_seconds: Annotated[int, Field(gt=0)] = 15 * 60
    default_context_ttl_minutes: Annotated[int, Field(ge=0)] = 10
    default_rule_duration_days: Annotated[int, Field(gt=0)] = 180
    default_rule_max_sensitivity: SensitivityName = "medium"
    keep_resolved_approvals: Annotated[int, Field(ge=0)] = 100
    status_audit_tail: Annotated[int, Field(gt=0)] = 5


class StoreConfig(BaseModel, frozen=True):
    """
    Configuration for the VaultStore.

    Attributes:
        vault_path: Location of the JSON vault file.
        indent: Indentation used when writing the vault file.
    """

    vault_path: Path = Field(default_factory=default_vault_path)
    indent: Annotated[int, Field(ge=0)] = 2


class ServiceConfig(BaseModel, frozen=True):
    """
    Top-level configuration for the PolicyService.

    Example::

        config = ServiceConfig(
            engine=EngineConfig(keep_resolved_approvals=50),
            store=StoreConfig(vault_path=Path("/tmp/vault.json")),
        )
        service = PolicyService(config=config)
    """

    engine: EngineConfig = Field(default_factory=EngineConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
