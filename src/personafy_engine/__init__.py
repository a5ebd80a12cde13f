# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
personafy-engine: policy and approval engine for agent access to personal facts.

Quick start::

    from personafy_engine import PolicyEngine, Vault, parse_request

    engine = PolicyEngine()
    vault = Vault.model_validate(vault_json)
    outcome = engine.decide(vault, parse_request({
        "purpose": {"category": "shopping", "action": "find_item"},
        "recipient": {"type": "domain", "value": "nordstrom.com"},
        "fields_requested": ["apparel.pants.*"],
    }))
    print(outcome.result.decision)  # "allow", "ask" or "no_data"
    vault = outcome.vault           # persist this snapshot
"""
from __future__ import annotations

from personafy_engine.approvals import live_approvals
from personafy_engine.audit import (
    AuditFilter,
    AuditQueryResult,
    aggregate_decisions,
    query_audit,
    tail,
)
from personafy_engine.config import EngineConfig, ServiceConfig, StoreConfig
from personafy_engine.decisions import (
    AllowDecision,
    AskDecision,
    Challenge,
    DecisionResult,
    DenyDecision,
    EngineOutcome,
    ErrorDecision,
    NoDataDecision,
    ReleasePackage,
    RuleOffer,
)
from personafy_engine.engine import PolicyEngine, context_ttl_seconds
from personafy_engine.errors import (
    ApprovalNotFoundError,
    ConfigurationError,
    InvalidRequestError,
    PersonafyError,
    RuleNotFoundError,
    VaultFormatError,
    VaultNotFoundError,
)
from personafy_engine.matching import (
    field_matches_pattern,
    find_hidden_persona,
    find_matching_persona,
    match_facts,
)
from personafy_engine.models import (
    AuditEvent,
    Fact,
    PendingApproval,
    Persona,
    PersonaSettings,
    PolicyRule,
    ScheduledRule,
    TimeWindow,
    Vault,
    VaultSettings,
)
from personafy_engine.posture import canonical_posture, posture_allows
from personafy_engine.requests import ContextRequest, ResolutionRequest, parse_request
from personafy_engine.rules import (
    AutoAllowCheck,
    RuleCreated,
    RuleExists,
    check_auto_allow,
    create_rule,
    disable_rule,
    evaluate_auto_allow,
    list_active_rules,
)
from personafy_engine.scheduled import (
    PreWarmedContext,
    ScheduledRequest,
    check_scheduled_auto_allow,
    create_cron_rule,
    create_heartbeat_rule,
    expire_scheduled_rules,
    list_scheduled_rules,
    pre_warm_context,
    read_pre_warmed_context,
    revoke_scheduled_rule,
)
from personafy_engine.service import PolicyService
from personafy_engine.status import VaultStatus
from personafy_engine.store import VaultStore
from personafy_engine.taxonomy import normalize_fact_key, normalize_field_pattern
from personafy_engine.types import AuditDecision, AutoRelease, Posture, Sensitivity

__version__ = "0.1.0"

__all__ = [
    # Core types
    "Sensitivity",
    "Posture",
    "AutoRelease",
    "AuditDecision",
    # Configuration
    "EngineConfig",
    "StoreConfig",
    "ServiceConfig",
    # Snapshot models
    "Vault",
    "VaultSettings",
    "Persona",
    "PersonaSettings",
    "Fact",
    "PolicyRule",
    "ScheduledRule",
    "TimeWindow",
    "PendingApproval",
    "AuditEvent",
    # Requests and decisions
    "ContextRequest",
    "ResolutionRequest",
    "parse_request",
    "DecisionResult",
    "AllowDecision",
    "AskDecision",
    "DenyDecision",
    "NoDataDecision",
    "ErrorDecision",
    "Challenge",
    "ReleasePackage",
    "RuleOffer",
    "EngineOutcome",
    # Engine and service
    "PolicyEngine",
    "PolicyService",
    "VaultStore",
    "VaultStatus",
    "context_ttl_seconds",
    "live_approvals",
    # Taxonomy and matching
    "normalize_fact_key",
    "normalize_field_pattern",
    "field_matches_pattern",
    "match_facts",
    "find_matching_persona",
    "find_hidden_persona",
    # Posture and rules
    "canonical_posture",
    "posture_allows",
    "AutoAllowCheck",
    "check_auto_allow",
    "evaluate_auto_allow",
    "create_rule",
    "disable_rule",
    "list_active_rules",
    "RuleCreated",
    "RuleExists",
    # Scheduled rules
    "ScheduledRequest",
    "check_scheduled_auto_allow",
    "create_heartbeat_rule",
    "create_cron_rule",
    "expire_scheduled_rules",
    "list_scheduled_rules",
    "revoke_scheduled_rule",
    "PreWarmedContext",
    "pre_warm_context",
    "read_pre_warmed_context",
    # Audit
    "AuditFilter",
    "AuditQueryResult",
    "query_audit",
    "aggregate_decisions",
    "tail",
    # Errors
    "PersonafyError",
    "ApprovalNotFoundError",
    "InvalidRequestError",
    "RuleNotFoundError",
    "VaultNotFoundError",
    "VaultFormatError",
    "ConfigurationError",
    "__version__",
]
