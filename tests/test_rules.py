# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Tests for the posture policy, rule engine and rule management."""

from __future__ import annotations

from datetime import timedelta

import pytest

from builders import NOW, PAST, fact, make_vault, rule
from personafy_engine.errors import RuleNotFoundError
from personafy_engine.models import Fact, PersonaSettings
from personafy_engine.posture import canonical_posture, max_sensitivity_rank, posture_allows
from personafy_engine.rules import (
    RuleCreated,
    RuleExists,
    check_auto_allow,
    create_rule,
    disable_rule,
    evaluate_auto_allow,
    list_active_rules,
)
from personafy_engine.timeutil import parse_instant


def _facts(*sensitivities: str) -> list[Fact]:
    return [
        Fact.model_validate(fact(f"apparel.item{index}.size", "M", sensitivity))
        for index, sensitivity in enumerate(sensitivities)
    ]


def _allowed(vault, facts, settings=None, recipient="nordstrom.com", category="shopping", action="find_item") -> bool:
    return check_auto_allow(vault, recipient, category, action, facts, settings, now=NOW)


# ---------------------------------------------------------------------------
# TestPosture
# ---------------------------------------------------------------------------


class TestPosture:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("simple_lock", "simple_lock"),
            ("Simple-Lock", "simple_lock"),
            ("open-ish", "simple_lock"),
            ("balanced", "alarm_system"),
            ("locked-down", "safe_room"),
            ("custom", "custom"),
        ],
    )
    def test_canonical_posture(self, raw: str, expected: str) -> None:
        assert canonical_posture(raw) == expected

    def test_vault_canonicalizes_posture_on_load(self) -> None:
        assert make_vault(posture="locked-down").privacy_posture == "safe_room"

    def test_max_sensitivity_rank_of_empty_input_is_zero(self) -> None:
        assert max_sensitivity_rank([]) == 0

    def test_max_sensitivity_rank_picks_highest(self) -> None:
        assert max_sensitivity_rank(_facts("low", "high", "medium")) == 3

    def test_posture_default_never_allows_empty_fact_set(self) -> None:
        assert posture_allows("simple_lock", 0) is False

    def test_unknown_posture_has_no_default_release(self) -> None:
        assert posture_allows("custom", 1) is False


# ---------------------------------------------------------------------------
# TestAutoAllowGates
# ---------------------------------------------------------------------------


class TestAutoAllowGates:
    def test_simple_lock_releases_low_facts(self) -> None:
        assert _allowed(make_vault(posture="simple_lock"), _facts("low", "low")) is True

    def test_simple_lock_asks_for_medium_without_rule(self) -> None:
        assert _allowed(make_vault(posture="simple_lock"), _facts("low", "medium")) is False

    def test_balanced_releases_low_facts(self) -> None:
        assert _allowed(make_vault(posture="alarm_system"), _facts("low")) is True

    @pytest.mark.parametrize("sensitivity", ["medium", "high"])
    def test_balanced_ceiling_is_not_lifted_by_rules(self, sensitivity: str) -> None:
        vault = make_vault(posture="alarm_system", rules=[rule(max_sensitivity="high")])
        check = evaluate_auto_allow(
            vault, "nordstrom.com", "shopping", "find_item", _facts(sensitivity), now=NOW
        )
        assert check.allowed is False
        assert check.rule_id is None

    def test_locked_down_refuses_even_with_rule(self) -> None:
        vault = make_vault(posture="safe_room", rules=[rule(max_sensitivity="high")])
        assert _allowed(vault, _facts("low")) is False

    def test_locked_down_overrides_auto_low_persona(self) -> None:
        settings = PersonaSettings(auto_release="auto_low")
        assert _allowed(make_vault(posture="safe_room"), _facts("low"), settings) is False

    def test_always_ask_persona_overrides_open_posture(self) -> None:
        settings = PersonaSettings(auto_release="always_ask")
        vault = make_vault(posture="simple_lock", rules=[rule()])
        assert _allowed(vault, _facts("low"), settings) is False

    def test_auto_low_persona_releases_low_under_default_posture(self) -> None:
        settings = PersonaSettings(auto_release="auto_low")
        assert _allowed(make_vault(posture="custom"), _facts("low"), settings) is True

    def test_auto_low_persona_does_not_release_medium(self) -> None:
        settings = PersonaSettings(auto_release="auto_low")
        assert _allowed(make_vault(posture="custom"), _facts("medium"), settings) is False

    def test_no_facts_is_never_auto_allowed(self) -> None:
        vault = make_vault(posture="simple_lock", rules=[rule()])
        check = evaluate_auto_allow(vault, "nordstrom.com", "shopping", "find_item", [], now=NOW)
        assert check.allowed is False

    def test_default_posture_needs_a_rule_for_low_facts(self) -> None:
        assert _allowed(make_vault(posture="custom"), _facts("low")) is False
        assert _allowed(make_vault(posture="custom", rules=[rule()]), _facts("low")) is True


# ---------------------------------------------------------------------------
# TestStandingRules
# ---------------------------------------------------------------------------


class TestStandingRules:
    def test_covering_rule_allows_medium_under_simple_lock(self) -> None:
        vault = make_vault(posture="simple_lock", rules=[rule()])
        check = evaluate_auto_allow(
            vault, "nordstrom.com", "shopping", "find_item", _facts("medium"), now=NOW
        )
        assert check.allowed is True
        assert check.rule_id == "rule_nord"

    @pytest.mark.parametrize(
        ("recipient", "category", "action"),
        [
            ("zara.com", "shopping", "find_item"),
            ("nordstrom.com", "travel", "find_item"),
            ("nordstrom.com", "shopping", "checkout"),
        ],
    )
    def test_rule_requires_exact_recipient_and_purpose(
        self, recipient: str, category: str, action: str
    ) -> None:
        vault = make_vault(posture="simple_lock", rules=[rule()])
        assert _allowed(vault, _facts("medium"), None, recipient, category, action) is False

    def test_rule_ceiling_below_fact_sensitivity_does_not_cover(self) -> None:
        vault = make_vault(posture="simple_lock", rules=[rule(max_sensitivity="medium")])
        assert _allowed(vault, _facts("high")) is False

    def test_allowed_fields_must_cover_every_fact(self) -> None:
        facts = [
            Fact.model_validate(fact("apparel.pants.waist", "32", "medium")),
            Fact.model_validate(fact("budget.monthly_clothing", "200", "medium")),
        ]
        vault = make_vault(posture="simple_lock", rules=[rule(allowed_fields=["apparel.*"])])
        assert _allowed(vault, facts) is False

    def test_empty_allowed_fields_covers_any_fact(self) -> None:
        vault = make_vault(posture="simple_lock", rules=[rule(allowed_fields=[])])
        assert _allowed(vault, _facts("medium")) is True

    @pytest.mark.parametrize("expires_at", [PAST, "", "not-a-date", "2026-10-18T12:00:00.000Z"])
    def test_expired_or_unparseable_rule_is_inactive(self, expires_at: str) -> None:
        vault = make_vault(posture="simple_lock", rules=[rule(expires_at=expires_at)])
        assert _allowed(vault, _facts("medium")) is False

    def test_disabled_rule_is_inactive(self) -> None:
        vault = make_vault(posture="simple_lock", rules=[rule(enabled=False)])
        assert _allowed(vault, _facts("medium")) is False

    def test_later_rule_is_found_after_inactive_one(self) -> None:
        vault = make_vault(
            posture="custom",
            rules=[rule(rule_id="rule_old", expires_at=PAST), rule(rule_id="rule_new")],
        )
        check = evaluate_auto_allow(
            vault, "nordstrom.com", "shopping", "find_item", _facts("low"), now=NOW
        )
        assert check.rule_id == "rule_new"

    def test_list_active_rules_skips_expired_and_disabled(self) -> None:
        vault = make_vault(
            rules=[
                rule(rule_id="rule_a"),
                rule(rule_id="rule_b", expires_at=PAST),
                rule(rule_id="rule_c", enabled=False),
            ]
        )
        assert [r.id for r in list_active_rules(vault, now=NOW)] == ["rule_a"]


# ---------------------------------------------------------------------------
# TestRuleManagement
# ---------------------------------------------------------------------------


class TestRuleManagement:
    def test_create_rule_appends_rule_and_audit_event(self) -> None:
        vault = make_vault()
        updated, outcome = create_rule(
            vault, "nordstrom.com", "shopping", "find_item", ["apparel.*"], now=NOW
        )
        assert isinstance(outcome, RuleCreated)
        assert outcome.rule.id.startswith("rule_")
        assert outcome.rule.max_sensitivity == "medium"
        assert parse_instant(outcome.rule.expires_at) == NOW + timedelta(days=180)
        assert updated.rules == [outcome.rule]

        assert len(updated.audit_log) == 1
        event = updated.audit_log[0]
        assert event.decision == "allow"
        assert event.request_id == outcome.rule.id
        assert event.purpose == "rule_created/shopping/find_item"
        assert event.fields_released == ["apparel.*"]

    def test_create_rule_does_not_mutate_input_snapshot(self) -> None:
        vault = make_vault()
        create_rule(vault, "nordstrom.com", "shopping", "find_item", [], now=NOW)
        assert vault.rules == []
        assert vault.audit_log == []

    def test_create_rule_reports_existing_enabled_rule(self) -> None:
        vault = make_vault(rules=[rule()])
        updated, outcome = create_rule(
            vault, "nordstrom.com", "shopping", "find_item", ["apparel.*"], now=NOW
        )
        assert isinstance(outcome, RuleExists)
        assert outcome.rule_id == "rule_nord"
        assert updated is vault

    def test_disabled_rule_does_not_block_a_new_one(self) -> None:
        vault = make_vault(rules=[rule(enabled=False)])
        updated, outcome = create_rule(
            vault, "nordstrom.com", "shopping", "find_item", ["apparel.*"], now=NOW
        )
        assert outcome.created is True
        assert len(updated.rules) == 2

    def test_create_rule_honours_duration(self) -> None:
        _, outcome = create_rule(
            make_vault(), "nordstrom.com", "shopping", "find_item", [], duration_days=7, now=NOW
        )
        assert parse_instant(outcome.rule.expires_at) == NOW + timedelta(days=7)

    @pytest.mark.parametrize(
        ("recipient", "category", "action", "days"),
        [
            ("", "shopping", "find_item", 30),
            ("nordstrom.com", "", "find_item", 30),
            ("nordstrom.com", "shopping", "", 30),
            ("nordstrom.com", "shopping", "find_item", 0),
        ],
    )
    def test_create_rule_rejects_invalid_arguments(
        self, recipient: str, category: str, action: str, days: int
    ) -> None:
        with pytest.raises(ValueError):
            create_rule(make_vault(), recipient, category, action, [], duration_days=days, now=NOW)

    def test_disable_rule(self) -> None:
        vault = disable_rule(make_vault(rules=[rule()]), "rule_nord")
        assert vault.rules[0].enabled is False

    def test_disable_unknown_rule_raises(self) -> None:
        with pytest.raises(RuleNotFoundError) as exc_info:
            disable_rule(make_vault(), "rule_missing")
        assert exc_info.value.code == "RULE_NOT_FOUND"
