# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Field matching and persona lookup.

Pure functions over read-only snapshots. No state mutation.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from personafy_engine.models import Fact, Persona, Vault
from personafy_engine.taxonomy import (
    is_wildcard,
    normalize_fact_key,
    normalize_field_pattern,
    wildcard_prefix,
)

# Purpose categories an agent may send, mapped to the persona ids/categories
# that serve them.
CATEGORY_ALIASES: dict[str, list[str]] = {
    "shopping": ["shopping"],
    "travel": ["travel"],
    "food": ["food-dining", "food & dining"],
    "dining": ["food-dining", "food & dining"],
    "food-dining": ["food-dining", "food & dining"],
    "food & dining": ["food-dining", "food & dining"],
    "fitness": ["fitness"],
    "gifts": ["gift-giving", "gift giving"],
    "gift-giving": ["gift-giving", "gift giving"],
    "gift giving": ["gift-giving", "gift giving"],
}


def field_matches_pattern(fact_key: str, pattern: str) -> bool:
    """
    Check whether a fact key is covered by a request or rule pattern.

    A pattern ending in ``.*`` covers its prefix and every dot-separated
    descendant of it. Any other pattern requires an exact match. Both sides
    are normalized first. Matching is never substring based: ``app.*`` does
    not cover ``apparel.pants.waist``.

    Args:
        fact_key: The concrete fact key.
        pattern: An exact key or a ``prefix.*`` wildcard.

    Returns:
        True if the pattern covers the key.
    """
    key = normalize_fact_key(fact_key)
    normalized = normalize_field_pattern(pattern)
    if is_wildcard(normalized):
        prefix = wildcard_prefix(normalized)
        return key == prefix or key.startswith(prefix + ".")
    return key == normalized


def covered_by_any(fact_key: str, patterns: Iterable[str]) -> bool:
    """Return True if at least one of ``patterns`` covers ``fact_key``."""
    return any(field_matches_pattern(fact_key, pattern) for pattern in patterns)


def match_facts(persona: Persona, fields_requested: Sequence[str] | None) -> list[Fact]:
    """
    Select the persona's facts covered by the requested field patterns.

    An empty or missing field list yields no facts: callers must name the
    fields they need. Returned facts carry canonical keys and are
    deduplicated by ``(key, lowercased value)`` because distinct legacy
    aliases can collapse onto the same canonical fact.

    Args:
        persona: The persona whose facts are searched.
        fields_requested: Exact keys or ``prefix.*`` wildcards.

    Returns:
        The matched facts, in persona order.
    """
    if not fields_requested:
        return []

    patterns = [normalize_field_pattern(field) for field in fields_requested]

    seen: set[tuple[str, str]] = set()
    matched: list[Fact] = []
    for fact in persona.facts:
        canonical = fact.with_key(normalize_fact_key(fact.key))
        if not covered_by_any(canonical.key, patterns):
            continue
        identity = (canonical.key, canonical.value.lower())
        if identity in seen:
            continue
        seen.add(identity)
        matched.append(canonical)
    return matched


def is_persona_visible(persona: Persona) -> bool:
    """A persona is visible unless its settings explicitly hide it."""
    return persona.persona_settings is None or persona.persona_settings.visible


def _matches_hint(persona: Persona, hint: str) -> bool:
    hint_lower = hint.lower()
    return (
        persona.id == hint
        or persona.id.lower() == hint_lower
        or hint_lower in persona.name.lower()
        or hint_lower in persona.category.lower()
    )


def _matches_category(persona: Persona, category: str) -> bool:
    persona_category = persona.category.lower()
    for alias in CATEGORY_ALIASES.get(category, []):
        if persona.id == alias or persona_category == alias:
            return True
    return persona_category == category or persona.id.lower() == category


def _find_persona(
    vault: Vault,
    persona_hint: str | None,
    purpose_category: str | None,
    visible: bool,
) -> Persona | None:
    hint = (persona_hint or "").strip()
    category = (purpose_category or "").strip().lower()
    candidates = [p for p in vault.personas if is_persona_visible(p) is visible]

    if hint:
        return next((p for p in candidates if _matches_hint(p, hint)), None)
    if category:
        return next((p for p in candidates if _matches_category(p, category)), None)
    return None


def find_matching_persona(
    vault: Vault,
    persona_hint: str | None = None,
    purpose_category: str | None = None,
) -> Persona | None:
    """
    Find the visible persona serving a request.

    A non-blank hint takes precedence and matches the persona id, or a
    case-insensitive substring of its name or category. Without a hint the
    purpose category is resolved through :data:`CATEGORY_ALIASES`. Hidden
    personas are never returned.
    """
    return _find_persona(vault, persona_hint, purpose_category, visible=True)


def find_hidden_persona(
    vault: Vault,
    persona_hint: str | None = None,
    purpose_category: str | None = None,
) -> Persona | None:
    """Same lookup as :func:`find_matching_persona`, restricted to hidden personas."""
    return _find_persona(vault, persona_hint, purpose_category, visible=False)
