# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Posture policy.

A posture is the vault-wide default stance on auto-release:

* ``simple_lock`` (open-ish): low-sensitivity facts release without asking.
* ``alarm_system`` (balanced): low-sensitivity facts release without asking;
  medium and high always require approval, and standing rules cannot lift
  that ceiling.
* ``safe_room`` (locked-down): everything requires approval. Nothing,
  including standing rules, loosens it.

Any other posture string behaves as the default posture: no posture-level
auto-release and no ceiling, so only standing rules can auto-release.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from personafy_engine.types import (
    POSTURE_ALIASES,
    SENSITIVITY_RANK,
    Posture,
    Sensitivity,
    sensitivity_rank,
)

KNOWN_POSTURES = frozenset(
    {Posture.SIMPLE_LOCK, Posture.ALARM_SYSTEM, Posture.SAFE_ROOM}
)


class _HasSensitivity(Protocol):
    sensitivity: str


def canonical_posture(value: str) -> str:
    """
    Normalize a posture name to its stored form.

    ``simple-lock`` and ``Simple_Lock`` both become ``simple_lock``, and the
    descriptive aliases (``open-ish``, ``balanced``, ``locked-down``) map to
    the stored names. Unrecognised postures are returned normalized but
    otherwise untouched.
    """
    normalized = value.strip().lower().replace("-", "_")
    return POSTURE_ALIASES.get(normalized, normalized)


def is_locked(posture: str) -> bool:
    """True when the posture forbids every auto-release."""
    return canonical_posture(posture) == Posture.SAFE_ROOM


def has_sensitivity_ceiling(posture: str) -> bool:
    """True when medium and high facts always need approval, rules notwithstanding."""
    return canonical_posture(posture) == Posture.ALARM_SYSTEM


def max_sensitivity_rank(facts: Iterable[_HasSensitivity]) -> int:
    """
    Return the highest sensitivity rank among ``facts``.

    Ranks follow ``low (1) < medium (2) < high (3)``. An empty input ranks 0.
    """
    return max((sensitivity_rank(fact.sensitivity) for fact in facts), default=0)


def max_sensitivity_name(facts: Iterable[_HasSensitivity]) -> str:
    """Return the label of the most sensitive fact, ``low`` for an empty input."""
    rank = max_sensitivity_rank(facts)
    for name, value in SENSITIVITY_RANK.items():
        if value == rank:
            return name
    return Sensitivity.LOW


def posture_allows(posture: str, max_rank: int) -> bool:
    """
    The posture's default auto-release answer for a set of facts.

    Args:
        posture: The vault posture.
        max_rank: Output of :func:`max_sensitivity_rank` for the matched facts.

    Returns:
        True if the posture alone releases facts of this sensitivity.
    """
    canonical = canonical_posture(posture)
    if canonical == Posture.SAFE_ROOM:
        return False
    if canonical in (Posture.SIMPLE_LOCK, Posture.ALARM_SYSTEM):
        return 0 < max_rank <= SENSITIVITY_RANK[Sensitivity.LOW]
    return False
