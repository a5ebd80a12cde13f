# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

import uuid

from personafy_engine.types import IdPrefix


def new_id(prefix: str) -> str:
    """Mint an opaque id: ``prefix`` followed by eight random hex characters."""
    return prefix + uuid.uuid4().hex[:8]


def new_request_id() -> str:
    return new_id(IdPrefix.REQUEST)


def new_audit_id() -> str:
    return new_id(IdPrefix.AUDIT)
