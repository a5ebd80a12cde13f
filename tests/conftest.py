# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Shared fixtures for personafy-engine tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from builders import vault_data
from personafy_engine.config import EngineConfig
from personafy_engine.engine import PolicyEngine


@pytest.fixture
def engine() -> PolicyEngine:
    """A PolicyEngine with default config."""
    return PolicyEngine(EngineConfig())


@pytest.fixture
def write_vault(tmp_path: Path) -> Callable[..., Path]:
    """Write a vault document to a temporary file and return its path."""

    def _write(**kwargs: Any) -> Path:
        path = tmp_path / "vault-data.json"
        path.write_text(json.dumps(vault_data(**kwargs)), encoding="utf-8")
        return path

    return _write
