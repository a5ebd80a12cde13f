# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from personafy_engine.config import ServiceConfig
from personafy_engine.decisions import DecisionResult, ErrorDecision
from personafy_engine.engine import PolicyEngine
from personafy_engine.errors import PersonafyError
from personafy_engine.models import PendingApproval
from personafy_engine.requests import parse_request
from personafy_engine.rules import RuleCreated, RuleExists
from personafy_engine.status import VaultStatus
from personafy_engine.store import VaultStore
from personafy_engine.types import SensitivityName

logger = logging.getLogger("personafy.engine.service")


class PolicyService:
    """
    Composes :class:`PolicyEngine` and :class:`VaultStore` into the entry
    point used by agent tools.

    Each call loads the vault, runs one engine cycle and saves the next
    snapshot, all under the per-vault lock, so concurrent requests against
    one vault never lose an approval or an audit event.

    Use :meth:`handle` in async contexts, or :meth:`handle_sync` when a
    synchronous call site cannot await.

    Example::

        service = PolicyService(ServiceConfig(store=StoreConfig(vault_path=path)))
        result = await service.handle({
            "purpose": {"category": "shopping", "action": "find_item"},
            "recipient": {"type": "domain", "value": "nordstrom.com"},
            "fields_requested": ["apparel.pants.*"],
        })
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        engine: PolicyEngine | None = None,
        store: VaultStore | None = None,
    ) -> None:
        cfg = config or ServiceConfig()
        self._config = cfg
        self.engine = engine or PolicyEngine(cfg.engine)
        self.store = store or VaultStore(cfg.store)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def handle(
        self,
        payload: Mapping[str, Any],
        now: datetime | None = None,
    ) -> DecisionResult:
        """
        Validate a tool payload and run one locked decision cycle.

        Never raises :class:`~personafy_engine.errors.PersonafyError`; any
        such failure is returned as an :class:`ErrorDecision`.

        Args:
            payload: The raw agent payload.
            now: Decision time; defaults to the current UTC time.

        Returns:
            The typed decision.
        """
        try:
            request = parse_request(payload)
            async with self.store.transaction() as txn:
                outcome = self.engine.decide(txn.vault, request, now)
                txn.vault = outcome.vault
            return outcome.result
        except PersonafyError as exc:
            logger.warning("request_failed", extra={"code": exc.code})
            return ErrorDecision(error=exc.message, code=exc.code)

    def handle_sync(
        self,
        payload: Mapping[str, Any],
        now: datetime | None = None,
    ) -> DecisionResult:
        """
        Synchronous wrapper for :meth:`handle`.

        Uses :func:`asyncio.run` when no event loop is running; falls back to
        a worker thread with its own loop when one is already running.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None and loop.is_running():
            import concurrent.futures

            with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
                future = executor.submit(asyncio.run, self.handle(payload, now))
                return future.result()

        return asyncio.run(self.handle(payload, now))

    async def create_rule(
        self,
        recipient_domain: str,
        purpose_category: str,
        purpose_action: str,
        allowed_fields: Sequence[str],
        max_sensitivity: SensitivityName | None = None,
        duration_days: int | None = None,
        now: datetime | None = None,
    ) -> RuleCreated | RuleExists:
        """
        Persist a standing rule, typically after the user accepts a rule offer.

        Raises:
            VaultNotFoundError: If the vault does not exist.
            ValueError: If the rule arguments are invalid.
        """
        async with self.store.transaction() as txn:
            txn.vault, outcome = self.engine.create_rule(
                txn.vault,
                recipient_domain=recipient_domain,
                purpose_category=purpose_category,
                purpose_action=purpose_action,
                allowed_fields=allowed_fields,
                max_sensitivity=max_sensitivity,
                duration_days=duration_days,
                now=now,
            )
        return outcome

    async def status(self, now: datetime | None = None) -> VaultStatus:
        """Read-only summary; takes no lock."""
        return self.engine.status(await self.store.load(), now)

    async def pending(self, now: datetime | None = None) -> list[PendingApproval]:
        """Read-only list of live challenges; takes no lock."""
        return self.engine.pending(await self.store.load(), now)
