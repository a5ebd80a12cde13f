# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
JSON file persistence for vault snapshots.

The engine only computes snapshots; this adapter owns the read-modify-write
cycle. Saves write a sibling temporary file and atomically rename it over
the vault, so readers never observe a half-written file. Mutations run
inside :meth:`VaultStore.transaction`, which serialises them per vault
path: two stores pointing at the same file share one lock.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
import uuid
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from personafy_engine.config import StoreConfig
from personafy_engine.errors import ConfigurationError, VaultFormatError, VaultNotFoundError
from personafy_engine.models import Vault

logger = logging.getLogger("personafy.engine.store")

_LOCKS: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[str, asyncio.Lock]] = (
    weakref.WeakKeyDictionary()
)
_PROCESS_LOCKS: dict[str, threading.Lock] = {}
_LOCKS_GUARD = threading.Lock()


def _vault_lock(identity: str) -> asyncio.Lock:
    """Return the lock shared by every task of the running loop on one vault path.

    Locks are bound to an event loop, so the registry is kept per running loop.
    """
    loop = asyncio.get_running_loop()
    with _LOCKS_GUARD:
        locks = _LOCKS.setdefault(loop, {})
        lock = locks.get(identity)
        if lock is None:
            lock = asyncio.Lock()
            locks[identity] = lock
        return lock


def _process_lock(identity: str) -> threading.Lock:
    """Return the lock shared by every thread and event loop on one vault path."""
    with _LOCKS_GUARD:
        lock = _PROCESS_LOCKS.get(identity)
        if lock is None:
            lock = threading.Lock()
            _PROCESS_LOCKS[identity] = lock
        return lock


async def _acquire_in_thread(lock: threading.Lock) -> None:
    """
    Acquire a thread lock without blocking the event loop.

    If the waiting task is cancelled, the lock is released as soon as the
    worker thread obtains it.
    """
    pending = asyncio.ensure_future(asyncio.to_thread(lock.acquire))
    try:
        await asyncio.shield(pending)
    except asyncio.CancelledError:
        pending.add_done_callback(lambda _: lock.release())
        raise


def _is_encrypted_envelope(data: Any) -> bool:
    return isinstance(data, dict) and data.get("encrypted") is True and "ciphertext" in data


class VaultTransaction:
    """
    Mutable holder for the snapshot inside :meth:`VaultStore.transaction`.

    Assign the next snapshot to :attr:`vault`; it is saved when the block
    exits normally and differs from :attr:`original`.
    """

    __slots__ = ("original", "vault")

    def __init__(self, vault: Vault) -> None:
        self.original = vault
        self.vault = vault

    @property
    def changed(self) -> bool:
        return self.vault != self.original


class VaultStore:
    """
    Loads and saves a JSON vault file.

    Parameters
    ----------
    config:
        Location and formatting of the vault file.
    """

    def __init__(self, config: StoreConfig | None = None) -> None:
        self._config = config or StoreConfig()
        self._path = Path(self._config.vault_path).expanduser()
        if self._path.is_dir():
            raise ConfigurationError(
                f"vault_path must point to a file, not a directory: '{self._path}'."
            )

    @property
    def path(self) -> Path:
        return self._path

    @property
    def identity(self) -> str:
        """The resolved vault path; stores with the same identity share a lock."""
        return str(self._path.resolve())

    async def exists(self) -> bool:
        return await aiofiles.os.path.exists(self._path)

    async def load(self) -> Vault:
        """
        Read the current snapshot.

        Raises:
            VaultNotFoundError: If the file does not exist.
            VaultFormatError: If the file is not a readable vault.
        """
        if not await self.exists():
            raise VaultNotFoundError(str(self._path))

        async with aiofiles.open(self._path, mode="r", encoding="utf-8") as file_handle:
            text = await file_handle.read()

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise VaultFormatError(str(self._path), f"invalid JSON ({exc.msg})") from exc

        if _is_encrypted_envelope(data):
            raise VaultFormatError(
                str(self._path), "vault is encrypted and must be unlocked by its owner"
            )

        try:
            return Vault.model_validate(data)
        except ValidationError as exc:
            raise VaultFormatError(
                str(self._path), f"{exc.error_count()} validation error(s)"
            ) from exc

    async def save(self, vault: Vault) -> None:
        """Atomically replace the vault file with ``vault``."""
        payload = json.dumps(
            vault.to_json_dict(), indent=self._config.indent, ensure_ascii=False
        )
        tmp_path = self._path.with_name(f"{self._path.name}.tmp.{uuid.uuid4().hex[:8]}")
        await aiofiles.os.makedirs(self._path.parent, exist_ok=True)
        try:
            async with aiofiles.open(tmp_path, mode="w", encoding="utf-8") as file_handle:
                await file_handle.write(payload)
            await aiofiles.os.replace(tmp_path, self._path)
        except OSError:
            if await aiofiles.os.path.exists(tmp_path):
                await aiofiles.os.remove(tmp_path)
            raise
        logger.debug(
            "vault_saved",
            extra={
                "path": str(self._path),
                "audit_events": len(vault.audit_log),
                "approval_queue": len(vault.approval_queue),
            },
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[VaultTransaction]:
        """
        Hold the vault lock for one read-modify-write cycle.

        The per-loop asyncio lock queues tasks of one event loop; the process
        lock then excludes other threads, each of which runs its own loop
        (for example through :meth:`PolicyService.handle_sync`).

        Example::

            async with store.transaction() as txn:
                outcome = engine.decide(txn.vault, request)
                txn.vault = outcome.vault
        """
        async with _vault_lock(self.identity):
            process_lock = _process_lock(self.identity)
            await _acquire_in_thread(process_lock)
            try:
                txn = VaultTransaction(await self.load())
                yield txn
                if txn.changed:
                    await self.save(txn.vault)
            finally:
                process_lock.release()
