"""
Record operations with existence checks and write coalescing.

This module contains:
- RecordHandle (a ready record with acknowledged writes)
- AcquireResult
- RecordGate (has/acquire/create/get_or_create/set_data/delete/snapshot)
"""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
from collections.abc import Mapping
from typing import Any, NamedTuple

from ..errors import AlreadyExistsError, InvalidArgumentError, NotFoundError, RemoteError
from ..interfaces import RawRecord, RemoteClient
from .remote_handle import HandleState, RemoteHandle, maybe_await

logger = logging.getLogger(__name__)


class RecordHandle(RemoteHandle[RawRecord]):
    """A subscribed record whose writes can wait for remote acknowledgement."""

    kind = "record"

    def get(self, path: str | None = None) -> Any:
        """Return the locally known record data, or the value at *path*."""
        return self.raw.get(path)

    async def set_with_ack(self, *args: Any, discard: bool = False) -> RecordHandle:
        """Write and wait until the remote acknowledged it.

        Call as ``set_with_ack(value)`` to replace the whole record or
        ``set_with_ack(path, value)`` to set one path. With ``discard=True``
        the handle is released once the write is acknowledged.
        """
        if len(args) not in (1, 2):
            raise InvalidArgumentError(
                f"set_with_ack takes (value) or (path, value), got {len(args)} arguments"
            )
        if len(args) == 2 and not isinstance(args[0], str):
            raise InvalidArgumentError(f"Record path must be a string, got {args[0]!r}")
        if self.state is not HandleState.READY:
            raise RuntimeError(f"Cannot write to {self!r}: record is not ready")

        ack: asyncio.Future[None] = self._loop.create_future()

        def settle(error: Any = None) -> None:
            if ack.done():
                return
            if error:
                ack.set_exception(RemoteError(error, self.name))
            else:
                ack.set_result(None)

        self.raw.set_with_ack(*args, callback=lambda error=None: self._call_in_loop(settle, error))
        await ack

        if discard:
            self.discard()
        return self


class AcquireResult(NamedTuple):
    created: bool
    handle: RecordHandle


class RecordGate:
    """Existence-checked access to named remote records.

    Concurrent ``set_data``/``create_and_set_data`` calls on the same name are
    coalesced: when the first of them completes, every call that was in flight
    for that name settles with the same outcome.
    """

    def __init__(self, client: RemoteClient | None, options: Mapping[str, Any] | None = None) -> None:
        self.client = client
        self.options = dict(options or {})
        self.lock = threading.Lock()
        self.pending_writes: dict[str, set[asyncio.Future[Any]]] = {}
        self._writes: set[asyncio.Future[None]] = set()

    async def has(self, name: str) -> bool:
        """Ask the remote whether *name* exists. Never cached."""
        return bool(await maybe_await(self._require_client().record.has(name)))

    async def acquire(self, name: str, must_exist: bool = True) -> RecordHandle:
        """Return a ready handle to the record *name*.

        Raises:
            NotFoundError: If *must_exist* is set, existence checks are enabled
                and the record does not exist.
            RemoteError: If the remote failed while fetching the record.
        """
        if must_exist and not self.options.get("disable_has_check"):
            if not await self.has(name):
                raise NotFoundError(name)
        return await self._fetch(name)

    async def create(self, name: str) -> RecordHandle:
        """Return a ready handle to the new record *name*.

        Raises:
            AlreadyExistsError: If a record by that name already exists.
        """
        if await self.has(name):
            raise AlreadyExistsError(name)
        return await self._fetch(name)

    async def get_or_create(self, name: str) -> AcquireResult:
        """Return a ready handle and whether the record was absent when checked.

        The check and the fetch are two remote round trips, so ``created`` is
        best effort.
        """
        existed = await self.has(name)
        handle = await self._fetch(name)
        return AcquireResult(created=not existed, handle=handle)

    async def set_data(self, *args: Any) -> None:
        """Write to an existing record without subscribing to it.

        ``set_data(name, value)`` replaces the whole record,
        ``set_data(name, path, value)`` sets one path.

        Raises:
            InvalidArgumentError: On any other argument shape.
            NotFoundError: If the record does not exist.
        """
        await self._set_data(args, create=False)

    async def create_and_set_data(self, *args: Any) -> None:
        """Like :meth:`set_data`, but the record must not exist yet.

        Raises:
            InvalidArgumentError: On a malformed argument shape.
            AlreadyExistsError: If the record already exists.
        """
        await self._set_data(args, create=True)

    async def delete(self, name: str) -> None:
        """Delete the record *name*.

        Raises:
            RemoteError: If the remote refused the delete.
        """
        handle = await self.acquire(name)
        try:
            await handle.delete()
        except BaseException:
            handle.discard()
            raise

    async def snapshot(self, name: str) -> Any:
        """Read the current data of *name* without subscribing.

        Raises:
            RemoteError: Wrapping whatever the remote reported, with *name* attached.
        """
        client = self._require_client()
        try:
            return await maybe_await(client.record.snapshot(name))
        except RemoteError:
            raise
        except Exception as exc:
            raise RemoteError(exc, name) from exc

    async def flush(self) -> None:
        """Wait until every write already issued has been acknowledged or failed."""
        if self._writes:
            await asyncio.gather(*list(self._writes), return_exceptions=True)

    async def _fetch(self, name: str) -> RecordHandle:
        raw = self._require_client().record.get_record(name)
        handle = RecordHandle(raw, name)
        handle.attach()
        return await handle.wait_ready()

    async def _set_data(self, args: tuple[Any, ...], create: bool) -> None:
        operation = "create_and_set_data" if create else "set_data"
        if len(args) not in (2, 3):
            raise InvalidArgumentError(f"Incorrect arguments given to {operation}: {args!r}")
        name = args[0]
        if not isinstance(name, str):
            raise InvalidArgumentError(f"Record name must be a string, got {name!r}")
        if len(args) == 3 and not isinstance(args[1], str):
            raise InvalidArgumentError(f"Record path must be a string, got {args[1]!r}")

        waiter: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        with self.lock:
            waiters = self.pending_writes.setdefault(name, set())
            waiters.add(waiter)
        if len(waiters) > 1:
            logger.debug(f"Coalescing {operation} on '{name}' with {len(waiters) - 1} in-flight write(s)")

        # The write runs on its own so the caller settles with the first
        # write of its set to finish, not necessarily its own.
        write = asyncio.ensure_future(self._write(args, create))
        self._writes.add(write)
        write.add_done_callback(self._writes.discard)
        write.add_done_callback(functools.partial(self._settle_writes, name, waiters))
        try:
            await waiter
        except asyncio.CancelledError:
            self._abandon_write(name, waiters, waiter)
            raise

    async def _write(self, args: tuple[Any, ...], create: bool) -> None:
        name = args[0]
        exists = await self.has(name)
        if create and exists:
            raise AlreadyExistsError(name, f"Trying to create and set data on existing record: {name}")
        if not create and not exists:
            raise NotFoundError(name, f"Trying to set data on nonexistent record: {name}")
        try:
            await maybe_await(self._require_client().record.set_data(*args))
        except Exception as exc:
            raise RemoteError(exc, name) from exc

    def _settle_writes(self, name: str, waiters: set[asyncio.Future[Any]], write: asyncio.Future[None]) -> None:
        # Only the set this write joined; a newer set belongs to later writers.
        with self.lock:
            if self.pending_writes.get(name) is waiters:
                del self.pending_writes[name]
            settled = list(waiters)
            waiters.clear()

        error = None if write.cancelled() else write.exception()
        for waiter in settled:
            if waiter.done():
                continue
            if write.cancelled():
                waiter.cancel()
            elif error is not None:
                waiter.set_exception(error)
            else:
                waiter.set_result(None)

    def _abandon_write(self, name: str, waiters: set[asyncio.Future[Any]], waiter: asyncio.Future[Any]) -> None:
        with self.lock:
            waiters.discard(waiter)
            if not waiters and self.pending_writes.get(name) is waiters:
                del self.pending_writes[name]
        waiter.cancel()

    def _require_client(self) -> RemoteClient:
        if self.client is None:
            raise RuntimeError("Record client not initialized. Call SyncGate.init_client() first.")
        return self.client
