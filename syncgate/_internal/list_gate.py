"""List operations with timed auto-release of mutated lists.

After ``add_entry``/``remove_entry`` the list handle stays subscribed for a
short while so the mutation can propagate, then it is discarded. If the remote
deletes the list first, the pending discard is cancelled instead.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from typing_extensions import override

from ..config import DEFAULT_LIST_DISCARD_DELAY, resolve_ms
from ..errors import RemoteError
from ..interfaces import RawList, RemoteClient
from .remote_handle import HandleState, RemoteHandle, maybe_await

logger = logging.getLogger(__name__)


def coerce_entries(value: Any) -> list[str]:
    """Return *value* as a list of entries, or ``[]`` if it is not a sequence."""
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return []


class ListHandle(RemoteHandle[RawList]):
    """A subscribed list that can arm a cancellable auto-discard timer."""

    kind = "list"

    def __init__(self, raw: RawList, name: str, loop: asyncio.AbstractEventLoop | None = None) -> None:
        super().__init__(raw, name, loop)
        self._discard_timer: asyncio.TimerHandle | None = None

    @property
    def discard_pending(self) -> bool:
        return self._discard_timer is not None

    def entries(self) -> list[str]:
        return coerce_entries(self.raw.get_entries())

    def add_entry(self, entry: str, index: int | None = None) -> None:
        self.raw.add_entry(entry, index)

    def remove_entry(self, entry: str, index: int | None = None) -> None:
        self.raw.remove_entry(entry, index)

    def arm_auto_discard(self, delay_ms: int) -> None:
        """Discard this handle after *delay_ms* unless the remote deletes the list first."""
        if self.released:
            raise RuntimeError(f"Cannot arm auto-discard on {self!r}")
        if self._discard_timer is not None:
            self._discard_timer.cancel()
        else:
            self.listen("delete", self._on_delete)
        self._discard_timer = self._loop.call_later(delay_ms / 1000, self._on_discard_timer)
        self.state = HandleState.MUTATION_PENDING

    @override
    def discard(self) -> None:
        self._cancel_timer()
        super().discard()

    @override
    async def delete(self) -> None:
        pending = self.discard_pending
        self._cancel_timer()
        try:
            await super().delete()
        except RemoteError:
            # The timer is gone, so a handle that was due for discard is released now.
            if pending:
                self.discard()
            raise

    def _cancel_timer(self) -> None:
        if self._discard_timer is not None:
            self._discard_timer.cancel()
            self._discard_timer = None

    def _on_discard_timer(self) -> None:
        self._discard_timer = None
        logger.debug(f"Auto-discarding list '{self.name}'")
        self.discard()

    def _on_delete(self, *_args: Any) -> None:
        self._call_in_loop(self._observe_delete)

    def _observe_delete(self) -> None:
        if self.released:
            return
        self._cancel_timer()
        # The remote object is gone; discarding it again would be invalid.
        self._detach()
        self.state = HandleState.DISCARDED
        logger.debug(f"List '{self.name}' was deleted remotely, auto-discard cancelled")


class ListGate:
    """Access to named remote lists."""

    def __init__(self, client: RemoteClient | None, options: Mapping[str, Any] | None = None) -> None:
        self.client = client
        self.options = dict(options or {})
        self.discard_delay = resolve_ms(self.options, "list_discard_delay", DEFAULT_LIST_DISCARD_DELAY)

    async def acquire(self, name: str, await_ready: bool = True) -> ListHandle:
        """Return a handle to the list *name*.

        With ``await_ready=False`` the handle is returned while still
        acquiring; ``await handle.wait_ready()`` before reading it.
        """
        raw = self._require_client().record.get_list(name)
        handle = ListHandle(raw, name)
        handle.attach()
        if not await_ready:
            return handle
        return await handle.wait_ready()

    async def entries(self, name: str) -> list[str]:
        """Return the entries of *name*; ``[]`` if the remote value is not a list."""
        client = self._require_client()
        try:
            value = await maybe_await(client.record.snapshot(name))
        except RemoteError:
            raise
        except Exception as exc:
            raise RemoteError(exc, name) from exc
        return coerce_entries(value)

    async def includes(self, name: str, entry: str) -> bool:
        return entry in await self.entries(name)

    async def add_entry(self, name: str, entry: str, index: int | None = None) -> ListHandle:
        handle = await self.acquire(name)
        try:
            handle.add_entry(entry, index)
        except BaseException:
            handle.discard()
            raise
        handle.arm_auto_discard(self.discard_delay)
        return handle

    async def remove_entry(self, name: str, entry: str, index: int | None = None) -> ListHandle:
        handle = await self.acquire(name)
        try:
            handle.remove_entry(entry, index)
        except BaseException:
            handle.discard()
            raise
        handle.arm_auto_discard(self.discard_delay)
        return handle

    async def delete_list(self, name: str) -> None:
        handle = await self.acquire(name)
        try:
            await handle.delete()
        except BaseException:
            handle.discard()
            raise

    def _require_client(self) -> RemoteClient:
        if self.client is None:
            raise RuntimeError("List client not initialized. Call SyncGate.init_client() first.")
        return self.client
