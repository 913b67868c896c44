"""Awaitable wrapper around event-emitting remote handles.

The remote client reports readiness and errors through callbacks that may fire
on any thread. RemoteHandle folds them into a single readiness future on the
owning event loop and keeps track of every listener it adds, so discarding or
deleting the handle leaves nothing subscribed behind.
"""
from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from ..errors import RemoteError
from ..interfaces import RawRemoteObject

logger = logging.getLogger(__name__)

RawT = TypeVar("RawT", bound=RawRemoteObject)
T = TypeVar("T")


async def maybe_await(value: Any) -> Any:
    """Await *value* if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


class HandleState(enum.Enum):
    UNATTACHED = "unattached"
    ACQUIRING = "acquiring"
    READY = "ready"
    MUTATION_PENDING = "mutation_pending"
    DISCARDED = "discarded"
    DELETED = "deleted"
    FAILED = "failed"


_RELEASED = frozenset({HandleState.DISCARDED, HandleState.DELETED, HandleState.FAILED})


class RemoteHandle(Generic[RawT]):
    """Handle to a remote object with one readiness future and one error channel.

    Attributes:
        raw: The client's handle object.
        name: Name of the remote record or list.
        state: Current :class:`HandleState`.
    """

    kind = "object"

    def __init__(self, raw: RawT, name: str, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self.raw = raw
        self.name = name
        self.state = HandleState.UNATTACHED
        self._loop = loop or asyncio.get_running_loop()
        self._ready: asyncio.Future[Any] = self._loop.create_future()
        self._listeners: list[tuple[str, Callable[..., None]]] = []

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} state={self.state.value}>"

    @property
    def released(self) -> bool:
        return self.state in _RELEASED

    def attach(self) -> None:
        """Subscribe to the readiness and error signals of the raw handle."""
        if self.state is not HandleState.UNATTACHED:
            raise RuntimeError(f"{self!r} is already attached")
        self.state = HandleState.ACQUIRING
        self.listen("error", self._on_error)
        self.raw.when_ready(self._on_ready)

    async def wait_ready(self: T) -> T:
        """Suspend until the remote has delivered the initial state.

        Raises:
            RemoteError: If the remote reported an error before readiness.

        Cancelling the wait abandons the acquisition and releases the raw
        subscription.
        """
        await self._await_ready()  # type: ignore[attr-defined]
        return self

    async def _await_ready(self) -> None:
        try:
            await self._ready
        except asyncio.CancelledError:
            if self.state is HandleState.ACQUIRING:
                logger.debug(f"Acquiring {self.kind} '{self.name}' was cancelled")
                self._release_failed()
            raise

    def listen(self, event: str, callback: Callable[..., None]) -> None:
        """Subscribe *callback* to *event*; removed again on release."""
        self.raw.on(event, callback)
        self._listeners.append((event, callback))

    def discard(self) -> None:
        """Release the local subscription without touching the remote object."""
        if self.released:
            logger.debug(f"Ignoring discard of {self!r}")
            return
        self._detach()
        self.raw.discard()
        self.state = HandleState.DISCARDED

    async def delete(self) -> None:
        """Delete the remote object and release the handle.

        Raises:
            RemoteError: If the remote refused the delete; the handle is left
                as it was.
        """
        if self.released:
            raise RuntimeError(f"Cannot delete {self.kind} '{self.name}': handle is {self.state.value}")
        try:
            await maybe_await(self.raw.delete())
        except Exception as exc:
            raise RemoteError(exc, self.name) from exc
        self._detach()
        self.state = HandleState.DELETED

    def _detach(self) -> None:
        listeners, self._listeners = self._listeners, []
        for event, callback in listeners:
            self.raw.off(event, callback)

    def _call_in_loop(self, func: Callable[..., None], *args: Any) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            func(*args)
        else:
            self._loop.call_soon_threadsafe(func, *args)

    def _on_ready(self, *_args: Any) -> None:
        self._call_in_loop(self._settle_ready, None)

    def _on_error(self, error: Any = None, *_args: Any) -> None:
        self._call_in_loop(self._settle_ready, error if error is not None else "unknown error")

    def _settle_ready(self, error: Any) -> None:
        if self._ready.done():
            if error is not None:
                logger.warning(f"Remote error on {self.kind} '{self.name}' after acquisition: {error}")
            return
        if error is None:
            self.state = HandleState.READY
            self._ready.set_result(self)
            return

        self._release_failed()
        logger.debug(f"Acquiring {self.kind} '{self.name}' failed: {error}")
        self._ready.set_exception(RemoteError(error, self.name))

    def _release_failed(self) -> None:
        self.state = HandleState.FAILED
        self._detach()
        self.raw.discard()
