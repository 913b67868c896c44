"""Protocols the remote sync client must satisfy.

syncgate never talks to the network itself. It drives a client object that
exposes named records, named lists and RPC, in the event-emitter style of the
remote API. These interfaces define that contract structurally, so any client
(or test double) can be plugged in without inheriting from a base class.

Unless stated otherwise, a method may return either a plain value or an
awaitable; syncgate awaits whenever it gets one.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

AckCallback = Callable[[Any], None]
"""Called with ``None`` on success or the error value on failure."""


@runtime_checkable
class RawRemoteObject(Protocol):
    """Event-emitting handle to a remote record or list."""

    name: str

    def when_ready(self, callback: Callable[[Any], None]) -> None:
        """Invoke *callback* once the initial state has been delivered."""

    def on(self, event: str, callback: Callable[..., None]) -> None:
        """Subscribe to *event* (``"error"``, ``"delete"``)."""

    def off(self, event: str, callback: Callable[..., None]) -> None:
        """Remove a subscription added with :meth:`on`."""

    def discard(self) -> None:
        """Release the local subscription; the remote object is untouched."""

    def delete(self) -> Awaitable[None] | None:
        """Delete the remote object."""


@runtime_checkable
class RawRecord(RawRemoteObject, Protocol):
    """Remote record handle."""

    def get(self, path: str | None = None) -> Any:
        """Return the locally known data, or the value at *path*."""

    def set_with_ack(self, *args: Any, callback: AckCallback) -> None:
        """Write ``(value)`` or ``(path, value)`` and report the remote acknowledgement."""


@runtime_checkable
class RawList(RawRemoteObject, Protocol):
    """Remote ordered list handle."""

    def get_entries(self) -> list[str]:
        """Return the locally known entries."""

    def add_entry(self, entry: str, index: int | None = None) -> None:
        """Insert *entry* at *index*, or append it."""

    def remove_entry(self, entry: str, index: int | None = None) -> None:
        """Remove *entry*, optionally only at *index*."""


@runtime_checkable
class RecordClient(Protocol):
    """The ``client.record`` namespace."""

    def has(self, name: str) -> Awaitable[bool] | bool:
        """Ask the remote whether a record or list named *name* exists."""

    def snapshot(self, name: str) -> Awaitable[Any] | Any:
        """Read the current data of *name* without subscribing."""

    def set_data(self, name: str, *args: Any) -> Awaitable[None] | None:
        """Write ``(value)`` or ``(path, value)`` to *name* and wait for acknowledgement."""

    def get_record(self, name: str) -> RawRecord:
        """Subscribe to the record named *name*."""

    def get_list(self, name: str) -> RawList:
        """Subscribe to the list named *name*."""


@runtime_checkable
class RpcResponse(Protocol):
    """Response channel handed to an RPC provider callback."""

    def send(self, result: Any = None) -> None:
        """Answer the call successfully."""

    def error(self, error: Any) -> None:
        """Answer the call with an error."""


RpcCallback = Callable[[Any, RpcResponse], Awaitable[None] | None]


@runtime_checkable
class RpcClient(Protocol):
    """The ``client.rpc`` namespace.

    ``make`` fails with an error recognised by :func:`syncgate.errors.is_no_provider`
    when nobody provides *name* right now.
    """

    def make(self, name: str, data: Any) -> Awaitable[Any] | Any:
        """Call the remote procedure *name* with *data*."""

    def provide(self, name: str, callback: RpcCallback) -> None:
        """Register *callback* for inbound calls to *name*."""

    def unprovide(self, name: str) -> None:
        """Remove the registration for *name*."""


@runtime_checkable
class RemoteClient(Protocol):
    """A connected remote sync client."""

    record: RecordClient
    rpc: RpcClient

    def login(self, auth_params: dict[str, Any] | None) -> Awaitable[Any] | Any:
        """Authenticate; the result is returned from :meth:`SyncGate.login`."""

    def close(self) -> None:
        """Log out and close the connection."""

    def on(self, event: str, callback: Callable[..., None]) -> None:
        """Subscribe to client level events such as ``"error"``."""


ClientFactory = Callable[[str | None, dict[str, Any] | None], RemoteClient]
"""Builds a :class:`RemoteClient` from ``(host, client_options)``."""
