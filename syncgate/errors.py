"""Error taxonomy for syncgate.

The remote client reports a missing RPC provider with a bare sentinel string
rather than a structured error. ``is_no_provider`` is the one place that knows
how to recognise it; both the invoker and the provider use it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ._internal.rpc_invoker import RpcCall

NO_RPC_PROVIDER = "NO_RPC_PROVIDER"


class SyncGateError(Exception):
    """Base class for every error raised by syncgate itself."""


class NotFoundError(SyncGateError, LookupError):
    """A record or list that must exist is absent on the remote."""

    def __init__(self, name: str, message: str | None = None) -> None:
        self.name = name
        super().__init__(message or f"No record by that name: {name}")


class AlreadyExistsError(SyncGateError):
    """A create was attempted on a name that already exists."""

    def __init__(self, name: str, message: str | None = None) -> None:
        self.name = name
        super().__init__(message or f"Record already exists: {name}")


class NoProviderError(SyncGateError):
    """The RPC retry deadline ran out while no provider was registered."""

    def __init__(self, call: RpcCall) -> None:
        self.call = call
        super().__init__(
            f"{NO_RPC_PROVIDER}: no provider for '{call.name}' after "
            f"{call.attempts} attempt(s) in {call.elapsed_ms():.0f}ms"
        )


class InvalidArgumentError(SyncGateError, ValueError):
    """An operation was called with a malformed argument shape."""


class RemoteError(SyncGateError):
    """Opaque error from the remote client, annotated with the name involved.

    Attributes:
        error: The original error value delivered by the remote client.
        name: The record or list name the operation targeted.
    """

    def __init__(self, error: Any, name: str) -> None:
        self.error = error
        self.name = name
        super().__init__(f"{error} (name: {name!r})")


def is_no_provider(error: Any) -> bool:
    """Return True if *error* is the transient "no provider" condition."""
    if isinstance(error, NoProviderError):
        return True
    if isinstance(error, str):
        return error == NO_RPC_PROVIDER
    if getattr(error, "code", None) == NO_RPC_PROVIDER:
        return True
    if isinstance(error, BaseException) and len(error.args) == 1:
        return error.args[0] == NO_RPC_PROVIDER
    return False
