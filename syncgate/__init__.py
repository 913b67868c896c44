"""
syncgate - Awaitable coordination layer over an event-driven remote sync client.

syncgate wraps a client that exposes shared named records, shared named lists
and RPC through callbacks and events, and turns it into awaitable operations
with a few guarantees the raw client does not give you.

Key Features:
    - RPC calls that retry while no provider is registered, up to a deadline
    - Audited RPC providers that can be removed one by one or all at once
    - Existence-checked record acquire/create/write/delete
    - Coalescing of concurrent writes to the same record
    - List mutations with a timed auto-discard that yields to remote deletes

Basic Usage:
    >>> import asyncio
    >>> import syncgate
    >>> async def main(client_factory):
    ...     config = syncgate.SyncGateConfig(host="wss://sync.example.com", retry_rpc_timeout=5000)
    ...     async with syncgate.SyncGate(config, client_factory) as gate:
    ...         await gate.record.create_and_set_data("profile/42", {"name": "Ada"})
    ...         await gate.list.add_entry("profiles", "profile/42")
    ...         total = await gate.rpc.make("count-profiles")
"""

from ._internal.list_gate import ListHandle
from ._internal.record_gate import AcquireResult, RecordHandle
from ._internal.remote_handle import HandleState
from ._internal.rpc_invoker import RpcCall
from ._internal.rpc_provider import AuditRecord
from .client import RpcGate, SyncGate
from .config import SyncGateConfig, load_config
from .errors import (
    NO_RPC_PROVIDER,
    AlreadyExistsError,
    InvalidArgumentError,
    NoProviderError,
    NotFoundError,
    RemoteError,
    SyncGateError,
)

__version__ = "0.1.0"

__all__ = [
    "SyncGate",
    "SyncGateConfig",
    "RpcGate",
    "load_config",
    "RecordHandle",
    "ListHandle",
    "AcquireResult",
    "HandleState",
    "RpcCall",
    "AuditRecord",
    "NO_RPC_PROVIDER",
    "SyncGateError",
    "NotFoundError",
    "AlreadyExistsError",
    "NoProviderError",
    "InvalidArgumentError",
    "RemoteError",
]
