"""SyncGate facade: client bootstrap, cached login and component wiring.

Owns the remote client and hands it to the record, list and RPC components
once :meth:`SyncGate.init_client` has run.
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Optional

from ._internal.list_gate import ListGate
from ._internal.record_gate import RecordGate
from ._internal.remote_handle import maybe_await
from ._internal.rpc_invoker import RpcInvoker
from ._internal.rpc_provider import RpcHandler, RpcProvider
from .config import SyncGateConfig, validate_config
from .interfaces import ClientFactory, RemoteClient

__all__ = ["SyncGate", "RpcGate"]

logger = logging.getLogger(__name__)


class RpcGate:
    """Outgoing and incoming RPC behind one namespace."""

    def __init__(self, client: Optional[RemoteClient], config: Mapping[str, Any]) -> None:
        self.invoker = RpcInvoker(client, config)
        self.provider = RpcProvider(client, config)

    def attach(self, client: RemoteClient) -> None:
        self.invoker.client = client
        self.provider.client = client

    async def make(self, name: str, payload: Any = None) -> Any:
        return await self.invoker.make(name, payload)

    def provide(self, name: str, handler: RpcHandler, audit_options: Any = None) -> None:
        self.provider.provide(name, handler, audit_options)

    def unprovide(self, name: str) -> None:
        self.provider.unprovide(name)

    def unprovide_all(self) -> None:
        self.provider.unprovide_all()


class SyncGate:
    """Entry point tying a remote sync client to the gate components."""

    def __init__(self, config: SyncGateConfig, client_factory: ClientFactory) -> None:
        """Initialize the SyncGate.

        Args:
            config: Gate configuration; validated here.
            client_factory: Builds the remote client from ``(host, client_options)``.
        """
        self.config = validate_config(config)
        self.client_factory = client_factory
        self.client: Optional[RemoteClient] = None
        self._login_task: Optional[asyncio.Future[Any]] = None
        self._has_initialized = False

        self.record = RecordGate(None, self.config)
        self.list = ListGate(None, self.config)
        self.rpc = RpcGate(None, self.config)

    async def __aenter__(self) -> "SyncGate":
        if self.client is None:
            self.init_client()
        await self.login()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def has_initialized(self) -> bool:
        return self._has_initialized

    def init_client(self) -> RemoteClient:
        """Create the remote client and attach it to every component."""
        client = self.client_factory(self.config.get("host"), self.config.get("client_options"))
        self.client = client
        self.record.client = client
        self.list.client = client
        self.rpc.attach(client)

        def on_error(error: Any, *details: Any) -> None:
            logger.error(f"Remote client error: {error} {details if details else ''}".rstrip())

        client.on("error", on_error)
        return client

    async def login(self) -> Any:
        """Log in once; every later call shares the first call's outcome.

        A failed login is forgotten so the next call tries again.
        """
        if self.client is None:
            raise RuntimeError("Client not initialized. Call init_client() before login().")
        if self._login_task is None:
            self._login_task = asyncio.ensure_future(
                maybe_await(self.client.login(self.config.get("auth_params")))
            )
        task = self._login_task
        try:
            login_data = await asyncio.shield(task)
        except Exception:
            if self._login_task is task:
                self._login_task = None
            raise
        self._has_initialized = True
        return login_data

    async def close(self) -> None:
        """Close the client if a login was started.

        Teardown never raises because of a failed login; that is only logged.
        """
        task = self._login_task
        if task is None:
            return
        try:
            await task
        except Exception as exc:
            logger.error(f"Login failed before close, skipping client close: {exc}")
            self._login_task = None
            return
        assert self.client is not None
        await self.record.flush()
        self.client.close()
        self._login_task = None
        self._has_initialized = False
        logger.debug("Remote client closed")
