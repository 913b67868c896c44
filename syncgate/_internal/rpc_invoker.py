"""Outgoing RPC calls with bounded retry on the "no provider" sentinel."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..config import DEFAULT_RETRY_RPC_INTERVAL, DEFAULT_RETRY_RPC_TIMEOUT, resolve_ms
from ..errors import NoProviderError, is_no_provider
from ..interfaces import RemoteClient
from .remote_handle import maybe_await

logger = logging.getLogger(__name__)


@dataclass
class RpcCall:
    """A single logical call and its retry bookkeeping."""

    name: str
    payload: Any
    interval_ms: int
    timeout_ms: int
    started_at: float = field(default_factory=time.monotonic)
    attempts: int = 0

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started_at) * 1000

    def expired(self) -> bool:
        return self.elapsed_ms() >= self.timeout_ms


class RpcInvoker:
    """Issues named remote calls, retrying while no provider is registered."""

    def __init__(self, client: RemoteClient | None, options: Mapping[str, Any] | None = None) -> None:
        self.client = client
        self.options = dict(options or {})
        self.retry_rpc_timeout = resolve_ms(self.options, "retry_rpc_timeout", DEFAULT_RETRY_RPC_TIMEOUT)
        self.retry_rpc_interval = resolve_ms(self.options, "retry_rpc_interval", DEFAULT_RETRY_RPC_INTERVAL)

    async def make(self, name: str, payload: Any = None) -> Any:
        """Call the remote procedure *name* and return its result.

        The call is always attempted at least once. While it fails with the
        "no provider" sentinel it is retried every ``retry_rpc_interval`` ms
        until ``retry_rpc_timeout`` ms have passed since the first attempt.
        Any other error is raised immediately.

        Raises:
            NoProviderError: If the deadline passed without a provider.
        """
        if self.client is None:
            raise RuntimeError("RPC client not initialized. Call SyncGate.init_client() first.")
        if payload is None:
            payload = {}

        call = RpcCall(name, payload, self.retry_rpc_interval, self.retry_rpc_timeout)
        while True:
            call.attempts += 1
            try:
                await self._preprocess(payload)
                return await maybe_await(self.client.rpc.make(name, payload))
            except Exception as exc:
                if not is_no_provider(exc):
                    raise
                last_error = exc

            if call.expired():
                logger.warning(
                    f"No provider for RPC '{name}' after {call.attempts} attempt(s), giving up"
                )
                raise NoProviderError(call) from last_error

            logger.debug(
                f"No provider for RPC '{name}' (attempt {call.attempts}), "
                f"retrying in {call.interval_ms}ms"
            )
            await asyncio.sleep(call.interval_ms / 1000)

    async def _preprocess(self, payload: Any) -> None:
        hook = self.options.get("preprocess_rpc_data")
        if hook is not None:
            await maybe_await(hook(payload))
