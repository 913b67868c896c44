"""Inbound RPC registration with optional audit of every response."""

from __future__ import annotations

import inspect
import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any, TypedDict

from typing_extensions import override

from ..errors import NO_RPC_PROVIDER
from ..interfaces import RemoteClient, RpcResponse
from .remote_handle import maybe_await

logger = logging.getLogger(__name__)

RpcHandler = Callable[[Any, RpcResponse], Any]


class AuditRecord(TypedDict):
    """Metadata handed to the audit sink for one answered call."""

    name: str
    payload: Any
    result: Any
    failed: bool
    audit_options: Any


class TrackedResponse:
    """Response wrapper that remembers whether the call was answered."""

    def __init__(self, response: RpcResponse) -> None:
        self._response = response
        self.answered = False

    def __getattr__(self, item: str) -> Any:
        return getattr(self._response, item)

    def send(self, result: Any = None) -> None:
        self._response.send(result)
        self.answered = True

    def error(self, error: Any) -> None:
        self._response.error(error)
        self.answered = True


class AuditedResponse(TrackedResponse):
    """Response wrapper that reports every answer to an audit sink.

    The real response is always delivered first; the sink runs afterwards
    and cannot change what the caller receives.
    """

    def __init__(
        self,
        response: RpcResponse,
        name: str,
        payload: Any,
        audit: Callable[[AuditRecord], None],
        audit_options: Any,
    ) -> None:
        super().__init__(response)
        self._name = name
        self._payload = payload
        self._audit = audit
        self._audit_options = audit_options

    @override
    def send(self, result: Any = None) -> None:
        super().send(result)
        self._report(result, failed=False)

    @override
    def error(self, error: Any) -> None:
        super().error(error)
        self._report(error, failed=True)

    def _report(self, result: Any, failed: bool) -> None:
        record = AuditRecord(
            name=self._name,
            payload=self._payload,
            result=result,
            failed=failed,
            audit_options=self._audit_options,
        )
        try:
            self._audit(record)
        except Exception:
            logger.exception("Audit sink failed for RPC %s", self._name)


class RpcProvider:
    """Registers local handlers for inbound remote calls.

    Registrations live in this instance, not on the client, so removal can be
    observed by dispatchers that the client is still holding on to.
    """

    def __init__(self, client: RemoteClient | None, options: Mapping[str, Any] | None = None) -> None:
        self.client = client
        self.options = dict(options or {})
        self.audit: Callable[[AuditRecord], None] | None = self.options.get("audit")
        self.lock = threading.Lock()
        self.registrations: dict[str, RpcHandler] = {}

    def provided_names(self) -> list[str]:
        with self.lock:
            return list(self.registrations)

    def provide(self, name: str, handler: RpcHandler, audit_options: Any = None) -> None:
        """Register *handler* for inbound calls to *name*.

        If *audit_options* is given and an ``audit`` sink is configured, the
        response passed to *handler* reports every answer to the sink.

        Raises:
            ValueError: If *name* is already provided.
        """
        client = self._require_client()
        with self.lock:
            if name in self.registrations:
                raise ValueError(f"RPC '{name}' already provided")
            self.registrations[name] = handler

        audited = audit_options is not None and self.audit is not None

        async def dispatch(payload: Any, response: RpcResponse) -> None:
            with self.lock:
                current = self.registrations.get(name)
            if current is not handler:
                logger.debug(f"Rejecting call to RPC '{name}': provider was removed")
                response.error(NO_RPC_PROVIDER)
                return

            tracked: TrackedResponse
            if audited:
                tracked = AuditedResponse(response, name, payload, self.audit, audit_options)  # type: ignore[arg-type]
            else:
                tracked = TrackedResponse(response)
            try:
                await self._upgrade(payload)
                result = handler(payload, tracked)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                if tracked.answered:
                    # The caller already has its answer; a second one would be dropped.
                    logger.exception("RPC handler failed for %s after responding", name)
                    return
                logger.exception("RPC handler failed for %s", name)
                tracked.error(str(exc))

        try:
            client.rpc.provide(name, dispatch)
        except Exception:
            with self.lock:
                self.registrations.pop(name, None)
            raise
        logger.debug(f"Providing RPC '{name}' (audited={audited})")

    def unprovide(self, name: str) -> None:
        """Remove the registration for *name*."""
        with self.lock:
            removed = self.registrations.pop(name, None)
        if removed is None:
            logger.warning(f"Cannot unprovide RPC '{name}': not provided")
            return
        self._require_client().rpc.unprovide(name)

    def unprovide_all(self) -> None:
        """Remove every registration.

        The registry is emptied in one step before the client is told, so no
        new call reaches any of the handlers once this has started.
        """
        with self.lock:
            names = list(self.registrations)
            self.registrations.clear()
        client = self._require_client()
        for name in names:
            client.rpc.unprovide(name)
        if names:
            logger.debug(f"Unprovided {len(names)} RPC(s): {', '.join(names)}")

    async def _upgrade(self, payload: Any) -> None:
        hook = self.options.get("upgrade_rpc_data")
        if hook is not None:
            await maybe_await(hook(payload))

    def _require_client(self) -> RemoteClient:
        if self.client is None:
            raise RuntimeError("RPC client not initialized. Call SyncGate.init_client() first.")
        return self.client
