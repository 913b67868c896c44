"""Tests for RpcInvoker retry-with-deadline behavior.

These tests drive the invoker against a scripted rpc namespace, so every
attempt's outcome is known up front.
"""

import asyncio
import time
from types import SimpleNamespace

import pytest

from syncgate._internal.rpc_invoker import RpcCall, RpcInvoker
from syncgate.errors import NO_RPC_PROVIDER, NoProviderError


class ScriptedRpc:
    """rpc namespace whose make() plays back *outcomes*; the last one repeats."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.attempt_times = []

    async def make(self, name, data):
        self.attempt_times.append(time.monotonic())
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def make_invoker(rpc, **options):
    return RpcInvoker(SimpleNamespace(rpc=rpc), options)


class TestRpcInvokerDefaults:
    def test_defaults(self):
        invoker = make_invoker(ScriptedRpc("ok"))

        assert invoker.retry_rpc_timeout == 60000
        assert invoker.retry_rpc_interval == 500

    def test_zero_timeout_is_kept(self):
        invoker = make_invoker(ScriptedRpc("ok"), retry_rpc_timeout=0)

        assert invoker.retry_rpc_timeout == 0

    @pytest.mark.asyncio
    async def test_uninitialized_client_fails_loud(self):
        invoker = RpcInvoker(None)

        with pytest.raises(RuntimeError, match="not initialized"):
            await invoker.make("sum")


class TestRpcInvokerRetry:
    @pytest.mark.asyncio
    async def test_immediate_success_does_not_sleep(self):
        rpc = ScriptedRpc({"total": 3})
        invoker = make_invoker(rpc)

        start = time.monotonic()
        result = await invoker.make("sum", {"values": [1, 2]})

        assert result == {"total": 3}
        assert len(rpc.attempt_times) == 1
        assert time.monotonic() - start < 0.1

    @pytest.mark.asyncio
    async def test_fatal_error_propagates_without_retry(self):
        rpc = ScriptedRpc(ValueError("bad payload"))
        invoker = make_invoker(rpc)

        start = time.monotonic()
        with pytest.raises(ValueError, match="bad payload"):
            await invoker.make("sum")

        assert len(rpc.attempt_times) == 1
        assert time.monotonic() - start < 0.1

    @pytest.mark.asyncio
    async def test_fatal_error_after_transient_ones(self):
        rpc = ScriptedRpc(Exception(NO_RPC_PROVIDER), RuntimeError("provider crashed"))
        invoker = make_invoker(rpc, retry_rpc_interval=10)

        with pytest.raises(RuntimeError, match="provider crashed"):
            await invoker.make("sum")

        assert len(rpc.attempt_times) == 2

    @pytest.mark.asyncio
    async def test_retry_terminates_within_deadline_plus_interval(self):
        rpc = ScriptedRpc(Exception(NO_RPC_PROVIDER))
        invoker = make_invoker(rpc, retry_rpc_timeout=300, retry_rpc_interval=50)

        start = time.monotonic()
        with pytest.raises(NoProviderError) as exc_info:
            await invoker.make("sum")
        elapsed = time.monotonic() - start

        assert 0.3 <= elapsed <= 0.3 + 2 * 0.05 + 0.05
        assert exc_info.value.call.attempts == len(rpc.attempt_times)
        assert exc_info.value.call.name == "sum"

    @pytest.mark.asyncio
    async def test_scenario_always_transient(self):
        rpc = ScriptedRpc(Exception(NO_RPC_PROVIDER))
        invoker = make_invoker(rpc, retry_rpc_timeout=1000, retry_rpc_interval=200)

        start = time.monotonic()
        with pytest.raises(NoProviderError):
            await invoker.make("sum")
        elapsed = time.monotonic() - start

        assert 1.0 <= elapsed <= 1.3

    @pytest.mark.asyncio
    async def test_scenario_succeeds_on_third_attempt(self):
        rpc = ScriptedRpc(Exception(NO_RPC_PROVIDER), Exception(NO_RPC_PROVIDER), 42)
        invoker = make_invoker(rpc, retry_rpc_timeout=1000, retry_rpc_interval=200)

        start = time.monotonic()
        result = await invoker.make("sum")
        elapsed = time.monotonic() - start

        assert result == 42
        assert len(rpc.attempt_times) == 3
        assert 0.38 <= elapsed < 0.6

    @pytest.mark.asyncio
    async def test_zero_timeout_attempts_exactly_once(self):
        rpc = ScriptedRpc(Exception(NO_RPC_PROVIDER))
        invoker = make_invoker(rpc, retry_rpc_timeout=0)

        with pytest.raises(NoProviderError):
            await invoker.make("sum")

        assert len(rpc.attempt_times) == 1

    @pytest.mark.asyncio
    async def test_zero_timeout_still_returns_result(self):
        rpc = ScriptedRpc("pong")
        invoker = make_invoker(rpc, retry_rpc_timeout=0)

        assert await invoker.make("ping") == "pong"

    @pytest.mark.asyncio
    async def test_coded_sentinel_is_transient(self):
        class CodedError(Exception):
            code = NO_RPC_PROVIDER

        rpc = ScriptedRpc(CodedError("provider gone"), "ok")
        invoker = make_invoker(rpc, retry_rpc_interval=10)

        assert await invoker.make("ping") == "ok"
        assert len(rpc.attempt_times) == 2

    @pytest.mark.asyncio
    async def test_sustained_unavailability_does_not_recurse(self):
        rpc = ScriptedRpc(Exception(NO_RPC_PROVIDER))
        invoker = make_invoker(rpc, retry_rpc_timeout=200, retry_rpc_interval=0)

        with pytest.raises(NoProviderError):
            await invoker.make("sum")

        # Far more attempts than the default recursion limit would allow
        assert len(rpc.attempt_times) > 100


class TestRpcInvokerHooks:
    @pytest.mark.asyncio
    async def test_preprocess_runs_before_every_attempt(self):
        seen = []

        async def preprocess(payload):
            payload["stamp"] = len(seen)
            seen.append(dict(payload))

        rpc = ScriptedRpc(Exception(NO_RPC_PROVIDER), "ok")
        invoker = make_invoker(rpc, retry_rpc_interval=10, preprocess_rpc_data=preprocess)

        assert await invoker.make("sum", {"a": 1}) == "ok"
        assert seen == [{"a": 1, "stamp": 0}, {"a": 1, "stamp": 1}]

    @pytest.mark.asyncio
    async def test_missing_payload_defaults_to_empty_mapping(self):
        captured = []

        class CapturingRpc:
            async def make(self, name, data):
                captured.append(data)
                return None

        await make_invoker(CapturingRpc()).make("noop")

        assert captured == [{}]


class TestRpcCall:
    def test_expired_tracks_elapsed_time(self):
        call = RpcCall("sum", {}, interval_ms=10, timeout_ms=0)

        assert call.expired()

    def test_not_expired_before_deadline(self):
        call = RpcCall("sum", {}, interval_ms=10, timeout_ms=60000)

        assert not call.expired()
        assert call.elapsed_ms() >= 0

    @pytest.mark.asyncio
    async def test_elapsed_grows(self):
        call = RpcCall("sum", {}, interval_ms=10, timeout_ms=60000)
        await asyncio.sleep(0.02)

        assert call.elapsed_ms() >= 15
