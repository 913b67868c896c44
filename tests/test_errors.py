"""Tests for the error taxonomy and sentinel classification."""

import pytest

from syncgate._internal.rpc_invoker import RpcCall
from syncgate.errors import (
    NO_RPC_PROVIDER,
    AlreadyExistsError,
    InvalidArgumentError,
    NoProviderError,
    NotFoundError,
    RemoteError,
    SyncGateError,
    is_no_provider,
)


class TestIsNoProvider:
    @pytest.mark.parametrize(
        "error",
        [
            NO_RPC_PROVIDER,
            Exception(NO_RPC_PROVIDER),
            RuntimeError(NO_RPC_PROVIDER),
            NoProviderError(RpcCall("sum", {}, 500, 0)),
        ],
    )
    def test_transient(self, error):
        assert is_no_provider(error)

    def test_coded_error(self):
        class CodedError(Exception):
            code = NO_RPC_PROVIDER

        assert is_no_provider(CodedError("whatever message"))

    @pytest.mark.parametrize(
        "error",
        [
            "SOME_OTHER_ERROR",
            Exception("boom"),
            Exception(NO_RPC_PROVIDER, "extra"),
            ValueError(f"{NO_RPC_PROVIDER} but more"),
            None,
        ],
    )
    def test_fatal(self, error):
        assert not is_no_provider(error)


class TestTaxonomy:
    @pytest.mark.parametrize(
        "error",
        [
            NotFoundError("r1"),
            AlreadyExistsError("r1"),
            InvalidArgumentError("bad"),
            RemoteError("boom", "r1"),
            NoProviderError(RpcCall("sum", {}, 500, 0)),
        ],
    )
    def test_all_derive_from_base(self, error):
        assert isinstance(error, SyncGateError)

    def test_not_found_is_lookup_error(self):
        error = NotFoundError("r1")

        assert isinstance(error, LookupError)
        assert error.name == "r1"
        assert "r1" in str(error)

    def test_invalid_argument_is_value_error(self):
        assert isinstance(InvalidArgumentError("bad"), ValueError)

    def test_remote_error_keeps_context(self):
        cause = ConnectionError("socket closed")
        error = RemoteError(cause, "profile/1")

        assert error.error is cause
        assert error.name == "profile/1"
        assert "profile/1" in str(error)

    def test_no_provider_message(self):
        call = RpcCall("sum", {}, 500, 0)
        call.attempts = 3

        error = NoProviderError(call)

        assert error.call is call
        assert NO_RPC_PROVIDER in str(error)
        assert "'sum'" in str(error)
        assert "3 attempt" in str(error)
