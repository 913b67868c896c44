from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypedDict

import yaml

if TYPE_CHECKING:
    from ._internal.rpc_provider import AuditRecord

logger = logging.getLogger(__name__)

DEFAULT_RETRY_RPC_TIMEOUT = 60000
DEFAULT_RETRY_RPC_INTERVAL = 500
DEFAULT_LIST_DISCARD_DELAY = 10000

# Callables cannot come from a file; they are wired in code.
_CALLABLE_KEYS = frozenset({"audit", "preprocess_rpc_data", "upgrade_rpc_data"})
_MILLISECOND_KEYS = ("retry_rpc_timeout", "retry_rpc_interval", "list_discard_delay")


class SyncGateConfig(TypedDict, total=False):
    """Configuration for :class:`syncgate.SyncGate` and its components.

    Every key is optional. Time values are in milliseconds.
    """

    host: str
    """Address of the remote sync server, passed to the client factory."""

    client_options: dict[str, Any]
    """Opaque options forwarded to the client factory."""

    auth_params: dict[str, Any]
    """Credentials passed to ``client.login`` on the first :meth:`SyncGate.login`."""

    retry_rpc_timeout: int
    """Deadline for retrying an RPC without a provider. ``0`` means one attempt only."""

    retry_rpc_interval: int
    """Delay between RPC retry attempts."""

    disable_has_check: bool
    """Skip the existence check before fetching a record."""

    list_discard_delay: int
    """Delay before a list handle is discarded after ``add_entry``/``remove_entry``."""

    audit: Callable[[AuditRecord], None]
    """Sink called synchronously with metadata of every audited RPC response."""

    preprocess_rpc_data: Callable[[Any], Awaitable[None] | None]
    """Hook run on an outgoing RPC payload before every attempt."""

    upgrade_rpc_data: Callable[[Any], Awaitable[None] | None]
    """Hook run on an incoming RPC payload before the handler sees it."""


_FIELD_TYPES: dict[str, type | tuple[type, ...]] = {
    "host": str,
    "client_options": dict,
    "auth_params": dict,
    "retry_rpc_timeout": int,
    "retry_rpc_interval": int,
    "disable_has_check": bool,
    "list_discard_delay": int,
}


def validate_config(config: Mapping[str, Any]) -> SyncGateConfig:
    """Check key names, value types and time ranges of *config*.

    Raises:
        ValueError: On an unknown key, a wrong type or a negative time value.
    """
    known = set(_FIELD_TYPES) | _CALLABLE_KEYS
    unknown = sorted(set(config) - known)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")

    for key, expected in _FIELD_TYPES.items():
        if key not in config or config[key] is None:
            continue
        value = config[key]
        # bool is an int subclass; reject it for the time fields
        if key in _MILLISECOND_KEYS and isinstance(value, bool):
            raise ValueError(f"'{key}' must be an integer number of milliseconds")
        if not isinstance(value, expected):
            raise ValueError(f"'{key}' must be of type {getattr(expected, '__name__', expected)}")

    for key in _MILLISECOND_KEYS:
        if config.get(key) is not None and config[key] < 0:
            raise ValueError(f"'{key}' must not be negative, got {config[key]}")

    for key in _CALLABLE_KEYS:
        if config.get(key) is not None and not callable(config[key]):
            raise ValueError(f"'{key}' must be callable")

    return SyncGateConfig(**config)  # type: ignore[typeddict-item]


def load_config(path: str | Path, **overrides: Any) -> SyncGateConfig:
    """Load a :class:`SyncGateConfig` from a YAML file.

    Keyword *overrides* are applied on top of the file, which is how callables
    such as ``audit`` are supplied.
    """
    path = Path(path)
    with path.open(encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping, got {type(data).__name__}")

    from_file = sorted(_CALLABLE_KEYS & set(data))
    if from_file:
        raise ValueError(f"{', '.join(from_file)} cannot be set from a file; pass as an override")

    data.update(overrides)
    logger.debug(f"Loaded syncgate configuration from {path}: {sorted(data)}")
    return validate_config(data)


def resolve_ms(config: Mapping[str, Any], key: str, default: int) -> int:
    """Return *key* from *config*, falling back to *default* only when unset.

    ``0`` is a meaningful value and is returned as is.
    """
    value = config.get(key)
    return default if value is None else int(value)
