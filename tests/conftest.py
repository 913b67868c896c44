"""
Pytest configuration and fixtures.

Add any shared fixtures or pytest configuration here.
"""

import logging
import sys

import pytest

from syncgate._internal.list_gate import ListGate
from syncgate._internal.record_gate import RecordGate
from tests.harness.fake_client import FakeRemoteClient


def pytest_configure(config):
    """Configure pytest with custom settings."""
    log_level = logging.DEBUG if config.getoption("--debug-syncgate") else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("syncgate").setLevel(log_level)
    logging.getLogger("asyncio").setLevel(log_level)

    custom_log_file = config.getoption("--syncgate-log-file")
    if custom_log_file:
        file_handler = logging.FileHandler(custom_log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
            )
        )
        logging.getLogger().addHandler(file_handler)


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--debug-syncgate",
        action="store_true",
        default=False,
        help="Enable debug logging for syncgate (shows retries, coalescing and timers)",
    )
    parser.addoption(
        "--syncgate-log-file",
        action="store",
        default=None,
        help="Log syncgate debug output to specified file",
    )


@pytest.fixture
def client():
    return FakeRemoteClient("ws://localhost:6020")


@pytest.fixture
def record_gate(client):
    return RecordGate(client, {})


@pytest.fixture
def list_gate(client):
    return ListGate(client, {"list_discard_delay": 50})
