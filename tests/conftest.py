"""
Shared test configuration.

Environment variables are set before any prosefix module is imported so the
module-level Settings pick them up.
"""

import asyncio
import os
import tempfile
from pathlib import Path

import pytest

# Set test environment BEFORE importing modules
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LOG_FILE"] = ""
os.environ["STREAM_PACE_MS"] = "0"
os.environ["OLLAMA_AUTOSTART"] = "false"
os.environ["CONFIG_PATH"] = str(Path(tempfile.mkdtemp(prefix="prosefix-test-")) / "config.json")

from prosefix.core.config import ConfigStore, HostConfig  # noqa: E402
from prosefix.services.host_monitor import HostStatus  # noqa: E402

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (HTTP surface)")
    config.addinivalue_line("markers", "slow: Slow running tests")


# =============================================================================
# FAKES
# =============================================================================


class FakeInvoker:
    """
    Scripted model invoker.

    ``handler(prompt)`` returns the output text or raises; ``delays`` maps a
    substring of the prompt to a sleep in seconds, letting tests force any
    completion order. Tracks the peak number of concurrent calls.
    """

    def __init__(self, handler=None, delays=None):
        self.handler = handler or (lambda prompt: prompt)
        self.delays = delays or {}
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def invoke(self, model_id, prompt, timeout=None):
        self.calls.append(prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            for marker, delay in self.delays.items():
                if marker in prompt:
                    await asyncio.sleep(delay)
                    break
            else:
                await asyncio.sleep(0)
            return self.handler(prompt)
        finally:
            self.in_flight -= 1


class FakeMonitor:
    """Host monitor with a fixed answer."""

    def __init__(self, reachable=True, started=False):
        self.status = HostStatus(reachable=reachable, started=started)
        self.calls: list[bool] = []

    async def ensure_running(self, allow_start=False):
        self.calls.append(allow_start)
        return self.status

    def shutdown(self):
        pass


class ListSink:
    """Collects records written by the dispatcher."""

    def __init__(self):
        self.records: list[dict] = []

    async def send(self, record):
        self.records.append(record)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def list_sink():
    return ListSink()


@pytest.fixture
def config_store(tmp_path):
    return ConfigStore(HostConfig(), path=tmp_path / "config.json")


@pytest.fixture
def fake_monitor():
    return FakeMonitor()


@pytest.fixture
def fake_invoker():
    return FakeInvoker()
