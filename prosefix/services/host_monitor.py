"""
Model Host Availability Monitor.

Probes the Ollama daemon with a plain TCP connect and, when allowed, launches
`ollama serve` as a detached child for loopback hosts. One instance lives on
app.state for the lifetime of the server.
"""

import asyncio
import logging
import os
import subprocess
from collections.abc import Callable
from dataclasses import dataclass

from ..core.config import HostConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostStatus:
    """Outcome of an availability check."""

    reachable: bool
    started: bool


class ModelHostMonitor:
    """
    Tracks and optionally starts the local model host.

    The launched process handle is process-wide. While it is alive, further
    calls skip the launch and only poll, so concurrent callers converge.
    """

    def __init__(
        self,
        config_provider: Callable[[], HostConfig],
        *,
        binary: str = "ollama",
        poll_interval: float = 0.3,
        probe_timeout: float = 1.0,
    ):
        self._config_provider = config_provider
        self.binary = binary
        self.poll_interval = poll_interval
        self.probe_timeout = probe_timeout
        self._process: subprocess.Popen | None = None

    @property
    def process(self) -> subprocess.Popen | None:
        return self._process

    async def probe_reachable(
        self, host: str | None = None, port: int | None = None, timeout: float | None = None
    ) -> bool:
        """Return True if a TCP connection to the host succeeds. Never raises."""
        config = self._config_provider()
        host = host or config.host
        port = port or config.port
        timeout = self.probe_timeout if timeout is None else timeout

        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=timeout
            )
        except (OSError, TimeoutError, ValueError, OverflowError):
            return False

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    async def wait_for_reachable(self, total_seconds: float | None = None) -> bool:
        """Poll until the host answers or the start timeout elapses."""
        if total_seconds is None:
            total_seconds = self._config_provider().start_timeout

        loop = asyncio.get_running_loop()
        deadline = loop.time() + total_seconds
        while loop.time() < deadline:
            if await self.probe_reachable():
                return True
            await asyncio.sleep(self.poll_interval)
        return False

    def build_serve_command(self) -> list[str]:
        return [self.binary, "serve"]

    def _launch(self, config: HostConfig) -> bool:
        """Start `ollama serve` unless our own child is still running."""
        if self._process is not None and self._process.poll() is None:
            logger.debug("ollama serve already launched; waiting for it")
            return True

        if not config.is_local:
            logger.info(
                f"Not starting ollama serve for non-local host {config.host}",
                extra={"host": config.host},
            )
            return False

        env = {**os.environ, "OLLAMA_HOST": config.address}
        try:
            self._process = subprocess.Popen(
                self.build_serve_command(),
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            logger.error(f"Failed to launch ollama serve: {e}")
            self._process = None
            return False

        logger.info(
            f"Launched ollama serve on {config.address}",
            extra={"pid": self._process.pid},
        )
        return True

    async def ensure_running(self, allow_start: bool = False) -> HostStatus:
        """
        Make sure the model host is reachable.

        Args:
            allow_start: Launch the host when unreachable even if autostart is off

        Returns:
            HostStatus(reachable, started). ``started`` is True whenever a launch
            was attempted (or an earlier launch is still running).
        """
        config = self._config_provider()

        if await self.probe_reachable(config.host, config.port):
            return HostStatus(reachable=True, started=False)

        if not (allow_start or config.autostart):
            return HostStatus(reachable=False, started=False)

        if not self._launch(config):
            return HostStatus(reachable=False, started=False)

        reachable = await self.wait_for_reachable(config.start_timeout)
        if not reachable:
            logger.warning(
                f"Model host {config.address} still unreachable after "
                f"{config.start_timeout:g}s"
            )
        return HostStatus(reachable=reachable, started=True)

    def shutdown(self) -> None:
        """Forget the launched handle. The detached daemon keeps running."""
        if self._process is not None:
            logger.debug(f"Releasing ollama serve handle (pid {self._process.pid})")
        self._process = None
