"""
Model Invocation Gateway - one `ollama run` subprocess per prompt.

Each invocation spawns `ollama run <model> --hidethinking`, writes the prompt
on stdin and returns the final text printed on stdout. The child talks to the
model host configured in the current HostConfig snapshot.

Prerequisites: Ollama installed and the model pulled (ollama pull gemma3)
"""

import asyncio
import logging
import os
import time
from collections.abc import Callable
from typing import Protocol

from ..core.config import HostConfig
from ..core.exceptions import InvocationFailureError, InvocationTimeoutError

logger = logging.getLogger(__name__)


class ModelInvoker(Protocol):
    """Anything that turns a prompt into model output text."""

    async def invoke(self, model_id: str, prompt: str, timeout: float | None = None) -> str:
        ...


class ModelGateway:
    """
    Runs prompts through the Ollama CLI.

    Failures never return partial output: a timeout kills the child and raises
    InvocationTimeoutError, a non-zero exit raises InvocationFailureError with
    the captured stderr.
    """

    def __init__(
        self,
        config_provider: Callable[[], HostConfig],
        *,
        binary: str = "ollama",
    ):
        """
        Initialize the gateway.

        Args:
            config_provider: Returns the current HostConfig snapshot
            binary: Ollama executable name or path
        """
        self._config_provider = config_provider
        self.binary = binary

    def build_command(self, model_id: str) -> list[str]:
        """Argument vector for a single invocation."""
        # --hidethinking keeps reasoning traces out of stdout
        return [self.binary, "run", model_id, "--hidethinking"]

    async def invoke(self, model_id: str, prompt: str, timeout: float | None = None) -> str:
        """
        Run one prompt and return the stripped stdout.

        Args:
            model_id: Ollama model tag (e.g. "gemma3")
            prompt: Full prompt text, written to the child's stdin
            timeout: Wall-clock limit in seconds; defaults to the configured run timeout
        """
        config = self._config_provider()
        if timeout is None:
            timeout = config.run_timeout

        argv = self.build_command(model_id)
        env = {**os.environ, "OLLAMA_HOST": config.address}
        start = time.perf_counter()

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            logger.error(f"Could not start {argv[0]}: {e}", extra={"model": model_id})
            raise InvocationFailureError(
                f"could not start {argv[0]}: {e}", model=model_id
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(prompt.encode("utf-8")), timeout=timeout
            )
        except TimeoutError:
            await self._terminate(process)
            logger.warning(
                f"ollama run timed out after {timeout:g}s",
                extra={"model": model_id},
            )
            raise InvocationTimeoutError(timeout, model=model_id) from None
        except asyncio.CancelledError:
            await self._terminate(process)
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        error_text = stderr.decode("utf-8", errors="replace").strip()

        if process.returncode != 0:
            detail = error_text or f"ollama exited with {process.returncode}"
            logger.warning(
                f"ollama run failed: {detail}",
                extra={"model": model_id, "duration_ms": round(duration_ms, 2)},
            )
            raise InvocationFailureError(
                detail, model=model_id, returncode=process.returncode, stderr=error_text
            )

        logger.debug(
            "ollama run completed",
            extra={"model": model_id, "duration_ms": round(duration_ms, 2)},
        )
        return stdout.decode("utf-8", errors="replace").strip()

    @staticmethod
    async def _terminate(process: asyncio.subprocess.Process) -> None:
        """Kill and reap a child that is still running."""
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()
