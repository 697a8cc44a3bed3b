"""
Bounded concurrent dispatcher with ordered emission.

Jobs are launched up to a concurrency cap; each runs as its own asyncio task
and posts a completion event to a queue. A single coordination loop owns the
slot array and cursors: it records completions, emits every result that is
next in index order, then backfills free capacity with new jobs.

Completion order is unconstrained; emission is strictly index-ascending and
every index gets exactly one Result, with "(error)" standing in for failures.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from ..core.constants import ERROR_MARKER
from ..core.exceptions import InvocationError
from .gateway import ModelInvoker

logger = logging.getLogger(__name__)


class ResultStatus(str, Enum):
    OK = "ok"
    ERROR = "error"


@dataclass(frozen=True)
class Result:
    index: int
    output_text: str
    status: ResultStatus = ResultStatus.OK

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "output": self.output_text, "status": self.status.value}


@dataclass(frozen=True)
class Job:
    """One model invocation covering one or more unit indices."""

    indices: tuple[int, ...]
    prompt: str
    decode: Callable[[str], Mapping[int, str]]


@dataclass
class DispatchStats:
    total: int
    emitted: int = 0
    failed: int = 0
    max_in_flight: int = 0
    elapsed: float = 0.0
    jobs: int = 0


class RecordSink(Protocol):
    async def send(self, record: dict[str, Any]) -> None:
        ...


def _count_indices(jobs: list[Job]) -> int:
    """Check that jobs cover 0..N-1 exactly once and return N."""
    seen: set[int] = set()
    for job in jobs:
        if not job.indices:
            raise ValueError("job covers no indices")
        for index in job.indices:
            if index in seen:
                raise ValueError(f"index {index} is covered by more than one job")
            seen.add(index)
    total = len(seen)
    if seen != set(range(total)):
        raise ValueError("job indices must be contiguous from 0")
    return total


class OrderedDispatcher:
    """
    Runs jobs against a model invoker and streams results in index order.

    Args:
        invoker: Object with ``async invoke(model_id, prompt, timeout)``
        model: Model tag passed to every invocation
        concurrency: Maximum number of invocations in flight (minimum 1)
        timeout: Per-invocation timeout in seconds (None = invoker default)
        pace: Delay in seconds between consecutive emitted records
        render: Turns a Result into the record written to the sink
    """

    def __init__(
        self,
        invoker: ModelInvoker,
        *,
        model: str,
        concurrency: int,
        timeout: float | None,
        pace: float = 0.01,
        render: Callable[[Result], dict[str, Any]] | None = None,
    ):
        self.invoker = invoker
        self.model = model
        self.concurrency = max(1, int(concurrency))
        self.timeout = timeout
        self.pace = max(0.0, pace)
        self.render = render or Result.to_dict

    async def _execute(self, job: Job, completions: asyncio.Queue) -> None:
        try:
            output = await self.invoker.invoke(self.model, job.prompt, self.timeout)
            decoded = job.decode(output)
            results = [
                Result(index=i, output_text=str(decoded.get(i) or ""))
                for i in job.indices
            ]
        except InvocationError as e:
            logger.warning(
                f"Invocation for indices {list(job.indices)} failed: {e.detail}",
                extra={"model": self.model},
            )
            results = self._errors(job)
        except Exception as e:
            logger.error(
                f"Unexpected error for indices {list(job.indices)}: {e}",
                exc_info=True,
                extra={"model": self.model},
            )
            results = self._errors(job)

        completions.put_nowait((job, results))

    @staticmethod
    def _errors(job: Job) -> list[Result]:
        return [Result(i, ERROR_MARKER, ResultStatus.ERROR) for i in job.indices]

    async def run(self, jobs: Iterable[Job], sink: RecordSink) -> DispatchStats:
        """Dispatch all jobs and write one rendered record per index to ``sink``."""
        jobs = list(jobs)
        total = _count_indices(jobs)
        stats = DispatchStats(total=total, jobs=len(jobs))
        start = time.perf_counter()

        slots: list[Result | None] = [None] * total
        completions: asyncio.Queue = asyncio.Queue()
        pending: set[asyncio.Task] = set()
        next_to_launch = 0
        next_to_emit = 0
        in_flight = 0

        try:
            while True:
                # Emit everything that is ready in order
                while next_to_emit < total and slots[next_to_emit] is not None:
                    result = slots[next_to_emit]
                    slots[next_to_emit] = None
                    if stats.emitted and self.pace:
                        await asyncio.sleep(self.pace)
                    await sink.send(self.render(result))
                    stats.emitted += 1
                    next_to_emit += 1

                # Backfill free capacity
                while in_flight < self.concurrency and next_to_launch < len(jobs):
                    task = asyncio.create_task(self._execute(jobs[next_to_launch], completions))
                    pending.add(task)
                    task.add_done_callback(pending.discard)
                    next_to_launch += 1
                    in_flight += 1
                    stats.max_in_flight = max(stats.max_in_flight, in_flight)

                if next_to_emit == total and in_flight == 0:
                    break

                _, results = await completions.get()
                in_flight -= 1
                for result in results:
                    slots[result.index] = result
                    if result.status is ResultStatus.ERROR:
                        stats.failed += 1
        except BaseException:
            outstanding = list(pending)
            for task in outstanding:
                task.cancel()
            # Reap child processes before the fault propagates
            await asyncio.gather(*outstanding, return_exceptions=True)
            raise

        stats.elapsed = time.perf_counter() - start
        logger.info(
            f"Dispatch finished: {stats.emitted}/{stats.total} emitted, {stats.failed} failed",
            extra={
                "model": self.model,
                "total": stats.total,
                "jobs": stats.jobs,
                "max_in_flight": stats.max_in_flight,
                "duration_ms": round(stats.elapsed * 1000, 2),
            },
        )
        return stats
