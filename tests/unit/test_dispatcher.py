"""Unit tests for the ordered, bounded-concurrency dispatcher."""

import asyncio
from functools import partial

import pytest

from prosefix.core.exceptions import InvocationFailureError, InvocationTimeoutError
from prosefix.services.dispatcher import Job, OrderedDispatcher, Result, ResultStatus
from prosefix.services.prompts import TranslateOptions
from prosefix.services.segmenter import segment
from prosefix.services.workbench import render_translation, translation_jobs
from tests.conftest import FakeInvoker, ListSink

pytestmark = pytest.mark.unit


def _whole(index, output):
    return {index: output}


def _jobs(texts):
    """One job per text; the prompt is tagged so delays can target it."""
    return [
        Job(indices=(i,), prompt=f"#{i}# {text}", decode=partial(_whole, i))
        for i, text in enumerate(texts)
    ]


def _strip_tag(prompt):
    return prompt.split("# ", 1)[1]


def _dispatcher(invoker, concurrency=2, **kwargs):
    kwargs.setdefault("pace", 0)
    return OrderedDispatcher(
        invoker, model="test-model", concurrency=concurrency, timeout=5.0, **kwargs
    )


@pytest.mark.asyncio
async def test_reversed_completion_with_failure_is_emitted_in_order():
    def handler(prompt):
        text = _strip_tag(prompt)
        if text == "b":
            raise InvocationFailureError("model crashed")
        return text.upper()

    invoker = FakeInvoker(handler, delays={"#0#": 0.06, "#1#": 0.03, "#2#": 0.0})
    sink = ListSink()

    stats = await _dispatcher(invoker, concurrency=3).run(_jobs(["a", "b", "c"]), sink)

    assert sink.records == [
        {"index": 0, "output": "A", "status": "ok"},
        {"index": 1, "output": "(error)", "status": "error"},
        {"index": 2, "output": "C", "status": "ok"},
    ]
    assert (stats.total, stats.emitted, stats.failed) == (3, 3, 1)


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    delays = {f"#{i}#": d for i, d in enumerate([0.04, 0.01, 0.03, 0.0, 0.02])}
    invoker = FakeInvoker(lambda p: _strip_tag(p), delays=delays)
    sink = ListSink()

    stats = await _dispatcher(invoker, concurrency=2).run(_jobs("vwxyz"), sink)

    assert invoker.max_in_flight == 2
    assert stats.max_in_flight == 2
    assert [r["index"] for r in sink.records] == [0, 1, 2, 3, 4]
    assert [r["output"] for r in sink.records] == list("vwxyz")


@pytest.mark.asyncio
async def test_order_holds_for_scrambled_completion():
    count = 25
    delays = {f"#{i}#": ((i * 7) % 5) * 0.005 for i in range(count)}
    invoker = FakeInvoker(lambda p: _strip_tag(p), delays=delays)
    sink = ListSink()

    await _dispatcher(invoker, concurrency=4).run(
        _jobs([f"p{i}" for i in range(count)]), sink
    )

    assert [r["index"] for r in sink.records] == list(range(count))
    assert [r["output"] for r in sink.records] == [f"p{i}" for i in range(count)]
    assert invoker.max_in_flight <= 4


@pytest.mark.asyncio
async def test_translation_chunks_and_fallback_padding():
    units = segment("one\n\ntwo\n\nthree\n\nfour\n\nfive")
    jobs = translation_jobs(units, TranslateOptions(max_paragraphs=2))
    assert [job.indices for job in jobs] == [(0, 1), (2, 3), (4,)]

    # Non-JSON output with a single part: the second paragraph of a chunk is padded
    invoker = FakeInvoker(lambda p: "plain translation")
    sink = ListSink()
    await _dispatcher(invoker, concurrency=2, render=render_translation).run(jobs, sink)

    assert len(invoker.calls) == 3
    assert sink.records == [
        {"index": 0, "translated": "plain translation"},
        {"index": 1, "translated": ""},
        {"index": 2, "translated": "plain translation"},
        {"index": 3, "translated": ""},
        {"index": 4, "translated": "plain translation"},
    ]


@pytest.mark.asyncio
async def test_failed_chunk_marks_every_covered_index():
    units = segment("a\n\nb\n\nc")
    jobs = translation_jobs(units, TranslateOptions(max_paragraphs=2))

    def handler(prompt):
        if "[2]:" in prompt:
            return '{"translations":[{"index":2,"text":"C"}]}'
        raise InvocationTimeoutError(1.0)

    sink = ListSink()
    stats = await _dispatcher(FakeInvoker(handler), render=render_translation).run(jobs, sink)

    assert sink.records == [
        {"index": 0, "translated": "(error)"},
        {"index": 1, "translated": "(error)"},
        {"index": 2, "translated": "C"},
    ]
    assert stats.failed == 2


@pytest.mark.asyncio
async def test_zero_jobs_complete_immediately():
    invoker = FakeInvoker()
    sink = ListSink()

    stats = await _dispatcher(invoker).run([], sink)

    assert sink.records == []
    assert invoker.calls == []
    assert (stats.total, stats.emitted, stats.max_in_flight) == (0, 0, 0)


@pytest.mark.asyncio
async def test_missing_index_in_decoded_output_is_empty_ok():
    job = Job(indices=(0, 1), prompt="x", decode=lambda output: {0: output})
    sink = ListSink()

    await _dispatcher(FakeInvoker(lambda p: "only first")).run([job], sink)

    assert sink.records[1] == {"index": 1, "output": "", "status": "ok"}


@pytest.mark.asyncio
async def test_decoder_exception_becomes_error_marker():
    def broken(output):
        raise KeyError("bad decode")

    job = Job(indices=(0,), prompt="x", decode=broken)
    sink = ListSink()

    stats = await _dispatcher(FakeInvoker()).run([job], sink)

    assert sink.records == [{"index": 0, "output": "(error)", "status": "error"}]
    assert stats.failed == 1


@pytest.mark.asyncio
async def test_each_index_emitted_exactly_once():
    invoker = FakeInvoker(lambda p: "ok")
    sink = ListSink()

    await _dispatcher(invoker, concurrency=3).run(_jobs(["x"] * 10), sink)

    indices = [r["index"] for r in sink.records]
    assert sorted(set(indices)) == indices == list(range(10))


@pytest.mark.asyncio
async def test_custom_render_receives_results():
    seen = []

    def render(result: Result):
        seen.append(result)
        return {"i": result.index}

    sink = ListSink()
    await _dispatcher(FakeInvoker(lambda p: "z"), render=render).run(_jobs(["q"]), sink)

    assert sink.records == [{"i": 0}]
    assert seen == [Result(0, "z", ResultStatus.OK)]


@pytest.mark.asyncio
async def test_pacing_spaces_out_records():
    sink = ListSink()
    loop = asyncio.get_running_loop()
    start = loop.time()

    await _dispatcher(FakeInvoker(lambda p: "x"), concurrency=5, pace=0.02).run(
        _jobs("abcde"), sink
    )

    assert len(sink.records) == 5
    assert loop.time() - start >= 0.075


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "jobs",
    [
        [Job(indices=(0,), prompt="", decode=dict), Job(indices=(2,), prompt="", decode=dict)],
        [Job(indices=(0,), prompt="", decode=dict), Job(indices=(0,), prompt="", decode=dict)],
        [Job(indices=(), prompt="", decode=dict)],
    ],
    ids=["gap", "duplicate", "empty"],
)
async def test_invalid_job_indices_are_rejected(jobs):
    with pytest.raises(ValueError):
        await _dispatcher(FakeInvoker()).run(jobs, ListSink())


class ExplodingSink:
    async def send(self, record):
        raise RuntimeError("client went away")


@pytest.mark.asyncio
async def test_sink_failure_cancels_outstanding_invocations():
    invoker = FakeInvoker(lambda p: "x", delays={"#1#": 10.0})

    with pytest.raises(RuntimeError):
        await _dispatcher(invoker, concurrency=2).run(_jobs(["fast", "slow"]), ExplodingSink())

    # Cancelled invocations have unwound by the time the error surfaces
    assert invoker.in_flight == 0
