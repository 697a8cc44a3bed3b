"""Streaming workbench endpoints: grammar correction and translation as NDJSON."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ...core.config import HostConfig, settings
from ...core.constants import NDJSON_MEDIA_TYPE, STREAM_HEADERS
from ...core.exceptions import HostUnavailableError, InputError
from ...services.dispatcher import Job, OrderedDispatcher
from ...services.gateway import ModelInvoker
from ...services.host_monitor import ModelHostMonitor
from ...services.prompts import GrammarOptions, TranslateOptions
from ...services.segmenter import Unit, segment
from ...services.streaming import NDJSONSink, stream_ndjson
from ...services.workbench import (
    grammar_jobs,
    grammar_renderer,
    render_translation,
    translation_jobs,
)
from ..dependencies import get_host_config, get_host_monitor, get_invoker
from ..schemas import FixStreamRequest, TranslateStreamRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Streaming"])


def _require_units(text: Any, allow_blank: bool = False) -> list[Unit]:
    """
    Reject a missing, non-string or empty text with 400.

    With ``allow_blank`` a whitespace-only text is accepted and yields no
    units, so the stream completes without records.
    """
    if not isinstance(text, str) or not text or (not allow_blank and not text.strip()):
        raise InputError()
    return segment(text)


async def _require_host(monitor: ModelHostMonitor, config: HostConfig) -> None:
    """Fail fast with 503 before any output when the host is down."""
    status = await monitor.ensure_running(allow_start=True)
    if not status.reachable:
        raise HostUnavailableError(config.host, config.port)


def _stream(
    request: Request,
    invoker: ModelInvoker,
    config: HostConfig,
    model: str | None,
    jobs: list[Job],
    render,
) -> StreamingResponse:
    dispatcher = OrderedDispatcher(
        invoker,
        model=model or settings.DEFAULT_MODEL,
        concurrency=config.concurrency,
        timeout=config.run_timeout,
        pace=settings.STREAM_PACE_MS / 1000.0,
        render=render,
    )

    async def produce(sink: NDJSONSink) -> None:
        await dispatcher.run(jobs, sink)

    request_id = getattr(request.state, "request_id", "-")
    return StreamingResponse(
        stream_ndjson(produce, stream_id=request_id),
        media_type=NDJSON_MEDIA_TYPE,
        headers=STREAM_HEADERS,
    )


@router.post("/fix-stream")
async def fix_stream(
    body: FixStreamRequest,
    request: Request,
    config: HostConfig = Depends(get_host_config),
    monitor: ModelHostMonitor = Depends(get_host_monitor),
    invoker: ModelInvoker = Depends(get_invoker),
):
    """
    Correct grammar paragraph by paragraph.

    Streams one ``{index, original, corrected}`` line per paragraph in input
    order; a failed paragraph carries ``"(error)"`` as its correction.
    """
    units = _require_units(body.text, allow_blank=True)
    await _require_host(monitor, config)

    options = GrammarOptions.from_raw(body.options)
    logger.info(
        f"Grammar stream: {len(units)} paragraphs",
        extra={"model": body.model or settings.DEFAULT_MODEL, "total": len(units)},
    )
    return _stream(
        request, invoker, config, body.model, grammar_jobs(units, options), grammar_renderer(units)
    )


@router.post("/translate-stream")
async def translate_stream(
    body: TranslateStreamRequest,
    request: Request,
    config: HostConfig = Depends(get_host_config),
    monitor: ModelHostMonitor = Depends(get_host_monitor),
    invoker: ModelInvoker = Depends(get_invoker),
):
    """
    Translate paragraphs in chunks.

    Streams one ``{index, translated}`` line per paragraph in input order.
    """
    units = _require_units(body.text)
    await _require_host(monitor, config)

    options = TranslateOptions.from_raw(body.options)
    jobs = translation_jobs(units, options)
    logger.info(
        f"Translation stream: {len(units)} paragraphs in {len(jobs)} chunks "
        f"({options.source_lang} -> {options.target_lang})",
        extra={"model": body.model or settings.DEFAULT_MODEL, "total": len(units)},
    )
    return _stream(request, invoker, config, body.model, jobs, render_translation)


__all__ = ["router"]
