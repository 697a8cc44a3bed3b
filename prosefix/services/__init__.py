"""Prosefix services: segmentation, prompting, dispatch and model host access."""

from .dispatcher import DispatchStats, Job, OrderedDispatcher, Result, ResultStatus
from .gateway import ModelGateway, ModelInvoker
from .host_monitor import HostStatus, ModelHostMonitor
from .segmenter import Chunk, Unit, chunk_units, segment, split_paragraphs
from .streaming import NDJSONSink, stream_ndjson

__all__ = [
    "Chunk",
    "DispatchStats",
    "HostStatus",
    "Job",
    "ModelGateway",
    "ModelHostMonitor",
    "ModelInvoker",
    "NDJSONSink",
    "OrderedDispatcher",
    "Result",
    "ResultStatus",
    "Unit",
    "chunk_units",
    "segment",
    "split_paragraphs",
    "stream_ndjson",
]
