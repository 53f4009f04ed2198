"""Observability helpers."""

from danmu_archive.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_ingestion,
    record_skips,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_ingestion",
    "record_skips",
]
