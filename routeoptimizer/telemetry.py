"""OpenTelemetry setup and span helpers for the optimizer stages."""

from __future__ import annotations

import os
import sys
from contextlib import nullcontext
from typing import Any, ContextManager, Mapping, Sequence, TextIO

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
    SpanExportResult,
)

SERVICE_NAME = "routeoptimizer"

_INITIALIZED = False
_ENABLED = False


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def is_enabled() -> bool:
    return _as_bool(os.getenv("ROUTEOPT_TRACING_ENABLED"), default=True)


def configure_telemetry() -> bool:
    """Configure the global tracer provider once. Returns tracing enabled state."""
    global _INITIALIZED
    global _ENABLED

    if _INITIALIZED:
        return _ENABLED

    _ENABLED = is_enabled()
    if not _ENABLED:
        _INITIALIZED = True
        return False

    provider = TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    exporter_kind = os.getenv("ROUTEOPT_TRACING_EXPORTER", "console").strip().lower()
    if exporter_kind == "otlp":
        endpoint = os.getenv("ROUTEOPT_OTLP_ENDPOINT", "http://localhost:4318/v1/traces")
        timeout_ms = int(os.getenv("ROUTEOPT_OTLP_TIMEOUT_MS", "1000"))
        exporter: SpanExporter = OTLPSpanExporter(endpoint=endpoint, timeout=timeout_ms / 1000)
    elif os.getenv("ROUTEOPT_TRACING_CONSOLE_MODE", "compact").strip().lower() == "raw":
        exporter = ConsoleSpanExporter(out=sys.stderr)
    else:
        exporter = _CompactConsoleSpanExporter(out=sys.stderr)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    _INITIALIZED = True
    return True


def start_span(name: str) -> ContextManager[Any]:
    """Start a span when tracing is enabled; yields None otherwise."""
    if not configure_telemetry():
        return nullcontext()
    return trace.get_tracer(SERVICE_NAME).start_as_current_span(name)


def record_attributes(span: Any, attributes: Mapping[str, Any]) -> None:
    if span is None:
        return
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, value)


class _CompactConsoleSpanExporter(SpanExporter):
    """Console exporter printing one line per finished stage span."""

    _INTERESTING_ATTRS = (
        "route.candidates",
        "route.valid",
        "route.discarded",
        "route.evaluated",
        "route.options",
        "route.top_pricing_source",
        "route.impact_cards",
        "route.impact_compatible",
        "route.violations",
    )

    def __init__(self, out: TextIO) -> None:
        self._out = out

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        for span in spans:
            try:
                self._out.write(_format_span_line(span, self._INTERESTING_ATTRS) + "\n")
            except ValueError:
                # Stream may be closed during process shutdown under capture.
                return SpanExportResult.SUCCESS
        try:
            self._out.flush()
        except ValueError:
            return SpanExportResult.SUCCESS
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        return None


def _format_span_line(span: ReadableSpan, attrs_whitelist: tuple[str, ...]) -> str:
    duration_ms = max(0.0, ((span.end_time or 0) - (span.start_time or 0)) / 1_000_000)
    status_text = "ERR" if span.status.status_code.name == "ERROR" else "OK"
    attributes = span.attributes or {}
    attr_bits = [
        f"{key.removeprefix('route.')}={_safe_text(attributes[key])}"
        for key in attrs_whitelist
        if key in attributes and _safe_text(attributes[key])
    ]
    if span.status.description:
        attr_bits.append(f"error={_safe_text(span.status.description)}")
    line = f"[trace] {span.name} | {duration_ms:.1f}ms | {status_text}"
    if attr_bits:
        line += " | " + " ".join(attr_bits[:5])
    return line


def _safe_text(value: Any, max_len: int = 80) -> str:
    text = str(value).replace("\n", " ").replace("\r", " ")
    if len(text) > max_len:
        return text[: max_len - 1] + "…"
    return text
