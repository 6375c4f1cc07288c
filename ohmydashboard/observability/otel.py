"""Optional OpenTelemetry export with a Prometheus fallback.

Everything is off unless ``OMD_OTEL_ENABLED`` is set. The recording helpers
are always safe to call; with telemetry off they do nothing.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from fastapi import FastAPI

from ohmydashboard import config

logger = logging.getLogger("ohmydashboard.observability")

READS_METRIC = ("omd_storage_reads_total", "Raw record reads by record type, backend and result")
READ_LATENCY_METRIC = ("omd_storage_read_latency_ms", "Latency of raw record reads")
CACHE_LOOKUPS_METRIC = ("omd_cache_lookups_total", "Reader cache lookups by key family and result")
FALLBACKS_METRIC = ("omd_sqlite_cli_fallbacks_total", "Queries served by the sqlite3 CLI instead of the in-process driver")


@dataclass
class _Instruments:
    reads: Any = None
    read_latency: Any = None
    cache_lookups: Any = None
    fallbacks: Any = None


@dataclass
class _State:
    initialized: bool = False
    tracer: Any = None
    trace_provider: Any = None
    meter_provider: Any = None
    instrumentor: Any = None
    otel: Optional[_Instruments] = None
    prometheus: Optional[_Instruments] = None


_state = _State()


def _signal_endpoint(base_endpoint: str, signal_path: str) -> str:
    """``http://host:4318`` + ``/v1/traces`` without doubling ``/v1``."""
    endpoint = (base_endpoint or "").strip().rstrip("/")
    if not endpoint or endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/v1"):
        endpoint = endpoint[: -len("/v1")]
    return endpoint + signal_path


def _labels(**values: str) -> dict[str, str]:
    return {key: (value or "").strip() or "unknown" for key, value in values.items()}


def _setup_otel(app: FastAPI | None) -> bool:
    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning(f"OpenTelemetry packages missing, telemetry stays off: {exc}")
        return False

    resource = Resource.create(
        {"service.name": config.OTEL_SERVICE_NAME or "ohmydashboard", "service.namespace": "ohmydashboard"}
    )

    trace_provider = TracerProvider(resource=resource)
    span_exporter = OTLPSpanExporter(endpoint=_signal_endpoint(config.OTEL_ENDPOINT, "/v1/traces") or None)
    trace_provider.add_span_processor(BatchSpanProcessor(span_exporter))
    trace.set_tracer_provider(trace_provider)

    metric_exporter = OTLPMetricExporter(endpoint=_signal_endpoint(config.OTEL_ENDPOINT, "/v1/metrics") or None)
    meter_provider = MeterProvider(
        resource=resource,
        metric_readers=[PeriodicExportingMetricReader(metric_exporter)],
    )
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("ohmydashboard.reader")

    _state.otel = _Instruments(
        reads=meter.create_counter(READS_METRIC[0], unit="1", description=READS_METRIC[1]),
        read_latency=meter.create_histogram(READ_LATENCY_METRIC[0], unit="ms", description=READ_LATENCY_METRIC[1]),
        cache_lookups=meter.create_counter(CACHE_LOOKUPS_METRIC[0], unit="1", description=CACHE_LOOKUPS_METRIC[1]),
        fallbacks=meter.create_counter(FALLBACKS_METRIC[0], unit="1", description=FALLBACKS_METRIC[1]),
    )
    _state.tracer = trace.get_tracer("ohmydashboard.reader")
    _state.trace_provider = trace_provider
    _state.meter_provider = meter_provider
    _state.instrumentor = FastAPIInstrumentor()
    if app is not None:
        _state.instrumentor.instrument_app(app)
    return True


def _start_prometheus(port: int) -> None:
    try:
        from prometheus_client import Counter, Histogram, start_http_server

        start_http_server(port)
    except Exception as exc:  # noqa: BLE001
        logger.warning(f"Prometheus endpoint not started on port {port}: {exc}")
        return

    _state.prometheus = _Instruments(
        reads=Counter(*READS_METRIC, ["record", "backend", "result"]),
        read_latency=Histogram(*READ_LATENCY_METRIC, ["record", "backend"]),
        cache_lookups=Counter(*CACHE_LOOKUPS_METRIC, ["key", "result"]),
        fallbacks=Counter(*FALLBACKS_METRIC, ["reason"]),
    )
    logger.info(f"Prometheus metrics served on port {port}")


def initialize(app: FastAPI | None = None) -> None:
    """Set up exporters once per process; later calls only instrument ``app``."""
    if _state.initialized:
        if app is not None and _state.instrumentor is not None:
            _state.instrumentor.instrument_app(app)
        return
    _state.initialized = True

    if not config.OTEL_ENABLED:
        logger.info("Telemetry disabled (set OMD_OTEL_ENABLED=true to export)")
        return
    if not _setup_otel(app):
        return
    if config.PROM_PORT > 0:
        _start_prometheus(config.PROM_PORT)
    logger.info(f"OpenTelemetry exporting to {config.OTEL_ENDPOINT}")


def shutdown(app: FastAPI | None = None) -> None:
    if not _state.initialized:
        return
    steps = []
    if app is not None and _state.instrumentor is not None:
        steps.append(("instrumentation", lambda: _state.instrumentor.uninstrument_app(app)))
    if _state.meter_provider is not None:
        steps.append(("meter provider", _state.meter_provider.shutdown))
    if _state.trace_provider is not None:
        steps.append(("trace provider", _state.trace_provider.shutdown))
    for name, step in steps:
        try:
            step()
        except Exception as exc:  # noqa: BLE001
            logger.debug(f"Telemetry {name} shutdown failed: {exc}")
    _state.otel = None
    _state.tracer = None


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None) -> Iterator[Any]:
    if _state.tracer is None:
        yield None
        return
    with _state.tracer.start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


def record_read(record: str, backend: str, result: str, duration_ms: float) -> None:
    labels = _labels(record=record, backend=backend, result=result)
    latency_labels = _labels(record=record, backend=backend)
    latency = max(0.0, float(duration_ms))
    if _state.otel is not None:
        _state.otel.reads.add(1, labels)
        _state.otel.read_latency.record(latency, labels)
    if _state.prometheus is not None:
        _state.prometheus.reads.labels(**labels).inc()
        _state.prometheus.read_latency.labels(**latency_labels).observe(latency)


def record_cache_lookup(key: str, hit: bool) -> None:
    # "messages:<sessionId>" collapses to "messages:session" to bound label cardinality.
    family = key.split(":", 1)[0] + (":session" if ":" in key else "")
    labels = _labels(key=family, result="hit" if hit else "miss")
    if _state.otel is not None:
        _state.otel.cache_lookups.add(1, labels)
    if _state.prometheus is not None:
        _state.prometheus.cache_lookups.labels(**labels).inc()


def record_query_fallback(reason: str) -> None:
    labels = _labels(reason=reason)
    if _state.otel is not None:
        _state.otel.fallbacks.add(1, labels)
    if _state.prometheus is not None:
        _state.prometheus.fallbacks.labels(**labels).inc()
