"""
OpenTelemetry Setup

Initializes tracing and metrics export for the harness. Falls back to no-op
tracers and meters when OpenTelemetry is not installed or when
AGENTTEST_TELEMETRY_ENABLED is false, so instrumented code never has to
check.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

_otel_available = False
_telemetry_initialized = False

try:
    from opentelemetry import metrics, trace
    from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
    from opentelemetry.sdk.metrics.view import ExplicitBucketHistogramAggregation, View
    from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    _otel_available = True
except ImportError:
    logger.debug("OpenTelemetry not installed, telemetry will be disabled")

TELEMETRY_ENV_VAR = "AGENTTEST_TELEMETRY_ENABLED"

# Agent response times span milliseconds to minutes
DURATION_BUCKETS_MS = [10, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000, 60000]


@dataclass
class TelemetryConfig:
    """Exporter and resource settings."""

    service_name: str = "agenttest"
    service_version: str = "0.1.0"
    environment: str = field(default_factory=lambda: os.getenv("AGENTTEST_ENV", "development"))
    otlp_endpoint: str = field(
        default_factory=lambda: os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
    )
    otlp_insecure: bool = True
    tracing_enabled: bool = True
    metrics_enabled: bool = True
    metrics_export_interval_ms: int = 10000


_tracer_provider: Any = None
_meter_provider: Any = None


def _disabled_by_env() -> bool:
    return os.getenv(TELEMETRY_ENV_VAR, "true").lower() in ("false", "0", "no", "off")


def init_telemetry(config: TelemetryConfig | None = None) -> bool:
    """
    Initialize OpenTelemetry once per process.

    Returns:
        True if exporters were installed, False if disabled or unavailable
    """
    global _telemetry_initialized, _tracer_provider, _meter_provider

    if _telemetry_initialized:
        return _tracer_provider is not None or _meter_provider is not None

    _telemetry_initialized = True

    if _disabled_by_env():
        logger.info(f"Telemetry disabled via {TELEMETRY_ENV_VAR}")
        return False

    if not _otel_available:
        logger.warning("OpenTelemetry not installed, telemetry disabled")
        return False

    config = config or TelemetryConfig()
    try:
        resource = Resource.create(
            {
                SERVICE_NAME: config.service_name,
                SERVICE_VERSION: config.service_version,
                "deployment.environment": config.environment,
            }
        )

        if config.tracing_enabled:
            _tracer_provider = TracerProvider(resource=resource)
            _tracer_provider.add_span_processor(
                BatchSpanProcessor(
                    OTLPSpanExporter(endpoint=config.otlp_endpoint, insecure=config.otlp_insecure)
                )
            )
            trace.set_tracer_provider(_tracer_provider)
            logger.info(f"Tracing initialized, exporting to {config.otlp_endpoint}")

        if config.metrics_enabled:
            reader = PeriodicExportingMetricReader(
                OTLPMetricExporter(endpoint=config.otlp_endpoint, insecure=config.otlp_insecure),
                export_interval_millis=config.metrics_export_interval_ms,
            )
            duration_view = View(
                instrument_name="agenttest_execution_duration_ms",
                aggregation=ExplicitBucketHistogramAggregation(DURATION_BUCKETS_MS),
            )
            _meter_provider = MeterProvider(
                resource=resource,
                metric_readers=[reader],
                views=[duration_view],
            )
            metrics.set_meter_provider(_meter_provider)
            logger.info(f"Metrics initialized, exporting to {config.otlp_endpoint}")

        return True

    except Exception as e:
        logger.error(f"Failed to initialize telemetry: {e}")
        return False


def shutdown_telemetry() -> None:
    """Flush and shut down exporters."""
    global _tracer_provider, _meter_provider, _telemetry_initialized

    if not _telemetry_initialized:
        return

    try:
        if _meter_provider:
            _meter_provider.force_flush(timeout_millis=5000)
            _meter_provider.shutdown()
        if _tracer_provider:
            _tracer_provider.force_flush(timeout_millis=5000)
            _tracer_provider.shutdown()
    except Exception as e:
        logger.warning(f"Error during telemetry shutdown: {e}")
    finally:
        _tracer_provider = None
        _meter_provider = None
        _telemetry_initialized = False


def get_tracer(name: str = "agenttest") -> Any:
    """OpenTelemetry tracer, or a no-op tracer when telemetry is off."""
    if not _otel_available or _disabled_by_env():
        return _NoOpTracer()
    return trace.get_tracer(name)


def get_meter(name: str = "agenttest") -> Any:
    """OpenTelemetry meter, or a no-op meter when telemetry is off."""
    if not _otel_available or _disabled_by_env():
        return _NoOpMeter()
    return metrics.get_meter(name)


def is_telemetry_enabled() -> bool:
    return _otel_available and not _disabled_by_env()


# === No-Op Implementations ===


class _NoOpSpan:
    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def set_attributes(self, attributes: dict[str, Any]) -> None:
        pass

    def record_exception(self, exception: BaseException) -> None:
        pass

    def set_status(self, status: Any) -> None:
        pass

    def __enter__(self) -> _NoOpSpan:
        return self

    def __exit__(self, *args: Any) -> None:
        pass


class _NoOpTracer:
    def start_as_current_span(self, name: str, **kwargs: Any) -> _NoOpSpan:
        return _NoOpSpan()


class _NoOpInstrument:
    def add(self, _amount: int | float, _attributes: dict[str, Any] | None = None) -> None:
        pass

    def record(self, _value: int | float, _attributes: dict[str, Any] | None = None) -> None:
        pass


class _NoOpMeter:
    def create_counter(self, name: str, **kwargs: Any) -> _NoOpInstrument:
        return _NoOpInstrument()

    def create_histogram(self, name: str, **kwargs: Any) -> _NoOpInstrument:
        return _NoOpInstrument()
