"""
Telemetry

OpenTelemetry tracing and metrics with no-op fallbacks.

Usage:
    from src.agenttest.common.telemetry import get_tracer, get_harness_metrics

    tracer = get_tracer(__name__)
    with tracer.start_as_current_span("execute_test") as span:
        span.set_attribute("agent.id", agent_id)
"""

from src.agenttest.common.telemetry.metrics import HarnessMetrics, get_harness_metrics
from src.agenttest.common.telemetry.setup import (
    TelemetryConfig,
    get_meter,
    get_tracer,
    init_telemetry,
    is_telemetry_enabled,
    shutdown_telemetry,
)

__all__ = [
    "HarnessMetrics",
    "TelemetryConfig",
    "get_harness_metrics",
    "get_meter",
    "get_tracer",
    "init_telemetry",
    "is_telemetry_enabled",
    "shutdown_telemetry",
]
