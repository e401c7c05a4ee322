"""
Pytest configuration for unit tests.

Disables telemetry so tracers and meters are no-ops.
"""

import os


def pytest_configure(config):
    """Configure telemetry for unit tests."""
    # Disable telemetry for unit tests to avoid OTEL SDK conflicts with mocks
    # This ensures get_tracer() returns a no-op tracer instead of a real one
    os.environ["AGENTTEST_TELEMETRY_ENABLED"] = "false"
