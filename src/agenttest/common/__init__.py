"""
Shared infrastructure: logging, telemetry and resilience helpers.
"""
