"""
Logging Utilities

Credential redaction for harness logs.
"""

from src.agenttest.common.logging.sanitizer import (
    SanitizingFilter,
    configure_sanitized_logging,
    get_sanitized_logger,
    sanitize,
)

__all__ = [
    "SanitizingFilter",
    "configure_sanitized_logging",
    "get_sanitized_logger",
    "sanitize",
]
