"""Shared telemetry: logging setup and tracing helpers."""

from bookstore.shared.telemetry.logging import setup_logging
from bookstore.shared.telemetry.tracing import TracedOperation, add_span_attributes

__all__ = [
    "setup_logging",
    "TracedOperation",
    "add_span_attributes",
]
