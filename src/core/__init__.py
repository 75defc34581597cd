"""
Core module for cross-cutting concerns.

This module provides:
- Structured logging configuration
- Request tracing middleware
- Process-wide event counters
- Common utilities
"""

from core.counters import EVENT_COUNTER, EventCounter
from core.logging import configure_logging, get_logger
from core.utils import l2_normalize, to_vector, vector_to_list

__all__ = [
    "configure_logging",
    "get_logger",
    "EVENT_COUNTER",
    "EventCounter",
    "l2_normalize",
    "to_vector",
    "vector_to_list",
]
