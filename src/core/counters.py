"""
Process-wide event ingestion counters.

Counts are used for logging ingestion frequency only; nothing in ranking or
filtering reads them. They live for the life of the process: there is no
in-process reset, a restart starts from zero.
"""

from collections import Counter
from threading import Lock
from typing import Dict, Tuple


class EventCounter:
    """Thread-safe per-type counter. Inject a fresh instance in tests."""

    def __init__(self):
        self._counts: Counter = Counter()
        self._total = 0
        self._lock = Lock()

    def increment(self, event_type: str) -> Tuple[int, Dict[str, int]]:
        """Count one event. Returns the new total and a snapshot of per-type counts."""
        with self._lock:
            self._counts[event_type] += 1
            self._total += 1
            return self._total, dict(self._counts)

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)


# Shared by every EventService that isn't handed its own counter
EVENT_COUNTER = EventCounter()
