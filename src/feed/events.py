"""
Event ingestion.

Appends behavioral events to the event log and keeps process-wide
ingestion counters for logging. Counters never feed back into ranking.
"""

from datetime import datetime
from typing import List, Optional

from core.counters import EVENT_COUNTER, EventCounter
from core.logging import get_logger
from feed.interfaces import EventLog
from feed.models import Event


logger = get_logger(__name__)

STATS_LOG_INTERVAL = 100


class EventService:
    def __init__(self, event_log: EventLog, counter: Optional[EventCounter] = None):
        self.event_log = event_log
        self.counter = counter if counter is not None else EVENT_COUNTER

    def log_event(self, event: Event) -> Event:
        """Persist an event. Storage errors propagate to the caller."""
        total, counts = self.counter.increment(event.event_type.value)
        if total % STATS_LOG_INTERVAL == 0:
            logger.info("Event ingestion stats", total=total, counts=counts)

        self.event_log.log_event(event)
        return event

    def get_recent_events(
        self,
        user_id: str,
        limit: int = 50,
        since: Optional[datetime] = None,
    ) -> List[Event]:
        return self.event_log.get_recent_events(user_id, limit, since)
