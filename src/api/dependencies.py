"""
FastAPI dependencies.

The orchestrator is built once per process from settings. Tests swap it
with app.dependency_overrides[get_orchestrator].
"""

import threading
from typing import Optional

from fastapi import Depends

from core.logging import get_logger
from feed.events import EventService
from feed.interfaces import CatalogRepository
from feed.pipeline import FeedOrchestrator, build_orchestrator


logger = get_logger(__name__)

_orchestrator: Optional[FeedOrchestrator] = None
_orchestrator_lock = threading.Lock()


def get_orchestrator() -> FeedOrchestrator:
    """Get or create the FeedOrchestrator singleton (thread-safe)."""
    global _orchestrator
    if _orchestrator is None:
        with _orchestrator_lock:
            if _orchestrator is None:
                _orchestrator = build_orchestrator()
                logger.info("Feed orchestrator initialized")
    return _orchestrator


def get_event_service(orchestrator: FeedOrchestrator = Depends(get_orchestrator)) -> EventService:
    return orchestrator.events


def get_catalog(orchestrator: FeedOrchestrator = Depends(get_orchestrator)) -> CatalogRepository:
    return orchestrator.storage.catalog
