"""
Candidate retrieval.

Personalized nearest-neighbor search over item style embeddings, topped up
with trending (most recent) catalog items when the search comes back short
or fails. Retrieval never raises: the worst case is trending-only or empty.
"""

from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Dict, List, Optional, Sequence

from config.constants import STYLE_INDEX
from core.logging import get_logger
from feed.interfaces import CatalogRepository, VectorSearch
from feed.models import CatalogItemBase


logger = get_logger(__name__)

# Shared pool so a hung search call never blocks the request thread on exit
_SEARCH_EXECUTOR = ThreadPoolExecutor(max_workers=8, thread_name_prefix="vector-search")


def dedupe_items(*batches: Sequence[CatalogItemBase]) -> List[CatalogItemBase]:
    """
    Merge result batches keyed by item_id.

    The first occurrence of an id wins and keeps its position, so earlier
    batches (vector search) take precedence over later ones (trending).
    """
    merged: "OrderedDict[str, CatalogItemBase]" = OrderedDict()
    for batch in batches:
        for item in batch:
            if item.item_id not in merged:
                merged[item.item_id] = item
    return list(merged.values())


class RetrievalService:
    """Two-source candidate retrieval with trending fallback."""

    def __init__(
        self,
        vector_search: Optional[VectorSearch],
        catalog: CatalogRepository,
        timeout_seconds: float = 2.0,
        index_name: str = STYLE_INDEX,
    ):
        self.vector_search = vector_search
        self.catalog = catalog
        self.timeout_seconds = timeout_seconds
        self.index_name = index_name

    def retrieve_candidates(
        self,
        style_vector: Optional[Sequence[float]],
        limit: int = 150,
        num_candidates: int = 1000,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[CatalogItemBase]:
        """
        Retrieve up to `limit` candidates for a (possibly absent) style vector.

        Args:
            style_vector: Blended user/session vector, or None for cold users
            limit: Max candidates to return
            num_candidates: ANN candidate pool size for the index
            filters: Pre-filters passed through to the vector search

        Returns:
            Vector-search results first (in score order), then trending items
            not already present.
        """
        personalized: List[CatalogItemBase] = []
        if style_vector is not None:
            personalized = self._vector_search(style_vector, limit, num_candidates, filters)

        trending: List[CatalogItemBase] = []
        distinct_personalized = len({item.item_id for item in personalized})
        if distinct_personalized < limit:
            remaining = limit - distinct_personalized
            # Over-fetch so overlaps with the personalized set still fill the gap
            trending = self.retrieve_trending(remaining * 2)

        candidates = dedupe_items(personalized, trending)[:limit]

        logger.debug(
            "Retrieved candidates",
            personalized=len(personalized),
            trending=len(trending),
            returned=len(candidates),
        )
        return candidates

    def retrieve_trending(self, limit: int) -> List[CatalogItemBase]:
        """Most recent catalog items. Failures degrade to an empty list."""
        if limit <= 0:
            return []
        try:
            return self.catalog.find_all(sort="-created_at", limit=limit)
        except Exception as e:
            logger.error("Trending fetch failed", error=str(e))
            return []

    def _vector_search(
        self,
        style_vector: Sequence[float],
        limit: int,
        num_candidates: int,
        filters: Optional[Dict[str, Any]],
    ) -> List[CatalogItemBase]:
        if self.vector_search is None:
            return []

        future = _SEARCH_EXECUTOR.submit(
            self.vector_search.search,
            style_vector,
            self.index_name,
            limit,
            num_candidates,
            filters,
        )
        try:
            return list(future.result(timeout=self.timeout_seconds))
        except FutureTimeoutError:
            future.cancel()
            logger.error(
                "Vector search timed out, falling back to trending",
                timeout_seconds=self.timeout_seconds,
            )
        except Exception as e:
            logger.error("Vector search failed, falling back to trending", error=str(e))
        return []
