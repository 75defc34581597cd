"""
Collaborator interfaces consumed by the feed pipeline.

Every external system (catalog store, event log, embedding API, business
service, vector index) is reached through one of these protocols, so the
pipeline can run against Supabase in production and in-memory stores in
tests.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence

from feed.models import (
    CatalogItemBase,
    Event,
    UserEmbedding,
    UserPreferences,
    VendorTrustRecord,
)


class CatalogRepository(Protocol):
    def find_all(
        self,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[CatalogItemBase]:
        """
        List catalog items.

        Args:
            filters: Equality filters on top-level fields (e.g. {"vendor": "v1"})
            sort: Field name, prefixed with "-" for descending
            limit: Max rows
        """
        ...

    def find_by_id(self, item_id: str) -> Optional[CatalogItemBase]: ...

    def update(self, item_id: str, changes: Dict[str, Any]) -> None: ...

    def add(self, item: CatalogItemBase) -> CatalogItemBase:
        """Insert or replace an item, keyed by item_id."""
        ...


class EventLog(Protocol):
    def log_event(self, event: Event) -> None: ...

    def get_recent_events(
        self,
        user_id: str,
        limit: int = 100,
        since: Optional[datetime] = None,
    ) -> List[Event]:
        """Events for a user, newest first."""
        ...


class EmbeddingProvider(Protocol):
    def embed(self, text: str) -> List[float]:
        """Embed text into a fixed-length (1536-d) vector."""
        ...


class VendorTrustService(Protocol):
    def find_one(self, vendor_id: str) -> Optional[VendorTrustRecord]: ...


class VectorSearch(Protocol):
    def search(
        self,
        vector: Sequence[float],
        index_name: str,
        limit: int,
        num_candidates: int,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[CatalogItemBase]:
        """Approximate nearest neighbours; results carry `score`."""
        ...


class UserEmbeddingStore(Protocol):
    def upsert(self, embedding: UserEmbedding) -> None: ...

    def get(self, user_id: str) -> Optional[UserEmbedding]: ...


class UserProfileStore(Protocol):
    def find_by_id(self, user_id: str) -> Optional[UserPreferences]: ...
