"""
Storage backends for the feed pipeline.

Two implementations of every collaborator in feed.interfaces:

- Supabase (production): tables catalog_items, events, user_embeddings,
  users, businesses; pgvector search through the match_catalog_items RPC.
- In-memory (development/testing): thread-safe dict stores. Vector search
  is an exact cosine scan with numpy.

Use create_storage(settings) to build the set selected by
settings.storage_backend.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np

from config.constants import FABRIC_INDEX, STYLE_INDEX
from config.settings import Settings
from core.logging import get_logger
from feed.models import (
    CatalogItemBase,
    Event,
    UserEmbedding,
    UserPreferences,
    VendorTrustRecord,
    parse_catalog_item,
)


logger = get_logger(__name__)


# Vector index name -> embedding field it searches
INDEX_FIELDS: Dict[str, str] = {
    STYLE_INDEX: "e_style",
    FABRIC_INDEX: "e_fabric",
}


def _embedding_field(index_name: str) -> str:
    try:
        return INDEX_FIELDS[index_name]
    except KeyError:
        raise ValueError(f"Unknown vector index: {index_name}")


# =============================================================================
# Supabase Backend
# =============================================================================

class SupabaseCatalogRepository:
    """Catalog items stored in the `catalog_items` table."""

    TABLE = "catalog_items"

    def __init__(self, supabase):
        self.supabase = supabase

    def find_all(
        self,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[CatalogItemBase]:
        query = self.supabase.table(self.TABLE).select("*")
        for field, value in (filters or {}).items():
            query = query.eq(field, value)
        if sort:
            query = query.order(sort.lstrip("-"), desc=sort.startswith("-"))
        if limit is not None:
            query = query.limit(limit)
        result = query.execute()
        return _rows_to_items(result.data or [])

    def find_by_id(self, item_id: str) -> Optional[CatalogItemBase]:
        result = (
            self.supabase.table(self.TABLE)
            .select("*")
            .eq("item_id", item_id)
            .limit(1)
            .execute()
        )
        rows = _rows_to_items(result.data or [])
        return rows[0] if rows else None

    def update(self, item_id: str, changes: Dict[str, Any]) -> None:
        self.supabase.table(self.TABLE).update(_jsonable(changes)).eq("item_id", item_id).execute()

    def add(self, item: CatalogItemBase) -> CatalogItemBase:
        self.supabase.table(self.TABLE).upsert(
            item.model_dump(mode="json", exclude={"score"}), on_conflict="item_id"
        ).execute()
        return item


class SupabaseVectorSearch:
    """pgvector similarity search exposed through a Postgres function."""

    def __init__(self, supabase, rpc_name: str = "match_catalog_items"):
        self.supabase = supabase
        self.rpc_name = rpc_name

    def search(
        self,
        vector: Sequence[float],
        index_name: str,
        limit: int,
        num_candidates: int,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[CatalogItemBase]:
        params = {
            "query_embedding": [float(v) for v in vector],
            "embedding_field": _embedding_field(index_name),
            "match_count": limit,
            "num_candidates": num_candidates,
            "filters": filters or {},
        }
        result = self.supabase.rpc(self.rpc_name, params).execute()
        rows = []
        for row in result.data or []:
            row = dict(row)
            row["score"] = float(row.pop("similarity", 0.0) or 0.0)
            rows.append(row)
        return _rows_to_items(rows)


class SupabaseEventLog:
    TABLE = "events"

    def __init__(self, supabase):
        self.supabase = supabase

    def log_event(self, event: Event) -> None:
        self.supabase.table(self.TABLE).insert(event.model_dump(mode="json")).execute()

    def get_recent_events(
        self,
        user_id: str,
        limit: int = 100,
        since: Optional[datetime] = None,
    ) -> List[Event]:
        query = self.supabase.table(self.TABLE).select("*").eq("user_id", user_id)
        if since is not None:
            query = query.gte("timestamp", since.isoformat())
        result = query.order("timestamp", desc=True).limit(limit).execute()

        events = []
        for row in result.data or []:
            try:
                events.append(Event.model_validate(row))
            except ValueError as e:
                logger.warning("Skipping malformed event row", user_id=user_id, error=str(e))
        return events


class SupabaseUserEmbeddingStore:
    TABLE = "user_embeddings"

    def __init__(self, supabase):
        self.supabase = supabase

    def upsert(self, embedding: UserEmbedding) -> None:
        self.supabase.table(self.TABLE).upsert(
            embedding.model_dump(mode="json"),
            on_conflict="user_id",
        ).execute()

    def get(self, user_id: str) -> Optional[UserEmbedding]:
        result = (
            self.supabase.table(self.TABLE)
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        return UserEmbedding.model_validate(result.data[0])


class SupabaseUserProfileStore:
    """Read-only view over the `users` table."""

    TABLE = "users"

    def __init__(self, supabase):
        self.supabase = supabase

    def find_by_id(self, user_id: str) -> Optional[UserPreferences]:
        result = (
            self.supabase.table(self.TABLE)
            .select("*")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        row = result.data[0]
        return UserPreferences(
            user_id=str(row.get("id", user_id)),
            wears_preference=row.get("wears_preference"),
            aesthetic_preferences=row.get("aesthetic_preferences") or [],
            body_fit=row.get("body_fit") or [],
            measurements=row.get("measurements") or {},
            blocked_vendors=row.get("blocked_vendors") or [],
            gender=row.get("gender"),
        )


class SupabaseVendorTrustService:
    """Vendor standing from the `businesses` table."""

    TABLE = "businesses"

    def __init__(self, supabase):
        self.supabase = supabase

    def find_one(self, vendor_id: str) -> Optional[VendorTrustRecord]:
        result = (
            self.supabase.table(self.TABLE)
            .select("id,name,is_active,status,success_rate,is_featured,quality_score")
            .eq("id", vendor_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        row = result.data[0]
        return VendorTrustRecord(
            vendor_id=str(row.get("id", vendor_id)),
            name=row.get("name"),
            is_active=row.get("is_active", True) is not False,
            status=row.get("status") or None,
            success_rate=row.get("success_rate"),
            is_featured=bool(row.get("is_featured")),
            quality_score=row.get("quality_score"),
        )


def _rows_to_items(rows: Iterable[Dict[str, Any]]) -> List[CatalogItemBase]:
    items = []
    for row in rows:
        try:
            items.append(parse_catalog_item(row))
        except ValueError as e:
            logger.warning(
                "Skipping malformed catalog row",
                item_id=row.get("item_id"),
                error=str(e),
            )
    return items


def _jsonable(changes: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for key, value in changes.items():
        if hasattr(value, "model_dump"):
            value = value.model_dump(mode="json")
        elif isinstance(value, datetime):
            value = value.isoformat()
        out[key] = value
    return out


# =============================================================================
# In-Memory Backend
# =============================================================================

class InMemoryCatalogRepository:
    """
    Catalog kept in a dict, preserving insertion order.

    Also implements VectorSearch so a single store backs both the catalog and
    the index in development and tests.
    """

    def __init__(self, items: Optional[Iterable[Any]] = None):
        self._items: Dict[str, CatalogItemBase] = {}
        self._lock = Lock()
        for item in items or []:
            self.add(item)

    def add(self, item: Any) -> CatalogItemBase:
        parsed = parse_catalog_item(item)
        with self._lock:
            self._items[parsed.item_id] = parsed
        return parsed

    def __len__(self) -> int:
        return len(self._items)

    def find_all(
        self,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[CatalogItemBase]:
        with self._lock:
            items = list(self._items.values())

        if filters:
            items = [
                item for item in items
                if all(getattr(item, field, None) == value for field, value in filters.items())
            ]

        if sort:
            field = sort.lstrip("-")
            descending = sort.startswith("-")
            present = [i for i in items if getattr(i, field, None) is not None]
            missing = [i for i in items if getattr(i, field, None) is None]
            present.sort(key=lambda i: getattr(i, field), reverse=descending)
            items = present + missing

        if limit is not None:
            items = items[:limit]
        return items

    def find_by_id(self, item_id: str) -> Optional[CatalogItemBase]:
        with self._lock:
            return self._items.get(item_id)

    def update(self, item_id: str, changes: Dict[str, Any]) -> None:
        with self._lock:
            current = self._items.get(item_id)
            if current is None:
                return
            data = current.model_dump()
            data.update(_jsonable(changes))
            self._items[item_id] = parse_catalog_item(data)

    def search(
        self,
        vector: Sequence[float],
        index_name: str,
        limit: int,
        num_candidates: int,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[CatalogItemBase]:
        """Exact cosine search over items that have the indexed embedding."""
        field = _embedding_field(index_name)
        query = np.asarray(vector, dtype=np.float64)
        query_norm = float(np.linalg.norm(query))
        if query_norm == 0.0:
            return []

        scored = []
        for item in self.find_all(filters=filters):
            values = getattr(item.embeddings, field, None) if item.embeddings else None
            if not values or len(values) != len(query):
                continue
            emb = np.asarray(values, dtype=np.float64)
            emb_norm = float(np.linalg.norm(emb))
            if emb_norm == 0.0:
                continue
            similarity = float(np.dot(query, emb) / (query_norm * emb_norm))
            scored.append((similarity, item))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [item.model_copy(update={"score": score}) for score, item in scored[:limit]]


class InMemoryEventLog:
    def __init__(self):
        self._events: List[Event] = []
        self._lock = Lock()

    def log_event(self, event: Event) -> None:
        with self._lock:
            self._events.append(event)

    def get_recent_events(
        self,
        user_id: str,
        limit: int = 100,
        since: Optional[datetime] = None,
    ) -> List[Event]:
        with self._lock:
            events = [e for e in self._events if e.user_id == user_id]
        if since is not None:
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            events = [e for e in events if e.timestamp >= since]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]


class InMemoryUserEmbeddingStore:
    def __init__(self):
        self._embeddings: Dict[str, UserEmbedding] = {}
        self._lock = Lock()

    def upsert(self, embedding: UserEmbedding) -> None:
        with self._lock:
            self._embeddings[embedding.user_id] = embedding

    def get(self, user_id: str) -> Optional[UserEmbedding]:
        with self._lock:
            return self._embeddings.get(user_id)


class InMemoryUserProfileStore:
    def __init__(self, profiles: Optional[Iterable[UserPreferences]] = None):
        self._profiles: Dict[str, UserPreferences] = {p.user_id: p for p in profiles or []}
        self._lock = Lock()

    def add(self, profile: UserPreferences) -> None:
        with self._lock:
            self._profiles[profile.user_id] = profile

    def find_by_id(self, user_id: str) -> Optional[UserPreferences]:
        with self._lock:
            return self._profiles.get(user_id)


class InMemoryVendorTrustService:
    def __init__(self, records: Optional[Iterable[VendorTrustRecord]] = None):
        self._records: Dict[str, VendorTrustRecord] = {r.vendor_id: r for r in records or []}
        self._lock = Lock()

    def add(self, record: VendorTrustRecord) -> None:
        with self._lock:
            self._records[record.vendor_id] = record

    def find_one(self, vendor_id: str) -> Optional[VendorTrustRecord]:
        with self._lock:
            return self._records.get(vendor_id)


# =============================================================================
# Factory
# =============================================================================

@dataclass
class StorageBackends:
    """The full set of collaborators one orchestrator needs."""
    catalog: Any
    vector_search: Any
    events: Any
    user_embeddings: Any
    user_profiles: Any
    vendor_trust: Any


def create_memory_storage(
    items: Optional[Iterable[Any]] = None,
    profiles: Optional[Iterable[UserPreferences]] = None,
    vendors: Optional[Iterable[VendorTrustRecord]] = None,
) -> StorageBackends:
    catalog = InMemoryCatalogRepository(items)
    return StorageBackends(
        catalog=catalog,
        vector_search=catalog,
        events=InMemoryEventLog(),
        user_embeddings=InMemoryUserEmbeddingStore(),
        user_profiles=InMemoryUserProfileStore(profiles),
        vendor_trust=InMemoryVendorTrustService(vendors),
    )


def create_storage(settings: Settings) -> StorageBackends:
    """
    Build storage backends for the configured STORAGE_BACKEND.

    Raises:
        SupabaseClientError: If supabase is selected but not configured
    """
    if settings.storage_backend == "memory":
        logger.info("Using in-memory storage backend")
        return create_memory_storage()

    from config.database import get_supabase_client

    supabase = get_supabase_client()
    logger.info("Using Supabase storage backend", vector_rpc=settings.vector_search_rpc)
    return StorageBackends(
        catalog=SupabaseCatalogRepository(supabase),
        vector_search=SupabaseVectorSearch(supabase, rpc_name=settings.vector_search_rpc),
        events=SupabaseEventLog(supabase),
        user_embeddings=SupabaseUserEmbeddingStore(supabase),
        user_profiles=SupabaseUserProfileStore(supabase),
        vendor_trust=SupabaseVendorTrustService(supabase),
    )
