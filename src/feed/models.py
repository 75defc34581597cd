"""
Pydantic models for the feed pipeline.

Models cover:
- Catalog items (garment / fabric / accessory as a tagged union on `type`)
- Behavioral events and persisted user embeddings
- Vendor trust records and hard-filter specs
- Ranked items with a typed scoring side-channel
- API request/response schemas
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Set, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================

class ItemType(str, Enum):
    """Catalog item kinds. Each kind is its own feed stream."""
    GARMENT = "garment"
    FABRIC = "fabric"
    ACCESSORY = "accessory"


# Stream label attached to mixed feed items
STREAM_NAMES: Dict[str, str] = {
    ItemType.GARMENT.value: "clothing",
    ItemType.ACCESSORY.value: "accessory",
    ItemType.FABRIC.value: "fabric",
}


class EventType(str, Enum):
    """Behavioral event types recorded by clients."""
    VIEW_ITEM = "VIEW_ITEM"
    CLICK_ITEM = "CLICK_ITEM"
    ADD_TO_CART = "ADD_TO_CART"
    REMOVE_FROM_CART = "REMOVE_FROM_CART"
    SAVE_ITEM = "SAVE_ITEM"
    PURCHASE = "PURCHASE"
    NOT_INTERESTED = "NOT_INTERESTED"
    HIDE_BUSINESS = "HIDE_BUSINESS"
    SEARCH = "SEARCH"
    IMPRESSION = "IMPRESSION"


CONVERSION_EVENTS = frozenset({EventType.ADD_TO_CART, EventType.PURCHASE})


class VendorStatus(str, Enum):
    """Onboarding status of a vendor (business) record."""
    PENDING = "pending"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    VERIFIED = "verified"
    REJECTED = "rejected"


class ReasonCode(str, Enum):
    """Why an item was recommended."""
    STYLE_MATCH = "STYLE_MATCH"
    AESTHETIC_MATCH = "AESTHETIC_MATCH"
    FAST_ETA = "FAST_ETA"
    TRUSTED_VENDOR = "TRUSTED_VENDOR"
    PRICE_FIT = "PRICE_FIT"
    NEW_ARRIVAL = "NEW_ARRIVAL"
    BOUGHT_TOGETHER = "BOUGHT_TOGETHER"
    COMPLETE_LOOK = "COMPLETE_LOOK"
    VENDOR_QUALITY = "VENDOR_QUALITY"
    PRODUCT_RELEVANCE = "PRODUCT_RELEVANCE"


class ColdStartLevel(str, Enum):
    """How much personalization signal a request has."""
    COLD = "cold"                   # No profile, no session vector
    WARM_SESSION = "warm_session"   # Session vector only
    HOT = "hot"                     # Persisted profile vector


class RecommendationIntent(str, Enum):
    """Intents recognized by the natural-language router."""
    HOME_FEED = "home_feed"
    SIMILAR = "similar"
    FIT_HELP = "fit_help"
    OCCASION = "occasion"
    FABRIC_HELP = "fabric_help"
    BESPOKE = "bespoke"
    SUBSTITUTION = "substitution"


# =============================================================================
# Catalog Items
# =============================================================================

class FitMeta(BaseModel):
    """Garment fit metadata."""
    target_demographic: Optional[str] = None  # mens, womens, unisex
    fit_type: Optional[str] = None            # slim, regular, oversized
    measurement_points: List[str] = Field(default_factory=list)


class ItemEmbeddings(BaseModel):
    """Backfilled item vectors (1536-d)."""
    e_style: Optional[List[float]] = None
    e_fabric: Optional[List[float]] = None


class EmbeddingMetadata(BaseModel):
    model: str
    dim: int
    version: str
    embedded_at: datetime


class CatalogItemBase(BaseModel):
    """
    Fields shared by every catalog item kind.

    `score` is only populated on vector-search results (similarity between
    the query vector and the item's style embedding).
    """
    item_id: str
    name: str = ""
    description: Optional[str] = None
    price: float = 0.0
    currency: str = "USD"
    vendor: str = ""
    vendor_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    raw_vendor_data: Dict[str, Any] = Field(default_factory=dict)
    embeddings: Optional[ItemEmbeddings] = None
    embedding_metadata: Optional[EmbeddingMetadata] = None
    created_at: Optional[datetime] = None
    score: Optional[float] = Field(
        default=None,
        description="Vector search similarity (absent for trending/scan results)"
    )

    @property
    def stream(self) -> str:
        return STREAM_NAMES[self.type]

    @property
    def style_embedding(self) -> Optional[List[float]]:
        return self.embeddings.e_style if self.embeddings else None

    @property
    def inventory_quantity(self) -> Optional[float]:
        return self.raw_vendor_data.get("inventory_quantity")

    @property
    def eta_days(self) -> Optional[float]:
        return self.raw_vendor_data.get("eta_days")

    @property
    def vendor_quality(self) -> Optional[float]:
        return self.raw_vendor_data.get("vendorQuality")


class GarmentItem(CatalogItemBase):
    type: Literal["garment"] = "garment"
    fit_meta: Optional[FitMeta] = None
    fabric_composition: Optional[str] = None


class FabricItem(CatalogItemBase):
    type: Literal["fabric"] = "fabric"
    fabric_composition: Optional[str] = None


class AccessoryItem(CatalogItemBase):
    type: Literal["accessory"] = "accessory"
    material: Optional[str] = None


CatalogItem = Annotated[
    Union[GarmentItem, FabricItem, AccessoryItem],
    Field(discriminator="type"),
]

_catalog_item_adapter = TypeAdapter(CatalogItem)


def parse_catalog_item(data: Union[Dict[str, Any], CatalogItemBase]) -> CatalogItemBase:
    """
    Validate a raw catalog row into the right item kind.

    Rows without a `type` are treated as garments, and the type is
    lower-cased so "GARMENT" rows from older imports still parse.
    """
    if isinstance(data, CatalogItemBase):
        return data
    row = dict(data)
    row["type"] = str(row.get("type") or ItemType.GARMENT.value).lower()
    return _catalog_item_adapter.validate_python(row)


# =============================================================================
# Events
# =============================================================================

class EventContext(BaseModel):
    """Where the event happened in the product."""
    surface: Optional[str] = None
    request_id: Optional[str] = None
    position: Optional[int] = None
    stream: Optional[str] = None


class EventMetadata(BaseModel):
    """Free-form request context captured with an event."""
    model_config = ConfigDict(extra="allow")

    reason_codes: List[str] = Field(default_factory=list)
    seen_ids: List[str] = Field(default_factory=list)
    query: Optional[str] = None
    filters: Optional[Dict[str, Any]] = None
    budget_max: Optional[float] = None
    deadline_days: Optional[int] = None
    dwell_ms: Optional[int] = None


class Event(BaseModel):
    """Append-only behavioral event."""
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    event_type: EventType
    properties: Dict[str, Any] = Field(default_factory=dict)
    context: Optional[EventContext] = None
    metadata: Optional[EventMetadata] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Naive client timestamps are UTC."""
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)

    @property
    def item_id(self) -> Optional[str]:
        return self.properties.get("itemId") or self.properties.get("item_id")

    @property
    def session_id(self) -> Optional[str]:
        return self.properties.get("sessionId") or self.properties.get("session_id")

    @property
    def tags(self) -> List[str]:
        tags = self.properties.get("tags")
        if not isinstance(tags, list):
            return []
        return [t for t in tags if isinstance(t, str)]


# =============================================================================
# Users
# =============================================================================

class UserPreferences(BaseModel):
    """Explicit preferences from the user record (read-only here)."""
    user_id: str
    wears_preference: Optional[str] = None
    aesthetic_preferences: List[str] = Field(default_factory=list)
    body_fit: List[str] = Field(default_factory=list)
    measurements: Dict[str, float] = Field(
        default_factory=dict,
        description="Active measurement set: name -> value"
    )
    blocked_vendors: List[str] = Field(default_factory=list)
    gender: Optional[str] = None


class UserEmbedding(BaseModel):
    """Persisted user profile vector, overwritten on every recompute."""
    user_id: str
    u_style: List[float] = Field(default_factory=list)
    u_fit: Optional[List[float]] = None
    scalars: Dict[str, Any] = Field(default_factory=dict)
    version: str = "v1"
    last_updated: datetime = Field(default_factory=_utcnow)


# =============================================================================
# Vendors
# =============================================================================

class VendorTrustRecord(BaseModel):
    """Vendor (business) standing, fetched from the business service."""
    vendor_id: str
    name: Optional[str] = None
    is_active: bool = True
    status: Optional[VendorStatus] = None
    success_rate: Optional[float] = Field(default=None, ge=0, le=100)
    is_featured: bool = False
    quality_score: Optional[float] = None


# =============================================================================
# Filtering & Ranking
# =============================================================================

class FilterSpec(BaseModel):
    """Hard constraints for one request."""
    in_stock_only: bool = True
    max_price: Optional[float] = None
    delivery_region: str = "ng"
    deadline_days: Optional[int] = None
    blocked_vendors: Set[str] = Field(default_factory=set)
    gender: Optional[str] = None
    category: Optional[str] = None


class ScoringDebug(BaseModel):
    """Per-factor evidence behind a final score."""
    v_score: float
    vendor_quality_score: float
    eta_score: float
    price_fit: float
    vendor_boost: float
    price_penalty: bool = False


class RankedItem(BaseModel):
    """A catalog item with its request-scoped score."""
    item: CatalogItem
    final_score: float
    scoring_debug: ScoringDebug
    stream: Optional[str] = None

    @property
    def item_id(self) -> str:
        return self.item.item_id

    @property
    def vendor(self) -> str:
        return self.item.vendor

    @property
    def type(self) -> str:
        return self.item.type


class Explanation(BaseModel):
    texts: List[str] = Field(default_factory=list)
    codes: List[ReasonCode] = Field(default_factory=list)

    def prepend(self, text: str, code: ReasonCode) -> "Explanation":
        return Explanation(texts=[text, *self.texts], codes=[code, *self.codes])


# =============================================================================
# API Response Models
# =============================================================================

class FeedItem(BaseModel):
    """An item as returned by the feed endpoints."""
    item_id: str
    type: str
    name: str
    price: float
    currency: str
    vendor: str
    tags: List[str] = Field(default_factory=list)
    position: int
    stream: str
    final_score: float
    scoring_debug: ScoringDebug
    explanations: List[str] = Field(default_factory=list)
    reason_codes: List[ReasonCode] = Field(default_factory=list)

    @classmethod
    def from_ranked(cls, ranked: RankedItem, position: int, explanation: Explanation,
                    stream: Optional[str] = None) -> "FeedItem":
        item = ranked.item
        return cls(
            item_id=item.item_id,
            type=item.type,
            name=item.name,
            price=item.price,
            currency=item.currency,
            vendor=item.vendor,
            tags=list(item.tags),
            position=position,
            stream=stream or ranked.stream or item.stream,
            final_score=ranked.final_score,
            scoring_debug=ranked.scoring_debug,
            explanations=explanation.texts,
            reason_codes=explanation.codes,
        )


class ReferenceItem(BaseModel):
    item_id: str
    name: str
    type: str


class FeedDebug(BaseModel):
    """Pipeline diagnostics returned alongside feed items."""
    cold_start_level: Optional[ColdStartLevel] = None
    used_session_blend: Optional[bool] = None
    candidate_count: int = 0
    filtered_count: int = 0
    duration_ms: float = 0.0
    filter_metrics: Dict[str, int] = Field(default_factory=dict)
    total_new_items: Optional[int] = None
    cutoff_date: Optional[datetime] = None
    existing_types: Optional[List[str]] = None


class FeedResponse(BaseModel):
    request_id: str
    items: List[FeedItem] = Field(default_factory=list)
    debug: FeedDebug = Field(default_factory=FeedDebug)
    message: Optional[str] = None
    reference_items: Optional[List[ReferenceItem]] = None


class VendorFeedEntry(BaseModel):
    vendor_id: str
    vendor_name: str
    vendor_score: float
    reason_codes: List[ReasonCode] = Field(default_factory=list)
    explanations: List[str] = Field(default_factory=list)
    products: List[FeedItem] = Field(default_factory=list)
    total_products: int = 0


class VendorFeedResponse(BaseModel):
    request_id: str
    vendors: List[VendorFeedEntry] = Field(default_factory=list)
    debug: FeedDebug = Field(default_factory=FeedDebug)


class DiversityMetrics(BaseModel):
    unique_vendors: int = 0
    unique_categories: int = 0


class EvaluationMetrics(BaseModel):
    """Offline metrics. ctr/conversion are recall over the held-out event set."""
    ctr_at_k: float = 0.0
    conversion_at_k: float = 0.0
    diversity: DiversityMetrics = Field(default_factory=DiversityMetrics)


class RouterResponse(BaseModel):
    intent: RecommendationIntent
    confidence: float
    constraints: Dict[str, Any] = Field(default_factory=dict)
