"""
Feed Orchestrator

Composes the pipeline stages into named feeds:

    profile + session vectors (parallel)
        -> retrieval (vector search + trending fallback)
        -> vendor trust fan-out (parallel)
        -> hard filters
        -> ranker
        -> mixer (multi-type feeds)
        -> explanations

Feeds:
- Home feed: personalized, session-blended, type-mixed
- Vendor feed: vendors ranked by product relevance + vendor quality
- Trending / New arrivals: no personalization
- Bought together / Complete the look: heuristic candidates around
  reference items, pushed through the same filter and rank stages

Upstream failures degrade (trending-only, no explicit vector, no gating);
only invalid input raises, as InvalidFeedRequest.
"""

import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from config.constants import (
    DEFAULT_PIPELINE_CONFIG,
    VENDOR_FEED_DEFAULT_QUALITY,
    VENDOR_FEED_PRODUCT_WEIGHT,
    PipelineConfig,
)
from config.settings import Settings, get_settings
from core.logging import get_logger
from feed.embeddings import OpenAIEmbeddingProvider
from feed.events import EventService
from feed.filters import FilterResult, FilterService
from feed.intent_router import IntentRouter
from feed.interfaces import EmbeddingProvider
from feed.mixer import FeedMixer
from feed.models import (
    CatalogItemBase,
    Event,
    Explanation,
    FeedDebug,
    FeedItem,
    FeedResponse,
    FilterSpec,
    RankedItem,
    ReasonCode,
    ReferenceItem,
    RouterResponse,
    UserPreferences,
    VendorFeedEntry,
    VendorFeedResponse,
    VendorTrustRecord,
)
from feed.retrieval import RetrievalService
from feed.storage import StorageBackends, create_storage
from feed.user_profile import UserProfileBuilder, blend_vectors, cold_start_level
from feed.vendor_trust import fetch_vendor_trust
from scoring.explanations import ExplanationGenerator, top_user_tags
from scoring.ranker import Ranker, RankingContext


logger = get_logger(__name__)


class InvalidFeedRequest(ValueError):
    """Client error: missing or out-of-range request parameters."""
    pass


@dataclass
class _Stage:
    """Output of the shared filter -> rank stage."""
    ranked: List[RankedItem]
    filter_result: FilterResult
    vendor_trust: Dict[str, VendorTrustRecord]


def _require(value, name: str) -> None:
    if value is None or (isinstance(value, (str, list, tuple)) and len(value) == 0):
        raise InvalidFeedRequest(f"{name} is required")


def _require_limit(limit: int, name: str = "limit") -> None:
    if limit is None or limit < 1:
        raise InvalidFeedRequest(f"{name} must be >= 1")


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _elapsed_ms(t_start: float) -> float:
    return round((time.perf_counter() - t_start) * 1000, 2)


class FeedOrchestrator:
    """
    Entry point for every feed. Stateless across requests; collaborators
    are injected through StorageBackends.
    """

    def __init__(
        self,
        storage: StorageBackends,
        embedding_provider: Optional[EmbeddingProvider] = None,
        settings: Optional[Settings] = None,
        config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
        intent_router: Optional[IntentRouter] = None,
    ):
        self.settings = settings or get_settings()
        self.config = config
        self.storage = storage

        self.profile_builder = UserProfileBuilder(
            events=storage.events,
            catalog=storage.catalog,
            embedding_provider=embedding_provider,
            user_profiles=storage.user_profiles,
            user_embeddings=storage.user_embeddings,
            max_workers=self.settings.vendor_lookup_max_workers,
        )
        self.retrieval = RetrievalService(
            vector_search=storage.vector_search,
            catalog=storage.catalog,
            timeout_seconds=self.settings.retrieval_timeout_seconds,
        )
        self.filters = FilterService()
        self.ranker = Ranker()
        self.mixer = FeedMixer()
        self.explainer = ExplanationGenerator()
        self.events = EventService(storage.events)
        self.intent_router = intent_router

    # =========================================================
    # Home Feed
    # =========================================================

    def get_home_feed(
        self,
        user_id: str,
        session_id: Optional[str] = None,
        limit: int = DEFAULT_PIPELINE_CONFIG.DEFAULT_LIMIT,
        budget_max: Optional[float] = None,
        deadline_days: Optional[int] = None,
    ) -> FeedResponse:
        _require(user_id, "userId")
        _require_limit(limit)
        t_start = time.perf_counter()

        # 1. Profile + session vectors
        profile_vector, session_vector = self._compute_user_vectors(user_id, session_id)
        blended = blend_vectors(profile_vector, session_vector)
        level = cold_start_level(profile_vector, session_vector)

        # 2. Retrieval
        candidates = self.retrieval.retrieve_candidates(
            blended,
            limit=limit * self.config.HOME_OVERFETCH,
            num_candidates=self.config.HOME_NUM_CANDIDATES,
        )

        # 3-4. Vendor trust, filters, ranking
        spec = self.filters.build_filter_spec(
            {"max_price": budget_max, "deadline_days": deadline_days},
            self._user_preferences(user_id),
        )
        stage = self._filter_and_rank(candidates, spec, budget_max=budget_max)

        # 5. Mix + explain
        final = self._select(stage.ranked, limit)
        history = self._recent_history(user_id)
        items = self._explain(final, history)

        duration_ms = _elapsed_ms(t_start)
        filtered_count = len(stage.filter_result.items)
        logger.info(
            "Home feed stats",
            user_id=user_id,
            duration_ms=duration_ms,
            candidates=len(candidates),
            filtered=filtered_count,
            final=len(items),
            cold_start_level=level.value,
            empty_feed=len(items) == 0,
            filter_drop_off_rate=(
                (len(candidates) - filtered_count) / len(candidates) if candidates else 0.0
            ),
            metrics=stage.filter_result.metrics,
        )

        return FeedResponse(
            request_id=str(uuid.uuid4()),
            items=items,
            debug=FeedDebug(
                cold_start_level=level,
                used_session_blend=session_vector is not None,
                candidate_count=len(candidates),
                filtered_count=filtered_count,
                duration_ms=duration_ms,
                filter_metrics=stage.filter_result.metrics,
            ),
        )

    def _compute_user_vectors(
        self,
        user_id: str,
        session_id: Optional[str],
    ) -> Tuple[Optional[List[float]], Optional[List[float]]]:
        """Profile and session vectors, computed in parallel. A failure yields None."""
        with ThreadPoolExecutor(max_workers=2) as executor:
            profile_future = executor.submit(self.profile_builder.compute_user_style_vector, user_id)
            session_future = (
                executor.submit(self.profile_builder.compute_session_style_vector, user_id, session_id)
                if session_id else None
            )

            profile_vector = None
            try:
                profile_vector = profile_future.result()
            except Exception as e:
                logger.warning("Profile vector failed", user_id=user_id, error=str(e))

            session_vector = None
            if session_future is not None:
                try:
                    session_vector = session_future.result()
                except Exception as e:
                    logger.warning(
                        "Session vector failed", user_id=user_id, session_id=session_id, error=str(e)
                    )

        return profile_vector, session_vector

    # =========================================================
    # Vendor Feed
    # =========================================================

    def get_vendor_feed(
        self,
        user_id: str,
        limit: int = 10,
        products_per_vendor: int = 3,
    ) -> VendorFeedResponse:
        _require(user_id, "userId")
        _require_limit(limit)
        _require_limit(products_per_vendor, "productsPerVendor")
        t_start = time.perf_counter()

        profile_vector = None
        try:
            profile_vector = self.profile_builder.compute_user_style_vector(user_id)
        except Exception as e:
            logger.warning("Profile vector failed", user_id=user_id, error=str(e))

        candidates = self.retrieval.retrieve_candidates(
            profile_vector,
            limit=limit * products_per_vendor * self.config.VENDOR_OVERFETCH,
            num_candidates=self.config.VENDOR_NUM_CANDIDATES,
        )

        vendor_trust = self._fetch_vendor_trust(candidates)
        filter_result = self.filters.apply_hard_filters(candidates, FilterSpec(), vendor_trust)

        # Group by vendor, keeping first-seen vendor order for ties
        by_vendor: Dict[str, List[CatalogItemBase]] = {}
        for item in filter_result.items:
            if item.vendor:
                by_vendor.setdefault(item.vendor, []).append(item)

        ctx = RankingContext(vendor_trust=vendor_trust)
        scored_vendors = []
        for vendor_id, products in by_vendor.items():
            ranked = self.ranker.rank_candidates(products, ctx)
            avg_score = sum(r.final_score for r in ranked) / len(ranked)
            trust = vendor_trust.get(vendor_id)
            quality = (
                trust.quality_score
                if trust is not None and trust.quality_score is not None
                else VENDOR_FEED_DEFAULT_QUALITY
            )
            score = VENDOR_FEED_PRODUCT_WEIGHT * avg_score + (1 - VENDOR_FEED_PRODUCT_WEIGHT) * quality
            scored_vendors.append((score, vendor_id, ranked, trust))

        scored_vendors.sort(key=lambda v: v[0], reverse=True)

        history = self._recent_history(user_id)
        top_tags = top_user_tags(history)

        entries = []
        for vendor_index, (score, vendor_id, ranked, trust) in enumerate(scored_vendors[:limit]):
            products = []
            for product_index, r in enumerate(ranked[:products_per_vendor]):
                explanation = self.explainer.generate(r, history, top_tags=top_tags)
                products.append(FeedItem.from_ranked(
                    r,
                    position=vendor_index * products_per_vendor + product_index,
                    explanation=explanation,
                    stream="vendor_feed",
                ))

            explanations = [f"Top-rated vendor with {len(ranked)} matching products"]
            if trust is not None and trust.quality_score:
                explanations.append(f"Quality score: {trust.quality_score * 100:.0f}%")

            entries.append(VendorFeedEntry(
                vendor_id=vendor_id,
                vendor_name=(trust.name if trust is not None and trust.name else "Unknown Vendor"),
                vendor_score=score,
                reason_codes=[ReasonCode.VENDOR_QUALITY, ReasonCode.PRODUCT_RELEVANCE],
                explanations=explanations,
                products=products,
                total_products=len(ranked),
            ))

        duration_ms = _elapsed_ms(t_start)
        logger.info(
            "Vendor feed stats",
            user_id=user_id,
            duration_ms=duration_ms,
            total_vendors=len(by_vendor),
            returned_vendors=len(entries),
            total_products=len(filter_result.items),
        )

        return VendorFeedResponse(
            request_id=str(uuid.uuid4()),
            vendors=entries,
            debug=FeedDebug(
                candidate_count=len(candidates),
                filtered_count=len(filter_result.items),
                duration_ms=duration_ms,
                filter_metrics=filter_result.metrics,
            ),
        )

    # =========================================================
    # Trending / New Arrivals
    # =========================================================

    def get_trending_feed(self, limit: int = DEFAULT_PIPELINE_CONFIG.DEFAULT_LIMIT) -> FeedResponse:
        _require_limit(limit)
        t_start = time.perf_counter()

        candidates = self.retrieval.retrieve_trending(limit * self.config.TRENDING_OVERFETCH)
        stage = self._filter_and_rank(candidates, FilterSpec())
        items = self._explain(self._select(stage.ranked, limit), [])

        duration_ms = _elapsed_ms(t_start)
        logger.info("Trending feed stats", duration_ms=duration_ms, total=len(items))

        return FeedResponse(
            request_id=str(uuid.uuid4()),
            items=items,
            debug=FeedDebug(
                candidate_count=len(candidates),
                filtered_count=len(stage.filter_result.items),
                duration_ms=duration_ms,
                filter_metrics=stage.filter_result.metrics,
            ),
        )

    def get_new_arrivals_feed(
        self,
        limit: int = DEFAULT_PIPELINE_CONFIG.DEFAULT_LIMIT,
        days: int = DEFAULT_PIPELINE_CONFIG.DEFAULT_NEW_ARRIVAL_DAYS,
    ) -> FeedResponse:
        _require_limit(limit)
        _require_limit(days, "days")
        t_start = time.perf_counter()

        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        new_items = [
            item for item in self._catalog_scan(sort="-created_at")
            if item.created_at is not None and _as_utc(item.created_at) >= cutoff
        ]
        new_items.sort(key=lambda item: _as_utc(item.created_at), reverse=True)

        stage = self._filter_and_rank(new_items[:limit * 2], FilterSpec())
        items = self._explain(
            stage.ranked[:limit], [],
            prefix=("Just added!", ReasonCode.NEW_ARRIVAL),
        )

        duration_ms = _elapsed_ms(t_start)
        logger.info(
            "New arrivals feed stats",
            duration_ms=duration_ms,
            days=days,
            new_items_found=len(new_items),
            returned=len(items),
        )

        return FeedResponse(
            request_id=str(uuid.uuid4()),
            items=items,
            debug=FeedDebug(
                candidate_count=len(new_items),
                filtered_count=len(stage.filter_result.items),
                duration_ms=duration_ms,
                filter_metrics=stage.filter_result.metrics,
                total_new_items=len(new_items),
                cutoff_date=cutoff,
            ),
        )

    # =========================================================
    # Bought Together / Complete the Look
    # =========================================================

    def get_bought_together(self, item_id: str, limit: int = 10) -> FeedResponse:
        """
        Items from the same vendor or sharing tags with the reference item.

        heuristic = 0.5 * same_vendor + 0.5 * shared_tags / len(reference tags)
        """
        _require(item_id, "itemId")
        _require_limit(limit)
        t_start = time.perf_counter()

        reference = self._find_item(item_id)
        if reference is None:
            return FeedResponse(request_id=str(uuid.uuid4()), items=[], message="Item not found")

        ref_tags = list(reference.tags)
        scored: List[Tuple[float, CatalogItemBase]] = []
        for candidate in self._catalog_scan():
            if candidate.item_id == item_id:
                continue
            same_vendor = bool(candidate.vendor) and candidate.vendor == reference.vendor
            overlap = sum(1 for tag in ref_tags if tag in candidate.tags)
            if not same_vendor and overlap == 0:
                continue
            score = (0.5 if same_vendor else 0.0) + 0.5 * overlap / (len(ref_tags) or 1)
            scored.append((score, candidate))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        candidates = [c.model_copy(update={"score": s}) for s, c in scored[:limit * 2]]

        stage = self._filter_and_rank(candidates, FilterSpec())
        items = self._explain(
            stage.ranked[:limit], [],
            prefix=("Frequently bought together", ReasonCode.BOUGHT_TOGETHER),
        )

        duration_ms = _elapsed_ms(t_start)
        logger.info(
            "Bought together stats",
            item_id=item_id,
            candidates_found=len(scored),
            returned=len(items),
            duration_ms=duration_ms,
        )

        return FeedResponse(
            request_id=str(uuid.uuid4()),
            items=items,
            reference_items=[ReferenceItem(item_id=reference.item_id, name=reference.name, type=reference.type)],
            debug=FeedDebug(
                candidate_count=len(scored),
                filtered_count=len(stage.filter_result.items),
                duration_ms=duration_ms,
                filter_metrics=stage.filter_result.metrics,
            ),
        )

    def get_complete_the_look(
        self,
        item_ids: Sequence[str],
        user_id: Optional[str] = None,
        limit: int = 10,
    ) -> FeedResponse:
        """
        Items of types not yet in the look.

        heuristic = 0.4 * shared_vendor + 0.3 * shared_tags / len(all reference tags)
                  + 0.3 * new_type
        """
        item_ids = [i for i in (item_ids or []) if i]
        _require(item_ids, "itemIds")
        _require_limit(limit)
        t_start = time.perf_counter()

        catalog = self._catalog_scan()
        wanted = set(item_ids)
        references = [item for item in catalog if item.item_id in wanted]
        if not references:
            return FeedResponse(request_id=str(uuid.uuid4()), items=[], message="No reference items found")

        existing_types = list(dict.fromkeys(r.type for r in references))
        existing_vendors = {r.vendor for r in references if r.vendor}
        all_tags = [tag for r in references for tag in r.tags]

        scored: List[Tuple[float, CatalogItemBase]] = []
        for candidate in catalog:
            if candidate.item_id in wanted or candidate.type in existing_types:
                continue
            score = 0.3  # new type
            if candidate.vendor in existing_vendors:
                score += 0.4
            overlap = sum(1 for tag in candidate.tags if tag in all_tags)
            if overlap > 0:
                score += 0.3 * overlap / len(all_tags)
            scored.append((score, candidate))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        candidates = [c.model_copy(update={"score": s}) for s, c in scored[:limit * 2]]

        # Personalization is best-effort: the user's blocked vendors
        spec = self.filters.build_filter_spec({}, self._user_preferences(user_id) if user_id else None)
        stage = self._filter_and_rank(candidates, spec)
        items = self._explain(
            stage.ranked[:limit], [],
            prefix=("Completes your look", ReasonCode.COMPLETE_LOOK),
        )

        duration_ms = _elapsed_ms(t_start)
        logger.info(
            "Complete the look stats",
            reference_items=len(item_ids),
            candidates_found=len(scored),
            returned=len(items),
            duration_ms=duration_ms,
        )

        return FeedResponse(
            request_id=str(uuid.uuid4()),
            items=items,
            reference_items=[
                ReferenceItem(item_id=r.item_id, name=r.name, type=r.type) for r in references
            ],
            debug=FeedDebug(
                candidate_count=len(scored),
                filtered_count=len(stage.filter_result.items),
                duration_ms=duration_ms,
                filter_metrics=stage.filter_result.metrics,
                existing_types=existing_types,
            ),
        )

    # =========================================================
    # Intent routing
    # =========================================================

    def route(self, text: Optional[str]) -> RouterResponse:
        if self.intent_router is None:
            self.intent_router = IntentRouter(self.settings)
        return self.intent_router.classify(text)

    # =========================================================
    # Shared stages
    # =========================================================

    def _filter_and_rank(
        self,
        candidates: Sequence[CatalogItemBase],
        spec: FilterSpec,
        budget_max: Optional[float] = None,
    ) -> _Stage:
        vendor_trust = self._fetch_vendor_trust(candidates)
        filter_result = self.filters.apply_hard_filters(candidates, spec, vendor_trust)
        ranked = self.ranker.rank_candidates(
            filter_result.items,
            RankingContext(budget_max=budget_max, vendor_trust=vendor_trust),
        )
        return _Stage(ranked=ranked, filter_result=filter_result, vendor_trust=vendor_trust)

    def _fetch_vendor_trust(self, candidates: Sequence[CatalogItemBase]) -> Dict[str, VendorTrustRecord]:
        return fetch_vendor_trust(
            self.storage.vendor_trust,
            (c.vendor for c in candidates),
            max_workers=self.settings.vendor_lookup_max_workers,
            timeout_seconds=self.settings.vendor_lookup_timeout_seconds,
        )

    def _select(self, ranked: List[RankedItem], limit: int) -> List[RankedItem]:
        if self.settings.mix_home_feed:
            return self.mixer.mix_ranked(ranked, limit)
        return ranked[:limit]

    def _explain(
        self,
        ranked: Sequence[RankedItem],
        history: Sequence[Event],
        prefix: Optional[Tuple[str, ReasonCode]] = None,
    ) -> List[FeedItem]:
        top_tags = top_user_tags(history)
        items = []
        for position, r in enumerate(ranked):
            explanation: Explanation = self.explainer.generate(r, history, top_tags=top_tags)
            if prefix is not None:
                explanation = explanation.prepend(*prefix)
            items.append(FeedItem.from_ranked(r, position=position, explanation=explanation))
        return items

    def _recent_history(self, user_id: str) -> List[Event]:
        try:
            return self.events.get_recent_events(user_id, self.config.HISTORY_FOR_EXPLANATIONS)
        except Exception as e:
            logger.warning("Failed to fetch history for explanations", user_id=user_id, error=str(e))
            return []

    def _user_preferences(self, user_id: str) -> Optional[UserPreferences]:
        if self.storage.user_profiles is None:
            return None
        try:
            return self.storage.user_profiles.find_by_id(user_id)
        except Exception as e:
            logger.warning("Failed to load user preferences", user_id=user_id, error=str(e))
            return None

    def _catalog_scan(self, sort: Optional[str] = None) -> List[CatalogItemBase]:
        try:
            return self.storage.catalog.find_all(sort=sort)
        except Exception as e:
            logger.error("Catalog scan failed", error=str(e))
            return []

    def _find_item(self, item_id: str) -> Optional[CatalogItemBase]:
        try:
            return self.storage.catalog.find_by_id(item_id)
        except Exception as e:
            logger.error("Catalog lookup failed", item_id=item_id, error=str(e))
            return None


def build_orchestrator(settings: Optional[Settings] = None) -> FeedOrchestrator:
    """
    Wire an orchestrator from settings.

    The embedding provider is only attached when an OpenAI key is
    configured; without one, profiles are built from behavior alone.
    """
    settings = settings or get_settings()
    storage = create_storage(settings)
    provider = OpenAIEmbeddingProvider(settings) if settings.openai_api_key else None
    return FeedOrchestrator(storage, embedding_provider=provider, settings=settings)
