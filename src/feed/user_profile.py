"""
User Style Profile Builder.

Builds a unit-length style vector per user from two signals:

1. Explicit preferences (wears / aesthetics / body fit) embedded as text
2. Behavioral history: item style embeddings pooled with event weights and
   exponential time decay  w = event_weight * exp(-age_days * lambda)

The two are blended (behavioral-weighted) and persisted to the user
embedding store. A session vector is computed the same way from the
events of one session and blended over the profile at request time.
"""

import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from config.constants import (
    DEFAULT_PROFILE_CONFIG,
    EMBEDDING_DIM,
    EMBEDDING_VERSION,
    FIT_VECTOR_DIM,
    ProfileConfig,
)
from core.logging import get_logger
from core.utils import l2_normalize, to_vector, vector_to_list
from feed.interfaces import (
    CatalogRepository,
    EmbeddingProvider,
    EventLog,
    UserEmbeddingStore,
    UserProfileStore,
)
from feed.models import CatalogItemBase, ColdStartLevel, Event, UserEmbedding, UserPreferences


logger = get_logger(__name__)


def blend_vectors(
    profile: Optional[Sequence[float]],
    session: Optional[Sequence[float]],
    alpha: float = DEFAULT_PROFILE_CONFIG.SESSION_ALPHA,
) -> Optional[List[float]]:
    """
    Blend a profile vector with a session vector.

    blended = alpha * session + (1 - alpha) * profile, then L2-normalized.
    If either side is missing the other is returned as-is; None only when
    both are None.
    """
    if profile is None:
        return list(session) if session is not None else None
    if session is None:
        return list(profile)

    dim = max(len(profile), len(session))
    p = to_vector(profile, dim)
    s = to_vector(session, dim)
    blended = alpha * s + (1.0 - alpha) * p
    return vector_to_list(l2_normalize(blended))


def cold_start_level(
    profile: Optional[Sequence[float]],
    session: Optional[Sequence[float]],
) -> ColdStartLevel:
    """cold: nothing to personalize on; warm_session: session only; hot: profile."""
    if profile is not None:
        return ColdStartLevel.HOT
    if session is not None:
        return ColdStartLevel.WARM_SESSION
    return ColdStartLevel.COLD


def build_explicit_preference_text(user: UserPreferences) -> Optional[str]:
    """
    Render stated preferences as embeddable text.

    Example:
        "Wears: menswear. Aesthetics: minimal, street. Fit preference: slim"
    """
    parts = []
    if user.wears_preference:
        parts.append(f"Wears: {user.wears_preference}")
    if user.aesthetic_preferences:
        parts.append(f"Aesthetics: {', '.join(user.aesthetic_preferences)}")
    if user.body_fit:
        parts.append(f"Fit preference: {', '.join(user.body_fit)}")
    return ". ".join(parts) if parts else None


def compute_measurement_vector(
    measurements: Dict[str, float],
    dim: int = FIT_VECTOR_DIM,
    scale: float = DEFAULT_PROFILE_CONFIG.MEASUREMENT_SCALE,
) -> List[float]:
    """Encode a measurement set as a fixed-width vector of values/scale in [0, 1]."""
    vec = [0.0] * dim
    for i, value in enumerate(list(measurements.values())[:dim]):
        try:
            vec[i] = min(max(float(value) / scale, 0.0), 1.0)
        except (TypeError, ValueError):
            continue
    return vec


class UserProfileBuilder:
    """
    Computes and persists user style vectors.

    All collaborators are injected; failures of the profile store or the
    embedding provider only drop the explicit part of the vector.
    """

    def __init__(
        self,
        events: EventLog,
        catalog: CatalogRepository,
        embedding_provider: Optional[EmbeddingProvider],
        user_profiles: Optional[UserProfileStore],
        user_embeddings: UserEmbeddingStore,
        config: ProfileConfig = DEFAULT_PROFILE_CONFIG,
        dim: int = EMBEDDING_DIM,
        max_workers: int = 8,
    ):
        self.events = events
        self.catalog = catalog
        self.embedding_provider = embedding_provider
        self.user_profiles = user_profiles
        self.user_embeddings = user_embeddings
        self.config = config
        self.dim = dim
        self.max_workers = max_workers

    # =========================================================
    # Profile vector
    # =========================================================

    def compute_user_style_vector(self, user_id: str) -> Optional[List[float]]:
        """
        Compute (and persist) the user's style vector.

        Returns:
            Unit-length style vector, or None when the user has neither
            stated preferences nor usable behavioral history.
        """
        events = self._recent_events(user_id, self.config.PROFILE_EVENT_LIMIT)

        explicit_vector: Optional[List[float]] = None
        fit_vector: Optional[List[float]] = None
        fit_preference: Optional[str] = None

        try:
            user = self.user_profiles.find_by_id(user_id) if self.user_profiles else None
            if user is not None:
                explicit_vector = self._embed_explicit_preferences(user)
                if user.measurements:
                    fit_vector = compute_measurement_vector(
                        user.measurements, scale=self.config.MEASUREMENT_SCALE
                    )
                if user.body_fit:
                    fit_preference = user.body_fit[0]
        except Exception as e:
            logger.warning("Failed to load user profile", user_id=user_id, error=str(e))

        behavioral = self.compute_vector_from_events(events)
        behavioral_vector = vector_to_list(behavioral)

        style_vector = blend_vectors(
            explicit_vector, behavioral_vector, alpha=self.config.BEHAVIORAL_ALPHA
        )

        if style_vector is not None or fit_vector is not None:
            self._save_embedding(user_id, style_vector, fit_vector, fit_preference)

        logger.debug(
            "Computed user style vector",
            user_id=user_id,
            events=len(events),
            has_explicit=explicit_vector is not None,
            has_behavioral=behavioral_vector is not None,
            has_fit=fit_vector is not None,
        )
        return style_vector

    def _embed_explicit_preferences(self, user: UserPreferences) -> Optional[List[float]]:
        text = build_explicit_preference_text(user)
        if not text or self.embedding_provider is None:
            return None
        try:
            return self.embedding_provider.embed(text)
        except Exception as e:
            logger.warning(
                "Embedding provider failed, skipping explicit preferences",
                user_id=user.user_id,
                error=str(e),
            )
            return None

    def _save_embedding(
        self,
        user_id: str,
        style_vector: Optional[List[float]],
        fit_vector: Optional[List[float]],
        fit_preference: Optional[str],
    ) -> None:
        embedding = UserEmbedding(
            user_id=user_id,
            u_style=style_vector or [],
            u_fit=fit_vector,
            scalars={"fit_preference": fit_preference} if fit_preference else {},
            version=EMBEDDING_VERSION,
            last_updated=datetime.now(timezone.utc),
        )
        try:
            self.user_embeddings.upsert(embedding)
        except Exception as e:
            logger.warning("Failed to persist user embedding", user_id=user_id, error=str(e))

    # =========================================================
    # Session vector
    # =========================================================

    def compute_session_style_vector(
        self,
        user_id: str,
        session_id: str,
        last_n: Optional[int] = None,
    ) -> Optional[List[float]]:
        """Style vector from the most recent `last_n` events of one session."""
        last_n = self.config.SESSION_LAST_N if last_n is None else last_n
        events = self._recent_events(user_id, self.config.PROFILE_EVENT_LIMIT)
        session_events = [e for e in events if e.session_id == session_id][:last_n]
        return vector_to_list(self.compute_vector_from_events(session_events))

    # =========================================================
    # Behavioral pooling
    # =========================================================

    def event_weight(self, event: Event, now: datetime) -> float:
        """Signed, time-decayed weight of one event (0 for unweighted types)."""
        base = self.config.EVENT_WEIGHTS.get(event.event_type.value, 0.0)
        if base == 0.0:
            return 0.0
        timestamp = event.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        age_days = max((now - timestamp).total_seconds() / 86400.0, 0.0)
        return base * math.exp(-age_days * self.config.DECAY_LAMBDA)

    def compute_vector_from_events(
        self,
        events: Sequence[Event],
        now: Optional[datetime] = None,
    ) -> Optional[np.ndarray]:
        """
        Pool item style embeddings weighted by event type and recency.

        Returns:
            None if no event contributed, a zero vector if contributions
            cancel out, otherwise the unit-length pooled vector.
        """
        if not events:
            return None
        now = now or datetime.now(timezone.utc)

        items = self._load_items(e.item_id for e in events)

        accumulator = np.zeros(self.dim, dtype=np.float64)
        total_weight = 0.0
        for event in events:
            item = items.get(event.item_id) if event.item_id else None
            if item is None or not item.style_embedding:
                continue
            weight = self.event_weight(event, now)
            if weight == 0.0:
                continue
            accumulator += to_vector(item.style_embedding, self.dim) * weight
            total_weight += abs(weight)

        if total_weight == 0.0:
            return None
        return l2_normalize(accumulator)

    def _load_items(self, item_ids: Iterable[Optional[str]]) -> Dict[str, CatalogItemBase]:
        """Fetch event items concurrently. Missing or failing lookups are skipped."""
        distinct = list(dict.fromkeys(i for i in item_ids if i))
        if not distinct:
            return {}

        items: Dict[str, CatalogItemBase] = {}
        workers = max(1, min(self.max_workers, len(distinct)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self.catalog.find_by_id, item_id): item_id for item_id in distinct}
            for future in as_completed(futures):
                item_id = futures[future]
                try:
                    item = future.result()
                except Exception as e:
                    logger.warning("Catalog lookup failed", item_id=item_id, error=str(e))
                    continue
                if item is not None:
                    items[item_id] = item
        return items

    def _recent_events(self, user_id: str, limit: int) -> List[Event]:
        try:
            return self.events.get_recent_events(user_id, limit)
        except Exception as e:
            logger.warning("Failed to fetch recent events", user_id=user_id, error=str(e))
            return []

    # =========================================================
    # Persisted profile
    # =========================================================

    def get_user_embedding(self, user_id: str) -> Optional[List[float]]:
        """Persisted style vector, or None if never computed (or empty)."""
        stored = self.user_embeddings.get(user_id)
        if stored is None or not stored.u_style:
            return None
        return stored.u_style

    def update_user_embedding(self, user_id: str) -> Optional[UserEmbedding]:
        """Recompute the profile and return the stored record."""
        if self.compute_user_style_vector(user_id) is None:
            logger.debug("No signal to compute embedding", user_id=user_id)
            return None
        return self.user_embeddings.get(user_id)
