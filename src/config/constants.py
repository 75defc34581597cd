"""
Application constants and algorithm configuration.

These are values that don't change based on environment. The ranker weights,
event weights and mixer pattern are a fixed contract: downstream dashboards
and the offline evaluation compare against them.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Tuple


# =============================================================================
# Embeddings
# =============================================================================

EMBEDDING_DIM = 1536
FIT_VECTOR_DIM = 16
EMBEDDING_VERSION = "v1"

STYLE_INDEX = "items_style_vindex"
FABRIC_INDEX = "items_fabric_vindex"


# =============================================================================
# User Style Profile
# =============================================================================

@dataclass(frozen=True)
class ProfileConfig:
    """Configuration for the user style profile builder."""

    # Event weights for behavioral pooling (negative = push away)
    EVENT_WEIGHTS: Dict[str, float] = field(default_factory=lambda: {
        "PURCHASE": 5.0,
        "ADD_TO_CART": 3.0,
        "SAVE_ITEM": 2.0,
        "CLICK_ITEM": 1.0,
        "VIEW_ITEM": 0.5,
        "NOT_INTERESTED": -6.0,
        "HIDE_BUSINESS": -10.0,
    })

    # exp(-age_days * DECAY_LAMBDA)
    DECAY_LAMBDA: float = 0.05

    PROFILE_EVENT_LIMIT: int = 100
    SESSION_LAST_N: int = 30

    # Session vs profile blend (alpha weights the session vector)
    SESSION_ALPHA: float = 0.7

    # Behavioral vs explicit blend (alpha weights the behavioral vector)
    BEHAVIORAL_ALPHA: float = 0.7

    # Measurement normalization for u_fit
    MEASUREMENT_SCALE: float = 200.0


DEFAULT_PROFILE_CONFIG = ProfileConfig()


# =============================================================================
# Ranker
# =============================================================================

@dataclass(frozen=True)
class RankerConfig:
    """Weights for the multi-factor ranker."""

    VECTOR_WEIGHT: float = 0.70
    VENDOR_QUALITY_WEIGHT: float = 0.15
    ETA_WEIGHT: float = 0.10
    PRICE_FIT_WEIGHT: float = 0.05

    FEATURED_VENDOR_BOOST: float = 0.2

    # Defaults when evidence is missing
    DEFAULT_VECTOR_SCORE: float = 0.5
    DEFAULT_VENDOR_QUALITY: float = 0.8
    DEFAULT_ETA_DAYS: float = 3.0


DEFAULT_RANKER_CONFIG = RankerConfig()


# =============================================================================
# Vendor trust
# =============================================================================

TRUSTED_VENDOR_STATUSES: FrozenSet[str] = frozenset({"approved", "verified"})

# Vendor feed: combined = avg_product_score * w + vendor_quality * (1 - w)
VENDOR_FEED_PRODUCT_WEIGHT = 0.7
VENDOR_FEED_DEFAULT_QUALITY = 0.5


# =============================================================================
# Feed Mixer
# =============================================================================

@dataclass(frozen=True)
class MixerConfig:
    """Type interleaving pattern and head-of-feed vendor cap."""

    # G=garment, A=accessory, F=fabric
    PATTERN: Tuple[str, ...] = ("garment", "garment", "accessory", "garment", "garment", "fabric")

    # Exhausted-stream fallback order
    FALLBACK_ORDER: Tuple[str, ...] = ("garment", "accessory", "fabric")

    MAX_PER_VENDOR_HEAD: int = 2
    HEAD_SIZE: int = 10


DEFAULT_MIXER_CONFIG = MixerConfig()


# =============================================================================
# Explanations
# =============================================================================

@dataclass(frozen=True)
class ExplanationConfig:
    """Thresholds for rule-based reason codes."""

    TOP_TAGS: int = 5
    TAGS_IN_TEXT: int = 2
    HIGH_RELEVANCE_SCORE: float = 0.85
    FAST_ETA_DAYS: float = 3
    TOP_RATED_QUALITY: float = 0.7


DEFAULT_EXPLANATION_CONFIG = ExplanationConfig()


# =============================================================================
# Orchestrator
# =============================================================================

@dataclass(frozen=True)
class PipelineConfig:
    """Candidate budgets for the named feed pipelines."""

    HOME_OVERFETCH: int = 2
    HOME_NUM_CANDIDATES: int = 1000

    VENDOR_OVERFETCH: int = 3
    VENDOR_NUM_CANDIDATES: int = 2000

    TRENDING_OVERFETCH: int = 2
    HISTORY_FOR_EXPLANATIONS: int = 20

    DEFAULT_LIMIT: int = 30
    MAX_LIMIT: int = 100
    DEFAULT_NEW_ARRIVAL_DAYS: int = 30


DEFAULT_PIPELINE_CONFIG = PipelineConfig()
