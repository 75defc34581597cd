"""
Rule-based explanations for ranked items.

Each check independently appends one text + one reason code:

- STYLE_MATCH      item tags overlap the user's top history tags
- AESTHETIC_MATCH  v_score > 0.85
- FAST_ETA         eta_days <= 3
- TRUSTED_VENDOR   effective vendor quality > 0.7
- PRICE_FIT        no price penalty and price > 0
"""

from collections import Counter
from typing import List, Optional, Sequence

from config.constants import DEFAULT_EXPLANATION_CONFIG, ExplanationConfig
from feed.models import Event, Explanation, RankedItem, ReasonCode


def top_user_tags(history: Sequence[Event], n: int = DEFAULT_EXPLANATION_CONFIG.TOP_TAGS) -> List[str]:
    """Most frequent lower-cased tags logged on the user's recent events."""
    counts: Counter = Counter()
    for event in history:
        counts.update(tag.lower() for tag in event.tags)
    return [tag for tag, _ in counts.most_common(n)]


class ExplanationGenerator:
    """Maps scoring evidence to human-readable reasons. Never raises."""

    def __init__(self, config: ExplanationConfig = DEFAULT_EXPLANATION_CONFIG) -> None:
        self.config = config

    def generate(
        self,
        ranked: RankedItem,
        history: Sequence[Event] = (),
        top_tags: Optional[List[str]] = None,
    ) -> Explanation:
        """
        Args:
            ranked: Scored item
            history: Recent user events (tags are read from properties)
            top_tags: Precomputed top_user_tags(history), to share across a page
        """
        cfg = self.config
        item = ranked.item
        debug = ranked.scoring_debug
        texts: List[str] = []
        codes: List[ReasonCode] = []

        if top_tags is None:
            top_tags = top_user_tags(history, cfg.TOP_TAGS)
        if top_tags:
            matching = [tag for tag in item.tags if tag.lower() in top_tags]
            if matching:
                texts.append(f"Matches your interest in {', '.join(matching[:cfg.TAGS_IN_TEXT])}")
                codes.append(ReasonCode.STYLE_MATCH)

        if debug.v_score > cfg.HIGH_RELEVANCE_SCORE:
            texts.append("Highly relevant to your style")
            codes.append(ReasonCode.AESTHETIC_MATCH)

        if item.eta_days is not None and item.eta_days <= cfg.FAST_ETA_DAYS:
            texts.append("Fast Delivery")
            codes.append(ReasonCode.FAST_ETA)

        if debug.vendor_quality_score > cfg.TOP_RATED_QUALITY:
            texts.append("Top Rated Vendor")
            codes.append(ReasonCode.TRUSTED_VENDOR)

        if not debug.price_penalty and item.price > 0:
            texts.append("Within your budget")
            codes.append(ReasonCode.PRICE_FIT)

        return Explanation(texts=texts, codes=codes)
