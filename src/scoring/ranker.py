"""
Ranker -- multi-factor scoring for filtered candidates.

    final = 0.70 * v_score
          + 0.15 * vendor_quality
          + 0.10 * eta_score
          + 0.05 * price_fit
          + vendor_boost

Usage::

    from scoring.ranker import Ranker, RankingContext

    ranker = Ranker()
    ranked = ranker.rank_candidates(items, RankingContext(budget_max=150))
    ranked[0].final_score, ranked[0].scoring_debug
"""

from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from config.constants import DEFAULT_RANKER_CONFIG, RankerConfig
from feed.models import CatalogItemBase, RankedItem, ScoringDebug, VendorTrustRecord


@dataclass
class RankingContext:
    """Request-scoped inputs to scoring."""
    budget_max: Optional[float] = None
    vendor_trust: Mapping[str, VendorTrustRecord] = field(default_factory=dict)


class Ranker:
    """
    Stateless -- safe to share across threads / reuse across requests.
    """

    def __init__(self, config: RankerConfig = DEFAULT_RANKER_CONFIG) -> None:
        self.config = config

    def score_item(self, item: CatalogItemBase, ctx: Optional[RankingContext] = None) -> RankedItem:
        ctx = ctx or RankingContext()
        cfg = self.config
        trust = ctx.vendor_trust.get(item.vendor) if item.vendor else None

        v_score = item.score if item.score is not None else cfg.DEFAULT_VECTOR_SCORE

        if trust is not None and trust.success_rate is not None:
            vendor_quality = trust.success_rate / 100.0
        elif item.vendor_quality is not None:
            vendor_quality = float(item.vendor_quality)
        else:
            vendor_quality = cfg.DEFAULT_VENDOR_QUALITY

        vendor_boost = cfg.FEATURED_VENDOR_BOOST if trust is not None and trust.is_featured else 0.0

        eta_days = item.eta_days if item.eta_days is not None else cfg.DEFAULT_ETA_DAYS
        eta_score = 1.0 / (float(eta_days) + 1.0)

        price_fit = self.price_fit(item.price, ctx.budget_max)

        final_score = (
            cfg.VECTOR_WEIGHT * v_score
            + cfg.VENDOR_QUALITY_WEIGHT * vendor_quality
            + cfg.ETA_WEIGHT * eta_score
            + cfg.PRICE_FIT_WEIGHT * price_fit
            + vendor_boost
        )

        return RankedItem(
            item=item,
            final_score=final_score,
            scoring_debug=ScoringDebug(
                v_score=v_score,
                vendor_quality_score=vendor_quality,
                eta_score=eta_score,
                price_fit=price_fit,
                vendor_boost=vendor_boost,
                price_penalty=price_fit < 1.0,
            ),
        )

    @staticmethod
    def price_fit(price: float, budget_max: Optional[float]) -> float:
        """1.0 within budget, else budget/price."""
        if budget_max is None or price <= budget_max or price <= 0:
            return 1.0
        return budget_max / price

    def rank_candidates(
        self,
        items: Sequence[CatalogItemBase],
        ctx: Optional[RankingContext] = None,
    ) -> List[RankedItem]:
        """Score every item and sort descending by final_score (stable on ties)."""
        ranked = [self.score_item(item, ctx) for item in items]
        ranked.sort(key=lambda r: r.final_score, reverse=True)
        return ranked
