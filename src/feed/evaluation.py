"""
Offline evaluation of a recommendation list against held-out events.

ctr_at_k and conversion_at_k are recall over the event set:
    matched events whose item is in the top-k / all events of that kind
not precision@k. Dashboards compare against this definition.
"""

from typing import Sequence, Union

from feed.models import (
    CONVERSION_EVENTS,
    CatalogItemBase,
    DiversityMetrics,
    EvaluationMetrics,
    Event,
    EventType,
    RankedItem,
)


Recommendation = Union[CatalogItemBase, RankedItem]


def _ratio(numerator: int, denominator: int) -> float:
    return numerator / denominator if denominator > 0 else 0.0


class EvaluationService:
    def compute_metrics(
        self,
        recommendations: Sequence[Recommendation],
        ground_truth_events: Sequence[Event],
        k: int = 10,
    ) -> EvaluationMetrics:
        """
        Args:
            recommendations: Ranked list (catalog items or ranked items)
            ground_truth_events: Hold-out interactions for the same user
            k: Cutoff (k <= 0 evaluates an empty list)
        """
        top_k = list(recommendations)[:max(k, 0)]
        top_k_ids = {r.item_id for r in top_k}

        clicks = [e for e in ground_truth_events if e.event_type == EventType.CLICK_ITEM]
        click_hits = [e for e in clicks if e.item_id and e.item_id in top_k_ids]

        conversions = [e for e in ground_truth_events if e.event_type in CONVERSION_EVENTS]
        conversion_hits = [e for e in conversions if e.item_id and e.item_id in top_k_ids]

        return EvaluationMetrics(
            ctr_at_k=_ratio(len(click_hits), len(clicks)),
            conversion_at_k=_ratio(len(conversion_hits), len(conversions)),
            diversity=DiversityMetrics(
                unique_vendors=len({r.vendor for r in top_k}),
                unique_categories=len({r.type for r in top_k}),
            ),
        )

    def evaluate_session(
        self,
        recommendations: Sequence[Recommendation],
        events: Sequence[Event],
    ) -> EvaluationMetrics:
        """Metrics over the whole served list (k = its length)."""
        return self.compute_metrics(recommendations, events, k=len(recommendations))
