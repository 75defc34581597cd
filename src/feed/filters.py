"""
Hard filters and vendor trust gating.

Runs BEFORE ranking. Each item is checked against an ordered predicate
chain that short-circuits on the first failure:

1. Vendor gating   - inactive vendor, or status not approved/verified
2. Stock           - in_stock_only and inventory_quantity <= 0
3. Price           - price > max_price
4. Blocked vendor  - vendor in blocked_vendors
5. Demographic     - item targets another (non-unisex) demographic
6. Category        - neither type nor any tag equals the category

Predicates are independent: the order only decides which counter a
dropped item is attributed to. Absent optional fields always pass, and a
vendor with no trust record is not gated.

Usage:
    service = FilterService()
    spec = service.build_filter_spec({"max_price": 150}, user_preferences)
    result = service.apply_hard_filters(items, spec, vendor_trust)
    result.items, result.metrics
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from config.constants import TRUSTED_VENDOR_STATUSES
from core.logging import get_logger
from feed.models import CatalogItemBase, FilterSpec, UserPreferences, VendorTrustRecord


logger = get_logger(__name__)


# =============================================================================
# Types
# =============================================================================

DROP_REASONS: Tuple[str, ...] = (
    "vendor_gating",
    "stock",
    "price",
    "blocked_vendor",
    "demographic",
    "category",
)


@dataclass
class FilterResult:
    """Surviving items plus per-reason drop counts."""
    items: List[CatalogItemBase] = field(default_factory=list)
    metrics: Dict[str, int] = field(default_factory=dict)

    @property
    def dropped(self) -> int:
        return self.metrics.get("total_input", 0) - self.metrics.get("total_output", 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_ids": [item.item_id for item in self.items],
            "metrics": dict(self.metrics),
        }


def _empty_metrics(total_input: int) -> Dict[str, int]:
    metrics = {"total_input": total_input}
    for reason in DROP_REASONS:
        metrics[f"dropped_{reason}"] = 0
    metrics["total_output"] = 0
    return metrics


# =============================================================================
# Predicates (True = drop)
# =============================================================================

def fails_vendor_gating(item: CatalogItemBase, trust: Optional[VendorTrustRecord]) -> bool:
    if trust is None:
        return False
    if trust.is_active is False:
        return True
    if trust.status is not None and trust.status.value not in TRUSTED_VENDOR_STATUSES:
        return True
    return False


def fails_stock(item: CatalogItemBase, spec: FilterSpec) -> bool:
    if not spec.in_stock_only:
        return False
    stock = item.inventory_quantity
    return stock is not None and stock <= 0


def fails_price(item: CatalogItemBase, spec: FilterSpec) -> bool:
    return spec.max_price is not None and item.price > spec.max_price


def fails_blocked_vendor(item: CatalogItemBase, spec: FilterSpec) -> bool:
    return bool(spec.blocked_vendors) and item.vendor in spec.blocked_vendors


def fails_demographic(item: CatalogItemBase, spec: FilterSpec) -> bool:
    if not spec.gender:
        return False
    fit_meta = getattr(item, "fit_meta", None)
    target = fit_meta.target_demographic if fit_meta else None
    if not target:
        return False
    return target != "unisex" and target != spec.gender


def fails_category(item: CatalogItemBase, spec: FilterSpec) -> bool:
    if not spec.category:
        return False
    category = spec.category.lower()
    if item.type.lower() == category:
        return False
    return not any(tag.lower() == category for tag in item.tags)


_SPEC_PREDICATES: Tuple[Tuple[str, Callable[[CatalogItemBase, FilterSpec], bool]], ...] = (
    ("stock", fails_stock),
    ("price", fails_price),
    ("blocked_vendor", fails_blocked_vendor),
    ("demographic", fails_demographic),
    ("category", fails_category),
)


# =============================================================================
# Service
# =============================================================================

class FilterService:
    """Builds filter specs from requests and applies them to candidates."""

    def build_filter_spec(
        self,
        query: Optional[Mapping[str, Any]] = None,
        user_preferences: Optional[UserPreferences] = None,
    ) -> FilterSpec:
        """
        Build a FilterSpec from request params and the user's stored settings.

        Accepts both snake_case and camelCase keys (max_price / maxPrice).
        """
        query = query or {}
        spec = FilterSpec()

        max_price = _first(query, "max_price", "maxPrice", "budget_max", "budgetMax")
        if max_price not in (None, ""):
            spec.max_price = float(max_price)

        deadline = _first(query, "deadline_days", "deadlineDays")
        if deadline not in (None, ""):
            spec.deadline_days = int(deadline)

        gender = query.get("gender")
        if gender:
            spec.gender = gender

        category = query.get("category")
        if category:
            spec.category = category

        in_stock = _first(query, "in_stock_only", "inStockOnly")
        if in_stock is not None:
            spec.in_stock_only = in_stock if isinstance(in_stock, bool) else str(in_stock).lower() == "true"

        if user_preferences is not None and user_preferences.blocked_vendors:
            spec.blocked_vendors = set(user_preferences.blocked_vendors)

        return spec

    def apply_hard_filters(
        self,
        items: Sequence[CatalogItemBase],
        spec: FilterSpec,
        vendor_trust: Optional[Mapping[str, VendorTrustRecord]] = None,
    ) -> FilterResult:
        """
        Apply the predicate chain to each item.

        Args:
            items: Candidates in ranked/retrieval order (order is preserved)
            spec: Hard constraints for this request
            vendor_trust: vendor_id -> trust record; None skips gating

        Returns:
            FilterResult with surviving items and drop counters
        """
        metrics = _empty_metrics(len(items))
        kept: List[CatalogItemBase] = []

        for item in items:
            reason = self._drop_reason(item, spec, vendor_trust)
            if reason is not None:
                metrics[f"dropped_{reason}"] += 1
                continue
            kept.append(item)

        metrics["total_output"] = len(kept)
        logger.debug("Applied hard filters", **metrics)
        return FilterResult(items=kept, metrics=metrics)

    @staticmethod
    def _drop_reason(
        item: CatalogItemBase,
        spec: FilterSpec,
        vendor_trust: Optional[Mapping[str, VendorTrustRecord]],
    ) -> Optional[str]:
        if vendor_trust is not None and fails_vendor_gating(item, vendor_trust.get(item.vendor)):
            return "vendor_gating"
        for reason, predicate in _SPEC_PREDICATES:
            if predicate(item, spec):
                return reason
        return None


def _first(query: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in query and query[key] is not None:
            return query[key]
    return None
