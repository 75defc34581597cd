"""
Vendor listing normalization.

Vendors push listings in their own shapes. Each known source has a
normalizer that maps its columns onto catalog item fields; anything else
goes through a generic mapping. The raw row is always kept as
`raw_vendor_data`, which is where stock (`inventory_quantity`), lead time
(`eta_days`) and `vendorQuality` are read from downstream.

Sources:
- shopify_csv: Shopify product export rows (Handle, Title, Variant SKU ...)
- custom_api: vendor JSON feeds (id, productName, cost, category ...)
- anything else: id/sku/code, name/title, price, currency

Usage:
    from feed.catalog import normalize_vendor_listing

    item = normalize_vendor_listing(row, source="shopify_csv")
    storage.catalog.add(item)
"""

from typing import Any, Callable, Dict, List, Mapping, Optional

from core.logging import get_logger
from feed.models import CatalogItemBase, ItemType, parse_catalog_item


logger = get_logger(__name__)


class CatalogNormalizationError(ValueError):
    """A vendor row is missing fields every catalog item needs."""
    pass


def _to_float(value: Any) -> float:
    try:
        return float(value) if value not in (None, "") else 0.0
    except (TypeError, ValueError):
        return 0.0


def _split_tags(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(t).strip() for t in value if str(t).strip()]
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    return []


# =============================================================================
# Source normalizers
# =============================================================================

def _normalize_shopify(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "item_id": raw.get("Variant_SKU") or raw.get("Handle"),
        "name": raw.get("Title"),
        "description": raw.get("Body_HTML"),
        "price": _to_float(raw.get("Variant_Price")),
        "currency": "USD",
        "type": ItemType.GARMENT.value,
        "tags": _split_tags(raw.get("Tags")),
        "fit_meta": {
            "fit_type": raw.get("Option1 Value") or "regular",
            "target_demographic": "unisex",
        },
    }


def _normalize_custom_api(raw: Mapping[str, Any]) -> Dict[str, Any]:
    category = raw.get("category")
    if category == "Fabrics":
        item_type = ItemType.FABRIC
    elif category == "Accessories":
        item_type = ItemType.ACCESSORY
    else:
        item_type = ItemType.GARMENT

    data = {
        "item_id": raw.get("id"),
        "name": raw.get("productName"),
        "description": raw.get("details"),
        "price": _to_float(raw.get("cost")),
        "currency": raw.get("currencyCode") or "EUR",
        "type": item_type.value,
        "tags": _split_tags(raw.get("keywords")),
    }
    if item_type == ItemType.GARMENT:
        data["fit_meta"] = {
            "fit_type": raw.get("fit"),
            "target_demographic": raw.get("gender"),
        }
    elif item_type == ItemType.ACCESSORY:
        data["material"] = raw.get("materialInfo")
    return data


def _normalize_generic(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "item_id": raw.get("id") or raw.get("sku") or raw.get("code"),
        "name": raw.get("name") or raw.get("title"),
        "description": raw.get("description"),
        "price": _to_float(raw.get("price")),
        "currency": raw.get("currency") or "USD",
        "type": ItemType.GARMENT.value,
    }


NORMALIZERS: Dict[str, Callable[[Mapping[str, Any]], Dict[str, Any]]] = {
    "shopify_csv": _normalize_shopify,
    "custom_api": _normalize_custom_api,
}


def normalize_vendor_listing(
    raw: Mapping[str, Any],
    source: str,
    vendor: Optional[str] = None,
) -> CatalogItemBase:
    """
    Map a raw vendor row onto a catalog item.

    Args:
        raw: Row as received from the vendor
        source: Listing source (shopify_csv, custom_api, ...)
        vendor: Vendor id to attach; defaults to the source name

    Raises:
        CatalogNormalizationError: the row has no item id or no name
    """
    logger.debug("Normalizing listing", source=source)

    normalizer = NORMALIZERS.get(source.lower())
    if normalizer is None:
        logger.warning("Unknown listing source, using generic normalization", source=source)
        normalizer = _normalize_generic

    data = normalizer(raw)
    if not data.get("item_id"):
        raise CatalogNormalizationError("Normalization failed: missing item id")
    if not data.get("name"):
        raise CatalogNormalizationError("Normalization failed: missing name")

    data["item_id"] = str(data["item_id"])
    data["vendor"] = vendor or source
    data["raw_vendor_data"] = dict(raw)
    return parse_catalog_item(data)


def normalize_vendor_listings(
    rows: List[Mapping[str, Any]],
    source: str,
    vendor: Optional[str] = None,
) -> List[CatalogItemBase]:
    """Normalize a batch, skipping (and logging) rows that fail."""
    items = []
    rejected = 0
    for row in rows:
        try:
            items.append(normalize_vendor_listing(row, source, vendor))
        except CatalogNormalizationError as e:
            rejected += 1
            logger.warning("Rejected vendor listing", source=source, error=str(e))

    logger.info("Normalized vendor listings", source=source, accepted=len(items), rejected=rejected)
    return items
