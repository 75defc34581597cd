"""
Tests for vendor listing normalization.
"""

import pytest

from feed.catalog import (
    CatalogNormalizationError,
    normalize_vendor_listing,
    normalize_vendor_listings,
)
from feed.filters import FilterService
from feed.models import AccessoryItem, FabricItem, FilterSpec, GarmentItem


@pytest.fixture
def shopify_row():
    return {
        "Handle": "linen-shirt",
        "Variant_SKU": "LS-001",
        "Title": "Linen Shirt",
        "Body_HTML": "<p>Breathable</p>",
        "Variant_Price": "89.50",
        "Tags": "linen, summer ,",
        "Option1 Value": "slim",
        "inventory_quantity": 0,
    }


class TestShopify:

    def test_fields_mapped(self, shopify_row):
        item = normalize_vendor_listing(shopify_row, "shopify_csv")

        assert isinstance(item, GarmentItem)
        assert item.item_id == "LS-001"
        assert item.name == "Linen Shirt"
        assert item.price == 89.5
        assert item.currency == "USD"
        assert item.tags == ["linen", "summer"]
        assert item.fit_meta.fit_type == "slim"
        assert item.fit_meta.target_demographic == "unisex"

    def test_handle_when_no_sku(self, shopify_row):
        del shopify_row["Variant_SKU"]
        assert normalize_vendor_listing(shopify_row, "shopify_csv").item_id == "linen-shirt"

    def test_source_is_case_insensitive(self, shopify_row):
        assert isinstance(normalize_vendor_listing(shopify_row, "SHOPIFY_CSV"), GarmentItem)

    def test_raw_row_feeds_stock_filter(self, shopify_row):
        item = normalize_vendor_listing(shopify_row, "shopify_csv", vendor="atelier")

        assert item.vendor == "atelier"
        assert item.raw_vendor_data == shopify_row
        result = FilterService().apply_hard_filters([item], FilterSpec())
        assert result.items == []
        assert result.metrics["dropped_stock"] == 1


class TestCustomApi:

    @pytest.mark.parametrize("category,kind", [
        ("Fabrics", FabricItem),
        ("Accessories", AccessoryItem),
        ("Dresses", GarmentItem),
        (None, GarmentItem),
    ])
    def test_category_to_kind(self, category, kind):
        item = normalize_vendor_listing(
            {"id": 7, "productName": "Thing", "cost": 20, "category": category},
            "custom_api",
        )
        assert isinstance(item, kind)
        assert item.item_id == "7"

    def test_garment_fields(self):
        item = normalize_vendor_listing({
            "id": "c1",
            "productName": "Wrap Dress",
            "details": "Silk",
            "cost": 120,
            "keywords": ["silk", "evening"],
            "fit": "regular",
            "gender": "womens",
            "eta_days": 4,
            "vendorQuality": 0.9,
        }, "custom_api")

        assert item.currency == "EUR"
        assert item.tags == ["silk", "evening"]
        assert item.fit_meta.target_demographic == "womens"
        assert item.eta_days == 4
        assert item.vendor_quality == 0.9
        assert item.vendor == "custom_api"

    def test_accessory_material(self):
        item = normalize_vendor_listing(
            {"id": "a1", "productName": "Belt", "category": "Accessories",
             "materialInfo": "leather", "currencyCode": "GBP"},
            "custom_api",
        )
        assert item.material == "leather"
        assert item.currency == "GBP"


class TestGeneric:

    def test_fallback_keys(self):
        item = normalize_vendor_listing({"sku": "s1", "title": "Scarf", "price": "bad"}, "etsy")

        assert item.item_id == "s1"
        assert item.name == "Scarf"
        assert item.price == 0.0
        assert item.currency == "USD"
        assert item.type == "garment"

    @pytest.mark.parametrize("row", [
        {"name": "No id"},
        {"id": "x1"},
        {"id": "x1", "name": ""},
    ])
    def test_rejects_rows_without_id_or_name(self, row):
        with pytest.raises(CatalogNormalizationError):
            normalize_vendor_listing(row, "generic")


class TestBatch:

    def test_bad_rows_skipped(self):
        items = normalize_vendor_listings(
            [{"id": "1", "name": "One"}, {"name": "missing id"}, {"id": "2", "name": "Two"}],
            "generic",
        )
        assert [i.item_id for i in items] == ["1", "2"]
