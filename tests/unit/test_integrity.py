"""
Tests for the data integrity report.
"""

from unittest.mock import MagicMock

from feed.integrity import check_embeddings_integrity, check_vendor_integrity, generate_integrity_report
from feed.models import VendorStatus, VendorTrustRecord
from feed.storage import InMemoryCatalogRepository, InMemoryVendorTrustService


def _catalog(item_factory):
    return InMemoryCatalogRepository([
        item_factory("both", vendor="good", embeddings={"e_style": [1.0], "e_fabric": [1.0]}),
        item_factory("style-only", vendor="inactive", embedding=[1.0]),
        item_factory("none", vendor="ghost"),
        item_factory("pending-item", vendor="pending"),
    ])


def _vendors():
    return InMemoryVendorTrustService([
        VendorTrustRecord(vendor_id="good", status=VendorStatus.APPROVED),
        VendorTrustRecord(vendor_id="inactive", is_active=False, status=VendorStatus.APPROVED),
        VendorTrustRecord(vendor_id="pending", status=VendorStatus.PENDING),
    ])


class TestIntegrity:

    def test_missing_embeddings(self, item_factory):
        assert check_embeddings_integrity(_catalog(item_factory)) == {"count": 3, "status": "WARNING"}

    def test_all_embedded(self, item_factory):
        catalog = InMemoryCatalogRepository([
            item_factory("a", embeddings={"e_style": [1.0], "e_fabric": [1.0]}),
        ])
        assert check_embeddings_integrity(catalog) == {"count": 0, "status": "OK"}

    def test_vendor_issues(self, item_factory):
        result = check_vendor_integrity(_catalog(item_factory), _vendors())

        assert result == {
            "total_vendors": 4,
            "checked": 4,
            "invalid_vendors": 1,
            "inactive_vendors": 2,
        }

    def test_sample_and_lookup_errors(self, item_factory):
        service = MagicMock()
        service.find_one.side_effect = RuntimeError("down")

        result = check_vendor_integrity(_catalog(item_factory), service, sample=2)

        assert result["checked"] == 2
        assert result["invalid_vendors"] == 2

    def test_report(self, item_factory):
        report = generate_integrity_report(_catalog(item_factory), _vendors())
        assert set(report) == {"missing_embeddings", "vendor_issues"}
