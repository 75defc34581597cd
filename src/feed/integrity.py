"""
Data integrity report.

Flags catalog items without embeddings and vendors in the catalog that
have no trust record or are not in good standing.
"""

from typing import Any, Dict, List

from config.constants import TRUSTED_VENDOR_STATUSES
from core.logging import get_logger
from feed.interfaces import CatalogRepository, VendorTrustService


logger = get_logger(__name__)


def check_embeddings_integrity(catalog: CatalogRepository) -> Dict[str, Any]:
    """Count items missing either the style or the fabric embedding."""
    count = 0
    for item in catalog.find_all():
        emb = item.embeddings
        if emb is None or not emb.e_style or not emb.e_fabric:
            count += 1
    return {"count": count, "status": "WARNING" if count > 0 else "OK"}


def check_vendor_integrity(
    catalog: CatalogRepository,
    vendor_trust: VendorTrustService,
    sample: int = 100,
) -> Dict[str, Any]:
    """Check the first `sample` distinct catalog vendors against the business service."""
    vendors: List[str] = list(dict.fromkeys(i.vendor for i in catalog.find_all() if i.vendor))
    checked = vendors[:sample]

    invalid = 0
    inactive = 0
    for vendor_id in checked:
        try:
            record = vendor_trust.find_one(vendor_id)
        except Exception as e:
            logger.warning("Vendor lookup failed", vendor_id=vendor_id, error=str(e))
            invalid += 1
            continue
        if record is None:
            invalid += 1
        elif not record.is_active or record.status is None or record.status.value not in TRUSTED_VENDOR_STATUSES:
            inactive += 1

    return {
        "total_vendors": len(vendors),
        "checked": len(checked),
        "invalid_vendors": invalid,
        "inactive_vendors": inactive,
    }


def generate_integrity_report(
    catalog: CatalogRepository,
    vendor_trust: VendorTrustService,
    sample: int = 100,
) -> Dict[str, Any]:
    report = {
        "missing_embeddings": check_embeddings_integrity(catalog),
        "vendor_issues": check_vendor_integrity(catalog, vendor_trust, sample),
    }
    logger.info("Integrity report", **report)
    return report
