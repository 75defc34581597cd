"""
Concurrent vendor trust lookups.

Trust records for every distinct vendor in a candidate set are fetched in
parallel before filtering and ranking. The fan-out is gather-what-you-can:
a failed or slow lookup is logged and simply absent from the result, and
downstream code treats an absent vendor as ungated/neutral.
"""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Dict, Iterable, List, Optional

from core.logging import get_logger
from feed.interfaces import VendorTrustService
from feed.models import VendorTrustRecord


logger = get_logger(__name__)

_LOOKUP_EXECUTOR = ThreadPoolExecutor(max_workers=16, thread_name_prefix="vendor-trust")


def fetch_vendor_trust(
    service: Optional[VendorTrustService],
    vendor_ids: Iterable[Optional[str]],
    max_workers: int = 8,
    timeout_seconds: float = 1.5,
) -> Dict[str, VendorTrustRecord]:
    """
    Look up trust records for distinct, non-empty vendor ids.

    Args:
        service: Business/vendor service (None disables gating)
        vendor_ids: Vendor ids, duplicates and blanks allowed
        max_workers: Max lookups in flight for this request
        timeout_seconds: One deadline for all lookups; batches not started
            before it expires are skipped

    Returns:
        vendor_id -> record for the lookups that succeeded and found a record
    """
    distinct = list(dict.fromkeys(v for v in vendor_ids if v))
    if service is None or not distinct:
        return {}

    records: Dict[str, VendorTrustRecord] = {}
    failed = 0
    pending: List[str] = []
    deadline = time.monotonic() + timeout_seconds

    # Chunk so a single request never holds more than max_workers slots
    batch_size = max(1, max_workers)
    for start in range(0, len(distinct), batch_size):
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            pending.extend(distinct[start:])
            break

        batch = distinct[start:start + batch_size]
        futures = {_LOOKUP_EXECUTOR.submit(service.find_one, vid): vid for vid in batch}
        try:
            for future in as_completed(futures, timeout=remaining):
                vendor_id = futures[future]
                try:
                    record = future.result()
                except Exception as e:
                    failed += 1
                    logger.warning("Vendor lookup failed", vendor_id=vendor_id, error=str(e))
                    continue
                if record is not None:
                    records[vendor_id] = record
        except FutureTimeoutError:
            for f, vid in futures.items():
                if not f.done():
                    f.cancel()
                    pending.append(vid)
                elif vid not in records and f.exception() is None and f.result() is not None:
                    records[vid] = f.result()
            pending.extend(distinct[start + batch_size:])
            break

    if pending:
        failed += len(pending)
        logger.warning(
            "Vendor lookups timed out",
            pending=pending,
            timeout_seconds=timeout_seconds,
        )

    logger.debug(
        "Fetched vendor trust",
        requested=len(distinct),
        found=len(records),
        failed=failed,
    )
    return records
