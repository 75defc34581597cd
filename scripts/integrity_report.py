"""
Weekly data integrity report.

Counts catalog items missing style/fabric embeddings and checks a sample
of catalog vendors against the business records (missing, inactive or
not approved/verified).

Usage:
    PYTHONPATH=src python scripts/integrity_report.py
    PYTHONPATH=src python scripts/integrity_report.py --sample 500
"""

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from dotenv import load_dotenv
load_dotenv(ROOT / ".env")

from config.settings import get_settings
from core.logging import configure_logging
from feed.integrity import generate_integrity_report
from feed.storage import create_storage


def main():
    parser = argparse.ArgumentParser(description="Catalog and vendor integrity report.")
    parser.add_argument(
        "--sample", type=int, default=100,
        help="Number of distinct vendors to check. Default: 100",
    )
    args = parser.parse_args()

    configure_logging(json_logs=False, log_level="WARNING")
    storage = create_storage(get_settings())
    report = generate_integrity_report(storage.catalog, storage.vendor_trust, sample=args.sample)
    print(json.dumps(report, indent=2))

    if report["missing_embeddings"]["status"] != "OK" or report["vendor_issues"]["invalid_vendors"]:
        sys.exit(2)


if __name__ == "__main__":
    main()
