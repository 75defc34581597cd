"""
Backfill style embeddings for catalog items.

Embeds the canonical text of every item that has no `embeddings.e_style`
yet (name, description, tags, plus fit / composition / material by item
kind) with the configured OpenAI model and writes the vector back together
with `embedding_metadata`.

Usage:
    # Backfill everything
    PYTHONPATH=src python scripts/backfill_embeddings.py

    # Only fabrics, at most 50 items
    PYTHONPATH=src python scripts/backfill_embeddings.py --kind fabric --limit 50

    # Show canonical text for the first items without writing
    PYTHONPATH=src python scripts/backfill_embeddings.py --dry-run --limit 5
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
from core.logging import configure_logging, get_logger
from feed.embeddings import OpenAIEmbeddingProvider, backfill_item_embeddings, build_canonical_item_text
from feed.models import ItemType
from feed.storage import create_storage


logger = get_logger("backfill_embeddings")


def main():
    parser = argparse.ArgumentParser(
        description="Embed catalog items that are missing a style embedding."
    )
    parser.add_argument(
        "--kind", type=str, default=None,
        choices=[t.value for t in ItemType],
        help="Only process this item type. Default: all",
    )
    parser.add_argument(
        "--limit", type=int, default=None,
        help="Max items to embed. Default: all",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Print canonical text for pending items instead of embedding them",
    )
    args = parser.parse_args()

    configure_logging(json_logs=False, log_level="INFO")
    settings = get_settings()
    storage = create_storage(settings)

    if args.dry_run:
        shown = 0
        for item in storage.catalog.find_all():
            if args.limit is not None and shown >= args.limit:
                break
            if item.style_embedding or (args.kind and item.type != args.kind):
                continue
            print(f"{item.item_id} [{item.type}]: {build_canonical_item_text(item)}")
            shown += 1
        return

    provider = OpenAIEmbeddingProvider(settings)
    if not provider.enabled:
        logger.error("OPENAI_API_KEY is not set, refusing to write zero vectors")
        sys.exit(1)

    result = backfill_item_embeddings(
        storage.catalog,
        provider,
        kind=args.kind,
        limit=args.limit,
        model=settings.embedding_model,
    )
    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
