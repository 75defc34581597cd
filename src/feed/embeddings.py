"""
Text embeddings for catalog items and user preferences.

OpenAIEmbeddingProvider wraps the OpenAI embeddings API
(text-embedding-3-small, 1536-d). Without an API key it returns a zero
vector so local development works end to end.

backfill_item_embeddings() writes embeddings.e_style for catalog items
that don't have one yet (see scripts/backfill_embeddings.py).
"""

import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config.constants import EMBEDDING_DIM, EMBEDDING_VERSION
from config.settings import Settings, get_settings
from core.logging import get_logger
from feed.interfaces import CatalogRepository, EmbeddingProvider
from feed.models import AccessoryItem, CatalogItemBase, FabricItem, GarmentItem


logger = get_logger(__name__)


class EmbeddingProviderError(Exception):
    """Raised when the embedding API call fails."""
    pass


class OpenAIEmbeddingProvider:
    """Embedding provider backed by the OpenAI embeddings API."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self._client = None
        self._client_lock = threading.Lock()
        self._api_key = settings.openai_api_key
        self._timeout = settings.embedding_timeout_seconds
        self.model = settings.embedding_model
        self.dim = EMBEDDING_DIM

        if not self._api_key:
            logger.warning("OPENAI_API_KEY is not set, embeddings will be zero vectors")

    @property
    def client(self):
        """Lazy-load OpenAI client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    from openai import OpenAI
                    self._client = OpenAI(
                        api_key=self._api_key,
                        timeout=self._timeout,
                    )
        return self._client

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def embed(self, text: str) -> List[float]:
        """
        Embed text into a `dim`-length vector.

        Raises:
            EmbeddingProviderError: If the API call fails
        """
        if not self.enabled:
            logger.warning("Skipping embedding generation (no API key)")
            return [0.0] * self.dim

        try:
            response = self.client.embeddings.create(model=self.model, input=text)
            return list(response.data[0].embedding)
        except Exception as e:
            logger.error("Error generating embedding", model=self.model, error=str(e))
            raise EmbeddingProviderError(str(e)) from e


def build_canonical_item_text(item: CatalogItemBase) -> str:
    """
    Canonical text for embedding an item.

    Name, description and tags for every kind, plus fit and composition
    for garments, composition for fabrics and material for accessories.
    """
    parts: List[Optional[str]] = [item.name, item.description]

    if item.tags:
        parts.append(f"Tags: {', '.join(item.tags)}")

    if isinstance(item, GarmentItem):
        if item.fit_meta is not None:
            parts.append(f"Fit: {item.fit_meta.fit_type} for {item.fit_meta.target_demographic}")
        if item.fabric_composition:
            parts.append(f"Composition: {item.fabric_composition}")
    elif isinstance(item, FabricItem):
        if item.fabric_composition:
            parts.append(f"Fabric: {item.fabric_composition}")
    elif isinstance(item, AccessoryItem):
        if item.material:
            parts.append(f"Material: {item.material}")

    return ". ".join(p for p in parts if p)


def backfill_item_embeddings(
    catalog: CatalogRepository,
    provider: EmbeddingProvider,
    kind: Optional[str] = None,
    limit: Optional[int] = None,
    model: str = "text-embedding-3-small",
) -> Dict[str, Any]:
    """
    Embed catalog items that have no style embedding yet.

    Args:
        catalog: Catalog to read and update
        provider: Embedding provider
        kind: Only process this item type (garment/fabric/accessory)
        limit: Max items to embed in this run
        model: Model name recorded in embedding_metadata

    Returns:
        {"processed": n, "failed": m}
    """
    logger.info("Starting embedding backfill", kind=kind, limit=limit)
    processed = 0
    failed = 0

    for item in catalog.find_all():
        if limit is not None and processed >= limit:
            break
        if item.style_embedding:
            continue
        if kind and item.type != kind:
            continue

        try:
            vector = provider.embed(build_canonical_item_text(item))
        except Exception as e:
            failed += 1
            logger.warning("Failed to embed item", item_id=item.item_id, error=str(e))
            continue

        embeddings = item.embeddings.model_dump() if item.embeddings else {}
        embeddings["e_style"] = vector
        catalog.update(item.item_id, {
            "embeddings": embeddings,
            "embedding_metadata": {
                "model": model,
                "dim": len(vector),
                "version": EMBEDDING_VERSION,
                "embedded_at": datetime.now(timezone.utc).isoformat(),
            },
        })
        processed += 1
        logger.debug("Embedded item", item_id=item.item_id)

    logger.info("Backfill complete", processed=processed, failed=failed)
    return {"processed": processed, "failed": failed}
