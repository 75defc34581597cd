"""
Tests for the embedding provider, canonical item text and the backfill job.
"""

from unittest.mock import MagicMock

import pytest

from config.settings import get_settings_for_testing
from feed.embeddings import (
    EmbeddingProviderError,
    OpenAIEmbeddingProvider,
    backfill_item_embeddings,
    build_canonical_item_text,
)
from feed.storage import InMemoryCatalogRepository


class TestCanonicalText:

    def test_garment(self, item_factory):
        item = item_factory(
            "g1",
            name="Agbada",
            description="Hand-embroidered",
            tags=["ceremonial", "mens"],
            fit_meta={"target_demographic": "mens", "fit_type": "regular"},
            fabric_composition="100% cotton",
        )
        assert build_canonical_item_text(item) == (
            "Agbada. Hand-embroidered. Tags: ceremonial, mens. "
            "Fit: regular for mens. Composition: 100% cotton"
        )

    def test_fabric(self, item_factory):
        item = item_factory("f1", type="fabric", name="Ankara", fabric_composition="wax print cotton")
        assert build_canonical_item_text(item) == "Ankara. Fabric: wax print cotton"

    def test_accessory(self, item_factory):
        item = item_factory("a1", type="accessory", name="Gele", material="aso oke")
        assert build_canonical_item_text(item) == "Gele. Material: aso oke"


class TestOpenAIEmbeddingProvider:

    def test_zero_vector_without_key(self):
        provider = OpenAIEmbeddingProvider(get_settings_for_testing(openai_api_key=""))

        assert provider.enabled is False
        assert provider.embed("hello") == [0.0] * 1536

    def test_calls_api(self):
        provider = OpenAIEmbeddingProvider(get_settings_for_testing(openai_api_key="sk-test"))
        client = MagicMock()
        client.embeddings.create.return_value.data = [MagicMock(embedding=[0.1, 0.2])]
        provider._client = client

        assert provider.embed("linen shirt") == [0.1, 0.2]
        client.embeddings.create.assert_called_once_with(
            model="text-embedding-3-small", input="linen shirt",
        )

    def test_api_error_wrapped(self):
        provider = OpenAIEmbeddingProvider(get_settings_for_testing(openai_api_key="sk-test"))
        client = MagicMock()
        client.embeddings.create.side_effect = RuntimeError("rate limited")
        provider._client = client

        with pytest.raises(EmbeddingProviderError):
            provider.embed("linen shirt")


class TestBackfill:

    def test_embeds_only_missing(self, item_factory):
        catalog = InMemoryCatalogRepository([
            item_factory("done", embedding=[1.0]),
            item_factory("g1", name="Shirt"),
            item_factory("f1", type="fabric", name="Linen"),
        ])
        provider = MagicMock()
        provider.embed.return_value = [0.5, 0.5]

        result = backfill_item_embeddings(catalog, provider, model="test-model")

        assert result == {"processed": 2, "failed": 0}
        updated = catalog.find_by_id("g1")
        assert updated.style_embedding == [0.5, 0.5]
        assert updated.embedding_metadata.model == "test-model"
        assert updated.embedding_metadata.dim == 2
        assert catalog.find_by_id("done").style_embedding == [1.0]

    def test_kind_and_limit(self, item_factory):
        catalog = InMemoryCatalogRepository([
            item_factory("g1"),
            item_factory("f1", type="fabric"),
            item_factory("f2", type="fabric"),
        ])
        provider = MagicMock()
        provider.embed.return_value = [1.0]

        result = backfill_item_embeddings(catalog, provider, kind="fabric", limit=1)

        assert result == {"processed": 1, "failed": 0}
        assert catalog.find_by_id("g1").style_embedding is None

    def test_failures_counted(self, item_factory):
        catalog = InMemoryCatalogRepository([item_factory("g1"), item_factory("g2")])
        provider = MagicMock()
        provider.embed.side_effect = [EmbeddingProviderError("boom"), [1.0]]

        result = backfill_item_embeddings(catalog, provider)

        assert result == {"processed": 1, "failed": 1}
