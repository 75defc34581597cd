"""
Pytest configuration and shared fixtures for the feed service tests.
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from typing import Generator, List, Optional

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Tests never talk to Supabase unless explicitly marked
os.environ.setdefault("STORAGE_BACKEND", "memory")

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))

from config.constants import EMBEDDING_DIM


# ============================================================================
# Helpers
# ============================================================================

def one_hot(index: int, dim: int = EMBEDDING_DIM) -> List[float]:
    """Unit vector along `index`; distinct indices are orthogonal."""
    vec = [0.0] * dim
    vec[index % dim] = 1.0
    return vec


def make_item(
    item_id: str,
    type: str = "garment",
    vendor: str = "vendor-a",
    price: float = 50.0,
    tags: Optional[list] = None,
    stock: Optional[float] = 5,
    eta_days: Optional[float] = None,
    embedding: Optional[List[float]] = None,
    created_at: Optional[datetime] = None,
    **extra,
):
    """Build a catalog item of any kind from keyword fields."""
    from feed.models import parse_catalog_item

    raw_vendor_data = dict(extra.pop("raw_vendor_data", {}))
    if stock is not None:
        raw_vendor_data["inventory_quantity"] = stock
    if eta_days is not None:
        raw_vendor_data["eta_days"] = eta_days

    data = {
        "item_id": item_id,
        "type": type,
        "name": extra.pop("name", f"Item {item_id}"),
        "price": price,
        "vendor": vendor,
        "tags": tags or [],
        "raw_vendor_data": raw_vendor_data,
        "created_at": created_at,
        **extra,
    }
    if embedding is not None:
        data["embeddings"] = {"e_style": embedding}
    return parse_catalog_item(data)


def make_event(
    user_id: str,
    event_type: str,
    item_id: Optional[str] = None,
    session_id: Optional[str] = None,
    tags: Optional[list] = None,
    age_days: float = 0.0,
):
    from feed.models import Event, EventType

    properties = {}
    if item_id is not None:
        properties["itemId"] = item_id
    if session_id is not None:
        properties["sessionId"] = session_id
    if tags is not None:
        properties["tags"] = tags
    return Event(
        user_id=user_id,
        event_type=EventType(event_type),
        properties=properties,
        timestamp=datetime.now(timezone.utc) - timedelta(days=age_days),
    )


def make_ranked(item, score: float = 0.5):
    """Wrap an item in a RankedItem with a flat debug record."""
    from feed.models import RankedItem, ScoringDebug

    return RankedItem(
        item=item,
        final_score=score,
        scoring_debug=ScoringDebug(
            v_score=score,
            vendor_quality_score=0.8,
            eta_score=0.25,
            price_fit=1.0,
            vendor_boost=0.0,
        ),
    )


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

@pytest.fixture
def item_factory():
    """Factory for catalog items: item_factory("g1", type="garment", ...)."""
    return make_item


@pytest.fixture
def event_factory():
    """Factory for events: event_factory("u1", "PURCHASE", item_id="g1")."""
    return make_event


@pytest.fixture
def ranked_factory():
    return make_ranked


@pytest.fixture
def sample_catalog() -> list:
    """
    12 items across three kinds and four vendors.

    Every item has a distinct one-hot style embedding, and created_at is
    spread one day apart (g0 newest).
    """
    now = datetime.now(timezone.utc)
    items = []
    kinds = (
        ["garment"] * 6
        + ["accessory"] * 3
        + ["fabric"] * 3
    )
    vendors = ["vendor-a", "vendor-b", "vendor-c", "vendor-d"]
    for i, kind in enumerate(kinds):
        items.append(make_item(
            f"{kind[0]}{i}",
            type=kind,
            vendor=vendors[i % len(vendors)],
            price=40.0 + i * 10,
            tags=["casual", "cotton"] if i % 2 == 0 else ["formal", "linen"],
            embedding=one_hot(i),
            created_at=now - timedelta(days=i),
        ))
    return items


@pytest.fixture
def sample_vendors() -> list:
    from feed.models import VendorTrustRecord, VendorStatus

    return [
        VendorTrustRecord(vendor_id="vendor-a", name="Atelier A", status=VendorStatus.APPROVED,
                          success_rate=90, quality_score=0.9),
        VendorTrustRecord(vendor_id="vendor-b", name="Bespoke B", status=VendorStatus.VERIFIED,
                          success_rate=80, quality_score=0.7, is_featured=True),
        VendorTrustRecord(vendor_id="vendor-c", name="Cloth C", status=VendorStatus.APPROVED,
                          success_rate=60),
        # vendor-d has no trust record: treated as ungated
    ]


# ============================================================================
# Fixtures: Storage & Orchestrator
# ============================================================================

@pytest.fixture
def memory_storage(sample_catalog, sample_vendors):
    """In-memory storage seeded with the sample catalog and vendors."""
    from feed.storage import create_memory_storage
    return create_memory_storage(items=sample_catalog, vendors=sample_vendors)


@pytest.fixture
def test_settings():
    from config.settings import get_settings_for_testing
    return get_settings_for_testing()


@pytest.fixture
def orchestrator(memory_storage, test_settings):
    from core.counters import EventCounter
    from feed.events import EventService
    from feed.pipeline import FeedOrchestrator

    orch = FeedOrchestrator(memory_storage, settings=test_settings)
    # Keep the process-wide counter untouched by tests
    orch.events = EventService(memory_storage.events, counter=EventCounter())
    return orch


# ============================================================================
# Fixtures: Mock Services
# ============================================================================

@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client for unit tests."""
    from unittest.mock import MagicMock

    mock_client = MagicMock()

    # Mock RPC calls
    mock_client.rpc.return_value.execute.return_value.data = []

    # Mock table operations
    mock_client.table.return_value.select.return_value.execute.return_value.data = []
    mock_client.table.return_value.insert.return_value.execute.return_value.data = [{"id": "test"}]
    mock_client.table.return_value.upsert.return_value.execute.return_value.data = [{"id": "test"}]

    return mock_client


# ============================================================================
# Fixtures: FastAPI Test Client
# ============================================================================

@pytest.fixture
def app(orchestrator):
    """FastAPI application wired to the in-memory orchestrator."""
    from api.app import create_app
    from api.dependencies import get_orchestrator

    application = create_app()
    application.dependency_overrides[get_orchestrator] = lambda: orchestrator
    return application


@pytest.fixture
def client(app) -> Generator:
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client


# ============================================================================
# Markers auto-use
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "supabase: marks tests that require Supabase")


# ============================================================================
# Skip conditions
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Auto-skip Supabase tests when no credentials are configured."""
    skip_supabase = pytest.mark.skip(reason="Supabase tests require credentials")
    supabase_url = os.getenv("SUPABASE_URL")

    for item in items:
        if "supabase" in item.keywords and not supabase_url:
            item.add_marker(skip_supabase)
