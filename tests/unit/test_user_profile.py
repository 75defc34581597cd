"""
Tests for the user style profile builder.
"""

import math
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import numpy as np
import pytest

from feed.models import ColdStartLevel, Event, EventType, UserPreferences
from feed.storage import create_memory_storage
from feed.user_profile import (
    UserProfileBuilder,
    blend_vectors,
    build_explicit_preference_text,
    cold_start_level,
    compute_measurement_vector,
)

DIM = 4


def _vec(*values):
    return list(values) + [0.0] * (DIM - len(values))


@pytest.fixture
def storage(item_factory):
    items = [
        item_factory("x", embedding=_vec(1.0)),
        item_factory("y", embedding=_vec(0.0, 1.0)),
        item_factory("no-emb"),
    ]
    return create_memory_storage(items=items)


@pytest.fixture
def builder(storage):
    return UserProfileBuilder(
        events=storage.events,
        catalog=storage.catalog,
        embedding_provider=None,
        user_profiles=storage.user_profiles,
        user_embeddings=storage.user_embeddings,
        dim=DIM,
    )


class TestBlendVectors:

    def test_missing_sides(self):
        v = [0.6, 0.8]
        assert blend_vectors(None, v) == v
        assert blend_vectors(v, None) == v
        assert blend_vectors(None, None) is None

    def test_unit_norm(self):
        blended = blend_vectors([3.0, 0.0], [0.0, 2.0])
        assert np.linalg.norm(blended) == pytest.approx(1.0)

    def test_session_weighted(self):
        blended = blend_vectors([1.0, 0.0], [0.0, 1.0], alpha=0.7)
        assert blended[1] > blended[0]
        assert blended[1] / blended[0] == pytest.approx(0.7 / 0.3)

    def test_pads_shorter_vector(self):
        blended = blend_vectors([1.0], [0.0, 1.0])
        assert len(blended) == 2


class TestColdStartLevel:

    def test_levels(self):
        assert cold_start_level(None, None) == ColdStartLevel.COLD
        assert cold_start_level(None, [1.0]) == ColdStartLevel.WARM_SESSION
        assert cold_start_level([1.0], None) == ColdStartLevel.HOT
        assert cold_start_level([1.0], [1.0]) == ColdStartLevel.HOT


class TestExplicitPreferences:

    def test_text(self):
        user = UserPreferences(
            user_id="u1",
            wears_preference="menswear",
            aesthetic_preferences=["minimal", "street"],
            body_fit=["slim"],
        )
        assert build_explicit_preference_text(user) == (
            "Wears: menswear. Aesthetics: minimal, street. Fit preference: slim"
        )

    def test_empty(self):
        assert build_explicit_preference_text(UserPreferences(user_id="u1")) is None

    def test_measurement_vector(self):
        vec = compute_measurement_vector({"chest": 100, "waist": 400, "neck": -5}, dim=4)
        assert vec == [0.5, 1.0, 0.0, 0.0]


class TestEventWeight:

    def test_decay(self, builder, event_factory):
        now = datetime.now(timezone.utc)
        event = event_factory("u1", "PURCHASE", item_id="x", age_days=10)

        weight = builder.event_weight(event, now)

        assert weight == pytest.approx(5.0 * math.exp(-0.5), rel=1e-3)

    def test_unweighted_type(self, builder, event_factory):
        event = event_factory("u1", "SEARCH")
        assert builder.event_weight(event, datetime.now(timezone.utc)) == 0.0

    def test_future_timestamp_clamped(self, builder):
        now = datetime.now(timezone.utc)
        event = Event(
            user_id="u1",
            event_type=EventType.CLICK_ITEM,
            timestamp=now + timedelta(days=3),
        )
        assert builder.event_weight(event, now) == pytest.approx(1.0)

    def test_naive_timestamp_treated_as_utc(self, builder):
        now = datetime.now(timezone.utc)
        event = Event(
            user_id="u1",
            event_type=EventType.CLICK_ITEM,
            timestamp=now.replace(tzinfo=None),
        )
        assert builder.event_weight(event, now) == pytest.approx(1.0, rel=1e-3)


class TestVectorFromEvents:

    def test_no_events(self, builder):
        assert builder.compute_vector_from_events([]) is None

    def test_only_unusable_events(self, builder, event_factory):
        events = [
            event_factory("u1", "PURCHASE", item_id="no-emb"),
            event_factory("u1", "PURCHASE", item_id="missing"),
            event_factory("u1", "SEARCH", item_id="x"),
        ]
        assert builder.compute_vector_from_events(events) is None

    def test_weighted_pooling(self, builder, event_factory):
        events = [
            event_factory("u1", "PURCHASE", item_id="x"),
            event_factory("u1", "VIEW_ITEM", item_id="y"),
        ]

        vec = builder.compute_vector_from_events(events)

        assert np.linalg.norm(vec) == pytest.approx(1.0)
        assert vec[0] / vec[1] == pytest.approx(5.0 / 0.5, rel=1e-3)

    def test_negative_feedback_pushes_away(self, builder, event_factory):
        events = [
            event_factory("u1", "CLICK_ITEM", item_id="x"),
            event_factory("u1", "NOT_INTERESTED", item_id="y"),
        ]

        vec = builder.compute_vector_from_events(events)

        assert vec[0] > 0
        assert vec[1] < 0

    def test_cancelling_contributions_give_zero_vector(self, builder):
        now = datetime.now(timezone.utc)
        events = [
            Event(user_id="u1", event_type=EventType.ADD_TO_CART, properties={"itemId": "x"}, timestamp=now),
            Event(user_id="u1", event_type=EventType.ADD_TO_CART, properties={"itemId": "x"}, timestamp=now),
            Event(user_id="u1", event_type=EventType.NOT_INTERESTED, properties={"itemId": "x"}, timestamp=now),
        ]

        vec = builder.compute_vector_from_events(events, now=now)

        assert vec is not None
        assert np.allclose(vec, 0.0)


class TestComputeUserStyleVector:

    def test_no_signal(self, builder, storage):
        assert builder.compute_user_style_vector("ghost") is None
        assert storage.user_embeddings.get("ghost") is None

    def test_behavioral_only_is_persisted(self, builder, storage, event_factory):
        storage.events.log_event(event_factory("u1", "PURCHASE", item_id="x"))

        vec = builder.compute_user_style_vector("u1")

        assert vec == pytest.approx(_vec(1.0))
        stored = storage.user_embeddings.get("u1")
        assert stored.u_style == pytest.approx(_vec(1.0))
        assert stored.version == "v1"
        assert builder.get_user_embedding("u1") == pytest.approx(_vec(1.0))

    def test_explicit_blended_with_behavioral(self, storage, event_factory):
        provider = MagicMock()
        provider.embed.return_value = _vec(0.0, 1.0)
        storage.user_profiles.add(UserPreferences(
            user_id="u1",
            aesthetic_preferences=["minimal"],
            body_fit=["slim"],
            measurements={"chest": 100},
        ))
        storage.events.log_event(event_factory("u1", "PURCHASE", item_id="x"))
        builder = UserProfileBuilder(
            storage.events, storage.catalog, provider,
            storage.user_profiles, storage.user_embeddings, dim=DIM,
        )

        vec = builder.compute_user_style_vector("u1")

        provider.embed.assert_called_once_with("Aesthetics: minimal. Fit preference: slim")
        assert np.linalg.norm(vec) == pytest.approx(1.0)
        # Behavioral side carries the 0.7 weight
        assert vec[0] / vec[1] == pytest.approx(0.7 / 0.3)
        stored = storage.user_embeddings.get("u1")
        assert stored.u_fit[0] == pytest.approx(0.5)
        assert stored.scalars == {"fit_preference": "slim"}

    def test_provider_failure_falls_back_to_behavioral(self, storage, event_factory):
        provider = MagicMock()
        provider.embed.side_effect = RuntimeError("provider down")
        storage.user_profiles.add(UserPreferences(user_id="u1", aesthetic_preferences=["minimal"]))
        storage.events.log_event(event_factory("u1", "CLICK_ITEM", item_id="y"))
        builder = UserProfileBuilder(
            storage.events, storage.catalog, provider,
            storage.user_profiles, storage.user_embeddings, dim=DIM,
        )

        vec = builder.compute_user_style_vector("u1")

        assert vec == pytest.approx(_vec(0.0, 1.0))

    def test_event_store_failure_is_not_fatal(self, storage):
        events = MagicMock()
        events.get_recent_events.side_effect = RuntimeError("store down")
        builder = UserProfileBuilder(
            events, storage.catalog, None, storage.user_profiles, storage.user_embeddings, dim=DIM,
        )

        assert builder.compute_user_style_vector("u1") is None

    def test_update_user_embedding(self, builder, storage, event_factory):
        assert builder.update_user_embedding("u1") is None

        storage.events.log_event(event_factory("u1", "SAVE_ITEM", item_id="y"))
        stored = builder.update_user_embedding("u1")

        assert stored.user_id == "u1"
        assert stored.u_style == pytest.approx(_vec(0.0, 1.0))


class TestSessionStyleVector:

    def test_only_session_events_count(self, builder, storage, event_factory):
        storage.events.log_event(event_factory("u1", "PURCHASE", item_id="x", session_id="s-old"))
        storage.events.log_event(event_factory("u1", "CLICK_ITEM", item_id="y", session_id="s-now"))

        vec = builder.compute_session_style_vector("u1", "s-now")

        assert vec == pytest.approx(_vec(0.0, 1.0))

    def test_unknown_session(self, builder, storage, event_factory):
        storage.events.log_event(event_factory("u1", "PURCHASE", item_id="x", session_id="s1"))
        assert builder.compute_session_style_vector("u1", "other") is None

    def test_last_n(self, builder, storage, event_factory):
        storage.events.log_event(event_factory("u1", "PURCHASE", item_id="x", session_id="s1", age_days=1))
        storage.events.log_event(event_factory("u1", "CLICK_ITEM", item_id="y", session_id="s1"))

        vec = builder.compute_session_style_vector("u1", "s1", last_n=1)

        assert vec == pytest.approx(_vec(0.0, 1.0))
