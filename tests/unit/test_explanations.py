"""
Tests for rule-based explanations.
"""

from feed.models import ReasonCode, ScoringDebug
from scoring.explanations import ExplanationGenerator, top_user_tags


def _ranked(ranked_factory, item, v_score=0.5, quality=0.5, penalty=False):
    ranked = ranked_factory(item)
    return ranked.model_copy(update={"scoring_debug": ScoringDebug(
        v_score=v_score,
        vendor_quality_score=quality,
        eta_score=0.25,
        price_fit=0.5 if penalty else 1.0,
        vendor_boost=0.0,
        price_penalty=penalty,
    )})


class TestTopUserTags:

    def test_most_common_lowercased(self, event_factory):
        history = [
            event_factory("u1", "CLICK_ITEM", tags=["Linen", "casual"]),
            event_factory("u1", "CLICK_ITEM", tags=["linen"]),
            event_factory("u1", "VIEW_ITEM"),
        ]
        assert top_user_tags(history, n=1) == ["linen"]
        assert set(top_user_tags(history)) == {"linen", "casual"}

    def test_non_string_tags_ignored(self, event_factory):
        history = [event_factory("u1", "CLICK_ITEM", tags=["ok", 3, None])]
        assert top_user_tags(history) == ["ok"]


class TestGenerate:

    def test_no_signal_free_item(self, ranked_factory, item_factory):
        item = item_factory("free", price=0)
        explanation = ExplanationGenerator().generate(_ranked(ranked_factory, item))

        assert explanation.codes == []
        assert explanation.texts == []

    def test_all_rules(self, ranked_factory, item_factory, event_factory):
        item = item_factory("i1", price=80, tags=["linen", "casual", "summer"], eta_days=2)
        history = [event_factory("u1", "CLICK_ITEM", tags=["linen", "casual", "summer"])]

        explanation = ExplanationGenerator().generate(
            _ranked(ranked_factory, item, v_score=0.9, quality=0.9), history,
        )

        assert explanation.codes == [
            ReasonCode.STYLE_MATCH,
            ReasonCode.AESTHETIC_MATCH,
            ReasonCode.FAST_ETA,
            ReasonCode.TRUSTED_VENDOR,
            ReasonCode.PRICE_FIT,
        ]
        assert explanation.texts[0] == "Matches your interest in linen, casual"
        assert "Fast Delivery" in explanation.texts
        assert "Top Rated Vendor" in explanation.texts
        assert "Within your budget" in explanation.texts

    def test_thresholds_are_strict(self, ranked_factory, item_factory):
        item = item_factory("i1", price=10, eta_days=4)

        explanation = ExplanationGenerator().generate(
            _ranked(ranked_factory, item, v_score=0.85, quality=0.7),
        )

        assert explanation.codes == [ReasonCode.PRICE_FIT]

    def test_price_penalty_suppresses_budget_reason(self, ranked_factory, item_factory):
        item = item_factory("i1", price=300)
        explanation = ExplanationGenerator().generate(_ranked(ranked_factory, item, penalty=True))
        assert ReasonCode.PRICE_FIT not in explanation.codes

    def test_precomputed_tags(self, ranked_factory, item_factory):
        item = item_factory("i1", price=0, tags=["Denim"])

        explanation = ExplanationGenerator().generate(
            _ranked(ranked_factory, item), top_tags=["denim"],
        )

        assert explanation.codes == [ReasonCode.STYLE_MATCH]
        assert explanation.texts == ["Matches your interest in Denim"]

    def test_prepend(self, ranked_factory, item_factory):
        item = item_factory("i1", price=10)
        explanation = ExplanationGenerator().generate(_ranked(ranked_factory, item))

        prefixed = explanation.prepend("Just added!", ReasonCode.NEW_ARRIVAL)

        assert prefixed.codes[0] == ReasonCode.NEW_ARRIVAL
        assert prefixed.texts[0] == "Just added!"
        assert explanation.codes == [ReasonCode.PRICE_FIT]
