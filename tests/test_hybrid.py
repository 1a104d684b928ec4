"""Tests for hybrid blending and post-processing"""

import pytest

from resource_engine.recommendations import hybrid
from resource_engine.recommendations.resource_catalog import ResourceType, Urgency
from resource_engine.recommendations.strategies import (
    RequestContext,
    ScoredCandidate,
    Strategy,
)

WEIGHTS = {
    "content-based": 0.30,
    "collaborative": 0.25,
    "demographic": 0.20,
    "ml-predicted": 0.25,
}


@pytest.fixture
def make_candidate(make_resource):
    def _make(resource_id, score, strategy, urgency=Urgency.LOW, reasons=None, resource=None, **fields):
        return ScoredCandidate(
            resource=resource or make_resource(resource_id, **fields),
            score=score,
            reasons=reasons or [],
            strategy=strategy,
            urgency=urgency,
            estimated_helpfulness=score,
        )
    return _make


class TestBlend:
    """Test weighted blending"""

    def test_renormalizes_over_contributing_strategies(self, make_candidate):
        """Test a resource scored by a subset is averaged over that subset only"""
        results = {
            Strategy.CONTENT_BASED: [make_candidate("a", 0.6, Strategy.CONTENT_BASED)],
            Strategy.DEMOGRAPHIC: [make_candidate("a", 0.8, Strategy.DEMOGRAPHIC)],
            Strategy.COLLABORATIVE: [],
            Strategy.ML_PREDICTED: [],
        }

        blended = hybrid.blend(results, WEIGHTS)

        assert len(blended) == 1
        assert blended[0].score == pytest.approx((0.6 * 0.30 + 0.8 * 0.20) / 0.50)
        assert blended[0].strategy == Strategy.HYBRID

    def test_single_strategy_keeps_score(self, make_candidate):
        """Test a resource scored by one strategy keeps that score"""
        results = {Strategy.ML_PREDICTED: [make_candidate("a", 0.7, Strategy.ML_PREDICTED)]}

        blended = hybrid.blend(results, WEIGHTS)

        assert blended[0].score == pytest.approx(0.7)

    def test_zero_weight_strategy_ignored(self, make_candidate):
        """Test strategies without weight do not contribute"""
        weights = dict(WEIGHTS, demographic=0.0)
        results = {
            Strategy.CONTENT_BASED: [make_candidate("a", 0.6, Strategy.CONTENT_BASED)],
            Strategy.DEMOGRAPHIC: [make_candidate("a", 0.8, Strategy.DEMOGRAPHIC)],
        }

        blended = hybrid.blend(results, weights)

        assert blended[0].score == pytest.approx(0.6)

    def test_reasons_unioned_and_max_urgency(self, make_candidate):
        """Test reasons are deduplicated and the highest urgency wins"""
        results = {
            Strategy.CONTENT_BASED: [make_candidate(
                "a", 0.6, Strategy.CONTENT_BASED, Urgency.MEDIUM, ["Available in bn", "Age-appropriate content"]
            )],
            Strategy.DEMOGRAPHIC: [make_candidate(
                "a", 0.8, Strategy.DEMOGRAPHIC, Urgency.HIGH, ["Available in bn", "Gender-specific content"]
            )],
        }

        blended = hybrid.blend(results, WEIGHTS)[0]

        assert blended.reasons == ["Available in bn", "Age-appropriate content", "Gender-specific content"]
        assert blended.urgency == Urgency.HIGH

    def test_empty_results(self):
        """Test no candidates blend to an empty list"""
        assert hybrid.blend({strategy: [] for strategy in Strategy}, WEIGHTS) == []


class TestPostProcessing:
    """Test filtering, ranking and messages"""

    def test_min_urgency_filter(self, make_candidate):
        """Test nothing below the urgency floor is returned"""
        candidates = [
            make_candidate("low", 0.9, Strategy.HYBRID, Urgency.LOW),
            make_candidate("medium", 0.8, Strategy.HYBRID, Urgency.MEDIUM),
            make_candidate("urgent", 0.7, Strategy.HYBRID, Urgency.URGENT),
        ]
        context = RequestContext(min_urgency=Urgency.MEDIUM)

        filtered = hybrid.apply_context_filters(candidates, context)

        assert [c.resource_id for c in filtered] == ["medium", "urgent"]
        assert all(c.urgency.rank >= Urgency.MEDIUM.rank for c in filtered)

    def test_include_types(self, make_candidate):
        """Test include types restrict the result"""
        candidates = [
            make_candidate("crisis", 0.9, Strategy.HYBRID, resource_type=ResourceType.CRISIS),
            make_candidate("therapy", 0.8, Strategy.HYBRID),
        ]
        context = RequestContext(include_types=[ResourceType.CRISIS])

        assert [c.resource_id for c in hybrid.apply_context_filters(candidates, context)] == ["crisis"]

    def test_rank_order_and_tie_breaks(self, make_candidate):
        """Test score, then urgency, then id ordering with truncation"""
        candidates = [
            make_candidate("b", 0.5, Strategy.HYBRID, Urgency.LOW),
            make_candidate("a", 0.5, Strategy.HYBRID, Urgency.LOW),
            make_candidate("c", 0.5, Strategy.HYBRID, Urgency.HIGH),
            make_candidate("d", 0.9, Strategy.HYBRID, Urgency.LOW),
        ]

        ranked = hybrid.rank(candidates, 3)

        assert [c.resource_id for c in ranked] == ["d", "c", "a"]

    def test_personalized_message_priority(self, make_profile, make_candidate):
        """Test the highest-priority message template applies"""
        profile = make_profile(country_of_origin="Bangladesh")

        urgent = make_candidate("a", 0.9, Strategy.COLLABORATIVE, Urgency.URGENT)
        collaborative = make_candidate("b", 0.9, Strategy.COLLABORATIVE)
        demographic = make_candidate("c", 0.9, Strategy.DEMOGRAPHIC)
        rated = make_candidate("d", 0.9, Strategy.CONTENT_BASED, rating=4.8)
        plain = make_candidate("e", 0.9, Strategy.CONTENT_BASED, rating=4.5)

        assert hybrid.personalized_message(urgent, profile) == hybrid.URGENT_MESSAGE
        assert hybrid.personalized_message(collaborative, profile) == hybrid.COLLABORATIVE_MESSAGE
        assert hybrid.personalized_message(demographic, profile) == (
            "This resource is specifically designed for people from Bangladesh."
        )
        assert hybrid.personalized_message(rated, profile) == hybrid.HIGHLY_RATED_MESSAGE
        assert hybrid.personalized_message(plain, profile) == ""

    def test_finalize(self, make_profile, make_candidate):
        """Test finalize filters, ranks, truncates and annotates"""
        profile = make_profile()
        candidates = [
            make_candidate("a", 0.4, Strategy.HYBRID, Urgency.LOW),
            make_candidate("b", 0.9, Strategy.HYBRID, Urgency.URGENT),
            make_candidate("c", 0.6, Strategy.HYBRID, Urgency.HIGH),
        ]

        final = hybrid.finalize(candidates, profile, RequestContext(max_recommendations=1))

        assert [c.resource_id for c in final] == ["b"]
        assert final[0].personalized_message == hybrid.URGENT_MESSAGE
