"""
Hybrid aggregation and post-processing of scored candidates.
"""

import logging
from typing import Dict, List, Mapping, Sequence

from resource_engine.recommendations.profiles import UserProfile
from resource_engine.recommendations.resource_catalog import Urgency
from resource_engine.recommendations.strategies import RequestContext, ScoredCandidate, Strategy

logger = logging.getLogger(__name__)


URGENT_MESSAGE = "This resource provides immediate support for your current situation."
COLLABORATIVE_MESSAGE = "People with similar backgrounds have found this helpful."
ORIGIN_MESSAGE = "This resource is specifically designed for people from {origin}."
HIGHLY_RATED_MESSAGE = "This is a highly-rated resource that has helped many people."

HIGHLY_RATED_THRESHOLD = 4.5


def blend(
    results: Mapping[Strategy, Sequence[ScoredCandidate]],
    weights: Mapping[str, float]
) -> List[ScoredCandidate]:
    """
    Combine per-strategy candidates into one candidate per resource.

    The blended score is a weighted mean over the strategies that actually
    scored the resource, so a resource missing from some strategies is not
    diluted by them. Reasons are unioned in first-seen order.

    Args:
        results: Candidates produced by each strategy
        weights: Blend weight per strategy name

    Returns:
        Blended candidates, ordered by resource id
    """
    grouped: Dict[str, List[ScoredCandidate]] = {}
    for strategy, candidates in results.items():
        if weights.get(strategy.value, 0.0) <= 0:
            continue
        for candidate in candidates:
            grouped.setdefault(candidate.resource_id, []).append(candidate)

    blended = []
    for resource_id in sorted(grouped):
        group = grouped[resource_id]
        total_weight = sum(weights[c.strategy.value] for c in group)
        score = sum(c.score * weights[c.strategy.value] for c in group) / total_weight
        helpfulness = sum(
            c.estimated_helpfulness * weights[c.strategy.value] for c in group
        ) / total_weight

        reasons: List[str] = []
        for candidate in group:
            for reason in candidate.reasons:
                if reason not in reasons:
                    reasons.append(reason)

        blended.append(ScoredCandidate(
            resource=group[0].resource,
            score=min(max(score, 0.0), 1.0),
            reasons=reasons,
            strategy=Strategy.HYBRID,
            urgency=max((c.urgency for c in group), key=lambda u: u.rank),
            estimated_helpfulness=min(max(helpfulness, 0.0), 1.0),
        ))

    logger.debug(f"Blended {len(blended)} resources from {len(results)} strategies")
    return blended


def apply_context_filters(
    candidates: Sequence[ScoredCandidate],
    context: RequestContext
) -> List[ScoredCandidate]:
    """Include/exclude by resource type, then drop candidates below the urgency floor"""
    filtered = [c for c in candidates if context.allows_type(c.resource.resource_type)]

    if context.min_urgency is not None:
        floor = context.min_urgency.rank
        filtered = [c for c in filtered if c.urgency.rank >= floor]

    return filtered


def rank(candidates: Sequence[ScoredCandidate], max_recommendations: int) -> List[ScoredCandidate]:
    """Sort by score, then urgency, then resource id, and keep the top entries"""
    ordered = sorted(
        candidates,
        key=lambda c: (-c.score, -c.urgency.rank, c.resource_id)
    )
    return ordered[:max_recommendations]


def personalized_message(candidate: ScoredCandidate, profile: UserProfile) -> str:
    """Pick the single message template that applies, by priority"""
    if candidate.urgency == Urgency.URGENT:
        return URGENT_MESSAGE
    if candidate.strategy == Strategy.COLLABORATIVE:
        return COLLABORATIVE_MESSAGE
    origin = profile.demographics.country_of_origin
    if candidate.strategy == Strategy.DEMOGRAPHIC and origin:
        return ORIGIN_MESSAGE.format(origin=origin)
    if candidate.resource.quality.average_rating > HIGHLY_RATED_THRESHOLD:
        return HIGHLY_RATED_MESSAGE
    return ""


def add_personalized_messages(
    candidates: Sequence[ScoredCandidate],
    profile: UserProfile
) -> List[ScoredCandidate]:
    return [
        c.model_copy(update={"personalized_message": personalized_message(c, profile)})
        for c in candidates
    ]


def finalize(
    candidates: Sequence[ScoredCandidate],
    profile: UserProfile,
    context: RequestContext
) -> List[ScoredCandidate]:
    """Filters, ordering, truncation and messages, in that order"""
    filtered = apply_context_filters(candidates, context)
    ranked = rank(filtered, context.max_recommendations)
    return add_personalized_messages(ranked, profile)
