"""
Scoring strategies that turn a user profile into scored resource candidates.

Each strategy is a pure function of the profile, a catalog snapshot, the
request context and the scoring configuration. Given identical inputs the
output is identical, including the exploration term of the feature-weighted
strategy, which is derived from a seeded hash rather than a random source.
"""

import hashlib
import logging
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import numpy as np
from pydantic import BaseModel, Field

from resource_engine.recommendations.profiles import RiskLevel, UserProfile
from resource_engine.recommendations.resource_catalog import (
    ResourceRecord,
    ResourceType,
    Urgency,
)
from resource_engine.recommendations.scoring_config import ScoringConfig
from resource_engine.recommendations.similarity import find_similar_users

logger = logging.getLogger(__name__)


class Strategy(str, Enum):
    """Recommendation strategies"""
    CONTENT_BASED = "content-based"
    COLLABORATIVE = "collaborative"
    DEMOGRAPHIC = "demographic"
    ML_PREDICTED = "ml-predicted"
    HYBRID = "hybrid"


class Trigger(str, Enum):
    """What prompted a recommendation request"""
    ASSESSMENT_COMPLETE = "assessment_complete"
    RESOURCE_VIEW = "resource_view"
    CRISIS_DETECTED = "crisis_detected"
    ROUTINE_CHECK = "routine_check"
    USER_REQUEST = "user_request"


class RequestContext(BaseModel):
    """Per-request options"""
    trigger: Trigger = Trigger.USER_REQUEST
    max_recommendations: int = Field(default=5, ge=1)
    include_types: List[ResourceType] = Field(default_factory=list)
    exclude_types: List[ResourceType] = Field(default_factory=list)
    min_urgency: Optional[Urgency] = None

    def allows_type(self, resource_type: ResourceType) -> bool:
        """Whether the include/exclude type filters admit a resource type"""
        if self.include_types and resource_type not in self.include_types:
            return False
        return resource_type not in self.exclude_types


class ScoredCandidate(BaseModel):
    """A resource with its score, reasons and annotations"""
    resource: ResourceRecord
    score: float = Field(..., ge=0.0, le=1.0)
    reasons: List[str] = Field(default_factory=list)
    strategy: Strategy
    urgency: Urgency
    estimated_helpfulness: float = Field(..., ge=0.0, le=1.0)
    personalized_message: str = ""
    recommendation_id: Optional[str] = None

    @property
    def resource_id(self) -> str:
        return self.resource.id


RISK_ENCODING = {
    RiskLevel.MINIMAL: 0.25,
    RiskLevel.MILD: 0.5,
    RiskLevel.MODERATE: 0.75,
    RiskLevel.SEVERE: 1.0,
}

AGE_GROUPS = ["18-25", "26-35", "36-45", "46-55", "55+"]
ORIGIN_COUNTRIES = ["Bangladesh", "India", "Philippines", "Indonesia", "Myanmar"]
DIFFICULTIES = ["beginner", "intermediate", "advanced"]
ENCODED_TYPES = ["therapy", "self-help", "peer-support", "medication", "crisis", "wellness"]

# Positions in the feature vectors
USER_SESSIONS = 4
USER_RISK = 6
RESOURCE_RATING = 0
RESOURCE_DIFFICULTY = 4


def urgency_for(risk_level: RiskLevel, resource_type: ResourceType) -> Urgency:
    """Urgency tier for a resource given the user's risk level"""
    if risk_level == RiskLevel.SEVERE and resource_type == ResourceType.CRISIS:
        return Urgency.URGENT
    if risk_level == RiskLevel.SEVERE:
        return Urgency.HIGH
    if risk_level == RiskLevel.MODERATE:
        return Urgency.MEDIUM
    return Urgency.LOW


def estimate_helpfulness(resource: ResourceRecord, profile: UserProfile) -> float:
    """Resource rating adjusted for risk-level and language fit, capped at 1"""
    helpfulness = resource.quality.average_rating / 5
    if profile.risk_level.value in resource.metadata.risk_levels:
        helpfulness += 0.2
    if profile.demographics.language in resource.metadata.languages:
        helpfulness += 0.1
    return min(helpfulness, 1.0)


def encode_category(value: Optional[str], categories: Sequence[str]) -> float:
    """Ordinal encoding in (0, 1]; unknown values encode to 0"""
    if value is None or value not in categories:
        return 0.0
    return (list(categories).index(value) + 1) / len(categories)


def user_features(profile: UserProfile) -> np.ndarray:
    """Project a user into a fixed-length numeric vector"""
    latest = profile.risk.latest
    usage = profile.usage
    return np.array([
        latest.total_score / 12,
        latest.depression_score / 6,
        latest.anxiety_score / 6,
        usage.assessment_frequency / 10,
        usage.total_sessions / 100,
        usage.session_duration / 60,
        RISK_ENCODING[latest.risk_level],
        encode_category(profile.demographics.age_group, AGE_GROUPS),
        encode_category(profile.demographics.country_of_origin, ORIGIN_COUNTRIES),
    ], dtype=float)


def resource_features(resource: ResourceRecord) -> np.ndarray:
    """Project a resource into a fixed-length numeric vector"""
    return np.array([
        resource.quality.average_rating / 5,
        resource.effectiveness.completion_rate,
        resource.effectiveness.improvement_score / 12,
        resource.metadata.duration / 120,
        encode_category(resource.metadata.difficulty, DIFFICULTIES),
        encode_category(resource.resource_type.value, ENCODED_TYPES),
    ], dtype=float)


def exploration_noise(seed: int, user_id: str, resource_id: str) -> float:
    """Deterministic value in [0, 1) for a (seed, user, resource) triple"""
    digest = hashlib.sha256(f"{seed}:{user_id}:{resource_id}".encode()).hexdigest()
    return int(digest[:8], 16) / 2 ** 32


def _candidate(
    resource: ResourceRecord,
    profile: UserProfile,
    score: float,
    reasons: List[str],
    strategy: Strategy,
    helpfulness: Optional[float] = None
) -> ScoredCandidate:
    score = min(max(score, 0.0), 1.0)
    return ScoredCandidate(
        resource=resource,
        score=score,
        reasons=reasons,
        strategy=strategy,
        urgency=urgency_for(profile.risk_level, resource.resource_type),
        estimated_helpfulness=score if helpfulness is None else helpfulness,
    )


def _score_each(
    resources: Iterable[ResourceRecord],
    context: RequestContext,
    strategy: Strategy,
    scorer: Callable[[ResourceRecord], Optional[ScoredCandidate]]
) -> List[ScoredCandidate]:
    """Apply a per-resource scorer, skipping records that fail to score"""
    candidates = []
    for resource in resources:
        try:
            if not context.allows_type(resource.resource_type):
                continue
            candidate = scorer(resource)
        except (AttributeError, TypeError, ValueError, KeyError) as e:
            logger.warning(
                f"Skipping resource {getattr(resource, 'id', '?')} "
                f"in {strategy.value} scoring: {e}"
            )
            continue
        if candidate is not None:
            candidates.append(candidate)
    return candidates


def content_based(
    profile: UserProfile,
    resources: Iterable[ResourceRecord],
    context: RequestContext,
    config: ScoringConfig
) -> List[ScoredCandidate]:
    """
    Score resources by how well their content fits the user.

    Risk level, language, cultural context, age group, employment sector and
    location availability each add their weight and one reason.
    """
    weights = config.content_based
    demographics = profile.demographics
    risk_level = profile.risk_level.value

    def score(resource: ResourceRecord) -> Optional[ScoredCandidate]:
        total = 0.0
        reasons = []
        meta = resource.metadata
        targets = meta.target_demographics

        if risk_level in meta.risk_levels:
            total += weights.risk_level
            reasons.append(f"Suitable for {risk_level} risk level")

        if demographics.language in meta.languages:
            total += weights.language
            reasons.append(f"Available in {demographics.language}")

        origin = demographics.country_of_origin
        if origin and origin in meta.cultural_context:
            total += weights.cultural_context
            reasons.append(f"Culturally appropriate for {origin}")

        if demographics.age_group and demographics.age_group in targets.age_groups:
            total += weights.age_group
            reasons.append("Age-appropriate content")

        if demographics.employment_sector and demographics.employment_sector in targets.employment_sectors:
            total += weights.employment_sector
            reasons.append("Relevant to your work situation")

        location = demographics.location.country if demographics.location else None
        if location and location in resource.availability.locations:
            total += weights.location
            reasons.append("Available in your location")

        if total <= weights.threshold:
            return None

        return _candidate(
            resource, profile, total, reasons, Strategy.CONTENT_BASED,
            helpfulness=estimate_helpfulness(resource, profile)
        )

    return _score_each(resources, context, Strategy.CONTENT_BASED, score)


def demographic(
    profile: UserProfile,
    resources: Iterable[ResourceRecord],
    context: RequestContext,
    config: ScoringConfig
) -> List[ScoredCandidate]:
    """Score resources by demographic targeting alone"""
    weights = config.demographic
    demographics = profile.demographics

    def score(resource: ResourceRecord) -> Optional[ScoredCandidate]:
        total = 0.0
        reasons = []
        targets = resource.metadata.target_demographics

        if demographics.country_of_origin and demographics.country_of_origin in targets.countries:
            total += weights.country
            reasons.append(f"Designed for {demographics.country_of_origin} nationals")

        if demographics.employment_sector and demographics.employment_sector in targets.employment_sectors:
            total += weights.employment_sector
            reasons.append(f"Tailored for {demographics.employment_sector} workers")

        if demographics.age_group and demographics.age_group in targets.age_groups:
            total += weights.age_group
            reasons.append("Appropriate for your age group")

        if demographics.gender and demographics.gender in targets.genders:
            total += weights.gender
            reasons.append("Gender-specific content")

        if demographics.language in resource.metadata.languages:
            total += weights.language
            reasons.append(f"Available in {demographics.language}")

        if total <= weights.threshold:
            return None

        return _candidate(
            resource, profile, total, reasons, Strategy.DEMOGRAPHIC,
            helpfulness=estimate_helpfulness(resource, profile)
        )

    return _score_each(resources, context, Strategy.DEMOGRAPHIC, score)


def collaborative(
    profile: UserProfile,
    resources: Iterable[ResourceRecord],
    context: RequestContext,
    config: ScoringConfig,
    population: Iterable[UserProfile] = ()
) -> List[ScoredCandidate]:
    """
    Score resources rated highly by similar users.

    Each high rating from a neighbour contributes similarity * rating / 5.
    A resource needs a minimum number of contributing ratings before it is
    scored, and its score is the mean contribution.
    """
    weights = config.collaborative
    neighbours = find_similar_users(profile, population, weights)
    if not neighbours:
        logger.debug(f"No similar users found for {profile.anonymous_id}")
        return []

    totals: Dict[str, float] = {}
    counts: Dict[str, int] = {}
    for neighbour in neighbours:
        for interaction in neighbour.profile.ratings(min_rating=weights.min_rating):
            rid = interaction.resource_id
            totals[rid] = totals.get(rid, 0.0) + neighbour.similarity * (interaction.rating / 5)
            counts[rid] = counts.get(rid, 0) + 1

    by_id = {resource.id: resource for resource in resources}
    candidates = []
    for rid in sorted(totals):
        resource = by_id.get(rid)
        if resource is None or not context.allows_type(resource.resource_type):
            continue
        if counts[rid] < weights.min_contributions:
            continue
        average = totals[rid] / counts[rid]
        candidates.append(_candidate(
            resource, profile, average,
            ["Highly rated by users with similar background"],
            Strategy.COLLABORATIVE
        ))

    return candidates


def feature_weighted(
    profile: UserProfile,
    resources: Iterable[ResourceRecord],
    context: RequestContext,
    config: ScoringConfig
) -> List[ScoredCandidate]:
    """
    Interpretable feature-weighted fit score.

    This is a hand-weighted heuristic over normalized user and resource
    features, not a trained model; scores are not calibrated probabilities.
    """
    weights = config.feature_weighted
    user_vec = user_features(profile)

    def score(resource: ResourceRecord) -> Optional[ScoredCandidate]:
        resource_vec = resource_features(resource)
        total = 0.0
        reasons = []

        if user_vec[USER_RISK] > 0.7 and resource.resource_type == ResourceType.CRISIS:
            total += weights.urgency_match
            reasons.append("Matched based on urgency indicators")

        if user_vec[USER_SESSIONS] > 0.5 and resource_vec[RESOURCE_DIFFICULTY] > 0.6:
            total += weights.complexity_fit
            reasons.append("Suitable complexity for active users")

        effectiveness = resource_vec[RESOURCE_RATING]
        total += float(effectiveness) * weights.effectiveness
        if effectiveness > 0.8:
            reasons.append("Highly effective based on user feedback")

        total += weights.exploration * exploration_noise(
            config.exploration_seed, profile.anonymous_id, resource.id
        )
        total = min(total, 1.0)

        if total <= weights.threshold:
            return None

        return _candidate(resource, profile, total, reasons, Strategy.ML_PREDICTED)

    return _score_each(resources, context, Strategy.ML_PREDICTED, score)
