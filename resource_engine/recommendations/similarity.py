"""
User-to-user similarity for collaborative filtering.
"""

from dataclasses import dataclass
from typing import Iterable, List

from resource_engine.recommendations.profiles import UserProfile
from resource_engine.recommendations.scoring_config import CollaborativeWeights


@dataclass(frozen=True)
class Neighbour:
    """A similar user and how similar they are"""
    profile: UserProfile
    similarity: float


def user_similarity(
    user: UserProfile,
    other: UserProfile,
    weights: CollaborativeWeights
) -> float:
    """
    Weighted similarity between two users, clipped to [0, 1].

    Risk-score closeness contributes proportionally to how close the PHQ-4
    totals are; each shared demographic attribute contributes its weight.
    Attributes missing on both sides compare equal.
    """
    score_diff = abs(user.total_score - other.total_score)
    closeness = max(0.0, 1.0 - score_diff / weights.max_score_difference)
    similarity = closeness * weights.risk_score

    mine = user.demographics
    theirs = other.demographics
    if mine.country_of_origin == theirs.country_of_origin:
        similarity += weights.country
    if mine.age_group == theirs.age_group:
        similarity += weights.age_group
    if mine.employment_sector == theirs.employment_sector:
        similarity += weights.employment_sector
    if mine.language == theirs.language:
        similarity += weights.language
    if mine.gender == theirs.gender:
        similarity += weights.gender

    return min(max(similarity, 0.0), 1.0)


def find_similar_users(
    user: UserProfile,
    population: Iterable[UserProfile],
    weights: CollaborativeWeights
) -> List[Neighbour]:
    """
    Most similar users above the similarity floor, best first.

    The user is never their own neighbour. Ties are broken by anonymous id so
    the neighbour set is stable across calls.
    """
    neighbours = []
    for other in population:
        if other.anonymous_id == user.anonymous_id:
            continue
        similarity = user_similarity(user, other, weights)
        if similarity > weights.similarity_floor:
            neighbours.append(Neighbour(profile=other, similarity=similarity))

    neighbours.sort(key=lambda n: (-n.similarity, n.profile.anonymous_id))
    return neighbours[:weights.max_neighbours]
