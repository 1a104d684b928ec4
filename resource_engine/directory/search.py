"""
Directory search, filtering and ranking of support resources.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

from resource_engine.config import settings
from resource_engine.directory.geo import distance_decay_score, haversine_km
from resource_engine.directory.schedule import is_open_now, local_time, next_available_time
from resource_engine.exceptions import ValidationError
from resource_engine.logging_config import get_logger
from resource_engine.recommendations.recommendation_engine import validate_input
from resource_engine.recommendations.resource_catalog import (
    Coordinates,
    DirectoryCategory,
    LocalizedText,
    ResourceCatalog,
    ResourceRecord,
)

logger = get_logger(__name__)


class SortKey(str, Enum):
    """Result orderings"""
    RELEVANCE = "relevance"
    RATING = "rating"
    DISTANCE = "distance"
    NAME = "name"
    RECENTLY_UPDATED = "recently_updated"
    AVAILABILITY = "availability"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class LocationFilter(BaseModel):
    """Distance constraint around a point"""
    max_distance: Optional[float] = Field(default=None, gt=0.0, description="Kilometres")
    coordinates: Optional[Coordinates] = None


class FeatureRequirements(BaseModel):
    """Access features the requester needs; unset means no requirement"""
    wheelchair_accessible: Optional[bool] = None
    accepts_walk_ins: Optional[bool] = None
    has_online_option: Optional[bool] = None
    has_24_hour_support: Optional[bool] = None
    provides_crisis_intervention: Optional[bool] = None
    has_group_sessions: Optional[bool] = None
    has_individual_sessions: Optional[bool] = None

    def required(self) -> List[str]:
        return [name for name, value in self.model_dump().items() if value]


class RatingFilter(BaseModel):
    min_rating: Optional[float] = Field(default=None, ge=0.0, le=5.0)
    min_reviews: Optional[int] = Field(default=None, ge=0)


class TargetGroupFilter(BaseModel):
    """Groups the requester belongs to; matches add credit but never exclude"""
    countries: List[str] = Field(default_factory=list)
    age_groups: List[str] = Field(default_factory=list)
    employment_sectors: List[str] = Field(default_factory=list)


class DirectoryFilter(BaseModel):
    """
    Structured directory query.

    Unset or empty dimensions do not filter. A supplied dimension with no
    overlap excludes the resource, except target groups which only add credit.
    """
    categories: List[DirectoryCategory] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    location: Optional[LocationFilter] = None
    cost: List[str] = Field(default_factory=list)
    features: Optional[FeatureRequirements] = None
    rating: Optional[RatingFilter] = None
    search_query: Optional[str] = None
    target_groups: Optional[TargetGroupFilter] = None
    sort_by: Optional[SortKey] = None
    sort_order: Optional[SortOrder] = None


class SearchResult(BaseModel):
    """A matched resource with its relevance and availability"""
    resource: ResourceRecord
    relevance_score: float
    distance: Optional[float] = None
    matched_fields: List[str] = Field(default_factory=list)
    is_currently_open: bool = False
    next_available_time: Optional[str] = None


# Per-dimension credit
CATEGORY_SCORE = 20.0
LANGUAGE_SCORE = 15.0
COST_SCORE = 10.0
FEATURE_SCORE = 15.0
RATING_MULTIPLIER = 2.0
NAME_SCORE = 30.0
DESCRIPTION_SCORE = 20.0
SERVICE_SCORE = 15.0
KEYWORD_SCORE = 10.0
TAG_SCORE = 10.0
TARGET_GROUP_SCORE = 5.0


def _texts(text: Optional[LocalizedText]) -> List[str]:
    if text is None:
        return []
    return [value.lower() for value in text.model_dump().values() if value]


def text_query_score(resource: ResourceRecord, query: str) -> float:
    """Substring relevance of a free-text query, case-insensitive, over all translations"""
    needle = query.strip().lower()
    if not needle:
        return 0.0

    score = 0.0
    if any(needle in text for text in _texts(resource.name)):
        score += NAME_SCORE
    if any(needle in text for text in _texts(resource.description)):
        score += DESCRIPTION_SCORE
    for service in resource.services:
        if any(needle in text for text in _texts(service.service)):
            score += SERVICE_SCORE
    if any(needle in keyword.lower() for keyword in resource.search_keywords):
        score += KEYWORD_SCORE
    if any(needle in tag.lower() for tag in resource.metadata.tags):
        score += TAG_SCORE
    return score


def match_resource(
    resource: ResourceRecord,
    criteria: DirectoryFilter,
    requester: Optional[Coordinates] = None,
    earth_radius_km: float = 6371.0
) -> Optional[Tuple[float, Optional[float], List[str]]]:
    """
    Evaluate a resource against a filter.

    Returns:
        (score, distance, matched fields), or None when a hard filter fails
    """
    score = 0.0
    distance = None
    matched: List[str] = []

    if criteria.categories:
        if resource.category not in criteria.categories:
            return None
        score += CATEGORY_SCORE
        matched.append("category")

    if criteria.languages:
        if not set(criteria.languages) & set(resource.metadata.languages):
            return None
        score += LANGUAGE_SCORE
        matched.append("language")

    target = resource.coordinates
    if requester is not None and target is not None:
        distance = haversine_km(
            requester.latitude, requester.longitude,
            target.latitude, target.longitude,
            radius_km=earth_radius_km
        )
        max_distance = criteria.location.max_distance if criteria.location else None
        if max_distance is not None and distance > max_distance:
            return None
        score += distance_decay_score(distance)
        matched.append("location")

    if criteria.cost:
        offered = {resource.availability.cost} | {s.cost for s in resource.services}
        if not offered & set(criteria.cost):
            return None
        score += COST_SCORE
        matched.append("cost")

    if criteria.features is not None:
        required = criteria.features.required()
        present = [name for name in required if getattr(resource.features, name)]
        if required and not present:
            return None
        if present:
            score += FEATURE_SCORE * len(present) / len(required)
            matched.append("features")

    if criteria.rating is not None:
        quality = resource.quality
        if criteria.rating.min_rating is not None and quality.average_rating < criteria.rating.min_rating:
            return None
        if criteria.rating.min_reviews is not None and quality.total_reviews < criteria.rating.min_reviews:
            return None
        score += quality.average_rating * RATING_MULTIPLIER
        matched.append("rating")

    if criteria.search_query and criteria.search_query.strip():
        query_score = text_query_score(resource, criteria.search_query)
        if query_score == 0:
            return None
        score += query_score
        matched.append("search")

    if criteria.target_groups is not None:
        groups = criteria.target_groups
        targets = resource.metadata.target_demographics
        group_score = 0.0
        if set(groups.countries) & set(targets.countries):
            group_score += TARGET_GROUP_SCORE
        if set(groups.age_groups) & set(targets.age_groups):
            group_score += TARGET_GROUP_SCORE
        if set(groups.employment_sectors) & set(targets.employment_sectors):
            group_score += TARGET_GROUP_SCORE
        if group_score > 0:
            score += group_score
            matched.append("target_groups")

    return score, distance, matched


def _sort_value(result: SearchResult, key: SortKey):
    if key == SortKey.RATING:
        return result.resource.quality.average_rating
    if key == SortKey.DISTANCE:
        return result.distance if result.distance is not None else float("inf")
    if key == SortKey.NAME:
        return result.resource.name.en.lower()
    if key == SortKey.RECENTLY_UPDATED:
        return result.resource.last_updated
    if key == SortKey.AVAILABILITY:
        return 1 if result.is_currently_open else 0
    return result.relevance_score


def sort_results(results: List[SearchResult], key: SortKey, order: SortOrder) -> List[SearchResult]:
    """Order results by a key; ties keep resource id order in both directions"""
    by_id = sorted(results, key=lambda r: r.resource.id)
    return sorted(by_id, key=lambda r: _sort_value(r, key), reverse=order == SortOrder.DESC)


class DirectorySearch:
    """
    Searches the catalog's active resources with a structured filter.

    Independent of user profiles; the only inputs are the filter, the
    requester location and the clock.
    """

    def __init__(
        self,
        catalog: ResourceCatalog,
        earth_radius_km: Optional[float] = None,
        default_sort_by: Optional[str] = None,
        default_sort_order: Optional[str] = None,
        timezone: Optional[str] = None
    ):
        """
        Initialize directory search.

        Args:
            catalog: Catalog to search
            earth_radius_km: Radius for distance computation
            default_sort_by: Sort key used when a filter gives none
            default_sort_order: Sort order used when a filter gives none
            timezone: Fallback timezone for resources without one
        """
        config = settings.directory
        self.catalog = catalog
        self.earth_radius_km = earth_radius_km or config.earth_radius_km
        self.default_sort_by = SortKey(default_sort_by or config.default_sort_by)
        self.default_sort_order = SortOrder(default_sort_order or config.default_sort_order)
        self.timezone = timezone or config.timezone

    def search(
        self,
        criteria: Union[DirectoryFilter, Dict[str, Any], None] = None,
        requester_location: Union[Coordinates, Dict[str, Any], None] = None,
        now: Optional[datetime] = None
    ) -> List[SearchResult]:
        """
        Filter, score and sort the catalog.

        Args:
            criteria: Directory filter (an empty filter matches every active resource)
            requester_location: Requester coordinates; falls back to the
                filter's location coordinates
            now: Clock for open-now checks; aware datetimes are converted to
                each resource's timezone

        Returns:
            Ranked search results

        Raises:
            ValidationError: If the filter or location is malformed, or a
                maximum distance is given without any coordinates
        """
        criteria = validate_input(DirectoryFilter, criteria or {}, "filter")
        requester = requester_location
        if requester is not None:
            requester = validate_input(Coordinates, requester, "requester_location")
        if requester is None and criteria.location is not None:
            requester = criteria.location.coordinates

        if requester is None and criteria.location is not None and criteria.location.max_distance is not None:
            raise ValidationError(
                "max_distance requires coordinates",
                {"field": "location.max_distance", "max_distance": criteria.location.max_distance}
            )
        clock = now or datetime.now(tz=ZoneInfo(self.timezone))

        results = []
        for resource in self.catalog.get_all_resources():
            match = match_resource(resource, criteria, requester, self.earth_radius_km)
            if match is None:
                continue

            score, distance, matched = match
            local = local_time(clock, resource.availability.timezone or self.timezone)
            schedule = resource.availability.schedule
            results.append(SearchResult(
                resource=resource,
                relevance_score=score,
                distance=distance,
                matched_fields=matched,
                is_currently_open=is_open_now(schedule, local),
                next_available_time=next_available_time(schedule, local),
            ))

        sort_by = criteria.sort_by or self.default_sort_by
        sort_order = criteria.sort_order or self.default_sort_order
        ranked = sort_results(results, sort_by, sort_order)

        logger.info(
            "directory_search",
            results=len(ranked),
            query=criteria.search_query,
            sort_by=sort_by.value,
            sort_order=sort_order.value
        )
        return ranked
