"""Core API endpoints for the resource engine"""

import logging
import time
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel

from resource_engine.api.metrics import (
    ACTIVE_RESOURCES,
    EMPTY_RECOMMENDATION_COUNT,
    INTERACTION_COUNT,
    RECOMMENDATION_COUNT,
    RECOMMENDATION_DURATION,
    SEARCH_DURATION,
)
from resource_engine.api.models import (
    ErrorResponse,
    FeedbackRequest,
    FeedbackResponse,
    InteractionRequest,
    InteractionResponse,
    RecommendationItem,
    RecommendationRequest,
    RecommendationResponse,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
)
from resource_engine.integration import ResourceEngineServices
from resource_engine.recommendations.resource_catalog import (
    DirectoryCategory,
    ResourceRecord,
    UtilizationAction,
)
from resource_engine.recommendations.strategies import RequestContext

logger = logging.getLogger(__name__)

router = APIRouter()


def get_services(request: Request) -> ResourceEngineServices:
    """Services owned by the running application"""
    return request.app.state.services


class UtilizationRequest(BaseModel):
    """Directory utilization event"""
    action: UtilizationAction
    country: Optional[str] = None
    age_group: Optional[str] = None
    employment: Optional[str] = None
    language: Optional[str] = None


@router.get("/health", tags=["Health"])
async def health_check(services: ResourceEngineServices = Depends(get_services)):
    """
    Health check endpoint.

    Returns:
        Health status of each component
    """
    health = services.health_check()
    ACTIVE_RESOURCES.set(health["components"]["catalog"]["active_resources"])
    return health


@router.post(
    "/recommendations",
    response_model=RecommendationResponse,
    status_code=status.HTTP_200_OK,
    tags=["Recommendations"],
    responses={
        422: {"model": ErrorResponse, "description": "Validation error"},
        503: {"model": ErrorResponse, "description": "Upstream unavailable"}
    }
)
async def get_recommendations(
    request: RecommendationRequest,
    services: ResourceEngineServices = Depends(get_services)
) -> RecommendationResponse:
    """
    Recommend resources for a user profile.

    An empty list is a valid answer when nothing qualifies.
    """
    start_time = time.time()

    context = RequestContext(
        trigger=request.trigger,
        max_recommendations=request.max_recommendations,
        include_types=request.include_types,
        exclude_types=request.exclude_types,
        min_urgency=request.min_urgency,
    )
    candidates = services.recommendation_engine.get_recommendations(
        request.profile,
        context,
        assignment_id=request.assignment_id,
        auto_assign=request.auto_assign
    )

    RECOMMENDATION_DURATION.observe(time.time() - start_time)
    if not candidates:
        EMPTY_RECOMMENDATION_COUNT.inc()

    language = request.profile.demographics.language
    items = []
    for candidate in candidates:
        RECOMMENDATION_COUNT.labels(
            strategy=candidate.strategy.value,
            urgency=candidate.urgency.value
        ).inc()
        items.append(RecommendationItem(
            recommendation_id=candidate.recommendation_id,
            resource_id=candidate.resource_id,
            name=candidate.resource.name.get(language),
            resource_type=candidate.resource.resource_type,
            score=candidate.score,
            reasons=candidate.reasons,
            strategy=candidate.strategy.value,
            urgency=candidate.urgency,
            estimated_helpfulness=candidate.estimated_helpfulness,
            personalized_message=candidate.personalized_message,
        ))

    return RecommendationResponse(
        anonymous_id=request.profile.anonymous_id,
        recommendations=items,
        total=len(items)
    )


@router.post(
    "/resources/search",
    response_model=SearchResponse,
    tags=["Directory"],
    responses={422: {"model": ErrorResponse, "description": "Validation error"}}
)
async def search_resources(
    request: SearchRequest,
    services: ResourceEngineServices = Depends(get_services)
) -> SearchResponse:
    """Search the resource directory"""
    with SEARCH_DURATION.time():
        results = services.directory_search.search(request.filter, request.requester_location)

    items = [
        SearchResultItem(
            resource_id=result.resource.id,
            name=result.resource.name.get(request.language),
            category=result.resource.category,
            resource_type=result.resource.resource_type,
            relevance_score=round(result.relevance_score, 2),
            distance_km=round(result.distance, 2) if result.distance is not None else None,
            matched_fields=result.matched_fields,
            is_currently_open=result.is_currently_open,
            next_available_time=result.next_available_time,
            average_rating=result.resource.quality.average_rating,
            total_reviews=result.resource.quality.total_reviews,
        )
        for result in results
    ]
    return SearchResponse(results=items, total=len(items))


@router.post(
    "/interactions",
    response_model=InteractionResponse,
    tags=["Interactions"],
    responses={422: {"model": ErrorResponse, "description": "Validation error"}}
)
async def track_interaction(
    request: InteractionRequest,
    services: ResourceEngineServices = Depends(get_services)
) -> InteractionResponse:
    """
    Record a user action on a recommendation.

    Unknown recommendation ids are accepted and ignored.
    """
    event = services.recommendation_engine.track_interaction(request.recommendation_id, request.payload)
    INTERACTION_COUNT.labels(
        event_type=request.payload.type,
        recorded=str(event is not None).lower()
    ).inc()
    return InteractionResponse(recorded=event is not None, event_id=event.id if event else None)


@router.get("/analytics", tags=["Analytics"])
async def get_analytics(
    start: Optional[datetime] = Query(None, description="Start of the time range"),
    end: Optional[datetime] = Query(None, description="End of the time range"),
    services: ResourceEngineServices = Depends(get_services)
) -> Dict[str, Any]:
    """Overview, per-strategy performance and experiment results"""
    return services.recommendation_engine.get_analytics(start, end)


@router.get("/resources", response_model=List[ResourceRecord], tags=["Directory"])
async def list_resources(
    category: Optional[DirectoryCategory] = Query(None),
    services: ResourceEngineServices = Depends(get_services)
) -> List[ResourceRecord]:
    """List active resources, optionally by directory category"""
    if category is not None:
        return services.catalog.get_resources_by_category(category)
    return services.catalog.get_all_resources()


@router.get(
    "/resources/{resource_id}",
    response_model=ResourceRecord,
    tags=["Directory"],
    responses={404: {"model": ErrorResponse, "description": "Resource not found"}}
)
async def get_resource(
    resource_id: str,
    services: ResourceEngineServices = Depends(get_services)
) -> ResourceRecord:
    """Get a single resource"""
    return services.catalog.require_resource(resource_id)


@router.post(
    "/resources/{resource_id}/feedback",
    response_model=FeedbackResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Directory"],
    responses={
        404: {"model": ErrorResponse, "description": "Resource not found"},
        422: {"model": ErrorResponse, "description": "Validation error"}
    }
)
async def submit_feedback(
    resource_id: str,
    request: FeedbackRequest,
    services: ResourceEngineServices = Depends(get_services)
) -> FeedbackResponse:
    """Attach feedback to a resource and return its recomputed rating"""
    feedback = services.catalog.add_feedback(
        resource_id,
        request.user_id,
        request.rating,
        comment=request.comment,
        would_recommend=request.would_recommend
    )
    quality = services.catalog.require_resource(resource_id).quality
    logger.info(f"Feedback {feedback.id} recorded for {resource_id}, average rating now {quality.average_rating}")
    return FeedbackResponse(
        feedback_id=feedback.id,
        resource_id=resource_id,
        average_rating=quality.average_rating,
        total_reviews=quality.total_reviews
    )


@router.post(
    "/resources/{resource_id}/utilization",
    status_code=status.HTTP_202_ACCEPTED,
    tags=["Directory"],
    responses={404: {"model": ErrorResponse, "description": "Resource not found"}}
)
async def track_utilization(
    resource_id: str,
    request: UtilizationRequest,
    services: ResourceEngineServices = Depends(get_services)
):
    """Count a view, contact, QR scan, referral or share of a resource"""
    demographics = request.model_dump(exclude={"action"}, exclude_none=True)
    record = services.catalog.track_utilization(resource_id, request.action, demographics)
    return {"resource_id": resource_id, "date": record.date.isoformat(), "counts": record.counts}


@router.get(
    "/resources/{resource_id}/analytics",
    tags=["Analytics"],
    responses={404: {"model": ErrorResponse, "description": "Resource not found"}}
)
async def resource_analytics(
    resource_id: str,
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    services: ResourceEngineServices = Depends(get_services)
) -> Dict[str, Any]:
    """Utilization and feedback summary for one resource"""
    return services.catalog.get_resource_analytics(resource_id, start, end)


@router.get("/experiments", tags=["Experiments"])
async def list_experiments(services: ResourceEngineServices = Depends(get_services)):
    """All registered experiments"""
    return [e.model_dump(mode="json") for e in services.router.list_experiments()]


@router.get("/statistics", tags=["Monitoring"])
async def get_statistics(services: ResourceEngineServices = Depends(get_services)):
    """System statistics"""
    return services.get_statistics()
