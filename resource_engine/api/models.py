"""Pydantic models for API request/response validation"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from resource_engine.config import settings
from resource_engine.directory.search import DirectoryFilter
from resource_engine.interactions.events import InteractionPayload
from resource_engine.recommendations.profiles import UserProfile
from resource_engine.recommendations.resource_catalog import (
    Coordinates,
    DirectoryCategory,
    ResourceType,
    Urgency,
)
from resource_engine.recommendations.strategies import Trigger


class RecommendationRequest(BaseModel):
    """Request model for the recommendations endpoint"""
    profile: UserProfile = Field(
        ...,
        description="Profile of the user receiving recommendations"
    )
    max_recommendations: int = Field(
        default_factory=lambda: settings.api.default_max_recommendations,
        ge=1,
        description="Maximum number of recommendations to return"
    )
    trigger: Trigger = Field(
        default=Trigger.USER_REQUEST,
        description="What prompted the request"
    )
    include_types: List[ResourceType] = Field(default_factory=list)
    exclude_types: List[ResourceType] = Field(default_factory=list)
    min_urgency: Optional[Urgency] = Field(
        None,
        description="Lowest urgency tier to return"
    )
    assignment_id: Optional[str] = Field(
        None,
        description="Experiment variant governing this request"
    )
    auto_assign: bool = Field(
        False,
        description="Assign the user to an eligible experiment when no assignment id is given"
    )

    @field_validator("max_recommendations")
    @classmethod
    def validate_max_recommendations(cls, v: int) -> int:
        """Cap the requested count at the configured limit"""
        limit = settings.api.max_recommendations_limit
        if v > limit:
            raise ValueError(f"max_recommendations must be at most {limit}")
        return v

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "profile": {
                "anonymous_id": "u_7f3a9c",
                "risk": {"latest": {"depression_score": 5, "anxiety_score": 6}},
                "demographics": {
                    "language": "bn",
                    "country_of_origin": "Bangladesh",
                    "employment_sector": "Construction",
                    "location": {"country": "Singapore"}
                }
            },
            "max_recommendations": 5,
            "min_urgency": "medium"
        }
    })


class RecommendationItem(BaseModel):
    """One recommended resource"""
    recommendation_id: Optional[str] = Field(None, description="Id to report interactions against")
    resource_id: str
    name: str = Field(..., description="Resource name in the user's language")
    resource_type: ResourceType
    score: float = Field(..., ge=0.0, le=1.0)
    reasons: List[str] = Field(default_factory=list)
    strategy: str
    urgency: Urgency
    estimated_helpfulness: float = Field(..., ge=0.0, le=1.0)
    personalized_message: str = ""


class RecommendationResponse(BaseModel):
    """Response model for the recommendations endpoint"""
    anonymous_id: str
    recommendations: List[RecommendationItem] = Field(default_factory=list)
    total: int = Field(..., ge=0)
    generated_at: datetime = Field(default_factory=datetime.utcnow)


class SearchRequest(BaseModel):
    """Request model for directory search"""
    filter: DirectoryFilter = Field(default_factory=DirectoryFilter)
    requester_location: Optional[Coordinates] = Field(
        None,
        description="Requester coordinates for distance scoring"
    )
    language: str = Field(
        default="en",
        description="Language for returned names"
    )

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "filter": {
                "languages": ["bn"],
                "location": {"max_distance": 10},
                "search_query": "counsel",
                "sort_by": "distance",
                "sort_order": "asc"
            },
            "requester_location": {"latitude": 1.35, "longitude": 103.82},
            "language": "bn"
        }
    })


class SearchResultItem(BaseModel):
    """One directory search result"""
    resource_id: str
    name: str
    category: Optional[DirectoryCategory] = None
    resource_type: ResourceType
    relevance_score: float
    distance_km: Optional[float] = None
    matched_fields: List[str] = Field(default_factory=list)
    is_currently_open: bool
    next_available_time: Optional[str] = None
    average_rating: float
    total_reviews: int


class SearchResponse(BaseModel):
    """Response model for directory search"""
    results: List[SearchResultItem] = Field(default_factory=list)
    total: int = Field(..., ge=0)


class InteractionRequest(BaseModel):
    """Request model for interaction tracking"""
    recommendation_id: str = Field(..., min_length=1)
    payload: InteractionPayload

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "recommendation_id": "rec_0123456789abcdef",
            "payload": {"type": "rate", "rating": 5, "helpfulness": 4}
        }
    })


class InteractionResponse(BaseModel):
    """Whether an interaction was recorded"""
    recorded: bool
    event_id: Optional[str] = None


class FeedbackRequest(BaseModel):
    """Request model for resource feedback"""
    user_id: str = Field(..., min_length=1, max_length=64)
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(default="", max_length=2000)
    would_recommend: Optional[bool] = None


class FeedbackResponse(BaseModel):
    """Stored feedback and the recomputed quality metrics"""
    feedback_id: str
    resource_id: str
    average_rating: float
    total_reviews: int


class ErrorResponse(BaseModel):
    """Error response model"""
    error: str = Field(
        ...,
        description="Error type"
    )
    message: str = Field(
        ...,
        description="Error message"
    )
    details: Optional[Dict] = Field(
        None,
        description="Additional error details"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="Error timestamp"
    )

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "error": "ValidationError",
            "message": "Invalid request data",
            "details": {
                "field": "profile.demographics.language",
                "issue": "Field required"
            },
            "timestamp": "2025-11-17T10:30:00Z"
        }
    })
