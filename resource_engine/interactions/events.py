"""
Interaction events and the per-recommendation metrics record.
"""

import uuid
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class ViewPayload(BaseModel):
    type: Literal["view"] = "view"


class ClickPayload(BaseModel):
    type: Literal["click"] = "click"
    time_to_click: Optional[float] = Field(default=None, ge=0.0, description="Seconds from display to click")


class CompletePayload(BaseModel):
    type: Literal["complete"] = "complete"
    duration: Optional[float] = Field(default=None, ge=0.0, description="Seconds spent")
    completion_percentage: float = Field(default=100.0, ge=0.0, le=100.0)


class RatePayload(BaseModel):
    type: Literal["rate"] = "rate"
    rating: int = Field(..., ge=1, le=5)
    helpfulness: Optional[int] = Field(default=None, ge=1, le=5)


class BookmarkPayload(BaseModel):
    type: Literal["bookmark"] = "bookmark"


class SharePayload(BaseModel):
    type: Literal["share"] = "share"
    channel: Optional[str] = None


InteractionPayload = Annotated[
    Union[ViewPayload, ClickPayload, CompletePayload, RatePayload, BookmarkPayload, SharePayload],
    Field(discriminator="type")
]


class InteractionEvent(BaseModel):
    """One user action on a recommendation; never modified once recorded"""
    id: str = Field(default_factory=lambda: f"evt_{uuid.uuid4().hex[:16]}")
    recommendation_id: str
    resource_id: str
    user_id: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    payload: InteractionPayload

    @property
    def event_type(self) -> str:
        return self.payload.type


class RecommendationRecord(BaseModel):
    """
    Metrics record written for every recommendation shown.

    Only the interaction flags change after creation; the score, position and
    strategy describe the response as it was served.
    """
    id: str = Field(default_factory=lambda: f"rec_{uuid.uuid4().hex[:16]}")
    user_id: str
    resource_id: str
    strategy: str
    position: int = Field(..., ge=1)
    score: float
    experiment_id: Optional[str] = None
    variant_id: Optional[str] = None
    risk_level: Optional[str] = None
    country: Optional[str] = None
    language: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    viewed: bool = False
    clicked: bool = False
    completed: bool = False
    bookmarked: bool = False
    shared: bool = False
    rating: Optional[int] = None
    helpfulness: Optional[int] = None
    time_to_click: Optional[float] = None
    completion_time: Optional[float] = None
