"""
User profiles and the in-memory profile store.
"""

import threading
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field, computed_field, field_validator

from resource_engine.exceptions import ValidationError
from resource_engine.logging_config import get_logger

logger = get_logger(__name__)


class RiskLevel(str, Enum):
    """PHQ-4 severity levels"""
    MINIMAL = "minimal"
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


# Upper bounds (inclusive) of the PHQ-4 total score for each level
RISK_THRESHOLDS: List[Tuple[int, RiskLevel]] = [
    (3, RiskLevel.MINIMAL),
    (6, RiskLevel.MILD),
    (9, RiskLevel.MODERATE),
]


def classify_risk(total_score: float) -> RiskLevel:
    """Map a PHQ-4 total score (0-12) to a risk level"""
    for upper, level in RISK_THRESHOLDS:
        if total_score <= upper:
            return level
    return RiskLevel.SEVERE


class RiskAssessment(BaseModel):
    """One PHQ-4 assessment; total and level are derived from the sub-scores"""
    depression_score: int = Field(..., ge=0, le=6)
    anxiety_score: int = Field(..., ge=0, le=6)
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    @computed_field
    @property
    def total_score(self) -> int:
        return self.depression_score + self.anxiety_score

    @computed_field
    @property
    def risk_level(self) -> RiskLevel:
        return classify_risk(self.total_score)


class RiskHistory(BaseModel):
    """Latest assessment plus earlier ones, oldest first"""
    latest: RiskAssessment
    history: List[RiskAssessment] = Field(default_factory=list)


class GeoLocation(BaseModel):
    """Where the user currently is"""
    country: str
    city: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)


class Demographics(BaseModel):
    """Demographic attributes used for matching"""
    language: str = Field(..., min_length=1)
    country_of_origin: Optional[str] = None
    age_group: Optional[str] = None
    gender: Optional[str] = None
    employment_sector: Optional[str] = None
    location: Optional[GeoLocation] = None


class UsagePatterns(BaseModel):
    """Aggregated usage statistics"""
    assessment_frequency: float = Field(default=0.0, ge=0.0, description="Assessments per month")
    session_duration: float = Field(default=0.0, ge=0.0, description="Average session minutes")
    total_sessions: int = Field(default=0, ge=0)
    features_used: List[str] = Field(default_factory=list)
    last_active: Optional[datetime] = None


class Preferences(BaseModel):
    """Stated preferences"""
    cultural_preferences: List[str] = Field(default_factory=list)
    communication_style: str = "supportive"
    resource_types: List[str] = Field(default_factory=list)
    privacy_level: str = "moderate"


class InteractionType(str, Enum):
    """Kinds of user interaction with a resource"""
    VIEW = "view"
    CLICK = "click"
    COMPLETE = "complete"
    SHARE = "share"
    RATE = "rate"
    BOOKMARK = "bookmark"


class UserInteraction(BaseModel):
    """One entry of a user's interaction history"""
    type: InteractionType
    resource_id: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    duration: Optional[float] = Field(default=None, ge=0.0, description="Seconds")


class UserProfile(BaseModel):
    """Profile information for personalization"""
    anonymous_id: str = Field(..., min_length=1, max_length=64)
    risk: RiskHistory
    demographics: Demographics
    usage: UsagePatterns = Field(default_factory=UsagePatterns)
    preferences: Preferences = Field(default_factory=Preferences)
    interaction_history: List[UserInteraction] = Field(default_factory=list)
    active: bool = True

    @field_validator("anonymous_id")
    @classmethod
    def validate_anonymous_id(cls, v: str) -> str:
        """Validate anonymous ID format"""
        if not v.strip():
            raise ValueError("anonymous_id cannot be empty")
        return v.strip()

    @property
    def risk_level(self) -> RiskLevel:
        return self.risk.latest.risk_level

    @property
    def total_score(self) -> int:
        return self.risk.latest.total_score

    def ratings(self, min_rating: int = 1) -> List[UserInteraction]:
        """Rate interactions at or above a rating"""
        return [
            i for i in self.interaction_history
            if i.type == InteractionType.RATE and i.rating is not None and i.rating >= min_rating
        ]


class ProfileStore:
    """
    In-memory store of user profiles.

    Profiles are never removed, only deactivated. Updates replace the stored
    profile so readers holding an older snapshot are unaffected.
    """

    def __init__(
        self,
        profiles: Optional[Iterable[UserProfile]] = None,
        max_history: int = 200
    ):
        self._lock = threading.RLock()
        self._profiles: Dict[str, UserProfile] = {}
        self.max_history = max_history

        for profile in profiles or []:
            self.upsert(profile)

    def upsert(self, profile: UserProfile) -> UserProfile:
        """Create or replace a profile"""
        history = profile.interaction_history[-self.max_history:]
        stored = profile.model_copy(update={"interaction_history": history})
        with self._lock:
            self._profiles[stored.anonymous_id] = stored
        return stored

    def get(self, anonymous_id: str) -> Optional[UserProfile]:
        return self._profiles.get(anonymous_id)

    def all_profiles(self, include_inactive: bool = False) -> List[UserProfile]:
        """Snapshot of stored profiles ordered by id"""
        with self._lock:
            profiles = list(self._profiles.values())
        if not include_inactive:
            profiles = [p for p in profiles if p.active]
        profiles.sort(key=lambda p: p.anonymous_id)
        return profiles

    def record_interaction(self, anonymous_id: str, interaction: UserInteraction) -> Optional[UserProfile]:
        """
        Append an interaction to a profile's bounded, time-ordered history.

        Returns None when the profile is unknown.
        """
        with self._lock:
            profile = self._profiles.get(anonymous_id)
            if profile is None:
                logger.warning("interaction_for_unknown_profile", anonymous_id=anonymous_id)
                return None

            history = sorted(
                profile.interaction_history + [interaction],
                key=lambda i: i.timestamp
            )[-self.max_history:]
            usage = profile.usage.model_copy(update={"last_active": interaction.timestamp})
            updated = profile.model_copy(update={"interaction_history": history, "usage": usage})
            self._profiles[anonymous_id] = updated
            return updated

    def record_assessment(self, anonymous_id: str, assessment: RiskAssessment) -> UserProfile:
        """Make an assessment the latest one, moving the previous latest into history"""
        with self._lock:
            profile = self._profiles.get(anonymous_id)
            if profile is None:
                raise ValidationError(
                    f"Profile {anonymous_id} not found",
                    {"anonymous_id": anonymous_id}
                )
            risk = RiskHistory(
                latest=assessment,
                history=profile.risk.history + [profile.risk.latest]
            )
            updated = profile.model_copy(update={"risk": risk})
            self._profiles[anonymous_id] = updated

        logger.info(
            "assessment_recorded",
            anonymous_id=anonymous_id,
            risk_level=assessment.risk_level.value
        )
        return updated

    def deactivate(self, anonymous_id: str) -> bool:
        """Mark a profile inactive; returns False if unknown"""
        with self._lock:
            profile = self._profiles.get(anonymous_id)
            if profile is None:
                return False
            self._profiles[anonymous_id] = profile.model_copy(update={"active": False})
        return True

    def __len__(self) -> int:
        return len(self._profiles)
