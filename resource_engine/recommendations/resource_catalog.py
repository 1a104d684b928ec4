"""
Resource catalog for managing support resources.
"""

import threading
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, field_validator

from resource_engine.exceptions import ResourceNotFoundError, ValidationError
from resource_engine.logging_config import get_logger

logger = get_logger(__name__)


class ResourceType(str, Enum):
    """Types of support resources"""
    CRISIS = "crisis"
    THERAPY = "therapy"
    SELF_HELP = "self-help"
    PEER_SUPPORT = "peer-support"
    MEDICATION = "medication"
    WELLNESS = "wellness"
    EDUCATIONAL = "educational"


class DirectoryCategory(str, Enum):
    """Directory listing categories"""
    DORMITORY_BASED = "dormitory-based"
    HELPLINES = "helplines"
    CLINICS = "clinics"
    ONLINE_SERVICES = "online-services"
    PEER_SUPPORT = "peer-support"
    GOVERNMENT_SERVICES = "government-services"
    NGO_SERVICES = "ngo-services"
    EMERGENCY_SERVICES = "emergency-services"


class Urgency(str, Enum):
    """Urgency tiers, ordered low < medium < high < urgent"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return URGENCY_ORDER[self]


URGENCY_ORDER = {
    Urgency.LOW: 1,
    Urgency.MEDIUM: 2,
    Urgency.HIGH: 3,
    Urgency.URGENT: 4,
}


class ResourceStatus(str, Enum):
    """Administrative status of a resource"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    TEMPORARILY_CLOSED = "temporarily-closed"
    FULL_CAPACITY = "full-capacity"


class DayOfWeek(str, Enum):
    """Days used by resource schedules"""
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class LocalizedText(BaseModel):
    """Text with an English baseline and optional translations"""
    en: str
    zh: Optional[str] = None
    bn: Optional[str] = None
    ta: Optional[str] = None
    my: Optional[str] = None
    idn: Optional[str] = None

    def get(self, language: str) -> str:
        """Return the translation for a language, falling back to English"""
        value = getattr(self, language, None) if language in type(self).model_fields else None
        return value or self.en


class TimeSlot(BaseModel):
    """Opening window in HH:MM (24h) local time"""
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def validate_hhmm(cls, v: str) -> str:
        """Validate HH:MM format"""
        try:
            datetime.strptime(v, "%H:%M")
        except ValueError:
            raise ValueError(f"time must be HH:MM, got {v!r}")
        return v


class DaySchedule(BaseModel):
    """Opening hours for one weekday"""
    day: DayOfWeek
    is_open: bool = True
    time_slots: List[TimeSlot] = Field(default_factory=list)
    notes: Optional[str] = None


class TargetDemographics(BaseModel):
    """Demographic groups a resource is designed for"""
    age_groups: List[str] = Field(default_factory=list)
    genders: List[str] = Field(default_factory=list)
    employment_sectors: List[str] = Field(default_factory=list)
    countries: List[str] = Field(default_factory=list)


class ResourceMetadata(BaseModel):
    """Matching metadata"""
    languages: List[str] = Field(default_factory=list)
    cultural_context: List[str] = Field(default_factory=list)
    target_demographics: TargetDemographics = Field(default_factory=TargetDemographics)
    risk_levels: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    difficulty: str = "beginner"
    duration: int = Field(default=30, ge=0, description="Duration in minutes")
    format: str = "individual"


class Effectiveness(BaseModel):
    """Outcome statistics"""
    completion_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    improvement_score: float = Field(default=0.0, description="Mean PHQ-4 change after engagement")


class QualityMetrics(BaseModel):
    """Derived quality metrics, recomputed from the feedback set"""
    average_rating: float = Field(default=0.0, ge=0.0, le=5.0)
    total_reviews: int = Field(default=0, ge=0)
    response_time: str = "within 24 hours"


class Coordinates(BaseModel):
    """Geographic point"""
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)


class ResourceLocation(BaseModel):
    """Physical location of a resource"""
    address: Optional[LocalizedText] = None
    coordinates: Optional[Coordinates] = None


class Availability(BaseModel):
    """Where and when a resource can be accessed"""
    locations: List[str] = Field(default_factory=list)
    cost: str = "free"
    access_requirements: List[str] = Field(default_factory=list)
    wait_time_days: Optional[int] = None
    schedule: List[DaySchedule] = Field(default_factory=list)
    timezone: str = "Asia/Singapore"


class ServiceOffering(BaseModel):
    """A service provided by a resource"""
    service: LocalizedText
    description: Optional[LocalizedText] = None
    languages: List[str] = Field(default_factory=list)
    cost: str = "free"
    requires_appointment: bool = False


class ResourceFeatures(BaseModel):
    """Boolean access features used by the directory filter"""
    wheelchair_accessible: bool = False
    accepts_walk_ins: bool = False
    has_online_option: bool = False
    has_24_hour_support: bool = False
    provides_crisis_intervention: bool = False
    has_group_sessions: bool = False
    has_individual_sessions: bool = False


class Provider(BaseModel):
    """Organisation running a resource"""
    name: str
    type: str = "ngo"
    credentials: List[str] = Field(default_factory=list)
    contact: Dict[str, str] = Field(default_factory=dict)


class ResourceRecord(BaseModel):
    """Support resource as seen by the recommendation engine and directory"""
    id: str = Field(..., min_length=1)
    resource_type: ResourceType
    category: Optional[DirectoryCategory] = None
    name: LocalizedText
    description: LocalizedText
    metadata: ResourceMetadata = Field(default_factory=ResourceMetadata)
    effectiveness: Effectiveness = Field(default_factory=Effectiveness)
    availability: Availability = Field(default_factory=Availability)
    location: Optional[ResourceLocation] = None
    services: List[ServiceOffering] = Field(default_factory=list)
    features: ResourceFeatures = Field(default_factory=ResourceFeatures)
    provider: Optional[Provider] = None
    quality: QualityMetrics = Field(default_factory=QualityMetrics)
    search_keywords: List[str] = Field(default_factory=list)
    status: ResourceStatus = ResourceStatus.ACTIVE
    last_updated: datetime = Field(default_factory=datetime.utcnow)

    @property
    def coordinates(self) -> Optional[Coordinates]:
        return self.location.coordinates if self.location else None

    @property
    def is_active(self) -> bool:
        return self.status == ResourceStatus.ACTIVE


class ResourceFeedback(BaseModel):
    """User feedback attached to a resource"""
    id: str = Field(default_factory=lambda: f"feedback_{uuid.uuid4().hex[:12]}")
    resource_id: str
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""
    would_recommend: Optional[bool] = None
    submitted_at: datetime = Field(default_factory=datetime.utcnow)


class UtilizationAction(str, Enum):
    """Directory utilization actions"""
    VIEW = "view"
    CONTACT = "contact"
    QR_SCAN = "qr_scan"
    REFERRAL = "referral"
    SHARE = "share"


class ResourceUtilization(BaseModel):
    """Daily utilization counters for one resource"""
    resource_id: str
    date: date
    counts: Dict[str, int] = Field(default_factory=lambda: {a.value: 0 for a in UtilizationAction})
    by_country: Dict[str, int] = Field(default_factory=dict)
    by_age_group: Dict[str, int] = Field(default_factory=dict)
    by_employment: Dict[str, int] = Field(default_factory=dict)
    by_language: Dict[str, int] = Field(default_factory=dict)


_PROTECTED_FIELDS = {"id", "quality"}


class ResourceCatalog:
    """
    Catalog of support resources with filtering, feedback and utilization tracking.

    Records are replaced rather than mutated in place, so a snapshot taken by
    an in-flight request never changes underneath it.
    """

    def __init__(self, resources: Optional[Iterable[ResourceRecord]] = None):
        """
        Initialize resource catalog.

        Args:
            resources: Optional initial resources
        """
        self._lock = threading.RLock()
        self.resources: Dict[str, ResourceRecord] = {}
        self._feedback: Dict[str, List[ResourceFeedback]] = {}
        self._utilization: Dict[str, Dict[date, ResourceUtilization]] = {}

        for resource in resources or []:
            self.add_resource(resource)

    def add_resource(self, resource: ResourceRecord) -> str:
        """
        Add or replace a resource in the catalog.

        Replacing a resource that already has feedback keeps the rating and
        review count derived from that feedback.
        """
        with self._lock:
            stamped = resource.model_copy(update={"last_updated": datetime.utcnow()})
            self.resources[stamped.id] = stamped
            self._utilization.setdefault(stamped.id, {})
            if self._feedback.setdefault(stamped.id, []):
                self.recompute_quality(stamped.id)
        logger.debug("resource_added", resource_id=resource.id)
        return resource.id

    def update_resource(self, resource_id: str, updates: Dict[str, Any]) -> ResourceRecord:
        """
        Apply administrative updates to a resource.

        Raises:
            ResourceNotFoundError: If the resource does not exist
            ValidationError: If the update touches derived quality metrics or the id
        """
        protected = _PROTECTED_FIELDS.intersection(updates)
        if protected:
            raise ValidationError(
                "Derived fields cannot be updated directly",
                {"fields": sorted(protected)}
            )

        with self._lock:
            current = self.require_resource(resource_id)
            merged = current.model_dump()
            merged.update(updates)
            merged["last_updated"] = datetime.utcnow()
            try:
                updated = ResourceRecord.model_validate(merged)
            except ValueError as e:
                raise ValidationError(f"Invalid resource update: {e}", {"resource_id": resource_id})
            self.resources[resource_id] = updated

        logger.info("resource_updated", resource_id=resource_id, fields=sorted(updates))
        return updated

    def deactivate_resource(self, resource_id: str) -> ResourceRecord:
        """Mark a resource inactive"""
        return self.update_resource(resource_id, {"status": ResourceStatus.INACTIVE})

    def get_resource(self, resource_id: str) -> Optional[ResourceRecord]:
        """Get a specific resource by ID"""
        return self.resources.get(resource_id)

    def require_resource(self, resource_id: str) -> ResourceRecord:
        """Get a resource or raise ResourceNotFoundError"""
        resource = self.resources.get(resource_id)
        if resource is None:
            raise ResourceNotFoundError(
                f"Resource {resource_id} not found",
                {"resource_id": resource_id}
            )
        return resource

    def get_all_resources(self, include_inactive: bool = False) -> List[ResourceRecord]:
        """Snapshot of resources ordered by id"""
        with self._lock:
            resources = list(self.resources.values())
        if not include_inactive:
            resources = [r for r in resources if r.is_active]
        resources.sort(key=lambda r: r.id)
        return resources

    def filter_by_risk_level(self, risk_level: str) -> List[ResourceRecord]:
        """Filter resources by risk level"""
        return [
            resource for resource in self.get_all_resources()
            if risk_level in resource.metadata.risk_levels
        ]

    def filter_by_type(self, resource_type: ResourceType) -> List[ResourceRecord]:
        """Filter resources by type"""
        return [
            resource for resource in self.get_all_resources()
            if resource.resource_type == resource_type
        ]

    def get_resources_by_category(self, category: DirectoryCategory) -> List[ResourceRecord]:
        """Active resources in a directory category"""
        return [
            resource for resource in self.get_all_resources()
            if resource.category == category
        ]

    # Feedback

    def add_feedback(
        self,
        resource_id: str,
        user_id: str,
        rating: int,
        comment: str = "",
        would_recommend: Optional[bool] = None
    ) -> ResourceFeedback:
        """
        Attach feedback to a resource and recompute its quality metrics.

        Args:
            resource_id: Resource receiving the feedback
            user_id: Anonymous id of the submitting user
            rating: Rating from 1 to 5
            comment: Free-text comment
            would_recommend: Defaults to rating >= 4

        Returns:
            The stored feedback record
        """
        try:
            feedback = ResourceFeedback(
                resource_id=resource_id,
                user_id=user_id,
                rating=rating,
                comment=comment,
                would_recommend=would_recommend if would_recommend is not None else rating >= 4
            )
        except ValueError as e:
            raise ValidationError(f"Invalid feedback: {e}", {"resource_id": resource_id})

        with self._lock:
            self.require_resource(resource_id)
            self._feedback.setdefault(resource_id, []).append(feedback)
            self.recompute_quality(resource_id)

        logger.info("feedback_added", resource_id=resource_id, rating=rating)
        return feedback

    def get_feedback(self, resource_id: str) -> List[ResourceFeedback]:
        """All feedback for a resource"""
        with self._lock:
            return list(self._feedback.get(resource_id, []))

    def recompute_quality(self, resource_id: str) -> QualityMetrics:
        """
        Recompute average rating and review count from the full feedback set.

        A resource without stored feedback keeps its seeded metrics.
        """
        with self._lock:
            resource = self.require_resource(resource_id)
            feedbacks = self._feedback.get(resource_id, [])
            if not feedbacks:
                return resource.quality

            average = sum(f.rating for f in feedbacks) / len(feedbacks)
            quality = resource.quality.model_copy(update={
                "average_rating": round(average, 1),
                "total_reviews": len(feedbacks),
            })
            self.resources[resource_id] = resource.model_copy(update={
                "quality": quality,
                "last_updated": datetime.utcnow(),
            })
            return quality

    # Utilization

    def track_utilization(
        self,
        resource_id: str,
        action: UtilizationAction,
        demographics: Optional[Dict[str, str]] = None,
        on: Optional[date] = None
    ) -> ResourceUtilization:
        """
        Count a directory interaction for a resource on a given day.

        Args:
            resource_id: Resource that was used
            action: Utilization action
            demographics: Optional country/age_group/employment/language of the user
            on: Day to record against (defaults to today, UTC)
        """
        action = UtilizationAction(action)
        day = on or datetime.utcnow().date()

        with self._lock:
            self.require_resource(resource_id)
            daily = self._utilization.setdefault(resource_id, {})
            record = daily.get(day)
            if record is None:
                record = ResourceUtilization(resource_id=resource_id, date=day)
                daily[day] = record

            record.counts[action.value] += 1

            if demographics:
                for key, bucket in (
                    ("country", record.by_country),
                    ("age_group", record.by_age_group),
                    ("employment", record.by_employment),
                    ("language", record.by_language),
                ):
                    value = demographics.get(key)
                    if value:
                        bucket[value] = bucket.get(value, 0) + 1

            return record.model_copy(deep=True)

    def get_resource_analytics(
        self,
        resource_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None
    ) -> Dict[str, Any]:
        """Utilization totals, conversion rate and top demographics for a resource"""
        with self._lock:
            resource = self.require_resource(resource_id)
            days = [
                u.model_copy(deep=True)
                for d, u in sorted(self._utilization.get(resource_id, {}).items())
                if (start is None or d >= start) and (end is None or d <= end)
            ]
            feedback_count = len(self._feedback.get(resource_id, []))

        totals = {a.value: 0 for a in UtilizationAction}
        merged: Dict[str, Dict[str, int]] = {
            "country": {}, "age_group": {}, "employment": {}, "language": {}
        }
        for util in days:
            for action, count in util.counts.items():
                totals[action] = totals.get(action, 0) + count
            for key, bucket in (
                ("country", util.by_country),
                ("age_group", util.by_age_group),
                ("employment", util.by_employment),
                ("language", util.by_language),
            ):
                for value, count in bucket.items():
                    merged[key][value] = merged[key].get(value, 0) + count

        views = totals[UtilizationAction.VIEW.value]
        return {
            "resource_id": resource_id,
            "period": {
                "start": start.isoformat() if start else None,
                "end": end.isoformat() if end else None,
            },
            "totals": totals,
            "average_rating": resource.quality.average_rating,
            "total_feedback": feedback_count,
            "conversion_rate": totals[UtilizationAction.CONTACT.value] / views if views > 0 else 0.0,
            "top_demographics": {
                key: _top_entry(bucket) for key, bucket in merged.items()
            },
            "days_tracked": len(days),
        }

    def get_statistics(self) -> Dict[str, Any]:
        """Catalog-wide statistics"""
        resources = self.get_all_resources(include_inactive=True)
        by_type: Dict[str, int] = {}
        weighted_rating = 0.0
        total_reviews = 0

        for resource in resources:
            key = resource.resource_type.value
            by_type[key] = by_type.get(key, 0) + 1
            weighted_rating += resource.quality.average_rating * resource.quality.total_reviews
            total_reviews += resource.quality.total_reviews

        return {
            "total_resources": len(resources),
            "active_resources": sum(1 for r in resources if r.is_active),
            "by_type": by_type,
            "average_rating": weighted_rating / total_reviews if total_reviews > 0 else 0.0,
            "total_reviews": total_reviews,
        }

    def __len__(self) -> int:
        return len(self.resources)


def _top_entry(bucket: Dict[str, int]) -> Optional[Dict[str, Any]]:
    if not bucket:
        return None
    key, value = sorted(bucket.items(), key=lambda kv: (-kv[1], kv[0]))[0]
    return {"key": key, "value": value}
