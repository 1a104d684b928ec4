"""
Default resources and helpers to populate a catalog with them.
"""

import json
import logging
from pathlib import Path
from typing import List, Union

from pydantic import ValidationError as PydanticValidationError

from resource_engine.exceptions import ValidationError
from resource_engine.recommendations.resource_catalog import (
    Availability,
    Coordinates,
    DayOfWeek,
    DaySchedule,
    DirectoryCategory,
    Effectiveness,
    LocalizedText,
    Provider,
    QualityMetrics,
    ResourceCatalog,
    ResourceFeatures,
    ResourceLocation,
    ResourceMetadata,
    ResourceRecord,
    ResourceType,
    ServiceOffering,
    TargetDemographics,
    TimeSlot,
)

logger = logging.getLogger(__name__)

MIGRANT_ORIGINS = ["Bangladesh", "India", "Philippines", "Indonesia", "Myanmar"]
ALL_LANGUAGES = ["en", "zh", "bn", "ta", "my", "idn"]
WEEKDAYS = [
    DayOfWeek.MONDAY,
    DayOfWeek.TUESDAY,
    DayOfWeek.WEDNESDAY,
    DayOfWeek.THURSDAY,
    DayOfWeek.FRIDAY,
]


def _weekly_schedule(weekday_slots: List[TimeSlot], weekend_slots: List[TimeSlot]) -> List[DaySchedule]:
    schedule = [DaySchedule(day=day, time_slots=weekday_slots) for day in WEEKDAYS]
    for day in (DayOfWeek.SATURDAY, DayOfWeek.SUNDAY):
        schedule.append(DaySchedule(day=day, is_open=bool(weekend_slots), time_slots=weekend_slots))
    return schedule


def _round_the_clock() -> List[DaySchedule]:
    all_day = [TimeSlot(start="00:00", end="23:59")]
    return _weekly_schedule(all_day, all_day)


def default_resources() -> List[ResourceRecord]:
    """
    Build the default set of support resources.

    Returns:
        List of resources covering crisis, therapy, peer support, self-help
        and wellness content
    """
    return [
        ResourceRecord(
            id="crisis_bn_hotline",
            resource_type=ResourceType.CRISIS,
            category=DirectoryCategory.HELPLINES,
            name=LocalizedText(
                en="Bangla Crisis Support Line",
                bn="বাংলা সংকট সহায়তা লাইন",
            ),
            description=LocalizedText(
                en="24/7 crisis support in Bengali for workers in acute distress, "
                   "with trained counsellors and emergency referral."
            ),
            metadata=ResourceMetadata(
                languages=["bn", "en"],
                cultural_context=["Bangladesh"],
                target_demographics=TargetDemographics(
                    countries=["Bangladesh"],
                    employment_sectors=["Construction", "Shipyard", "Manufacturing"],
                ),
                risk_levels=["severe"],
                tags=["crisis", "hotline", "24-7", "confidential"],
                difficulty="beginner",
                duration=20,
                format="individual",
            ),
            effectiveness=Effectiveness(completion_rate=0.92, improvement_score=4.1),
            availability=Availability(
                locations=["Singapore"],
                cost="free",
                schedule=_round_the_clock(),
            ),
            features=ResourceFeatures(
                has_24_hour_support=True,
                provides_crisis_intervention=True,
                has_online_option=True,
                has_individual_sessions=True,
            ),
            services=[
                ServiceOffering(
                    service=LocalizedText(en="Crisis Counselling", bn="সংকট পরামর্শ"),
                    languages=["bn", "en"],
                ),
            ],
            provider=Provider(
                name="Migrant Crisis Network",
                type="ngo",
                credentials=["Crisis Counsellors"],
                contact={"phone": "+65-6100-0000"},
            ),
            quality=QualityMetrics(average_rating=4.7, total_reviews=212, response_time="immediate"),
            search_keywords=["crisis", "suicide", "emergency", "helpline"],
        ),
        ResourceRecord(
            id="crisis_national_line",
            resource_type=ResourceType.CRISIS,
            category=DirectoryCategory.EMERGENCY_SERVICES,
            name=LocalizedText(en="National Crisis Hotline"),
            description=LocalizedText(
                en="Round-the-clock emotional support and suicide prevention for anyone in crisis."
            ),
            metadata=ResourceMetadata(
                languages=["en", "zh", "ta", "my"],
                risk_levels=["moderate", "severe"],
                tags=["crisis", "suicide-prevention", "24-7"],
                duration=15,
            ),
            effectiveness=Effectiveness(completion_rate=0.88, improvement_score=3.6),
            availability=Availability(
                locations=["Singapore", "Malaysia"],
                schedule=_round_the_clock(),
            ),
            features=ResourceFeatures(
                has_24_hour_support=True,
                provides_crisis_intervention=True,
            ),
            provider=Provider(name="National Care Line", type="government", contact={"phone": "1800-221-4444"}),
            quality=QualityMetrics(average_rating=4.4, total_reviews=530, response_time="immediate"),
            search_keywords=["crisis", "hotline", "emergency"],
        ),
        ResourceRecord(
            id="therapy_multilingual",
            resource_type=ResourceType.THERAPY,
            category=DirectoryCategory.CLINICS,
            name=LocalizedText(en="Multilingual Counseling Services"),
            description=LocalizedText(
                en="Professional counseling available in multiple languages for migrant workers"
            ),
            metadata=ResourceMetadata(
                languages=ALL_LANGUAGES,
                cultural_context=MIGRANT_ORIGINS,
                target_demographics=TargetDemographics(
                    employment_sectors=["Construction", "Domestic Work", "Manufacturing"],
                    countries=["Singapore", "Malaysia", "UAE", "Saudi Arabia"],
                ),
                risk_levels=["moderate", "severe"],
                tags=["professional", "culturally-sensitive", "confidential"],
                difficulty="beginner",
                duration=60,
                format="individual",
            ),
            effectiveness=Effectiveness(completion_rate=0.78, improvement_score=3.2),
            availability=Availability(
                locations=["Singapore", "Malaysia", "UAE"],
                cost="free",
                access_requirements=["appointment"],
                wait_time_days=3,
                schedule=_weekly_schedule([TimeSlot(start="09:00", end="18:00")], []),
            ),
            location=ResourceLocation(
                address=LocalizedText(en="10 Kallang Avenue, Singapore"),
                coordinates=Coordinates(latitude=1.3110, longitude=103.8640),
            ),
            features=ResourceFeatures(has_individual_sessions=True, wheelchair_accessible=True),
            services=[
                ServiceOffering(
                    service=LocalizedText(en="Individual Counseling"),
                    languages=ALL_LANGUAGES,
                    requires_appointment=True,
                ),
            ],
            provider=Provider(
                name="Migrant Mental Health Collective",
                type="ngo",
                credentials=["Licensed Therapists", "Cultural Specialists"],
                contact={"phone": "+65-1234-5678", "email": "help@mmhc.org"},
            ),
            quality=QualityMetrics(average_rating=4.3, total_reviews=127),
            search_keywords=["counseling", "therapy", "multilingual"],
        ),
        ResourceRecord(
            id="dormitory_support_hub",
            resource_type=ResourceType.PEER_SUPPORT,
            category=DirectoryCategory.DORMITORY_BASED,
            name=LocalizedText(
                en="Dormitory Mental Health Support Hub",
                zh="宿舍心理健康支援中心",
                bn="ডরমিটরি মানসিক স্বাস্থ্য সহায়তা কেন্দ্র",
                my="Pusat Sokongan Kesihatan Mental Asrama",
                idn="Pusat Dukungan Kesehatan Mental Asrama",
            ),
            description=LocalizedText(
                en="On-site mental health support available in worker dormitories with trained "
                   "peer counselors and regular check-ins."
            ),
            metadata=ResourceMetadata(
                languages=ALL_LANGUAGES,
                cultural_context=MIGRANT_ORIGINS + ["China"],
                target_demographics=TargetDemographics(
                    countries=["Bangladesh", "India", "China", "Philippines", "Indonesia", "Myanmar"],
                    age_groups=["18-25", "26-35", "36-45", "46-55"],
                    employment_sectors=["Construction", "Manufacturing"],
                ),
                risk_levels=["minimal", "mild", "moderate"],
                tags=["dormitory", "peer-support", "on-site", "multilingual", "free", "24-7"],
                difficulty="beginner",
                duration=45,
                format="group",
            ),
            effectiveness=Effectiveness(completion_rate=0.71, improvement_score=2.4),
            availability=Availability(
                locations=["Singapore"],
                cost="free",
                schedule=_weekly_schedule(
                    [TimeSlot(start="09:00", end="17:00"), TimeSlot(start="19:00", end="21:00")],
                    [TimeSlot(start="10:00", end="16:00")],
                ),
            ),
            location=ResourceLocation(
                address=LocalizedText(en="Block 123, Dormitory Complex, Industrial Area"),
                coordinates=Coordinates(latitude=1.3521, longitude=103.8198),
            ),
            features=ResourceFeatures(
                wheelchair_accessible=True,
                accepts_walk_ins=True,
                has_online_option=True,
                has_24_hour_support=True,
                provides_crisis_intervention=True,
                has_group_sessions=True,
                has_individual_sessions=True,
            ),
            services=[
                ServiceOffering(
                    service=LocalizedText(en="Peer Counseling", zh="同伴咨询", bn="সহকর্মী পরামর্শ"),
                    description=LocalizedText(
                        en="One-on-one support from trained peer counselors who understand "
                           "migrant worker experiences"
                    ),
                    languages=ALL_LANGUAGES,
                ),
            ],
            provider=Provider(
                name="Worker Welfare Organization",
                type="ngo",
                credentials=["Certified Peer Counselors", "Mental Health First Aid"],
            ),
            quality=QualityMetrics(average_rating=4.2, total_reviews=89, response_time="immediate"),
            search_keywords=["dormitory", "peer support", "on-site", "worker housing", "counseling", "mental health"],
        ),
        ResourceRecord(
            id="selfhelp_stress_basics",
            resource_type=ResourceType.SELF_HELP,
            category=DirectoryCategory.ONLINE_SERVICES,
            name=LocalizedText(en="Managing Work Stress", bn="কাজের চাপ সামলানো"),
            description=LocalizedText(
                en="Short guided lessons on recognising and handling stress, homesickness and sleep problems."
            ),
            metadata=ResourceMetadata(
                languages=["en", "bn", "ta", "idn"],
                cultural_context=["Bangladesh", "India", "Indonesia"],
                target_demographics=TargetDemographics(age_groups=["18-25", "26-35"]),
                risk_levels=["minimal", "mild"],
                tags=["self-help", "stress", "sleep", "homesickness"],
                difficulty="beginner",
                duration=15,
                format="self-paced",
            ),
            effectiveness=Effectiveness(completion_rate=0.64, improvement_score=1.5),
            availability=Availability(locations=["Singapore", "Malaysia", "UAE"], cost="free"),
            features=ResourceFeatures(has_online_option=True),
            provider=Provider(name="Healthy Minds Online", type="community"),
            quality=QualityMetrics(average_rating=4.0, total_reviews=301),
            search_keywords=["stress", "sleep", "self-help"],
        ),
        ResourceRecord(
            id="wellness_mindfulness_advanced",
            resource_type=ResourceType.WELLNESS,
            category=DirectoryCategory.ONLINE_SERVICES,
            name=LocalizedText(en="Mindfulness Practice Programme"),
            description=LocalizedText(
                en="An eight-week programme of mindfulness and breathing practice for regular users."
            ),
            metadata=ResourceMetadata(
                languages=["en", "zh"],
                risk_levels=["minimal", "mild", "moderate"],
                tags=["mindfulness", "wellness", "breathing"],
                difficulty="advanced",
                duration=30,
                format="self-paced",
            ),
            effectiveness=Effectiveness(completion_rate=0.52, improvement_score=2.0),
            availability=Availability(locations=["Singapore"], cost="sliding-scale"),
            features=ResourceFeatures(has_online_option=True, has_group_sessions=True),
            services=[
                ServiceOffering(
                    service=LocalizedText(en="Guided Meditation"),
                    languages=["en", "zh"],
                    cost="paid",
                ),
            ],
            provider=Provider(name="Calm Collective", type="private"),
            quality=QualityMetrics(average_rating=4.6, total_reviews=58),
            search_keywords=["mindfulness", "meditation", "breathing"],
        ),
        ResourceRecord(
            id="peer_filipino_circle",
            resource_type=ResourceType.PEER_SUPPORT,
            category=DirectoryCategory.PEER_SUPPORT,
            name=LocalizedText(en="Kapwa Peer Circle"),
            description=LocalizedText(
                en="Weekend peer support circle for Filipino domestic workers."
            ),
            metadata=ResourceMetadata(
                languages=["en"],
                cultural_context=["Philippines"],
                target_demographics=TargetDemographics(
                    countries=["Philippines"],
                    genders=["female"],
                    employment_sectors=["Domestic Work"],
                    age_groups=["26-35", "36-45"],
                ),
                risk_levels=["mild", "moderate"],
                tags=["peer-support", "community", "domestic-work"],
                difficulty="intermediate",
                duration=90,
                format="group",
            ),
            effectiveness=Effectiveness(completion_rate=0.69, improvement_score=2.2),
            availability=Availability(
                locations=["Singapore"],
                cost="free",
                schedule=[
                    DaySchedule(day=DayOfWeek.MONDAY, is_open=False),
                    DaySchedule(day=DayOfWeek.SUNDAY, time_slots=[TimeSlot(start="13:00", end="17:00")]),
                ],
            ),
            location=ResourceLocation(
                address=LocalizedText(en="Lucky Plaza Community Room, Orchard Road"),
                coordinates=Coordinates(latitude=1.3043, longitude=103.8340),
            ),
            features=ResourceFeatures(accepts_walk_ins=True, has_group_sessions=True),
            provider=Provider(name="Kapwa Volunteers", type="community"),
            quality=QualityMetrics(average_rating=4.5, total_reviews=41),
            search_keywords=["filipino", "peer", "community"],
        ),
    ]


def populate_catalog(catalog: ResourceCatalog) -> int:
    """
    Add the default resources to a catalog.

    Args:
        catalog: Catalog to populate

    Returns:
        Number of resources added
    """
    count = 0
    for resource in default_resources():
        catalog.add_resource(resource)
        count += 1
        logger.info(f"Added resource: {resource.name.en}")

    logger.info(f"Populated catalog with {count} resources")
    return count


def load_resources_file(path: Union[str, Path]) -> List[ResourceRecord]:
    """
    Load resources from a JSON file holding a list of resource objects.

    Raises:
        ValidationError: If the file content is not a valid resource list
    """
    path = Path(path)
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Resource file is not valid JSON: {e}", {"path": str(path)})

    if not isinstance(data, list):
        raise ValidationError("Resource file must contain a JSON list", {"path": str(path)})

    try:
        return [ResourceRecord.model_validate(item) for item in data]
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid resource in {path.name}",
            {"path": str(path), "errors": e.errors(include_url=False, include_context=False)}
        )
