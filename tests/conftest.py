"""Shared fixtures for resource engine tests"""

import pytest

from resource_engine.recommendations.populate_resources import default_resources
from resource_engine.recommendations.profiles import UserProfile
from resource_engine.recommendations.resource_catalog import (
    Coordinates,
    LocalizedText,
    ResourceCatalog,
    ResourceLocation,
    ResourceMetadata,
    ResourceRecord,
    ResourceType,
)
from resource_engine.recommendations.scoring_config import ScoringConfig
from resource_engine.recommendations.strategies import RequestContext


@pytest.fixture
def make_profile():
    """Factory for user profiles with sensible defaults"""
    def _make(
        anonymous_id="user_001",
        depression=2,
        anxiety=2,
        language="en",
        country_of_origin=None,
        age_group=None,
        gender=None,
        employment_sector=None,
        location_country="Singapore",
        interactions=None,
        total_sessions=0,
    ):
        data = {
            "anonymous_id": anonymous_id,
            "risk": {"latest": {"depression_score": depression, "anxiety_score": anxiety}},
            "demographics": {
                "language": language,
                "country_of_origin": country_of_origin,
                "age_group": age_group,
                "gender": gender,
                "employment_sector": employment_sector,
                "location": {"country": location_country} if location_country else None,
            },
            "usage": {"total_sessions": total_sessions},
            "interaction_history": interactions or [],
        }
        return UserProfile.model_validate(data)

    return _make


@pytest.fixture
def make_resource():
    """Factory for minimal resource records"""
    def _make(
        resource_id="res_001",
        resource_type=ResourceType.THERAPY,
        languages=None,
        risk_levels=None,
        rating=0.0,
        coordinates=None,
        **updates,
    ):
        record = ResourceRecord(
            id=resource_id,
            resource_type=resource_type,
            name=LocalizedText(en=f"Resource {resource_id}"),
            description=LocalizedText(en="Test resource"),
            metadata=ResourceMetadata(
                languages=languages or ["en"],
                risk_levels=risk_levels or [],
            ),
            location=ResourceLocation(coordinates=Coordinates(
                latitude=coordinates[0], longitude=coordinates[1]
            )) if coordinates else None,
        )
        if rating:
            record = record.model_copy(update={
                "quality": record.quality.model_copy(update={"average_rating": rating, "total_reviews": 10})
            })
        if updates:
            record = record.model_copy(update=updates)
        return record

    return _make


@pytest.fixture
def seed_resources():
    return default_resources()


@pytest.fixture
def catalog(seed_resources):
    return ResourceCatalog(seed_resources)


@pytest.fixture
def config():
    return ScoringConfig(exploration_seed=7, apply_variant_weights=False)


@pytest.fixture
def context():
    return RequestContext(max_recommendations=10)
