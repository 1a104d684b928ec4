"""
Resource recommendation module for support resources.
"""

from resource_engine.recommendations.profiles import (
    ProfileStore,
    RiskLevel,
    UserProfile
)
from resource_engine.recommendations.resource_catalog import (
    ResourceCatalog,
    ResourceRecord,
    ResourceType,
    Urgency
)

__all__ = [
    'ProfileStore',
    'RiskLevel',
    'UserProfile',
    'ResourceCatalog',
    'ResourceRecord',
    'ResourceType',
    'Urgency'
]
