"""
Versioned weights and thresholds for the scoring strategies.

Every strategy receives a ScoringConfig instead of reading module constants,
so tuning and experiment variants are expressed as data.
"""

from typing import Dict, Optional
from pydantic import BaseModel, Field

from resource_engine.config import settings

# Variant parameter name -> (strategy section, field)
VARIANT_PARAMETERS = {
    "similarity_threshold": ("collaborative", "similarity_floor"),
    "exploration_rate": ("feature_weighted", "exploration"),
}


class ContentBasedWeights(BaseModel):
    """Weights for the content-based strategy"""
    risk_level: float = 0.30
    language: float = 0.20
    cultural_context: float = 0.15
    age_group: float = 0.10
    employment_sector: float = 0.10
    location: float = 0.15
    threshold: float = 0.30


class DemographicWeights(BaseModel):
    """Weights for the demographic strategy"""
    country: float = 0.30
    employment_sector: float = 0.25
    age_group: float = 0.20
    gender: float = 0.15
    language: float = 0.10
    threshold: float = 0.40


class CollaborativeWeights(BaseModel):
    """Similarity weights and guards for collaborative filtering"""
    risk_score: float = 0.30
    country: float = 0.20
    age_group: float = 0.15
    employment_sector: float = 0.15
    language: float = 0.10
    gender: float = 0.10
    max_score_difference: float = 12.0
    similarity_floor: float = 0.30
    max_neighbours: int = 20
    min_rating: int = 4
    min_contributions: int = 3


class FeatureWeights(BaseModel):
    """Weights for the feature-weighted strategy"""
    urgency_match: float = 0.4
    complexity_fit: float = 0.2
    effectiveness: float = 0.3
    exploration: float = 0.1
    threshold: float = 0.5


class ScoringConfig(BaseModel):
    """
    Complete scoring configuration passed into each strategy call.

    The hybrid blend weights are keyed by strategy name.
    """
    version: str = Field(default_factory=lambda: settings.scoring.config_version)
    content_based: ContentBasedWeights = Field(default_factory=ContentBasedWeights)
    demographic: DemographicWeights = Field(default_factory=DemographicWeights)
    collaborative: CollaborativeWeights = Field(default_factory=CollaborativeWeights)
    feature_weighted: FeatureWeights = Field(default_factory=FeatureWeights)
    hybrid_weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "content-based": 0.30,
            "collaborative": 0.25,
            "demographic": 0.20,
            "ml-predicted": 0.25,
        }
    )
    exploration_seed: int = Field(default_factory=lambda: settings.scoring.exploration_seed)
    apply_variant_weights: bool = Field(default_factory=lambda: settings.scoring.apply_variant_weights)

    def with_hybrid_weights(self, overrides: Optional[Dict[str, float]]) -> "ScoringConfig":
        """
        Return a copy whose hybrid weights are replaced by variant overrides.

        Overrides only take effect when apply_variant_weights is enabled;
        unknown strategy names are ignored.
        """
        if not overrides or not self.apply_variant_weights:
            return self

        weights = dict(self.hybrid_weights)
        for strategy, weight in overrides.items():
            if strategy in weights:
                weights[strategy] = float(weight)

        return self.model_copy(update={"hybrid_weights": weights})

    def with_variant_parameters(self, parameters: Optional[Dict[str, float]]) -> "ScoringConfig":
        """
        Return a copy with strategy thresholds replaced by variant parameters.

        Gated by apply_variant_weights like the hybrid overrides; parameter
        names outside VARIANT_PARAMETERS are ignored.
        """
        if not parameters or not self.apply_variant_weights:
            return self

        update = {}
        for name, value in parameters.items():
            if name not in VARIANT_PARAMETERS:
                continue
            section, field = VARIANT_PARAMETERS[name]
            current = update.get(section, getattr(self, section))
            update[section] = current.model_copy(update={field: float(value)})

        return self.model_copy(update=update) if update else self
