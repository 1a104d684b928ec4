"""
Strategy selection and A/B experiment routing.

Experiments split eligible users across variants, each of which names the
strategy that governs that user's recommendations. Assignment is derived
from a stable hash of the anonymous id, so it is reproducible across
processes, and is remembered once made.
"""

import hashlib
import threading
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from resource_engine.exceptions import ExperimentError
from resource_engine.logging_config import get_logger
from resource_engine.recommendations.profiles import UserProfile
from resource_engine.recommendations.strategies import Strategy

logger = get_logger(__name__)


class ExperimentStatus(str, Enum):
    """Experiment lifecycle states"""
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class Variant(BaseModel):
    """One arm of an experiment"""
    id: str = Field(..., min_length=1)
    name: str
    weight: float = Field(..., gt=0.0, description="Relative share of experiment traffic")
    strategy: Strategy
    parameters: Dict[str, float] = Field(default_factory=dict)
    hybrid_weights: Optional[Dict[str, float]] = None


class EligibilityCriteria(BaseModel):
    """Segment a user must fall into to enter an experiment"""
    risk_levels: List[str] = Field(default_factory=list)
    countries: List[str] = Field(default_factory=list)
    employment_sectors: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    age_groups: List[str] = Field(default_factory=list)
    min_sessions: Optional[int] = Field(default=None, ge=0)

    def matches(self, profile: UserProfile) -> bool:
        demographics = profile.demographics
        location_country = demographics.location.country if demographics.location else None

        if self.risk_levels and profile.risk_level.value not in self.risk_levels:
            return False
        if self.countries and location_country not in self.countries:
            return False
        if self.employment_sectors and demographics.employment_sector not in self.employment_sectors:
            return False
        if self.languages and demographics.language not in self.languages:
            return False
        if self.age_groups and demographics.age_group not in self.age_groups:
            return False
        if self.min_sessions is not None and profile.usage.total_sessions < self.min_sessions:
            return False
        return True


class StatisticalConfig(BaseModel):
    """Thresholds used when reading experiment results"""
    min_sample_size: int = Field(default=100, ge=1)
    confidence_level: float = Field(default=0.95, gt=0.0, lt=1.0)
    min_detectable_effect: float = 0.05
    power: float = 0.8


class Experiment(BaseModel):
    """A/B experiment over recommendation strategies"""
    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    status: ExperimentStatus = ExperimentStatus.DRAFT
    start_date: datetime = Field(default_factory=datetime.utcnow)
    end_date: Optional[datetime] = None
    target_metrics: List[str] = Field(default_factory=list)
    traffic_allocation: float = Field(default=1.0, ge=0.0, le=1.0)
    variants: List[Variant]
    criteria: Optional[EligibilityCriteria] = None
    statistical_config: StatisticalConfig = Field(default_factory=StatisticalConfig)

    @field_validator("variants")
    @classmethod
    def validate_variants(cls, v: List[Variant]) -> List[Variant]:
        """Validate variants are present and uniquely named"""
        if not v:
            raise ValueError("experiment needs at least one variant")
        ids = [variant.id for variant in v]
        if len(set(ids)) != len(ids):
            raise ValueError("variant ids must be unique")
        return v

    def get_variant(self, variant_id: str) -> Optional[Variant]:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None


class ExperimentAssignment(BaseModel):
    """Which variant governs a user's recommendations"""
    experiment_id: str
    variant_id: str
    strategy: Strategy
    hybrid_weights: Optional[Dict[str, float]] = None
    parameters: Dict[str, float] = Field(default_factory=dict)
    assigned_at: datetime = Field(default_factory=datetime.utcnow)


def hash_user_id(anonymous_id: str) -> float:
    """Stable position of a user in [0, 1)"""
    digest = hashlib.sha256(anonymous_id.encode("utf-8")).hexdigest()
    return int(digest[:8], 16) / 2 ** 32


def select_variant(experiment: Experiment, position: float) -> Variant:
    """Pick the variant whose cumulative normalized weight covers a position"""
    total = sum(variant.weight for variant in experiment.variants)
    cumulative = 0.0
    for variant in experiment.variants:
        cumulative += variant.weight / total
        if position <= cumulative:
            return variant
    return experiment.variants[-1]


class ExperimentRouter:
    """
    Resolves which strategy governs a recommendation request.

    Without an assignment the hybrid blend applies. Experiments are checked in
    registration order and a user joins at most one of them.
    """

    def __init__(self, experiments: Optional[Iterable[Experiment]] = None):
        """
        Initialize the router.

        Args:
            experiments: Optional experiments to register
        """
        self._lock = threading.RLock()
        self._experiments: Dict[str, Experiment] = {}
        self._assignments: Dict[str, ExperimentAssignment] = {}

        for experiment in experiments or []:
            self.create_experiment(experiment)

    def create_experiment(self, experiment: Experiment) -> Experiment:
        """
        Register a new experiment.

        Raises:
            ExperimentError: If an experiment with the same id exists
        """
        with self._lock:
            if experiment.id in self._experiments:
                raise ExperimentError(
                    f"Experiment {experiment.id} already exists",
                    {"experiment_id": experiment.id}
                )
            self._experiments[experiment.id] = experiment

        logger.info(
            "experiment_created",
            experiment_id=experiment.id,
            status=experiment.status.value,
            variants=[v.id for v in experiment.variants]
        )
        return experiment

    def update_status(self, experiment_id: str, status: ExperimentStatus) -> Experiment:
        """Move an experiment to a new status; completing it stamps the end date"""
        status = ExperimentStatus(status)
        with self._lock:
            experiment = self.require_experiment(experiment_id)
            update = {"status": status}
            if status == ExperimentStatus.COMPLETED:
                update["end_date"] = datetime.utcnow()
            updated = experiment.model_copy(update=update)
            self._experiments[experiment_id] = updated

        logger.info("experiment_status_updated", experiment_id=experiment_id, status=status.value)
        return updated

    def get_experiment(self, experiment_id: str) -> Optional[Experiment]:
        return self._experiments.get(experiment_id)

    def require_experiment(self, experiment_id: str) -> Experiment:
        experiment = self._experiments.get(experiment_id)
        if experiment is None:
            raise ExperimentError(
                f"Experiment {experiment_id} not found",
                {"experiment_id": experiment_id}
            )
        return experiment

    def list_experiments(self) -> List[Experiment]:
        with self._lock:
            return list(self._experiments.values())

    def active_experiments(self) -> List[Experiment]:
        return [e for e in self.list_experiments() if e.status == ExperimentStatus.ACTIVE]

    def get_assignment(self, anonymous_id: str) -> Optional[ExperimentAssignment]:
        return self._assignments.get(anonymous_id)

    def assign(self, profile: UserProfile) -> Optional[ExperimentAssignment]:
        """
        Assign a user to a variant of the first eligible active experiment.

        An existing assignment is returned as long as its experiment is still
        active. Users outside the traffic allocation get no assignment.
        """
        with self._lock:
            existing = self._assignments.get(profile.anonymous_id)
            if existing is not None:
                experiment = self._experiments.get(existing.experiment_id)
                if experiment is not None and experiment.status == ExperimentStatus.ACTIVE:
                    return existing

            eligible = [
                e for e in self.active_experiments()
                if e.criteria is None or e.criteria.matches(profile)
            ]
            if not eligible:
                return None

            experiment = eligible[0]
            position = hash_user_id(profile.anonymous_id)
            if experiment.traffic_allocation <= 0 or position > experiment.traffic_allocation:
                return None

            # Rescale so variant weights split the admitted traffic evenly
            variant = select_variant(experiment, position / experiment.traffic_allocation)
            assignment = ExperimentAssignment(
                experiment_id=experiment.id,
                variant_id=variant.id,
                strategy=variant.strategy,
                hybrid_weights=variant.hybrid_weights,
                parameters=variant.parameters,
            )
            self._assignments[profile.anonymous_id] = assignment

        logger.debug(
            "experiment_assigned",
            anonymous_id=profile.anonymous_id,
            experiment_id=assignment.experiment_id,
            variant_id=assignment.variant_id
        )
        return assignment

    def find_variant(self, variant_id: str) -> Optional[Tuple[Experiment, Variant]]:
        """Locate a variant among active experiments"""
        for experiment in self.active_experiments():
            variant = experiment.get_variant(variant_id)
            if variant is not None:
                return experiment, variant
        return None

    def resolve_strategy(
        self,
        profile: UserProfile,
        assignment_id: Optional[str] = None
    ) -> Tuple[Strategy, Optional[ExperimentAssignment]]:
        """
        Strategy governing a request.

        Args:
            profile: Requesting user
            assignment_id: Variant id of an experiment assignment, if any

        Returns:
            The strategy and the assignment it came from (None for the default)
        """
        if assignment_id is None:
            return Strategy.HYBRID, None

        found = self.find_variant(assignment_id)
        if found is None:
            logger.warning(
                "unknown_experiment_variant",
                variant_id=assignment_id,
                anonymous_id=profile.anonymous_id
            )
            return Strategy.HYBRID, None

        experiment, variant = found
        assignment = ExperimentAssignment(
            experiment_id=experiment.id,
            variant_id=variant.id,
            strategy=variant.strategy,
            hybrid_weights=variant.hybrid_weights,
            parameters=variant.parameters,
        )
        return variant.strategy, assignment

    def get_variant_config(self, experiment_id: str, variant_id: str) -> Optional[Variant]:
        experiment = self._experiments.get(experiment_id)
        if experiment is None:
            return None
        return experiment.get_variant(variant_id)


def default_experiments() -> List[Experiment]:
    """Seed experiments: strategy comparison and crisis prioritisation"""
    return [
        Experiment(
            id="recommendation_strategies_2025",
            name="Recommendation Strategy Optimization",
            description="Compare different recommendation approaches for effectiveness",
            status=ExperimentStatus.ACTIVE,
            start_date=datetime(2025, 8, 1),
            end_date=datetime(2025, 12, 31, 23, 59, 59),
            target_metrics=[
                "click_through_rate",
                "completion_rate",
                "user_satisfaction",
                "recommendation_diversity",
            ],
            traffic_allocation=0.8,
            variants=[
                Variant(
                    id="control_content_based",
                    name="Control: Content-Based",
                    weight=0.25,
                    strategy=Strategy.CONTENT_BASED,
                ),
                Variant(
                    id="enhanced_collaborative",
                    name="Enhanced Collaborative Filtering",
                    weight=0.25,
                    strategy=Strategy.COLLABORATIVE,
                    parameters={"similarity_threshold": 0.3},
                ),
                Variant(
                    id="cultural_priority",
                    name="Cultural-Priority Matching",
                    weight=0.25,
                    strategy=Strategy.DEMOGRAPHIC,
                ),
                Variant(
                    id="ml_optimized",
                    name="ML-Optimized Hybrid",
                    weight=0.25,
                    strategy=Strategy.HYBRID,
                    parameters={"exploration_rate": 0.1},
                    hybrid_weights={
                        "content-based": 0.30,
                        "collaborative": 0.25,
                        "demographic": 0.20,
                        "ml-predicted": 0.25,
                    },
                ),
            ],
            statistical_config=StatisticalConfig(min_sample_size=100),
        ),
        Experiment(
            id="crisis_optimization_2025",
            name="Crisis Resource Optimization",
            description="Optimize resource recommendations for users in crisis",
            status=ExperimentStatus.ACTIVE,
            start_date=datetime(2025, 8, 1),
            target_metrics=["crisis_resource_engagement", "time_to_help"],
            traffic_allocation=1.0,
            variants=[
                Variant(
                    id="immediate_crisis_focus",
                    name="Immediate Crisis Focus",
                    weight=0.5,
                    strategy=Strategy.CONTENT_BASED,
                ),
                Variant(
                    id="balanced_crisis_support",
                    name="Balanced Crisis Support",
                    weight=0.5,
                    strategy=Strategy.HYBRID,
                ),
            ],
            criteria=EligibilityCriteria(risk_levels=["severe"]),
            statistical_config=StatisticalConfig(min_sample_size=50),
        ),
    ]
