"""
Recommendation engine for personalized support resource recommendations.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union
import logging

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from resource_engine.exceptions import (
    ResourceEngineException,
    UpstreamUnavailableError,
    ValidationError,
)
from resource_engine.interactions.analytics import build_report
from resource_engine.interactions.events import InteractionEvent, InteractionPayload
from resource_engine.interactions.ledger import InteractionLedger, to_naive_utc
from resource_engine.recommendations import hybrid
from resource_engine.recommendations.experiments import ExperimentAssignment, ExperimentRouter
from resource_engine.recommendations.profiles import ProfileStore, UserProfile
from resource_engine.recommendations.resource_catalog import ResourceCatalog, ResourceRecord
from resource_engine.recommendations.scoring_config import ScoringConfig
from resource_engine.recommendations.strategies import (
    RequestContext,
    ScoredCandidate,
    Strategy,
    collaborative,
    content_based,
    demographic,
    feature_weighted,
)

logger = logging.getLogger(__name__)

_payload_adapter = TypeAdapter(InteractionPayload)


class RecommendationEngine:
    """
    Engine for generating personalized support resource recommendations.

    Resolves the governing strategy for each request, runs it (or all four for
    the hybrid blend), post-processes the candidates and records what was
    served in the interaction ledger.
    """

    def __init__(
        self,
        catalog: ResourceCatalog,
        profile_store: Optional[ProfileStore] = None,
        ledger: Optional[InteractionLedger] = None,
        router: Optional[ExperimentRouter] = None,
        config: Optional[ScoringConfig] = None
    ):
        """
        Initialize recommendation engine.

        Args:
            catalog: Resource catalog to recommend from
            profile_store: Profiles used as the collaborative population
            ledger: Interaction ledger (creates one if not provided)
            router: Experiment router (no experiments if not provided)
            config: Scoring configuration (defaults if not provided)
        """
        self.catalog = catalog
        self.profile_store = profile_store if profile_store is not None else ProfileStore()
        self.ledger = ledger if ledger is not None else InteractionLedger(profile_store=self.profile_store)
        self.router = router or ExperimentRouter()
        self.config = config or ScoringConfig()
        logger.info(f"RecommendationEngine initialized with scoring config {self.config.version}")

    def get_recommendations(
        self,
        profile: Union[UserProfile, Dict[str, Any]],
        context: Optional[Union[RequestContext, Dict[str, Any]]] = None,
        assignment_id: Optional[str] = None,
        auto_assign: bool = False
    ) -> List[ScoredCandidate]:
        """
        Generate ranked recommendations for a user.

        Args:
            profile: User profile (validated before any scoring runs)
            context: Request options; defaults apply when omitted
            assignment_id: Experiment variant governing this request
            auto_assign: Assign the user to an eligible experiment when no
                assignment id is given

        Returns:
            Ranked candidates, possibly empty

        Raises:
            ValidationError: If the profile or context is malformed
            UpstreamUnavailableError: If the catalog cannot be read
        """
        profile = validate_input(UserProfile, profile, "profile")
        context = validate_input(RequestContext, context or {}, "context")

        resources = self._snapshot_resources()
        if self.profile_store.get(profile.anonymous_id) is None:
            self.profile_store.upsert(profile)

        strategy, assignment = self._resolve(profile, assignment_id, auto_assign)
        logger.info(
            f"Generating recommendations for anonymous_id={profile.anonymous_id}, "
            f"risk_level={profile.risk_level.value}, strategy={strategy.value}"
        )

        candidates = self._run_strategy(strategy, profile, resources, context, assignment)
        final = hybrid.finalize(candidates, profile, context)

        final = self._record(profile, final, assignment)
        logger.info(f"Generated {len(final)} recommendations for {profile.anonymous_id}")
        return final

    def _snapshot_resources(self) -> List[ResourceRecord]:
        try:
            return self.catalog.get_all_resources()
        except ResourceEngineException:
            raise
        except Exception as e:
            raise UpstreamUnavailableError(f"Resource catalog unavailable: {e}", {"source": "catalog"})

    def _resolve(
        self,
        profile: UserProfile,
        assignment_id: Optional[str],
        auto_assign: bool
    ):
        if assignment_id is None and auto_assign:
            assignment = self.router.assign(profile)
            if assignment is not None:
                return assignment.strategy, assignment
            return Strategy.HYBRID, None
        return self.router.resolve_strategy(profile, assignment_id)

    def _run_strategy(
        self,
        strategy: Strategy,
        profile: UserProfile,
        resources: List[ResourceRecord],
        context: RequestContext,
        assignment: Optional[ExperimentAssignment]
    ) -> List[ScoredCandidate]:
        population = self.profile_store.all_profiles()
        config = self.config
        if assignment is not None:
            config = config.with_variant_parameters(assignment.parameters)

        if strategy == Strategy.CONTENT_BASED:
            return content_based(profile, resources, context, config)
        if strategy == Strategy.DEMOGRAPHIC:
            return demographic(profile, resources, context, config)
        if strategy == Strategy.COLLABORATIVE:
            return collaborative(profile, resources, context, config, population)
        if strategy == Strategy.ML_PREDICTED:
            return feature_weighted(profile, resources, context, config)

        config = config.with_hybrid_weights(assignment.hybrid_weights if assignment else None)
        results = {
            Strategy.CONTENT_BASED: content_based(profile, resources, context, config),
            Strategy.COLLABORATIVE: collaborative(profile, resources, context, config, population),
            Strategy.DEMOGRAPHIC: demographic(profile, resources, context, config),
            Strategy.ML_PREDICTED: feature_weighted(profile, resources, context, config),
        }
        return hybrid.blend(results, config.hybrid_weights)

    def _record(
        self,
        profile: UserProfile,
        candidates: List[ScoredCandidate],
        assignment: Optional[ExperimentAssignment]
    ) -> List[ScoredCandidate]:
        """Write metrics records; a ledger failure never fails the response"""
        try:
            return self.ledger.record_recommendations(profile, candidates, assignment)
        except Exception as e:
            logger.error(
                f"Failed to record recommendations for {profile.anonymous_id}: {e}",
                exc_info=True
            )
            return candidates

    def track_interaction(
        self,
        recommendation_id: str,
        payload: Union[InteractionPayload, Dict[str, Any]]
    ) -> Optional[InteractionEvent]:
        """
        Record a user action on a served recommendation.

        Unknown recommendation ids are a no-op. A malformed payload raises
        ValidationError.
        """
        if isinstance(payload, dict):
            try:
                payload = _payload_adapter.validate_python(payload)
            except PydanticValidationError as e:
                raise ValidationError(
                    "Invalid interaction payload",
                    {"recommendation_id": recommendation_id, "errors": e.errors(include_url=False, include_context=False)}
                )
        return self.ledger.track(recommendation_id, payload)

    def get_analytics(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Aggregate report over recommendations served in a time range.

        Returns:
            Dictionary with overview, strategy_performance and experiment_results
        """
        start, end = to_naive_utc(start), to_naive_utc(end)
        if start is not None and end is not None and start > end:
            raise ValidationError("start must not be after end", {"start": str(start), "end": str(end)})
        return build_report(self.ledger.records(start, end), self.router.list_experiments())


def validate_input(model, value, name: str):
    """Coerce a dict into a model, mapping failures to ValidationError"""
    if isinstance(value, model):
        return value
    if not isinstance(value, dict):
        raise ValidationError(f"{name} must be an object", {"field": name})
    try:
        return model.model_validate(value)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {name}", {"errors": e.errors(include_url=False, include_context=False)})
