"""
Service wiring for the resource engine.

Builds the catalog, profile store, interaction ledger, experiment router,
recommendation engine and directory search as one explicitly owned set of
services. Callers create an instance and pass it where it is needed; there is
no process-wide instance.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from resource_engine.config import Settings, settings as default_settings
from resource_engine.directory.search import DirectorySearch
from resource_engine.interactions.ledger import InteractionLedger
from resource_engine.recommendations.experiments import (
    Experiment,
    ExperimentRouter,
    default_experiments,
)
from resource_engine.recommendations.populate_resources import default_resources
from resource_engine.recommendations.profiles import ProfileStore, UserProfile
from resource_engine.recommendations.recommendation_engine import RecommendationEngine
from resource_engine.recommendations.resource_catalog import ResourceCatalog, ResourceRecord
from resource_engine.recommendations.scoring_config import ScoringConfig

logger = logging.getLogger(__name__)


class ResourceEngineServices:
    """
    Owns the shared state and the components that operate on it.

    This class provides a single entry point for initializing and accessing
    all engine components with proper dependency injection.
    """

    def __init__(
        self,
        resources: Optional[Iterable[ResourceRecord]] = None,
        profiles: Optional[Iterable[UserProfile]] = None,
        experiments: Optional[Iterable[Experiment]] = None,
        scoring_config: Optional[ScoringConfig] = None,
        config: Optional[Settings] = None
    ):
        """
        Initialize engine services.

        Args:
            resources: Initial catalog (default seed resources if None)
            profiles: Initial user profiles
            experiments: Experiments to register (default seed experiments if None)
            scoring_config: Scoring weights and thresholds
            config: Settings (module settings if None)
        """
        self.config = config or default_settings
        self.started_at = datetime.utcnow()

        self._init_stores(resources, profiles)
        self._init_experiments(experiments)
        self._init_recommendation_engine(scoring_config)
        self._init_directory_search()

        logger.info("ResourceEngineServices initialized successfully")

    def _init_stores(
        self,
        resources: Optional[Iterable[ResourceRecord]],
        profiles: Optional[Iterable[UserProfile]]
    ):
        """Initialize catalog, profile store and ledger"""
        self.catalog = ResourceCatalog(default_resources() if resources is None else resources)
        self.profile_store = ProfileStore(
            profiles,
            max_history=self.config.ledger.max_history_per_user
        )
        self.ledger = InteractionLedger(
            profile_store=self.profile_store,
            persist_path=self.config.ledger.persist_path
        )
        logger.info(f"Stores initialized with {len(self.catalog)} resources")

    def _init_experiments(self, experiments: Optional[Iterable[Experiment]]):
        """Initialize experiment router"""
        self.router = ExperimentRouter(default_experiments() if experiments is None else experiments)
        logger.info(f"Experiment router initialized with {len(self.router.list_experiments())} experiments")

    def _init_recommendation_engine(self, scoring_config: Optional[ScoringConfig]):
        """Initialize recommendation engine"""
        self.recommendation_engine = RecommendationEngine(
            catalog=self.catalog,
            profile_store=self.profile_store,
            ledger=self.ledger,
            router=self.router,
            config=scoring_config
        )
        logger.info("Recommendation engine initialized")

    def _init_directory_search(self):
        """Initialize directory search"""
        directory = self.config.directory
        self.directory_search = DirectorySearch(
            self.catalog,
            earth_radius_km=directory.earth_radius_km,
            default_sort_by=directory.default_sort_by,
            default_sort_order=directory.default_sort_order,
            timezone=directory.timezone
        )
        logger.info("Directory search initialized")

    def health_check(self) -> Dict[str, Any]:
        """
        Perform health check on all components.

        Returns:
            Dictionary with health status of each component
        """
        health = {
            "timestamp": datetime.utcnow().isoformat(),
            "overall_status": "healthy",
            "components": {}
        }

        active = len(self.catalog.get_all_resources())
        health["components"]["catalog"] = {
            "status": "healthy" if active > 0 else "empty",
            "active_resources": active
        }
        if active == 0:
            health["overall_status"] = "degraded"

        health["components"]["profile_store"] = {"status": "healthy", "profiles": len(self.profile_store)}
        health["components"]["ledger"] = {"status": "healthy", "records": len(self.ledger)}
        health["components"]["experiment_router"] = {
            "status": "healthy",
            "active_experiments": len(self.router.active_experiments())
        }
        health["components"]["recommendation_engine"] = "healthy"
        health["components"]["directory_search"] = "healthy"

        return health

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get system statistics.

        Returns:
            Dictionary with system statistics
        """
        return {
            "timestamp": datetime.utcnow().isoformat(),
            "uptime_seconds": (datetime.utcnow() - self.started_at).total_seconds(),
            "catalog": self.catalog.get_statistics(),
            "profiles": len(self.profile_store),
            "recommendations_served": len(self.ledger),
            "interactions_tracked": len(self.ledger.events()),
            "experiments": {
                "total": len(self.router.list_experiments()),
                "active": [e.id for e in self.router.active_experiments()],
            },
            "scoring_config_version": self.recommendation_engine.config.version,
        }
