"""Main application entry point"""

from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import uvicorn

from resource_engine.config import Settings, settings
from resource_engine.directory.search import SortKey, SortOrder
from resource_engine.exceptions import ConfigurationError
from resource_engine.logging_config import get_logger, setup_logging

LOG_FORMATS = ("json", "text")


def check_configuration(config: Settings = settings) -> None:
    """
    Reject settings that would only fail once requests arrive.

    Raises:
        ConfigurationError: If the directory timezone, default sort or log
            format is not recognised, or the recommendation limits conflict
    """
    directory = config.directory
    try:
        ZoneInfo(directory.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigurationError(f"Unknown timezone {directory.timezone!r}", {"setting": "DIRECTORY_TIMEZONE"})

    if directory.default_sort_by not in {k.value for k in SortKey}:
        raise ConfigurationError(
            f"Unknown default sort key {directory.default_sort_by!r}",
            {"setting": "DIRECTORY_DEFAULT_SORT_BY", "allowed": [k.value for k in SortKey]}
        )
    if directory.default_sort_order not in {o.value for o in SortOrder}:
        raise ConfigurationError(
            f"Unknown default sort order {directory.default_sort_order!r}",
            {"setting": "DIRECTORY_DEFAULT_SORT_ORDER", "allowed": [o.value for o in SortOrder]}
        )

    if config.logging.format not in LOG_FORMATS:
        raise ConfigurationError(f"Unknown log format {config.logging.format!r}", {"setting": "LOG_FORMAT"})

    api = config.api
    if api.default_max_recommendations > api.max_recommendations_limit:
        raise ConfigurationError(
            "Default recommendation count exceeds the limit",
            {
                "default_max_recommendations": api.default_max_recommendations,
                "max_recommendations_limit": api.max_recommendations_limit,
            }
        )


def initialize_app() -> None:
    """Configure logging, validate settings and log the effective configuration"""
    setup_logging()
    logger = get_logger(__name__)

    logger.info("application_starting", environment=settings.environment, debug=settings.debug)

    check_configuration()

    logger.info(
        "configuration_loaded",
        api_host=settings.api.host,
        api_port=settings.api.port,
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        scoring_config_version=settings.scoring.config_version,
        directory_timezone=settings.directory.timezone,
        ledger_persist_path=settings.ledger.persist_path,
    )


def run_api_server(host: Optional[str] = None, port: Optional[int] = None, reload: Optional[bool] = None):
    """Run the FastAPI server, with CLI overrides taking precedence over settings"""
    initialize_app()

    host = host or settings.api.host
    port = port or settings.api.port

    get_logger(__name__).info("starting_api_server", host=host, port=port)

    uvicorn.run(
        "resource_engine.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=settings.debug if reload is None else reload,
        log_level=settings.logging.level.lower()
    )


if __name__ == "__main__":
    run_api_server()
