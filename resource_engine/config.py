"""Configuration management using Pydantic settings"""

from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class APIConfig(BaseSettings):
    """API configuration"""

    host: str = Field(default="0.0.0.0", description="API host")
    port: int = Field(default=8000, description="API port")
    workers: int = Field(default=4, description="Number of workers")
    default_max_recommendations: int = Field(default=5, description="Recommendations returned when the caller gives no limit")
    max_recommendations_limit: int = Field(default=50, description="Upper bound accepted for max_recommendations")
    cors_origins: List[str] = Field(default=["*"], description="Origins allowed by CORS")

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


class LoggingConfig(BaseSettings):
    """Logging configuration"""

    level: str = Field(default="INFO", description="Logging level")
    format: str = Field(default="json", description="Log format (json or text)")
    output: str = Field(default="stdout", description="Log output (stdout or file path)")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


class ScoringSettings(BaseSettings):
    """Scoring strategy configuration"""

    config_version: str = Field(default="2025.1", description="Version tag stamped on the scoring configuration")
    exploration_seed: int = Field(default=7, description="Seed for the deterministic exploration term")
    apply_variant_weights: bool = Field(
        default=False,
        description="Let experiment variants override hybrid blend weights and strategy parameters"
    )

    model_config = SettingsConfigDict(
        env_prefix="SCORING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


class DirectoryConfig(BaseSettings):
    """Directory search configuration"""

    default_sort_by: str = Field(default="relevance", description="Sort key when the filter gives none")
    default_sort_order: str = Field(default="desc", description="Sort order when the filter gives none")
    earth_radius_km: float = Field(default=6371.0, description="Earth radius used by the haversine distance")
    timezone: str = Field(default="Asia/Singapore", description="Timezone for open-now checks")

    model_config = SettingsConfigDict(
        env_prefix="DIRECTORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


class LedgerConfig(BaseSettings):
    """Interaction ledger configuration"""

    persist_path: Optional[str] = Field(default=None, description="Optional JSON Lines file mirroring the ledger")
    max_history_per_user: int = Field(default=200, description="Interactions kept per user profile")

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


class Settings(BaseSettings):
    """Main application settings"""

    environment: str = Field(default="development", description="Environment (development, staging, production)")
    debug: bool = Field(default=False, description="Debug mode")

    # Sub-configurations
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    directory: DirectoryConfig = Field(default_factory=DirectoryConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


# Global settings instance
settings = Settings()
