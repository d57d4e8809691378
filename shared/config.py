"""
Shared configuration management for the data-access layer.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DataAccessConfig(BaseSettings):
    """Settings for the cache, the fetch orchestrator and error reporting."""

    model_config = SettingsConfigDict(
        env_prefix="DATA_ACCESS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # Cache store
    cache_max_size: int = Field(default=100, ge=1)
    cache_default_ttl: float = Field(default=300.0, gt=0)  # 5 minutes
    cache_eviction_policy: Literal["fifo", "lru"] = "fifo"

    # Retry policy
    retry_attempts: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: Optional[float] = Field(default=None, gt=0)
    retry_jitter: bool = False

    # Error reporting
    error_reporting_production: bool = False

    @property
    def is_production(self) -> bool:
        """True when reports should go to the production transport."""
        return self.error_reporting_production or self.env == "production"


@lru_cache()
def get_config() -> DataAccessConfig:
    """Get cached configuration instance."""
    return DataAccessConfig()
