"""Configuration management for BASALT.

Loads settings from environment variables (or .env) using pydantic-settings.
The FMP key is optional: without it only cached snapshots can be replayed.

Usage:
    from basalt.config import settings

    print(settings.log_level)
    evaluation = EvaluationSettings.from_settings(settings)
"""

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_RESOLUTIONS = {"hourly", "daily", "monthly"}


def _validate_resolution(v: str) -> str:
    v_lower = v.lower()
    if v_lower not in _RESOLUTIONS:
        raise ValueError(f"resolution must be one of {sorted(_RESOLUTIONS)}, got '{v}'")
    return v_lower


class Settings(BaseSettings):
    """BASALT configuration from environment variables.

    Attributes:
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR)
        cache_dir: Directory holding constituent snapshots
        fmp_api_key: Financial Modeling Prep API key (live holdings)
        fmp_rate_limit: FMP requests/second
        market: Default market for composites
        resolution: Default evaluation cadence
        min_constituents: Smallest non-empty snapshot accepted (0 = no gate)
        fail_on_selection_error: Abort a run on the first SelectionError
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="Logging level")
    cache_dir: str = Field(default="data", description="Constituent snapshot directory")

    fmp_api_key: str | None = Field(
        default=None,
        description="FMP API key (https://financialmodelingprep.com)",
    )
    fmp_rate_limit: int = Field(default=10, ge=1, description="FMP requests/second")

    market: str = Field(default="usa", description="Default composite market")
    resolution: str = Field(default="daily", description="Default evaluation cadence")
    min_constituents: int = Field(
        default=0,
        ge=0,
        description="Minimum records in a non-empty snapshot (0 disables the gate)",
    )
    fail_on_selection_error: bool = Field(
        default=False,
        description="Re-raise SelectionError instead of recording it and continuing",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid:
            raise ValueError(f"log_level must be one of {valid}, got {v}")
        return v_upper

    @field_validator("resolution")
    @classmethod
    def validate_resolution(cls, v: str) -> str:
        return _validate_resolution(v)

    @field_validator("market")
    @classmethod
    def validate_market(cls, v: str) -> str:
        return v.lower()


class EvaluationSettings(BaseModel):
    """Per-universe evaluation settings.

    Attributes:
        resolution: Cadence at which the caller polls for snapshots
        min_constituents: Non-empty snapshots smaller than this fail the cycle

    The market belongs to the composite itself (``CompositeIdentity.market``).
    """

    model_config = {"frozen": True, "extra": "forbid"}

    resolution: str = "daily"
    min_constituents: int = Field(default=0, ge=0)

    @field_validator("resolution")
    @classmethod
    def validate_resolution(cls, v: str) -> str:
        return _validate_resolution(v)

    @classmethod
    def from_settings(cls, source: Settings) -> "EvaluationSettings":
        return cls(
            resolution=source.resolution,
            min_constituents=source.min_constituents,
        )


# Global settings instance (loaded once at import)
settings = Settings()
