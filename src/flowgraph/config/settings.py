"""Configuration and settings management using pydantic-settings."""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_prefix="FLOWGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core settings
    env: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(default=True, description="Emit JSON log lines")

    # Dispatch
    default_node_timeout_s: float | None = Field(
        default=60,
        description="Per-node timeout when the node type declares none (0/None disables)",
    )
    max_workers: int = Field(
        default=1,
        description="Worker threads for dispatch; 1 keeps strict sequential order",
    )
    continuation_policy: str = Field(
        default="best_effort",
        description="What happens after a node error: best_effort or skip_dependents",
    )
    halt_on_missing_implementation: bool = Field(
        default=True,
        description="Abort the run when a node type has no implementation",
    )

    # Built-in nodes
    http_timeout_s: float = Field(
        default=30,
        description="Timeout for outbound HTTP calls made by nodes",
    )

    @field_validator("default_node_timeout_s", "http_timeout_s")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        """Validate that timeouts are not negative."""
        if v is not None and v < 0:
            raise ValueError("timeouts must not be negative")
        return v

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        """Validate that at least one worker is configured."""
        if v < 1:
            raise ValueError("max_workers must be at least 1")
        return v

    @field_validator("continuation_policy")
    @classmethod
    def validate_continuation_policy(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("best_effort", "skip_dependents"):
            raise ValueError("continuation_policy must be 'best_effort' or 'skip_dependents'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return v.upper()


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
