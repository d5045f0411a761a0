"""
Configuration for the flow engine.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PacingConfig(BaseSettings):
    """Artificial delays used by the simulated dispatcher."""

    model_config = SettingsConfigDict(
        env_prefix="CONVOFLOW_PACING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    message_delay: float = Field(default=0.8, ge=0, description="Pause after a bot message (s)")
    api_call_delay: float = Field(default=1.0, ge=0, description="Simulated API round trip (s)")
    assistant_delay: float = Field(default=1.8, ge=0, description="Simulated assistant thinking time (s)")
    transfer_delay: float = Field(default=0.5, ge=0, description="Pause after announcing a transfer (s)")

    @classmethod
    def instant(cls) -> "PacingConfig":
        """Pacing with every delay disabled."""
        return cls(
            message_delay=0,
            api_call_delay=0,
            assistant_delay=0,
            transfer_delay=0,
        )


class ExecutionConfig(BaseSettings):
    """Execution limits."""

    model_config = SettingsConfigDict(
        env_prefix="CONVOFLOW_EXECUTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_steps: int = Field(default=1000, ge=1, description="Max nodes processed without user input")


class Settings(BaseSettings):
    """Main engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="CONVOFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    service_name: str = Field(default="convoflow", description="Service name")
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="pretty", description="Log format (json, pretty)")

    # Sub-configurations
    pacing: PacingConfig = Field(default_factory=PacingConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings."""
    return Settings()
