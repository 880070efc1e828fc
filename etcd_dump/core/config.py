"""Dump tool configuration."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Dump tool settings.

    Environment variables will be loaded and validated using Pydantic.
    """

    # Decoder (ouger) Settings
    DECODER_EXECUTABLE: str = "ouger_server"
    DECODER_ARGS: list[str] = Field(
        default_factory=list,
        description="Extra arguments placed before --port on the decoder command line",
    )
    DECODER_PORT: int = Field(default=9998, ge=1, le=65535)
    DECODER_STARTUP_TIMEOUT: float = Field(default=10.0, gt=0)
    DECODER_STOP_TIMEOUT: float = Field(default=5.0, gt=0)
    DECODER_REQUEST_TIMEOUT: float | None = None  # None keeps the httpx default

    # etcd Settings
    ETCD_DEFAULT_PORT: int = Field(default=2379, ge=1, le=65535)
    SNAPSHOT_PREFIX: str = "/"

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",  # Allow extra fields in environment
    )

    @field_validator("SNAPSHOT_PREFIX")
    @classmethod
    def validate_prefix(cls, value: str) -> str:
        """Store keys are always rooted at '/'."""
        if not value.startswith("/"):
            raise ValueError("SNAPSHOT_PREFIX must start with '/'")
        return value


# Create settings instance
settings = Settings()
