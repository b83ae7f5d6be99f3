"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0"
)


class GrabConfig(BaseModel):
    """A validated configuration model for the application."""

    # Concurrency & Retry
    concurrency_limit: int = 8
    max_retries: int = 3
    retry_delay: float = 1.0
    request_timeout: float | None = None
    scheduler_mode: Literal["window", "pool"] = "window"

    # Output Settings
    output_dir: str = "."
    release_delay: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)
    source_urls: list[str] = Field(default_factory=list, repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("concurrency_limit")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Ensures a reasonable number of concurrent segment requests."""
        if v < 1 or v > 32:
            raise ValueError("Concurrency limit must be between 1 and 32.")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0 or v > 10:
            raise ValueError("Max retries must be between 0 and 10.")
        return v

    @field_validator("retry_delay")
    @classmethod
    def validate_retry_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Retry delay cannot be negative.")
        return v

    @field_validator("request_timeout", mode="before")
    @classmethod
    def validate_timeout(cls, v):
        """Treats empty or zero timeouts as 'use the transport default'."""
        if v in (None, "", 0, "0"):
            return None
        if float(v) < 0:
            raise ValueError("Request timeout cannot be negative.")
        return float(v)

    @field_validator("release_delay")
    @classmethod
    def validate_release_delay(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Release delay must be positive.")
        return v

    @model_validator(mode="after")
    def validate_output_dir(self) -> "GrabConfig":
        if not self.output_dir:
            raise ValueError("Output directory cannot be empty.")
        return self

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "source_urls"}
        return {key for key in cls.model_fields if key not in internal_fields}
