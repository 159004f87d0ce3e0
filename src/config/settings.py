"""Application settings using Pydantic Settings.

Centralized configuration for the report pipeline.

Production requires the following environment variables:
- ANALYSIS_API_KEY (or OPENROUTER_API_KEY): key for the generative-text backend
- AUTH_VERIFY_URL: identity provider endpoint that resolves a bearer token to a user
- AUTH_API_KEY: anon/public key sent alongside the bearer token
"""

import logging
import sys
from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class AnalysisSettings(BaseSettings):
    """Generative-text backend (OpenRouter) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ANALYSIS_",
        extra="ignore",
        populate_by_name=True,
    )

    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ANALYSIS_API_KEY", "OPENROUTER_API_KEY"),
        description="OpenRouter API key",
    )
    base_url: str = Field(default="https://openrouter.ai/api/v1", description="OpenAI-compatible endpoint")

    # Model routing
    fast_model: str = Field(default="anthropic/claude-haiku-4-5", description="Model for FAST stages")
    deep_model: str = Field(default="anthropic/claude-sonnet-4", description="Model for DEEP stages")
    premium_model: str = Field(default="anthropic/claude-opus-4", description="Model for PREMIUM stages")

    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=8000, ge=1)

    # Attribution headers sent to OpenRouter
    referer: str = Field(default="https://truewage.uk", description="HTTP-Referer header")
    title: str = Field(default="TrueWage UK FIRE Calculator", description="X-Title header")

    # Stage execution
    stage_timeout_seconds: float = Field(default=90.0, gt=0, description="Upper bound for one stage call")
    request_timeout_seconds: float = Field(default=120.0, gt=0, description="HTTP timeout for the SDK client")

    # Resilience
    max_attempts: int = Field(default=2, ge=1, description="Attempts per call for transient errors")
    retry_base_delay: float = Field(default=1.0, ge=0.0, description="Initial backoff in seconds")
    circuit_failure_threshold: int = Field(default=5, ge=1, description="Failures to open circuit")
    circuit_recovery_timeout: float = Field(default=30.0, gt=0, description="Seconds before half-open")


class ReportSettings(BaseSettings):
    """Report quota and request limits."""

    model_config = SettingsConfigDict(
        env_prefix="REPORTS_",
        extra="ignore",
    )

    premium_monthly_limit: int = Field(default=5, ge=1, description="Premium reports per calendar month")
    request_deadline_seconds: float = Field(default=300.0, gt=0, description="Overall pipeline deadline")
    upgrade_url: str = Field(default="/pricing", description="Where free users are sent to upgrade")


class AuthSettings(BaseSettings):
    """Identity provider configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        extra="ignore",
    )

    verify_url: Optional[str] = Field(
        default=None,
        description="Endpoint returning the user for a bearer token (e.g. https://<project>.supabase.co/auth/v1/user)",
    )
    api_key: Optional[str] = Field(default=None, description="Public/anon key sent as the apikey header")
    timeout_seconds: float = Field(default=10.0, gt=0)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application info
    name: str = Field(default="TrueWage Reports", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    environment: str = Field(default="development", description="Environment name")

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    json_logs: bool = Field(default=False, description="Emit JSON log lines")

    # CORS
    cors_origins: list = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    # Nested settings (loaded separately)
    @property
    def analysis(self) -> AnalysisSettings:
        return AnalysisSettings()

    @property
    def reports(self) -> ReportSettings:
        return ReportSettings()

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment in ("production", "prod", "staging")

    def validate_production_settings(self) -> List[str]:
        """
        Validate the settings a production deployment cannot run without.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.is_production:
            return errors

        if not self.analysis.api_key:
            errors.append("ANALYSIS_API_KEY: Required in production (OPENROUTER_API_KEY is also accepted)")

        auth = self.auth
        if not auth.verify_url:
            errors.append("AUTH_VERIFY_URL: Required in production to verify bearer tokens")
        if not auth.api_key:
            errors.append("AUTH_API_KEY: Required in production")

        if self.debug:
            errors.append("APP_DEBUG: Must be False in production")

        return errors


class StartupConfigurationError(Exception):
    """Raised when configuration validation fails at startup."""
    pass


def validate_startup_settings(settings: Settings, exit_on_failure: bool = True) -> bool:
    """
    Validate settings at application startup.

    Args:
        settings: Application settings instance
        exit_on_failure: If True, exit the process on failure (default)

    Returns:
        True if validation passes

    Raises:
        StartupConfigurationError: If validation fails and exit_on_failure is False
    """
    errors = settings.validate_production_settings()

    if not errors:
        if settings.is_production:
            logger.info("Production configuration validation PASSED")
        return True

    error_msg = "Invalid production configuration:\n" + "\n".join(
        f"  {i}. {err}" for i, err in enumerate(errors, 1)
    )
    logger.critical(error_msg)

    if exit_on_failure:
        print(error_msg, file=sys.stderr)
        sys.exit(1)
    raise StartupConfigurationError(error_msg)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings instance.

    Returns:
        Settings: Cached settings loaded from environment.
    """
    return Settings()
