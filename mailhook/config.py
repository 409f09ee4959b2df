"""
Configuration Management

Pydantic-settings based configuration for the inbound email relay.
All settings can be overridden via environment variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CredentialEnvVars(BaseModel):
    """Names of the two environment variables holding a host's Basic credentials."""

    username_var: str
    password_var: str


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are prefixed with MAILHOOK_ and are case-insensitive.
    Example: MAILHOOK_ATTACHMENT_BUCKET=my-bucket

    A few settings also accept the unprefixed names the deployment has always
    used (AWS_REGION, S3_ATTACHMENT_BUCKET, CUSTOM_AUTH_HEADER, STAGE).
    """

    model_config = SettingsConfigDict(
        env_prefix="MAILHOOK_",
        env_file=[".env.local", ".env"],  # Try .env.local first
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Routing Configuration
    routes: dict[str, str] = Field(
        default_factory=dict,
        description="Recipient address to webhook URL (JSON object)",
    )
    domain_credentials: dict[str, CredentialEnvVars] = Field(
        default_factory=dict,
        description="Webhook host to the env var names holding its Basic credentials",
    )

    # Webhook Configuration
    custom_header_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("MAILHOOK_CUSTOM_HEADER_NAME", "CUSTOM_AUTH_HEADER"),
        description="Optional fixed header added to every webhook request",
    )
    custom_header_value: str = Field(
        default="",
        validation_alias=AliasChoices(
            "MAILHOOK_CUSTOM_HEADER_VALUE", "CUSTOM_AUTH_HEADER_VALUE"
        ),
        description="Value of the fixed header",
    )

    # S3 Configuration
    attachment_bucket: str = Field(
        default="inbound-email-attachments",
        validation_alias=AliasChoices("MAILHOOK_ATTACHMENT_BUCKET", "S3_ATTACHMENT_BUCKET"),
        description="S3 bucket for externalized attachments",
    )
    attachment_prefix: str = Field(
        default="",
        description="Key prefix for externalized attachments",
    )
    attachment_url_ttl_seconds: int = Field(
        default=7 * 24 * 3600,
        gt=0,
        le=7 * 24 * 3600,  # SigV4 presigned URLs cannot outlive 7 days
        description="Lifetime of attachment download URLs",
    )
    attachment_upload_workers: int = Field(
        default=8,
        ge=1,
        description="Thread pool size for concurrent attachment uploads",
    )
    s3_endpoint_url: str | None = Field(
        default=None,
        description="S3 endpoint URL (for local development)",
    )

    # AWS Configuration
    aws_region: str = Field(
        default="us-east-1",
        validation_alias=AliasChoices("MAILHOOK_AWS_REGION", "AWS_REGION"),
        description="AWS region",
    )

    # Application Configuration
    stage: str = Field(
        default="prod",
        validation_alias=AliasChoices("MAILHOOK_STAGE", "STAGE"),
        description="Deployment stage; 'dev' enables debug logging",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    @property
    def is_dev(self) -> bool:
        return self.stage == "dev"

    @property
    def effective_log_level(self) -> str:
        """Debug output in dev, configured level everywhere else."""
        return "DEBUG" if self.is_dev else self.log_level

    @property
    def s3_config(self) -> dict:
        """S3 client configuration."""
        config = {"region_name": self.aws_region}
        if self.s3_endpoint_url and self.s3_endpoint_url != "mock":
            config["endpoint_url"] = self.s3_endpoint_url
        return config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are loaded only once.
    Call get_settings.cache_clear() in tests after changing the environment.
    """
    return Settings()
