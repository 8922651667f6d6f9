"""
Core configuration using Pydantic Settings.
Loads from environment variables.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    app_name: str = Field(default="dental-staffing-api", alias="APP_NAME")
    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="development", alias="APP_ENV"
    )
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )

    # API
    api_prefix: str = Field(default="", alias="API_PREFIX")
    allowed_origins: str = Field(default="*", alias="ALLOWED_ORIGINS")
    allowed_methods: str = Field(
        default="OPTIONS,GET,POST,PUT,PATCH,DELETE", alias="ALLOWED_METHODS"
    )
    allowed_headers: str = Field(
        default=(
            "Content-Type,Authorization,X-Amz-Date,X-Api-Key,"
            "X-Amz-Security-Token,X-Requested-With"
        ),
        alias="ALLOWED_HEADERS",
    )

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")
    database_pool_size: int = Field(default=10, alias="DATABASE_POOL_SIZE")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Table names
    job_postings_table: str = Field(default="job_postings", alias="JOB_POSTINGS_TABLE")
    job_applications_table: str = Field(
        default="job_applications", alias="JOB_APPLICATIONS_TABLE"
    )
    job_negotiations_table: str = Field(
        default="job_negotiations", alias="JOB_NEGOTIATIONS_TABLE"
    )
    job_invitations_table: str = Field(
        default="job_invitations", alias="JOB_INVITATIONS_TABLE"
    )
    clinics_table: str = Field(default="clinics", alias="CLINICS_TABLE")
    professional_profiles_table: str = Field(
        default="professional_profiles", alias="PROFESSIONAL_PROFILES_TABLE"
    )

    # Identity provider
    aws_region: str = Field(default="us-east-1", alias="AWS_REGION")
    cognito_user_pool_id: Optional[str] = Field(default=None, alias="COGNITO_USER_POOL_ID")
    cognito_client_id: Optional[str] = Field(default=None, alias="COGNITO_CLIENT_ID")

    # Auth
    jwt_secret_key: Optional[str] = Field(default=None, alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_verify_signature: bool = Field(default=True, alias="JWT_VERIFY_SIGNATURE")

    # Logging
    log_request_body: bool = Field(default=False, alias="LOG_REQUEST_BODY")
    log_response_body: bool = Field(default=False, alias="LOG_RESPONSE_BODY")
    log_max_body_size: int = Field(default=1024, alias="LOG_MAX_BODY_SIZE")
    json_logs: bool = Field(default=True, alias="JSON_LOGS")

    # Notifications
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    celery_task_always_eager: bool = Field(default=False, alias="CELERY_TASK_ALWAYS_EAGER")
    notification_webhook_url: Optional[str] = Field(
        default=None, alias="NOTIFICATION_WEBHOOK_URL"
    )
    notification_timeout_seconds: float = Field(
        default=10.0, alias="NOTIFICATION_TIMEOUT_SECONDS"
    )

    # Invitations
    max_invitations_per_request: int = Field(default=50, alias="MAX_INVITATIONS_PER_REQUEST")

    @field_validator("api_prefix")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Routers are mounted as `{prefix}/jobs`, so a trailing slash is dropped."""
        return v.rstrip("/")

    @staticmethod
    def _split(value: str) -> list[str]:
        return [item.strip() for item in value.split(",") if item.strip()]

    @property
    def cors_origins(self) -> list[str]:
        return self._split(self.allowed_origins)

    @property
    def cors_methods(self) -> list[str]:
        return self._split(self.allowed_methods)

    @property
    def cors_headers(self) -> list[str]:
        return self._split(self.allowed_headers)

    @property
    def cognito_issuer(self) -> Optional[str]:
        """Expected `iss` claim when a user pool is configured."""
        if not self.cognito_user_pool_id:
            return None
        return (
            f"https://cognito-idp.{self.aws_region}.amazonaws.com/"
            f"{self.cognito_user_pool_id}"
        )


# Global settings instance
settings = Settings()
