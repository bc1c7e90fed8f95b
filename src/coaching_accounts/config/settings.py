"""Runtime settings loaded from environment variables."""

from functools import lru_cache
from typing import Annotated

from pydantic import AliasChoices, Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

from coaching_accounts.domain.roles import Role

NonEmptyStr = Annotated[str, Field(min_length=1)]
NonNegativeFloat = Annotated[float, Field(ge=0.0)]
PositiveFloat = Annotated[float, Field(gt=0.0)]

PLACEHOLDER_TEMPLATE_ID = "d-xxxxxxxxxxxxxxxxxxxxxxxx"
DEFAULT_AUTH0_CONNECTION = "Username-Password-Authentication"


class Settings(BaseSettings):
    """Environment-driven application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    auth0_domain: NonEmptyStr = Field(validation_alias="AUTH0_DOMAIN")
    auth0_client_id: NonEmptyStr = Field(validation_alias="AUTH0_CLIENT_ID")
    auth0_m2m_client_id: NonEmptyStr = Field(
        validation_alias=AliasChoices("AUTH0_M2M_CLIENT_ID", "AUTH0_CLIENT_ID"),
    )
    auth0_m2m_client_secret: str | None = Field(
        default=None,
        validation_alias=AliasChoices("AUTH0_M2M_CLIENT_SECRET", "AUTH0_CLIENT_SECRET"),
    )
    auth0_connection: NonEmptyStr = Field(
        default=DEFAULT_AUTH0_CONNECTION,
        validation_alias="AUTH0_CONNECTION",
    )
    auth0_token_refresh_buffer_seconds: NonNegativeFloat = Field(
        default=300.0,
        validation_alias="AUTH0_TOKEN_REFRESH_BUFFER_SECONDS",
    )
    eightbase_api_url: HttpUrl = Field(validation_alias="EIGHTBASE_API_URL")
    eightbase_api_token: NonEmptyStr = Field(validation_alias="EIGHTBASE_API_TOKEN")
    sendgrid_api_key: NonEmptyStr = Field(validation_alias="SENDGRID_API_KEY")
    sendgrid_from_email: NonEmptyStr = Field(
        default="hello@repplaunch.com",
        validation_alias="SENDGRID_FROM_EMAIL",
    )
    sendgrid_from_name: NonEmptyStr = Field(
        default="Real Estate Photographer Pro",
        validation_alias="SENDGRID_FROM_NAME",
    )
    sendgrid_student_template_id: NonEmptyStr = Field(
        default=PLACEHOLDER_TEMPLATE_ID,
        validation_alias="SENDGRID_STUDENT_TEMPLATE_ID",
    )
    sendgrid_coach_template_id: NonEmptyStr = Field(
        default=PLACEHOLDER_TEMPLATE_ID,
        validation_alias="SENDGRID_COACH_TEMPLATE_ID",
    )
    sendgrid_manager_template_id: NonEmptyStr = Field(
        default=PLACEHOLDER_TEMPLATE_ID,
        validation_alias="SENDGRID_MANAGER_TEMPLATE_ID",
    )
    sendgrid_admin_template_id: NonEmptyStr = Field(
        default=PLACEHOLDER_TEMPLATE_ID,
        validation_alias="SENDGRID_ADMIN_TEMPLATE_ID",
    )
    app_base_url: HttpUrl = Field(validation_alias="APP_BASE_URL")
    admin_api_token: NonEmptyStr = Field(validation_alias="ADMIN_API_TOKEN")
    http_timeout_seconds: PositiveFloat = Field(
        default=20.0,
        validation_alias="HTTP_TIMEOUT_SECONDS",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    def invitation_template_ids(self) -> dict[Role, str]:
        """Return the email template id configured for each role."""

        return {
            Role.USER: self.sendgrid_student_template_id,
            Role.COACH: self.sendgrid_coach_template_id,
            Role.COACH_MANAGER: self.sendgrid_manager_template_id,
            Role.SUPER_ADMIN: self.sendgrid_admin_template_id,
        }


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()  # type: ignore[call-arg]
