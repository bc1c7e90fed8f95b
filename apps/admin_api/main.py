"""admin-api entrypoint and HTTP route wiring."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

import uvicorn
from fastapi import FastAPI

from coaching_accounts.application.services.account_blocking_service import (
    AccountBlockingService,
)
from coaching_accounts.application.services.account_existence_service import (
    AccountExistenceService,
)
from coaching_accounts.application.services.account_provisioning_service import (
    AccountProvisioningService,
)
from coaching_accounts.application.services.password_reset_service import PasswordResetService
from coaching_accounts.config.settings import Settings, load_settings
from coaching_accounts.infrastructure.auth0.management_client import Auth0ManagementClient
from coaching_accounts.infrastructure.auth0.token_cache import (
    ClientCredentialsTokenFetcher,
    ManagementTokenCache,
)
from coaching_accounts.infrastructure.eightbase.graphql_client import EightBaseGraphQLClient
from coaching_accounts.infrastructure.eightbase.record_store import EightBaseRecordStore
from coaching_accounts.infrastructure.http.account_router import (
    build_admin_account_router,
    build_password_reset_router,
)
from coaching_accounts.infrastructure.http.auth_guard import AdminTokenGuard
from coaching_accounts.infrastructure.logging import configure_logging
from coaching_accounts.infrastructure.sendgrid.mail_client import SendGridMailClient

ADMIN_API_HOST = "0.0.0.0"
ADMIN_API_PORT = 8000
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountServices:
    """Application services served by the admin API."""

    provisioning: AccountProvisioningService
    blocking: AccountBlockingService
    existence: AccountExistenceService
    password_reset: PasswordResetService


def build_account_services(settings: Settings) -> AccountServices:
    """Build account services backed by Auth0, 8base and SendGrid adapters."""

    timeout_seconds = settings.http_timeout_seconds
    token_cache = ManagementTokenCache(
        fetcher=ClientCredentialsTokenFetcher(
            domain=settings.auth0_domain,
            client_id=settings.auth0_m2m_client_id,
            client_secret=settings.auth0_m2m_client_secret,
            timeout_seconds=timeout_seconds,
        ),
        refresh_buffer=timedelta(seconds=settings.auth0_token_refresh_buffer_seconds),
    )
    identity = Auth0ManagementClient(
        domain=settings.auth0_domain,
        client_id=settings.auth0_client_id,
        tokens=token_cache,
        connection=settings.auth0_connection,
        timeout_seconds=timeout_seconds,
    )
    record_store = EightBaseRecordStore(
        EightBaseGraphQLClient(
            api_url=str(settings.eightbase_api_url),
            api_token=settings.eightbase_api_token,
            timeout_seconds=timeout_seconds,
        )
    )
    mail_client = SendGridMailClient(
        api_key=settings.sendgrid_api_key,
        from_email=settings.sendgrid_from_email,
        from_name=settings.sendgrid_from_name,
        timeout_seconds=timeout_seconds,
    )

    base_url = str(settings.app_base_url).rstrip("/")
    existence = AccountExistenceService(records=record_store, identity=identity)
    return AccountServices(
        provisioning=AccountProvisioningService(
            records=record_store,
            identity=identity,
            email=mail_client,
            invitations=record_store,
            existence=existence,
            invitation_template_ids=settings.invitation_template_ids(),
            login_url=f"{base_url}/login",
        ),
        blocking=AccountBlockingService(records=record_store, identity=identity),
        existence=existence,
        password_reset=PasswordResetService(identity=identity, app_base_url=base_url),
    )


def create_app(
    *,
    services: AccountServices | None = None,
    admin_api_token: str | None = None,
) -> FastAPI:
    """Create FastAPI app for admin account management and password reset routes."""

    if services is None or admin_api_token is None:
        settings = load_settings()
        configure_logging(level=settings.log_level)
        if services is None:
            services = build_account_services(settings)
        if admin_api_token is None:
            admin_api_token = settings.admin_api_token

    app = FastAPI()
    app.include_router(
        build_admin_account_router(
            provisioning_service=services.provisioning,
            blocking_service=services.blocking,
            existence_service=services.existence,
            auth_guard=AdminTokenGuard(admin_token=admin_api_token),
        )
    )
    app.include_router(build_password_reset_router(password_reset_service=services.password_reset))

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    logger.info("admin_api_app_created")
    return app


def run_asgi_server(*, host: str = ADMIN_API_HOST, port: int = ADMIN_API_PORT) -> None:
    """Run admin-api as a long-lived ASGI process using application factory mode."""

    uvicorn.run(
        "apps.admin_api.main:create_app",
        host=host,
        port=port,
        factory=True,
    )


def main() -> None:
    """Run admin-api runtime process."""

    run_asgi_server()


if __name__ == "__main__":
    main()
