"""FastAPI routers for account provisioning, blocking and password reset."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request, Response

from coaching_accounts.application.dto.account_models import (
    BlockAccountRequest,
    BlockingResultResponse,
    BlockingStatusResponse,
    CancelInvitationResponse,
    ExistenceCheckResponse,
    InvitationStatusResponse,
    PasswordResetRequest,
    PasswordResetResponse,
    PasswordResetUrlResponse,
    ProvisionAccountRequest,
    ProvisionAccountResponse,
    ResendInvitationRequest,
    UnblockAccountRequest,
    UserListResponse,
)
from coaching_accounts.application.ports.record_store_port import RecordStoreError
from coaching_accounts.application.services.account_blocking_service import (
    AccountBlockingService,
    BlockingResult,
)
from coaching_accounts.application.services.account_existence_service import (
    AccountExistenceService,
)
from coaching_accounts.application.services.account_provisioning_service import (
    AccountProvisioningService,
    ProvisioningResult,
)
from coaching_accounts.application.services.password_reset_service import (
    DEFAULT_REDIRECT_PATH,
    PasswordResetService,
)
from coaching_accounts.domain.failures import AccountNotFoundError, DuplicateAccountError
from coaching_accounts.infrastructure.http.auth_guard import (
    AdminTokenGuard,
    InvalidAuthTokenError,
    MissingAuthTokenError,
)


def build_admin_account_router(
    *,
    provisioning_service: AccountProvisioningService,
    blocking_service: AccountBlockingService,
    existence_service: AccountExistenceService,
    auth_guard: AdminTokenGuard,
) -> APIRouter:
    """Build router exposing admin-only account lifecycle endpoints."""

    router = APIRouter(prefix="/admin/accounts", tags=["accounts"])

    def require_admin(request: Request) -> None:
        try:
            auth_guard.require_admin(authorization_header=request.headers.get("authorization"))
        except MissingAuthTokenError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        except InvalidAuthTokenError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc

    @router.post("", response_model=ProvisionAccountResponse, status_code=201)
    async def provision_account(
        request: Request,
        response: Response,
        payload: ProvisionAccountRequest,
    ) -> ProvisionAccountResponse:
        require_admin(request)
        try:
            result = await provisioning_service.provision_account(payload.to_domain())
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if not result.success:
            response.status_code = _provisioning_failure_status(result)
        return ProvisionAccountResponse.from_result(result)

    @router.get("", response_model=UserListResponse)
    async def list_accounts(
        request: Request,
        first: int = Query(default=100, ge=1, le=500),
        skip: int = Query(default=0, ge=0),
    ) -> UserListResponse:
        require_admin(request)
        try:
            users = await existence_service.list_accounts(first=first, skip=skip)
        except RecordStoreError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return UserListResponse.from_records(users)

    @router.get("/exists", response_model=ExistenceCheckResponse)
    async def check_user_exists(
        request: Request,
        email: str = Query(min_length=3),
    ) -> ExistenceCheckResponse:
        require_admin(request)
        try:
            check = await existence_service.check_user_exists(email=email)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except RecordStoreError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return ExistenceCheckResponse.from_check(check)

    @router.post(
        "/{user_id}/invitation/resend",
        response_model=ProvisionAccountResponse,
    )
    async def resend_invitation(
        request: Request,
        response: Response,
        user_id: str,
        payload: ResendInvitationRequest,
    ) -> ProvisionAccountResponse:
        require_admin(request)
        try:
            result = await provisioning_service.resend_invitation(
                user_id=user_id,
                invited_by=payload.invited_by,
                custom_message=payload.custom_message,
                access_start=payload.access_start,
                access_end=payload.access_end,
                has_paid=payload.has_paid,
            )
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if not result.success:
            response.status_code = _provisioning_failure_status(result)
        return ProvisionAccountResponse.from_result(result)

    @router.get("/{user_id}/invitation", response_model=InvitationStatusResponse)
    async def get_invitation_status(request: Request, user_id: str) -> InvitationStatusResponse:
        require_admin(request)
        record = await provisioning_service.get_invitation_status(user_id=user_id)
        if record is None:
            raise HTTPException(status_code=404, detail="invitation not found")
        return InvitationStatusResponse.from_record(record)

    @router.delete("/{user_id}/invitation", response_model=CancelInvitationResponse)
    async def cancel_invitation(request: Request, user_id: str) -> CancelInvitationResponse:
        require_admin(request)
        cancelled = await provisioning_service.cancel_invitation(user_id=user_id)
        return CancelInvitationResponse(cancelled=cancelled)

    @router.post("/block", response_model=BlockingResultResponse)
    async def block_account(
        request: Request,
        response: Response,
        payload: BlockAccountRequest,
    ) -> BlockingResultResponse:
        require_admin(request)
        try:
            result = await blocking_service.block_user_account(
                email=payload.email,
                reason=payload.reason,
                blocked_by=payload.blocked_by,
            )
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if not result.success:
            response.status_code = _blocking_failure_status(result)
        return BlockingResultResponse.from_result(result)

    @router.post("/unblock", response_model=BlockingResultResponse)
    async def unblock_account(
        request: Request,
        response: Response,
        payload: UnblockAccountRequest,
    ) -> BlockingResultResponse:
        require_admin(request)
        try:
            result = await blocking_service.unblock_user_account(
                email=payload.email,
                unblocked_by=payload.unblocked_by,
            )
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if not result.success:
            response.status_code = _blocking_failure_status(result)
        return BlockingResultResponse.from_result(result)

    @router.get("/blocking-status", response_model=BlockingStatusResponse)
    async def get_blocking_status(
        request: Request,
        email: str = Query(min_length=3),
    ) -> BlockingStatusResponse:
        require_admin(request)
        try:
            status = await blocking_service.get_user_blocking_status(email=email)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return BlockingStatusResponse.from_status(status)

    return router


def build_password_reset_router(*, password_reset_service: PasswordResetService) -> APIRouter:
    """Build public router for self-service password reset."""

    router = APIRouter(prefix="/auth", tags=["auth"])

    @router.post("/password-reset", response_model=PasswordResetResponse)
    async def request_password_reset(
        response: Response,
        payload: PasswordResetRequest,
    ) -> PasswordResetResponse:
        try:
            result = await password_reset_service.request_password_reset_with_fallback(
                email=payload.email
            )
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if not result.success:
            response.status_code = 502
        return PasswordResetResponse(
            success=result.success,
            message=result.message,
            error=result.error,
        )

    @router.get("/password-reset/url", response_model=PasswordResetUrlResponse)
    async def get_password_reset_url(
        redirect_path: str = Query(default=DEFAULT_REDIRECT_PATH),
    ) -> PasswordResetUrlResponse:
        try:
            url = password_reset_service.password_reset_url(redirect_path=redirect_path)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return PasswordResetUrlResponse(url=url)

    return router


def _provisioning_failure_status(result: ProvisioningResult) -> int:
    kinds = {failure.kind for failure in result.failures}
    if DuplicateAccountError.__name__ in kinds:
        return 409
    if AccountNotFoundError.__name__ in kinds:
        return 404
    return 502


def _blocking_failure_status(result: BlockingResult) -> int:
    kinds = {failure.kind for failure in result.failures}
    if AccountNotFoundError.__name__ in kinds:
        return 404
    return 502
