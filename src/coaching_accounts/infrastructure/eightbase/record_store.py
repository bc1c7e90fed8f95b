"""8base-backed record store and invitation log."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Protocol

from coaching_accounts.application.ports.invitation_repository_port import (
    InvitationCreateInput,
    InvitationRecord,
    InvitationStatus,
)
from coaching_accounts.application.ports.record_store_port import (
    RecordStoreError,
    RoleProfile,
    RoleProfileCreateInput,
    UserRecord,
    UserRecordCreateInput,
)
from coaching_accounts.domain.roles import ProfileKind, Role, role_from_record_store_name
from coaching_accounts.infrastructure.eightbase import operations

EMAIL_SCAN_PAGE_SIZE = 100


class GraphQLExecutorPort(Protocol):
    """GraphQL execution contract consumed by the record store."""

    async def execute(
        self,
        *,
        operation: str,
        query: str,
        variables: Mapping[str, object] | None = None,
    ) -> dict[str, Any]:
        """Run one document and return its `data` object."""


class EightBaseRecordStore:
    """Record-store and invitation-log adapter over 8base GraphQL."""

    def __init__(self, graphql: GraphQLExecutorPort) -> None:
        self._graphql = graphql

    async def create_user(self, payload: UserRecordCreateInput) -> UserRecord:
        data = await self._graphql.execute(
            operation="create_user",
            query=operations.CREATE_USER,
            variables={
                "data": {
                    "email": payload.email,
                    "firstName": payload.first_name,
                    "lastName": payload.last_name,
                    "roles": {"connect": [{"id": payload.role_id}]},
                }
            },
        )
        return _parse_user(data.get("userCreate"), operation="create_user")

    async def get_user_by_id(self, *, user_id: str) -> UserRecord | None:
        return await self._find_user(
            operation="get_user_by_id",
            user_filter={"id": {"equals": user_id}},
        )

    async def get_user_by_email(self, *, email: str) -> UserRecord | None:
        """Find a user by email, ignoring case.

        The exact-match filter covers records written by this service; older
        records may carry mixed-case emails and are found by scanning pages.
        """

        exact = await self._find_user(
            operation="get_user_by_email",
            user_filter={"email": {"equals": email}},
        )
        if exact is not None:
            return exact

        wanted = email.strip().lower()
        skip = 0
        while True:
            data = await self._graphql.execute(
                operation="scan_users_by_email",
                query=operations.LIST_USERS,
                variables={"first": EMAIL_SCAN_PAGE_SIZE, "skip": skip},
            )
            items = _list_items(data.get("usersList"), operation="scan_users_by_email")
            for item in items:
                user = _parse_user(item, operation="scan_users_by_email")
                if user.email.strip().lower() == wanted:
                    return user
            if len(items) < EMAIL_SCAN_PAGE_SIZE:
                return None
            skip += EMAIL_SCAN_PAGE_SIZE

    async def list_users(self, *, first: int = 100, skip: int = 0) -> list[UserRecord]:
        data = await self._graphql.execute(
            operation="list_users",
            query=operations.LIST_USERS,
            variables={"first": first, "skip": skip},
        )
        items = _list_items(data.get("usersList"), operation="list_users")
        return [_parse_user(item, operation="list_users") for item in items]

    async def set_user_active(self, *, user_id: str, is_active: bool) -> UserRecord:
        data = await self._graphql.execute(
            operation="set_user_active",
            query=operations.SET_USER_ACTIVE,
            variables={"id": user_id, "isActive": is_active},
        )
        return _parse_user(data.get("userUpdate"), operation="set_user_active")

    async def create_role_profile(self, payload: RoleProfileCreateInput) -> RoleProfile:
        base: dict[str, object] = {
            "firstName": payload.first_name,
            "lastName": payload.last_name,
            "email": payload.email,
        }
        if payload.kind is ProfileKind.STUDENT:
            data = await self._graphql.execute(
                operation="create_student_profile",
                query=operations.CREATE_STUDENT,
                variables={"data": {**base, "user": {"connect": {"id": payload.user_id}}}},
            )
            created = data.get("studentCreate")
        else:
            data = await self._graphql.execute(
                operation="create_coach_profile",
                query=operations.CREATE_COACH,
                variables={
                    "data": {
                        **base,
                        "bio": "",
                        "users": {"connect": {"id": payload.user_id}},
                    }
                },
            )
            created = data.get("coachCreate")

        profile_id = _require_id(created, operation=f"create_{payload.kind.value}_profile")
        return RoleProfile(id=profile_id, kind=payload.kind, user_id=payload.user_id)

    async def assign_coach_to_student(self, *, student_user_id: str, coach_id: str) -> None:
        data = await self._graphql.execute(
            operation="find_student_profile",
            query=operations.STUDENT_BY_USER,
            variables={"userId": student_user_id},
        )
        items = _list_items(data.get("studentsList"), operation="find_student_profile")
        if not items:
            raise RecordStoreError(f"student profile not found for user {student_user_id}")
        student_id = _require_id(items[0], operation="find_student_profile")

        await self._graphql.execute(
            operation="assign_coach_to_student",
            query=operations.CONNECT_STUDENT_COACH,
            variables={"id": student_id, "coachId": coach_id},
        )

    async def create_invitation(self, payload: InvitationCreateInput) -> InvitationRecord:
        status = InvitationStatus.SENT if payload.email_sent else InvitationStatus.FAILED
        data = await self._graphql.execute(
            operation="create_invitation",
            query=operations.CREATE_INVITATION,
            variables={
                "data": {
                    "userId": payload.user_id,
                    "email": payload.email,
                    "role": payload.role.value,
                    "invitedBy": payload.invited_by,
                    "emailSent": payload.email_sent,
                    "messageId": payload.message_id,
                    "status": status.value,
                }
            },
        )
        return _parse_invitation(data.get("invitationCreate"), operation="create_invitation")

    async def get_latest_invitation(self, *, user_id: str) -> InvitationRecord | None:
        data = await self._graphql.execute(
            operation="get_latest_invitation",
            query=operations.LATEST_INVITATION,
            variables={"userId": user_id},
        )
        items = _list_items(data.get("invitationsList"), operation="get_latest_invitation")
        if not items:
            return None
        return _parse_invitation(items[0], operation="get_latest_invitation")

    async def set_invitation_status(
        self,
        *,
        invitation_id: str,
        status: InvitationStatus,
    ) -> InvitationRecord:
        data = await self._graphql.execute(
            operation="set_invitation_status",
            query=operations.SET_INVITATION_STATUS,
            variables={"id": invitation_id, "status": status.value},
        )
        return _parse_invitation(data.get("invitationUpdate"), operation="set_invitation_status")

    async def _find_user(
        self,
        *,
        operation: str,
        user_filter: dict[str, object],
    ) -> UserRecord | None:
        data = await self._graphql.execute(
            operation=operation,
            query=operations.USERS_BY_FILTER,
            variables={"filter": user_filter},
        )
        items = _list_items(data.get("usersList"), operation=operation)
        if not items:
            return None
        return _parse_user(items[0], operation=operation)


def _list_items(payload: object, *, operation: str) -> list[object]:
    if not isinstance(payload, Mapping):
        raise RecordStoreError(f"{operation} response missing list payload")
    items = payload.get("items")
    if not isinstance(items, list):
        raise RecordStoreError(f"{operation} response missing items")
    return items


def _require_id(payload: object, *, operation: str) -> str:
    if isinstance(payload, Mapping):
        value = payload.get("id")
        if isinstance(value, str) and value:
            return value
    raise RecordStoreError(f"{operation} response missing id")


def _parse_user(payload: object, *, operation: str) -> UserRecord:
    user_id = _require_id(payload, operation=operation)
    assert isinstance(payload, Mapping)

    role = Role.USER
    roles = payload.get("roles")
    if isinstance(roles, Mapping):
        role_items = roles.get("items")
        if isinstance(role_items, list) and role_items and isinstance(role_items[0], Mapping):
            name = role_items[0].get("name")
            if isinstance(name, str):
                role = role_from_record_store_name(name)

    return UserRecord(
        id=user_id,
        first_name=_optional_str(payload.get("firstName")) or "",
        last_name=_optional_str(payload.get("lastName")) or "",
        email=_optional_str(payload.get("email")) or "",
        role=role,
        is_active=payload.get("isActive") is not False,
        created_at=_parse_timestamp(payload.get("createdAt")),
        updated_at=_parse_timestamp(payload.get("updatedAt")),
    )


def _parse_invitation(payload: object, *, operation: str) -> InvitationRecord:
    invitation_id = _require_id(payload, operation=operation)
    assert isinstance(payload, Mapping)

    raw_status = _optional_str(payload.get("status")) or InvitationStatus.SENT.value
    try:
        status = InvitationStatus(raw_status)
    except ValueError as error:
        raise RecordStoreError(f"{operation} returned unknown status {raw_status!r}") from error
    raw_role = _optional_str(payload.get("role")) or Role.USER.value
    try:
        role = Role(raw_role)
    except ValueError as error:
        raise RecordStoreError(f"{operation} returned unknown role {raw_role!r}") from error

    return InvitationRecord(
        id=invitation_id,
        user_id=_optional_str(payload.get("userId")) or "",
        email=_optional_str(payload.get("email")) or "",
        role=role,
        invited_by=_optional_str(payload.get("invitedBy")),
        email_sent=payload.get("emailSent") is True,
        message_id=_optional_str(payload.get("messageId")),
        status=status,
        created_at=_parse_timestamp(payload.get("createdAt")) or datetime.now(tz=UTC),
    )


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) else None


def _parse_timestamp(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
