from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import pytest

from coaching_accounts.application.ports.invitation_repository_port import (
    InvitationCreateInput,
    InvitationStatus,
)
from coaching_accounts.application.ports.record_store_port import (
    RecordStoreError,
    RoleProfileCreateInput,
    UserRecordCreateInput,
)
from coaching_accounts.domain.roles import ProfileKind, Role
from coaching_accounts.infrastructure.eightbase import operations
from coaching_accounts.infrastructure.eightbase.record_store import EightBaseRecordStore


@dataclass
class FakeGraphQLExecutor:
    results: dict[str, list[dict[str, Any]]]
    calls: list[dict[str, Any]] = field(default_factory=list)

    async def execute(
        self,
        *,
        operation: str,
        query: str,
        variables: Mapping[str, object] | None = None,
    ) -> dict[str, Any]:
        self.calls.append({"operation": operation, "query": query, "variables": variables})
        queued = self.results.get(operation)
        if not queued:
            raise RecordStoreError(f"{operation} failed: unexpected call")
        return queued.pop(0)


def _user_payload(
    *,
    user_id: str = "usr-1",
    email: str = "jane@example.org",
    role_name: str | None = "Student",
    is_active: object = True,
) -> dict[str, Any]:
    return {
        "id": user_id,
        "email": email,
        "firstName": "Jane",
        "lastName": "Doe",
        "isActive": is_active,
        "createdAt": "2026-03-01T10:00:00.000Z",
        "updatedAt": "2026-03-02T11:30:00Z",
        "roles": {"items": [{"id": "role-1", "name": role_name}] if role_name else []},
    }


@pytest.mark.asyncio
async def test_create_user_connects_role_and_parses_record() -> None:
    graphql = FakeGraphQLExecutor(
        results={"create_user": [{"userCreate": _user_payload(role_name="Coach")}]}
    )
    store = EightBaseRecordStore(graphql)

    user = await store.create_user(
        UserRecordCreateInput(
            first_name="Jane",
            last_name="Doe",
            email="jane@example.org",
            role_id="role-coach",
        )
    )

    assert user.id == "usr-1"
    assert user.role is Role.COACH
    assert user.is_active is True
    assert user.created_at == datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
    call = graphql.calls[0]
    assert call["query"] == operations.CREATE_USER
    assert call["variables"] == {
        "data": {
            "email": "jane@example.org",
            "firstName": "Jane",
            "lastName": "Doe",
            "roles": {"connect": [{"id": "role-coach"}]},
        }
    }


@pytest.mark.asyncio
async def test_get_user_by_email_returns_none_when_no_record_matches() -> None:
    graphql = FakeGraphQLExecutor(
        results={
            "get_user_by_email": [{"usersList": {"items": []}}],
            "scan_users_by_email": [{"usersList": {"items": [_user_payload()]}}],
        }
    )

    assert await EightBaseRecordStore(graphql).get_user_by_email(email="x@example.org") is None
    assert graphql.calls[0]["variables"] == {"filter": {"email": {"equals": "x@example.org"}}}
    assert graphql.calls[1]["variables"] == {"first": 100, "skip": 0}


@pytest.mark.asyncio
async def test_get_user_by_email_matches_mixed_case_stored_email() -> None:
    graphql = FakeGraphQLExecutor(
        results={
            "get_user_by_email": [{"usersList": {"items": []}}],
            "scan_users_by_email": [
                {"usersList": {"items": [_user_payload(email="Jane@Example.org")]}}
            ],
        }
    )

    user = await EightBaseRecordStore(graphql).get_user_by_email(email="jane@example.org")

    assert user is not None
    assert user.id == "usr-1"
    assert user.email == "Jane@Example.org"


@pytest.mark.asyncio
async def test_get_user_by_email_scans_following_pages() -> None:
    first_page = [
        _user_payload(user_id=f"usr-{index}", email=f"user{index}@example.org")
        for index in range(100)
    ]
    graphql = FakeGraphQLExecutor(
        results={
            "get_user_by_email": [{"usersList": {"items": []}}],
            "scan_users_by_email": [
                {"usersList": {"items": first_page}},
                {
                    "usersList": {
                        "items": [_user_payload(user_id="usr-late", email="LATE@example.org")]
                    }
                },
            ],
        }
    )

    user = await EightBaseRecordStore(graphql).get_user_by_email(email="late@example.org")

    assert user is not None
    assert user.id == "usr-late"
    assert [call["variables"] for call in graphql.calls[1:]] == [
        {"first": 100, "skip": 0},
        {"first": 100, "skip": 100},
    ]


@pytest.mark.asyncio
async def test_get_user_by_email_skips_scan_on_exact_match() -> None:
    graphql = FakeGraphQLExecutor(
        results={"get_user_by_email": [{"usersList": {"items": [_user_payload()]}}]}
    )

    user = await EightBaseRecordStore(graphql).get_user_by_email(email="jane@example.org")

    assert user is not None
    assert [call["operation"] for call in graphql.calls] == ["get_user_by_email"]


@pytest.mark.asyncio
async def test_user_without_role_defaults_to_student_and_inactive_flag_is_read() -> None:
    graphql = FakeGraphQLExecutor(
        results={
            "get_user_by_id": [
                {"usersList": {"items": [_user_payload(role_name=None, is_active=False)]}}
            ]
        }
    )

    user = await EightBaseRecordStore(graphql).get_user_by_id(user_id="usr-1")

    assert user is not None
    assert user.role is Role.USER
    assert user.is_active is False


@pytest.mark.asyncio
async def test_list_users_sends_page_window_and_parses_items() -> None:
    graphql = FakeGraphQLExecutor(
        results={
            "list_users": [
                {
                    "usersList": {
                        "count": 2,
                        "items": [
                            _user_payload(user_id="usr-2", email="carl@example.org"),
                            _user_payload(role_name="Administrator"),
                        ],
                    }
                }
            ]
        }
    )
    store = EightBaseRecordStore(graphql)

    users = await store.list_users(first=2, skip=4)

    assert [user.id for user in users] == ["usr-2", "usr-1"]
    assert users[1].role is Role.SUPER_ADMIN
    assert graphql.calls[0]["query"] == operations.LIST_USERS
    assert graphql.calls[0]["variables"] == {"first": 2, "skip": 4}


@pytest.mark.asyncio
async def test_list_users_without_items_raises() -> None:
    graphql = FakeGraphQLExecutor(results={"list_users": [{"usersList": None}]})
    store = EightBaseRecordStore(graphql)

    with pytest.raises(RecordStoreError, match="list_users"):
        await store.list_users()


@pytest.mark.asyncio
async def test_set_user_active_sends_flag() -> None:
    graphql = FakeGraphQLExecutor(
        results={"set_user_active": [{"userUpdate": _user_payload(is_active=False)}]}
    )

    user = await EightBaseRecordStore(graphql).set_user_active(user_id="usr-1", is_active=False)

    assert user.is_active is False
    assert graphql.calls[0]["variables"] == {"id": "usr-1", "isActive": False}


@pytest.mark.asyncio
async def test_create_student_profile_links_user() -> None:
    graphql = FakeGraphQLExecutor(
        results={"create_student_profile": [{"studentCreate": {"id": "stu-1"}}]}
    )

    profile = await EightBaseRecordStore(graphql).create_role_profile(
        RoleProfileCreateInput(
            kind=ProfileKind.STUDENT,
            user_id="usr-1",
            first_name="Jane",
            last_name="Doe",
            email="jane@example.org",
        )
    )

    assert profile.id == "stu-1"
    assert profile.kind is ProfileKind.STUDENT
    data = graphql.calls[0]["variables"]["data"]
    assert data["user"] == {"connect": {"id": "usr-1"}}


@pytest.mark.asyncio
async def test_create_coach_profile_sends_empty_bio() -> None:
    graphql = FakeGraphQLExecutor(
        results={"create_coach_profile": [{"coachCreate": {"id": "coach-1"}}]}
    )

    profile = await EightBaseRecordStore(graphql).create_role_profile(
        RoleProfileCreateInput(
            kind=ProfileKind.COACH,
            user_id="usr-2",
            first_name="Carl",
            last_name="Coach",
            email="carl@example.org",
        )
    )

    assert profile.id == "coach-1"
    data = graphql.calls[0]["variables"]["data"]
    assert data["bio"] == ""
    assert data["users"] == {"connect": {"id": "usr-2"}}


@pytest.mark.asyncio
async def test_assign_coach_connects_student_profile() -> None:
    graphql = FakeGraphQLExecutor(
        results={
            "find_student_profile": [{"studentsList": {"items": [{"id": "stu-1"}]}}],
            "assign_coach_to_student": [{"studentUpdate": {"id": "stu-1"}}],
        }
    )

    await EightBaseRecordStore(graphql).assign_coach_to_student(
        student_user_id="usr-1",
        coach_id="coach-9",
    )

    assert [call["operation"] for call in graphql.calls] == [
        "find_student_profile",
        "assign_coach_to_student",
    ]
    assert graphql.calls[1]["variables"] == {"id": "stu-1", "coachId": "coach-9"}


@pytest.mark.asyncio
async def test_assign_coach_without_student_profile_raises() -> None:
    graphql = FakeGraphQLExecutor(
        results={"find_student_profile": [{"studentsList": {"items": []}}]}
    )

    with pytest.raises(RecordStoreError, match="student profile not found"):
        await EightBaseRecordStore(graphql).assign_coach_to_student(
            student_user_id="usr-1",
            coach_id="coach-9",
        )


@pytest.mark.asyncio
async def test_create_invitation_marks_failed_when_email_not_sent() -> None:
    graphql = FakeGraphQLExecutor(
        results={
            "create_invitation": [
                {
                    "invitationCreate": {
                        "id": "inv-1",
                        "userId": "usr-1",
                        "email": "jane@example.org",
                        "role": "user",
                        "invitedBy": None,
                        "emailSent": False,
                        "messageId": None,
                        "status": "failed",
                        "createdAt": "2026-03-01T10:00:00Z",
                    }
                }
            ]
        }
    )

    record = await EightBaseRecordStore(graphql).create_invitation(
        InvitationCreateInput(
            user_id="usr-1",
            email="jane@example.org",
            role=Role.USER,
            invited_by=None,
            email_sent=False,
            message_id=None,
        )
    )

    assert record.status is InvitationStatus.FAILED
    assert graphql.calls[0]["variables"]["data"]["status"] == "failed"


@pytest.mark.asyncio
async def test_get_latest_invitation_returns_none_when_absent() -> None:
    graphql = FakeGraphQLExecutor(
        results={"get_latest_invitation": [{"invitationsList": {"items": []}}]}
    )

    assert await EightBaseRecordStore(graphql).get_latest_invitation(user_id="usr-1") is None


@pytest.mark.asyncio
async def test_unknown_invitation_status_is_rejected() -> None:
    graphql = FakeGraphQLExecutor(
        results={
            "set_invitation_status": [
                {"invitationUpdate": {"id": "inv-1", "status": "bounced", "role": "user"}}
            ]
        }
    )

    with pytest.raises(RecordStoreError, match="unknown status"):
        await EightBaseRecordStore(graphql).set_invitation_status(
            invitation_id="inv-1",
            status=InvitationStatus.CANCELLED,
        )


@pytest.mark.asyncio
async def test_missing_id_in_mutation_result_raises() -> None:
    graphql = FakeGraphQLExecutor(results={"create_user": [{"userCreate": None}]})

    with pytest.raises(RecordStoreError, match="missing id"):
        await EightBaseRecordStore(graphql).create_user(
            UserRecordCreateInput(
                first_name="Jane",
                last_name="Doe",
                email="jane@example.org",
                role_id="role-1",
            )
        )
