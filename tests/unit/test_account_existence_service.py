from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from coaching_accounts.application.ports.identity_provider_port import (
    IdentityAccount,
    IdentityAccountCreateInput,
    IdentityErrorKind,
    IdentityProviderError,
)
from coaching_accounts.application.ports.record_store_port import (
    RecordStoreError,
    RoleProfile,
    RoleProfileCreateInput,
    UserRecord,
    UserRecordCreateInput,
)
from coaching_accounts.application.services.account_existence_service import (
    AccountDrift,
    AccountExistenceService,
)
from coaching_accounts.domain.roles import Role


@dataclass
class FakeRecordStore:
    emails: set[str] = field(default_factory=set)
    lookup_error: Exception | None = None
    pages: list[tuple[int, int]] = field(default_factory=list)

    async def create_user(self, payload: UserRecordCreateInput) -> UserRecord:
        raise AssertionError("not used")

    async def get_user_by_id(self, *, user_id: str) -> UserRecord | None:
        raise AssertionError("not used")

    async def get_user_by_email(self, *, email: str) -> UserRecord | None:
        if self.lookup_error is not None:
            raise self.lookup_error
        if email not in self.emails:
            return None
        return UserRecord(
            id="usr-1",
            first_name="Jane",
            last_name="Doe",
            email=email,
            role=Role.USER,
            is_active=True,
        )

    async def list_users(self, *, first: int = 100, skip: int = 0) -> list[UserRecord]:
        self.pages.append((first, skip))
        records = [await self.get_user_by_email(email=email) for email in sorted(self.emails)]
        return [record for record in records if record is not None][skip : skip + first]

    async def set_user_active(self, *, user_id: str, is_active: bool) -> UserRecord:
        raise AssertionError("not used")

    async def create_role_profile(self, payload: RoleProfileCreateInput) -> RoleProfile:
        raise AssertionError("not used")

    async def assign_coach_to_student(self, *, student_user_id: str, coach_id: str) -> None:
        raise AssertionError("not used")


@dataclass
class FakeIdentityProvider:
    emails: set[str] = field(default_factory=set)
    find_error: IdentityProviderError | None = None

    async def find_accounts_by_email(self, *, email: str) -> list[IdentityAccount]:
        if self.find_error is not None:
            raise self.find_error
        if email in self.emails:
            return [IdentityAccount(external_id="auth0|1", email=email)]
        return []

    async def create_account(self, payload: IdentityAccountCreateInput) -> IdentityAccount:
        raise AssertionError("not used")

    async def update_account(
        self,
        *,
        external_id: str,
        blocked: bool,
        app_metadata: dict[str, object],
    ) -> IdentityAccount:
        raise AssertionError("not used")

    async def send_change_password_email(self, *, email: str) -> None:
        raise AssertionError("not used")

    def build_hosted_login_url(self, *, redirect_uri: str) -> str:
        raise AssertionError("not used")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("in_store", "in_identity", "exists", "drift"),
    [
        (True, True, True, AccountDrift.NONE),
        (False, False, False, AccountDrift.NONE),
        (True, False, True, AccountDrift.RECORD_ONLY),
        (False, True, False, AccountDrift.IDENTITY_ONLY),
    ],
)
async def test_check_user_exists_reports_drift(
    in_store: bool,
    in_identity: bool,
    exists: bool,
    drift: AccountDrift,
) -> None:
    email = "jane@example.org"
    service = AccountExistenceService(
        records=FakeRecordStore(emails={email} if in_store else set()),
        identity=FakeIdentityProvider(emails={email} if in_identity else set()),
    )

    check = await service.check_user_exists(email=" JANE@example.org")

    assert check.exists is exists
    assert check.identity_exists is in_identity
    assert check.drift is drift
    assert (check.user is not None) is in_store


@pytest.mark.asyncio
async def test_identity_failure_reports_unknown_state() -> None:
    service = AccountExistenceService(
        records=FakeRecordStore(emails={"jane@example.org"}),
        identity=FakeIdentityProvider(
            find_error=IdentityProviderError(
                "grant rejected",
                kind=IdentityErrorKind.CLIENT_CREDENTIALS,
            )
        ),
    )

    check = await service.check_user_exists(email="jane@example.org")

    assert check.exists is True
    assert check.identity_exists is None
    assert check.drift is AccountDrift.UNKNOWN
    assert check.identity_error == "grant rejected"


@pytest.mark.asyncio
async def test_record_store_failure_propagates() -> None:
    service = AccountExistenceService(
        records=FakeRecordStore(lookup_error=RecordStoreError("usersList failed")),
        identity=FakeIdentityProvider(),
    )

    with pytest.raises(RecordStoreError):
        await service.check_user_exists(email="jane@example.org")


@pytest.mark.asyncio
async def test_list_accounts_forwards_page_window() -> None:
    records = FakeRecordStore(emails={"a@example.org", "b@example.org", "c@example.org"})
    service = AccountExistenceService(records=records, identity=FakeIdentityProvider())

    users = await service.list_accounts(first=2, skip=1)

    assert [user.email for user in users] == ["b@example.org", "c@example.org"]
    assert records.pages == [(2, 1)]


@pytest.mark.asyncio
@pytest.mark.parametrize(("first", "skip"), [(0, 0), (10, -1)])
async def test_list_accounts_rejects_invalid_page(first: int, skip: int) -> None:
    records = FakeRecordStore()
    service = AccountExistenceService(records=records, identity=FakeIdentityProvider())

    with pytest.raises(ValueError):
        await service.list_accounts(first=first, skip=skip)

    assert records.pages == []
