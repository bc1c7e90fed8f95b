"""Port for user, profile and coach-link records in the backend store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol

from coaching_accounts.domain.roles import ProfileKind, Role


class RecordStoreError(RuntimeError):
    """Normalized record-store failure."""


@dataclass(frozen=True)
class UserRecord:
    """Backend-store user record."""

    id: str
    first_name: str
    last_name: str
    email: str
    role: Role
    is_active: bool
    assigned_coach_id: str | None = None
    access_start: date | None = None
    access_end: date | None = None
    has_paid: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class UserRecordCreateInput:
    """Payload for creating one user record connected to a store role."""

    first_name: str
    last_name: str
    email: str
    role_id: str


@dataclass(frozen=True)
class RoleProfileCreateInput:
    """Payload for creating one student or coach profile for a user."""

    kind: ProfileKind
    user_id: str
    first_name: str
    last_name: str
    email: str


@dataclass(frozen=True)
class RoleProfile:
    """Role-specific extension record linked to a user record."""

    id: str
    kind: ProfileKind
    user_id: str


class RecordStorePort(Protocol):
    """Record-store contract used by lifecycle orchestrators."""

    async def create_user(self, payload: UserRecordCreateInput) -> UserRecord:
        """Create one user record and return it."""

    async def get_user_by_id(self, *, user_id: str) -> UserRecord | None:
        """Return user record by id or None."""

    async def get_user_by_email(self, *, email: str) -> UserRecord | None:
        """Return user record by email or None."""

    async def list_users(self, *, first: int = 100, skip: int = 0) -> list[UserRecord]:
        """Return one page of user records, newest first."""

    async def set_user_active(self, *, user_id: str, is_active: bool) -> UserRecord:
        """Set the activity flag of one user record."""

    async def create_role_profile(self, payload: RoleProfileCreateInput) -> RoleProfile:
        """Create one student/coach profile linked to a user record."""

    async def assign_coach_to_student(self, *, student_user_id: str, coach_id: str) -> None:
        """Link a student's profile to a coach."""
