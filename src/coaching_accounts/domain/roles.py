"""Application roles, their display names and record-store name mapping."""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    """Platform roles assignable to a user account."""

    USER = "user"
    COACH = "coach"
    COACH_MANAGER = "coach_manager"
    SUPER_ADMIN = "super_admin"


class ProfileKind(StrEnum):
    """Role-specific profile records linked 1:1 to a user record."""

    STUDENT = "student"
    COACH = "coach"


_DISPLAY_NAMES: dict[Role, str] = {
    Role.USER: "Student",
    Role.COACH: "Coach",
    Role.COACH_MANAGER: "Coach Manager",
    Role.SUPER_ADMIN: "Super Administrator",
}


def role_display_name(role: Role) -> str:
    """Return human-readable role label used in emails and status messages."""

    return _DISPLAY_NAMES[role]


def role_from_record_store_name(name: str) -> Role:
    """Map a record-store role name back to an application role.

    Unknown names resolve to ``Role.USER``.
    """

    normalized = name.strip().lower()
    if normalized in {"superadmin", "administrator", "admin"}:
        return Role.SUPER_ADMIN
    if normalized in {"coach manager", "coach_manager"}:
        return Role.COACH_MANAGER
    if normalized == "coach":
        return Role.COACH
    return Role.USER


def profile_kind_for_role(role: Role) -> ProfileKind | None:
    """Return which profile record a role requires, or None for admin roles."""

    if role is Role.USER:
        return ProfileKind.STUDENT
    if role in {Role.COACH, Role.COACH_MANAGER}:
        return ProfileKind.COACH
    return None
