"""Shared normalization helpers for account identity inputs."""

from __future__ import annotations

import warnings


def normalize_user_email(*, email: str) -> str:
    """Normalize one user email and reject blank values."""

    normalized = email.strip().lower()
    if not normalized:
        raise ValueError("email cannot be blank")
    return normalized


def normalize_person_name(*, value: str, field_name: str) -> str:
    """Strip one first/last name value and reject blank values."""

    normalized = value.strip()
    if not normalized:
        raise ValueError(f"{field_name} cannot be blank")
    return normalized


def legacy_default_password(*, first_name: str, last_name: str) -> str:
    """Return the historical `Firstname@lastname` default password.

    Deprecated: the value is guessable from public profile data. Provisioning
    never sets it; invitees choose their password through the reset email.
    """

    warnings.warn(
        "legacy_default_password is deprecated; use the change-password email flow",
        DeprecationWarning,
        stacklevel=2,
    )
    first = first_name.strip()
    formatted_first = first[:1].upper() + first[1:].lower()
    return f"{formatted_first}@{last_name.strip().lower()}"
