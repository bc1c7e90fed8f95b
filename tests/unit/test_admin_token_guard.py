from __future__ import annotations

import pytest

from coaching_accounts.infrastructure.http.auth_guard import (
    AdminTokenGuard,
    InvalidAuthTokenError,
    MissingAuthTokenError,
    extract_bearer_token,
)


def test_extract_bearer_token_accepts_case_insensitive_scheme() -> None:
    assert extract_bearer_token("bearer abc123") == "abc123"
    assert extract_bearer_token("  Bearer abc123  ") == "abc123"


@pytest.mark.parametrize("header", [None, "", "   "])
def test_extract_bearer_token_requires_header(header: str | None) -> None:
    with pytest.raises(MissingAuthTokenError):
        extract_bearer_token(header)


@pytest.mark.parametrize("header", ["Basic abc", "Bearer", "Bearer a b", "token"])
def test_extract_bearer_token_rejects_malformed_header(header: str) -> None:
    with pytest.raises(InvalidAuthTokenError):
        extract_bearer_token(header)


def test_guard_accepts_configured_token() -> None:
    guard = AdminTokenGuard(admin_token="admin-secret")

    guard.require_admin(authorization_header="Bearer admin-secret")


def test_guard_rejects_other_token() -> None:
    guard = AdminTokenGuard(admin_token="admin-secret")

    with pytest.raises(InvalidAuthTokenError, match="invalid admin token"):
        guard.require_admin(authorization_header="Bearer someone-else")


def test_guard_requires_non_empty_secret() -> None:
    with pytest.raises(ValueError):
        AdminTokenGuard(admin_token="  ")
