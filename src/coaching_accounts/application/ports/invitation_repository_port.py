"""Port for the advisory invitation log."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Protocol

from coaching_accounts.domain.roles import Role


class InvitationStatus(StrEnum):
    """Delivery state of one invitation."""

    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class InvitationCreateInput:
    """Payload for appending one invitation record."""

    user_id: str
    email: str
    role: Role
    invited_by: str | None
    email_sent: bool
    message_id: str | None


@dataclass(frozen=True)
class InvitationRecord:
    """Persisted invitation audit record."""

    id: str
    user_id: str
    email: str
    role: Role
    invited_by: str | None
    email_sent: bool
    message_id: str | None
    status: InvitationStatus
    created_at: datetime


class InvitationRepositoryPort(Protocol):
    """Invitation log contract."""

    async def create_invitation(self, payload: InvitationCreateInput) -> InvitationRecord:
        """Append one invitation record."""

    async def get_latest_invitation(self, *, user_id: str) -> InvitationRecord | None:
        """Return the most recent invitation for a user or None."""

    async def set_invitation_status(
        self,
        *,
        invitation_id: str,
        status: InvitationStatus,
    ) -> InvitationRecord:
        """Update the status of one invitation record."""
