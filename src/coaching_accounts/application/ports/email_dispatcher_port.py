"""Port for transactional template email delivery."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class EmailDispatchError(RuntimeError):
    """Normalized email-provider failure."""


@dataclass(frozen=True)
class TemplateEmail:
    """One dynamic-template email addressed to a single recipient."""

    to_email: str
    to_name: str
    template_id: str
    template_data: dict[str, object]


class EmailDispatcherPort(Protocol):
    """Email dispatcher contract."""

    async def send_template(self, message: TemplateEmail) -> str | None:
        """Send one template email and return the provider message id, if any."""
