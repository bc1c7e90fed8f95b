"""Minimal GraphQL-over-HTTP client for the 8base workspace endpoint."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, cast

from coaching_accounts.application.ports.record_store_port import RecordStoreError
from coaching_accounts.infrastructure.http.transport import (
    HttpTransportPort,
    UrllibHttpTransport,
    decode_json,
    describe_error_payload,
    encode_json,
)

logger = logging.getLogger(__name__)


class EightBaseGraphQLClient:
    """Execute GraphQL documents and normalize transport/GraphQL errors."""

    def __init__(
        self,
        *,
        api_url: str,
        api_token: str,
        transport: HttpTransportPort | None = None,
        timeout_seconds: float = 20.0,
    ) -> None:
        api_url_value = api_url.strip()
        api_token_value = api_token.strip()
        if not api_url_value:
            raise ValueError("api_url must be a non-empty string")
        if not api_token_value:
            raise ValueError("api_token must be a non-empty string")
        self._api_url = api_url_value
        self._api_token = api_token_value
        self._transport = transport or UrllibHttpTransport()
        self._timeout_seconds = timeout_seconds

    async def execute(
        self,
        *,
        operation: str,
        query: str,
        variables: Mapping[str, object] | None = None,
    ) -> dict[str, Any]:
        """Run one query/mutation and return its `data` object."""

        body = encode_json({"query": query, "variables": dict(variables or {})})
        try:
            response = await self._transport.request(
                method="POST",
                url=self._api_url,
                headers={
                    "Authorization": f"Bearer {self._api_token}",
                    "Content-Type": "application/json",
                },
                body=body,
                timeout_seconds=self._timeout_seconds,
            )
        except Exception as error:  # noqa: BLE001
            raise RecordStoreError(f"{operation} transport failure") from error

        if not response.ok:
            raise RecordStoreError(
                f"{operation} failed with status {response.status_code}: "
                f"{describe_error_payload(response.body_bytes)}"
            )
        try:
            decoded = decode_json(response.body_bytes)
        except ValueError as error:
            raise RecordStoreError(f"{operation} returned invalid JSON payload") from error
        if not isinstance(decoded, dict):
            raise RecordStoreError(f"{operation} returned non-object JSON payload")

        errors = decoded.get("errors")
        if isinstance(errors, list) and errors:
            raise RecordStoreError(f"{operation} failed: {_first_error_message(errors)}")

        data = decoded.get("data")
        if not isinstance(data, dict):
            raise RecordStoreError(f"{operation} response missing data")
        return cast("dict[str, Any]", data)


def _first_error_message(errors: list[object]) -> str:
    first = errors[0]
    if isinstance(first, Mapping):
        message = first.get("message")
        if isinstance(message, str) and message:
            return message
    return "unknown GraphQL error"
