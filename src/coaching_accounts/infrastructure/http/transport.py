"""Async HTTP transport shared by the identity, record-store and email adapters."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen


@dataclass(frozen=True)
class HttpResponse:
    """Normalized HTTP response data returned by transport implementations."""

    status_code: int
    body_bytes: bytes
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class HttpTransportPort(Protocol):
    """Transport protocol used by outbound HTTP adapters."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> HttpResponse:
        """Execute one HTTP request and return normalized response data."""


class HttpTransportError(RuntimeError):
    """Raised when the remote endpoint could not be reached at all."""


class UrllibHttpTransport:
    """urllib-based async transport running blocking calls in a worker thread."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> HttpResponse:
        """Execute HTTP request in a worker thread and normalize HTTP errors."""

        return await asyncio.to_thread(
            self._request_sync,
            method=method,
            url=url,
            headers=headers,
            body=body,
            timeout_seconds=timeout_seconds,
        )

    def _request_sync(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> HttpResponse:
        request = Request(url=url, data=body, headers=headers, method=method)
        try:
            with urlopen(request, timeout=timeout_seconds) as response:
                return HttpResponse(
                    status_code=int(response.getcode()),
                    body_bytes=response.read(),
                    headers={key.lower(): value for key, value in response.headers.items()},
                )
        except HTTPError as error:
            return HttpResponse(
                status_code=int(error.code),
                body_bytes=error.read(),
                headers={key.lower(): value for key, value in error.headers.items()},
            )
        except URLError as error:
            raise HttpTransportError(f"transport connection failure: {error}") from error


def encode_json(payload: object) -> bytes:
    """Serialize one request payload as UTF-8 JSON."""

    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def decode_json(body_bytes: bytes) -> object:
    """Decode a JSON response body; empty bodies decode to None.

    Raises ValueError for undecodable payloads.
    """

    if not body_bytes.strip():
        return None
    try:
        return json.loads(body_bytes.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise ValueError("invalid JSON payload") from error


def describe_error_payload(body_bytes: bytes) -> str:
    """Return the most useful error text from a provider error body."""

    if not body_bytes:
        return "empty response body"
    try:
        decoded = decode_json(body_bytes)
    except ValueError:
        try:
            return body_bytes.decode("utf-8")[:200]
        except UnicodeDecodeError:
            return "<binary>"

    if isinstance(decoded, dict):
        for key in ("error_description", "message", "error"):
            value = decoded.get(key)
            if isinstance(value, str) and value:
                return value
        errors = decoded.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            message = errors[0].get("message")
            if isinstance(message, str) and message:
                return message
    return body_bytes.decode("utf-8", errors="replace")[:200]
