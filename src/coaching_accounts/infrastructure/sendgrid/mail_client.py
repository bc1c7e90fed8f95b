"""SendGrid v3 mail-send adapter implementing the email dispatcher port."""

from __future__ import annotations

from coaching_accounts.application.ports.email_dispatcher_port import (
    EmailDispatchError,
    TemplateEmail,
)
from coaching_accounts.infrastructure.http.transport import (
    HttpTransportPort,
    UrllibHttpTransport,
    decode_json,
    describe_error_payload,
    encode_json,
)


class SendGridMailClient:
    """Send dynamic-template emails through `POST /v3/mail/send`."""

    def __init__(
        self,
        *,
        api_key: str,
        from_email: str,
        from_name: str,
        transport: HttpTransportPort | None = None,
        timeout_seconds: float = 20.0,
        base_url: str = "https://api.sendgrid.com",
    ) -> None:
        api_key_value = api_key.strip()
        if not api_key_value:
            raise ValueError("api_key must be a non-empty string")
        self._api_key = api_key_value
        self._from_email = from_email
        self._from_name = from_name
        self._transport = transport or UrllibHttpTransport()
        self._timeout_seconds = timeout_seconds
        self._base_url = base_url.rstrip("/")

    async def send_template(self, message: TemplateEmail) -> str | None:
        """Send one template email; return the provider message id when exposed."""

        payload = {
            "personalizations": [
                {
                    "to": [{"email": message.to_email, "name": message.to_name}],
                    "dynamic_template_data": message.template_data,
                }
            ],
            "from": {"email": self._from_email, "name": self._from_name},
            "template_id": message.template_id,
        }
        try:
            response = await self._transport.request(
                method="POST",
                url=f"{self._base_url}/v3/mail/send",
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                body=encode_json(payload),
                timeout_seconds=self._timeout_seconds,
            )
        except Exception as error:  # noqa: BLE001
            raise EmailDispatchError("send_template transport failure") from error

        if not response.ok:
            raise EmailDispatchError(
                f"send_template failed with status {response.status_code}: "
                f"{describe_error_payload(response.body_bytes)}"
            )

        header_id = response.headers.get("x-message-id")
        if header_id:
            return header_id
        try:
            decoded = decode_json(response.body_bytes)
        except ValueError:
            return None
        if isinstance(decoded, dict):
            body_id = decoded.get("message_id")
            if isinstance(body_id, str) and body_id:
                return body_id
        return None
