"""Twilio delivery adapter — implements DeliveryGateway.

SMS goes through the Messages resource, voice calls through the Calls
resource with an inline TwiML script. Every request is bounded by the
configured timeout; timeouts, transport errors and non-2xx responses all
come back as a failed DeliveryResult.
"""

from __future__ import annotations

import logging

import httpx

from src.data.models import CALL, SMS
from src.ports.delivery_port import DeliveryResult, Payload

logger = logging.getLogger(__name__)

_API_BASE = "https://api.twilio.com/2010-04-01/Accounts"


class TwilioGateway:
    """Twilio implementation of DeliveryGateway."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        timeout: float = 10.0,
    ) -> None:
        self._account_sid = account_sid
        self._auth = (account_sid, auth_token)
        self._from_number = from_number
        self._timeout = timeout

    @classmethod
    def from_settings(cls) -> TwilioGateway:
        from src.config import settings

        return cls(
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            from_number=settings.TWILIO_PHONE_NUMBER,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    async def send(self, recipient: str, channel: str, payload: Payload) -> DeliveryResult:
        if channel == SMS:
            resource = "Messages.json"
            form = {"To": recipient, "From": self._from_number, "Body": payload.text}
        elif channel == CALL:
            if not payload.voice_script:
                return DeliveryResult.failed("call payload has no voice script")
            resource = "Calls.json"
            form = {"To": recipient, "From": self._from_number, "Twiml": payload.voice_script}
        else:
            return DeliveryResult.failed("unsupported_channel")

        url = f"{_API_BASE}/{self._account_sid}/{resource}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, data=form, auth=self._auth)
        except httpx.TimeoutException:
            logger.warning("Twilio %s to %s timed out", channel, recipient)
            return DeliveryResult.failed("timeout")
        except httpx.HTTPError as exc:
            logger.warning("Twilio %s to %s failed: %s", channel, recipient, exc)
            return DeliveryResult.failed(f"transport error: {exc}")

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if resp.is_success:
            return DeliveryResult.sent(body.get("sid"))

        message = body.get("message") or f"HTTP {resp.status_code}"
        logger.warning("Twilio rejected %s to %s: %s", channel, recipient, message)
        return DeliveryResult.failed(message, provider_ref=body.get("sid"))
