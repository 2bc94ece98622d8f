"""Tests for src.adapters.twilio_gateway — Twilio REST delivery."""

import pytest
from unittest.mock import AsyncMock, patch, MagicMock

import httpx

from src.adapters.twilio_gateway import TwilioGateway
from src.data.models import CALL, SMS
from src.ports.delivery_port import Payload


def _mock_client(resp=None, side_effect=None):
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client.post = AsyncMock(return_value=resp, side_effect=side_effect)
    return mock_client


def _response(status_code=201, body=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.is_success = 200 <= status_code < 300
    resp.json.return_value = body or {}
    return resp


@pytest.fixture
def twilio():
    return TwilioGateway("ACtest", "secret", "+15550000000", timeout=2.0)


class TestSend:
    @pytest.mark.asyncio
    async def test_sms_posts_message(self, twilio):
        """SMS goes to the Messages resource with To/From/Body."""
        client = _mock_client(_response(body={"sid": "SM123"}))

        with patch("src.adapters.twilio_gateway.httpx.AsyncClient", return_value=client):
            result = await twilio.send("+447700900001", SMS, Payload(text="Take tablets"))

        assert result.ok
        assert result.provider_ref == "SM123"
        url = client.post.call_args.args[0]
        assert url.endswith("/Accounts/ACtest/Messages.json")
        kwargs = client.post.call_args.kwargs
        assert kwargs["data"] == {"To": "+447700900001", "From": "+15550000000", "Body": "Take tablets"}
        assert kwargs["auth"] == ("ACtest", "secret")

    @pytest.mark.asyncio
    async def test_call_posts_twiml(self, twilio):
        """Calls go to the Calls resource with the inline script."""
        client = _mock_client(_response(body={"sid": "CA123"}))
        script = "<Response><Say>Hello</Say></Response>"

        with patch("src.adapters.twilio_gateway.httpx.AsyncClient", return_value=client):
            result = await twilio.send("+1", CALL, Payload(text="Hello", voice_script=script))

        assert result.provider_ref == "CA123"
        assert client.post.call_args.args[0].endswith("/Calls.json")
        assert client.post.call_args.kwargs["data"]["Twiml"] == script

    @pytest.mark.asyncio
    async def test_call_without_script_fails_locally(self, twilio):
        with patch("src.adapters.twilio_gateway.httpx.AsyncClient") as client_cls:
            result = await twilio.send("+1", CALL, Payload(text="Hello"))

        assert result.status == "failed"
        client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_unsupported_channel(self, twilio):
        result = await twilio.send("+1", "push", Payload(text="Hello"))
        assert result.status == "failed"
        assert result.error == "unsupported_channel"

    @pytest.mark.asyncio
    async def test_timeout_is_reported(self, twilio):
        client = _mock_client(side_effect=httpx.ReadTimeout("slow"))

        with patch("src.adapters.twilio_gateway.httpx.AsyncClient", return_value=client):
            result = await twilio.send("+1", SMS, Payload(text="hi"))

        assert result.status == "failed"
        assert result.error == "timeout"

    @pytest.mark.asyncio
    async def test_transport_error_is_reported(self, twilio):
        client = _mock_client(side_effect=httpx.ConnectError("refused"))

        with patch("src.adapters.twilio_gateway.httpx.AsyncClient", return_value=client):
            result = await twilio.send("+1", SMS, Payload(text="hi"))

        assert result.status == "failed"
        assert result.error.startswith("transport error")

    @pytest.mark.asyncio
    async def test_rejection_carries_provider_message(self, twilio):
        client = _mock_client(_response(400, {"message": "The 'To' number is not valid"}))

        with patch("src.adapters.twilio_gateway.httpx.AsyncClient", return_value=client):
            result = await twilio.send("bogus", SMS, Payload(text="hi"))

        assert result.status == "failed"
        assert result.error == "The 'To' number is not valid"

    @pytest.mark.asyncio
    async def test_rejection_without_body(self, twilio):
        resp = _response(502)
        resp.json.side_effect = ValueError("not json")
        client = _mock_client(resp)

        with patch("src.adapters.twilio_gateway.httpx.AsyncClient", return_value=client):
            result = await twilio.send("+1", SMS, Payload(text="hi"))

        assert result.error == "HTTP 502"

    @pytest.mark.asyncio
    async def test_non_object_body_is_ignored(self, twilio):
        """A JSON array or string body never breaks result handling."""
        client = _mock_client(_response(503, ["Service Unavailable"]))

        with patch("src.adapters.twilio_gateway.httpx.AsyncClient", return_value=client):
            result = await twilio.send("+1", SMS, Payload(text="hi"))

        assert result.status == "failed"
        assert result.error == "HTTP 503"
