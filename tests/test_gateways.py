"""Tests for channel gateways, driven through httpx mock transports."""

from __future__ import annotations

import json

import httpx
import pytest

from notify_dispatch import GatewayNotRegisteredError, NotificationChannel
from notify_dispatch.correlation import correlation_scope
from notify_dispatch.delivery import RenderedContent
from notify_dispatch.exceptions import DeliveryFailure
from notify_dispatch.gateways import (
    ChannelGatewayRegistry,
    FcmPushGateway,
    HttpSmsGateway,
    InAppGateway,
    InMemoryGateway,
    SlackGateway,
    SmtpEmailGateway,
    TelegramGateway,
    WebhookGateway,
    sign_payload,
    verify_signature,
)
from notify_dispatch.gateways.webhook import SIGNATURE_HEADER, encode_payload

CONTENT = RenderedContent(
    title="Machine <3> offline",
    body="Line stopped",
    short_body="Stopped",
    action_url="https://app.example.com/m/3",
    locale="en",
    data={"machine": 3},
)


def recording(
    response: httpx.Response,
) -> tuple[list[httpx.Request], httpx.MockTransport]:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return response

    return requests, httpx.MockTransport(handler)


class TestWebhookSignature:
    def test_verify_round_trip(self) -> None:
        body = encode_payload({"b": 1, "a": "ü"})

        signature = sign_payload(body, "s3cret")

        assert verify_signature(body, signature, "s3cret")
        assert not verify_signature(body, signature, "other")
        assert not verify_signature(body + b" ", signature, "s3cret")

    def test_encoding_is_canonical(self) -> None:
        assert encode_payload({"b": 1, "a": "ü"}) == '{"a":"ü","b":1}'.encode()


class TestWebhookGateway:
    @pytest.mark.asyncio
    async def test_signed_post(self) -> None:
        requests, transport = recording(
            httpx.Response(202, headers={"X-Request-ID": "req-9"})
        )
        gateway = WebhookGateway(secret="s3cret", transport=transport)

        with correlation_scope("corr-1"):
            outcome = await gateway.send(
                NotificationChannel.WEBHOOK, "https://hooks.example.com/in", CONTENT
            )

        assert outcome.success
        assert outcome.external_id == "req-9"
        (request,) = requests
        signature = request.headers[SIGNATURE_HEADER]
        assert verify_signature(request.content, signature, "s3cret")
        assert request.headers["X-Correlation-ID"] == "corr-1"
        assert json.loads(request.content)["title"] == CONTENT.title

    @pytest.mark.asyncio
    async def test_endpoint_secret_overrides_default(self) -> None:
        requests, transport = recording(httpx.Response(200))
        gateway = WebhookGateway(
            secret="default",
            endpoint_secrets={"https://a.example.com": "per-endpoint"},
            transport=transport,
        )

        await gateway.send(
            NotificationChannel.WEBHOOK, "https://a.example.com", CONTENT
        )

        (request,) = requests
        signature = request.headers[SIGNATURE_HEADER]
        assert verify_signature(request.content, signature, "per-endpoint")

    @pytest.mark.asyncio
    async def test_unsigned_without_secret(self) -> None:
        requests, transport = recording(httpx.Response(200))
        gateway = WebhookGateway(transport=transport)

        await gateway.send(
            NotificationChannel.WEBHOOK, "https://a.example.com", CONTENT
        )

        assert SIGNATURE_HEADER not in requests[0].headers

    @pytest.mark.asyncio
    async def test_http_error_is_a_failed_outcome(self) -> None:
        _, transport = recording(httpx.Response(500, text="boom"))
        gateway = WebhookGateway(secret="s", transport=transport)

        outcome = await gateway.send(
            NotificationChannel.WEBHOOK, "https://a.example.com", CONTENT
        )

        assert not outcome.success
        assert outcome.error == "HTTP 500"
        assert outcome.response == {"status_code": 500}

    @pytest.mark.asyncio
    async def test_wrong_channel(self) -> None:
        with pytest.raises(ValueError):
            await WebhookGateway().send(NotificationChannel.SMS, "x", CONTENT)


class TestTelegramGateway:
    @pytest.mark.asyncio
    async def test_send_message(self) -> None:
        requests, transport = recording(
            httpx.Response(200, json={"ok": True, "result": {"message_id": 42}})
        )
        gateway = TelegramGateway("bot-token", transport=transport)

        outcome = await gateway.send(NotificationChannel.TELEGRAM, "12345", CONTENT)

        assert outcome.success
        assert outcome.external_id == "42"
        (request,) = requests
        assert str(request.url) == "https://api.telegram.org/botbot-token/sendMessage"
        payload = json.loads(request.content)
        assert payload["chat_id"] == "12345"
        assert payload["text"].startswith("<b>Machine &lt;3&gt; offline</b>")

    @pytest.mark.asyncio
    async def test_api_error(self) -> None:
        _, transport = recording(
            httpx.Response(200, json={"ok": False, "description": "chat not found"})
        )
        gateway = TelegramGateway("t", transport=transport)

        outcome = await gateway.send(NotificationChannel.TELEGRAM, "1", CONTENT)

        assert not outcome.success
        assert outcome.error == "chat not found"


class TestHttpSmsGateway:
    @pytest.mark.asyncio
    async def test_uses_short_body(self) -> None:
        requests, transport = recording(httpx.Response(200, json={"message_id": 7}))
        gateway = HttpSmsGateway(
            "https://sms.example.com/send", "key", "FACTORY", transport=transport
        )

        outcome = await gateway.send(NotificationChannel.SMS, "+998901234567", CONTENT)

        assert outcome.external_id == "7"
        (request,) = requests
        assert request.headers["Authorization"] == "Bearer key"
        payload = json.loads(request.content)
        assert payload["to"] == "998901234567"
        assert payload["text"] == "Stopped"
        assert payload["from"] == "FACTORY"

    @pytest.mark.asyncio
    async def test_provider_error(self) -> None:
        _, transport = recording(httpx.Response(401))
        gateway = HttpSmsGateway(
            "https://sms.example.com", "k", "S", transport=transport
        )

        outcome = await gateway.send(NotificationChannel.SMS, "+1", CONTENT)

        assert outcome.error == "HTTP 401"


class TestFcmPushGateway:
    @pytest.mark.asyncio
    async def test_send(self) -> None:
        requests, transport = recording(
            httpx.Response(200, json={"name": "projects/p/messages/1"})
        )
        gateway = FcmPushGateway("p", "access", transport=transport)

        outcome = await gateway.send(NotificationChannel.PUSH, "device-token", CONTENT)

        assert outcome.external_id == "projects/p/messages/1"
        message = json.loads(requests[0].content)["message"]
        assert message["token"] == "device-token"
        assert message["notification"]["body"] == "Stopped"
        assert message["data"] == {
            "machine": "3",
            "action_url": "https://app.example.com/m/3",
        }


class TestSlackGateway:
    @pytest.mark.asyncio
    async def test_posts_text(self) -> None:
        requests, transport = recording(httpx.Response(200, text="ok"))

        outcome = await SlackGateway(transport=transport).send(
            NotificationChannel.SLACK, "https://hooks.slack.com/x", CONTENT
        )

        assert outcome.success
        text = json.loads(requests[0].content)["text"]
        assert text.startswith("*Machine <3> offline*\nLine stopped")


class TestSmtpEmailGateway:
    def test_build_message_with_html_alternative(self) -> None:
        gateway = SmtpEmailGateway("smtp.example.com", "noreply@example.com")
        content = RenderedContent(title="Hi", body="plain", html_body="<p>rich</p>")

        message = gateway.build_message("ops@example.com", content)

        assert message["To"] == "ops@example.com"
        assert message["Subject"] == "Hi"
        assert message.is_multipart()
        assert message["Message-ID"]

    @pytest.mark.asyncio
    async def test_wrong_channel(self) -> None:
        gateway = SmtpEmailGateway("smtp.example.com", "noreply@example.com")

        with pytest.raises(ValueError):
            await gateway.send(NotificationChannel.SMS, "x", CONTENT)


class TestRegistry:
    @pytest.mark.asyncio
    async def test_routes_by_channel(self) -> None:
        registry = ChannelGatewayRegistry()
        registry.register(NotificationChannel.IN_APP, InAppGateway())

        outcome = await registry.send(NotificationChannel.IN_APP, "user-1", CONTENT)

        assert outcome.external_id == "user-1"
        assert registry.channels == {NotificationChannel.IN_APP}

    def test_missing_gateway(self) -> None:
        with pytest.raises(GatewayNotRegisteredError):
            ChannelGatewayRegistry().get(NotificationChannel.SMS)


class TestInMemoryGateway:
    @pytest.mark.asyncio
    async def test_records_and_fails(self) -> None:
        gateway = InMemoryGateway(failing_channels=[NotificationChannel.SMS])

        ok = await gateway.send(NotificationChannel.EMAIL, "a@example.com", CONTENT)
        bad = await gateway.send(NotificationChannel.SMS, "+1", CONTENT)

        assert ok.external_id == "mem-1"
        assert bad.error == "simulated provider failure"
        assert len(gateway.attempts) == 2
        gateway.assert_sent("a@example.com", NotificationChannel.EMAIL)
        with pytest.raises(AssertionError):
            gateway.assert_sent("+1", NotificationChannel.SMS)

    @pytest.mark.asyncio
    async def test_raise_on_failure(self) -> None:
        gateway = InMemoryGateway(
            failing_channels=[NotificationChannel.SMS], raise_on_failure=True
        )

        with pytest.raises(DeliveryFailure):
            await gateway.send(NotificationChannel.SMS, "+1", CONTENT)
