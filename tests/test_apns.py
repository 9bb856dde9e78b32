"""Tests for the APNs client."""

import json

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from hookwatch.config import ApnsConfig
from hookwatch.lib.apns import (
    ApnsClient,
    PushEnvironment,
    PushGatewayError,
    PushOutcome,
    build_payload,
    status_to_outcome,
)


@pytest.fixture(scope="module")
def ec_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="module")
def pem(ec_key):
    return ec_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_client(pem, handler=None, clock=None):
    transport = httpx.MockTransport(handler or (lambda request: httpx.Response(200)))
    return ApnsClient(
        signing_key=pem,
        key_id="KEYID12345",
        team_id="TEAMID6789",
        bundle_id="com.example.hookwatch",
        http_client=httpx.AsyncClient(transport=transport),
        clock=clock or FakeClock(),
    )


class TestProviderToken:
    def test_token_claims_and_header(self, pem, ec_key):
        client = make_client(pem)
        token = client.provider_token()

        header = jwt.get_unverified_header(token)
        assert header["alg"] == "ES256"
        assert header["kid"] == "KEYID12345"

        claims = jwt.decode(token, ec_key.public_key(), algorithms=["ES256"])
        assert claims == {"iss": "TEAMID6789", "iat": 1_700_000_000}

    def test_token_cached_within_refresh_window(self, pem):
        clock = FakeClock()
        client = make_client(pem, clock=clock)
        first = client.provider_token()
        clock.now += 2999
        assert client.provider_token() == first

    def test_token_refreshed_after_window(self, pem, ec_key):
        clock = FakeClock()
        client = make_client(pem, clock=clock)
        client.provider_token()
        clock.now += 3000
        refreshed = client.provider_token()
        claims = jwt.decode(refreshed, ec_key.public_key(), algorithms=["ES256"])
        assert claims["iat"] == 1_700_003_000

    def test_invalidate_only_matching_token(self, pem):
        clock = FakeClock()
        client = make_client(pem, clock=clock)
        token = client.provider_token()

        assert client.invalidate_token("stale.token.value") is False
        assert client.provider_token() == token

        assert client.invalidate_token(token) is True
        clock.now += 1
        assert client.provider_token() != token

    def test_bad_key_raises_gateway_error(self):
        client = make_client("not a pem key")
        with pytest.raises(PushGatewayError):
            client.provider_token()


class TestStatusMapping:
    @pytest.mark.parametrize(
        "status,reason,outcome",
        [
            (200, None, PushOutcome.SUCCESS),
            (410, "Unregistered", PushOutcome.PERMANENT),
            (400, "BadDeviceToken", PushOutcome.PERMANENT),
            (400, "DeviceTokenNotForTopic", PushOutcome.PERMANENT),
            (400, "PayloadTooLarge", PushOutcome.ERROR),
            (403, "ExpiredProviderToken", PushOutcome.AUTH),
            (429, "TooManyRequests", PushOutcome.TRANSIENT),
            (503, "ServiceUnavailable", PushOutcome.TRANSIENT),
            (500, "InternalServerError", PushOutcome.ERROR),
        ],
    )
    def test_mapping(self, status, reason, outcome):
        assert status_to_outcome(status, reason) is outcome


class TestSend:
    async def test_request_shape(self, pem, make_notification):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(200)

        client = make_client(pem, handler)
        notification = make_notification()

        result, used_token = await client.send("abc123", PushEnvironment.PRODUCTION, notification)

        assert result.ok
        request = captured["request"]
        assert str(request.url) == "https://api.push.apple.com/3/device/abc123"
        assert request.headers["authorization"] == f"bearer {used_token}"
        assert request.headers["apns-topic"] == "com.example.hookwatch"
        assert request.headers["apns-push-type"] == "alert"
        assert request.headers["apns-priority"] == "10"
        assert request.headers["apns-collapse-id"] == str(notification.id)

        body = json.loads(request.content)
        assert body == build_payload(notification)
        assert body["aps"]["alert"] == {"title": notification.title, "body": notification.body}
        assert body["notification_id"] == str(notification.id)
        assert body["session_id"] == notification.session_id
        assert body["device_id"] == notification.device_id

    async def test_sandbox_host(self, pem, make_notification):
        urls = []

        def handler(request):
            urls.append(str(request.url))
            return httpx.Response(200)

        client = make_client(pem, handler)
        await client.send("tok", "sandbox", make_notification())
        assert urls == ["https://api.sandbox.push.apple.com/3/device/tok"]

    async def test_error_reason_parsed(self, pem, make_notification):
        client = make_client(pem, lambda request: httpx.Response(400, json={"reason": "BadDeviceToken"}))

        result, _ = await client.send("tok", "production", make_notification())

        assert result.outcome is PushOutcome.PERMANENT
        assert result.status_code == 400
        assert result.reason == "BadDeviceToken"

    async def test_transport_error_is_transient(self, pem, make_notification):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(pem, handler)
        result, _ = await client.send("tok", "production", make_notification())

        assert result.outcome is PushOutcome.TRANSIENT
        assert "connection refused" in result.reason


class TestFromConfig:
    def test_requires_credentials(self):
        with pytest.raises(PushGatewayError):
            ApnsClient.from_config(ApnsConfig())

    def test_missing_key_file(self, tmp_path):
        config = ApnsConfig(
            key_path=str(tmp_path / "missing.p8"),
            key_id="K",
            team_id="T",
            bundle_id="com.example.hookwatch",
        )
        with pytest.raises(PushGatewayError):
            ApnsClient.from_config(config)

    async def test_reads_key_file(self, tmp_path, pem):
        key_path = tmp_path / "AuthKey.p8"
        key_path.write_text(pem)
        config = ApnsConfig(key_path=str(key_path), key_id="K", team_id="T", bundle_id="com.example.hookwatch")

        client = ApnsClient.from_config(config)
        try:
            assert client.provider_token().count(".") == 2
        finally:
            await client.aclose()
