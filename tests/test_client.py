"""Tests for the FMCD HTTP client: URL handling, retries and error mapping."""

import asyncio
import base64

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from core.errors import ConfigurationError
from core.types import DaemonConfig
from fmcd.client import FmcdClient, RetryPolicy, create_auth_header, normalize_base_url


# =============================================================================
# URL AND AUTH
# =============================================================================

class TestNormalizeBaseUrl:

    @pytest.mark.parametrize("raw, expected", [
        ("http://x", "http://x"),
        ("http://x/", "http://x"),
        ("  https://fmcd.example.com:7070/ ", "https://fmcd.example.com:7070"),
        ("http://x/api/", "http://x/api"),
    ])
    def test_strips_whitespace_and_one_trailing_slash(self, raw, expected):
        assert normalize_base_url(raw) == expected

    @pytest.mark.parametrize("raw", ["http://x/", "https://a.b/c", " http://x "])
    def test_idempotent(self, raw):
        once = normalize_base_url(raw)
        assert normalize_base_url(once) == once

    @pytest.mark.parametrize("raw", ["", "x.example.com", "ftp://x", "HTTP//x"])
    def test_rejects_missing_scheme(self, raw):
        with pytest.raises(ConfigurationError):
            normalize_base_url(raw)


def test_auth_header_uses_fixed_username():
    header = create_auth_header("secret")
    assert header.startswith("Basic ")
    assert base64.b64decode(header[6:]).decode() == "fmcd:secret"


class TestRetryPolicy:

    def test_timeout_escalates_five_seconds_per_attempt(self):
        policy = RetryPolicy(base_timeout=10.0)
        assert [policy.timeout_for(a) for a in range(3)] == [10.0, 15.0, 20.0]

    def test_backoff_doubles(self):
        policy = RetryPolicy(base_delay=1.0)
        assert [policy.backoff_for(a) for a in range(3)] == [1.0, 2.0, 4.0]

    def test_unit_multiplier_gives_constant_backoff(self):
        policy = RetryPolicy(base_delay=1.0, backoff_multiplier=1.0)
        assert [policy.backoff_for(a) for a in range(3)] == [1.0, 1.0, 1.0]

    def test_last_attempt_cannot_retry(self):
        policy = RetryPolicy(max_attempts=3)
        assert policy.can_retry(0)
        assert policy.can_retry(1)
        assert not policy.can_retry(2)

    def test_connection_errors_can_be_made_final(self):
        policy = RetryPolicy(retry_connection_errors=False)
        assert policy.is_retryable_error(asyncio.TimeoutError())
        assert not policy.is_retryable_error(aiohttp.ClientConnectionError("refused"))
        assert not policy.is_retryable_error(OSError("unreachable"))
        assert RetryPolicy().is_retryable_error(aiohttp.ClientConnectionError("refused"))

    def test_per_call_overrides_keep_default_shape(self):
        client = FmcdClient(default_policy=RetryPolicy(backoff_multiplier=3.0, timeout_step=1.0))

        policy = client._policy(2, 0.5, 4.0)

        assert (policy.max_attempts, policy.base_delay, policy.base_timeout) == (2, 0.5, 4.0)
        assert policy.backoff_multiplier == 3.0
        assert policy.timeout_step == 1.0


# =============================================================================
# REQUEST OUTCOMES
# =============================================================================

class TestRequest:

    def test_success_builds_url_and_headers(self, scripted_client, daemon_config):
        """A GET to /v2/admin/info goes to base + endpoint with Basic auth."""
        client = scripted_client((200, {"fed1": {}}))

        outcome = asyncio.run(client.request("/v2/admin/info", daemon_config))

        assert outcome.ok
        assert outcome.status == 200
        assert outcome.data == {"fed1": {}}
        assert len(client.calls) == 1
        call = client.calls[0]
        assert call.method == "GET"
        assert call.url == "http://x/v2/admin/info"
        assert call.headers["Authorization"] == create_auth_header("secret")
        assert call.headers["Content-Type"] == "application/json"
        assert call.body is None
        assert call.timeout == 10.0

    def test_trailing_slash_does_not_double(self, scripted_client):
        client = scripted_client((200, {}))
        config = DaemonConfig(base_url="http://x/", password="pw")

        asyncio.run(client.request("/v2/admin/info", config))

        assert client.calls[0].url == "http://x/v2/admin/info"

    def test_invalid_base_url_fails_without_sending(self, scripted_client):
        """A bad URL produces the same error every time and never hits the network."""
        client = scripted_client()
        config = DaemonConfig(base_url="x.example.com", password="pw")

        first = asyncio.run(client.request("/v2/admin/info", config))
        second = asyncio.run(client.request("/v2/admin/info", config))

        assert not first.ok
        assert first.status == 500
        assert (first.status, first.error) == (second.status, second.error)
        assert client.calls == []

    def test_server_errors_retry_until_exhausted(self, scripted_client, daemon_config):
        """503 responses are retried exactly max_retries times with backoff."""
        client = scripted_client((503, "down"), (503, "down"), (503, "down"))

        outcome = asyncio.run(client.request("/v2/admin/info", daemon_config, max_retries=3))

        assert len(client.calls) == 3
        assert outcome.status == 503
        assert outcome.error == "FMCD error: 503 - down"
        assert client.sleeps == [1.0, 2.0]
        assert [c.timeout for c in client.calls] == [10.0, 15.0, 20.0]

    def test_recovers_after_server_error(self, scripted_client, daemon_config):
        client = scripted_client((500, "oops"), (200, {"ok": True}))

        outcome = asyncio.run(client.request("/v2/admin/info", daemon_config))

        assert outcome.ok
        assert outcome.data == {"ok": True}
        assert len(client.calls) == 2
        assert client.sleeps == [1.0]

    def test_custom_base_delay(self, scripted_client, daemon_config):
        client = scripted_client((502, ""), (502, ""), (502, ""))

        asyncio.run(client.request("/x", daemon_config, max_retries=3, base_delay=0.5))

        assert client.sleeps == [0.5, 1.0]

    def test_authentication_failure_is_not_retried(self, scripted_client, daemon_config):
        client = scripted_client((401, "unauthorized"))

        outcome = asyncio.run(client.request("/v2/admin/info", daemon_config, max_retries=3))

        assert len(client.calls) == 1
        assert outcome.status == 401
        assert outcome.error == "Authentication failed. Please check your FMCD password."

    def test_missing_endpoint_is_not_retried(self, scripted_client, daemon_config):
        client = scripted_client((404, "not found"))

        outcome = asyncio.run(client.request("/v2/admin/info", daemon_config, max_retries=3))

        assert len(client.calls) == 1
        assert outcome.status == 404
        assert outcome.error == (
            "Endpoint /v2/admin/info not found. Please check your FMCD version."
        )

    def test_client_errors_are_terminal(self, scripted_client, daemon_config):
        client = scripted_client((400, "bad request"))

        outcome = asyncio.run(client.request("/v2/ln/pay", daemon_config, method="POST"))

        assert len(client.calls) == 1
        assert outcome.status == 400
        assert outcome.error == "FMCD error: 400 - bad request"

    def test_invalid_json_is_bad_gateway(self, scripted_client, daemon_config):
        client = scripted_client((200, "<html>proxy</html>"))

        outcome = asyncio.run(client.request("/v2/admin/info", daemon_config))

        assert outcome.status == 502
        assert outcome.error == "Invalid response format from FMCD"

    def test_timeouts_exhaust_to_503(self, scripted_client, daemon_config):
        client = scripted_client(
            asyncio.TimeoutError(), asyncio.TimeoutError(), asyncio.TimeoutError()
        )

        outcome = asyncio.run(client.request("/v2/admin/info", daemon_config))

        assert len(client.calls) == 3
        assert outcome.status == 503
        assert outcome.error == "Connection timeout - FMCD instance may be unreachable"
        assert client.sleeps == [1.0, 2.0]

    def test_connection_errors_exhaust_to_503(self, scripted_client, daemon_config):
        client = scripted_client(
            aiohttp.ClientConnectionError("connection refused"),
            aiohttp.ClientConnectionError("connection refused"),
        )

        outcome = asyncio.run(client.request("/v2/admin/info", daemon_config, max_retries=2))

        assert len(client.calls) == 2
        assert outcome.status == 503
        assert outcome.error == "connection refused"

    def test_unstarted_client_reports_error(self, daemon_config):
        client = FmcdClient()

        outcome = asyncio.run(client.request("/v2/admin/info", daemon_config))

        assert outcome.status == 500
        assert "not initialized" in outcome.error


# =============================================================================
# ENDPOINT WRAPPERS
# =============================================================================

class TestEndpoints:

    def test_list_gateways(self, scripted_client, daemon_config):
        client = scripted_client((200, []))

        asyncio.run(client.list_gateways("fed1", daemon_config))

        call = client.calls[0]
        assert call.method == "POST"
        assert call.path == "/v2/ln/gateways"
        assert call.body == {"federationId": "fed1"}
        assert call.timeout == 5.0

    def test_list_gateways_uses_two_attempts(self, scripted_client, daemon_config):
        client = scripted_client((500, ""), (500, ""))

        outcome = asyncio.run(client.list_gateways("fed1", daemon_config))

        assert not outcome.ok
        assert len(client.calls) == 2

    def test_list_operations_sends_limit(self, scripted_client, daemon_config):
        client = scripted_client((200, {"operations": []}))

        asyncio.run(client.list_operations("fed1", daemon_config, 250, timeout=10.0))

        call = client.calls[0]
        assert call.path == "/v2/admin/operations"
        assert call.body == {"federationId": "fed1", "limit": 250}
        assert call.timeout == 10.0

    def test_onchain_address_without_federation(self, scripted_client, daemon_config):
        client = scripted_client((200, {"address": "bc1q"}))

        asyncio.run(client.create_onchain_address(daemon_config))

        assert client.calls[0].body == {}
        assert client.calls[0].timeout == 15.0

    def test_invoice_defaults_expiry(self, scripted_client, daemon_config):
        client = scripted_client((200, {}))

        asyncio.run(client.create_invoice(daemon_config, "fed1", 5000, "tip"))

        assert client.calls[0].body == {
            "federationId": "fed1",
            "amountMsat": 5000,
            "description": "tip",
            "expiryTime": 3600,
        }

    def test_pay_invoice_body(self, scripted_client, daemon_config):
        client = scripted_client((200, {}))

        asyncio.run(client.pay_invoice(daemon_config, "fed1", "lnbc1u1p", gateway_id="gw1"))

        assert client.calls[0].path == "/v2/ln/pay"
        assert client.calls[0].body == {
            "federationId": "fed1",
            "paymentInfo": "lnbc1u1p",
            "gatewayId": "gw1",
        }

    def test_join_trims_invite_code(self, scripted_client, daemon_config):
        client = scripted_client((200, {}))

        asyncio.run(client.join_federation(daemon_config, "  fed11invite  "))

        assert client.calls[0].body == {"inviteCode": "fed11invite"}
        assert client.calls[0].timeout == 30.0


# =============================================================================
# CONNECTION TEST
# =============================================================================

class TestCheckConnection:

    def test_success_counts_federations(self, scripted_client):
        client = scripted_client((200, {"version": "0.4.0", "fed1": {}, "fed2": {}}))

        result = asyncio.run(client.check_connection("http://x/", "pw"))

        assert result.is_connected
        assert result.version == "0.4.0"
        assert result.federation_count == 2
        assert client.calls[0].url == "http://x/v2/admin/info"

    def test_version_falls_back_to_unknown(self, scripted_client):
        client = scripted_client((200, {"fed1": {"network": "signet"}}))

        result = asyncio.run(client.check_connection("http://x", "pw"))

        assert result.version == "Unknown"
        assert result.federation_count == 1

    def test_invalid_url(self, scripted_client):
        client = scripted_client()

        result = asyncio.run(client.check_connection("localhost:7070", "pw"))

        assert not result.is_connected
        assert result.error == "Invalid URL format"
        assert client.calls == []

    def test_authentication_failure(self, scripted_client):
        client = scripted_client((401, ""))

        result = asyncio.run(client.check_connection("http://x", "wrong"))

        assert result.error == "Authentication failed"
        assert len(client.calls) == 1

    def test_missing_endpoint(self, scripted_client):
        client = scripted_client((404, ""))

        result = asyncio.run(client.check_connection("http://x", "pw"))

        assert result.error == "Endpoint not found"

    def test_timeout_retries_once(self, scripted_client):
        client = scripted_client(asyncio.TimeoutError(), asyncio.TimeoutError())

        result = asyncio.run(client.check_connection("http://x", "pw"))

        assert result.error == "Connection timeout"
        assert [c.timeout for c in client.calls] == [10.0, 15.0]
        assert client.sleeps == [1.0]

    def test_server_errors_pause_a_constant_second(self, scripted_client):
        client = scripted_client((503, "busy"), (503, "still busy"))

        result = asyncio.run(client.check_connection("http://x", "pw"))

        assert result.error == "HTTP 503"
        assert result.details == "still busy"
        assert len(client.calls) == 2
        assert client.sleeps == [1.0]

    def test_server_error_then_success(self, scripted_client):
        client = scripted_client((500, "busy"), (200, {"fed1": {}}))

        result = asyncio.run(client.check_connection("http://x", "pw"))

        assert result.is_connected
        assert client.sleeps == [1.0]

    def test_non_json(self, scripted_client):
        client = scripted_client((200, "hello"))

        result = asyncio.run(client.check_connection("http://x", "pw"))

        assert result.error == "Invalid response format"

    def test_connection_refused(self, scripted_client):
        client = scripted_client(aiohttp.ClientConnectionError("refused"))

        result = asyncio.run(client.check_connection("http://x", "pw"))

        assert result.error == "Connection failed"
        assert result.details == "refused"
        assert len(client.calls) == 1


# =============================================================================
# REAL HTTP
# =============================================================================

def test_round_trip_against_local_server():
    """The aiohttp transport talks to a real server end to end."""
    seen = {}

    async def info(request):
        seen["auth"] = request.headers.get("Authorization")
        return web.json_response({"fed1": {"totalAmountMsat": 1, "network": "regtest"}})

    async def run():
        app = web.Application()
        app.router.add_get("/v2/admin/info", info)
        server = TestServer(app)
        await server.start_server()
        try:
            async with FmcdClient() as client:
                config = DaemonConfig(base_url=str(server.make_url("/")), password="pw")
                return await client.get_info(config)
        finally:
            await server.close()

    outcome = asyncio.run(run())

    assert outcome.ok
    assert outcome.data["fed1"]["network"] == "regtest"
    assert seen["auth"] == create_auth_header("pw")
