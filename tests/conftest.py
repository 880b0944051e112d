"""Shared fixtures: a scripted FMCD transport, identities and an API client."""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from config import DashboardConfig
from core.types import DaemonConfig
from dashboard import Dashboard
from fmcd.client import FmcdClient
from identity import IdentityProvider


# =============================================================================
# FAKE FMCD TRANSPORT
# =============================================================================

@dataclass
class SentRequest:
    """One HTTP exchange as seen by the transport."""
    method: str
    url: str
    headers: Dict[str, str]
    body: Optional[Dict[str, Any]]
    timeout: float

    @property
    def path(self) -> str:
        return urlparse(self.url).path


class ScriptedClient(FmcdClient):
    """FmcdClient whose transport is a Python callable instead of HTTP.

    The handler receives ``(method, url, body)`` and returns ``(status, data)``
    or an exception instance to raise. Non-string data is JSON encoded.
    Sleeps are recorded instead of waited.
    """

    def __init__(self, handler, **kwargs):
        self.sleeps: List[float] = []

        async def record_sleep(delay: float) -> None:
            self.sleeps.append(delay)

        super().__init__(sleep=record_sleep, **kwargs)
        self.handler = handler
        self.calls: List[SentRequest] = []

    async def _send(self, method, url, headers, body, timeout):
        payload = json.loads(body) if body else None
        self.calls.append(SentRequest(method, url, dict(headers), payload, timeout))

        result = self.handler(method, url, payload)
        if isinstance(result, BaseException):
            raise result

        status, data = result
        text = data if isinstance(data, str) else json.dumps(data)
        return status, text


def sequence(*responses):
    """Handler that answers with ``responses`` in order."""
    remaining = list(responses)

    def handler(method, url, body):
        return remaining.pop(0)

    return handler


def gateway_record(gateway_id: str, vetted: bool = True) -> Dict[str, Any]:
    return {
        "info": {
            "gateway_id": gateway_id,
            "node_pub_key": f"02{gateway_id}",
            "api": f"https://{gateway_id}.example.com",
            "fees": {"base_msat": 1000, "proportional_millionths": 100},
            "lightning_alias": gateway_id.upper(),
            "mint_channel_id": 7,
            "supports_private_payments": True,
        },
        "vetted": vetted,
    }


def operation(
    op_id: str,
    created: str,
    kind: str,
    variant: Dict[str, Any],
    outcome: Any = None,
    **meta: Any,
) -> Dict[str, Any]:
    return {
        "id": op_id,
        "creationTime": created,
        "operationKind": kind,
        "operationMeta": dict(meta, variant=variant),
        "outcome": outcome,
    }


class FakeFmcd:
    """In-memory FMCD daemon with two federations.

    ``failures`` maps ``(path, federation_id)`` to a response (or exception)
    returned instead of the normal one.
    """

    def __init__(self):
        self.info: Any = {
            "fed1": {
                "totalAmountMsat": 1000,
                "network": "regtest",
                "meta": {"federation_name": "Alpha"},
            },
            "fed2": {"totalAmountMsat": 2000, "network": "regtest"},
        }
        self.gateways = {
            "fed1": [gateway_record("gw1"), gateway_record("gw2", vetted=False)],
            "fed2": [gateway_record("gw3")],
        }
        self.balances: Dict[str, Any] = {"fed1": {"balance_msat": 5000}, "fed2": 7000}
        self.operations: Dict[str, List[Dict[str, Any]]] = {
            "fed1": [
                operation("op1", "2024-01-03T12:00:00Z", "ln",
                          {"receive": {"invoice": "lnbc10u1pexample"}}, "claimed",
                          description="Coffee"),
                operation("op2", "2024-01-01T12:00:00Z", "wallet",
                          {"deposit": {"address": "bc1qdeposit"}},
                          {"Claimed": {"btc_deposited": 50000}}),
                operation("op3", "2024-01-05T12:00:00Z", "ln",
                          {"pay": {"invoice": "lnbc2500n1pexample"}}, {"Failed": {}}),
            ],
            "fed2": [
                operation("op4", "2024-01-04T12:00:00Z", "wallet",
                          {"withdraw": {"address": "bc1qwithdraw", "amount_sat": 2000}},
                          "success"),
                operation("op5", "2024-01-02T12:00:00Z", "mint", {}, "success"),
            ],
        }
        self.failures: Dict[Any, Any] = {}

    def __call__(self, method, url, body):
        path = urlparse(url).path
        federation_id = (body or {}).get("federationId")

        failure = self.failures.get((path, federation_id))
        if failure is not None:
            return failure

        if path == "/v2/admin/info":
            return 200, self.info
        if path == "/v2/ln/gateways":
            return 200, self.gateways.get(federation_id, [])
        if path == "/v2/fedimint/balance":
            return 200, self.balances.get(federation_id, {})
        if path == "/v2/admin/operations":
            return 200, {"operations": self.operations.get(federation_id, [])}
        if path == "/v2/onchain/address":
            return 200, {"address": "bc1qnewaddress", "operationId": "op-address"}
        if path == "/v2/ln/invoice":
            return 200, {"operationId": "op-invoice", "invoice": "lnbc1u1pnew"}
        if path == "/v2/ln/pay":
            return 200, {"operationId": "op-pay", "preimage": "00" * 32}
        if path == "/v2/admin/join":
            return 200, {"thisFederationId": "fed3"}
        return 404, "not found"


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def daemon_config():
    """Team FMCD settings pointing at a fake host."""
    return DaemonConfig(base_url="http://x", password="secret", team_id="acme")


@pytest.fixture
def scripted_client():
    """Factory for a client answering with a fixed sequence of responses."""
    def make(*responses, **kwargs):
        return ScriptedClient(sequence(*responses), **kwargs)
    return make


@pytest.fixture
def fake_fmcd():
    return FakeFmcd()


@pytest.fixture
def fmcd_client(fake_fmcd):
    return ScriptedClient(fake_fmcd)


@pytest.fixture
def identity():
    """alice and dave administer acme, bob is a plain member, carol is an outsider."""
    return IdentityProvider.from_dict({
        "users": {
            "alice": {"token": "alice-token", "display_name": "Alice"},
            "bob": {"token": "bob-token"},
            "carol": {"token": "carol-token"},
            "dave": {"token": "dave-token"},
        },
        "teams": {
            "acme": {
                "name": "Acme",
                "members": {"alice": ["team_admin"], "bob": [], "dave": ["team_admin"]},
            },
            "other": {"name": "Other", "members": {"carol": ["team_admin"]}},
        },
    })


@pytest.fixture
def dashboard(tmp_path, identity, fmcd_client):
    config = DashboardConfig(
        database_path=str(tmp_path / "dashboard.db"),
        identity_file=str(tmp_path / "identity.toml"),
    )
    return Dashboard(config, identity=identity, client=fmcd_client)


@pytest.fixture
def auth():
    """Build Authorization headers for a user name."""
    def headers(user: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {user}-token"}
    return headers


@pytest.fixture
def api(dashboard):
    """TestClient running the app lifespan around the test dashboard."""
    with TestClient(create_app(dashboard)) as client:
        yield client


@pytest.fixture
def configured_api(api, auth):
    """API client for a team whose FMCD settings are already saved."""
    response = api.post(
        "/api/team/acme/fmcd/config",
        json={"base_url": "http://fmcd.local:7070/", "password": "secret"},
        headers=auth("alice"),
    )
    assert response.status_code == 200
    return api
