"""CLI tests — commands run against a mocked HTTP server."""

import json

import httpx
import pytest
from click.testing import CliRunner

from netkeeper.cli import main as cli


@pytest.fixture
def server(monkeypatch):
    """Install a fake API. Returns the list of captured requests."""
    calls = []
    routes = {}

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        status, body = routes[(request.method, request.url.path)]
        return httpx.Response(status, json=body)

    def fake_client(credential=None):
        headers = {"Authorization": f"Bearer {credential}"} if credential else {}
        return httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            base_url="http://netkeeper.test",
            headers=headers,
        )

    monkeypatch.setattr(cli, "_client", fake_client)
    monkeypatch.setenv("NETKEEPER_MASTER_KEY", "cli-master-key")
    return routes, calls


def _error(code, message, kind):
    return {"Code": code, "Message": message, "Response": {"kind": kind, "retryable": False}}


def test_hasadmin(server):
    routes, _ = server
    routes[("GET", "/api/users/adm/hasadmin")] = (200, False)

    result = CliRunner().invoke(cli.main, ["hasadmin"])
    assert result.exit_code == 0
    assert result.output.strip() == "no"


def test_create_network_sends_master_key(server):
    routes, calls = server
    routes[("POST", "/api/networks")] = (200, {"netid": "skynet", "addressrange": "10.71.0.0/16"})

    result = CliRunner().invoke(cli.main, ["create-network", "skynet", "10.71.0.0/16"])
    assert result.exit_code == 0
    assert "skynet" in result.output
    assert calls[0].headers["authorization"] == "Bearer cli-master-key"
    assert json.loads(calls[0].content) == {"netid": "skynet", "addressrange": "10.71.0.0/16"}


def test_networks_table(server):
    routes, _ = server
    routes[("GET", "/api/networks")] = (
        200,
        [{"netid": "skynet", "addressrange": "10.71.0.0/16"}],
    )

    result = CliRunner().invoke(cli.main, ["networks"])
    assert result.exit_code == 0
    assert "NETID" in result.output
    assert "10.71.0.0/16" in result.output


def test_create_key_prints_value(server):
    routes, calls = server
    routes[("POST", "/api/networks/skynet/keys")] = (
        200,
        {"name": "k1", "network": "skynet", "uses": 10, "value": "secret-value"},
    )

    result = CliRunner().invoke(
        cli.main, ["create-key", "skynet", "--name", "k1", "--uses", "10"]
    )
    assert result.exit_code == 0
    assert "secret-value" in result.output
    assert json.loads(calls[0].content) == {"name": "k1", "uses": 10}


def test_consume_with_attempt_id(server):
    routes, calls = server
    routes[("POST", "/api/networks/skynet/keys/k1/consume")] = (
        200,
        {
            "Code": 200,
            "Message": "Access key consumed",
            "Response": {
                "name": "k1", "network": "skynet", "value": "secret-value",
                "uses": 9, "replayed": False,
            },
        },
    )

    result = CliRunner().invoke(
        cli.main, ["consume", "skynet", "k1", "--attempt-id", "node-1"]
    )
    assert result.exit_code == 0
    assert "secret-value" in result.output
    assert json.loads(calls[0].content) == {"attempt_id": "node-1"}


def test_error_envelope_exits_nonzero(server):
    routes, _ = server
    routes[("POST", "/api/networks/skynet/keys/k1/consume")] = (
        410, _error(410, "Access key k1 has no uses remaining", "exhausted"),
    )

    result = CliRunner().invoke(cli.main, ["consume", "skynet", "k1"])
    assert result.exit_code == 1
    assert "no uses remaining" in result.output


def test_delete_admin_requires_a_credential(server, monkeypatch):
    monkeypatch.delenv("NETKEEPER_MASTER_KEY")
    monkeypatch.delenv("NETKEEPER_TOKEN", raising=False)

    result = CliRunner().invoke(cli.main, ["delete-admin", "admin"])
    assert result.exit_code == 1


def test_delete_network_confirmed(server):
    routes, _ = server
    routes[("DELETE", "/api/networks/skynet")] = (
        200, {"Code": 200, "Message": "Network skynet deleted", "Response": None},
    )

    result = CliRunner().invoke(cli.main, ["delete-network", "skynet", "--yes"])
    assert result.exit_code == 0
    assert "Network skynet deleted" in result.output
