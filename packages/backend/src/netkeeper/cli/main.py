"""netkeeper CLI — manage the admin, networks and access keys of a running server.

Usage:
    netkeeper hasadmin                              # Is an admin configured?
    netkeeper create-admin admin                    # Prompt for password, create admin
    netkeeper login admin                           # Print an admin access token
    netkeeper delete-admin admin                    # Remove the admin
    netkeeper networks                              # List networks
    netkeeper create-network skynet 10.71.0.0/16    # Register a network
    netkeeper delete-network skynet                 # Delete a network and its keys
    netkeeper keys skynet                           # List access keys
    netkeeper create-key skynet --name k1 --uses 10
    netkeeper delete-key skynet k1
    netkeeper consume skynet k1 --attempt-id abc    # Spend one use, print the value

The master key comes from --master-key or NETKEEPER_MASTER_KEY.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from netkeeper import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8081"


def _api_url() -> str:
    return os.environ.get("NETKEEPER_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(credential: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the netkeeper server."""
    headers = {"Authorization": f"Bearer {credential}"} if credential else {}
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0, headers=headers)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles nested event loops (e.g. when invoked via CliRunner inside an
    async test) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "—"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _check(r: httpx.Response) -> dict | list | bool:
    """Return the JSON body, or print the error envelope and exit 1."""
    try:
        body = r.json()
    except ValueError:
        body = None
    if r.is_success:
        return body
    message = body.get("Message") if isinstance(body, dict) else None
    click.secho(f"Error ({r.status_code}): {message or r.text}", fg="red", err=True)
    sys.exit(1)


master_key_option = click.option(
    "--master-key",
    envvar="NETKEEPER_MASTER_KEY",
    required=True,
    help="Superuser capability (or set NETKEEPER_MASTER_KEY)",
)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="netkeeper")
def main():
    """netkeeper — admin, network and access key management."""


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@main.command()
def hasadmin():
    """Report whether an admin exists."""
    _run(_hasadmin_impl())


async def _hasadmin_impl():
    async with _client() as c:
        exists = _check(await c.get("/api/users/adm/hasadmin"))
    click.echo("yes" if exists else "no")


@main.command("create-admin")
@click.argument("username")
@click.password_option()
@master_key_option
def create_admin(username: str, password: str, master_key: str):
    """Create the admin account (only one may exist)."""
    _run(_create_admin_impl(username, password, master_key))


async def _create_admin_impl(username: str, password: str, master_key: str):
    async with _client(master_key) as c:
        body = _check(await c.post(
            "/api/users/adm/createadmin",
            json={"username": username, "password": password},
        ))
    click.secho(f"Admin {body['username']} created", fg="green")


@main.command()
@click.argument("username")
@click.password_option(confirmation_prompt=False)
@master_key_option
def login(username: str, password: str, master_key: str):
    """Authenticate as the admin and print the access token."""
    _run(_login_impl(username, password, master_key))


async def _login_impl(username: str, password: str, master_key: str):
    async with _client(master_key) as c:
        body = _check(await c.post(
            "/api/users/adm/authenticate",
            json={"username": username, "password": password},
        ))
    click.echo(body["Response"]["AuthToken"])


@main.command("delete-admin")
@click.argument("username")
@click.option("--token", envvar="NETKEEPER_TOKEN", help="Admin token (instead of the master key)")
@click.option("--master-key", envvar="NETKEEPER_MASTER_KEY", help="Superuser capability")
def delete_admin(username: str, token: Optional[str], master_key: Optional[str]):
    """Delete the admin account."""
    credential = token or master_key
    if not credential:
        click.secho("Error: --token or --master-key required", fg="red", err=True)
        sys.exit(1)
    _run(_delete_admin_impl(username, credential))


async def _delete_admin_impl(username: str, credential: str):
    async with _client(credential) as c:
        body = _check(await c.delete(f"/api/users/{username}"))
    click.secho(body["Message"], fg="green")


# ---------------------------------------------------------------------------
# Networks
# ---------------------------------------------------------------------------


@main.command()
@master_key_option
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def networks(master_key: str, as_json: bool):
    """List networks."""
    _run(_networks_impl(master_key, as_json))


async def _networks_impl(master_key: str, as_json: bool):
    async with _client(master_key) as c:
        rows = _check(await c.get("/api/networks"))
    if as_json:
        click.echo(_pretty_json(rows))
        return
    if not rows:
        click.echo("No networks.")
        return
    _print_table(rows, [("NETID", "netid", 32), ("ADDRESS RANGE", "addressrange", 43)])


@main.command("create-network")
@click.argument("netid")
@click.argument("addressrange")
@master_key_option
def create_network(netid: str, addressrange: str, master_key: str):
    """Register a network, e.g. `create-network skynet 10.71.0.0/16`."""
    _run(_create_network_impl(netid, addressrange, master_key))


async def _create_network_impl(netid: str, addressrange: str, master_key: str):
    async with _client(master_key) as c:
        body = _check(await c.post(
            "/api/networks",
            json={"netid": netid, "addressrange": addressrange},
        ))
    click.secho(f"Network {body['netid']} ({body['addressrange']}) created", fg="green")


@main.command("delete-network")
@click.argument("netid")
@master_key_option
@click.confirmation_option(prompt="Delete the network and all of its access keys?")
def delete_network(netid: str, master_key: str):
    """Delete a network and every access key in it."""
    _run(_delete_network_impl(netid, master_key))


async def _delete_network_impl(netid: str, master_key: str):
    async with _client(master_key) as c:
        body = _check(await c.delete(f"/api/networks/{netid}"))
    click.secho(body["Message"], fg="green")


# ---------------------------------------------------------------------------
# Access keys
# ---------------------------------------------------------------------------


@main.command()
@click.argument("netid")
@master_key_option
@click.option("--show-values", is_flag=True, help="Print key values too")
def keys(netid: str, master_key: str, show_values: bool):
    """List access keys in a network."""
    _run(_keys_impl(netid, master_key, show_values))


async def _keys_impl(netid: str, master_key: str, show_values: bool):
    async with _client(master_key) as c:
        rows = _check(await c.get(f"/api/networks/{netid}/keys"))
    if not rows:
        click.echo(f"No access keys in {netid}.")
        return
    columns = [("NAME", "name", 24), ("USES LEFT", "uses", 10)]
    if show_values:
        columns.append(("VALUE", "value", 48))
    _print_table(rows, columns)


@main.command("create-key")
@click.argument("netid")
@click.option("--name", "-n", help="Key name (generated if omitted)")
@click.option("--uses", "-u", type=int, default=1, show_default=True, help="Number of enrollments")
@master_key_option
def create_key(netid: str, name: Optional[str], uses: int, master_key: str):
    """Create an access key in a network and print its value."""
    _run(_create_key_impl(netid, name, uses, master_key))


async def _create_key_impl(netid: str, name: Optional[str], uses: int, master_key: str):
    payload: dict = {"uses": uses}
    if name:
        payload["name"] = name
    async with _client(master_key) as c:
        body = _check(await c.post(f"/api/networks/{netid}/keys", json=payload))
    click.secho(f"Access key {body['name']} created ({body['uses']} uses)", fg="green")
    click.echo(body["value"])


@main.command("delete-key")
@click.argument("netid")
@click.argument("name")
@master_key_option
def delete_key(netid: str, name: str, master_key: str):
    """Delete an access key."""
    _run(_delete_key_impl(netid, name, master_key))


async def _delete_key_impl(netid: str, name: str, master_key: str):
    async with _client(master_key) as c:
        body = _check(await c.delete(f"/api/networks/{netid}/keys/{name}"))
    click.secho(body["Message"], fg="green")


@main.command()
@click.argument("netid")
@click.argument("name")
@click.option("--attempt-id", help="Idempotency key; reuse it when retrying")
@master_key_option
def consume(netid: str, name: str, attempt_id: Optional[str], master_key: str):
    """Spend one use of an access key and print its value."""
    _run(_consume_impl(netid, name, attempt_id, master_key))


async def _consume_impl(netid: str, name: str, attempt_id: Optional[str], master_key: str):
    payload = {"attempt_id": attempt_id} if attempt_id else None
    async with _client(master_key) as c:
        body = _check(await c.post(
            f"/api/networks/{netid}/keys/{name}/consume",
            json=payload,
        ))
    result = body["Response"]
    click.echo(result["value"])
    click.secho(f"{result['uses']} uses left", fg="yellow", err=True)


if __name__ == "__main__":
    main()
