"""
Shared helpers for netkeeper examples.

Checks the server, and builds clients authenticated with the master key
so each example can focus on its specific workflow.
"""

import os
import sys

import httpx

BASE = os.environ.get("NETKEEPER_API_URL", "http://localhost:8081").rstrip("/") + "/api"
MASTER_KEY = os.environ.get("NETKEEPER_MASTER_KEY", "secretkey")


def check_backend() -> None:
    """Verify the server is reachable and its database is up."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Server not reachable at {BASE}")
        print("Start it with:  uvicorn netkeeper.main:app --port 8081")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"ERROR: Health check returned {resp.status_code}")
        sys.exit(1)

    health = resp.json()
    print("Server health:")
    print(f"  Database: {'✓' if health['database'] == 'ok' else '✗'}")
    print(f"  Redis:    {'✓' if health['redis'] == 'ok' else '✗ (rate limiting off)'}")

    if health["database"] != "ok":
        print("\nERROR: Database is not reachable. Check NETKEEPER_DATABASE_URL.")
        sys.exit(1)


def master_client() -> httpx.Client:
    """Check the server and return a Client that sends the master key."""
    check_backend()
    return httpx.Client(
        base_url=BASE,
        timeout=10,
        headers={"Authorization": f"Bearer {MASTER_KEY}"},
    )


def expect(resp: httpx.Response, status: int = 200):
    """Return the JSON body, or print the error envelope and exit."""
    if resp.status_code != status:
        print(f"ERROR: {resp.request.method} {resp.request.url.path} "
              f"returned {resp.status_code}: {resp.text}")
        sys.exit(1)
    return resp.json()
