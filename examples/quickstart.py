#!/usr/bin/env python3
"""
netkeeper Quickstart — full lifecycle in one script.

Bootstraps the admin → logs in → creates a network → creates an access key
→ consumes it until exhausted → deletes the network.
Run with: python examples/quickstart.py

Requires: pip install httpx
Server must be running: http://localhost:8081 (NETKEEPER_API_URL)
"""

import uuid

from _common import expect, master_client


def main():
    run_id = uuid.uuid4().hex[:6]
    client = master_client()

    # ── Admin bootstrap ───────────────────────────────────────────
    print("\n1. Bootstrapping the admin...")
    has_admin = expect(client.get("/users/adm/hasadmin"))
    if has_admin:
        print("   Admin already exists, skipping creation")
    else:
        admin = expect(client.post(
            "/users/adm/createadmin",
            json={"username": "admin", "password": "password"},
        ))
        print(f"   Admin: {admin['username']}")

    resp = client.post(
        "/users/adm/authenticate",
        json={"username": "admin", "password": "password"},
    )
    if resp.status_code == 200:
        token = resp.json()["Response"]["AuthToken"]
        print(f"   Token: {token[:24]}...")
    else:
        print(f"   Login failed ({resp.status_code}); existing admin has another password")

    # ── Network ───────────────────────────────────────────────────
    netid = f"demo-{run_id}"
    print("\n2. Creating network...")
    network = expect(client.post(
        "/networks",
        json={"netid": netid, "addressrange": "10.71.0.0/16"},
    ))
    print(f"   Network: {network['netid']} ({network['addressrange']})")

    # ── Access key ────────────────────────────────────────────────
    print("\n3. Creating a 3-use access key...")
    key = expect(client.post(f"/networks/{netid}/keys", json={"name": "nodes", "uses": 3}))
    print(f"   Key: {key['name']} ({key['uses']} uses)")

    # ── Enroll until exhausted ────────────────────────────────────
    print("\n4. Consuming the key...")
    for i in range(4):
        resp = client.post(
            f"/networks/{netid}/keys/nodes/consume",
            json={"attempt_id": f"{run_id}-node-{i}"},
        )
        if resp.status_code == 200:
            result = resp.json()["Response"]
            print(f"   node-{i}: enrolled, {result['uses']} uses left")
        else:
            print(f"   node-{i}: {resp.status_code} {resp.json()['Message']}")

    # ── Retry is free ─────────────────────────────────────────────
    print("\n5. Retrying node-0's attempt (no use spent)...")
    result = expect(client.post(
        f"/networks/{netid}/keys/nodes/consume",
        json={"attempt_id": f"{run_id}-node-0"},
    ))["Response"]
    print(f"   replayed={result['replayed']}, {result['uses']} uses left")

    # ── Cleanup ───────────────────────────────────────────────────
    print("\n6. Deleting the network (and its keys)...")
    body = expect(client.delete(f"/networks/{netid}"))
    print(f"   {body['Message']}")

    print("\nDone.")


if __name__ == "__main__":
    main()
