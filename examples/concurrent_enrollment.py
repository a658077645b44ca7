#!/usr/bin/env python3
"""
Concurrent enrollment — many nodes race for a bounded access key.

Creates a key with 10 uses and fires 15 consumptions at once. Exactly 10
succeed and 5 get 410 Gone, however many server processes are running.
Run with: python examples/concurrent_enrollment.py

Requires: pip install httpx
"""

import asyncio
import uuid
from collections import Counter

import httpx

from _common import BASE, MASTER_KEY, expect, master_client

USES = 10
NODES = 15


async def enroll(client: httpx.AsyncClient, netid: str, node: int) -> int:
    resp = await client.post(
        f"/networks/{netid}/keys/fleet/consume",
        json={"attempt_id": f"{netid}-node-{node}"},
    )
    return resp.status_code


async def race(netid: str) -> Counter:
    async with httpx.AsyncClient(
        base_url=BASE,
        timeout=30,
        headers={"Authorization": f"Bearer {MASTER_KEY}"},
    ) as client:
        codes = await asyncio.gather(*(enroll(client, netid, i) for i in range(NODES)))
    return Counter(codes)


def main():
    netid = f"race-{uuid.uuid4().hex[:6]}"
    client = master_client()

    expect(client.post("/networks", json={"netid": netid, "addressrange": "10.72.0.0/16"}))
    expect(client.post(f"/networks/{netid}/keys", json={"name": "fleet", "uses": USES}))
    print(f"\nNetwork {netid}: key 'fleet' with {USES} uses, {NODES} nodes racing...")

    codes = asyncio.run(race(netid))
    print(f"   200 OK:   {codes[200]}")
    print(f"   410 Gone: {codes[410]}")

    key = expect(client.get(f"/networks/{netid}/keys/fleet"))
    print(f"   Uses left: {key['uses']}")

    expect(client.delete(f"/networks/{netid}"))
    assert codes[200] == USES and key["uses"] == 0, "key was overspent"
    print("\nNo overspend.")


if __name__ == "__main__":
    main()
