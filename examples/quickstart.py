#!/usr/bin/env python3
"""
msgqueue Quickstart — log in, publish, and tail the queue with a cursor.

Run with: python examples/quickstart.py alice pw1

Requires: pip install httpx
Server must be running: msgqueue serve   (http://localhost:8080)
and the user must exist:  msgqueue create-user alice --password pw1
"""

import json
import sys
import time

import httpx

BASE = "http://localhost:8080/api/v1"


def main():
    if len(sys.argv) != 3:
        print("usage: quickstart.py USERNAME PASSWORD")
        sys.exit(2)
    username, password = sys.argv[1:]
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Health check ──────────────────────────────────────────────
    print("Checking server health...")
    try:
        resp = client.get("/health")
    except httpx.ConnectError:
        print(f"Server not reachable at {BASE}")
        sys.exit(1)
    health = resp.json()
    print(f"  Status:   {health['status']}")
    print(f"  Database: {health['database']}")

    # ── Login ─────────────────────────────────────────────────────
    print("\n1. Logging in...")
    resp = client.post("/auth/login", json={"username": username, "password": password})
    if resp.status_code != 200:
        print(f"   Login failed: {resp.status_code} {resp.text}")
        sys.exit(1)
    api_key = resp.json()["api_key"]
    client.headers["Authorization"] = f"Bearer {api_key}"
    print(f"   Key: {api_key[:8]}... (any earlier key for {username} is now dead)")

    # ── Publish ───────────────────────────────────────────────────
    print("\n2. Publishing messages...")
    for i in range(3):
        doc = {"event": "demo", "seq": i, "sent_at": time.time()}
        resp = client.post("/messages", json={"content": json.dumps(doc)})
        assert resp.status_code == 201, f"Failed: {resp.text}"
        print(f"   #{resp.json()['id']}: {doc}")

    resp = client.post("/messages", json={"content": "not json"})
    print(f"   Invalid JSON rejected: {resp.status_code} {resp.json()['detail']}")

    # ── Tail with a cursor ────────────────────────────────────────
    print("\n3. Reading everything, two at a time...")
    cursor = 0
    while True:
        resp = client.get("/messages", params={"after_id": cursor, "limit": 2})
        page = resp.json()
        if not page:
            break
        for msg in page:
            print(f"   #{msg['id']} @ {msg['timestamp']}: {msg['content']}")
        cursor = page[-1]["id"]
    print(f"   Cursor now at {cursor}; pass it as after_id to pick up only new messages.")

    # ── Purge needs admin ─────────────────────────────────────────
    print("\n4. Trying a purge with a user key...")
    resp = client.delete("/messages", params={"days": 30})
    print(f"   {resp.status_code} {resp.json()['detail']} (issue an admin key with `msgqueue issue-key {username} --role admin`)")

    # ── Logout ────────────────────────────────────────────────────
    print("\n5. Logging out...")
    resp = client.post("/auth/logout")
    print(f"   {resp.json()}")
    resp = client.get("/auth/me")
    print(f"   Key after logout: {resp.status_code}")


if __name__ == "__main__":
    main()
