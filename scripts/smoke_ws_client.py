#!/usr/bin/env python3
"""Smoke test: two clients join one group over /ws/groups and exchange a message.

Usage:
    python scripts/smoke_ws_client.py --group <group_id> --sender <user_id> --peer <user_id>
    python scripts/smoke_ws_client.py --url ws://localhost:8000/ws/groups --timeout 30

Both users must already be members (POST /api/groups/join) and the
backend must have Supabase configured.
"""
import argparse
import asyncio
import json
import sys

import websockets

PASS = 0
FAIL = 0
WARN = 0


def ok(msg):
    global PASS
    PASS += 1
    print(f"  [PASS] {msg}")


def fail(msg):
    global FAIL
    FAIL += 1
    print(f"  [FAIL] {msg}")


def warn(msg):
    global WARN
    WARN += 1
    print(f"  [WARN] {msg}")


async def recv_json(ws, timeout):
    return json.loads(await asyncio.wait_for(ws.recv(), timeout=timeout))


async def connect(ws_url, user_id):
    url = f"{ws_url}?user_id={user_id}"
    print(f"\nConnecting {user_id} to {ws_url}...")
    try:
        ws = await asyncio.wait_for(websockets.connect(url), timeout=5.0)
    except Exception as e:
        fail(f"Could not connect {user_id}: {e}")
        return None

    msg = await recv_json(ws, 5.0)
    if msg.get("type") == "group_state" and msg.get("state") == "unselected":
        ok(f"{user_id} connected (state=unselected)")
    else:
        fail(f"Expected group_state unselected, got {msg}")
    return ws


async def open_group(ws, user_id, group_id, timeout):
    await ws.send(json.dumps({"type": "select_group", "group_id": group_id}))
    seen = []
    while True:
        try:
            msg = await recv_json(ws, timeout)
        except asyncio.TimeoutError:
            fail(f"{user_id}: timed out opening group")
            return False
        seen.append(msg.get("type"))
        if msg.get("type") == "group_messages":
            print(f"  [RECV] {user_id}: {len(msg.get('messages', []))} message(s) of history")
        if msg.get("type") == "error":
            fail(f"{user_id}: {msg.get('message')}")
            return False
        if msg.get("type") == "group_state" and msg.get("state") == "active":
            ok(f"{user_id} opened group {group_id}")
            return True


async def exchange(sender, peer, timeout):
    text = "smoke test: halo dari script"
    await sender.send(json.dumps({"type": "send_message", "text": text}))

    try:
        confirmation = await recv_json(sender, timeout)
    except asyncio.TimeoutError:
        fail("Sender got no confirmation")
        return
    if confirmation.get("type") == "message_sent":
        ok(f"Sender confirmed message {confirmation['message']['id']}")
    else:
        fail(f"Expected message_sent, got {confirmation}")
        return

    try:
        update = await recv_json(peer, timeout)
    except asyncio.TimeoutError:
        fail("Peer never received the message")
        return
    if update.get("type") == "new_message" and update["message"]["id"] == confirmation["message"]["id"]:
        ok(f"Peer received: {update['message']['text']}")
    else:
        fail(f"Unexpected peer message: {json.dumps(update)[:150]}")

    try:
        echo = await recv_json(sender, 2.0)
        warn(f"Sender got an extra message (echo?): {echo.get('type')}")
    except asyncio.TimeoutError:
        ok("No echo to sender")


async def main(ws_url, group_id, sender_id, peer_id, timeout):
    print("=" * 50)
    print("  AICAMPUS Peer Connect Smoke Test")
    print("=" * 50)

    sender = await connect(ws_url, sender_id)
    peer = await connect(ws_url, peer_id)
    if sender is None or peer is None:
        print(f"\nResults: {PASS} passed, {FAIL} failed, {WARN} warnings")
        sys.exit(1)

    try:
        if await open_group(sender, sender_id, group_id, timeout) and \
                await open_group(peer, peer_id, group_id, timeout):
            await exchange(sender, peer, timeout)
    finally:
        await sender.close()
        await peer.close()

    print("\n" + "=" * 50)
    print(f"  Results: {PASS} passed, {FAIL} failed, {WARN} warnings")
    print("=" * 50)

    sys.exit(1 if FAIL > 0 else 0)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="AICAMPUS group chat smoke test")
    parser.add_argument("--url", default="ws://localhost:8000/ws/groups", help="WebSocket URL")
    parser.add_argument("--group", required=True, help="Group id both users belong to")
    parser.add_argument("--sender", required=True, help="User id that sends the message")
    parser.add_argument("--peer", required=True, help="User id that should receive it")
    parser.add_argument("--timeout", type=int, default=10, help="Response timeout in seconds")
    args = parser.parse_args()
    asyncio.run(main(args.url, args.group, args.sender, args.peer, args.timeout))
