import asyncio
import json
import os

import httpx
import websockets

# Configuration
BASE_URL = os.getenv("AICAMPUS_BASE_URL", "http://localhost:8000")
WS_URL = BASE_URL.replace("http", "ws", 1) + "/ws/groups"

REQUIRED_FILES = [
    "aicampus/__init__.py",
    "aicampus/main.py",
    "aicampus/chat_service.py",
    "aicampus/campus_config.py",
    "aicampus/constants.py",
    "aicampus/errors.py",
    "aicampus/llm_provider.py",
    "aicampus/supabase_client.py",
    "aicampus/events_service.py",
    "aicampus/interests.py",
    "aicampus/membership.py",
    "aicampus/group_chat.py",
    "aicampus/live_updates.py",
    "aicampus/profile_store.py",
    "aicampus/task_assistant.py",
    "aicampus/tasks_service.py",
    "aicampus/data/events_catalog.json",
    ".env",
]


def log(msg):
    print(msg)


def check_files():
    log("--- 1. File Structure Check ---")
    missing = []
    for f in REQUIRED_FILES:
        if os.path.exists(f):
            log(f"✅ Found {f}")
        else:
            log(f"❌ MISSING {f}")
            missing.append(f)
    return len(missing) == 0


async def check_api():
    log("\n--- 2. REST API Check ---")
    async with httpx.AsyncClient(base_url=BASE_URL, timeout=30.0) as client:
        # Health
        try:
            r = await client.get("/health")
            if r.status_code == 200:
                data = r.json()
                llm = ", ".join(f"{k}={'set' if v['configured'] else 'NOT SET'}" for k, v in data["llm"].items())
                log(f"✅ /health: OK ({llm}, database={data.get('database')})")
            else:
                log(f"❌ /health: Failed ({r.status_code})")
                return False
        except httpx.HTTPError as e:
            log(f"❌ Server unreachable: {e}")
            return False

        # Event catalog
        r = await client.get("/api/events")
        if r.status_code == 200 and isinstance(r.json().get("events"), list):
            log(f"✅ /api/events: OK ({r.json()['total']} events)")
        else:
            log("❌ /api/events: Failed")

        # Recommendation (AI or tag fallback)
        r = await client.post("/api/events", json={"interests": ["teknologi"]})
        if r.status_code == 200:
            data = r.json()
            log(f"✅ POST /api/events: {data['matchedEvents']} match(es) via {data['source']}")
        else:
            log(f"❌ POST /api/events: {r.status_code} {r.text[:100]}")

        # Validation short-circuits before any model call
        r = await client.post("/api/chat/general", json={"message": ""})
        if r.status_code == 400:
            log("✅ /api/chat/general rejects empty message")
        else:
            log(f"❌ /api/chat/general: expected 400, got {r.status_code}")

        # Chat
        r = await client.post("/api/chat/general", json={"message": "Halo!", "history": []})
        if r.status_code == 200:
            log(f"✅ /api/chat/general: {r.json()['response'][:50]}...")
        else:
            log(f"❌ /api/chat/general: {r.json().get('error')}")

        # Static data
        r = await client.get("/api/campuses")
        if r.status_code == 200:
            log(f"✅ /api/campuses: OK ({r.json()['campuses'][0]['short']})")
        else:
            log("❌ /api/campuses: Failed")

        r = await client.get("/api/interests")
        if r.status_code == 200:
            log(f"✅ /api/interests: OK ({len(r.json()['interests'])} tags)")
        else:
            log("❌ /api/interests: Failed")

    return True


async def check_ws():
    log("\n--- 3. WebSocket Check ---")
    try:
        async with websockets.connect(f"{WS_URL}?user_id=verify-script", open_timeout=5) as ws:
            init_msg = json.loads(await ws.recv())
            log(f"✅ WS Connected (State: {init_msg.get('state')})")

            # Sending without a group must fail without touching the database
            await ws.send(json.dumps({"type": "send_message", "text": "Halo"}))
            msg = json.loads(await asyncio.wait_for(ws.recv(), timeout=5))
            if msg.get("type") == "error" and msg.get("recoverable"):
                log(f"✅ Send without group rejected: {msg.get('message')}")
            else:
                log(f"❌ Unexpected reply: {msg}")
                return False

            await ws.send(json.dumps({"type": "leave_group"}))
            msg = json.loads(await asyncio.wait_for(ws.recv(), timeout=5))
            log(f"✅ leave_group -> {msg.get('state')}")
            return True

    except Exception as e:
        log(f"❌ WebSocket Failed: {e}")
        return False


async def main():
    if not check_files():
        log("\n❌ File check failed")
        return

    if not await check_api():
        log("\n❌ API check failed")
        return

    if not await check_ws():
        log("\n❌ WebSocket check failed")
        return

    log("\n✨ ALL CHECKS PASSED ✨")


if __name__ == "__main__":
    asyncio.run(main())
