"""
AICAMPUS Backend - FastAPI Application.
Main entry point. Startup, health, REST routes, Peer Connect WebSocket, CORS.
"""

import asyncio
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.requests import HTTPConnection

# Load .env file
ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(ROOT_DIR / ".env")

from aicampus import (  # noqa: E402
    campus_config,
    chat_service,
    events_service,
    group_chat,
    membership,
    profile_store,
    task_assistant,
    tasks_service,
)
from aicampus.constants import GROUP_MESSAGE_LIMIT, WS_TYPES_IN  # noqa: E402
from aicampus.errors import AppError, NotFoundError, ValidationError, error_payload  # noqa: E402
from aicampus.interests import classify_interests, list_interest_options  # noqa: E402
from aicampus.live_updates import RESYNC, LiveUpdateChannel  # noqa: E402
from aicampus.llm_provider import create_llm_providers  # noqa: E402
from aicampus.supabase_client import create_supabase_client  # noqa: E402

GROUP_LOAD_FAILED_MSG = "Gagal memuat grup. Silakan coba lagi nanti."
SEND_FAILED_MSG = "Gagal mengirim pesan. Silakan coba lagi."

router = APIRouter()


# ── Dependencies ─────────────────────────────────────────────────────

def get_db(conn: HTTPConnection):
    return conn.app.state.db


def get_providers(conn: HTTPConnection) -> dict:
    return conn.app.state.providers


def get_channel(conn: HTTPConnection) -> LiveUpdateChannel:
    return conn.app.state.live_channel


def _error_response(exc: Exception, fallback: str = "Failed to process request") -> JSONResponse:
    payload, status = error_payload(exc, fallback)
    return JSONResponse(payload, status_code=status)


def _user_message(exc: Exception, fallback: str) -> str:
    """Validation/not-found messages are written for users; anything else isn't."""
    if isinstance(exc, (ValidationError, NotFoundError)):
        return exc.message
    return fallback


# ── Health Endpoint ──────────────────────────────────────────────────

@router.get("/health")
async def health_check(db=Depends(get_db), providers: dict = Depends(get_providers),
                       channel: LiveUpdateChannel = Depends(get_channel)):
    """Health check: returns status of all subsystems."""
    llm_status = {}
    for name, provider in providers.items():
        llm_status[name] = {
            "configured": provider.configured,
            "reachable": await provider.health_check(),
        }

    campus = campus_config.get_campus()
    return {
        "ok": True,
        "llm": llm_status,
        "database": await db.health_check(),
        "live_subscribers": channel.subscriber_count(),
        "campus": campus["short"],
    }


# ── Chatbot ──────────────────────────────────────────────────────────

async def _chat(mode: str, body: dict, providers: dict, university: str | None = None):
    try:
        provider = providers.get(chat_service.MODE_PROVIDERS[mode])
        text = await chat_service.generate_reply(
            provider,
            mode,
            body.get("message"),
            body.get("history"),
            university=university,
        )
        return {"response": text}
    except Exception as e:
        print(f"[CHAT] Error in {mode} chat: {e}")
        return _error_response(e)


@router.post("/api/chat")
async def api_chat(body: dict, providers: dict = Depends(get_providers)):
    """Campus navigator for the active campus (Gemini)."""
    return await _chat("uns", body, providers)


@router.post("/api/chat/campus")
async def api_chat_campus(body: dict, providers: dict = Depends(get_providers)):
    """Campus navigator for the university named in the request."""
    return await _chat("campus", body, providers, university=body.get("university"))


@router.post("/api/chat/general")
async def api_chat_general(body: dict, providers: dict = Depends(get_providers)):
    return await _chat("general", body, providers)


@router.post("/api/chat/aicampus")
async def api_chat_aicampus(body: dict, providers: dict = Depends(get_providers)):
    """Product FAQ assistant."""
    return await _chat("aicampus", body, providers)


# ── Event Recommender ────────────────────────────────────────────────

@router.get("/api/events")
async def api_events():
    """Full event catalog."""
    try:
        return events_service.get_all_events()
    except Exception as e:
        print(f"[EVENTS] Error fetching events: {e}")
        return _error_response(e, "Failed to fetch events")


@router.post("/api/events")
async def api_events_recommend(body: dict, providers: dict = Depends(get_providers)):
    """Body: {"interests": ["teknologi", ...]}"""
    try:
        return await events_service.recommend_events(providers.get("gemini"), body.get("interests"))
    except Exception as e:
        print(f"[EVENTS] Error in events API: {e}")
        return _error_response(e)


# ── Smart Task Manager ───────────────────────────────────────────────

@router.post("/api/tasks/ai-assistant")
async def api_tasks_ai_assistant(body: dict, providers: dict = Depends(get_providers)):
    """Body: {"tasks": [...], "analysisType": "prioritize" | "estimate"}"""
    try:
        text = await task_assistant.analyze_tasks(
            providers.get("groq"), body.get("tasks"), body.get("analysisType"),
        )
        return {"response": text}
    except Exception as e:
        print(f"[TASKS] Error in AI Task Assistant: {e}")
        return _error_response(e, "Internal server error")


@router.get("/api/tasks")
async def api_tasks_list(user_id: str = "", db=Depends(get_db)):
    try:
        return {"ok": True, "tasks": await tasks_service.list_tasks(db, user_id)}
    except Exception as e:
        print(f"[TASKS] Error fetching tasks: {e}")
        return _error_response(e)


@router.post("/api/tasks")
async def api_tasks_create(body: dict, db=Depends(get_db)):
    """Body: {user_id, title, description?, category?, priority?, deadline?}"""
    try:
        task = await tasks_service.create_task(db, body.get("user_id", ""), body)
        return {"ok": True, "task": task}
    except Exception as e:
        print(f"[TASKS] Error adding task: {e}")
        return _error_response(e)


@router.patch("/api/tasks/{task_id}/toggle")
async def api_tasks_toggle(task_id: str, body: dict, db=Depends(get_db)):
    try:
        task = await tasks_service.toggle_task(db, body.get("user_id", ""), task_id)
        return {"ok": True, "task": task}
    except Exception as e:
        print(f"[TASKS] Error toggling task: {e}")
        return _error_response(e)


@router.delete("/api/tasks/{task_id}")
async def api_tasks_delete(task_id: str, user_id: str = "", db=Depends(get_db)):
    try:
        return await tasks_service.delete_task(db, user_id, task_id)
    except Exception as e:
        print(f"[TASKS] Error deleting task: {e}")
        return _error_response(e)


# ── Profile ──────────────────────────────────────────────────────────

@router.get("/api/profile/{user_id}")
async def api_profile_get(user_id: str, db=Depends(get_db)):
    try:
        data = await profile_store.get_user_data(db, user_id)
        if data is None:
            return {"ok": True, "profile": None, "interests": []}
        minat = data.get("minat", "")
        return {
            "ok": True,
            "profile": data,
            "interests": classify_interests(minat) if minat.strip() else [],
        }
    except Exception as e:
        print(f"[PROFILE] Error loading user data: {e}")
        return _error_response(e)


@router.put("/api/profile/{user_id}")
async def api_profile_update(user_id: str, body: dict, db=Depends(get_db)):
    """Body: any of {nama, universitas, jurusan, minat}"""
    try:
        row = await profile_store.upsert_user_data(db, user_id, body)
        return {"ok": True, "profile": row}
    except Exception as e:
        print(f"[PROFILE] Error updating profile: {e}")
        return _error_response(e, "Failed to update profile")


@router.get("/api/interests")
async def api_interests():
    return {"ok": True, "interests": list_interest_options()}


@router.get("/api/campuses")
async def api_campuses():
    return campus_config.list_campuses()


# ── Peer Connect ─────────────────────────────────────────────────────

@router.post("/api/groups/join")
async def api_groups_join(body: dict, db=Depends(get_db)):
    """
    Body: {"user_id": "..."}
    Enroll the user in their interest groups, then return those groups.
    Errors carry a message the client shows before sending the user home.
    """
    user_id = body.get("user_id", "")
    if not user_id:
        return JSONResponse({"error": "user_id is required"}, status_code=400)
    try:
        result = await membership.initialize_member(db, user_id)
        return {"ok": True, **result}
    except Exception as e:
        print(f"[GROUPS] Error initializing Peer Connect for {user_id}: {e}")
        if isinstance(e, AppError):
            return _error_response(e)
        return JSONResponse({"error": f"Terjadi kesalahan: {e}. Silakan coba lagi."}, status_code=500)


@router.get("/api/groups")
async def api_groups_list(user_id: str = "", db=Depends(get_db)):
    if not user_id:
        return JSONResponse({"error": "user_id is required"}, status_code=400)
    try:
        groups = await group_chat.list_groups_for_user(db, user_id)
        return {"ok": True, "groups": groups}
    except Exception as e:
        print(f"[GROUPS] Error fetching user groups: {e}")
        return {"ok": False, "groups": [], "message": GROUP_LOAD_FAILED_MSG}


@router.get("/api/groups/{group_id}/messages")
async def api_group_messages(group_id: str, user_id: str = "", limit: int = GROUP_MESSAGE_LIMIT,
                             db=Depends(get_db)):
    if not user_id:
        return JSONResponse({"error": "user_id is required"}, status_code=400)
    try:
        await group_chat.require_membership(db, group_id, user_id)
        limit = max(1, min(limit, 200))
        messages = await group_chat.fetch_group_messages(db, group_id, limit=limit)
        return {"ok": True, "messages": messages}
    except Exception as e:
        print(f"[GROUPS] Error fetching group messages: {e}")
        return _error_response(e)


@router.post("/api/groups/{group_id}/messages")
async def api_group_send(group_id: str, body: dict, db=Depends(get_db),
                         channel: LiveUpdateChannel = Depends(get_channel)):
    """Body: {"user_id": "...", "text": "..."}"""
    try:
        message = await group_chat.post_message(
            db, channel, group_id, body.get("user_id", ""), body.get("text", ""),
        )
        return {"ok": True, "message": message}
    except Exception as e:
        print(f"[GROUPS] Error sending message: {e}")
        _, status = error_payload(e)
        return JSONResponse({"error": _user_message(e, SEND_FAILED_MSG)}, status_code=status)


# ── WebSocket ────────────────────────────────────────────────────────

@router.websocket("/ws/groups")
async def group_chat_socket(ws: WebSocket, user_id: str = "", db=Depends(get_db),
                            channel: LiveUpdateChannel = Depends(get_channel)):
    """
    Live group chat for one client.
    In: select_group {group_id}, send_message {text}, leave_group.
    Out: group_state, group_messages, new_message, message_sent, error.
    """
    await ws.accept()

    if not user_id:
        await ws.send_json({"type": "error", "message": "user_id is required", "recoverable": False})
        await ws.close(code=1008)
        return

    view = group_chat.GroupChatView(db, channel, user_id)
    forward_task: asyncio.Task | None = None

    await ws.send_json({"type": "group_state", "state": view.state, "group_id": None})

    async def forward_updates():
        while True:
            try:
                message = await view.next_update()
            except Exception as e:
                print(f"[WS] Live updates for {user_id} stopped: {e}")
                await send_error(GROUP_LOAD_FAILED_MSG)
                return
            if message is None:
                return
            if message is RESYNC:
                await ws.send_json({
                    "type": "group_messages",
                    "group_id": view.group_id,
                    "messages": list(view.messages),
                    "resync": True,
                })
                continue
            await ws.send_json({"type": "new_message", "message": message})

    async def stop_forwarding():
        nonlocal forward_task
        if forward_task and not forward_task.done():
            forward_task.cancel()
            try:
                await forward_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                print(f"[WS] Forward task ended with error during cancel: {e}")
        forward_task = None

    async def send_error(message: str):
        await ws.send_json({"type": "error", "message": message, "recoverable": True})

    try:
        while True:
            try:
                data = await ws.receive_json()
            except ValueError:
                await send_error("Invalid JSON")
                continue
            if not isinstance(data, dict):
                await send_error("Message must be a JSON object")
                continue
            msg_type = data.get("type", "")

            if msg_type not in WS_TYPES_IN:
                await send_error(f"Unknown message type: {msg_type}")
                continue

            if msg_type == "select_group":
                group_id = data.get("group_id", "")
                if not group_id:
                    await send_error("group_id is required")
                    continue

                await stop_forwarding()
                await ws.send_json({"type": "group_state", "state": "loading", "group_id": group_id})
                try:
                    messages = await view.select_group(group_id)
                except Exception as e:
                    print(f"[WS] Failed to open group {group_id}: {e}")
                    await send_error(_user_message(e, GROUP_LOAD_FAILED_MSG))
                    await ws.send_json({"type": "group_state", "state": view.state, "group_id": None})
                    continue

                await ws.send_json({"type": "group_messages", "group_id": group_id, "messages": messages})
                await ws.send_json({"type": "group_state", "state": view.state, "group_id": group_id})
                forward_task = asyncio.create_task(forward_updates())

            elif msg_type == "send_message":
                try:
                    message = await view.send(data.get("text", ""))
                except Exception as e:
                    print(f"[WS] Error sending message: {e}")
                    await send_error(_user_message(e, SEND_FAILED_MSG))
                    continue
                await ws.send_json({"type": "message_sent", "message": message})

            elif msg_type == "leave_group":
                await stop_forwarding()
                view.leave()
                await ws.send_json({"type": "group_state", "state": view.state, "group_id": None})

    except WebSocketDisconnect:
        print(f"[WS] Client {user_id} disconnected")
    except Exception as e:
        print(f"[WS] Error: {e}")
        try:
            await ws.send_json({"type": "error", "message": str(e), "recoverable": False})
        except Exception:
            pass
    finally:
        await stop_forwarding()
        await view.close()


# ── App Factory ──────────────────────────────────────────────────────

def create_app(db=None, providers: dict | None = None, live_channel: LiveUpdateChannel | None = None) -> FastAPI:
    """
    Build the application. Clients passed in are used as-is (tests);
    anything missing is created from env vars at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup sequence:
        1. Create database client
        2. Create LLM providers
        3. Load event catalog
        Shutdown releases live subscriptions and closes every client.
        """
        if app.state.db is None:
            app.state.db = create_supabase_client()
        print(f"[STARTUP] Database configured: {'yes' if app.state.db.configured else 'NO'}")

        if app.state.providers is None:
            app.state.providers = create_llm_providers()
        for name, provider in app.state.providers.items():
            print(f"[STARTUP] {name} API key: {'set' if provider.configured else 'NOT SET'}")

        catalog = events_service.get_all_events()
        print(f"[STARTUP] Event catalog loaded ({catalog['total']} events)")
        print("[STARTUP] AICAMPUS backend ready!")

        yield

        app.state.live_channel.close_all()
        for provider in app.state.providers.values():
            await provider.close()
        await app.state.db.close()
        print("[SHUTDOWN] Clients closed")

    app = FastAPI(title="AICAMPUS Backend", version="1.0.0", lifespan=lifespan)

    origins = [o.strip() for o in os.getenv(
        "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000",
    ).split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.state.db = db
    app.state.providers = providers
    app.state.live_channel = live_channel or LiveUpdateChannel()
    app.include_router(router)

    return app


app = create_app()
