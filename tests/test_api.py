from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from conftest import FakeProvider

from aicampus import group_chat, membership
from aicampus.main import GROUP_LOAD_FAILED_MSG, SEND_FAILED_MSG, create_app


@pytest.fixture
def providers():
    return {"groq": FakeProvider(name="groq"), "gemini": FakeProvider(name="gemini", reply="")}


@pytest.fixture
def client(fake_db, providers, fresh_events):
    with TestClient(create_app(fake_db, providers)) as c:
        yield c


# ── Health and static data ──────────────────────────────────────────

def test_health(client) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["database"] is True
    assert body["llm"]["groq"] == {"configured": True, "reachable": True}
    assert body["campus"] == "UNS"


def test_interests_and_campuses(client) -> None:
    interests = client.get("/api/interests").json()["interests"]
    assert len(interests) == 8

    campuses = client.get("/api/campuses").json()
    assert campuses["campuses"][0]["short"] == "UNS"


# ── Chatbot ─────────────────────────────────────────────────────────

@pytest.mark.parametrize("path, provider_name", [
    ("/api/chat", "gemini"),
    ("/api/chat/campus", "groq"),
    ("/api/chat/general", "groq"),
    ("/api/chat/aicampus", "groq"),
])
def test_chat_routes_use_their_provider(client, providers, path, provider_name) -> None:
    providers[provider_name].reply = "Jawaban"

    resp = client.post(path, json={"message": "Halo", "history": [], "university": "UGM"})

    assert resp.status_code == 200
    assert resp.json() == {"response": "Jawaban"}
    assert len(providers[provider_name].calls) == 1


def test_chat_without_message_never_calls_the_model(client, providers) -> None:
    resp = client.post("/api/chat/general", json={"message": ""})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Message is required"}
    assert providers["groq"].calls == []


def test_chat_without_key(client, providers) -> None:
    providers["gemini"].api_key = ""

    resp = client.post("/api/chat", json={"message": "Dimana rektorat?"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Gemini API key not configured"}


def test_chat_upstream_failure_is_reported(client, providers) -> None:
    from aicampus.errors import UpstreamError

    providers["groq"].error = UpstreamError("Groq API error 503: overloaded")

    resp = client.post("/api/chat/general", json={"message": "Halo"})

    assert resp.status_code == 500
    assert "503" in resp.json()["error"]


# ── Events ──────────────────────────────────────────────────────────

def test_event_catalog(client) -> None:
    body = client.get("/api/events").json()
    assert body["total"] == 10


def test_event_recommendation_falls_back_to_tag_match(client) -> None:
    resp = client.post("/api/events", json={"interests": ["teknologi"]})

    assert resp.status_code == 200
    body = resp.json()
    assert body["source"] == "fallback"
    assert [e["id"] for e in body["recommendations"]] == [1, 3, 5, 6]
    assert all(1 <= e["relevanceScore"] <= 100 for e in body["recommendations"])


def test_event_recommendation_from_ai(client, providers) -> None:
    providers["gemini"].reply = "```json\n" + json.dumps({
        "recommendations": [{"eventId": 6, "relevanceScore": 97, "reason": "Hackathon!"}],
        "summary": "Ikut hackathon.",
    }) + "\n```"

    body = client.post("/api/events", json={"interests": ["teknologi"]}).json()

    assert body["source"] == "ai"
    assert body["recommendations"][0]["title"] == "Hackathon Smart Campus 2025"
    assert body["recommendations"][0]["recommendationReason"] == "Hackathon!"


def test_event_recommendation_requires_interests(client) -> None:
    resp = client.post("/api/events", json={})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Interests array is required"}


def test_event_recommendation_with_empty_catalog(fake_db, providers, fresh_events, monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("EVENTS_DATA_PATH", str(tmp_path / "none.json"))
    with TestClient(create_app(fake_db, providers)) as c:
        resp = c.post("/api/events", json={"interests": ["teknologi"]})
    assert resp.status_code == 404
    assert resp.json() == {"error": "No events available at the moment"}


# ── Tasks ───────────────────────────────────────────────────────────

def test_task_assistant(client, providers) -> None:
    providers["groq"].reply = "🎯 Rencana"
    resp = client.post("/api/tasks/ai-assistant", json={
        "tasks": [{"title": "Laporan", "completed": False}], "analysisType": "prioritize",
    })
    assert resp.json() == {"response": "🎯 Rencana"}


def test_task_assistant_rejects_unknown_type(client) -> None:
    resp = client.post("/api/tasks/ai-assistant", json={
        "tasks": [{"title": "Laporan", "completed": False}], "analysisType": "guess",
    })
    assert resp.status_code == 400


def test_task_crud_round(client) -> None:
    created = client.post("/api/tasks", json={"user_id": "u-alice", "title": "Laporan"}).json()["task"]

    toggled = client.patch(f"/api/tasks/{created['id']}/toggle", json={"user_id": "u-alice"}).json()
    assert toggled["task"]["completed"] is True

    listed = client.get("/api/tasks", params={"user_id": "u-alice"}).json()
    assert [t["id"] for t in listed["tasks"]] == [created["id"]]

    deleted = client.delete(f"/api/tasks/{created['id']}", params={"user_id": "u-alice"})
    assert deleted.json() == {"ok": True, "id": created["id"]}
    assert client.delete(f"/api/tasks/{created['id']}", params={"user_id": "u-alice"}).status_code == 404


def test_task_create_requires_title(client) -> None:
    resp = client.post("/api/tasks", json={"user_id": "u-alice"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Task title is required"}


# ── Profile ─────────────────────────────────────────────────────────

def test_profile_read_and_update(client, fake_db) -> None:
    body = client.get("/api/profile/u-alice").json()
    assert body["profile"]["jurusan"] == "Informatika"
    assert body["interests"] == ["technology", "sports"]

    updated = client.put("/api/profile/u-alice", json={"minat": "startup", "role": "admin"}).json()
    assert updated["profile"]["minat"] == "startup"
    assert "role" not in fake_db.rows("user_data")[0]


def test_profile_first_save_inserts_row(client, fake_db) -> None:
    assert client.get("/api/profile/u-new").json() == {"ok": True, "profile": None, "interests": []}

    client.put("/api/profile/u-new", json={"nama": "Dewi", "minat": "fotografi"})

    body = client.get("/api/profile/u-new").json()
    assert body["profile"]["nama"] == "Dewi"
    assert body["profile"]["universitas"] == ""
    assert body["interests"] == ["arts"]


# ── Peer Connect ────────────────────────────────────────────────────

def test_join_groups(client) -> None:
    resp = client.post("/api/groups/join", json={"user_id": "u-alice"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["tags"] == ["technology", "sports"]
    assert {g["id"] for g in body["groups"]} == {"g-tech", "g-sports"}


def test_join_groups_with_blank_interests(client) -> None:
    resp = client.post("/api/groups/join", json={"user_id": "u-carol"})
    assert resp.status_code == 400
    assert resp.json() == {"error": membership.INTERESTS_EMPTY_MSG}


def test_join_groups_without_user(client) -> None:
    assert client.post("/api/groups/join", json={}).status_code == 400


def test_group_list_degrades_on_store_failure(client, fake_db) -> None:
    fake_db.fail_tables.add("group_members")

    resp = client.get("/api/groups", params={"user_id": "u-alice"})

    assert resp.status_code == 200
    assert resp.json() == {"ok": False, "groups": [], "message": GROUP_LOAD_FAILED_MSG}


def test_group_messages_send_and_read(client, memberships) -> None:
    sent = client.post("/api/groups/g-tech/messages", json={"user_id": "u-alice", "text": "Halo tim"})
    assert sent.status_code == 200
    assert sent.json()["message"]["sender_name"] == "alice"

    history = client.get("/api/groups/g-tech/messages", params={"user_id": "u-bob"}).json()["messages"]
    assert [m["text"] for m in history] == ["Halo tim"]


def test_group_send_rejects_blank_text(client, fake_db) -> None:
    resp = client.post("/api/groups/g-tech/messages", json={"user_id": "u-alice", "text": "  "})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Message text is required"}
    assert fake_db.writes() == []


def test_group_send_store_failure_hides_details(client, fake_db, memberships) -> None:
    fake_db.fail_tables.add("group_messages")
    resp = client.post("/api/groups/g-tech/messages", json={"user_id": "u-alice", "text": "Halo"})
    assert resp.status_code == 500
    assert resp.json() == {"error": SEND_FAILED_MSG}


def test_outsider_cannot_post_to_group(client, fake_db, memberships) -> None:
    resp = client.post("/api/groups/g-sports/messages", json={"user_id": "u-bob", "text": "hai dari luar"})

    assert resp.status_code == 404
    assert resp.json() == {"error": group_chat.NOT_A_MEMBER_MSG}
    assert fake_db.rows("group_messages") == []


def test_outsider_cannot_read_group_history(client, memberships) -> None:
    client.post("/api/groups/g-sports/messages", json={"user_id": "u-alice", "text": "rahasia tim futsal"})

    resp = client.get("/api/groups/g-sports/messages", params={"user_id": "u-bob"})

    assert resp.status_code == 404
    assert "messages" not in resp.json()


def test_group_history_requires_user(client) -> None:
    assert client.get("/api/groups/g-tech/messages").status_code == 400
