"""HTTP tests for the chat endpoints."""

from support_chat.core.config import settings
from tests.fakes import auth_headers

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


async def _open_chat(client, user, message="Hello, I need help"):
    response = await client.post(
        "/api/chats", json={"message": message}, headers=auth_headers(user)
    )
    assert response.status_code == 201
    return response.json()["data"]


async def test_create_chat(client, alice):
    response = await client.post(
        "/api/chats",
        json={"message": "Hello, I need help"},
        headers={**auth_headers(alice), "User-Agent": "widget/1.0"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    chat = body["data"]
    assert chat["status"] == "active"
    assert chat["priority"] == "medium"
    assert chat["message_count"] == 1
    assert len(chat["messages"]) == 1
    assert chat["messages"][0]["sender"]["email"] == "alice@test.com"
    assert chat["metadata"]["user_agent"] == "widget/1.0"


async def test_second_post_appends(client, alice):
    chat = await _open_chat(client, alice)

    response = await client.post(
        "/api/chats", json={"message": "Anyone?"}, headers=auth_headers(alice)
    )

    assert response.status_code == 200
    assert response.json()["data"]["id"] == chat["id"]
    assert len(response.json()["data"]["messages"]) == 2


async def test_create_chat_requires_message(client, alice):
    response = await client.post("/api/chats", json={}, headers=auth_headers(alice))

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error_kind"] == "INVALID_INPUT"


async def test_invalid_priority_is_invalid_input(client, alice):
    response = await client.post(
        "/api/chats",
        json={"message": "Hi", "priority": "whenever"},
        headers=auth_headers(alice),
    )

    assert response.status_code == 400
    assert response.json()["error_kind"] == "INVALID_INPUT"


async def test_missing_token(client):
    response = await client.get("/api/chats")

    assert response.status_code == 401
    assert response.json()["error_kind"] == "AUTHENTICATION_ERROR"


async def test_invalid_token(client):
    response = await client.get("/api/chats", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["error_kind"] == "INVALID_TOKEN"


async def test_list_chats_scoped(client, alice, bob, admin):
    await _open_chat(client, alice)
    await _open_chat(client, bob)

    own = await client.get("/api/chats", headers=auth_headers(alice))
    everything = await client.get("/api/chats", headers=auth_headers(admin))

    assert own.json()["count"] == 1
    assert everything.json()["count"] == 2
    assert all(chat["unread_count"] == 1 for chat in everything.json()["data"])


async def test_other_users_chat_is_not_found(client, alice, bob):
    chat = await _open_chat(client, alice)

    response = await client.get(f"/api/chats/{chat['id']}", headers=auth_headers(bob))

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error_kind": "NOT_FOUND",
        "message": f"Chat with id '{chat['id']}' not found",
        "details": {"resource": "Chat", "identifier": chat["id"]},
    }


async def test_get_chat_marks_read(client, alice, admin):
    chat = await _open_chat(client, alice)
    path = f"/api/chats/{chat['id']}"

    before = await client.get(f"{path}/unread-count", headers=auth_headers(admin))
    assert before.json()["data"] == {"chat_id": chat["id"], "unread_count": 1}

    viewed = await client.get(path, headers=auth_headers(admin))
    assert viewed.status_code == 200
    assert viewed.json()["data"]["unread_count"] == 0

    after = await client.get(f"{path}/unread-count", headers=auth_headers(admin))
    assert after.json()["data"]["unread_count"] == 0


async def test_send_message(client, alice, admin):
    chat = await _open_chat(client, alice)

    response = await client.post(
        f"/api/chats/{chat['id']}/messages",
        json={"content": "We are on it"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["messages"][-1]["seq"] == 2
    assert data["messages"][-1]["sender_role"] == "admin"
    assert {p["role"] for p in data["participants"]} == {"user", "admin"}


async def test_send_empty_message(client, alice):
    chat = await _open_chat(client, alice)

    response = await client.post(
        f"/api/chats/{chat['id']}/messages",
        json={"content": "  "},
        headers=auth_headers(alice),
    )

    assert response.status_code == 400
    assert response.json()["error_kind"] == "INVALID_INPUT"


async def test_send_file(client, alice):
    chat = await _open_chat(client, alice)

    response = await client.post(
        f"/api/chats/{chat['id']}/messages/file",
        files={"file": ("shot.png", PNG_BYTES, "image/png")},
        data={"content": ""},
        headers=auth_headers(alice),
    )

    assert response.status_code == 200
    message = response.json()["data"]["messages"][-1]
    assert message["message_type"] == "image"
    assert message["content"] == "Sent a file: shot.png"
    assert message["attachments"][0]["original_name"] == "shot.png"


async def test_send_file_too_large(client, alice):
    chat = await _open_chat(client, alice)

    response = await client.post(
        f"/api/chats/{chat['id']}/messages/file",
        files={"file": ("big.png", b"\x00" * 4096, "image/png")},
        headers=auth_headers(alice),
    )

    assert response.status_code == 400
    assert response.json()["error_kind"] == "INVALID_INPUT"


async def test_upload_over_limit_rejected_before_storage(client, alice, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_size_mb", 0)
    chat = await _open_chat(client, alice)

    response = await client.post(
        f"/api/chats/{chat['id']}/messages/file",
        files={"file": ("shot.png", PNG_BYTES, "image/png")},
        headers=auth_headers(alice),
    )

    assert response.status_code == 400
    assert response.json()["error_kind"] == "INVALID_INPUT"
    assert not (tmp_path / "uploads").exists()

    seen = await client.get(f"/api/chats/{chat['id']}", headers=auth_headers(alice))
    assert seen.json()["data"]["message_count"] == 1


async def test_admin_closes_chat(client, alice, admin):
    chat = await _open_chat(client, alice)

    response = await client.put(
        f"/api/chats/{chat['id']}/status",
        json={"status": "closed"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "closed"

    seen = await client.get(f"/api/chats/{chat['id']}", headers=auth_headers(alice))
    assert seen.json()["data"]["status"] == "closed"
    assert seen.json()["data"]["messages"][0]["content"] == "Hello, I need help"


async def test_user_cannot_update_status(client, alice):
    chat = await _open_chat(client, alice)

    response = await client.put(
        f"/api/chats/{chat['id']}/status",
        json={"status": "closed"},
        headers=auth_headers(alice),
    )

    assert response.status_code == 403
    assert response.json()["error_kind"] == "UNAUTHORIZED"


async def test_empty_status_update_rejected(client, alice, admin):
    chat = await _open_chat(client, alice)

    response = await client.put(
        f"/api/chats/{chat['id']}/status", json={}, headers=auth_headers(admin)
    )

    assert response.status_code == 400
    assert response.json()["error_kind"] == "INVALID_INPUT"


async def test_stats(client, alice, admin):
    await _open_chat(client, alice)

    response = await client.get("/api/chats/stats", headers=auth_headers(admin))

    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["total_chats"] == 1
    assert stats["active_chats"] == 1
    assert len(stats["recent_chats"]) == 1


async def test_stats_forbidden_for_users(client, alice):
    response = await client.get("/api/chats/stats", headers=auth_headers(alice))

    assert response.status_code == 403
    assert response.json()["error_kind"] == "UNAUTHORIZED"


# ============================================================
# Public widget
# ============================================================


async def test_public_chat_twice_opens_two_chats(client):
    payload = {"name": "Guest", "email": "guest@test.com", "message": "Hello"}

    first = await client.post("/api/chats/public", json=payload)
    second = await client.post("/api/chats/public", json=payload)

    assert first.status_code == second.status_code == 201
    assert first.json()["data"]["id"] != second.json()["data"]["id"]
    assert first.json()["data"]["metadata"]["source"] == "public_chat"


async def test_public_chat_missing_fields(client):
    response = await client.post("/api/chats/public", json={"name": "Guest"})

    assert response.status_code == 400
    body = response.json()
    assert body["error_kind"] == "INVALID_INPUT"
    assert body["details"]["missing"] == ["email", "message"]


async def test_public_reply(client):
    opened = await client.post(
        "/api/chats/public",
        json={"name": "Guest", "email": "guest@test.com", "message": "Hello"},
    )
    chat_id = opened.json()["data"]["id"]

    response = await client.post(
        f"/api/chats/public/{chat_id}/messages", json={"content": "Follow-up"}
    )

    assert response.status_code == 200
    messages = response.json()["data"]["messages"]
    assert [m["content"] for m in messages] == ["Hello", "Follow-up"]
    assert messages[0]["sender"]["id"] == messages[1]["sender"]["id"]


async def test_public_reply_unknown_chat(client):
    response = await client.post(
        "/api/chats/public/64b000000000000000000000/messages", json={"content": "Hi"}
    )

    assert response.status_code == 404
    assert response.json()["error_kind"] == "NOT_FOUND"


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
