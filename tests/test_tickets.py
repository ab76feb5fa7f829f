import pytest

TICKET = {
    "room_number": "101",
    "guest_info": {"name": "John Carter", "phone": "+15550001111"},
    "subject": "Shower is broken",
    "message": "The shower has no hot water",
    "priority": "high",
    "category": "maintenance",
}


@pytest.fixture
def ticket(client, room, events):
    res = client.post("/api/tickets", json=TICKET)
    assert res.status_code == 201
    return res.json()["data"]


def test_guest_raises_ticket(ticket, events):
    assert ticket["status"] == "raised"
    assert ticket["guest_info"]["email"] == ""
    assert ticket["messages"][0]["sender"] == "guest"
    assert ticket["guest"] is None

    assert len(events) == 1
    event = events[0]
    assert event["event"] == "newTicket"
    assert event["room"] == "managers"
    assert event["data"]["ticket"]["id"] == ticket["id"]
    assert event["data"]["notification"]["message"] == "John Carter from Room 101 - Shower is broken"
    assert event["data"]["notification"]["priority"] == "high"


def test_ticket_links_checked_in_guest(client, checked_in, events):
    data = client.post("/api/tickets", json=TICKET).json()["data"]
    assert data["guest"] == checked_in["guest"]["id"]


def test_ticket_for_unknown_room(client, db, events):
    res = client.post("/api/tickets", json={**TICKET, "room_number": "999"})
    assert res.status_code == 404
    assert res.json()["message"] == "Room not found"
    assert events == []


def test_chat_ticket_keeps_conversation(client, room, events):
    res = client.post(
        "/api/tickets/guest",
        json={
            "room_number": "101",
            "guest_info": {"name": "John Carter"},
            "initial_message": "Please bring two extra towels",
            "conversation_history": [
                {"role": "user", "content": "Hi, can I get towels?"},
                {"role": "assistant", "content": "Of course, I will let housekeeping know."},
            ],
        },
    )
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["subject"] == "Service Request - Room 101"
    assert data["category"] == "housekeeping"
    assert [m["sender"] for m in data["messages"]] == ["guest", "ai_assistant", "system"]
    assert data["messages"][1]["sender_name"] == "AI Assistant"
    assert data["messages"][2]["content"].endswith("Please bring two extra towels")
    assert events[0]["data"]["notification"]["message"] == "John Carter from Room 101 - needs assistance"


def test_manager_board(client, auth_headers, ticket):
    assert client.get("/api/tickets").status_code == 401
    listing = client.get("/api/tickets", params={"priority": "high"}, headers=auth_headers).json()
    assert listing["count"] == 1
    assert client.get("/api/tickets", params={"status": "completed"}, headers=auth_headers).json()["count"] == 0
    assert client.get(f"/api/tickets/{ticket['id']}", headers=auth_headers).json()["data"]["subject"] == "Shower is broken"


def test_status_moves_emit_updates(client, auth_headers, ticket, events):
    events.clear()
    res = client.put(f"/api/tickets/{ticket['id']}/status", json={"status": "completed"}, headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["data"]["completed_at"] is not None
    assert {e["room"] for e in events} == {f"ticket_{ticket['id']}", "managers"}
    assert all(e["event"] == "ticketUpdated" for e in events)

    res = client.put(f"/api/tickets/{ticket['id']}/status", json={"status": "in_progress"}, headers=auth_headers)
    assert res.json()["data"]["completed_at"] is None


def test_invalid_status_rejected(client, auth_headers, ticket):
    res = client.put(f"/api/tickets/{ticket['id']}/status", json={"status": "closed"}, headers=auth_headers)
    assert res.status_code == 400


def test_manager_message(client, auth_headers, ticket, events):
    events.clear()
    res = client.post(f"/api/tickets/{ticket['id']}/messages", json={"content": "On our way"}, headers=auth_headers)
    assert res.status_code == 201
    last = res.json()["data"]["messages"][-1]
    assert last["sender"] == "manager"
    assert last["sender_name"] == "Maya Patel"

    assert events[0]["event"] == "newMessage"
    assert events[0]["room"] == f"ticket_{ticket['id']}"
    assert events[0]["data"]["message"]["content"] == "On our way"
