from datetime import datetime

from conftest import checkin_payload


def _stay(client, auth_headers, room_id):
    res = client.post("/api/guests/checkin", json=checkin_payload(room_id), headers=auth_headers)
    guest_id = res.json()["data"]["guest"]["id"]
    client.post(f"/api/guests/{guest_id}/checkout", headers=auth_headers)
    return guest_id


def test_history_lists_activity(client, auth_headers, room, food, events):
    guest_id = client.post("/api/guests/checkin", json=checkin_payload(room["_id"]), headers=auth_headers).json()["data"]["guest"]["id"]
    client.post(
        "/api/orders",
        json={"guest_id": guest_id, "items": [{"food_id": str(food[0]["_id"]), "quantity": 2}]},
        headers=auth_headers,
    )
    client.post(
        "/api/tickets",
        json={"room_number": "101", "guest_info": {"name": "John Carter"}, "subject": "Towels", "message": "More towels please"},
    )

    body = client.get("/api/guests/history", headers=auth_headers).json()["data"]
    assert body["pagination"]["total"] == 1
    row = body["guests"][0]
    assert row["total_orders"] == 1
    assert row["total_tickets"] == 1
    assert row["total_spent"] == 225
    assert row["room"]["number"] == "101"


def test_history_filters_by_date(client, auth_headers, room):
    _stay(client, auth_headers, room["_id"])
    res = client.get("/api/guests/history", params={"date_to": "2000-01-01T00:00:00"}, headers=auth_headers)
    assert res.json()["data"]["guests"] == []

    res = client.get("/api/guests/history", params={"sort_by": "name", "sort_order": "asc"}, headers=auth_headers)
    assert len(res.json()["data"]["guests"]) == 1


def test_history_stats_counts_repeat_guests(client, auth_headers, room, db):
    _stay(client, auth_headers, room["_id"])
    db["rooms"].update_one({"_id": room["_id"]}, {"$set": {"status": "available"}})
    _stay(client, auth_headers, room["_id"])

    stats = client.get("/api/guests/history/stats", headers=auth_headers).json()["data"]
    assert stats["total_guests"] == 2
    assert stats["checked_out_guests"] == 2
    assert stats["repeat_guests"] == 1
    assert stats["total_revenue"] == 400
    assert len(stats["recent_activity"]) == 2


def test_guest_profile_merges_stays_by_phone(client, auth_headers, room, db):
    _stay(client, auth_headers, room["_id"])
    db["rooms"].update_one({"_id": room["_id"]}, {"$set": {"status": "available"}})
    latest = _stay(client, auth_headers, room["_id"])

    data = client.get(f"/api/guests/history/{latest}", headers=auth_headers).json()["data"]
    stats = data["stats"]
    assert stats["total_stays"] == 2
    assert stats["total_spent"] == 400
    assert stats["favorite_room_type"] == "Deluxe King"
    assert len(data["all_stays"]) == 2
    assert len(data["bills"]) == 2
    assert datetime.fromisoformat(stats["first_visit"]) <= datetime.fromisoformat(stats["last_visit"])
