from bson import ObjectId

NEW_ROOM = {"number": "205", "type": "Junior Suite", "floor": 2, "price": 180, "amenities": ["tv", "ac"]}


def test_create_and_list_rooms(client, auth_headers):
    res = client.post("/api/rooms", json=NEW_ROOM, headers=auth_headers)
    assert res.status_code == 201
    room = res.json()["data"]
    assert room["capacity"] == 2
    assert room["status"] == "available"
    assert room["is_active"] is True

    listing = client.get("/api/rooms", headers=auth_headers).json()
    assert listing["count"] == 1
    assert listing["data"][0]["id"] == room["id"]


def test_duplicate_room_number_rejected(client, auth_headers, room):
    res = client.post("/api/rooms", json={**NEW_ROOM, "number": "101"}, headers=auth_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Room with number 101 already exists"


def test_room_validation(client, auth_headers):
    res = client.post("/api/rooms", json={**NEW_ROOM, "number": "2 05", "floor": 0}, headers=auth_headers)
    assert res.status_code == 400
    fields = {e["field"] for e in res.json()["errors"]}
    assert fields == {"number", "floor"}


def test_public_lookup_by_number(client, room):
    res = client.get("/api/rooms/number/101")
    assert res.status_code == 200
    assert res.json()["data"]["type"] == "Deluxe King"
    assert client.get("/api/rooms/number/999").status_code == 404


def test_update_room(client, auth_headers, room):
    res = client.put(f"/api/rooms/{room['_id']}", json={"price": 120, "status": "maintenance"}, headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["data"]["price"] == 120
    assert res.json()["data"]["status"] == "maintenance"

    filtered = client.get("/api/rooms", params={"status": "available"}, headers=auth_headers).json()
    assert filtered["count"] == 0


def test_invalid_and_unknown_ids(client, auth_headers):
    res = client.get("/api/rooms/not-an-id", headers=auth_headers)
    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "Invalid id"}
    assert client.get(f"/api/rooms/{ObjectId()}", headers=auth_headers).status_code == 404


def test_delete_is_soft(client, auth_headers, room, db):
    res = client.delete(f"/api/rooms/{room['_id']}", headers=auth_headers)
    assert res.status_code == 200
    assert db["rooms"].find_one({"_id": room["_id"]})["is_active"] is False
    assert client.get("/api/rooms", headers=auth_headers).json()["count"] == 0


def test_delete_refused_with_active_tickets(client, auth_headers, room, db):
    db["tickets"].insert_one({"room": room["_id"], "status": "in_progress"})
    res = client.delete(f"/api/rooms/{room['_id']}", headers=auth_headers)
    assert res.status_code == 400
    assert res.json()["message"].startswith("Cannot delete room with active tickets")


def test_delete_refused_when_occupied(client, auth_headers, room, checked_in):
    res = client.delete(f"/api/rooms/{room['_id']}", headers=auth_headers)
    assert res.status_code == 400


def test_unknown_route(client):
    res = client.get("/api/nowhere")
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Cannot GET /api/nowhere"}
