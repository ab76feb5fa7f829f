import time
from datetime import datetime, timedelta

import pytest


@pytest.fixture
def order_payload(checked_in, food):
    return {
        "guest_id": checked_in["guest"]["id"],
        "items": [
            {"food_id": str(food[0]["_id"]), "quantity": 2, "special_instructions": "no mayo"},
            {"food_id": str(food[1]["_id"]), "quantity": 1},
        ],
    }


def test_place_order_charges_bill(client, auth_headers, order_payload, db):
    res = client.post("/api/orders", json=order_payload, headers=auth_headers)
    assert res.status_code == 201
    order = res.json()["data"]
    assert order["total_amount"] == 29
    assert order["status"] == "pending"
    assert order["order_number"].startswith("ORD-")
    assert order["order_number"].endswith("-1")
    assert order["items"][0]["unit_price"] == 12.5

    created = datetime.fromisoformat(order["created_at"])
    eta = datetime.fromisoformat(order["estimated_delivery_time"])
    assert timedelta(minutes=14) < eta - created < timedelta(minutes=16)

    bill = db["bills"].find_one({})
    food_lines = [i for i in bill["items"] if i["type"] == "food_order"]
    assert [i["description"] for i in food_lines] == ["Club Sandwich x2", "Cappuccino x1"]
    assert bill["total_amount"] == 229


def test_order_number_uses_current_epoch(client, auth_headers, order_payload, india_timezone):
    before = int(time.time() * 1000)
    order = client.post("/api/orders", json=order_payload, headers=auth_headers).json()["data"]
    after = int(time.time() * 1000)
    millis = int(order["order_number"].split("-")[1])
    assert before <= millis <= after


def test_price_snapshot_survives_menu_change(client, auth_headers, order_payload, food, db):
    order_id = client.post("/api/orders", json=order_payload, headers=auth_headers).json()["data"]["id"]
    db["food"].update_one({"_id": food[0]["_id"]}, {"$set": {"price": 99}})
    order = client.get(f"/api/orders/{order_id}", headers=auth_headers).json()["data"]
    assert order["items"][0]["unit_price"] == 12.5


def test_unavailable_food_rejected(client, auth_headers, order_payload, food, db):
    db["food"].update_one({"_id": food[1]["_id"]}, {"$set": {"is_available": False}})
    res = client.post("/api/orders", json=order_payload, headers=auth_headers)
    assert res.status_code == 404
    assert db["orders"].count_documents({}) == 0


def test_order_needs_open_bill(client, auth_headers, order_payload, db):
    db["bills"].update_many({}, {"$set": {"status": "cancelled"}})
    res = client.post("/api/orders", json=order_payload, headers=auth_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "No active bill found for guest"
    assert db["orders"].count_documents({}) == 0


def test_order_needs_items(client, auth_headers, checked_in):
    res = client.post("/api/orders", json={"guest_id": checked_in["guest"]["id"], "items": []}, headers=auth_headers)
    assert res.status_code == 400


def test_status_flow_and_terminal_states(client, auth_headers, order_payload):
    order_id = client.post("/api/orders", json=order_payload, headers=auth_headers).json()["data"]["id"]
    for status in ("confirmed", "preparing", "ready", "delivered"):
        res = client.patch(f"/api/orders/{order_id}/status", json={"status": status}, headers=auth_headers)
        assert res.status_code == 200
    assert res.json()["data"]["actual_delivery_time"] is not None

    res = client.patch(f"/api/orders/{order_id}/status", json={"status": "cancelled"}, headers=auth_headers)
    assert res.status_code == 400


def test_cancel_removes_bill_lines(client, auth_headers, order_payload, db):
    order_id = client.post("/api/orders", json=order_payload, headers=auth_headers).json()["data"]["id"]
    client.patch(f"/api/orders/{order_id}/status", json={"status": "cancelled"}, headers=auth_headers)

    bill = db["bills"].find_one({})
    assert all(i["type"] != "food_order" for i in bill["items"])
    assert bill["total_amount"] == 200


def test_list_and_stats(client, auth_headers, order_payload):
    first = client.post("/api/orders", json=order_payload, headers=auth_headers).json()["data"]["id"]
    client.post("/api/orders", json=order_payload, headers=auth_headers)
    client.patch(f"/api/orders/{first}/status", json={"status": "cancelled"}, headers=auth_headers)

    listing = client.get("/api/orders", params={"room_number": "101"}, headers=auth_headers).json()
    assert listing["count"] == 2
    assert client.get("/api/orders", params={"status": "cancelled"}, headers=auth_headers).json()["count"] == 1

    stats = client.get("/api/orders/stats", headers=auth_headers).json()["data"]
    assert stats["pending"] == 1
    assert stats["cancelled"] == 1
    assert stats["total_revenue"] == 29
    assert stats["average_order_value"] == 29
