def test_create_food_defaults(client, auth_headers):
    res = client.post(
        "/api/food",
        json={"name": "Pancakes", "category": "Breakfast", "price": 9.5},
        headers=auth_headers,
    )
    assert res.status_code == 201
    item = res.json()["data"]
    assert item["preparation_time"] == 15
    assert item["spice_level"] == "mild"
    assert item["is_available"] is True


def test_food_requires_auth(client, food):
    assert client.get("/api/food").status_code == 401


def test_filters_and_categories(client, auth_headers, food):
    assert client.get("/api/food", headers=auth_headers).json()["count"] == 2
    res = client.get("/api/food", params={"category": "Beverages"}, headers=auth_headers).json()
    assert [i["name"] for i in res["data"]] == ["Cappuccino"]
    res = client.get("/api/food", params={"search": "sandw"}, headers=auth_headers).json()
    assert [i["name"] for i in res["data"]] == ["Club Sandwich"]

    categories = client.get("/api/food/categories", headers=auth_headers).json()["data"]
    assert categories == ["Beverages", "Main Course"]


def test_toggle_availability(client, auth_headers, food):
    food_id = str(food[1]["_id"])
    res = client.patch(f"/api/food/{food_id}/availability", headers=auth_headers)
    assert res.json()["data"]["is_available"] is False

    res = client.get("/api/food", params={"available": "true"}, headers=auth_headers).json()
    assert res["count"] == 1


def test_update_and_delete(client, auth_headers, food):
    food_id = str(food[0]["_id"])
    res = client.put(f"/api/food/{food_id}", json={"price": 13, "spice_level": "hot"}, headers=auth_headers)
    assert res.json()["data"]["price"] == 13
    assert res.json()["data"]["spice_level"] == "hot"

    res = client.put(f"/api/food/{food_id}", json={"spice_level": "volcanic"}, headers=auth_headers)
    assert res.status_code == 400

    assert client.delete(f"/api/food/{food_id}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/food/{food_id}", headers=auth_headers).status_code == 404
