import os
import time

# Settings must be in place before the application modules are imported.
os.environ["DATABASE_URL"] = ""
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["TICKET_CLEANUP_ENABLED"] = "false"

from datetime import timedelta  # noqa: E402

import mongomock  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import database  # noqa: E402
import realtime  # noqa: E402
from assistant import get_mistral_client  # noqa: E402
from database import utcnow  # noqa: E402
from main import app  # noqa: E402
from schemas import FoodItem, Room, User  # noqa: E402
from security import create_access_token  # noqa: E402
from supabase_auth import SupabaseError, get_supabase  # noqa: E402


class FakeSupabase:
    """In-memory stand-in for the Supabase auth client."""

    service_role_key = "service"

    def __init__(self):
        self.users = {}
        self.deleted = []
        self.recovered = []
        self.passwords_updated = []

    def sign_up(self, email, password, metadata=None):
        if email in self.users:
            raise SupabaseError("User already registered", 422)
        user = {"id": f"sb-{len(self.users) + 1}", "email": email, "user_metadata": metadata or {}}
        self.users[email] = {"user": user, "password": password}
        return user

    def sign_in(self, email, password):
        entry = self.users.get(email)
        if not entry or entry["password"] != password:
            raise SupabaseError("Invalid login credentials", 400)
        return {"access_token": "sb-access", "user": entry["user"]}

    def recover(self, email, redirect_to=None):
        self.recovered.append((email, redirect_to))

    def update_password(self, access_token, password):
        if access_token != "recovery-token":
            raise SupabaseError("Token has expired or is invalid", 401)
        self.passwords_updated.append(password)
        return {"id": "sb-1"}

    def delete_user(self, user_id):
        self.deleted.append(user_id)
        return True


class FakeMistral:
    def __init__(self, reply="Happy to help! Staff will be with you shortly.", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def complete(self, messages, temperature=0.3, max_tokens=300):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def db(monkeypatch):
    mock_db = mongomock.MongoClient()["hotelflow_test"]
    monkeypatch.setattr(database, "db", mock_db)
    database.ensure_indexes()
    return mock_db


@pytest.fixture
def india_timezone():
    """Run with a local clock far from UTC."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available")
    previous = os.environ.get("TZ")
    os.environ["TZ"] = "Asia/Kolkata"
    time.tzset()
    yield
    if previous is None:
        del os.environ["TZ"]
    else:
        os.environ["TZ"] = previous
    time.tzset()


@pytest.fixture
def supabase():
    fake = FakeSupabase()
    app.dependency_overrides[get_supabase] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_supabase, None)


@pytest.fixture
def mistral():
    fake = FakeMistral()
    app.dependency_overrides[get_mistral_client] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_mistral_client, None)


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def events(monkeypatch):
    emitted = []

    async def fake_emit(event, data=None, room=None, **kwargs):
        emitted.append({"event": event, "data": data, "room": room})

    monkeypatch.setattr(realtime.sio, "emit", fake_emit)
    return emitted


@pytest.fixture
def manager(db):
    user = User(name="Maya Patel", email="maya@example.com", hotel_name="Seaside Inn", supabase_id="sb-maya")
    doc = {**user.model_dump(), "created_at": utcnow(), "updated_at": utcnow()}
    doc["_id"] = db["users"].insert_one(doc).inserted_id
    return doc


@pytest.fixture
def auth_headers(manager):
    return {"Authorization": f"Bearer {create_access_token(manager)}"}


@pytest.fixture
def room(db):
    doc = Room(number="101", type="Deluxe King", floor=1, price=100, capacity=2).model_dump()
    doc["_id"] = db["rooms"].insert_one(doc).inserted_id
    return doc


@pytest.fixture
def food(db):
    items = [
        FoodItem(name="Club Sandwich", category="Main Course", price=12.5, preparation_time=15),
        FoodItem(name="Cappuccino", category="Beverages", price=4, preparation_time=5),
    ]
    docs = []
    for item in items:
        doc = item.model_dump()
        doc["_id"] = db["food"].insert_one(doc).inserted_id
        docs.append(doc)
    return docs


def checkin_payload(room_id, nights=2, **overrides):
    start = utcnow().replace(microsecond=0)
    payload = {
        "name": "John Carter",
        "email": "john@example.com",
        "phone": "+15550001111",
        "id_type": "passport",
        "id_number": "X1234567",
        "check_in_date": start.isoformat() + "Z",
        "check_out_date": (start + timedelta(days=nights)).isoformat() + "Z",
        "number_of_guests": 2,
        "room_id": str(room_id),
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def checked_in(client, auth_headers, room):
    """A guest checked into room 101 for two nights; returns ``{guest, bill}``."""
    res = client.post("/api/guests/checkin", json=checkin_payload(room["_id"]), headers=auth_headers)
    assert res.status_code == 201, res.json()
    return res.json()["data"]
