import asyncio
from datetime import timedelta

from cleanup import TicketCleanupService, cleanup_service
from database import utcnow


def _ticket(db, status, completed_days_ago=None):
    completed_at = utcnow() - timedelta(days=completed_days_ago) if completed_days_ago is not None else None
    return db["tickets"].insert_one({"status": status, "completed_at": completed_at, "room_number": "101"}).inserted_id


def test_run_once_removes_only_old_completed_tickets(db):
    old = _ticket(db, "completed", completed_days_ago=45)
    recent = _ticket(db, "completed", completed_days_ago=3)
    open_ticket = _ticket(db, "in_progress")

    service = TicketCleanupService(retention_days=30, interval_minutes=60)
    assert service.run_once() == 1

    remaining = {t["_id"] for t in db["tickets"].find({})}
    assert remaining == {recent, open_ticket}
    assert old not in remaining

    status = service.status()
    assert status["last_removed"] == 1
    assert status["total_removed"] == 1
    assert status["is_running"] is False
    assert status["last_run"] is not None


def test_start_and_stop():
    service = TicketCleanupService(retention_days=30, interval_minutes=60)

    async def scenario():
        service.start()
        running = service.is_running
        await service.stop()
        return running

    assert asyncio.run(scenario()) is True
    assert service.is_running is False


def test_admin_endpoints(client, auth_headers, db):
    _ticket(db, "completed", completed_days_ago=400)
    res = client.post("/api/admin/cleanup/manual", headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["data"]["removed"] == 1

    status = client.get("/api/admin/cleanup/status", headers=auth_headers).json()["data"]
    assert status["retention_days"] == cleanup_service.retention_days
    assert status["last_removed"] == 1
    assert client.get("/api/admin/cleanup/status").status_code == 401
