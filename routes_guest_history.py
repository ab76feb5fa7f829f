"""Past and present stays with their orders, bills and tickets."""

import logging
import math
import re
from collections import Counter
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from database import as_utc_naive, collection, get_document, serialize_doc
from responses import ok
from routes_guests import room_summary, stay_duration
from schemas import GuestStatus
from security import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/guests/history", tags=["guest-history"])

SortField = Literal["check_in_date", "check_out_date", "name", "created_at"]


def _activity(guest: dict) -> dict:
    orders = list(collection("orders").find({"guest": guest["_id"]}).sort("created_at", -1))
    bills = list(collection("bills").find({"guest": guest["_id"]}).sort("created_at", -1))
    tickets = list(collection("tickets").find({"guest": guest["_id"]}).sort("created_at", -1))
    return {"orders": orders, "bills": bills, "tickets": tickets}


def _spent(bills: list) -> float:
    return round(sum(b.get("total_amount", 0) for b in bills if b.get("status") != "cancelled"), 2)


@router.get("")
def guest_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[GuestStatus] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    sort_by: SortField = "check_in_date",
    sort_order: Literal["asc", "desc"] = "desc",
    current: CurrentUser = Depends(get_current_user),
):
    query: dict = {}
    if status:
        query["status"] = status
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"name": pattern}, {"email": pattern}, {"phone": pattern}, {"room_number": pattern}]
    if date_from or date_to:
        window = {}
        if date_from:
            window["$gte"] = as_utc_naive(date_from)
        if date_to:
            window["$lte"] = as_utc_naive(date_to)
        query["check_in_date"] = window

    guests = collection("guests")
    total = guests.count_documents(query)
    cursor = (
        guests.find(query)
        .sort(sort_by, 1 if sort_order == "asc" else -1)
        .skip((page - 1) * limit)
        .limit(limit)
    )

    rows = []
    for guest in cursor:
        activity = _activity(guest)
        row = serialize_doc(guest)
        row["room"] = room_summary(guest["room"], guest.get("room_number"))
        row.update({k: [serialize_doc(d) for d in v] for k, v in activity.items()})
        row["total_spent"] = _spent(activity["bills"])
        row["total_orders"] = len(activity["orders"])
        row["total_tickets"] = len(activity["tickets"])
        row["stay_duration"] = stay_duration(guest)
        rows.append(row)

    return ok(
        {
            "guests": rows,
            "pagination": {"total": total, "pages": math.ceil(total / limit), "current": page, "limit": limit},
        }
    )


@router.get("/stats")
def guest_history_stats(current: CurrentUser = Depends(get_current_user)):
    guests = collection("guests")
    revenue = sum(
        b.get("total_amount", 0) for b in collection("bills").find({"status": {"$ne": "cancelled"}}, {"total_amount": 1})
    )
    stays_per_phone = Counter(g["phone"] for g in guests.find({}, {"phone": 1}))
    recent = guests.find({}).sort("check_in_date", -1).limit(5)

    return ok(
        {
            "total_guests": guests.count_documents({}),
            "active_guests": guests.count_documents({"status": "checked_in"}),
            "checked_out_guests": guests.count_documents({"status": "checked_out"}),
            "total_revenue": round(revenue, 2),
            "total_orders": collection("orders").count_documents({}),
            "total_tickets": collection("tickets").count_documents({}),
            "repeat_guests": sum(1 for n in stays_per_phone.values() if n > 1),
            "recent_activity": [
                {
                    "id": str(g["_id"]),
                    "name": g["name"],
                    "room_number": g["room_number"],
                    "status": g["status"],
                    "check_in_date": g["check_in_date"],
                }
                for g in recent
            ],
        }
    )


@router.get("/{guest_id}")
def guest_profile(guest_id: str, current: CurrentUser = Depends(get_current_user)):
    guest = get_document("guests", guest_id)
    if not guest:
        raise HTTPException(status_code=404, detail="Guest not found")

    stays = list(collection("guests").find({"phone": guest["phone"]}).sort("check_in_date", -1))
    orders, bills, tickets = [], [], []
    room_types = Counter()
    for stay in stays:
        activity = _activity(stay)
        orders.extend(activity["orders"])
        bills.extend(activity["bills"])
        tickets.extend(activity["tickets"])
        room = collection("rooms").find_one({"_id": stay["room"]}, {"type": 1})
        if room:
            room_types[room["type"]] += 1

    durations = [stay_duration(s) for s in stays]
    stats = {
        "total_stays": len(stays),
        "total_spent": _spent(bills),
        "total_orders": len(orders),
        "total_tickets": len(tickets),
        "average_stay_duration": round(sum(durations) / len(durations), 1) if durations else 0,
        "favorite_room_type": room_types.most_common(1)[0][0] if room_types else None,
        "total_items_ordered": sum(line["quantity"] for o in orders for line in o.get("items", [])),
        "last_visit": stays[0]["check_in_date"] if stays else None,
        "first_visit": stays[-1]["check_in_date"] if stays else None,
    }

    data = serialize_doc(guest)
    data["room"] = room_summary(guest["room"], guest.get("room_number"))
    data["stay_duration"] = stay_duration(guest)
    return ok(
        {
            "guest": data,
            "orders": [serialize_doc(o) for o in orders],
            "bills": [serialize_doc(b) for b in bills],
            "tickets": [serialize_doc(t) for t in tickets],
            "all_stays": [serialize_doc(s) for s in stays],
            "stats": stats,
        }
    )
