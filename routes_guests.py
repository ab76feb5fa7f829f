"""Guest check-in, check-out and lookups."""

import logging
import math
import re
from datetime import datetime
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator, model_validator
from pymongo.errors import PyMongoError

import billing
from database import as_utc_naive, collection, create_document, get_document, serialize_doc, update_document, utcnow
from responses import ok
from schemas import Address, EmergencyContact, Guest, GuestStatus, IdType, OptionalEmail
from security import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/guests", tags=["guests"])

ROOM_SUMMARY_FIELDS = {"number": 1, "type": 1, "floor": 1, "price": 1}


def stay_duration(guest: dict) -> int:
    end = guest.get("actual_check_out_date") or guest["check_out_date"]
    return max(0, math.ceil((end - guest["check_in_date"]).total_seconds() / 86400))


def room_summary(room_id, room_number: Optional[str] = None) -> dict:
    room = collection("rooms").find_one({"_id": room_id}, ROOM_SUMMARY_FIELDS) if room_id else None
    if room:
        return serialize_doc(room)
    return {"id": str(room_id) if room_id else None, "number": room_number or "N/A", "type": "Unknown", "floor": None, "price": 0}


class CheckInRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: OptionalEmail = None
    phone: str = Field(..., min_length=1)
    id_type: IdType
    id_number: str = Field(..., min_length=1)
    address: Address = Field(default_factory=Address)
    emergency_contact: EmergencyContact = Field(default_factory=EmergencyContact)
    check_in_date: datetime
    check_out_date: datetime
    number_of_guests: int = Field(..., ge=1)
    room_id: str
    special_requests: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("name", "phone", "id_number", mode="before")
    @classmethod
    def strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("room_id")
    @classmethod
    def valid_room_id(cls, v):
        if not ObjectId.is_valid(v):
            raise ValueError("Invalid room ID")
        return v

    @model_validator(mode="after")
    def check_dates(self):
        self.check_in_date = as_utc_naive(self.check_in_date)
        self.check_out_date = as_utc_naive(self.check_out_date)
        if self.check_out_date <= self.check_in_date:
            raise ValueError("Check-out date must be after check-in date")
        return self


class GuestUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: OptionalEmail = None
    phone: Optional[str] = Field(None, min_length=1)
    emergency_contact: Optional[EmergencyContact] = None
    special_requests: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=1000)
    number_of_guests: Optional[int] = Field(None, ge=1)


class ExtendStayRequest(BaseModel):
    check_out_date: datetime

    @field_validator("check_out_date")
    @classmethod
    def naive(cls, v):
        return as_utc_naive(v)


@router.get("/room/{room_number}")
def get_guest_by_room(room_number: str):
    guest = collection("guests").find_one({"room_number": room_number, "status": "checked_in"})
    if not guest:
        return ok(None, message="No active guest found for this room")
    return ok(
        {
            "id": str(guest["_id"]),
            "name": guest["name"],
            "room_number": guest["room_number"],
            "room": room_summary(guest["room"], guest["room_number"]),
            "check_in_date": guest["check_in_date"],
            "check_out_date": guest["check_out_date"],
            "status": guest["status"],
        }
    )


@router.get("/stats")
def guest_stats(current: CurrentUser = Depends(get_current_user)):
    counts = {"checked_in": 0, "checked_out": 0, "cancelled": 0, "no_show": 0}
    for row in collection("guests").aggregate([{"$group": {"_id": "$status", "count": {"$sum": 1}}}]):
        counts[row["_id"]] = row["count"]

    occupied = collection("rooms").count_documents({"status": "occupied", "is_active": True})
    total = collection("rooms").count_documents({"is_active": True})
    return ok(
        {
            **counts,
            "occupied_rooms": occupied,
            "total_rooms": total,
            "occupancy_rate": round(occupied / total * 100) if total else 0,
        }
    )


@router.get("")
def list_guests(
    status: Optional[GuestStatus] = None,
    room_number: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    current: CurrentUser = Depends(get_current_user),
):
    logger.info("Fetching guests for manager %s", current.email)
    query: dict = {}
    if status:
        query["status"] = status
    if room_number:
        query["room_number"] = room_number
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"name": pattern}, {"email": pattern}, {"phone": pattern}, {"room_number": pattern}]

    guests = collection("guests")
    total = guests.count_documents(query)
    docs = guests.find(query).sort("check_in_date", -1).skip((page - 1) * limit).limit(limit)

    data = []
    for guest in docs:
        item = serialize_doc(guest)
        item["stay_duration"] = stay_duration(guest)
        item["room"] = room_summary(guest["room"], guest.get("room_number"))
        data.append(item)

    return ok(data, pagination={"total": total, "pages": math.ceil(total / limit), "current": page, "limit": limit})


@router.get("/{guest_id}")
def get_guest(guest_id: str, current: CurrentUser = Depends(get_current_user)):
    guest = get_document("guests", guest_id)
    if not guest:
        raise HTTPException(status_code=404, detail="Guest not found")
    data = serialize_doc(guest)
    data["stay_duration"] = stay_duration(guest)
    data["room"] = room_summary(guest["room"], guest.get("room_number"))
    data["current_bill"] = serialize_doc(collection("bills").find_one({"guest": guest["_id"]}, sort=[("created_at", -1)]))
    return ok(data)


@router.post("/checkin", status_code=201)
def check_in_guest(payload: CheckInRequest, current: CurrentUser = Depends(get_current_user)):
    room = collection("rooms").find_one(
        {"_id": ObjectId(payload.room_id), "status": "available", "is_active": True}
    )
    if not room:
        logger.info("Room %s not found or not available", payload.room_id)
        raise HTTPException(status_code=404, detail="Room not available or not found")
    if payload.number_of_guests > room.get("capacity", payload.number_of_guests):
        raise HTTPException(
            status_code=400,
            detail=f"Room {room['number']} holds at most {room['capacity']} guests",
        )

    guest_data = Guest(
        **payload.model_dump(exclude={"room_id"}),
        room=room["_id"],
        room_number=room["number"],
        status="checked_in",
    )
    guest_id = create_document("guests", guest_data)
    guest = get_document("guests", guest_id)

    # The room is only marked occupied once guest and bill both exist.
    nights = billing.nights_between(guest["check_in_date"], guest["check_out_date"])
    try:
        bill = billing.create_bill(guest, room, [billing.room_charge_item(room, nights)])
    except PyMongoError:
        logger.exception("Bill creation failed while checking in %s", guest["name"])
        collection("guests").delete_one({"_id": guest["_id"]})
        raise HTTPException(status_code=500, detail="Server error during check-in")

    claimed = collection("rooms").update_one(
        {"_id": room["_id"], "status": "available"},
        {"$set": {"status": "occupied", "current_guest": guest["_id"], "updated_at": utcnow()}},
    )
    if not claimed.modified_count:
        collection("bills").delete_one({"_id": bill["_id"]})
        collection("guests").delete_one({"_id": guest["_id"]})
        raise HTTPException(status_code=409, detail="Room was taken by another check-in")

    logger.info("Checked in %s to room %s, bill %s", guest["name"], room["number"], bill["bill_number"])

    data = serialize_doc(guest)
    data["room"] = room_summary(room["_id"])
    return ok({"guest": data, "bill": serialize_doc(bill)})


@router.api_route("/{guest_id}/checkout", methods=["POST", "PUT"])
def check_out_guest(guest_id: str, current: CurrentUser = Depends(get_current_user)):
    guest = get_document("guests", guest_id, status="checked_in")
    if not guest:
        raise HTTPException(status_code=404, detail="Guest not found or already checked out")

    now = utcnow()
    guest = update_document("guests", guest["_id"], {"status": "checked_out", "actual_check_out_date": now})
    update_document("rooms", guest["room"], {"status": "cleaning", "current_guest": None})

    bill = collection("bills").find_one({"guest": guest["_id"], "status": {"$ne": "cancelled"}})
    if bill:
        bill["check_out_date"] = now
        bill["finalized_at"] = now
        bill["finalized_by"] = current.name or "Manager"
        bill = billing.save_bill(bill)

    logger.info("Checked out %s from room %s", guest["name"], guest["room_number"])
    return ok({"guest": serialize_doc(guest), "bill": serialize_doc(bill)})


@router.post("/{guest_id}/extend")
def extend_stay(guest_id: str, payload: ExtendStayRequest, current: CurrentUser = Depends(get_current_user)):
    guest = get_document("guests", guest_id, status="checked_in")
    if not guest:
        raise HTTPException(status_code=404, detail="Guest not found or already checked out")
    if payload.check_out_date <= guest["check_out_date"]:
        raise HTTPException(status_code=400, detail="New check-out date must be after the current one")

    room = get_document("rooms", guest["room"])
    extra_nights = billing.nights_between(guest["check_out_date"], payload.check_out_date)
    bill = billing.add_room_charge(guest["_id"], float(room.get("price") or 0) if room else 0.0, extra_nights)
    guest = update_document("guests", guest["_id"], {"check_out_date": payload.check_out_date})
    if bill:
        bill["check_out_date"] = payload.check_out_date
        bill = billing.save_bill(bill)
    return ok({"guest": serialize_doc(guest), "bill": serialize_doc(bill)})


@router.put("/{guest_id}")
def update_guest(guest_id: str, patch: GuestUpdate, current: CurrentUser = Depends(get_current_user)):
    guest = get_document("guests", guest_id)
    if not guest:
        raise HTTPException(status_code=404, detail="Guest not found")

    update_data = patch.model_dump(exclude_unset=True)
    if not update_data:
        return ok(serialize_doc(guest))

    guest = update_document("guests", guest["_id"], update_data)
    if "name" in update_data:
        collection("bills").update_many({"guest": guest["_id"]}, {"$set": {"guest_name": guest["name"]}})
    data = serialize_doc(guest)
    data["room"] = room_summary(guest["room"], guest.get("room_number"))
    return ok(data)
