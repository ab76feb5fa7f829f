import logging
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from database import collection, create_document, get_document, serialize_doc, update_document
from responses import listing, ok
from schemas import Room, RoomStatus
from security import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rooms", tags=["rooms"])

ROOM_NUMBER_PATTERN = r"^[0-9A-Za-z-]+$"
ACTIVE_TICKET_STATUSES = ["raised", "in_progress"]


class RoomCreate(BaseModel):
    number: str = Field(..., min_length=1, pattern=ROOM_NUMBER_PATTERN)
    type: str = Field(..., min_length=1, max_length=50)
    floor: int = Field(..., ge=1, le=200)
    price: float = Field(..., ge=0)
    capacity: int = Field(2, ge=1)
    amenities: List[str] = Field(default_factory=list)
    description: Optional[str] = Field(None, max_length=500)
    status: RoomStatus = "available"


class RoomUpdate(BaseModel):
    number: Optional[str] = Field(None, min_length=1, pattern=ROOM_NUMBER_PATTERN)
    type: Optional[str] = Field(None, min_length=1, max_length=50)
    floor: Optional[int] = Field(None, ge=1, le=200)
    price: Optional[float] = Field(None, ge=0)
    capacity: Optional[int] = Field(None, ge=1)
    amenities: Optional[List[str]] = None
    description: Optional[str] = Field(None, max_length=500)
    status: Optional[RoomStatus] = None


def _active_room(room_id: str) -> dict:
    room = get_document("rooms", room_id, is_active=True)
    if not room:
        raise HTTPException(status_code=404, detail=f"Room not found with id of {room_id}")
    return room


def _number_taken(number: str, exclude_id: Optional[ObjectId] = None) -> bool:
    query = {"number": number, "is_active": True}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return collection("rooms").find_one(query) is not None


@router.get("/number/{number}")
def get_room_by_number(number: str):
    room = collection("rooms").find_one({"number": number, "is_active": True})
    if not room:
        raise HTTPException(status_code=404, detail=f"Room with number {number} not found or inactive")
    return ok(serialize_doc(room))


@router.get("")
def list_rooms(status: Optional[RoomStatus] = None, current: CurrentUser = Depends(get_current_user)):
    filt = {"is_active": True}
    if status:
        filt["status"] = status
    rooms = collection("rooms").find(filt).sort([("floor", 1), ("number", 1)])
    return listing([serialize_doc(r) for r in rooms])


@router.get("/{room_id}")
def get_room(room_id: str, current: CurrentUser = Depends(get_current_user)):
    return ok(serialize_doc(_active_room(room_id)))


@router.post("", status_code=201)
def create_room(payload: RoomCreate, current: CurrentUser = Depends(get_current_user)):
    number = payload.number.strip()
    if _number_taken(number):
        raise HTTPException(status_code=400, detail=f"Room with number {number} already exists")
    room = Room(**payload.model_dump(exclude={"number"}), number=number)
    room_id = create_document("rooms", room)
    logger.info("Manager %s created room %s", current.email, number)
    return ok(serialize_doc(get_document("rooms", room_id)))


@router.put("/{room_id}")
def update_room(room_id: str, patch: RoomUpdate, current: CurrentUser = Depends(get_current_user)):
    room = _active_room(room_id)
    update_data = patch.model_dump(exclude_unset=True)
    if not update_data:
        return ok(serialize_doc(room))

    number = update_data.get("number")
    if number and number != room["number"] and _number_taken(number, exclude_id=room["_id"]):
        raise HTTPException(status_code=400, detail=f"Room with number {number} already exists")

    doc = update_document("rooms", room["_id"], update_data)
    return ok(serialize_doc(doc))


@router.delete("/{room_id}")
def delete_room(room_id: str, current: CurrentUser = Depends(get_current_user)):
    room = _active_room(room_id)

    active_tickets = collection("tickets").count_documents(
        {"room": room["_id"], "status": {"$in": ACTIVE_TICKET_STATUSES}}
    )
    if active_tickets > 0:
        raise HTTPException(
            status_code=400,
            detail="Cannot delete room with active tickets. Please resolve all tickets first.",
        )
    if room.get("status") == "occupied":
        raise HTTPException(status_code=400, detail="Cannot delete an occupied room. Check the guest out first.")

    update_document("rooms", room["_id"], {"is_active": False})
    logger.info("Manager %s deleted room %s", current.email, room["number"])
    return ok({})
