"""
Guest service tickets and the manager kanban board.

Guests raise tickets without logging in (from the in-room page or the chat
assistant); managers list, move and answer them. Each change is pushed to
Socket.IO clients after the response has been sent.
"""

import logging
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field

import realtime
from assistant import analyze_message
from database import as_utc_naive, collection, create_document, get_document, serialize_doc, update_document, utcnow
from responses import listing, ok
from schemas import Ticket, TicketGuestInfo, TicketMessage, TicketPriority, TicketStatus
from security import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tickets", tags=["tickets"])


class GuestInfoIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = ""
    phone: Optional[str] = ""


class TicketCreate(BaseModel):
    room_number: str = Field(..., min_length=1)
    guest_info: GuestInfoIn
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    priority: TicketPriority = "medium"
    category: str = "general"


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: Optional[datetime] = None


class GuestTicketCreate(BaseModel):
    room_number: str = Field(..., min_length=1)
    guest_info: GuestInfoIn
    initial_message: str = Field(..., min_length=1)
    priority: TicketPriority = "medium"
    conversation_history: List[ChatTurn] = Field(default_factory=list)


class StatusUpdate(BaseModel):
    status: TicketStatus


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


def ticket_message(content: str, sender: str, sender_name: str, timestamp: Optional[datetime] = None) -> dict:
    return TicketMessage(
        content=content,
        sender=sender,
        sender_name=sender_name,
        timestamp=as_utc_naive(timestamp) or utcnow(),
    ).model_dump()


def find_active_room(room_number: str) -> Optional[dict]:
    return collection("rooms").find_one({"number": room_number, "is_active": True})


def _room_or_404(room_number: str) -> dict:
    room = find_active_room(room_number)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return room


def open_ticket(room: dict, guest_info: GuestInfoIn, **fields) -> dict:
    guest = collection("guests").find_one({"room": room["_id"], "status": "checked_in"}, {"_id": 1})
    ticket = Ticket(
        room=room["_id"],
        guest=guest["_id"] if guest else None,
        room_number=room["number"],
        guest_info=TicketGuestInfo(
            name=guest_info.name,
            email=guest_info.email or "",
            phone=guest_info.phone or "",
        ),
        **fields,
    )
    ticket_id = create_document("tickets", ticket)
    return get_document("tickets", ticket_id)


def _ticket_or_404(ticket_id: str) -> dict:
    ticket = get_document("tickets", ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket


@router.post("", status_code=201)
def create_ticket(payload: TicketCreate, background_tasks: BackgroundTasks):
    room = _room_or_404(payload.room_number)
    ticket = open_ticket(
        room,
        payload.guest_info,
        priority=payload.priority,
        category=payload.category,
        subject=payload.subject,
        messages=[ticket_message(payload.message, "guest", payload.guest_info.name)],
    )
    data = serialize_doc(ticket)
    background_tasks.add_task(
        realtime.notify_new_ticket,
        data,
        realtime.ticket_notification(payload.guest_info.name, room["number"], payload.subject, payload.priority),
    )
    logger.info("Ticket %s raised for room %s", data["id"], room["number"])
    return ok(data, message="Ticket created successfully")


@router.post("/guest", status_code=201)
def create_guest_ticket(payload: GuestTicketCreate, background_tasks: BackgroundTasks):
    room = _room_or_404(payload.room_number)
    name = payload.guest_info.name
    messages = [
        ticket_message(
            turn.content,
            "guest" if turn.role == "user" else "ai_assistant",
            name if turn.role == "user" else "AI Assistant",
            turn.timestamp,
        )
        for turn in payload.conversation_history
    ]
    messages.append(ticket_message(f"Service Request Created\n\n{payload.initial_message}", "system", "System"))

    ticket = open_ticket(
        room,
        payload.guest_info,
        priority=payload.priority,
        category=analyze_message(payload.initial_message).category,
        subject=f"Service Request - Room {room['number']}",
        messages=messages,
    )
    data = serialize_doc(ticket)
    background_tasks.add_task(
        realtime.notify_new_ticket,
        data,
        realtime.ticket_notification(name, room["number"], "needs assistance", payload.priority),
    )
    logger.info("Chat ticket %s raised for room %s", data["id"], room["number"])
    return ok(data, message="Service request created successfully")


@router.get("")
def list_tickets(
    status: Optional[TicketStatus] = None,
    priority: Optional[TicketPriority] = None,
    room_number: Optional[str] = None,
    current: CurrentUser = Depends(get_current_user),
):
    filt: dict = {}
    if status:
        filt["status"] = status
    if priority:
        filt["priority"] = priority
    if room_number:
        filt["room_number"] = room_number
    tickets = collection("tickets").find(filt).sort("created_at", -1)
    return listing([serialize_doc(t) for t in tickets])


@router.get("/{ticket_id}")
def get_ticket(ticket_id: str, current: CurrentUser = Depends(get_current_user)):
    return ok(serialize_doc(_ticket_or_404(ticket_id)))


@router.put("/{ticket_id}/status")
def update_ticket_status(
    ticket_id: str,
    payload: StatusUpdate,
    background_tasks: BackgroundTasks,
    current: CurrentUser = Depends(get_current_user),
):
    ticket = _ticket_or_404(ticket_id)
    fields = {"status": payload.status}
    if payload.status == "completed":
        if ticket["status"] != "completed":
            fields["completed_at"] = utcnow()
    else:
        fields["completed_at"] = None
    ticket = update_document("tickets", ticket["_id"], fields)

    data = serialize_doc(ticket)
    background_tasks.add_task(realtime.notify_ticket_updated, data)
    logger.info("Manager %s moved ticket %s to %s", current.email, data["id"], payload.status)
    return ok(data)


@router.post("/{ticket_id}/messages", status_code=201)
def add_message(
    ticket_id: str,
    payload: MessageCreate,
    background_tasks: BackgroundTasks,
    current: CurrentUser = Depends(get_current_user),
):
    ticket = _ticket_or_404(ticket_id)
    message = ticket_message(payload.content.strip(), "manager", current.name or "Manager")
    collection("tickets").update_one(
        {"_id": ticket["_id"]},
        {"$push": {"messages": message}, "$set": {"updated_at": utcnow()}},
    )
    ticket = get_document("tickets", ticket["_id"])

    background_tasks.add_task(realtime.notify_ticket_message, str(ticket["_id"]), serialize_doc(message))
    return ok(serialize_doc(ticket))
