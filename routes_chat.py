import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field

import realtime
from assistant import (
    AssistantError,
    MistralClient,
    analyze_message,
    build_guest_messages,
    build_manager_messages,
    fallback_reply,
    fallback_suggestion,
    get_mistral_client,
)
from database import epoch_ms, get_document, serialize_doc, utcnow
from routes_tickets import GuestInfoIn, find_active_room, open_ticket, ticket_message
from security import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


class ChatGuestInfo(BaseModel):
    guest_name: Optional[str] = Field(None, max_length=100)
    room_number: str = Field(..., min_length=1)
    room_type: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    guest_info: ChatGuestInfo
    conversation_history: List[Dict[str, Any]] = Field(default_factory=list)


class ManagerAssistRequest(BaseModel):
    ticket_id: str
    conversation_history: List[Dict[str, Any]]
    request_type: Optional[str] = None


def _ticket_from_chat(
    payload: ChatRequest, category: str, priority: str, background_tasks: BackgroundTasks
) -> Optional[dict]:
    info = payload.guest_info
    room = find_active_room(info.room_number)
    if not room:
        logger.warning("Room %s not found, no ticket raised from chat", info.room_number)
        return None

    name = info.guest_name or "Guest"
    summary = f"Original Guest Message: \"{payload.message}\"\n\nCategorized Request: {category}"
    ticket = open_ticket(
        room,
        GuestInfoIn(name=name, email=info.email or "", phone=info.phone or ""),
        priority=priority,
        category=category,
        subject=payload.message[:200],
        messages=[ticket_message(summary, "system", "Auto-Generated")],
    )
    data = serialize_doc(ticket)
    background_tasks.add_task(
        realtime.notify_new_ticket,
        data,
        realtime.ticket_notification(name, room["number"], category, priority),
    )
    logger.info("Chat raised ticket %s for room %s", data["id"], room["number"])
    return data


@router.post("/ai")
def chat_with_ai(
    payload: ChatRequest,
    background_tasks: BackgroundTasks,
    mistral: MistralClient = Depends(get_mistral_client),
):
    info = payload.guest_info
    analysis = analyze_message(payload.message)
    now = utcnow()
    reply = {
        "should_create_ticket": analysis.should_create_ticket,
        "urgency_level": analysis.urgency_level,
        "category": analysis.category,
        "timestamp": now,
        "conversation_id": f"{info.room_number}-{epoch_ms()}",
        "fallback": False,
    }

    try:
        reply["message"] = mistral.complete(
            build_guest_messages(payload.message, info.model_dump(), payload.conversation_history)
        )
    except AssistantError as exc:
        logger.warning("Chat assistant unavailable for room %s: %s", info.room_number, exc)
        reply["message"] = fallback_reply(info.guest_name)
        reply["should_create_ticket"] = True
        reply["fallback"] = True

    reply["ticket_id"] = None
    if reply["should_create_ticket"]:
        ticket = _ticket_from_chat(payload, analysis.category, analysis.urgency_level, background_tasks)
        reply["ticket_id"] = ticket["id"] if ticket else None

    return {"success": True, **reply}


@router.post("/manager-assist")
def manager_assist(
    payload: ManagerAssistRequest,
    current: CurrentUser = Depends(get_current_user),
    mistral: MistralClient = Depends(get_mistral_client),
):
    ticket = get_document("tickets", payload.ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")

    history = payload.conversation_history or ticket.get("messages", [])
    try:
        suggestion = mistral.complete(build_manager_messages(ticket, history, payload.request_type))
        used_fallback = False
    except AssistantError as exc:
        logger.warning("Manager assist fell back for ticket %s: %s", payload.ticket_id, exc)
        suggestion = fallback_suggestion(ticket["guest_info"]["name"])
        used_fallback = True

    return {"success": True, "suggestion": suggestion, "timestamp": utcnow(), "fallback": used_fallback}
