"""
Socket.IO notifications for the manager dashboard.

Managers join the ``managers`` room, ticket views join ``ticket_<id>``.
Events are fire-and-forget: clients that are offline miss them.
"""

import logging
from typing import Any, Dict, Optional

import socketio
from fastapi.encoders import jsonable_encoder

import config
from database import utcnow

logger = logging.getLogger(__name__)

MANAGERS_ROOM = "managers"

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=config.CORS_ORIGINS)


def ticket_room(ticket_id: str) -> str:
    return f"ticket_{ticket_id}"


@sio.event
async def connect(sid, environ, auth=None):
    logger.info("New WebSocket connection %s", sid)


@sio.on("joinManagersRoom")
async def join_managers_room(sid, manager_id=None):
    await sio.enter_room(sid, MANAGERS_ROOM)
    logger.info("Manager %s joined managers room for real-time notifications", manager_id)


@sio.on("joinTicketRoom")
async def join_ticket_room(sid, ticket_id):
    await sio.enter_room(sid, ticket_room(ticket_id))
    logger.info("Client %s joined %s", sid, ticket_room(ticket_id))


@sio.event
async def disconnect(sid):
    logger.info("WebSocket %s disconnected", sid)


async def notify_new_ticket(ticket: Dict[str, Any], notification: Dict[str, Any]) -> None:
    payload = jsonable_encoder({"ticket": ticket, "notification": notification})
    await sio.emit("newTicket", payload, room=MANAGERS_ROOM)


async def notify_ticket_updated(ticket: Dict[str, Any]) -> None:
    ticket = jsonable_encoder(ticket)
    await sio.emit("ticketUpdated", ticket, room=ticket_room(ticket["id"]))
    await sio.emit("ticketUpdated", ticket, room=MANAGERS_ROOM)


async def notify_ticket_message(ticket_id: str, message: Dict[str, Any]) -> None:
    await sio.emit("newMessage", jsonable_encoder({"ticket_id": ticket_id, "message": message}), room=ticket_room(ticket_id))


def ticket_notification(guest_name: str, room_number: str, detail: str, priority: Optional[str]) -> Dict[str, Any]:
    return {
        "title": "New Service Request",
        "message": f"{guest_name} from Room {room_number} - {detail}",
        "priority": priority or "medium",
        "timestamp": utcnow().isoformat(),
    }
