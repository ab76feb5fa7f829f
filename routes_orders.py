"""Food orders charged to the guest's open bill."""

import logging
from datetime import timedelta
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator

import billing
from database import collection, create_document, epoch_ms, get_document, serialize_doc, update_document, utcnow
from responses import listing, ok
from schemas import Order, OrderItem, OrderStatus, OrderType
from security import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])

TERMINAL_STATUSES = ("delivered", "cancelled")


class OrderPlaceItem(BaseModel):
    food_id: str
    quantity: int = Field(..., ge=1)
    special_instructions: Optional[str] = Field(None, max_length=200)

    @field_validator("food_id")
    @classmethod
    def valid_food_id(cls, v):
        if not ObjectId.is_valid(v):
            raise ValueError("Invalid food ID")
        return v


class PlaceOrderRequest(BaseModel):
    guest_id: str
    items: List[OrderPlaceItem] = Field(..., min_length=1)
    type: OrderType = "room_service"
    special_instructions: Optional[str] = Field(None, max_length=500)

    @field_validator("guest_id")
    @classmethod
    def valid_guest_id(cls, v):
        if not ObjectId.is_valid(v):
            raise ValueError("Invalid guest ID")
        return v


class UpdateOrderStatus(BaseModel):
    status: OrderStatus


def next_order_number(count: int, millis=None) -> str:
    return f"ORD-{millis if millis is not None else epoch_ms()}-{count + 1}"


@router.post("", status_code=201)
def place_order(payload: PlaceOrderRequest, current: CurrentUser = Depends(get_current_user)):
    guest = get_document("guests", payload.guest_id, status="checked_in")
    if not guest:
        raise HTTPException(status_code=404, detail="Guest not found or not checked in")

    # Build snapshot items
    snapshot_items: List[OrderItem] = []
    total = 0.0
    for it in payload.items:
        food = collection("food").find_one({"_id": ObjectId(it.food_id), "is_available": True})
        if not food:
            raise HTTPException(status_code=404, detail=f"Food item not found or unavailable: {it.food_id}")
        price = float(food.get("price", 0))
        line_total = round(price * it.quantity, 2)
        total += line_total
        snapshot_items.append(
            OrderItem(
                food=food["_id"],
                food_name=food["name"],
                unit_price=price,
                quantity=it.quantity,
                total_price=line_total,
                preparation_time=food.get("preparation_time", 15),
                special_instructions=it.special_instructions,
            )
        )

    if not billing.find_open_bill(guest["_id"]):
        raise HTTPException(status_code=400, detail="No active bill found for guest")

    now = utcnow()
    longest = max(i.preparation_time for i in snapshot_items)
    order = Order(
        order_number=next_order_number(collection("orders").count_documents({})),
        guest=guest["_id"],
        guest_name=guest["name"],
        room=guest["room"],
        room_number=guest["room_number"],
        items=snapshot_items,
        total_amount=round(total, 2),
        type=payload.type,
        special_instructions=payload.special_instructions,
        estimated_delivery_time=now + timedelta(minutes=longest),
    )
    order_id = create_document("orders", order)
    doc = get_document("orders", order_id)

    try:
        billing.add_order_to_bill(guest["_id"], doc)
    except billing.BillingError as exc:
        collection("orders").delete_one({"_id": doc["_id"]})
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    logger.info("Order %s placed for room %s", doc["order_number"], doc["room_number"])
    return ok(serialize_doc(doc))


@router.get("")
def list_orders(
    status: Optional[OrderStatus] = None,
    type: Optional[OrderType] = None,
    guest_id: Optional[str] = None,
    room_number: Optional[str] = None,
    current: CurrentUser = Depends(get_current_user),
):
    filt: dict = {}
    if status:
        filt["status"] = status
    if type:
        filt["type"] = type
    if guest_id:
        filt["guest"] = ObjectId(guest_id)
    if room_number:
        filt["room_number"] = room_number
    docs = collection("orders").find(filt).sort("created_at", -1)
    return listing([serialize_doc(d) for d in docs])


@router.get("/stats")
def order_stats(current: CurrentUser = Depends(get_current_user)):
    counts = {s: 0 for s in ("pending", "confirmed", "preparing", "ready", "delivered", "cancelled")}
    revenue = 0.0
    billable = 0
    for order in collection("orders").find({}, {"status": 1, "total_amount": 1}):
        counts[order["status"]] += 1
        if order["status"] != "cancelled":
            revenue += order.get("total_amount", 0)
            billable += 1
    return ok(
        {
            **counts,
            "total_orders": sum(counts.values()),
            "total_revenue": round(revenue, 2),
            "average_order_value": round(revenue / billable, 2) if billable else 0,
        }
    )


@router.get("/{order_id}")
def get_order(order_id: str, current: CurrentUser = Depends(get_current_user)):
    doc = get_document("orders", order_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Order not found")
    return ok(serialize_doc(doc))


@router.patch("/{order_id}/status")
def update_order_status(order_id: str, payload: UpdateOrderStatus, current: CurrentUser = Depends(get_current_user)):
    order = get_document("orders", order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if order["status"] in TERMINAL_STATUSES and payload.status != order["status"]:
        raise HTTPException(status_code=400, detail=f"Cannot change status of a {order['status']} order")

    fields = {"status": payload.status}
    if payload.status == "delivered":
        fields["actual_delivery_time"] = utcnow()
    order = update_document("orders", order["_id"], fields)

    if payload.status == "cancelled":
        billing.remove_order_from_bill(order["guest"], order["_id"])
        logger.info("Order %s cancelled, bill lines removed", order["order_number"])
    return ok(serialize_doc(order))
