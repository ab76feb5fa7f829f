import logging
import re
from datetime import datetime, timedelta
from typing import Literal, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

import billing
from database import collection, get_document, serialize_doc, utcnow
from responses import listing, ok
from schemas import BillItemType, BillStatus, PaymentMethod
from security import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bills", tags=["bills"])

Period = Literal["today", "week", "month", "all"]


class BillItemCreate(BaseModel):
    type: BillItemType
    description: str = Field(..., min_length=1, max_length=200)
    amount: float
    quantity: int = Field(1, ge=1)
    notes: Optional[str] = Field(None, max_length=200)


class PaymentCreate(BaseModel):
    amount: float = Field(..., ge=0.01)
    method: PaymentMethod
    reference: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=200)


class DiscountCreate(BaseModel):
    amount: float = Field(..., gt=0)
    description: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=200)


class TaxCreate(BaseModel):
    percentage: float = Field(..., gt=0, le=100)
    description: Optional[str] = None


def period_start(period: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    now = now or utcnow()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "today":
        return midnight
    if period == "week":
        # weeks start on Sunday
        return midnight - timedelta(days=(midnight.weekday() + 1) % 7)
    if period == "month":
        return midnight.replace(day=1)
    return None


def _with_refs(bill: dict) -> dict:
    data = serialize_doc(bill)
    guest = collection("guests").find_one({"_id": bill["guest"]}, {"name": 1, "phone": 1, "email": 1})
    room = collection("rooms").find_one({"_id": bill["room"]}, {"number": 1, "type": 1, "floor": 1})
    data["guest"] = serialize_doc(guest) if guest else str(bill["guest"])
    data["room"] = serialize_doc(room) if room else str(bill["room"])
    return data


def _get_bill(bill_id: str) -> dict:
    bill = get_document("bills", bill_id)
    if not bill:
        raise HTTPException(status_code=404, detail="Bill not found")
    return bill


def _open_bill(bill_id: str) -> dict:
    bill = get_document("bills", bill_id)
    if not billing.is_open(bill):
        raise HTTPException(status_code=404, detail="Active bill not found")
    return bill


@router.get("/stats")
def bill_stats(period: Period = "month", current: CurrentUser = Depends(get_current_user)):
    match = {}
    start = period_start(period)
    if start:
        match["created_at"] = {"$gte": start}

    rows = list(
        collection("bills").aggregate(
            [
                {"$match": match},
                {
                    "$group": {
                        "_id": "$status",
                        "count": {"$sum": 1},
                        "total_amount": {"$sum": "$total_amount"},
                        "paid_amount": {"$sum": "$paid_amount"},
                        "balance_amount": {"$sum": "$balance_amount"},
                    }
                },
            ]
        )
    )

    data = {
        row["_id"]: {
            "count": row["count"],
            "total_amount": round(row["total_amount"], 2),
            "paid_amount": round(row["paid_amount"], 2),
            "balance_amount": round(row["balance_amount"], 2),
        }
        for row in rows
    }
    data["total_revenue"] = round(sum(r["total_amount"] for r in rows), 2)
    data["total_paid"] = round(sum(r["paid_amount"] for r in rows), 2)
    data["total_pending"] = round(sum(r["balance_amount"] for r in rows), 2)
    data["period"] = period
    return ok(data)


@router.get("")
def list_bills(
    status: Optional[BillStatus] = None,
    room_number: Optional[str] = None,
    guest_name: Optional[str] = None,
    period: Optional[Period] = None,
    current: CurrentUser = Depends(get_current_user),
):
    logger.info("Fetching bills for manager %s", current.email)
    query: dict = {}
    if status:
        query["status"] = status
    if room_number:
        query["room_number"] = room_number
    if guest_name:
        query["guest_name"] = {"$regex": re.escape(guest_name), "$options": "i"}
    start = period_start(period)
    if start:
        query["created_at"] = {"$gte": start}

    bills = collection("bills").find(query).sort("created_at", -1)
    return listing([_with_refs(b) for b in bills])


@router.get("/guest/{guest_id}")
def get_bill_by_guest(guest_id: str, current: CurrentUser = Depends(get_current_user)):
    bill = collection("bills").find_one(
        {"guest": ObjectId(guest_id), "status": {"$ne": "cancelled"}}, sort=[("created_at", -1)]
    )
    if not bill:
        raise HTTPException(status_code=404, detail="Bill not found for this guest")
    return ok(_with_refs(bill))


@router.get("/{bill_id}")
def get_bill(bill_id: str, current: CurrentUser = Depends(get_current_user)):
    bill = _get_bill(bill_id)
    data = _with_refs(bill)
    order_ids = {i["order_id"] for i in bill["items"] if i.get("order_id")}
    if order_ids:
        orders = collection("orders").find({"_id": {"$in": list(order_ids)}}, {"order_number": 1})
        numbers = {str(o["_id"]): o["order_number"] for o in orders}
        for item in data["items"]:
            if item.get("order_id"):
                item["order_number"] = numbers.get(item["order_id"])
    return ok(data)


@router.post("/{bill_id}/items", status_code=201)
def add_bill_item(bill_id: str, payload: BillItemCreate, current: CurrentUser = Depends(get_current_user)):
    bill = _open_bill(bill_id)
    amount = payload.amount
    if payload.type == "discount":
        amount = -abs(amount)
    bill["items"].append(
        billing.make_item(
            type=payload.type,
            description=payload.description.strip(),
            amount=amount,
            quantity=payload.quantity,
            unit_price=amount,
            added_by=current.name or "Manager",
            notes=payload.notes,
        )
    )
    return ok(serialize_doc(billing.save_bill(bill)))


@router.delete("/{bill_id}/items/{item_id}")
def remove_bill_item(bill_id: str, item_id: str, current: CurrentUser = Depends(get_current_user)):
    bill = _open_bill(bill_id)
    target = ObjectId(item_id)
    remaining = [i for i in bill["items"] if i.get("_id") != target]
    if len(remaining) == len(bill["items"]):
        raise HTTPException(status_code=404, detail="Bill item not found")
    bill["items"] = remaining
    return ok(serialize_doc(billing.save_bill(bill)))


@router.post("/{bill_id}/payments", status_code=201)
def add_payment(bill_id: str, payload: PaymentCreate, current: CurrentUser = Depends(get_current_user)):
    bill = _get_bill(bill_id)
    if bill["status"] == "cancelled":
        raise HTTPException(status_code=400, detail="Cannot record a payment on a cancelled bill")
    bill["payments"].append(
        billing.make_payment(
            amount=payload.amount,
            method=payload.method,
            reference=payload.reference,
            notes=payload.notes,
            received_by=current.name or "Manager",
        )
    )
    bill = billing.save_bill(bill)
    logger.info("Payment of %.2f recorded on bill %s", payload.amount, bill["bill_number"])
    return ok(serialize_doc(bill))


@router.post("/{bill_id}/discount", status_code=201)
def apply_discount(bill_id: str, payload: DiscountCreate, current: CurrentUser = Depends(get_current_user)):
    bill = _open_bill(bill_id)
    bill["items"].append(
        billing.discount_item(payload.amount, payload.description, current.name or "Manager", payload.notes)
    )
    return ok(serialize_doc(billing.save_bill(bill)))


@router.post("/{bill_id}/tax", status_code=201)
def add_tax(bill_id: str, payload: TaxCreate, current: CurrentUser = Depends(get_current_user)):
    bill = _open_bill(bill_id)
    bill["items"].append(
        billing.tax_item(bill["subtotal"], payload.percentage, payload.description, current.name or "Manager")
    )
    return ok(serialize_doc(billing.save_bill(bill)))


@router.post("/{bill_id}/finalize")
def finalize_bill(bill_id: str, current: CurrentUser = Depends(get_current_user)):
    bill = _open_bill(bill_id)
    bill["finalized_at"] = utcnow()
    bill["finalized_by"] = current.name or "Manager"
    bill = billing.save_bill(bill)
    logger.info("Bill %s finalized by %s", bill["bill_number"], current.email)
    return ok(serialize_doc(bill))


@router.post("/{bill_id}/cancel")
def cancel_bill(bill_id: str, current: CurrentUser = Depends(get_current_user)):
    bill = _get_bill(bill_id)
    if bill["status"] == "cancelled":
        raise HTTPException(status_code=400, detail="Bill is already cancelled")
    if bill["paid_amount"] > 0 or bill.get("finalized_at"):
        raise HTTPException(status_code=400, detail="Only unpaid, open bills can be cancelled")
    bill["status"] = "cancelled"
    bill = billing.save_bill(bill)
    logger.info("Bill %s cancelled by %s", bill["bill_number"], current.email)
    return ok(serialize_doc(bill))
