"""
Bill arithmetic and persistence.

Bills are plain MongoDB documents. Every write goes through ``save_bill`` so
that subtotal, tax, discount, total, paid, balance and status always reflect
the current ``items`` and ``payments`` arrays.
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId

from database import collection, epoch_ms, utcnow
from schemas import BillItem, Payment

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("active", "partially_paid")
NON_CHARGE_TYPES = ("tax", "discount")


class BillingError(Exception):
    pass


def _money(value: float) -> float:
    return round(value + 0.0, 2)


def recalculate(bill: Dict[str, Any]) -> Dict[str, Any]:
    """Derive totals and status from the bill's items and payments, in place."""
    items = bill.get("items") or []
    payments = bill.get("payments") or []

    subtotal = sum(i["amount"] for i in items if i["type"] not in NON_CHARGE_TYPES)
    tax = sum(i["amount"] for i in items if i["type"] == "tax")
    discount = sum(abs(i["amount"]) for i in items if i["type"] == "discount")
    paid = sum(p["amount"] for p in payments)

    total = subtotal + tax - discount
    balance = total - paid

    bill["subtotal"] = _money(subtotal)
    bill["tax_amount"] = _money(tax)
    bill["discount_amount"] = _money(discount)
    bill["paid_amount"] = _money(paid)
    bill["total_amount"] = _money(total)
    bill["balance_amount"] = _money(balance)

    if bill.get("status") == "cancelled":
        return bill
    if bill["balance_amount"] <= 0 and bill["total_amount"] > 0:
        bill["status"] = "paid"
    elif bill["paid_amount"] > 0 and bill["balance_amount"] > 0:
        bill["status"] = "partially_paid"
    else:
        bill["status"] = "active"
    return bill


def next_bill_number(count: int, millis: Optional[int] = None) -> str:
    suffix = str(millis if millis is not None else epoch_ms())[-6:]
    return f"BILL-{suffix}-{count + 1:03d}"


def nights_between(check_in: datetime, check_out: datetime) -> int:
    days = (check_out - check_in).total_seconds() / 86400
    return max(1, math.ceil(days))


def make_item(**fields: Any) -> Dict[str, Any]:
    fields.setdefault("date", utcnow())
    item = BillItem(**fields).model_dump()
    item["_id"] = ObjectId()
    return item


def make_payment(**fields: Any) -> Dict[str, Any]:
    fields.setdefault("date", utcnow())
    payment = Payment(**fields).model_dump()
    payment["_id"] = ObjectId()
    return payment


def room_charge_item(room: Dict[str, Any], nights: int, added_by: str = "System") -> Dict[str, Any]:
    price = float(room.get("price") or 0)
    return make_item(
        type="room_charge",
        description=f"Room {room['number']} - {nights} night(s)",
        amount=_money(price * nights),
        quantity=nights,
        unit_price=price,
        added_by=added_by,
    )


def discount_item(amount: float, description: Optional[str], added_by: str, notes: Optional[str] = None) -> Dict[str, Any]:
    value = -abs(float(amount))
    return make_item(
        type="discount",
        description=description or "Discount Applied",
        amount=value,
        quantity=1,
        unit_price=value,
        added_by=added_by,
        notes=notes,
    )


def tax_item(subtotal: float, percentage: float, description: Optional[str], added_by: str) -> Dict[str, Any]:
    amount = _money(subtotal * float(percentage) / 100)
    return make_item(
        type="tax",
        description=description or f"Tax ({percentage:g}%)",
        amount=amount,
        quantity=1,
        unit_price=amount,
        added_by=added_by,
    )


def order_items_for_bill(order: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        make_item(
            type="food_order",
            description=f"{line['food_name']} x{line['quantity']}",
            amount=line["total_price"],
            quantity=line["quantity"],
            unit_price=line["unit_price"],
            order_id=order["_id"],
            added_by="System",
            notes=line.get("special_instructions") or "",
        )
        for line in order["items"]
    ]


def is_open(bill: Optional[Dict[str, Any]]) -> bool:
    return bool(bill) and bill.get("status") in OPEN_STATUSES and not bill.get("finalized_at")


def create_bill(
    guest: Dict[str, Any],
    room: Dict[str, Any],
    items: Iterable[Dict[str, Any]] = (),
) -> Dict[str, Any]:
    bills = collection("bills")
    now = utcnow()
    bill = {
        "bill_number": next_bill_number(bills.count_documents({})),
        "guest": guest["_id"],
        "guest_name": guest["name"],
        "room": room["_id"],
        "room_number": room["number"],
        "check_in_date": guest["check_in_date"],
        "check_out_date": guest.get("check_out_date"),
        "items": list(items),
        "payments": [],
        "status": "active",
        "notes": None,
        "finalized_at": None,
        "finalized_by": None,
        "created_at": now,
    }
    return save_bill(bill)


def save_bill(bill: Dict[str, Any]) -> Dict[str, Any]:
    """Recompute derived fields and persist the whole bill document."""
    recalculate(bill)
    bill["updated_at"] = utcnow()
    bills = collection("bills")
    if "_id" in bill:
        bills.replace_one({"_id": bill["_id"]}, bill)
    else:
        bill["_id"] = bills.insert_one(bill).inserted_id
    return bill


def find_open_bill(guest_id: Any) -> Optional[Dict[str, Any]]:
    return collection("bills").find_one(
        {"guest": ObjectId(str(guest_id)), "status": {"$in": list(OPEN_STATUSES)}, "finalized_at": None}
    )


def add_order_to_bill(guest_id: Any, order: Dict[str, Any]) -> Dict[str, Any]:
    bill = find_open_bill(guest_id)
    if not bill:
        raise BillingError("No active bill found for guest")
    bill["items"].extend(order_items_for_bill(order))
    logger.info("Added order %s to bill %s", order.get("order_number"), bill["bill_number"])
    return save_bill(bill)


def remove_order_from_bill(guest_id: Any, order_id: Any) -> Optional[Dict[str, Any]]:
    bill = find_open_bill(guest_id)
    if not bill:
        return None
    bill["items"] = [i for i in bill["items"] if i.get("order_id") != order_id]
    return save_bill(bill)


def add_room_charge(guest_id: Any, room_price: float, nights: int = 1) -> Optional[Dict[str, Any]]:
    bill = collection("bills").find_one({"guest": ObjectId(str(guest_id)), "status": {"$ne": "cancelled"}})
    if not bill:
        return None
    bill["items"].append(
        make_item(
            type="room_charge",
            description=f"Room charge for {nights} night(s)",
            amount=_money(room_price * nights),
            quantity=nights,
            unit_price=room_price,
            added_by="system",
        )
    )
    return save_bill(bill)
