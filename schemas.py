"""
Database Schemas for the HotelFlow API

Each Pydantic model below describes a document stored in MongoDB. The
collection name is given in the class docstring. Reference fields (room,
guest, food, order) hold ObjectIds and are typed ``Any`` so the model can
carry them through ``model_dump`` untouched.
"""

from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, EmailStr, Field

RoomStatus = Literal["available", "occupied", "maintenance", "cleaning"]
GuestStatus = Literal["checked_in", "checked_out", "cancelled", "no_show", "archived"]
IdType = Literal["passport", "driving_license", "national_id", "other"]
BillItemType = Literal[
    "room_charge", "food_order", "service_charge", "tax", "discount", "advance_payment", "other"
]
PaymentMethod = Literal["cash", "card", "upi", "bank_transfer", "other"]
BillStatus = Literal["active", "partially_paid", "paid", "cancelled"]
OrderStatus = Literal["pending", "confirmed", "preparing", "ready", "delivered", "cancelled"]
OrderType = Literal["room_service", "restaurant", "takeaway"]
SpiceLevel = Literal["mild", "medium", "hot", "very_hot"]
TicketStatus = Literal["raised", "in_progress", "completed"]
TicketPriority = Literal["low", "medium", "high"]
MessageSender = Literal["guest", "manager", "system", "ai_assistant"]


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _blank_to_none(value):
    value = _strip(value)
    return None if value == "" else value


def _lower(value: str) -> str:
    return value.lower()


# Request field types; addresses are stored lowercased.
Email = Annotated[EmailStr, BeforeValidator(_strip), AfterValidator(_lower)]
OptionalEmail = Annotated[Optional[Email], BeforeValidator(_blank_to_none)]


class User(BaseModel):
    """
    Hotel manager account. Credentials live in Supabase.
    Collection name: "users"
    """
    name: str = Field(..., description="Manager name")
    email: str = Field(..., description="Login email, lowercased")
    hotel_name: str = Field(..., description="Hotel the manager runs")
    supabase_id: str = Field(..., description="Supabase auth user id")
    is_active: bool = Field(True)


class Room(BaseModel):
    """
    Hotel room.
    Collection name: "rooms"
    """
    number: str = Field(..., description="Room number, unique among active rooms")
    type: str = Field(..., description="Room type like Deluxe King")
    floor: int = Field(..., ge=1, le=200)
    price: float = Field(..., ge=0, description="Nightly rate")
    capacity: int = Field(2, ge=1)
    amenities: List[str] = Field(default_factory=list)
    description: Optional[str] = Field(None, max_length=500)
    status: RoomStatus = Field("available")
    current_guest: Any = Field(None, description="Guest id while occupied")
    is_active: bool = Field(True, description="False once soft deleted")


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None


class EmergencyContact(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    relationship: Optional[str] = None


class Guest(BaseModel):
    """
    A checked-in stay, linked to a room and a bill.
    Collection name: "guests"
    """
    name: str = Field(..., max_length=100)
    email: Optional[str] = None
    phone: str
    id_type: IdType
    id_number: str
    address: Address = Field(default_factory=Address)
    emergency_contact: EmergencyContact = Field(default_factory=EmergencyContact)
    check_in_date: datetime
    check_out_date: datetime
    actual_check_out_date: Optional[datetime] = None
    room: Any = Field(..., description="Room id")
    room_number: str
    number_of_guests: int = Field(..., ge=1)
    status: GuestStatus = Field("checked_in")
    special_requests: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=1000)


class BillItem(BaseModel):
    """Charge line on a bill. Discounts carry negative amounts."""
    type: BillItemType
    description: str
    amount: float
    quantity: int = Field(1, ge=0)
    unit_price: Optional[float] = None
    date: datetime
    order_id: Any = None
    added_by: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=200)


class Payment(BaseModel):
    amount: float = Field(..., ge=0)
    method: PaymentMethod
    reference: Optional[str] = None
    date: datetime
    received_by: str
    notes: Optional[str] = Field(None, max_length=200)


class Bill(BaseModel):
    """
    Per-stay folio. Totals and status are derived from items and payments
    every time the bill is saved (see billing.recalculate).
    Collection name: "bills"
    """
    bill_number: str
    guest: Any
    guest_name: str
    room: Any
    room_number: str
    check_in_date: datetime
    check_out_date: Optional[datetime] = None
    items: List[BillItem] = Field(default_factory=list)
    payments: List[Payment] = Field(default_factory=list)
    subtotal: float = 0
    tax_amount: float = 0
    discount_amount: float = 0
    total_amount: float = 0
    paid_amount: float = 0
    balance_amount: float = 0
    status: BillStatus = "active"
    notes: Optional[str] = Field(None, max_length=1000)
    finalized_at: Optional[datetime] = None
    finalized_by: Optional[str] = None


class FoodItem(BaseModel):
    """
    Menu entry guests can order.
    Collection name: "food"
    """
    name: str = Field(..., description="Food/Drink name")
    category: str = Field(..., description="Category like Appetizers/Main Course/Beverages")
    price: float = Field(..., ge=0, description="Current price")
    description: Optional[str] = Field(None, description="Short description")
    is_available: bool = Field(True, description="Whether item can be ordered")
    preparation_time: int = Field(15, ge=0, description="Minutes")
    ingredients: List[str] = Field(default_factory=list)
    allergens: List[str] = Field(default_factory=list)
    dietary_info: List[str] = Field(default_factory=list)
    spice_level: SpiceLevel = "mild"
    image_url: Optional[str] = None


class OrderItem(BaseModel):
    """Item inside an order (price snapshot captured at order time)."""
    food: Any = Field(..., description="Referenced food id")
    food_name: str = Field(..., description="Name snapshot")
    unit_price: float = Field(..., ge=0, description="Unit price snapshot")
    quantity: int = Field(..., ge=1)
    total_price: float = Field(..., ge=0, description="unit_price * quantity")
    preparation_time: int = 0
    special_instructions: Optional[str] = None


class Order(BaseModel):
    """
    Food order charged to a guest's bill.
    Collection name: "orders"
    """
    order_number: str
    guest: Any
    guest_name: str
    room: Any
    room_number: str
    items: List[OrderItem]
    total_amount: float = Field(..., ge=0)
    status: OrderStatus = "pending"
    type: OrderType = "room_service"
    special_instructions: Optional[str] = None
    estimated_delivery_time: Optional[datetime] = None
    actual_delivery_time: Optional[datetime] = None
    payment_status: Literal["pending", "paid", "failed"] = "pending"


class TicketGuestInfo(BaseModel):
    name: str
    email: str = ""
    phone: str = ""


class TicketMessage(BaseModel):
    content: str
    sender: MessageSender
    sender_name: str
    timestamp: datetime


class Ticket(BaseModel):
    """
    Guest service request on the kanban board.
    Collection name: "tickets"
    """
    room: Any
    guest: Any = Field(None, description="Checked-in guest id when known")
    room_number: str
    guest_info: TicketGuestInfo
    status: TicketStatus = "raised"
    priority: TicketPriority = "medium"
    category: str = "general"
    subject: str
    messages: List[TicketMessage] = Field(default_factory=list)
    completed_at: Optional[datetime] = None
