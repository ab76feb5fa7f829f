import logging
import re
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from database import collection, create_document, get_document, get_documents, serialize_doc, update_document
from responses import listing, ok
from schemas import FoodItem, SpiceLevel
from security import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/food", tags=["food"])


class FoodItemCreate(FoodItem):
    name: str = Field(..., min_length=1, max_length=100)
    category: str = Field(..., min_length=1, max_length=50)


class FoodItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    is_available: Optional[bool] = None
    preparation_time: Optional[int] = Field(None, ge=0)
    ingredients: Optional[List[str]] = None
    allergens: Optional[List[str]] = None
    dietary_info: Optional[List[str]] = None
    spice_level: Optional[SpiceLevel] = None
    image_url: Optional[str] = None


def _food(food_id: str) -> dict:
    doc = get_document("food", food_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Food item not found")
    return doc


@router.get("")
def list_food(
    category: Optional[str] = None,
    available: Optional[bool] = None,
    search: Optional[str] = None,
    current: CurrentUser = Depends(get_current_user),
):
    filt: dict = {}
    if category:
        filt["category"] = category
    if available is not None:
        filt["is_available"] = available
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        filt["$or"] = [{"name": pattern}, {"description": pattern}]
    items = get_documents("food", filt, sort=[("category", 1), ("name", 1)])
    return listing([serialize_doc(i) for i in items])


@router.get("/categories")
def list_categories(current: CurrentUser = Depends(get_current_user)):
    return ok(sorted(collection("food").distinct("category")))


@router.get("/{food_id}")
def get_food(food_id: str, current: CurrentUser = Depends(get_current_user)):
    return ok(serialize_doc(_food(food_id)))


@router.post("", status_code=201)
def create_food(item: FoodItemCreate, current: CurrentUser = Depends(get_current_user)):
    item_id = create_document("food", FoodItem(**item.model_dump()))
    logger.info("Manager %s added %s to the menu", current.email, item.name)
    return ok(serialize_doc(get_document("food", item_id)))


@router.put("/{food_id}")
def update_food(food_id: str, patch: FoodItemUpdate, current: CurrentUser = Depends(get_current_user)):
    doc = _food(food_id)
    update_data = patch.model_dump(exclude_unset=True)
    if not update_data:
        return ok(serialize_doc(doc))
    return ok(serialize_doc(update_document("food", doc["_id"], update_data)))


@router.patch("/{food_id}/availability")
def toggle_availability(food_id: str, current: CurrentUser = Depends(get_current_user)):
    doc = _food(food_id)
    doc = update_document("food", doc["_id"], {"is_available": not doc.get("is_available", True)})
    return ok(serialize_doc(doc))


@router.delete("/{food_id}")
def delete_food(food_id: str, current: CurrentUser = Depends(get_current_user)):
    doc = _food(food_id)
    collection("food").delete_one({"_id": doc["_id"]})
    logger.info("Manager %s removed %s from the menu", current.email, doc["name"])
    return ok({})
