"""
Load demo rooms and a small menu into the configured database.

    hotelflow-seed            # add whatever is missing
    hotelflow-seed --reset    # wipe rooms and food first
"""

import argparse
import logging

import database
from database import utcnow
from schemas import FoodItem, Room

logger = logging.getLogger(__name__)

SAMPLE_ROOMS = [
    Room(number="101", type="Deluxe King", floor=1, price=299, capacity=2,
         amenities=["tv", "minibar", "safe", "ac"], description="King bed with garden view"),
    Room(number="102", type="Deluxe Twin", floor=1, price=279, capacity=2,
         amenities=["tv", "minibar", "safe", "ac"]),
    Room(number="201", type="Family Suite", floor=2, price=449, capacity=4,
         amenities=["tv", "minibar", "safe", "ac", "sofa bed"], description="Two rooms with a shared lounge"),
    Room(number="202", type="Standard Queen", floor=2, price=189, capacity=2, amenities=["tv", "ac"]),
    Room(number="301", type="Presidential Suite", floor=3, price=899, capacity=4,
         amenities=["tv", "minibar", "safe", "ac", "jacuzzi", "balcony"]),
]

SAMPLE_MENU = [
    FoodItem(name="Club Sandwich", category="Main Course", price=14.5, preparation_time=15,
             description="Chicken, bacon, egg and salad on toasted bread",
             ingredients=["bread", "chicken", "bacon", "egg", "lettuce", "tomato"], allergens=["gluten", "egg"]),
    FoodItem(name="Margherita Pizza", category="Main Course", price=16, preparation_time=20,
             ingredients=["dough", "tomato", "mozzarella", "basil"], allergens=["gluten", "dairy"],
             dietary_info=["vegetarian"]),
    FoodItem(name="Chicken Tikka Masala", category="Main Course", price=19, preparation_time=25,
             spice_level="medium", allergens=["dairy"]),
    FoodItem(name="Caesar Salad", category="Appetizers", price=11, preparation_time=10,
             allergens=["egg", "dairy", "fish"]),
    FoodItem(name="Tomato Soup", category="Appetizers", price=8, preparation_time=10,
             dietary_info=["vegetarian", "vegan"]),
    FoodItem(name="Chocolate Lava Cake", category="Desserts", price=9, preparation_time=18,
             allergens=["gluten", "egg", "dairy"]),
    FoodItem(name="Fresh Orange Juice", category="Beverages", price=5, preparation_time=5,
             dietary_info=["vegan"]),
    FoodItem(name="Cappuccino", category="Beverages", price=4.5, preparation_time=5, allergens=["dairy"]),
]


def seed_database(db, reset: bool = False) -> dict:
    """Insert sample rooms and menu items that are not there yet.

    Rooms are matched on number, food on name. Returns how many of each were added.
    """
    if reset:
        db["rooms"].delete_many({})
        db["food"].delete_many({})
        logger.info("Cleared rooms and food")

    now = utcnow()
    added = {"rooms": 0, "food": 0}
    for room in SAMPLE_ROOMS:
        if db["rooms"].find_one({"number": room.number, "is_active": True}):
            continue
        db["rooms"].insert_one({**room.model_dump(), "created_at": now, "updated_at": now})
        added["rooms"] += 1
    for item in SAMPLE_MENU:
        if db["food"].find_one({"name": item.name}):
            continue
        db["food"].insert_one({**item.model_dump(), "created_at": now, "updated_at": now})
        added["food"] += 1

    logger.info("Seeded %d rooms and %d food items", added["rooms"], added["food"])
    return added


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Load HotelFlow demo data")
    parser.add_argument("--reset", action="store_true", help="remove existing rooms and food first")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    if database.db is None:
        raise SystemExit("DATABASE_URL and DATABASE_NAME must be set")
    seed_database(database.db, reset=args.reset)


if __name__ == "__main__":
    main()
