import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from auth import UserOut, get_current_user, get_optional_user
from database import create_document, get_db, serialize_doc, to_object_id, utcnow
from pricing import compute_totals, find_promotion, quote_cart_item
from schemas import CartItem as CartItemSchema, CartItemIn, CartItemQuantity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cart", tags=["cart"])


def load_cart(db: Database, user_id: str) -> list:
    return list(db["cartitem"].find({"user_id": user_id}).sort("created_at", 1))


def load_products(db: Database, items: list) -> dict:
    ids = {to_object_id(i["product_id"]) for i in items}
    if not ids:
        return {}
    return {str(p["_id"]): p for p in db["product"].find({"_id": {"$in": list(ids)}})}


def cart_with_details(db: Database, user_id: str) -> list:
    items = load_cart(db, user_id)
    products = load_products(db, items)
    lines = []
    for item in items:
        product = products.get(item["product_id"])
        quote = quote_cart_item(db, item, product)
        line = serialize_doc(item)
        line.update({
            "product": serialize_doc(product),
            "is_available": bool(product and product.get("is_available")),
            "toppings": quote.toppings,
            "item_price": quote.unit_price,
            "toppings_price": quote.toppings_price,
            "total_price": quote.total_price,
        })
        lines.append(line)
    return lines


def get_own_item(db: Database, item_id: str, user_id: str) -> dict:
    item = db["cartitem"].find_one({"_id": to_object_id(item_id)})
    if not item or item["user_id"] != user_id:
        raise HTTPException(404, "Cart item not found")
    return item


@router.get("")
def get_cart(current: Optional[UserOut] = Depends(get_optional_user), db: Database = Depends(get_db)):
    if current is None:
        return []
    return cart_with_details(db, current.id)


@router.get("/summary")
def cart_summary(promotion_code: Optional[str] = None, current: UserOut = Depends(get_current_user),
                 db: Database = Depends(get_db)):
    lines = cart_with_details(db, current.id)
    total_amount = sum(line["total_price"] for line in lines)
    totals = compute_totals(total_amount, find_promotion(db, promotion_code), utcnow())
    return {"items": lines, **asdict(totals)}


@router.post("", status_code=201)
def add_to_cart(payload: CartItemIn, current: UserOut = Depends(get_current_user), db: Database = Depends(get_db)):
    to_object_id(payload.product_id)
    for topping in payload.selected_toppings:
        to_object_id(topping.topping_id)

    item = CartItemSchema(user_id=current.id, **payload.model_dump())
    data = item.model_dump()
    # an identical line (same product, options, toppings and note) only grows in quantity
    existing = db["cartitem"].find_one({
        "user_id": current.id,
        "product_id": data["product_id"],
        "selected_options": data["selected_options"],
        "selected_toppings": data["selected_toppings"],
        "special_instructions": data["special_instructions"],
    })
    if existing:
        db["cartitem"].update_one(
            {"_id": existing["_id"]},
            {"$inc": {"quantity": data["quantity"]}, "$set": {"updated_at": utcnow()}},
        )
        return {"id": str(existing["_id"]), "merged": True}
    return {"id": create_document("cartitem", data), "merged": False}


@router.patch("/{item_id}")
def update_cart_item(item_id: str, payload: CartItemQuantity, current: UserOut = Depends(get_current_user),
                     db: Database = Depends(get_db)):
    item = get_own_item(db, item_id, current.id)
    if payload.quantity <= 0:
        db["cartitem"].delete_one({"_id": item["_id"]})
        return {"id": item_id, "removed": True}
    db["cartitem"].update_one({"_id": item["_id"]}, {"$set": {"quantity": payload.quantity, "updated_at": utcnow()}})
    return {"id": item_id, "removed": False}


@router.delete("/{item_id}", status_code=204)
def remove_from_cart(item_id: str, current: UserOut = Depends(get_current_user), db: Database = Depends(get_db)):
    item = get_own_item(db, item_id, current.id)
    db["cartitem"].delete_one({"_id": item["_id"]})


@router.delete("", status_code=204)
def clear_cart(current: UserOut = Depends(get_current_user), db: Database = Depends(get_db)):
    result = db["cartitem"].delete_many({"user_id": current.id})
    logger.info("Cleared %d cart items for user %s", result.deleted_count, current.id)
