import logging
from dataclasses import asdict

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from auth import UserOut, get_current_user
from cart import load_cart, load_products
from database import get_db, serialize_doc, to_object_id, utcnow
from pricing import compute_totals, find_promotion, quote_cart_item
from schemas import OrderCreate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])


def place_order(db: Database, user_id: str, payload: OrderCreate) -> dict:
    """Turn the user's cart into an order with frozen prices and empty the cart.

    Every check runs before the first write, so a rejected checkout leaves
    no order rows behind and the cart untouched.
    """
    cart_items = load_cart(db, user_id)
    if not cart_items:
        raise HTTPException(400, "Cart is empty")
    shipping_address = (payload.shipping_address or "").strip()
    if not shipping_address:
        raise HTTPException(400, "Shipping address is required")

    products = load_products(db, cart_items)
    for item in cart_items:
        product = products.get(item["product_id"])
        if not product or not product.get("is_available"):
            name = product.get("name") if product else "unknown"
            logger.warning("Checkout for user %s rejected: product %s unavailable", user_id, name)
            raise HTTPException(400, f"Product {name} is no longer available")

    now = utcnow()
    order_id = ObjectId()
    order_items = []
    item_toppings = []
    total_amount = 0.0
    for item in cart_items:
        product = products[item["product_id"]]
        quote = quote_cart_item(db, item, product)
        total_amount += quote.total_price
        order_item_id = ObjectId()
        order_items.append({
            "_id": order_item_id,
            "order_id": str(order_id),
            "product_id": item["product_id"],
            "product_name": product.get("name"),
            "quantity": item["quantity"],
            "price_at_purchase": quote.unit_price,
            "selected_options": item.get("selected_options") or {},
            "subtotal": quote.total_price,
            "special_instructions": item.get("special_instructions"),
            "created_at": now,
            "updated_at": now,
        })
        for topping in quote.toppings:
            item_toppings.append({
                **topping,
                "order_item_id": str(order_item_id),
                "created_at": now,
                "updated_at": now,
            })

    totals = compute_totals(total_amount, find_promotion(db, payload.promotion_code), now)
    order = {
        "_id": order_id,
        "user_id": user_id,
        "customer_name": payload.customer_name,
        "customer_phone": payload.customer_phone,
        "shipping_address": shipping_address,
        **asdict(totals),
        "payment_method": payload.payment_method,
        "payment_status": "pending",
        "order_status": "pending",
        "notes": payload.notes,
        "created_at": now,
        "updated_at": now,
    }

    db["order"].insert_one(order)
    db["orderitem"].insert_many(order_items)
    if item_toppings:
        db["orderitemtopping"].insert_many(item_toppings)
    db["cartitem"].delete_many({"user_id": user_id})

    logger.info("Order %s placed by user %s: final amount %s", order_id, user_id, totals.final_amount)
    return order


def order_detail(db: Database, order: dict) -> dict:
    order_id = str(order["_id"])
    items = list(db["orderitem"].find({"order_id": order_id}))
    product_ids = [to_object_id(i["product_id"]) for i in items]
    products = {str(p["_id"]): p for p in db["product"].find({"_id": {"$in": product_ids}})} if product_ids else {}

    detailed = []
    for item in items:
        toppings = list(db["orderitemtopping"].find({"order_item_id": str(item["_id"])}))
        detailed.append({
            **serialize_doc(item),
            "product": serialize_doc(products.get(item["product_id"])),
            "toppings": [serialize_doc(t) for t in toppings],
        })
    return {**serialize_doc(order), "items": detailed}


@router.post("", status_code=201)
def create_order(payload: OrderCreate, current: UserOut = Depends(get_current_user), db: Database = Depends(get_db)):
    order = place_order(db, current.id, payload)
    return order_detail(db, order)


@router.get("")
def get_user_orders(current: UserOut = Depends(get_current_user), db: Database = Depends(get_db)):
    orders = db["order"].find({"user_id": current.id}).sort("created_at", -1)
    return [serialize_doc(o) for o in orders]


@router.get("/{order_id}")
def get_order_detail(order_id: str, current: UserOut = Depends(get_current_user), db: Database = Depends(get_db)):
    order = db["order"].find_one({"_id": to_object_id(order_id)})
    if not order:
        raise HTTPException(404, "Order not found")
    if order.get("user_id") != current.id and not current.is_admin:
        raise HTTPException(403, "You are not allowed to view this order")
    return order_detail(db, order)
