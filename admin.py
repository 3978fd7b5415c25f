import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo.database import Database

from analytics import TimeRange, compute_analytics
from auth import UserOut, require_admin
from catalog import get_product_or_404, slugify
from database import (
    as_utc,
    create_document,
    delete_document,
    get_db,
    serialize_doc,
    to_object_id,
    update_document,
    utcnow,
)
from orders import order_detail
from pricing import normalize_code
from schemas import (
    Category as CategorySchema,
    CategoryCreate,
    CategoryUpdate,
    OrderStatusUpdate,
    PaymentStatusUpdate,
    Product as ProductSchema,
    ProductCreate,
    ProductOption as ProductOptionSchema,
    ProductOptionCreate,
    ProductUpdate,
    Promotion as PromotionSchema,
    PromotionUpdate,
    StoreSettings,
    Topping as ToppingSchema,
    ToppingUpdate,
    UserStatusUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

STORE_SETTINGS_ID = "store_settings"


def _get_or_404(db: Database, collection: str, doc_id: str, label: str) -> dict:
    doc = db[collection].find_one({"_id": to_object_id(doc_id)})
    if not doc:
        raise HTTPException(404, f"{label} not found")
    return doc


def _ensure_unique_slug(db: Database, collection: str, slug: str, exclude_id=None):
    if not slug:
        raise HTTPException(400, "Name must contain at least one letter or digit")
    filter_q = {"slug": slug}
    if exclude_id is not None:
        filter_q["_id"] = {"$ne": exclude_id}
    if db[collection].find_one(filter_q):
        raise HTTPException(400, f"Slug '{slug}' is already in use")


def _ensure_category(db: Database, category_id: str):
    if not db["category"].find_one({"_id": to_object_id(category_id)}):
        raise HTTPException(400, "Category does not exist")


def _updates(payload, nullable=()) -> dict:
    """Fields the client set; null only clears fields listed in ``nullable``."""
    return {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k in nullable}


# Dashboard

@router.get("/dashboard")
def dashboard_stats(db: Database = Depends(get_db)):
    orders = list(db["order"].find().sort("created_at", -1))
    delivered = [o for o in orders if o.get("order_status") == "delivered"]
    by_status = {}
    for order in orders:
        by_status[order["order_status"]] = by_status.get(order["order_status"], 0) + 1
    return {
        "total_products": db["product"].count_documents({}),
        "total_orders": len(orders),
        "total_categories": db["category"].count_documents({}),
        "total_users": db["user"].count_documents({}),
        "total_revenue": sum(o.get("final_amount", 0) for o in delivered),
        "orders_by_status": by_status,
        "recent_orders": [serialize_doc(o) for o in orders[:5]],
    }


@router.get("/analytics")
def analytics_data(time_range: TimeRange = Query("week"), db: Database = Depends(get_db)):
    orders = list(db["order"].find())
    order_ids = [str(o["_id"]) for o in orders]
    items = list(db["orderitem"].find({"order_id": {"$in": order_ids}})) if order_ids else []
    products = {str(p["_id"]): p for p in db["product"].find()}
    categories = {str(c["_id"]): c for c in db["category"].find()}
    return compute_analytics(orders, items, products, categories, time_range, utcnow())


# Products

@router.get("/products")
def list_all_products(db: Database = Depends(get_db)):
    categories = {str(c["_id"]): c for c in db["category"].find()}
    result = []
    for product in db["product"].find().sort("name", 1):
        result.append({**serialize_doc(product), "category": serialize_doc(categories.get(product["category_id"]))})
    return result


@router.post("/products", status_code=201)
def create_product(payload: ProductCreate, db: Database = Depends(get_db)):
    _ensure_category(db, payload.category_id)
    slug = slugify(payload.name)
    _ensure_unique_slug(db, "product", slug)
    product_id = create_document("product", ProductSchema(**payload.model_dump(), slug=slug))
    logger.info("Created product %s (%s)", product_id, slug)
    return serialize_doc(db["product"].find_one({"_id": to_object_id(product_id)}))


@router.patch("/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, db: Database = Depends(get_db)):
    product = get_product_or_404(db, product_id)
    updates = _updates(payload, nullable=("description", "image_url", "nutrition_info"))
    if updates.get("category_id"):
        _ensure_category(db, updates["category_id"])
    if updates.get("name"):
        updates["slug"] = slugify(updates["name"])
        _ensure_unique_slug(db, "product", updates["slug"], exclude_id=product["_id"])
    update_document("product", product_id, updates)
    return serialize_doc(db["product"].find_one({"_id": product["_id"]}))


@router.delete("/products/{product_id}", status_code=204)
def delete_product(product_id: str, db: Database = Depends(get_db)):
    if not delete_document("product", product_id):
        raise HTTPException(404, "Product not found")
    # cart and wishlist lines may keep pointing at it; checkout rejects them later
    db["productoption"].delete_many({"product_id": product_id})
    db["producttopping"].delete_many({"product_id": product_id})
    logger.info("Deleted product %s", product_id)


@router.get("/products/{product_id}/options")
def list_product_options(product_id: str, db: Database = Depends(get_db)):
    get_product_or_404(db, product_id)
    cursor = db["productoption"].find({"product_id": product_id}).sort([("option_group", 1), ("created_at", 1)])
    return [serialize_doc(o) for o in cursor]


@router.post("/products/{product_id}/options", status_code=201)
def create_product_option(product_id: str, payload: ProductOptionCreate, db: Database = Depends(get_db)):
    get_product_or_404(db, product_id)
    if db["productoption"].find_one({
        "product_id": product_id,
        "option_group": payload.option_group,
        "option_value": payload.option_value,
    }):
        raise HTTPException(400, "Option already exists for this product")
    option_id = create_document("productoption", ProductOptionSchema(product_id=product_id, **payload.model_dump()))
    return {"id": option_id}


@router.delete("/products/{product_id}/options/{option_id}", status_code=204)
def delete_product_option(product_id: str, option_id: str, db: Database = Depends(get_db)):
    result = db["productoption"].delete_one({"_id": to_object_id(option_id), "product_id": product_id})
    if result.deleted_count == 0:
        raise HTTPException(404, "Option not found")


# Categories

@router.get("/categories")
def list_all_categories(db: Database = Depends(get_db)):
    return [serialize_doc(c) for c in db["category"].find().sort("name", 1)]


@router.post("/categories", status_code=201)
def create_category(payload: CategoryCreate, db: Database = Depends(get_db)):
    slug = slugify(payload.name)
    _ensure_unique_slug(db, "category", slug)
    category_id = create_document("category", CategorySchema(**payload.model_dump(), slug=slug))
    return serialize_doc(db["category"].find_one({"_id": to_object_id(category_id)}))


@router.patch("/categories/{category_id}")
def update_category(category_id: str, payload: CategoryUpdate, db: Database = Depends(get_db)):
    category = _get_or_404(db, "category", category_id, "Category")
    updates = _updates(payload, nullable=("description", "image_url"))
    if updates.get("name"):
        updates["slug"] = slugify(updates["name"])
        _ensure_unique_slug(db, "category", updates["slug"], exclude_id=category["_id"])
    update_document("category", category_id, updates)
    return serialize_doc(db["category"].find_one({"_id": category["_id"]}))


@router.delete("/categories/{category_id}", status_code=204)
def delete_category(category_id: str, db: Database = Depends(get_db)):
    _get_or_404(db, "category", category_id, "Category")
    if db["product"].count_documents({"category_id": category_id}) > 0:
        raise HTTPException(400, "Cannot delete a category that still has products")
    delete_document("category", category_id)


# Toppings

@router.get("/toppings")
def list_toppings(db: Database = Depends(get_db)):
    return [serialize_doc(t) for t in db["topping"].find().sort("name", 1)]


@router.post("/toppings", status_code=201)
def create_topping(payload: ToppingSchema, db: Database = Depends(get_db)):
    topping_id = create_document("topping", payload)
    return serialize_doc(db["topping"].find_one({"_id": to_object_id(topping_id)}))


@router.patch("/toppings/{topping_id}")
def update_topping(topping_id: str, payload: ToppingUpdate, db: Database = Depends(get_db)):
    topping = _get_or_404(db, "topping", topping_id, "Topping")
    update_document("topping", topping_id, _updates(payload, nullable=("image_url",)))
    return serialize_doc(db["topping"].find_one({"_id": topping["_id"]}))


@router.delete("/toppings/{topping_id}", status_code=204)
def delete_topping(topping_id: str, db: Database = Depends(get_db)):
    _get_or_404(db, "topping", topping_id, "Topping")
    db["producttopping"].delete_many({"topping_id": topping_id})
    delete_document("topping", topping_id)


@router.get("/products/{product_id}/toppings")
def list_product_toppings(product_id: str, db: Database = Depends(get_db)):
    links = list(db["producttopping"].find({"product_id": product_id}))
    ids = [to_object_id(link["topping_id"]) for link in links]
    toppings = {str(t["_id"]): t for t in db["topping"].find({"_id": {"$in": ids}})} if ids else {}
    return [{**serialize_doc(link), "topping": serialize_doc(toppings.get(link["topping_id"]))} for link in links]


@router.post("/products/{product_id}/toppings/{topping_id}", status_code=201)
def add_topping_to_product(product_id: str, topping_id: str, db: Database = Depends(get_db)):
    get_product_or_404(db, product_id)
    _get_or_404(db, "topping", topping_id, "Topping")
    if db["producttopping"].find_one({"product_id": product_id, "topping_id": topping_id}):
        raise HTTPException(400, "Topping is already linked to this product")
    return {"id": create_document("producttopping", {"product_id": product_id, "topping_id": topping_id})}


@router.delete("/products/{product_id}/toppings/{topping_id}", status_code=204)
def remove_topping_from_product(product_id: str, topping_id: str, db: Database = Depends(get_db)):
    result = db["producttopping"].delete_one({"product_id": product_id, "topping_id": topping_id})
    if result.deleted_count == 0:
        raise HTTPException(404, "Topping is not linked to this product")


# Promotions

@router.get("/promotions")
def list_promotions(db: Database = Depends(get_db)):
    return [serialize_doc(p) for p in db["promotion"].find().sort("created_at", -1)]


@router.post("/promotions", status_code=201)
def create_promotion(payload: PromotionSchema, db: Database = Depends(get_db)):
    code = normalize_code(payload.code)
    if not code:
        raise HTTPException(400, "Promotion code is required")
    if as_utc(payload.end_date) < as_utc(payload.start_date):
        raise HTTPException(400, "Promotion ends before it starts")
    if db["promotion"].find_one({"code": code}):
        raise HTTPException(400, f"Promotion code {code} already exists")
    promotion_id = create_document("promotion", {**payload.model_dump(), "code": code})
    logger.info("Created promotion %s", code)
    return serialize_doc(db["promotion"].find_one({"_id": to_object_id(promotion_id)}))


@router.patch("/promotions/{promotion_id}")
def update_promotion(promotion_id: str, payload: PromotionUpdate, db: Database = Depends(get_db)):
    promotion = _get_or_404(db, "promotion", promotion_id, "Promotion")
    updates = _updates(payload, nullable=("max_discount_amount", "usage_limit"))
    merged = {**promotion, **updates}
    if as_utc(merged["end_date"]) < as_utc(merged["start_date"]):
        raise HTTPException(400, "Promotion ends before it starts")
    update_document("promotion", promotion_id, updates)
    return serialize_doc(db["promotion"].find_one({"_id": promotion["_id"]}))


@router.delete("/promotions/{promotion_id}", status_code=204)
def delete_promotion(promotion_id: str, db: Database = Depends(get_db)):
    if not delete_document("promotion", promotion_id):
        raise HTTPException(404, "Promotion not found")


# Orders

@router.get("/orders")
def list_all_orders(status: Optional[str] = None, db: Database = Depends(get_db)):
    filter_q = {"order_status": status} if status else {}
    orders = list(db["order"].find(filter_q).sort("created_at", -1))
    user_ids = [to_object_id(o["user_id"]) for o in orders if o.get("user_id")]
    users = {str(u["_id"]): u for u in db["user"].find({"_id": {"$in": user_ids}})} if user_ids else {}
    result = []
    for order in orders:
        result.append({
            **serialize_doc(order),
            "user": serialize_doc(users.get(order.get("user_id"))),
            "item_count": db["orderitem"].count_documents({"order_id": str(order["_id"])}),
        })
    return result


@router.get("/orders/{order_id}")
def get_order(order_id: str, db: Database = Depends(get_db)):
    return order_detail(db, _get_or_404(db, "order", order_id, "Order"))


@router.patch("/orders/{order_id}/status")
def update_order_status(order_id: str, payload: OrderStatusUpdate, db: Database = Depends(get_db)):
    order = _get_or_404(db, "order", order_id, "Order")
    # any status may follow any other
    update_document("order", order_id, {"order_status": payload.status})
    logger.info("Order %s status %s -> %s", order_id, order.get("order_status"), payload.status)
    return {"id": order_id, "order_status": payload.status}


@router.patch("/orders/{order_id}/payment-status")
def update_payment_status(order_id: str, payload: PaymentStatusUpdate, db: Database = Depends(get_db)):
    _get_or_404(db, "order", order_id, "Order")
    update_document("order", order_id, {"payment_status": payload.status})
    logger.info("Order %s payment status -> %s", order_id, payload.status)
    return {"id": order_id, "payment_status": payload.status}


# Users

@router.get("/users")
def list_users(db: Database = Depends(get_db)):
    return [serialize_doc(u) for u in db["user"].find().sort("created_at", -1)]


@router.get("/users/{user_id}")
def get_user(user_id: str, db: Database = Depends(get_db)):
    return serialize_doc(_get_or_404(db, "user", user_id, "User"))


@router.patch("/users/{user_id}/status")
def toggle_user_status(user_id: str, payload: UserStatusUpdate, admin: UserOut = Depends(require_admin),
                       db: Database = Depends(get_db)):
    _get_or_404(db, "user", user_id, "User")
    if user_id == admin.id and not payload.is_active:
        raise HTTPException(400, "You cannot disable your own account")
    update_document("user", user_id, {"is_active": payload.is_active})
    return {"id": user_id, "is_active": payload.is_active}


@router.delete("/users/{user_id}")
def delete_user(user_id: str, admin: UserOut = Depends(require_admin), db: Database = Depends(get_db)):
    _get_or_404(db, "user", user_id, "User")
    if user_id == admin.id:
        raise HTTPException(400, "You cannot delete your own account")
    if db["order"].find_one({"user_id": user_id}):
        # order history must keep its owner
        update_document("user", user_id, {"is_active": False})
        return {"deleted": False, "deactivated": True, "message": "User has orders and was deactivated instead"}
    delete_document("user", user_id)
    db["cartitem"].delete_many({"user_id": user_id})
    db["wishlistitem"].delete_many({"user_id": user_id})
    return {"deleted": True, "deactivated": False}


# Reviews

@router.get("/reviews")
def list_reviews(approved: Optional[bool] = None, db: Database = Depends(get_db)):
    filter_q = {} if approved is None else {"is_approved": approved}
    return [serialize_doc(r) for r in db["review"].find(filter_q).sort("created_at", -1)]


@router.patch("/reviews/{review_id}/approve")
def approve_review(review_id: str, db: Database = Depends(get_db)):
    _get_or_404(db, "review", review_id, "Review")
    update_document("review", review_id, {"is_approved": True})
    return {"id": review_id, "is_approved": True}


@router.delete("/reviews/{review_id}", status_code=204)
def delete_review(review_id: str, db: Database = Depends(get_db)):
    if not delete_document("review", review_id):
        raise HTTPException(404, "Review not found")


# Settings

def load_store_settings(db: Database) -> StoreSettings:
    doc = db["settings"].find_one({"setting_id": STORE_SETTINGS_ID})
    if doc:
        return StoreSettings(**doc["data"])
    return StoreSettings()


@router.get("/settings", response_model=StoreSettings)
def get_store_settings(db: Database = Depends(get_db)):
    return load_store_settings(db)


@router.put("/settings", response_model=StoreSettings)
def update_store_settings(payload: StoreSettings, db: Database = Depends(get_db)):
    db["settings"].update_one(
        {"setting_id": STORE_SETTINGS_ID},
        {"$set": {"data": payload.model_dump(), "updated_at": utcnow()}, "$setOnInsert": {"created_at": utcnow()}},
        upsert=True,
    )
    logger.info("Store settings updated")
    return payload
