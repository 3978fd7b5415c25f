import logging
import re
import unicodedata
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo.database import Database

from auth import UserOut, get_current_user
from database import create_document, get_db, serialize_doc, to_object_id
from schemas import Review as ReviewSchema, ReviewIn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["catalog"])


def slugify(name: str) -> str:
    text = name.replace("đ", "d").replace("Đ", "D")
    text = unicodedata.normalize("NFKD", text)
    text = "".join(c for c in text if not unicodedata.combining(c)).lower()
    text = re.sub(r"[^a-z0-9\s-]", "", text)
    return re.sub(r"[\s-]+", "-", text).strip("-")


def group_options(options: list) -> dict:
    grouped = {}
    for option in options:
        grouped.setdefault(option["option_group"], []).append(serialize_doc(option))
    return grouped


def product_toppings(db: Database, product_id: str) -> list:
    links = list(db["producttopping"].find({"product_id": product_id}))
    ids = [to_object_id(link["topping_id"]) for link in links]
    if not ids:
        return []
    return [serialize_doc(t) for t in db["topping"].find({"_id": {"$in": ids}})]


def get_product_or_404(db: Database, product_id: str) -> dict:
    product = db["product"].find_one({"_id": to_object_id(product_id)})
    if not product:
        raise HTTPException(404, "Product not found")
    return product


@router.get("/categories")
def list_categories(db: Database = Depends(get_db)):
    return [serialize_doc(c) for c in db["category"].find({"is_active": True}).sort("name", 1)]


@router.get("/categories/{category_id}/products")
def products_by_category(category_id: str, db: Database = Depends(get_db)):
    category = db["category"].find_one({"_id": to_object_id(category_id)})
    if not category:
        raise HTTPException(404, "Category not found")
    products = db["product"].find({"category_id": category_id, "is_available": True})
    return {"category": serialize_doc(category), "products": [serialize_doc(p) for p in products]}


@router.get("/products")
def list_products(category_id: Optional[str] = None, db: Database = Depends(get_db)):
    filter_q = {"is_available": True}
    if category_id:
        filter_q["category_id"] = category_id
    return [serialize_doc(p) for p in db["product"].find(filter_q).sort("name", 1)]


@router.get("/products/featured")
def featured_products(limit: int = Query(8, ge=1, le=50), db: Database = Depends(get_db)):
    cursor = db["product"].find({"is_available": True}).sort("created_at", -1).limit(limit)
    return [serialize_doc(p) for p in cursor]


@router.get("/products/search")
def search_products(q: str = Query(..., min_length=1), db: Database = Depends(get_db)):
    # names are matched as plain substrings, never as regex
    cursor = db["product"].find({"is_available": True, "name": {"$regex": re.escape(q), "$options": "i"}})
    return [serialize_doc(p) for p in cursor]


@router.get("/products/slug/{slug}")
def get_product_by_slug(slug: str, db: Database = Depends(get_db)):
    product = db["product"].find_one({"slug": slug})
    if not product:
        raise HTTPException(404, "Product not found")
    related = db["product"].find({"category_id": product["category_id"], "slug": {"$ne": slug}}).limit(8)
    return {"product": serialize_doc(product), "related": [serialize_doc(r) for r in related]}


@router.get("/products/{product_id}")
def get_product_detail(product_id: str, db: Database = Depends(get_db)):
    product = get_product_or_404(db, product_id)
    options = list(db["productoption"].find({"product_id": product_id}))
    reviews = [serialize_doc(r) for r in db["review"].find({"product_id": product_id, "is_approved": True})]
    average = sum(r["rating"] for r in reviews) / len(reviews) if reviews else 0
    return {
        "product": serialize_doc(product),
        "options": group_options(options),
        "toppings": product_toppings(db, product_id),
        "reviews": reviews,
        "average_rating": round(average, 2),
        "review_count": len(reviews),
    }


@router.get("/products/{product_id}/related")
def related_products(product_id: str, db: Database = Depends(get_db)):
    product = get_product_or_404(db, product_id)
    cursor = (
        db["product"]
        .find({"category_id": product["category_id"], "_id": {"$ne": product["_id"]}})
        .sort("created_at", -1)
        .limit(3)
    )
    return [serialize_doc(p) for p in cursor]


@router.get("/products/{product_id}/reviews")
def get_reviews(product_id: str, db: Database = Depends(get_db)):
    revs = db["review"].find({"product_id": product_id, "is_approved": True}).sort([("created_at", -1)])
    return [serialize_doc(r) for r in revs]


@router.post("/products/{product_id}/reviews", status_code=201)
def add_review(product_id: str, review: ReviewIn, current: UserOut = Depends(get_current_user),
               db: Database = Depends(get_db)):
    get_product_or_404(db, product_id)
    data = ReviewSchema(
        product_id=product_id,
        user_id=current.id,
        user_name=current.name,
        rating=review.rating,
        comment=review.comment,
    )
    rid = create_document("review", data)
    logger.info("Review %s on product %s awaits approval", rid, product_id)
    return {"id": rid, "is_approved": False}
