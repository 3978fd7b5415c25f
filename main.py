import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database

import admin
import auth
import cart
import catalog
import config
import database
import orders
import storage
import wishlist
from auth import require_admin
from database import create_document, get_db

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        database.ensure_indexes(database.db)
        logger.info("Indexes ensured on %s", database.db.name)
    yield


app = FastAPI(title="Beverage Store API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(catalog.router)
app.include_router(cart.router)
app.include_router(wishlist.router)
app.include_router(orders.router)
app.include_router(admin.router)
app.include_router(storage.router)


@app.get("/")
def read_root():
    return {"message": "Beverage store backend is running"}


# Seed sample data; safe to run more than once
SEED_CATEGORIES = [
    {"name": "Trà Sữa", "slug": "tra-sua", "description": "Trà sữa thơm ngon, đậm đà"},
    {"name": "Chè", "slug": "che", "description": "Chè truyền thống Việt Nam"},
    {"name": "Nước Ép", "slug": "nuoc-ep", "description": "Nước ép trái cây tươi ngon"},
    {"name": "Cà Phê", "slug": "ca-phe", "description": "Cà phê rang xay thơm ngon"},
]

SEED_PRODUCTS = [
    {
        "name": "Trà Sữa Truyền Thống",
        "slug": "tra-sua-truyen-thong",
        "category": "tra-sua",
        "description": "Trà sữa đậm đà với hương vị truyền thống",
        "base_price": 35000,
        "ingredients": ["Trà đen", "Sữa tươi", "Đường"],
    },
    {
        "name": "Trà Sữa Matcha",
        "slug": "tra-sua-matcha",
        "category": "tra-sua",
        "description": "Trà sữa matcha Nhật Bản thơm ngon",
        "base_price": 45000,
        "ingredients": ["Matcha", "Sữa tươi", "Đường"],
    },
    {
        "name": "Chè Đậu Đỏ",
        "slug": "che-dau-do",
        "category": "che",
        "description": "Chè đậu đỏ nước cốt dừa thơm ngon",
        "base_price": 25000,
        "ingredients": ["Đậu đỏ", "Nước cốt dừa", "Đường phèn"],
    },
    {
        "name": "Nước Ép Cam",
        "slug": "nuoc-ep-cam",
        "category": "nuoc-ep",
        "description": "Nước ép cam tươi 100% tự nhiên",
        "base_price": 30000,
        "ingredients": ["Cam tươi"],
    },
    {
        "name": "Cà Phê Đen",
        "slug": "ca-phe-den",
        "category": "ca-phe",
        "description": "Cà phê đen đậm đà, thơm ngon",
        "base_price": 20000,
        "ingredients": ["Cà phê rang xay"],
    },
]

# (group, value, price adjustment, default)
SEED_OPTIONS = [
    ("size", "M", 0, True),
    ("size", "L", 5000, False),
    ("sugar", "50%", 0, False),
    ("sugar", "70%", 0, True),
    ("sugar", "100%", 0, False),
    ("ice", "Ít đá", 0, False),
    ("ice", "Bình thường", 0, True),
    ("ice", "Nhiều đá", 0, False),
]

SEED_TOPPINGS = [
    {"name": "Trân châu đen", "price": 5000},
    {"name": "Trân châu trắng", "price": 5000},
    {"name": "Thạch dừa", "price": 7000},
    {"name": "Pudding", "price": 8000},
]


def _upsert_id(db: Database, collection: str, key: dict, data: dict) -> str:
    existing = db[collection].find_one(key)
    if existing:
        return str(existing["_id"])
    return create_document(collection, data)


def seed_store(db: Database) -> dict:
    category_ids = {}
    for c in SEED_CATEGORIES:
        category_ids[c["slug"]] = _upsert_id(db, "category", {"slug": c["slug"]}, {**c, "is_active": True})

    product_ids = []
    for p in SEED_PRODUCTS:
        data = {k: v for k, v in p.items() if k != "category"}
        data.update({"category_id": category_ids[p["category"]], "is_available": True})
        product_ids.append(_upsert_id(db, "product", {"slug": p["slug"]}, data))

    # only the milk teas get options and toppings
    milk_teas = product_ids[:2]
    for product_id in milk_teas:
        for group, value, adjustment, is_default in SEED_OPTIONS:
            key = {"product_id": product_id, "option_group": group, "option_value": value}
            _upsert_id(db, "productoption", key, {**key, "price_adjustment": adjustment, "is_default": is_default})

    topping_ids = [
        _upsert_id(db, "topping", {"name": t["name"]}, {**t, "is_available": True}) for t in SEED_TOPPINGS
    ]
    for product_id in milk_teas:
        for topping_id in topping_ids:
            link = {"product_id": product_id, "topping_id": topping_id}
            _upsert_id(db, "producttopping", link, link)

    return {"categories": len(category_ids), "products": len(product_ids), "toppings": len(topping_ids)}


@app.post("/api/seed", dependencies=[Depends(require_admin)])
def seed(db: Database = Depends(get_db)):
    counts = seed_store(db)
    logger.info("Seeded sample data: %s", counts)
    return {"ok": True, **counts}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
        "database_name": config.DATABASE_NAME,
        "connection_status": "Not Connected",
        "collections": []
    }
    if database.db is None:
        return response
    try:
        response["collections"] = database.db.list_collection_names()[:20]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except Exception as e:
        logger.warning("Database check failed: %s", e)
        response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
