from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from auth import UserOut, get_current_user, get_optional_user
from catalog import get_product_or_404
from database import create_document, get_db, serialize_doc, to_object_id

router = APIRouter(prefix="/api/wishlist", tags=["wishlist"])


@router.get("")
def get_wishlist(current: Optional[UserOut] = Depends(get_optional_user), db: Database = Depends(get_db)):
    if current is None:
        return []
    items = list(db["wishlistitem"].find({"user_id": current.id}))
    ids = [to_object_id(i["product_id"]) for i in items]
    products = {str(p["_id"]): p for p in db["product"].find({"_id": {"$in": ids}})} if ids else {}
    result = []
    for item in items:
        product = products.get(item["product_id"])
        # products deleted since they were wishlisted are skipped
        if product:
            result.append({**serialize_doc(item), "product": serialize_doc(product)})
    return result


@router.get("/{product_id}")
def is_in_wishlist(product_id: str, current: Optional[UserOut] = Depends(get_optional_user),
                   db: Database = Depends(get_db)):
    if current is None:
        return {"in_wishlist": False}
    found = db["wishlistitem"].find_one({"user_id": current.id, "product_id": product_id})
    return {"in_wishlist": found is not None}


@router.post("/{product_id}", status_code=201)
def add_to_wishlist(product_id: str, current: UserOut = Depends(get_current_user), db: Database = Depends(get_db)):
    get_product_or_404(db, product_id)
    if db["wishlistitem"].find_one({"user_id": current.id, "product_id": product_id}):
        raise HTTPException(400, "Product is already in the wishlist")
    return {"id": create_document("wishlistitem", {"user_id": current.id, "product_id": product_id})}


@router.delete("/{product_id}", status_code=204)
def remove_from_wishlist(product_id: str, current: UserOut = Depends(get_current_user),
                         db: Database = Depends(get_db)):
    result = db["wishlistitem"].delete_one({"user_id": current.id, "product_id": product_id})
    if result.deleted_count == 0:
        raise HTTPException(404, "Product is not in the wishlist")
