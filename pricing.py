"""
Cart and order pricing.

A line is priced as (base price + size adjustment + toppings) x quantity.
Order totals add a flat shipping fee below the free-shipping threshold and at
most one promotion discount.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from pymongo.database import Database

import config
from database import as_utc, to_object_id


@dataclass(frozen=True)
class LineQuote:
    unit_price: float
    toppings_price: float
    total_price: float
    toppings: List[dict] = field(default_factory=list)


@dataclass(frozen=True)
class OrderTotals:
    total_amount: float
    shipping_fee: float
    discount_amount: float
    final_amount: float
    promotion_code: Optional[str] = None


def size_adjustment(options: List[dict], size: Optional[str]) -> float:
    if not size:
        return 0.0
    for option in options:
        if option.get("option_group") == "size" and option.get("option_value") == size:
            return float(option.get("price_adjustment", 0))
    return 0.0


def price_line(
    base_price: float,
    options: List[dict],
    toppings_by_id: Dict[str, dict],
    quantity: int,
    selected_options: Optional[dict] = None,
    selected_toppings: Optional[List[dict]] = None,
) -> LineQuote:
    unit_price = float(base_price) + size_adjustment(options, (selected_options or {}).get("size"))

    toppings_price = 0.0
    breakdown = []
    for selected in selected_toppings or []:
        topping = toppings_by_id.get(selected["topping_id"])
        # deleted or unavailable toppings are dropped from the price
        if not topping or not topping.get("is_available", True):
            continue
        price = float(topping.get("price", 0))
        subtotal = price * selected["quantity"]
        toppings_price += subtotal
        breakdown.append({
            "topping_id": selected["topping_id"],
            "topping_name": topping.get("name"),
            "quantity": selected["quantity"],
            "price_at_purchase": price,
            "subtotal": subtotal,
        })

    total_price = (unit_price + toppings_price) * quantity
    return LineQuote(unit_price=unit_price, toppings_price=toppings_price, total_price=total_price, toppings=breakdown)


def shipping_fee_for(total_amount: float) -> float:
    if total_amount >= config.FREE_SHIPPING_THRESHOLD:
        return 0.0
    return config.SHIPPING_FEE


def is_promotion_applicable(promotion: Optional[dict], total_amount: float, now: datetime) -> bool:
    if not promotion or not promotion.get("is_active"):
        return False
    start, end = promotion.get("start_date"), promotion.get("end_date")
    if start is None or end is None:
        return False
    if not as_utc(start) <= as_utc(now) <= as_utc(end):
        return False
    return total_amount >= float(promotion.get("min_order_value", 0))


def promotion_discount(promotion: Optional[dict], total_amount: float, shipping_fee: float, now: datetime) -> float:
    """Discount a promotion grants; 0 when it does not apply."""
    if not is_promotion_applicable(promotion, total_amount, now):
        return 0.0

    discount_type = promotion.get("discount_type")
    value = float(promotion.get("discount_value", 0))
    if discount_type == "percentage":
        discount = total_amount * value / 100
        cap = promotion.get("max_discount_amount")
        if cap:
            discount = min(discount, float(cap))
    elif discount_type == "fixed_amount":
        discount = value
    elif discount_type == "free_shipping":
        discount = shipping_fee
    else:
        return 0.0

    return min(discount, total_amount + shipping_fee)


def compute_totals(total_amount: float, promotion: Optional[dict], now: datetime) -> OrderTotals:
    shipping_fee = shipping_fee_for(total_amount)
    discount_amount = promotion_discount(promotion, total_amount, shipping_fee, now)
    return OrderTotals(
        total_amount=total_amount,
        shipping_fee=shipping_fee,
        discount_amount=discount_amount,
        final_amount=total_amount + shipping_fee - discount_amount,
        promotion_code=promotion["code"] if discount_amount > 0 else None,
    )


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def find_promotion(db: Database, code: Optional[str]) -> Optional[dict]:
    code = normalize_code(code)
    if not code:
        return None
    return db["promotion"].find_one({"code": code})


def quote_cart_item(db: Database, item: dict, product: Optional[dict]) -> LineQuote:
    """Price a stored cart line against the current catalog."""
    if not product:
        return LineQuote(unit_price=0.0, toppings_price=0.0, total_price=0.0)

    options = list(db["productoption"].find({"product_id": item["product_id"]}))
    selected_toppings = item.get("selected_toppings") or []
    topping_ids = [to_object_id(t["topping_id"]) for t in selected_toppings]
    toppings_by_id = {}
    if topping_ids:
        toppings_by_id = {str(t["_id"]): t for t in db["topping"].find({"_id": {"$in": topping_ids}})}

    return price_line(
        product.get("base_price", 0),
        options,
        toppings_by_id,
        item["quantity"],
        item.get("selected_options"),
        selected_toppings,
    )
