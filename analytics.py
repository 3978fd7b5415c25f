"""
Sales analytics over already-loaded orders.

Orders count as revenue once delivered or paid. Revenue is spread over
fixed-size periods ending now: 24 hours for "day", 7 or 30 days for
"week"/"month" and 12 months for "year".
"""
from datetime import datetime, timedelta
from typing import Dict, List, Literal

from database import as_utc

TimeRange = Literal["day", "week", "month", "year"]

RANGE_DAYS = {"day": 1, "week": 7, "month": 30, "year": 365}
BUCKET_COUNT = {"day": 24, "week": 7, "month": 30, "year": 12}


def is_completed(order: dict) -> bool:
    return order.get("order_status") == "delivered" or order.get("payment_status") == "paid"


def filter_by_range(orders: List[dict], time_range: str, now: datetime) -> List[dict]:
    max_age = timedelta(days=RANGE_DAYS[time_range])
    now = as_utc(now)
    return [o for o in orders if now - as_utc(o["created_at"]) <= max_age]


def _month_index(value: datetime) -> int:
    return value.year * 12 + value.month - 1


def bucket_labels(time_range: str, now: datetime) -> List[str]:
    now = as_utc(now)
    count = BUCKET_COUNT[time_range]
    labels = []
    for back in range(count - 1, -1, -1):
        if time_range == "day":
            labels.append(f"{(now - timedelta(hours=back)).hour}h")
        elif time_range == "year":
            index = _month_index(now) - back
            labels.append(f"{index % 12 + 1}/{index // 12}")
        else:
            day = now - timedelta(days=back)
            labels.append(f"{day.day}/{day.month}")
    return labels


def periods_ago(time_range: str, created_at: datetime, now: datetime) -> int:
    created_at, now = as_utc(created_at), as_utc(now)
    if time_range == "day":
        current_hour = now.replace(minute=0, second=0, microsecond=0)
        order_hour = created_at.replace(minute=0, second=0, microsecond=0)
        return int((current_hour - order_hour) // timedelta(hours=1))
    if time_range == "year":
        return _month_index(now) - _month_index(created_at)
    return (now.date() - created_at.date()).days


def sales_by_period(orders: List[dict], time_range: str, now: datetime) -> List[dict]:
    labels = bucket_labels(time_range, now)
    amounts = [0.0] * len(labels)
    for order in orders:
        back = periods_ago(time_range, order["created_at"], now)
        if 0 <= back < len(labels):
            amounts[len(labels) - 1 - back] += order.get("final_amount", 0)
    return [{"label": label, "amount": amount} for label, amount in zip(labels, amounts)]


def sales_by_category(items: List[dict], products: Dict[str, dict], categories: Dict[str, dict]) -> List[dict]:
    totals: Dict[str, float] = {}
    for item in items:
        product = products.get(item["product_id"])
        category = categories.get(product["category_id"]) if product else None
        if category:
            totals[category["name"]] = totals.get(category["name"], 0) + item.get("subtotal", 0)
    result = [{"name": name, "amount": amount} for name, amount in totals.items()]
    return sorted(result, key=lambda r: r["amount"], reverse=True)


def top_products(items: List[dict], products: Dict[str, dict], limit: int = 5) -> List[dict]:
    revenue: Dict[str, float] = {}
    quantity: Dict[str, int] = {}
    for item in items:
        pid = item["product_id"]
        revenue[pid] = revenue.get(pid, 0) + item.get("subtotal", 0)
        quantity[pid] = quantity.get(pid, 0) + item.get("quantity", 0)

    result = []
    for pid, amount in revenue.items():
        product = products.get(pid)
        # items keep the name they were bought under
        name = product["name"] if product else next(
            (i.get("product_name") for i in items if i["product_id"] == pid and i.get("product_name")),
            "Unknown Product",
        )
        result.append({"product_id": pid, "name": name, "revenue": amount, "quantity": quantity[pid]})
    result.sort(key=lambda r: r["revenue"], reverse=True)
    return result[:limit]


def compute_analytics(
    orders: List[dict],
    items: List[dict],
    products: Dict[str, dict],
    categories: Dict[str, dict],
    time_range: str,
    now: datetime,
) -> dict:
    """Aggregate revenue for orders within ``time_range`` of ``now``.

    ``items`` may hold order items of any order; only those belonging to
    completed orders in range are counted.
    """
    in_range = filter_by_range(orders, time_range, now)
    completed = [o for o in in_range if is_completed(o)]
    completed_ids = {str(o["_id"]) for o in completed}
    completed_items = [i for i in items if i["order_id"] in completed_ids]

    total_sales = sum(o.get("final_amount", 0) for o in completed)
    total_orders = len(in_range)
    return {
        "time_range": time_range,
        "total_sales": total_sales,
        "total_orders": total_orders,
        "average_order_value": round(total_sales / total_orders) if total_orders else 0,
        "sales_by_period": sales_by_period(completed, time_range, now),
        "sales_by_category": sales_by_category(completed_items, products, categories),
        "top_products": top_products(completed_items, products),
    }
