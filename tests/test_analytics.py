from datetime import datetime, timedelta, timezone

import pytest

from analytics import bucket_labels, compute_analytics

NOW = datetime(2026, 10, 19, 12, 30, tzinfo=timezone.utc)

ORDERS = [
    {"_id": "o1", "created_at": NOW - timedelta(hours=1), "order_status": "delivered",
     "payment_status": "pending", "final_amount": 100000},
    {"_id": "o2", "created_at": NOW - timedelta(days=2), "order_status": "shipping",
     "payment_status": "paid", "final_amount": 50000},
    {"_id": "o3", "created_at": NOW - timedelta(days=1), "order_status": "pending",
     "payment_status": "pending", "final_amount": 30000},
    {"_id": "o4", "created_at": NOW - timedelta(days=40), "order_status": "delivered",
     "payment_status": "paid", "final_amount": 70000},
]

ITEMS = [
    {"order_id": "o1", "product_id": "p1", "quantity": 2, "subtotal": 60000},
    {"order_id": "o1", "product_id": "p2", "quantity": 1, "subtotal": 40000},
    {"order_id": "o2", "product_id": "p1", "quantity": 1, "subtotal": 50000},
    {"order_id": "o2", "product_id": "gone", "product_name": "Old Tea", "quantity": 1, "subtotal": 10000},
    {"order_id": "o3", "product_id": "p2", "quantity": 5, "subtotal": 30000},
]

PRODUCTS = {
    "p1": {"name": "Milk Tea", "category_id": "c1"},
    "p2": {"name": "Coffee", "category_id": "c2"},
}

CATEGORIES = {"c1": {"name": "Trà Sữa"}, "c2": {"name": "Cà Phê"}}


def run(time_range):
    return compute_analytics(ORDERS, ITEMS, PRODUCTS, CATEGORIES, time_range, NOW)


@pytest.mark.parametrize("time_range,count", [("day", 24), ("week", 7), ("month", 30), ("year", 12)])
def test_bucket_counts(time_range, count):
    assert len(run(time_range)["sales_by_period"]) == count


def test_bucket_labels_end_at_now():
    assert bucket_labels("day", NOW)[-1] == "12h"
    assert bucket_labels("week", NOW)[-1] == "19/10"
    assert bucket_labels("week", NOW)[0] == "13/10"
    year = bucket_labels("year", NOW)
    assert (year[0], year[-1]) == ("11/2025", "10/2026")


def test_week_totals_count_only_completed_sales():
    result = run("week")
    assert result["total_orders"] == 3
    assert result["total_sales"] == 150000
    assert result["average_order_value"] == 50000

    amounts = [p["amount"] for p in result["sales_by_period"]]
    assert amounts[-1] == 100000
    assert amounts[-3] == 50000
    assert sum(amounts) == result["total_sales"]


def test_day_range_uses_hour_buckets():
    result = run("day")
    assert result["total_orders"] == 1
    periods = result["sales_by_period"]
    assert periods[-2] == {"label": "11h", "amount": 100000}


def test_year_range_groups_by_month():
    result = run("year")
    assert result["total_orders"] == 4
    assert result["total_sales"] == 220000
    amounts = [p["amount"] for p in result["sales_by_period"]]
    assert amounts[-1] == 150000
    assert amounts[-2] == 70000


def test_sales_by_category_sorted_descending():
    assert run("week")["sales_by_category"] == [
        {"name": "Trà Sữa", "amount": 110000},
        {"name": "Cà Phê", "amount": 40000},
    ]


def test_top_products_fall_back_to_purchase_name():
    top = run("week")["top_products"]
    assert [(p["name"], p["revenue"], p["quantity"]) for p in top] == [
        ("Milk Tea", 110000, 3),
        ("Coffee", 40000, 1),
        ("Old Tea", 10000, 1),
    ]


def test_no_orders():
    result = compute_analytics([], [], {}, {}, "month", NOW)
    assert result["total_sales"] == 0
    assert result["average_order_value"] == 0
    assert result["top_products"] == []


def test_naive_timestamps_are_read_as_utc():
    orders = [{**ORDERS[0], "created_at": (NOW - timedelta(hours=3)).replace(tzinfo=None)}]
    assert compute_analytics(orders, [], {}, {}, "day", NOW)["total_sales"] == 100000


def test_analytics_endpoint(client, admin, customer, store):
    client.post("/api/cart", json={"product_id": store["coffee_id"], "quantity": 2}, headers=customer["headers"])
    order = client.post("/api/orders", json={"shipping_address": "Huế"}, headers=customer["headers"]).json()
    client.patch(f"/api/admin/orders/{order['id']}/status", json={"status": "delivered"}, headers=admin["headers"])

    result = client.get("/api/admin/analytics", params={"time_range": "week"}, headers=admin["headers"]).json()
    assert result["total_orders"] == 1
    assert result["total_sales"] == 65000
    assert result["sales_by_category"] == [{"name": "Cà Phê", "amount": 40000}]
    assert result["top_products"][0]["name"] == "Cà Phê Đen"

    res = client.get("/api/admin/analytics", params={"time_range": "decade"}, headers=admin["headers"])
    assert res.status_code == 422
