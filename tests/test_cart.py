def milk_tea_line(store, quantity=1, size="L", note=None):
    return {
        "product_id": store["milk_tea_id"],
        "quantity": quantity,
        "selected_options": {"size": size, "sugar": "70%", "ice": "50%"},
        "selected_toppings": [{"topping_id": store["pearl_id"], "quantity": 2}],
        "special_instructions": note,
    }


def test_anonymous_visitor_sees_empty_cart(client, store):
    assert client.get("/api/cart").json() == []


def test_cart_line_prices(client, customer, store):
    client.post("/api/cart", json=milk_tea_line(store, quantity=2), headers=customer["headers"])
    [line] = client.get("/api/cart", headers=customer["headers"]).json()
    assert line["item_price"] == 40000
    assert line["toppings_price"] == 10000
    assert line["total_price"] == 100000
    assert line["is_available"] is True
    assert line["product"]["name"] == "Trà Sữa Truyền Thống"
    assert line["toppings"][0]["topping_name"] == "Trân châu đen"


def test_identical_lines_merge(client, customer, store, db):
    first = client.post("/api/cart", json=milk_tea_line(store), headers=customer["headers"]).json()
    second = client.post("/api/cart", json=milk_tea_line(store, quantity=2), headers=customer["headers"]).json()
    assert second == {"id": first["id"], "merged": True}
    assert db["cartitem"].find_one()["quantity"] == 3

    # a different size or note makes a separate line
    client.post("/api/cart", json=milk_tea_line(store, size="M"), headers=customer["headers"])
    client.post("/api/cart", json=milk_tea_line(store, note="no straw"), headers=customer["headers"])
    assert db["cartitem"].count_documents({"user_id": customer["id"]}) == 3


def test_update_quantity_and_remove_at_zero(client, customer, store, db):
    item_id = client.post("/api/cart", json=milk_tea_line(store), headers=customer["headers"]).json()["id"]

    res = client.patch(f"/api/cart/{item_id}", json={"quantity": 5}, headers=customer["headers"])
    assert res.json()["removed"] is False
    assert db["cartitem"].find_one()["quantity"] == 5

    res = client.patch(f"/api/cart/{item_id}", json={"quantity": 0}, headers=customer["headers"])
    assert res.json()["removed"] is True
    assert db["cartitem"].count_documents({}) == 0


def test_other_users_items_are_not_found(client, customer, other_customer, store, db):
    item_id = client.post("/api/cart", json=milk_tea_line(store), headers=customer["headers"]).json()["id"]
    assert client.patch(f"/api/cart/{item_id}", json={"quantity": 3}, headers=other_customer["headers"]).status_code == 404
    assert client.delete(f"/api/cart/{item_id}", headers=other_customer["headers"]).status_code == 404
    assert client.delete(f"/api/cart/{item_id}", headers=customer["headers"]).status_code == 204
    assert db["cartitem"].count_documents({}) == 0


def test_clear_cart_only_touches_own_items(client, customer, other_customer, store, db):
    client.post("/api/cart", json=milk_tea_line(store), headers=customer["headers"])
    client.post("/api/cart", json={"product_id": store["coffee_id"]}, headers=customer["headers"])
    client.post("/api/cart", json={"product_id": store["coffee_id"]}, headers=other_customer["headers"])

    assert client.delete("/api/cart", headers=customer["headers"]).status_code == 204
    assert db["cartitem"].count_documents({"user_id": customer["id"]}) == 0
    assert db["cartitem"].count_documents({"user_id": other_customer["id"]}) == 1


def test_add_requires_login_and_valid_ids(client, customer, store):
    assert client.post("/api/cart", json=milk_tea_line(store)).status_code == 401
    assert client.post("/api/cart", json={"product_id": "nope"}, headers=customer["headers"]).status_code == 400
    assert client.post("/api/cart", json={**milk_tea_line(store), "quantity": 0}, headers=customer["headers"]).status_code == 422


def test_summary_applies_shipping_and_promotion(client, customer, admin, store):
    client.post("/api/cart", json=milk_tea_line(store), headers=customer["headers"])
    summary = client.get("/api/cart/summary", headers=customer["headers"]).json()
    assert summary["total_amount"] == 50000
    assert summary["shipping_fee"] == 25000
    assert summary["final_amount"] == 75000

    promo = {
        "code": "tenk",
        "discount_type": "fixed_amount",
        "discount_value": 10000,
        "start_date": "2020-01-01T00:00:00Z",
        "end_date": "2099-01-01T00:00:00Z",
    }
    assert client.post("/api/admin/promotions", json=promo, headers=admin["headers"]).status_code == 201
    summary = client.get("/api/cart/summary", params={"promotion_code": "TenK"}, headers=customer["headers"]).json()
    assert summary["discount_amount"] == 10000
    assert summary["promotion_code"] == "TENK"
    assert summary["final_amount"] == 65000


def test_unavailable_product_is_flagged_in_cart(client, customer, admin, store):
    client.post("/api/cart", json={"product_id": store["coffee_id"]}, headers=customer["headers"])
    client.patch(f"/api/admin/products/{store['coffee_id']}", json={"is_available": False}, headers=admin["headers"])
    [line] = client.get("/api/cart", headers=customer["headers"]).json()
    assert line["is_available"] is False
