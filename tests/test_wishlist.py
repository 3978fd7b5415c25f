def test_wishlist_add_check_and_remove(client, customer, store):
    pid = store["milk_tea_id"]
    assert client.get(f"/api/wishlist/{pid}", headers=customer["headers"]).json() == {"in_wishlist": False}

    assert client.post(f"/api/wishlist/{pid}", headers=customer["headers"]).status_code == 201
    assert client.post(f"/api/wishlist/{pid}", headers=customer["headers"]).status_code == 400
    assert client.get(f"/api/wishlist/{pid}", headers=customer["headers"]).json() == {"in_wishlist": True}

    [entry] = client.get("/api/wishlist", headers=customer["headers"]).json()
    assert entry["product"]["id"] == pid

    assert client.delete(f"/api/wishlist/{pid}", headers=customer["headers"]).status_code == 204
    assert client.delete(f"/api/wishlist/{pid}", headers=customer["headers"]).status_code == 404


def test_anonymous_visitor_has_empty_wishlist(client, store):
    assert client.get("/api/wishlist").json() == []
    assert client.get(f"/api/wishlist/{store['milk_tea_id']}").json() == {"in_wishlist": False}
    assert client.post(f"/api/wishlist/{store['milk_tea_id']}").status_code == 401


def test_wishlist_is_per_user(client, customer, other_customer, store):
    client.post(f"/api/wishlist/{store['coffee_id']}", headers=customer["headers"])
    assert client.get("/api/wishlist", headers=other_customer["headers"]).json() == []


def test_deleted_products_drop_out(client, customer, admin, store):
    client.post(f"/api/wishlist/{store['milk_tea_id']}", headers=customer["headers"])
    client.post(f"/api/wishlist/{store['coffee_id']}", headers=customer["headers"])
    client.delete(f"/api/admin/products/{store['coffee_id']}", headers=admin["headers"])

    entries = client.get("/api/wishlist", headers=customer["headers"]).json()
    assert [e["product_id"] for e in entries] == [store["milk_tea_id"]]


def test_unknown_product_cannot_be_wishlisted(client, customer):
    assert client.post("/api/wishlist/0123456789abcdef01234567", headers=customer["headers"]).status_code == 404
