from bson import ObjectId

from conftest import make_product, make_user

NEW_PRODUCT = {
    "name": "Aero Shorts",
    "description": "Lightweight training shorts",
    "price": 899,
    "category": "Shorts",
    "brand": "Caper",
    "sizes": [{"size": "S", "stock": 4}, {"size": "M", "stock": 6}],
    "colors": [{"name": "Navy", "hex": "#001f3f"}],
    "images": ["shorts.jpg"],
    "sku": "CS-SHO-001",
}


def _order(client, headers, address, product_id, size="M", quantity=1):
    body = {"items": [{"product_id": product_id, "quantity": quantity, "size": size}], "shipping_address": address, "payment_method": "card"}
    return client.post("/api/orders", json=body, headers=headers).json()["order"]


def test_admin_routes_refuse_customers(client, user_headers):
    assert client.get("/api/admin/stats", headers=user_headers).status_code == 403
    assert client.get("/api/admin/stats").status_code == 401


def test_create_product_rules(client, admin_headers):
    res = client.post("/api/admin/products", json=NEW_PRODUCT, headers=admin_headers)
    assert res.status_code == 201
    assert res.json()["product"]["total_stock"] == 10

    assert client.post("/api/admin/products", json=NEW_PRODUCT, headers=admin_headers).status_code == 400
    no_images = client.post("/api/admin/products", json={**NEW_PRODUCT, "sku": "CS-SHO-002", "images": []}, headers=admin_headers)
    assert no_images.status_code == 400


def test_update_product_recomputes_stock_and_guards_sku(client, admin_headers):
    product_id = make_product()
    make_product(sku="TAKEN-1")
    url = f"/api/admin/products/{product_id}"

    res = client.put(url, json={"sizes": [{"size": "M", "stock": 2}, {"size": "XL", "stock": 7}]}, headers=admin_headers)
    assert res.json()["product"]["total_stock"] == 9

    assert client.put(url, json={"sku": "TAKEN-1"}, headers=admin_headers).status_code == 400
    assert client.put(f"/api/admin/products/{ObjectId()}", json={"price": 1}, headers=admin_headers).status_code == 404


def test_total_stock_only_settable_without_sizes(client, db, admin_headers):
    sized_id = make_product()
    res = client.put(f"/api/admin/products/{sized_id}", json={"total_stock": 999}, headers=admin_headers)
    assert res.status_code == 400
    assert db["product"].find_one({"_id": ObjectId(sized_id)})["total_stock"] == 8

    plain_id = make_product(sizes=[], total_stock=4)
    res = client.put(f"/api/admin/products/{plain_id}", json={"total_stock": 12}, headers=admin_headers)
    assert res.json()["product"]["total_stock"] == 12


def test_delete_product_is_soft(client, db, admin_headers):
    product_id = make_product()
    assert client.delete(f"/api/admin/products/{product_id}", headers=admin_headers).json() == {"ok": True}
    assert db["product"].find_one({"_id": ObjectId(product_id)})["is_active"] is False

    listing = client.get("/api/admin/products", params={"is_active": False}, headers=admin_headers).json()
    assert listing["total"] == 1
    assert client.get(f"/api/products/{product_id}").status_code == 404


def test_order_status_flow(client, db, user_headers, admin_headers, shipping_address):
    product_id = make_product()
    order = _order(client, user_headers, shipping_address, product_id, quantity=2)
    url = f"/api/admin/orders/{order['id']}/status"

    shipped = client.put(url, json={"status": "shipped", "tracking_number": "TRK123", "carrier": "BlueDart", "note": "Picked up"}, headers=admin_headers).json()["order"]
    assert shipped["tracking_number"] == "TRK123"
    assert shipped["order_status_history"][-1]["note"] == "Picked up"

    delivered = client.put(url, json={"status": "delivered"}, headers=admin_headers).json()["order"]
    assert delivered["actual_delivery"] is not None

    assert client.put(url, json={"status": "lost"}, headers=admin_headers).status_code == 400


def test_admin_cancel_restores_stock_once(client, db, user_headers, admin_headers, shipping_address):
    product_id = make_product()
    order = _order(client, user_headers, shipping_address, product_id, quantity=2)
    url = f"/api/admin/orders/{order['id']}/status"

    client.put(url, json={"status": "cancelled"}, headers=admin_headers)
    client.put(url, json={"status": "cancelled"}, headers=admin_headers)

    assert db["product"].find_one({"_id": ObjectId(product_id)})["total_stock"] == 8


def test_recancel_after_reopen_keeps_stock(client, db, user_headers, admin_headers, shipping_address):
    product_id = make_product()
    order = _order(client, user_headers, shipping_address, product_id, quantity=2)
    url = f"/api/admin/orders/{order['id']}/status"

    for status in ("cancelled", "pending", "cancelled"):
        assert client.put(url, json={"status": status}, headers=admin_headers).status_code == 200

    product = db["product"].find_one({"_id": ObjectId(product_id)})
    assert product["total_stock"] == 8
    assert product["sizes"][0]["stock"] == 5


def test_order_search(client, user_headers, admin_headers, shipping_address):
    product_id = make_product()
    order = _order(client, user_headers, shipping_address, product_id)

    found = client.get("/api/admin/orders", params={"search": order["order_number"]}, headers=admin_headers).json()
    assert found["total"] == 1
    assert found["orders"][0]["user"]["email"] == "runner@example.com"
    assert client.get("/api/admin/orders", params={"status": "delivered"}, headers=admin_headers).json()["total"] == 0


def test_dashboard_and_stats(client, db, user_headers, admin_headers, shipping_address):
    product_id = make_product(price=1200)
    order = _order(client, user_headers, shipping_address, product_id)
    db["order"].update_one({"_id": ObjectId(order["id"])}, {"$set": {"payment_status": "paid"}})

    dashboard = client.get("/api/admin/dashboard", headers=admin_headers).json()["dashboard"]
    assert dashboard["total_products"] == 1
    assert dashboard["total_users"] == 1
    assert dashboard["total_orders"] == 1
    assert dashboard["monthly_revenue"] == order["total"]
    assert dashboard["top_products"][0]["total_sold"] == 1
    assert dashboard["recent_orders"][0]["order_number"] == order["order_number"]
    assert dashboard["low_stock_products"][0]["id"] == product_id
    assert dashboard["order_status_stats"] == [{"status": "pending", "count": 1}]

    stats = client.get("/api/admin/stats", headers=admin_headers).json()["stats"]
    assert stats == {"total_products": 1, "total_users": 2, "total_orders": 1, "pending_orders": 1}


def test_dashboard_low_stock_uses_each_threshold(client, admin_headers):
    low_id = make_product(low_stock_threshold=8)
    make_product(sizes=[{"size": "M", "stock": 40}])
    make_product(low_stock_threshold=2)

    dashboard = client.get("/api/admin/dashboard", headers=admin_headers).json()["dashboard"]
    assert [p["id"] for p in dashboard["low_stock_products"]] == [low_id]


def test_user_management(client, db, admin_id, admin_headers):
    user_id = make_user(email="member@example.com")

    listing = client.get("/api/admin/users", params={"role": "user"}, headers=admin_headers).json()
    assert [u["email"] for u in listing["users"]] == ["member@example.com"]
    assert "password_hash" not in listing["users"][0]

    updated = client.put(f"/api/admin/users/{user_id}", json={"first_name": "Meera", "password": "hijack"}, headers=admin_headers).json()["user"]
    assert updated["first_name"] == "Meera"
    assert db["user"].find_one({"_id": ObjectId(user_id)})["password_hash"] != "hijack"

    assert client.put(f"/api/admin/users/{user_id}/role", json={"role": "superuser"}, headers=admin_headers).status_code == 400
    assert client.put(f"/api/admin/users/{user_id}/deactivate", headers=admin_headers).json()["user"]["is_active"] is False
    assert client.put(f"/api/admin/users/{user_id}/activate", headers=admin_headers).json()["user"]["is_active"] is True

    assert client.put(f"/api/admin/users/{admin_id}/deactivate", headers=admin_headers).status_code == 400
    assert client.delete(f"/api/admin/users/{admin_id}", headers=admin_headers).status_code == 400
    assert client.delete(f"/api/admin/users/{user_id}", headers=admin_headers).json() == {"ok": True}
    assert db["user"].find_one({"_id": ObjectId(user_id)}) is None


def test_profile_update_cannot_deactivate_admin(client, db, admin_id, admin_headers):
    res = client.put(f"/api/admin/users/{admin_id}", json={"is_active": False}, headers=admin_headers)
    assert res.status_code == 400
    assert db["user"].find_one({"_id": ObjectId(admin_id)})["is_active"] is True

    member_id = make_user(email="bench@example.com")
    res = client.put(f"/api/admin/users/{member_id}", json={"is_active": False}, headers=admin_headers)
    assert res.json()["user"]["is_active"] is False
