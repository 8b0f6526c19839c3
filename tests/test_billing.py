from bson import ObjectId

INVOICE = {
    "invoice_number": "INV-129482-001",
    "customer": {"name": "Brightstone Industries", "email": "contact@brightstone.com", "city": "Brookfield"},
    "date_issued": "2025-01-17",
    "due_date": "2025-01-31",
    "items": [
        {"name": "Team jerseys", "quantity": 10, "unit_price": 350},
        {"name": "Training cones", "quantity": 2, "unit_price": 750},
    ],
    "tax_percentage": 18,
    "discount": 100,
}


def _create(client, headers, **overrides):
    return client.post("/api/admin/invoices", json={**INVOICE, **overrides}, headers=headers)


def test_create_computes_totals(client, admin_headers):
    res = _create(client, admin_headers)
    assert res.status_code == 201
    invoice = res.json()["invoice"]
    assert invoice["subtotal"] == 5000
    assert invoice["tax"] == 900
    assert invoice["grand_total"] == 5800
    assert [i["total"] for i in invoice["items"]] == [3500, 1500]
    assert invoice["status"] == "Pending"


def test_duplicate_number_and_validation(client, admin_headers):
    _create(client, admin_headers)
    assert _create(client, admin_headers).json()["detail"] == "Invoice number already exists"
    assert _create(client, admin_headers, invoice_number="INV-2", items=[]).status_code == 400


def test_invoices_are_admin_only(client, user_headers):
    assert client.get("/api/admin/invoices", headers=user_headers).status_code == 403


def test_list_filters_and_pagination(client, admin_headers):
    _create(client, admin_headers)
    _create(client, admin_headers, invoice_number="INV-129482-002", customer={"name": "Northwind Club", "email": "club@northwind.com"}, status="Paid")
    _create(client, admin_headers, invoice_number="INV-129482-003", status="Overdue")

    paid = client.get("/api/admin/invoices", params={"status": "paid"}, headers=admin_headers).json()
    assert [i["invoice_number"] for i in paid["invoices"]] == ["INV-129482-002"]

    everything = client.get("/api/admin/invoices", params={"status": "all", "limit": 2}, headers=admin_headers).json()
    assert everything["pagination"] == {
        "current_page": 1,
        "total_pages": 2,
        "total_invoices": 3,
        "has_next": True,
        "has_prev": False,
    }

    found = client.get("/api/admin/invoices", params={"search": "northwind"}, headers=admin_headers).json()
    assert found["pagination"]["total_invoices"] == 1


def test_update_recomputes_and_status_patch(client, db, admin_headers):
    invoice_id = _create(client, admin_headers).json()["invoice"]["id"]
    url = f"/api/admin/invoices/{invoice_id}"

    updated = client.put(url, json={"discount": 0, "tax_percentage": 5}, headers=admin_headers).json()["invoice"]
    assert updated["tax"] == 250
    assert updated["grand_total"] == 5250

    notes = client.put(url, json={"notes": "Net 15"}, headers=admin_headers).json()["invoice"]
    assert notes["grand_total"] == 5250

    assert client.patch(f"{url}/status", json={"status": "Paid"}, headers=admin_headers).json()["invoice"]["status"] == "Paid"
    assert client.patch(f"{url}/status", json={"status": "Lost"}, headers=admin_headers).status_code == 400


def test_html_and_delete(client, db, admin_headers):
    invoice_id = _create(client, admin_headers).json()["invoice"]["id"]

    html = client.get(f"/api/admin/invoices/{invoice_id}/html", headers=admin_headers)
    assert html.headers["content-type"].startswith("text/html")
    assert "Brightstone Industries" in html.text
    assert "₹5800.00" in html.text

    assert client.delete(f"/api/admin/invoices/{invoice_id}", headers=admin_headers).json() == {"ok": True}
    assert db["invoice"].find_one({"_id": ObjectId(invoice_id)}) is None
    assert client.get(f"/api/admin/invoices/{invoice_id}", headers=admin_headers).status_code == 404
