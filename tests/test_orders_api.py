def _create(client, headers, **overrides):
    body = {"items": [{"item_id": "burger", "qty": 2}], "table_ref": "T1"}
    body.update(overrides)
    return client.post("/api/orders", json=body, headers=headers)


def test_create_and_fetch_order(client, customer):
    resp = _create(client, customer, confirm=True, total=236)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "confirmed"
    assert data["amounts"]["final_amount"] == 236.0
    assert data["items"][0]["unit_price"] == 100.0
    assert data["order_number"].isdigit() and len(data["order_number"]) == 12

    fetched = client.get(f"/api/orders/{data['id']}", headers=customer).json()["data"]
    assert fetched["id"] == data["id"]
    assert fetched["timestamps"]["confirmed_at"] is not None


def test_requires_bearer_token(client):
    resp = client.post("/api/orders", json={"items": []})
    assert resp.status_code == 401
    assert resp.json()["ok"] is False


def test_validation_errors_use_envelope(client, customer):
    resp = client.post("/api/orders", json={"items": [{"qty": 2}]}, headers=customer)
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"


def test_dine_in_needs_table(client, customer):
    resp = _create(client, customer, table_ref=None)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


def test_unavailable_item(client, customer):
    resp = client.post(
        "/api/orders",
        json={"channel": "takeaway", "items": [{"product_id": "soup"}]},
        headers=customer,
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["details"] == {"product_id": "soup"}


def test_add_items_confirm_and_list(client, customer):
    order = _create(client, customer).json()["data"]
    resp = client.post(
        f"/api/orders/{order['id']}/items",
        json={"items": [{"itemId": "fries", "quantity": 1, "special_instructions": "crispy"}]},
        headers=customer,
    )
    assert resp.json()["data"]["amounts"]["subtotal"] == 250.0
    confirmed = client.post(f"/api/orders/{order['id']}/confirm", headers=customer)
    assert confirmed.json()["data"]["status"] == "confirmed"
    listed = client.get("/api/orders", headers=customer).json()["data"]
    assert [o["id"] for o in listed] == [order["id"]]


def test_other_customer_is_forbidden(client, customer, other_customer):
    order = _create(client, customer).json()["data"]
    resp = client.get(f"/api/orders/{order['id']}", headers=other_customer)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


def test_cancel_draft(client, customer):
    order = _create(client, customer).json()["data"]
    resp = client.post(
        f"/api/orders/{order['id']}/cancel", json={"reason": "too slow"}, headers=customer
    )
    data = resp.json()["data"]
    assert data["status"] == "cancelled"
    assert data["cancel_reason"] == "too slow"
    again = client.post(f"/api/orders/{order['id']}/cancel", headers=customer)
    assert again.status_code == 400
    assert again.json()["error"]["code"] == "INVALID_TRANSITION"


def test_unknown_order_is_404(client, customer):
    resp = client.get("/api/orders/nope", headers=customer)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"
