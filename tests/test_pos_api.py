BURGERS = [{"item_id": "burger", "qty": 2}]


def test_walk_in_with_split_payment(client, staff):
    resp = client.post(
        "/api/pos/orders",
        json={
            "items": BURGERS,
            "payments": [
                {"method": "cash", "amount": 200},
                {"method": "upi", "amount": 50, "reference": "upi-77"},
            ],
        },
        headers=staff,
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "paid"
    assert data["change_due"] == 14.0
    assert data["flags"]["is_split"] is True
    assert data["flags"]["is_pos_order"] is True
    assert data["customer_ref"] is None


def test_complimentary_order(client, staff):
    data = client.post(
        "/api/pos/orders",
        json={"items": BURGERS, "is_complimentary": True},
        headers=staff,
    ).json()["data"]
    assert data["status"] == "paid"
    assert data["amounts"]["subtotal"] == 200.0
    assert data["amounts"]["final_amount"] == 0.0


def test_customers_cannot_use_pos(client, customer):
    resp = client.post("/api/pos/orders", json={"items": BURGERS}, headers=customer)
    assert resp.status_code == 403


def test_kitchen_flow_and_till_payment(client, staff):
    order = client.post(
        "/api/pos/orders",
        json={"items": BURGERS, "discounts": [{"kind": "percentage", "value": 10}]},
        headers=staff,
    ).json()["data"]
    assert order["status"] == "confirmed"
    assert order["amounts"]["final_amount"] == 212.0

    kot = client.post(f"/api/pos/orders/{order['id']}/kot", headers=staff).json()["data"]
    assert kot["flags"]["kot_printed"] is True

    for status in ("preparing", "ready", "served", "billed"):
        resp = client.post(
            f"/api/pos/orders/{order['id']}/status", json={"status": status}, headers=staff
        )
        assert resp.json()["data"]["status"] == status

    paid = client.post(
        f"/api/pos/orders/{order['id']}/payments",
        json={"payments": [{"method": "card", "amount": 112}, {"method": "cash", "amount": 100}]},
        headers=staff,
    ).json()["data"]
    assert paid["status"] == "paid"
    assert paid["balance_amount"] == 0.0
    assert paid["change_due"] == 0.0


def test_cancel_after_kot_needs_override(client, staff):
    order = client.post("/api/pos/orders", json={"items": BURGERS}, headers=staff).json()["data"]
    client.post(f"/api/pos/orders/{order['id']}/kot", headers=staff)
    url = f"/api/pos/orders/{order['id']}/status"
    blocked = client.post(url, json={"status": "cancelled"}, headers=staff)
    assert blocked.status_code == 400
    assert blocked.json()["error"]["code"] == "INVALID_TRANSITION"
    done = client.post(
        url, json={"status": "cancelled", "override": True, "reason": "no stock"}, headers=staff
    )
    assert done.json()["data"]["cancel_reason"] == "no stock"


def test_unknown_status_is_rejected(client, staff):
    order = client.post("/api/pos/orders", json={"items": BURGERS}, headers=staff).json()["data"]
    resp = client.post(
        f"/api/pos/orders/{order['id']}/status", json={"status": "eaten"}, headers=staff
    )
    assert resp.status_code == 400


def test_list_filters(client, staff):
    client.post("/api/pos/orders", json={"items": BURGERS}, headers=staff)
    client.post(
        "/api/pos/orders",
        json={"items": BURGERS, "complimentary": True},
        headers=staff,
    )
    paid = client.get("/api/pos/orders", params={"status": "paid"}, headers=staff).json()
    assert [o["status"] for o in paid["data"]] == ["paid"]
    everything = client.get("/api/pos/orders", headers=staff).json()["data"]
    assert len(everything) == 2


def test_metrics_endpoint(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "orders_created_total" in resp.text
