def _order(client, customer):
    return client.post(
        "/api/orders",
        json={"channel": "takeaway", "items": [{"item_id": "burger", "qty": 2}], "confirm": True},
        headers=customer,
    ).json()["data"]


def test_create_intent_for_order(client, customer):
    order = _order(client, customer)
    resp = client.post("/api/pay/create", json={"orderId": order["id"], "amount": 1}, headers=customer)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["amount"] == 236.0
    assert data["amount_minor"] == 23600
    assert data["currency"] == "INR"
    assert data["key"] == "rzp_test_mock"
    assert data["gateway_order_id"].startswith("order_mock_")


def test_customer_needs_order_id(client, customer):
    resp = client.post("/api/pay/create", json={"amount": 100}, headers=customer)
    assert resp.status_code == 400


def test_verify_then_duplicate(client, customer, gateway):
    order = _order(client, customer)
    intent = client.post(
        "/api/pay/create", json={"order_id": order["id"]}, headers=customer
    ).json()["data"]
    body = {
        "order_id": order["id"],
        "razorpay_order_id": intent["gateway_order_id"],
        "razorpay_payment_id": "pay_abc",
        "razorpay_signature": gateway.sign_payment(intent["gateway_order_id"], "pay_abc"),
    }
    first = client.post("/api/pay/verify", json=body, headers=customer).json()["data"]
    assert first["verified"] is True
    assert first["duplicate"] is False
    assert first["order"]["total_paid"] == 236.0
    assert first["order"]["balance_amount"] == 0.0

    second = client.post("/api/pay/verify", json=body, headers=customer).json()["data"]
    assert second["duplicate"] is True
    assert len(second["order"]["payments"]) == 1


def test_bad_signature(client, customer):
    order = _order(client, customer)
    intent = client.post(
        "/api/pay/create", json={"order_id": order["id"]}, headers=customer
    ).json()["data"]
    resp = client.post(
        "/api/pay/verify",
        json={
            "order_id": order["id"],
            "gateway_order_id": intent["gateway_order_id"],
            "gateway_payment_id": "pay_evil",
            "signature": "0" * 64,
        },
        headers=customer,
    )
    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "INVALID_SIGNATURE"
    assert "no charge" in error["message"]
