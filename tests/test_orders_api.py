from datetime import datetime

import pytest

from app.core.config import settings

ORDERS = "/api/orders"
MOBILE = "+923001234567"


@pytest.fixture
def seeded(client, admin_headers):
    response = client.post(
        "/api/coupons", json={"coupon_numbers": ["CH-001", "CH-002"]}, headers=admin_headers
    )
    assert response.status_code == 201
    return client


def test_metered_order_is_created_and_confirmed_with_coupon(seeded, db, gateway, run, factories):
    payload = factories.order_payload([
        factories.item(test_id="cbc", price=1000, discounted=800),
        factories.item(test_id="lft", price=2000, discounted=1500),
    ])

    response = seeded.post(ORDERS, json=payload)

    assert response.status_code == 201
    order = response.json()
    assert order["status"] == "Pending"
    assert order["customer"]["mobile"] == MOBILE
    assert order["customer"]["age"] == "34"
    assert order["totals"] == {"original": 3000, "final": 2300, "coverage": 700}
    assert order["preferred_time"] == "09:00"

    # Background confirmation has run by the time the test client returns
    assert len(gateway.sent) == 1
    assert gateway.sent[0]["to"] == MOBILE
    assert "Use Coupon: CH-001." in gateway.sent[0]["text"]

    coupon = run(db.coupons.find_one({"coupon_number": "CH-001"}))
    assert coupon["state"] == "Sent"
    assert coupon["reserved_for"]["order_id"] == order["_id"]

    quota = seeded.get(f"/api/quota/{MOBILE}").json()
    assert quota["count"] == 1
    assert quota["remaining"] == settings.SMS_QUOTA_LIMIT - 1

    entry = run(db.confirmation_outbox.find_one({"order_id": order["_id"]}))
    assert entry["outcome"] == "COMMITTED"


def test_metered_order_over_quota_is_rejected_before_anything_is_written(seeded, db, gateway, run, factories):
    run(db.sms_quota.insert_one({
        "identifier": MOBILE,
        "count": settings.SMS_QUOTA_LIMIT,
        "window_started_at": datetime.utcnow(),
    }))

    response = seeded.post(ORDERS, json=factories.order_payload())

    assert response.status_code == 429
    assert int(response.headers["Retry-After"]) > 0
    body = response.json()
    assert body["code"] == "SMS_QUOTA_EXCEEDED"
    assert body["details"]["retry_after"] == int(response.headers["Retry-After"])

    assert run(db.orders.count_documents({})) == 0
    assert run(db.confirmation_outbox.count_documents({})) == 0
    assert run(db.coupons.count_documents({"state": "Available"})) == 2
    assert gateway.sent == []


def test_order_for_other_lab_ignores_quota_and_coupons(seeded, db, gateway, run, factories):
    run(db.sms_quota.insert_one({
        "identifier": MOBILE,
        "count": settings.SMS_QUOTA_LIMIT,
        "window_started_at": datetime.utcnow(),
    }))
    payload = factories.order_payload([factories.item(lab_id="idc", lab_name="IDC")])

    response = seeded.post(ORDERS, json=payload)

    assert response.status_code == 201
    assert gateway.sent[0]["text"].startswith("IDC | ")
    assert "Coupon" not in gateway.sent[0]["text"]
    assert run(db.coupons.count_documents({"state": "Available"})) == 2
    quota = run(db.sms_quota.find_one({"identifier": MOBILE}))
    assert quota["count"] == settings.SMS_QUOTA_LIMIT


def test_failed_sms_still_creates_order(seeded, db, gateway, run, factories):
    gateway.fail = True

    response = seeded.post(ORDERS, json=factories.order_payload())

    assert response.status_code == 201
    assert run(db.orders.count_documents({})) == 1
    assert run(db.coupons.count_documents({"state": "Available"})) == 2
    assert run(db.sms_quota.count_documents({})) == 0


@pytest.mark.parametrize("field", ["name", "mobile", "age", "city"])
def test_missing_customer_field_is_named(client, db, run, factories, field):
    payload = factories.order_payload()
    payload["customer"][field] = "  "

    response = client.post(ORDERS, json=payload)

    assert response.status_code == 400
    assert response.json()["message"] == f"Missing customer field: {field}"
    assert run(db.orders.count_documents({})) == 0


def test_order_without_items_is_rejected(client, factories):
    response = client.post(ORDERS, json=factories.order_payload(items=[]))

    assert response.status_code == 400
    assert response.json()["message"] == "Customer info and at least one item are required"


def test_final_total_above_original_is_rejected(client, factories):
    payload = factories.order_payload()
    payload["totals"] = {"original": 500, "final": 900}

    response = client.post(ORDERS, json=payload)

    assert response.status_code == 400
    assert response.json()["message"] == "Final total cannot exceed the original total"


def test_malformed_item_is_a_validation_error(client, factories):
    item = factories.item()
    del item["testName"]

    response = client.post(ORDERS, json=factories.order_payload([item]))

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_status_update(client, factories):
    order = client.post(ORDERS, json=factories.order_payload()).json()

    response = client.patch(f"{ORDERS}/{order['_id']}/status", json={"status": "Completed"})
    assert response.status_code == 200
    assert response.json()["status"] == "Completed"

    response = client.patch(f"{ORDERS}/{order['_id']}/status", json={"status": "Shipped"})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid status value"

    response = client.patch(f"{ORDERS}/507f1f77bcf86cd799439011/status", json={"status": "Received"})
    assert response.status_code == 404
    assert response.json()["message"] == "Order not found"


def test_list_orders_for_customer_newest_first(client, factories):
    first = client.post(ORDERS, json=factories.order_payload()).json()
    second = client.post(ORDERS, json=factories.order_payload()).json()
    client.post(ORDERS, json=factories.order_payload(mobile="+923119876543"))

    response = client.get(ORDERS, params={"mobile": MOBILE})

    assert response.status_code == 200
    ids = [order["_id"] for order in response.json()["orders"]]
    assert ids == [second["_id"], first["_id"]]
    assert len(client.get(ORDERS).json()["orders"]) == 3


def test_list_orders_matches_email(client, factories):
    payload = factories.order_payload()
    payload["customer"]["email"] = "ayesha@example.com"
    created = client.post(ORDERS, json=payload).json()

    orders = client.get(ORDERS, params={"mobile": "ayesha@example.com"}).json()["orders"]

    assert [order["_id"] for order in orders] == [created["_id"]]


def test_delete_order(client, factories):
    order = client.post(ORDERS, json=factories.order_payload()).json()

    assert client.delete(f"{ORDERS}/{order['_id']}").status_code == 200
    assert client.delete(f"{ORDERS}/{order['_id']}").status_code == 404
    assert client.get(ORDERS).json()["orders"] == []


def test_order_is_confirmed_when_queueing_fails(seeded, db, gateway, run, factories, monkeypatch):
    from app.services import outbox_service

    async def broken_enqueue(order_id):
        raise RuntimeError("outbox unavailable")

    monkeypatch.setattr(outbox_service, "enqueue_confirmation", broken_enqueue)

    response = seeded.post(ORDERS, json=factories.order_payload())

    assert response.status_code == 201
    order_id = response.json()["_id"]
    assert len(gateway.sent) == 1
    entry = run(db.confirmation_outbox.find_one({"order_id": order_id}))
    assert entry["outcome"] == "COMMITTED"
