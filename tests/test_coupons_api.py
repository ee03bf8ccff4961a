from datetime import datetime, timedelta

import pytest

from app.core.config import settings
from app.services import coupon_service

COUPONS = "/api/coupons"


@pytest.mark.parametrize("method,path", [
    ("post", COUPONS),
    ("get", f"{COUPONS}/summary"),
    ("get", f"{COUPONS}/stale"),
    ("post", f"{COUPONS}/507f1f77bcf86cd799439011/release"),
])
def test_operator_routes_reject_missing_or_wrong_key(client, admin_headers, method, path):
    kwargs = {"json": {"coupon_numbers": ["CH-001"]}} if path == COUPONS else {}

    missing = getattr(client, method)(path, **kwargs)
    wrong = getattr(client, method)(path, headers={"X-Admin-Key": "nope"}, **kwargs)

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert wrong.json()["code"] == "AUTHENTICATION_FAILED"


def test_operator_routes_closed_when_no_key_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", None)

    response = client.get(f"{COUPONS}/summary", headers={"X-Admin-Key": ""})

    assert response.status_code == 401


def test_seed_and_summary(client, admin_headers):
    seeded = client.post(COUPONS, json={"coupon_numbers": ["CH-001", "CH-002"]}, headers=admin_headers)
    again = client.post(COUPONS, json={"coupon_numbers": ["CH-002", "CH-003"]}, headers=admin_headers)

    assert seeded.json() == {"lab_id": settings.COUPON_LAB_ID, "added": 2, "skipped": 0}
    assert again.json()["skipped"] == 1

    summary = client.get(f"{COUPONS}/summary", headers=admin_headers).json()
    assert summary["states"] == {"Available": 3, "Reserved": 0, "Sent": 0}


def test_stale_reservation_can_be_released(client, admin_headers, db, run):
    run(coupon_service.add_coupons(settings.COUPON_LAB_ID, ["CH-001"]))
    coupon = run(coupon_service.reserve_coupon("order-1", "+923001234567"))
    run(db.coupons.update_one(
        {"_id": coupon["_id"]},
        {"$set": {"reserved_at": datetime.utcnow() - timedelta(hours=2)}},
    ))

    stale = client.get(f"{COUPONS}/stale", headers=admin_headers).json()["coupons"]
    assert [c["coupon_number"] for c in stale] == ["CH-001"]

    released = client.post(f"{COUPONS}/{stale[0]['_id']}/release", headers=admin_headers)
    assert released.status_code == 200
    assert run(db.coupons.find_one({"_id": coupon["_id"]}))["state"] == "Available"

    twice = client.post(f"{COUPONS}/{stale[0]['_id']}/release", headers=admin_headers)
    assert twice.status_code == 409
