import asyncio
from datetime import datetime, timedelta

import pytest

from app.core.config import settings
from app.core.exceptions import CouponStateError, CouponUnavailableError
from app.services import coupon_service


def seed(run, *numbers, lab_id=None):
    return run(coupon_service.add_coupons(lab_id or settings.COUPON_LAB_ID, numbers))


def test_reserve_takes_oldest_available_and_records_holder(db, run):
    seed(run, "CH-001", "CH-002")

    coupon = run(coupon_service.reserve_coupon("order-1", "+923001234567"))

    assert coupon["coupon_number"] == "CH-001"
    assert coupon["state"] == "Reserved"
    assert coupon["reserved_for"] == {"order_id": "order-1", "mobile": "+923001234567"}
    assert coupon["reserved_at"] is not None


def test_reserve_ignores_other_labs(db, run):
    seed(run, "OTHER-1", lab_id="some-other-lab")

    with pytest.raises(CouponUnavailableError):
        run(coupon_service.reserve_coupon("order-1", "+923001234567"))


def test_concurrent_reservations_never_share_the_last_coupon(db, run):
    seed(run, "CH-LAST")

    async def race():
        return await asyncio.gather(
            coupon_service.reserve_coupon("order-a", "+923001111111"),
            coupon_service.reserve_coupon("order-b", "+923002222222"),
            return_exceptions=True,
        )

    results = run(race())

    winners = [r for r in results if isinstance(r, dict)]
    losers = [r for r in results if isinstance(r, CouponUnavailableError)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert winners[0]["coupon_number"] == "CH-LAST"


def test_mark_sent_is_terminal_and_not_repeatable(db, run):
    seed(run, "CH-001")
    coupon = run(coupon_service.reserve_coupon("order-1", "+923001234567"))

    run(coupon_service.mark_coupon_sent(coupon["_id"]))

    with pytest.raises(CouponStateError):
        run(coupon_service.mark_coupon_sent(coupon["_id"]))
    with pytest.raises(CouponStateError):
        run(coupon_service.release_coupon(coupon["_id"]))

    stored = run(db.coupons.find_one({"_id": coupon["_id"]}))
    assert stored["state"] == "Sent"
    assert stored["sent_at"] is not None


def test_release_returns_coupon_for_next_reservation(db, run):
    seed(run, "CH-001")
    first = run(coupon_service.reserve_coupon("order-1", "+923001234567"))

    run(coupon_service.release_coupon(str(first["_id"])))

    stored = run(db.coupons.find_one({"_id": first["_id"]}))
    assert stored["state"] == "Available"
    assert stored["reserved_for"] is None

    second = run(coupon_service.reserve_coupon("order-2", "+923009999999"))
    assert second["_id"] == first["_id"]
    assert second["reserved_for"]["order_id"] == "order-2"


def test_failed_transition_leaves_other_coupons_alone(db, run):
    seed(run, "CH-001", "CH-002")
    reserved = run(coupon_service.reserve_coupon("order-1", "+923001234567"))
    available = run(db.coupons.find_one({"coupon_number": "CH-002"}))

    with pytest.raises(CouponStateError):
        run(coupon_service.mark_coupon_sent(available["_id"]))

    summary = run(coupon_service.get_pool_summary(settings.COUPON_LAB_ID))
    assert summary == {"Available": 1, "Reserved": 1, "Sent": 0}
    still_reserved = run(db.coupons.find_one({"_id": reserved["_id"]}))
    assert still_reserved["state"] == "Reserved"


def test_add_coupons_skips_existing_codes(db, run):
    assert seed(run, "CH-001", "CH-002") == {"added": 2, "skipped": 0}
    assert seed(run, "CH-002", "CH-003", "  ") == {"added": 1, "skipped": 1}


def test_find_stale_reservations(db, run):
    seed(run, "CH-001", "CH-002")
    old = run(coupon_service.reserve_coupon("order-old", "+923001234567"))
    run(db.coupons.update_one(
        {"_id": old["_id"]},
        {"$set": {"reserved_at": datetime.utcnow() - timedelta(hours=2)}},
    ))
    run(coupon_service.reserve_coupon("order-new", "+923001234567"))

    stale = run(coupon_service.find_stale_reservations(datetime.utcnow() - timedelta(minutes=30)))

    assert [c["coupon_number"] for c in stale] == ["CH-001"]
