import asyncio
from datetime import datetime

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from app.core.config import settings
from app.core.exceptions import SendFailureError
from app.db import mongo
from app.db.indexes import create_indexes
from app.main import app
from app.services import sms_gateway

COUPON_LAB = settings.COUPON_LAB_ID


class RecordingGateway(sms_gateway.SMSGateway):
    """Gateway double: records every message, can be told to fail or stall."""

    def __init__(self):
        super().__init__(api_url="http://sms.test/send", api_key="test-key")
        self.sent = []
        self.fail = False
        self.delay = 0.0

    async def send(self, to_number, text, from_label=None):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise SendFailureError("gateway down")
        self.sent.append({"to": to_number, "text": text, "from": from_label or self.sender_id})
        return {"status": "accepted"}


@pytest.fixture
def run():
    return asyncio.run


@pytest.fixture
def db(monkeypatch):
    client = AsyncMongoMockClient()
    database = client["zunf_test"]
    monkeypatch.setattr(mongo, "_client", client)
    monkeypatch.setattr(mongo, "_database", database)
    asyncio.run(create_indexes())
    return database


@pytest.fixture
def gateway(monkeypatch):
    fake = RecordingGateway()
    monkeypatch.setattr(sms_gateway, "_gateway", fake)
    return fake


ADMIN_KEY = "test-admin-key"


@pytest.fixture
def admin_headers(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", ADMIN_KEY)
    return {"X-Admin-Key": ADMIN_KEY}


@pytest.fixture
def client(db, gateway):
    return TestClient(app)


def make_item(lab_id=COUPON_LAB, lab_name="Chughtai Lab", test_id="cbc", price=1000, discounted=800):
    return {
        "testId": test_id,
        "testName": test_id.upper(),
        "labId": lab_id,
        "labName": lab_name,
        "quantity": 1,
        "price": price,
        "discountedPrice": discounted,
    }


def make_order_payload(items=None, mobile="+923001234567"):
    return {
        "customer": {
            "name": "Ayesha Khan",
            "mobile": mobile,
            "age": 34,
            "city": "Lahore",
        },
        "items": items if items is not None else [make_item()],
    }


def make_order_document(items, mobile="+923001234567"):
    """Stored-form order for driving services directly."""
    return {
        "_id": ObjectId(),
        "customer": {"name": "Ayesha Khan", "mobile": mobile, "age": "34", "city": "Lahore"},
        "items": [
            {
                "test_id": item["testId"],
                "test_name": item["testName"],
                "lab_id": item["labId"],
                "lab_name": item["labName"],
                "quantity": item["quantity"],
                "price": item["price"],
                "discounted_price": item["discountedPrice"],
                "pinned": False,
            }
            for item in items
        ],
        "totals": {"original": 1000, "final": 800, "coverage": 200},
        "status": "Pending",
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
    }


@pytest.fixture
def factories():
    """Payload/document builders, exposed as a fixture so test modules need no imports from here."""
    class Factories:
        item = staticmethod(make_item)
        order_payload = staticmethod(make_order_payload)
        order_document = staticmethod(make_order_document)
    return Factories
