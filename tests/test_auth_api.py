import pytest

AUTH = "/api/auth"
MOBILE = "03001234567"
PASSWORD = "secret123"


def signup(client, mobile=MOBILE, password=PASSWORD):
    return client.post(f"{AUTH}/signup", json={"name": "Ayesha Khan", "mobile": mobile, "password": password})


def pending_code(db, run, mobile=MOBILE):
    return run(db.pending_users.find_one({"mobile": mobile}))["verification_code"]


@pytest.fixture
def verified(client, db, run):
    signup(client)
    response = client.post(f"{AUTH}/verify-mobile", json={"mobile": MOBILE, "code": pending_code(db, run)})
    assert response.status_code == 200
    return response.json()


def test_signup_stores_hashed_password_and_texts_code(client, db, gateway, run):
    response = signup(client)

    assert response.status_code == 201
    assert response.json()["sms_sent"] is True

    pending = run(db.pending_users.find_one({"mobile": MOBILE}))
    assert pending["password_hash"] != PASSWORD
    assert "password" not in pending
    assert pending["created_at"] is not None
    assert len(pending["verification_code"]) == 6
    assert pending["verification_code"] in gateway.sent[0]["text"]


def test_resubmitting_signup_replaces_code_but_keeps_created_at(client, db, run):
    signup(client)
    first = run(db.pending_users.find_one({"mobile": MOBILE}))

    signup(client, password="another-pass")

    assert run(db.pending_users.count_documents({"mobile": MOBILE})) == 1
    second = run(db.pending_users.find_one({"mobile": MOBILE}))
    assert second["created_at"] == first["created_at"]
    assert second["password_hash"] != first["password_hash"]


def test_signup_rejects_bad_input(client):
    assert signup(client, mobile="12345").json()["message"] == "Please enter a valid mobile number"
    assert signup(client, password="abc").status_code == 400


def test_signup_reports_failed_sms(client, db, gateway, run):
    gateway.fail = True

    response = signup(client)

    assert response.status_code == 201
    assert response.json()["sms_sent"] is False
    assert run(db.pending_users.find_one({"mobile": MOBILE})) is not None


def test_verify_creates_user_and_removes_pending(verified, client, db, run):
    assert verified["user"]["mobile"] == MOBILE
    assert verified["user"]["is_mobile_verified"] is True
    assert run(db.pending_users.find_one({"mobile": MOBILE})) is None

    me = client.get(f"{AUTH}/me", headers={"Authorization": f"Bearer {verified['token']}"})
    assert me.status_code == 200
    assert me.json()["user"]["id"] == verified["user"]["id"]

    again = client.post(f"{AUTH}/verify-mobile", json={"mobile": MOBILE, "code": "123456"})
    assert again.status_code == 400
    assert again.json()["message"] == "Account already verified and created."
    assert signup(client).json()["message"] == "Mobile number already registered"


def test_verify_with_wrong_code(client, db, run):
    signup(client)
    code = pending_code(db, run)
    wrong = "000000" if code != "000000" else "111111"

    response = client.post(f"{AUTH}/verify-mobile", json={"mobile": MOBILE, "code": wrong})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid verification code"
    assert run(db.users.count_documents({})) == 0


def test_verify_without_pending_signup(client):
    response = client.post(f"{AUTH}/verify-mobile", json={"mobile": MOBILE, "code": "123456"})

    assert response.status_code == 404


def test_resend_issues_new_code(client, db, gateway, run):
    signup(client)

    response = client.post(f"{AUTH}/resend-verification", json={"mobile": MOBILE})

    assert response.status_code == 200
    assert len(gateway.sent) == 2
    assert pending_code(db, run) in gateway.sent[1]["text"]


def test_login(verified, client):
    ok = client.post(f"{AUTH}/login", json={"mobile": MOBILE, "password": PASSWORD})
    assert ok.status_code == 200
    assert ok.json()["token"]

    bad = client.post(f"{AUTH}/login", json={"mobile": MOBILE, "password": "wrong-pass"})
    assert bad.status_code == 401
    assert bad.json()["message"] == "Invalid credentials"


def test_me_requires_valid_token(client, db):
    assert client.get(f"{AUTH}/me").status_code == 401
    response = client.get(f"{AUTH}/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token"


def test_password_reset_flow(verified, client, db, gateway, run):
    response = client.post(f"{AUTH}/forgot-password", json={"mobile": MOBILE})
    assert response.status_code == 200
    code = run(db.users.find_one({"mobile": MOBILE}))["reset_code"]
    assert code in gateway.sent[-1]["text"]

    checked = client.post(f"{AUTH}/verify-reset-code", json={"mobile": MOBILE, "code": code})
    assert checked.status_code == 200

    reset = client.post(
        f"{AUTH}/reset-password",
        json={"mobile": MOBILE, "code": code, "newPassword": "brand-new-pass"},
    )
    assert reset.status_code == 200

    assert client.post(f"{AUTH}/login", json={"mobile": MOBILE, "password": PASSWORD}).status_code == 401
    assert client.post(f"{AUTH}/login", json={"mobile": MOBILE, "password": "brand-new-pass"}).status_code == 200

    reused = client.post(
        f"{AUTH}/reset-password",
        json={"mobile": MOBILE, "code": code, "newPassword": "third-pass"},
    )
    assert reused.status_code == 400


def test_forgot_password_does_not_reveal_unknown_mobile(client, db, gateway):
    response = client.post(f"{AUTH}/forgot-password", json={"mobile": "03119876543"})

    assert response.status_code == 200
    assert response.json()["message"].startswith("If an account exists")
    assert gateway.sent == []


def test_signup_survives_concurrent_insert_for_same_mobile(client, db, run, monkeypatch):
    from pymongo.errors import DuplicateKeyError

    from app.services import auth_service

    class RacingCollection:
        """Another signup for the same mobile lands just before our upsert."""

        def __init__(self, inner):
            self.inner = inner
            self.raced = False

        def __getattr__(self, name):
            return getattr(self.inner, name)

        async def update_one(self, query, update, upsert=False):
            if upsert and not self.raced:
                self.raced = True
                await self.inner.insert_one({"mobile": query["mobile"], "created_at": "earlier"})
                raise DuplicateKeyError("pending_mobile_unique")
            return await self.inner.update_one(query, update, upsert=upsert)

    racing = RacingCollection(db.pending_users)
    monkeypatch.setattr(auth_service, "get_pending_users_collection", lambda: racing)

    response = signup(client)

    assert response.status_code == 201
    pending = run(db.pending_users.find_one({"mobile": MOBILE}))
    assert pending["password_hash"]
    assert pending["created_at"] == "earlier"
