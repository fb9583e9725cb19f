from datetime import timedelta

import pytest

from app.domain.bank_accounts import service as bank_service
from app.models import BankAccount, BankAccountVerification
from app.services.otp_delivery import OTPDeliveryError
from app.utils.time_utils import utcnow

ACCOUNT = {
    "bankName": "HDFC Bank",
    "accountHolderName": "Asha Rao",
    "accountNumber": "50100123456789",
    "ifscCode": "hdfc0001234",
    "accountType": "savings",
}


@pytest.fixture
def sent_otps(monkeypatch):
    """Capture OTPs instead of sending them"""
    sent = []

    async def fake_deliver(method, otp, *, email=None, phone=None, account_hint=""):
        sent.append({"method": method, "otp": otp, "email": email, "phone": phone, "hint": account_hint})

    monkeypatch.setattr(bank_service, "deliver_otp", fake_deliver)
    return sent


def create_account(client, **overrides):
    response = client.post("/bank-accounts", json={**ACCOUNT, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


def wrong(otp: str) -> str:
    return "000000" if otp != "000000" else "111111"


def test_first_account_becomes_primary_and_is_masked(client, auth, customer):
    auth.login(customer)

    first = create_account(client)
    second = create_account(client, accountNumber="123456789012")

    assert first["isPrimary"] is True
    assert second["isPrimary"] is False
    assert first["accountNumber"] == "****6789"
    assert first["ifscCode"] == "HDFC0001234"
    assert first["isVerified"] is False


def test_invalid_ifsc_is_rejected(client, auth, customer):
    auth.login(customer)
    response = client.post("/bank-accounts", json={**ACCOUNT, "ifscCode": "HDFC1234"})
    assert response.status_code == 422


def test_set_primary_and_delete_promotes_next(client, auth, customer):
    auth.login(customer)
    first = create_account(client)
    second = create_account(client, accountNumber="123456789012")

    response = client.post(f"/bank-accounts/{second['id']}/primary")
    assert response.json()["isPrimary"] is True
    accounts = {a["id"]: a for a in client.get("/bank-accounts").json()}
    assert accounts[first["id"]]["isPrimary"] is False

    assert client.delete(f"/bank-accounts/{second['id']}").status_code == 200
    remaining = client.get("/bank-accounts").json()
    assert [a["id"] for a in remaining] == [first["id"]]
    assert remaining[0]["isPrimary"] is True


def test_accounts_are_private_to_owner(client, auth, customer, designer):
    auth.login(customer)
    account = create_account(client)

    auth.login(designer.profile)
    assert client.get(f"/bank-accounts/{account['id']}").status_code == 404


def test_otp_round_trip_verifies_account(client, auth, db, customer, sent_otps):
    auth.login(customer)
    account = create_account(client)

    response = client.post(f"/bank-accounts/{account['id']}/send-otp", json={"method": "sms"})
    assert response.status_code == 200
    assert response.json()["expiresIn"] == 600
    assert sent_otps[0]["phone"] == "+919876543210"
    assert sent_otps[0]["hint"] == "6789"

    otp = sent_otps[0]["otp"]
    stored = db.query(BankAccountVerification).one()
    assert stored.otp_hash != otp

    response = client.post(f"/bank-accounts/{account['id']}/verify-otp", json={"otp": otp})
    assert response.status_code == 200
    assert response.json()["verified"] is True

    body = client.get(f"/bank-accounts/{account['id']}").json()
    assert body["isVerified"] is True
    assert body["verificationMethod"] == "otp"

    # A verified account cannot request another code
    again = client.post(f"/bank-accounts/{account['id']}/send-otp", json={"method": "sms"})
    assert again.status_code == 400


def test_wrong_otp_counts_down_then_locks(client, auth, customer, sent_otps):
    auth.login(customer)
    account = create_account(client)
    client.post(f"/bank-accounts/{account['id']}/send-otp", json={"method": "email"})
    otp = sent_otps[0]["otp"]
    url = f"/bank-accounts/{account['id']}/verify-otp"

    left = []
    for _ in range(3):
        response = client.post(url, json={"otp": wrong(otp)})
        assert response.status_code == 400
        left.append(response.json()["detail"]["attemptsLeft"])
    assert left == [2, 1, 0]

    # Even the right code is refused once attempts are exhausted
    response = client.post(url, json={"otp": otp})
    assert response.status_code == 400
    assert response.json()["detail"] == "Too many failed attempts. Please request a new OTP."


def test_resend_supersedes_previous_code(client, auth, customer, sent_otps):
    auth.login(customer)
    account = create_account(client)
    client.post(f"/bank-accounts/{account['id']}/send-otp", json={"method": "sms"})
    client.post(f"/bank-accounts/{account['id']}/send-otp", json={"method": "sms"})
    first, second = sent_otps[0]["otp"], sent_otps[1]["otp"]

    url = f"/bank-accounts/{account['id']}/verify-otp"
    if first != second:
        assert client.post(url, json={"otp": first}).status_code == 400
    assert client.post(url, json={"otp": second}).status_code == 200


def test_expired_otp_is_refused(client, auth, db, customer, sent_otps):
    auth.login(customer)
    account = create_account(client)
    client.post(f"/bank-accounts/{account['id']}/send-otp", json={"method": "sms"})

    verification = db.query(BankAccountVerification).one()
    verification.expires_at = utcnow() - timedelta(minutes=1)
    db.commit()

    response = client.post(f"/bank-accounts/{account['id']}/verify-otp", json={"otp": sent_otps[0]["otp"]})
    assert response.status_code == 400
    assert response.json()["detail"] == "OTP has expired. Please request a new one."


def test_verify_without_pending_code(client, auth, customer):
    auth.login(customer)
    account = create_account(client)
    response = client.post(f"/bank-accounts/{account['id']}/verify-otp", json={"otp": "123456"})
    assert response.status_code == 400
    assert response.json()["detail"] == "No pending verification found"


def test_failed_delivery_discards_the_code(client, auth, db, customer, monkeypatch):
    async def failing_deliver(method, otp, **kwargs):
        raise OTPDeliveryError("SMS provider unavailable")

    monkeypatch.setattr(bank_service, "deliver_otp", failing_deliver)
    auth.login(customer)
    account = create_account(client)

    response = client.post(f"/bank-accounts/{account['id']}/send-otp", json={"method": "sms"})
    assert response.status_code == 502
    assert response.json()["detail"]["error"] == "Failed to send OTP"
    assert db.query(BankAccountVerification).count() == 0


def test_auto_verify(client, auth, customer):
    auth.login(customer)
    account = create_account(client)

    response = client.post(f"/bank-accounts/{account['id']}/auto-verify")
    assert response.status_code == 200
    assert response.json()["method"] == "auto"
    assert client.get(f"/bank-accounts/{account['id']}").json()["verificationMethod"] == "auto"


def test_auto_verify_rejects_short_account_numbers(client, auth, customer):
    auth.login(customer)
    account = create_account(client, accountNumber="123456789")

    response = client.post(f"/bank-accounts/{account['id']}/auto-verify")
    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "Automatic verification failed. Please use OTP verification."


def test_changing_account_number_resets_verification(client, auth, db, customer):
    auth.login(customer)
    account = create_account(client)
    client.post(f"/bank-accounts/{account['id']}/auto-verify")

    row = db.query(BankAccount).one()
    row.meta = {"razorpay_fund_account_id": "fa_old", "razorpay_contact_id": "cont_1"}
    db.commit()

    response = client.patch(f"/bank-accounts/{account['id']}", json={"accountNumber": "123456789012"})
    assert response.status_code == 200
    assert response.json()["isVerified"] is False

    db.expire_all()
    row = db.query(BankAccount).one()
    assert row.meta == {"razorpay_contact_id": "cont_1"}
