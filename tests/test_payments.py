import json

import pytest

from app.domain.payments import service as payments
from app.domain.wallet.service import WalletService
from app.models import Notification, WalletTransaction
from app.services.gateway import PaymentGatewayError
from app.services.phonepe_service import encode_payload, phonepe_service
from app.services.razorpay_service import razorpay_service
from app.webhook_security import create_webhook_signature, phonepe_checksum, razorpay_checkout_signature
from factories import add_transaction

WEBHOOK_SECRET = "whsec_test"


def post_webhook(client, event: dict, signature: str = None):
    body = json.dumps(event).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    if signature is None:
        signature = create_webhook_signature(WEBHOOK_SECRET, body)
    if signature:
        headers["X-Razorpay-Signature"] = signature
    return client.post("/payments/razorpay/webhook", content=body, headers=headers)


def captured_event(order_id: str, payment_id: str = "pay_123") -> dict:
    return {
        "event": "payment.captured",
        "payload": {
            "payment": {
                "entity": {"id": payment_id, "order_id": order_id, "status": "captured", "method": "upi"}
            }
        },
    }


def deposit_by_meta(db, key, value):
    # Requests commit through their own session
    db.expire_all()
    return db.query(WalletTransaction).filter(WalletTransaction.meta[key].as_string() == value).one()


# ---------------------------------------------------------------------------
# Razorpay checkout
# ---------------------------------------------------------------------------


def test_create_order_records_pending_deposit(client, auth, db, customer, monkeypatch):
    async def create_order(amount, receipt, notes=None):
        return {"id": "order_abc", "amount": int(amount * 100), "currency": "INR", "receipt": receipt}

    monkeypatch.setattr(razorpay_service, "create_order", create_order)
    auth.login(customer)

    response = client.post("/payments/razorpay/create-order", json={"amount": 500})
    assert response.status_code == 200
    order = response.json()["order"]
    assert order["id"] == "order_abc"
    assert order["amount"] == 50000
    assert order["key"] == "rzp_test_key"
    assert order["receipt"].startswith("WALLET_RECHARGE_")
    assert order["prefill"]["contact"] == "+919876543210"

    txn = deposit_by_meta(db, "razorpay_order_id", "order_abc")
    assert txn.status == "pending"
    assert WalletService(db).get_balance(customer.user_id) == 0


def test_create_order_gateway_failure(client, auth, customer, monkeypatch):
    async def create_order(amount, receipt, notes=None):
        raise PaymentGatewayError("Razorpay request failed", status_code=500)

    monkeypatch.setattr(razorpay_service, "create_order", create_order)
    auth.login(customer)

    response = client.post("/payments/razorpay/create-order", json={"amount": 500})
    assert response.status_code == 502


def test_verify_payment_completes_deposit(client, auth, db, customer, monkeypatch):
    add_transaction(
        db, customer.user_id, 500, status="pending", meta={"razorpay_order_id": "order_abc"}
    )

    async def fetch_payment(payment_id):
        return {"id": payment_id, "order_id": "order_abc", "status": "captured", "method": "card"}

    monkeypatch.setattr(razorpay_service, "fetch_payment", fetch_payment)
    auth.login(customer)

    payload = {
        "razorpay_order_id": "order_abc",
        "razorpay_payment_id": "pay_123",
        "razorpay_signature": razorpay_checkout_signature("order_abc", "pay_123", "rzp_test_secret"),
    }
    response = client.post("/payments/razorpay/verify", json=payload)
    assert response.status_code == 200
    assert response.json()["transaction"]["status"] == "completed"
    assert WalletService(db).get_balance(customer.user_id) == 500

    # Verifying again returns the completed row without touching the gateway
    monkeypatch.setattr(razorpay_service, "fetch_payment", None)
    again = client.post("/payments/razorpay/verify", json=payload)
    assert again.status_code == 200
    assert WalletService(db).get_balance(customer.user_id) == 500


def test_verify_payment_rejects_bad_signature(client, auth, customer):
    auth.login(customer)
    response = client.post(
        "/payments/razorpay/verify",
        json={"razorpay_order_id": "order_abc", "razorpay_payment_id": "pay_123", "razorpay_signature": "forged"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid payment signature"


def test_verify_payment_requires_capture(client, auth, db, customer, monkeypatch):
    add_transaction(db, customer.user_id, 500, status="pending", meta={"razorpay_order_id": "order_abc"})

    async def fetch_payment(payment_id):
        return {"id": payment_id, "order_id": "order_abc", "status": "authorized"}

    monkeypatch.setattr(razorpay_service, "fetch_payment", fetch_payment)
    auth.login(customer)

    response = client.post(
        "/payments/razorpay/verify",
        json={
            "razorpay_order_id": "order_abc",
            "razorpay_payment_id": "pay_123",
            "razorpay_signature": razorpay_checkout_signature("order_abc", "pay_123", "rzp_test_secret"),
        },
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Payment not captured"


# ---------------------------------------------------------------------------
# Razorpay webhook
# ---------------------------------------------------------------------------


def test_webhook_without_signature_is_rejected(client):
    response = post_webhook(client, captured_event("order_abc"), signature="")
    assert response.status_code == 401


def test_webhook_with_wrong_signature_is_rejected(client):
    response = post_webhook(client, captured_event("order_abc"), signature="deadbeef")
    assert response.status_code == 401


def test_payment_captured_completes_pending_deposit(client, db, customer):
    add_transaction(db, customer.user_id, 800, status="pending", meta={"razorpay_order_id": "order_xyz"})

    response = post_webhook(client, captured_event("order_xyz"))
    assert response.status_code == 200
    assert response.json()["success"] is True

    txn = deposit_by_meta(db, "razorpay_order_id", "order_xyz")
    assert txn.status == "completed"
    assert txn.meta["razorpay_payment_id"] == "pay_123"
    assert WalletService(db).get_balance(customer.user_id) == 800

    kinds = [n.type for n in db.query(Notification).filter(Notification.user_id == customer.user_id)]
    assert kinds == ["wallet_recharged"]


def test_payment_failed_marks_deposit_failed(client, db, customer):
    add_transaction(db, customer.user_id, 800, status="pending", meta={"razorpay_order_id": "order_bad"})
    event = captured_event("order_bad")
    event["event"] = "payment.failed"

    assert post_webhook(client, event).status_code == 200
    txn = deposit_by_meta(db, "razorpay_order_id", "order_bad")
    assert txn.status == "failed"


def test_payout_events_settle_withdrawals(client, db, designer):
    add_transaction(db, designer.user_id, 5000)
    add_transaction(
        db,
        designer.user_id,
        1000,
        transaction_type="withdrawal",
        status="pending",
        meta={"razorpay_payout_id": "pout_ok", "bank_details": {"bank_name": "HDFC Bank", "account_number": "XXXX6789"}},
    )
    add_transaction(
        db,
        designer.user_id,
        2000,
        transaction_type="withdrawal",
        status="pending",
        meta={"razorpay_payout_id": "pout_fail"},
    )
    assert WalletService(db).get_balance(designer.user_id) == 2000

    processed = {"event": "payout.processed", "payload": {"payout": {"entity": {"id": "pout_ok", "status": "processed"}}}}
    failed = {"event": "payout.failed", "payload": {"payout": {"entity": {"id": "pout_fail", "status": "failed"}}}}
    assert post_webhook(client, processed).status_code == 200
    assert post_webhook(client, failed).status_code == 200

    assert deposit_by_meta(db, "razorpay_payout_id", "pout_ok").status == "completed"
    assert deposit_by_meta(db, "razorpay_payout_id", "pout_fail").status == "failed"
    # The failed payout's funds return to the balance
    assert WalletService(db).get_balance(designer.user_id) == 4000

    kinds = {n.type for n in db.query(Notification).filter(Notification.user_id == designer.user_id)}
    assert kinds == {"withdrawal_completed", "withdrawal_failed"}


def test_unknown_webhook_event_is_acknowledged(client):
    response = post_webhook(client, {"event": "refund.created", "payload": {}})
    assert response.status_code == 200
    assert response.json() == {"success": True}


def test_webhook_with_invalid_json_is_rejected(client):
    body = b"not json"
    response = client.post(
        "/payments/razorpay/webhook",
        content=body,
        headers={"X-Razorpay-Signature": create_webhook_signature(WEBHOOK_SECRET, body)},
    )
    assert response.status_code == 400


@pytest.mark.parametrize(
    "event",
    [
        ["payment.captured"],
        "payment.captured",
        {"event": "payment.captured", "payload": ["not", "a", "dict"]},
    ],
)
def test_webhook_body_must_be_an_object(client, event):
    response = post_webhook(client, event)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid webhook payload"


def test_webhook_with_malformed_entity_is_acknowledged(client, db, customer):
    add_transaction(db, customer.user_id, 300, status="pending", meta={"razorpay_order_id": "order_odd"})
    response = post_webhook(client, {"event": "payment.captured", "payload": {"payment": ["entity"]}})
    assert response.status_code == 200
    assert deposit_by_meta(db, "razorpay_order_id", "order_odd").status == "pending"


# ---------------------------------------------------------------------------
# PhonePe
# ---------------------------------------------------------------------------


def phonepe_callback(client, data: dict, code: str = "PAYMENT_SUCCESS", x_verify: str = None):
    encoded = encode_payload({"success": code == "PAYMENT_SUCCESS", "code": code, "message": code, "data": data})
    if x_verify is None:
        x_verify = phonepe_checksum(encoded, "test-salt", "1")
    return client.post("/payments/phonepe/callback", json={"response": encoded}, headers={"X-VERIFY": x_verify})


def test_phonepe_initiate_records_pending_deposit(client, auth, db, customer, monkeypatch):
    captured = {}

    async def create_payment(**kwargs):
        captured.update(kwargs)
        return {"payment_url": "https://mercury.phonepe.com/pay/abc"}

    monkeypatch.setattr(phonepe_service, "create_payment", create_payment)
    auth.login(customer)

    response = client.post("/payments/phonepe/initiate", json={"amount": 300})
    assert response.status_code == 200
    body = response.json()
    assert body["paymentUrl"] == "https://mercury.phonepe.com/pay/abc"
    assert body["transactionId"].startswith("TXN_")
    assert captured["callback_url"].endswith("/payments/phonepe/callback")
    assert captured["mobile_number"] == "+919876543210"

    assert deposit_by_meta(db, "phonepe_transaction_id", body["transactionId"]).status == "pending"


def test_phonepe_callback_completes_with_gateway_amount(client, db, customer):
    add_transaction(db, customer.user_id, 300, status="pending", meta={"phonepe_transaction_id": "TXN_1_abc"})

    response = phonepe_callback(client, {"merchantTransactionId": "TXN_1_abc", "amount": 29950})
    assert response.status_code == 200
    assert response.json() == {"success": True, "amount": 299.5, "transactionId": "TXN_1_abc"}
    assert WalletService(db).get_balance(customer.user_id) == 299.5

    # Replays leave the settled row alone
    assert phonepe_callback(client, {"merchantTransactionId": "TXN_1_abc", "amount": 99999}).json()["amount"] == 299.5


def test_phonepe_callback_failure_code_fails_deposit(client, db, customer):
    add_transaction(db, customer.user_id, 300, status="pending", meta={"phonepe_transaction_id": "TXN_2_abc"})

    response = phonepe_callback(client, {"merchantTransactionId": "TXN_2_abc"}, code="PAYMENT_ERROR")
    assert response.status_code == 200
    assert response.json()["success"] is False
    assert deposit_by_meta(db, "phonepe_transaction_id", "TXN_2_abc").status == "failed"


def test_phonepe_callback_checksum_mismatch(client, db, customer):
    add_transaction(db, customer.user_id, 300, status="pending", meta={"phonepe_transaction_id": "TXN_3_abc"})
    response = phonepe_callback(client, {"merchantTransactionId": "TXN_3_abc"}, x_verify="bogus###1")
    assert response.status_code == 401


def test_phonepe_callback_unknown_transaction(client):
    response = phonepe_callback(client, {"merchantTransactionId": "TXN_missing"})
    assert response.status_code == 404


def test_phonepe_status_is_scoped_to_caller(client, auth, db, customer, designer):
    add_transaction(db, customer.user_id, 300, status="pending", meta={"phonepe_transaction_id": "TXN_4_abc"})
    auth.login(designer.profile)
    assert client.get("/payments/phonepe/status/TXN_4_abc").status_code == 404


def test_phonepe_status_settles_pending_deposit(client, auth, db, customer, monkeypatch):
    add_transaction(db, customer.user_id, 300, status="pending", meta={"phonepe_transaction_id": "TXN_5_abc"})

    async def check_status(transaction_id):
        return {"code": "PAYMENT_SUCCESS", "merchantTransactionId": transaction_id, "amount": 30000}

    monkeypatch.setattr(phonepe_service, "check_status", check_status)
    auth.login(customer)

    response = client.get("/payments/phonepe/status/TXN_5_abc")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert WalletService(db).get_balance(customer.user_id) == 300


# ---------------------------------------------------------------------------
# Sandbox recharge
# ---------------------------------------------------------------------------


def test_universal_payment_credits_wallet(client, auth, db, customer):
    auth.login(customer)

    response = client.post(
        "/payments/universal",
        json={"amount": 250, "paymentMethod": "upi", "userDetails": {"upiId": "me@okbank"}},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["transactionId"].startswith("UNI_TXN_")
    assert body["paymentDetails"]["upiId"] == "me@okbank"
    assert WalletService(db).get_balance(customer.user_id) == 250


def test_universal_payment_rejects_unknown_method(client, auth, customer):
    auth.login(customer)
    response = client.post("/payments/universal", json={"amount": 250, "paymentMethod": "crypto"})
    assert response.status_code == 400
    assert response.json()["detail"]["availableMethods"] == ["upi", "card", "netbanking", "wallet"]


def test_universal_payment_disabled_outside_sandbox(client, auth, customer, monkeypatch):
    monkeypatch.setattr(payments, "UNIVERSAL_PAYMENTS_SANDBOX", False)
    auth.login(customer)
    response = client.post("/payments/universal", json={"amount": 250, "paymentMethod": "upi"})
    assert response.status_code == 503


@pytest.mark.parametrize("decoded", [["PAYMENT_SUCCESS"], "PAYMENT_SUCCESS", 42])
def test_phonepe_callback_must_decode_to_an_object(client, decoded):
    encoded = encode_payload(decoded)
    response = client.post(
        "/payments/phonepe/callback",
        json={"response": encoded},
        headers={"X-VERIFY": phonepe_checksum(encoded, "test-salt", "1")},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid callback payload"
