from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from app.domain.bank_accounts.repository import BankAccountRepository
from app.domain.wallet.repository import WalletRepository
from app.domain.wallet.service import WalletService, generate_transaction_id
from app.models import ActiveSession, BankAccount, Notification, PlatformSetting, WalletTransaction
from app.services.gateway import PaymentGatewayError
from app.services.razorpay_service import razorpay_service
from factories import add_transaction, make_profile


def add_bank_account(db, user_id, verified=True, **fields):
    account = BankAccount(
        user_id=user_id,
        bank_name="HDFC Bank",
        account_holder_name="Designer User",
        account_number="50100123456789",
        ifsc_code="HDFC0001234",
        is_verified=verified,
        is_primary=True,
        meta=fields.pop("meta", {}),
        **fields,
    )
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


def test_transaction_id_format():
    txn_id = generate_transaction_id("WDR")
    prefix, millis, suffix = txn_id.split("_")
    assert prefix == "WDR"
    assert millis.isdigit()
    assert len(suffix) == 9
    assert suffix.isalnum() and suffix == suffix.lower()


def test_balance_counts_only_settled_credits_and_reserving_debits(db, customer):
    uid = customer.user_id
    add_transaction(db, uid, 1000)
    add_transaction(db, uid, 200, transaction_type="refund")
    add_transaction(db, uid, 500, status="pending")
    add_transaction(db, uid, 300, transaction_type="payment")
    add_transaction(db, uid, 100, transaction_type="payment", status="failed")
    add_transaction(db, uid, 150, transaction_type="withdrawal", status="pending")
    add_transaction(db, uid, 50, transaction_type="withdrawal", status="failed")

    assert WalletService(db).get_balance(uid) == 750


def test_balance_endpoint(client, auth, customer, db):
    add_transaction(db, customer.user_id, 1234.5)
    auth.login(customer)

    response = client.get("/wallet/balance")
    assert response.status_code == 200
    assert response.json() == {"balance": 1234.5, "currency": "INR"}


def test_wallet_requires_authentication(client):
    assert client.get("/wallet/balance").status_code == 401


def test_process_payment_moves_funds_and_notifies(client, auth, db, customer, designer):
    add_transaction(db, customer.user_id, 2000)
    auth.login(customer)

    response = client.post(
        "/wallet/process-payment",
        json={"amount": 750, "designerId": designer.user_id, "description": "Logo review"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["newBalance"] == 1250

    service = WalletService(db)
    assert service.get_balance(designer.user_id) == 750

    notification = db.query(Notification).filter(Notification.user_id == designer.user_id).one()
    assert notification.type == "payment_received"


def test_process_payment_with_insufficient_funds_reports_shortfall(client, auth, db, customer, designer):
    add_transaction(db, customer.user_id, 100)
    auth.login(customer)

    response = client.post("/wallet/process-payment", json={"amount": 250, "designerId": designer.user_id})
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["error"] == "Insufficient balance"
    assert detail["currentBalance"] == 100
    assert detail["requiredAmount"] == 250
    assert detail["shortfall"] == 150


def test_non_positive_amount_is_rejected(client, auth, customer, designer):
    auth.login(customer)
    response = client.post("/wallet/process-payment", json={"amount": 0, "designerId": designer.user_id})
    assert response.status_code == 422


def add_ended_session(db, customer, designer, session_id, minutes=30, status="ended"):
    started = datetime(2030, 1, 7, 4, 0)
    session = ActiveSession(
        session_id=session_id,
        customer_id=customer.user_id,
        designer_id=designer.id,
        status=status,
        started_at=started,
        ended_at=started + timedelta(minutes=minutes),
    )
    db.add(session)
    db.commit()
    return session


def test_session_payment_is_charged_once(db, customer, designer):
    add_transaction(db, customer.user_id, 5000)
    add_ended_session(db, customer, designer, "SESSION_1_abc", minutes=90)
    service = WalletService(db)

    result = service.process_session_payment(
        customer.user_id, "SESSION_1_abc", 1500, customer.user_id, designer.user_id, "live", 90
    )
    assert result["success"] is True
    assert service.get_balance(customer.user_id) == 3500
    assert service.get_balance(designer.user_id) == 1500

    session = db.query(ActiveSession).filter(ActiveSession.session_id == "SESSION_1_abc").one()
    assert session.payment_processed is True

    debit = db.query(WalletTransaction).filter(WalletTransaction.id == result["customerTransaction"]["id"]).one()
    assert debit.meta["transaction_id"].startswith("SESSION_PAY_")
    assert debit.meta["session_id"] == "SESSION_1_abc"


def test_duplicate_session_payment_is_rejected(client, auth, db, customer, designer):
    add_transaction(db, customer.user_id, 5000)
    add_ended_session(db, customer, designer, "SESSION_2_abc")
    auth.login(customer)
    payload = {
        "sessionId": "SESSION_2_abc",
        "amount": 500,
        "customerId": customer.user_id,
        "designerId": designer.user_id,
    }

    assert client.post("/wallet/process-session-payment", json=payload).status_code == 200

    response = client.post("/wallet/process-session-payment", json=payload)
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "Session payment already processed"


def test_session_payment_requires_participant(client, auth, db, customer, designer):
    add_ended_session(db, customer, designer, "SESSION_3_abc")
    auth.login(make_profile(db, "outsider-user"))
    response = client.post(
        "/wallet/process-session-payment",
        json={
            "sessionId": "SESSION_3_abc",
            "amount": 500,
            "customerId": customer.user_id,
            "designerId": designer.user_id,
        },
    )
    assert response.status_code == 403


def test_designer_cannot_bill_a_customer_outside_the_session(client, auth, db, customer, designer):
    victim = make_profile(db, "victim-user")
    add_transaction(db, victim.user_id, 5000)
    add_ended_session(db, customer, designer, "SESSION_4_abc")
    auth.login(designer.profile)

    unknown = client.post(
        "/wallet/process-session-payment",
        json={
            "sessionId": "SESSION_made_up",
            "amount": 4999,
            "customerId": victim.user_id,
            "designerId": designer.user_id,
        },
    )
    assert unknown.status_code == 404

    mismatched = client.post(
        "/wallet/process-session-payment",
        json={
            "sessionId": "SESSION_4_abc",
            "amount": 500,
            "customerId": victim.user_id,
            "designerId": designer.user_id,
        },
    )
    assert mismatched.status_code == 400

    service = WalletService(db)
    assert service.get_balance(victim.user_id) == 5000
    assert service.get_balance(designer.user_id) == 0


def test_session_payment_is_capped_at_the_session_charge(client, auth, db, customer, designer):
    add_transaction(db, customer.user_id, 5000)
    add_ended_session(db, customer, designer, "SESSION_5_abc", minutes=30)
    auth.login(designer.profile)

    response = client.post(
        "/wallet/process-session-payment",
        json={
            "sessionId": "SESSION_5_abc",
            "amount": 4999,
            "customerId": customer.user_id,
            "designerId": designer.user_id,
        },
    )
    assert response.status_code == 400
    assert response.json()["detail"]["maximumAmount"] == 500
    assert WalletService(db).get_balance(customer.user_id) == 5000


def test_session_payment_needs_an_ended_session(client, auth, db, customer, designer):
    add_transaction(db, customer.user_id, 5000)
    add_ended_session(db, customer, designer, "SESSION_6_abc", status="active")
    auth.login(customer)

    response = client.post(
        "/wallet/process-session-payment",
        json={
            "sessionId": "SESSION_6_abc",
            "amount": 500,
            "customerId": customer.user_id,
            "designerId": designer.user_id,
        },
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Session has not ended yet"


def test_failed_credit_insert_removes_the_debit(db, customer, designer, monkeypatch):
    add_transaction(db, customer.user_id, 1000)
    original = WalletRepository.insert_transaction
    calls = []

    def flaky_insert(session, **fields):
        calls.append(fields["transaction_type"])
        if len(calls) == 2:
            raise OperationalError("INSERT", {}, Exception("connection reset"))
        return original(session, **fields)

    monkeypatch.setattr(WalletRepository, "insert_transaction", staticmethod(flaky_insert))
    service = WalletService(db)

    with pytest.raises(HTTPException) as exc_info:
        service.process_payment(customer, 400, designer.user_id)
    assert exc_info.value.status_code == 500
    assert exc_info.value.detail == "Failed to process designer payment"

    assert calls == ["payment", "deposit"]
    assert db.query(WalletTransaction).filter(WalletTransaction.transaction_type == "payment").count() == 0
    assert service.get_balance(customer.user_id) == 1000


def test_withdrawal_limits_prefer_platform_settings(client, auth, db, customer):
    db.add(PlatformSetting(setting_key="minimum_withdrawal_amount", setting_value={"value": 500}))
    db.commit()
    auth.login(customer)

    body = client.get("/wallet/withdrawal-limits").json()
    assert body["minimum"] == 500
    assert body["maximum"] == 50000


def test_withdrawal_below_minimum_is_rejected(client, auth, db, designer):
    add_transaction(db, designer.user_id, 5000)
    account = add_bank_account(db, designer.user_id)
    auth.login(designer.profile)

    response = client.post("/wallet/process-withdrawal", json={"amount": 50, "bankAccountId": account.id})
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Minimum withdrawal amount")


def test_withdrawal_requires_verified_account(client, auth, db, designer):
    add_transaction(db, designer.user_id, 5000)
    account = add_bank_account(db, designer.user_id, verified=False)
    auth.login(designer.profile)

    response = client.post("/wallet/process-withdrawal", json={"amount": 1000, "bankAccountId": account.id})
    assert response.status_code == 400
    assert response.json()["detail"] == "Bank account is not verified"


def test_withdrawal_creates_payout_and_reserves_funds(client, auth, db, designer, monkeypatch):
    add_transaction(db, designer.user_id, 5000)
    account = add_bank_account(db, designer.user_id)
    auth.login(designer.profile)
    payouts = []

    async def create_contact(**kwargs):
        return {"id": "cont_123"}

    async def create_fund_account(**kwargs):
        return {"id": "fa_123"}

    async def create_payout(**kwargs):
        payouts.append(kwargs)
        return {"id": "pout_123", "status": "processing"}

    monkeypatch.setattr(razorpay_service, "create_contact", create_contact)
    monkeypatch.setattr(razorpay_service, "create_fund_account", create_fund_account)
    monkeypatch.setattr(razorpay_service, "create_payout", create_payout)

    response = client.post("/wallet/process-withdrawal", json={"amount": 2000, "bankAccountId": account.id})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "pending"
    assert body["payout"] == {"id": "pout_123", "status": "processing"}
    assert body["bankAccount"]["account_number"] == "6789"
    assert body["newBalance"] == 3000

    assert payouts[0]["fund_account_id"] == "fa_123"
    assert payouts[0]["reference_id"] == body["withdrawalId"]

    # Pending withdrawals keep the funds reserved
    assert WalletService(db).get_balance(designer.user_id) == 3000

    db.refresh(account)
    assert account.meta["razorpay_fund_account_id"] == "fa_123"


def test_withdrawal_payout_failure_marks_row_failed(client, auth, db, designer, monkeypatch):
    add_transaction(db, designer.user_id, 5000)
    account = add_bank_account(db, designer.user_id, meta={"razorpay_fund_account_id": "fa_cached"})
    auth.login(designer.profile)

    async def create_payout(**kwargs):
        raise PaymentGatewayError("Razorpay request failed", status_code=400)

    monkeypatch.setattr(razorpay_service, "create_payout", create_payout)

    response = client.post("/wallet/process-withdrawal", json={"amount": 2000, "bankAccountId": account.id})
    assert response.status_code == 502

    txn = db.query(WalletTransaction).filter(WalletTransaction.transaction_type == "withdrawal").one()
    assert txn.status == "failed"
    assert WalletService(db).get_balance(designer.user_id) == 5000


def test_withdrawal_with_malformed_contact_response_releases_funds(client, auth, db, designer, monkeypatch):
    add_transaction(db, designer.user_id, 5000)
    account = add_bank_account(db, designer.user_id)
    auth.login(designer.profile)

    async def create_contact(**kwargs):
        return {"entity": "contact"}

    monkeypatch.setattr(razorpay_service, "create_contact", create_contact)

    response = client.post("/wallet/process-withdrawal", json={"amount": 2000, "bankAccountId": account.id})
    assert response.status_code == 500
    assert response.json()["detail"]["error"] == "Failed to create payout"

    db.expire_all()
    txn = db.query(WalletTransaction).filter(WalletTransaction.transaction_type == "withdrawal").one()
    assert txn.status == "failed"
    assert WalletService(db).get_balance(designer.user_id) == 5000


def test_withdrawal_metadata_write_failure_releases_funds(client, auth, db, designer, monkeypatch):
    add_transaction(db, designer.user_id, 5000)
    account = add_bank_account(db, designer.user_id, meta={"razorpay_contact_id": "cont_1"})
    auth.login(designer.profile)

    async def create_fund_account(**kwargs):
        return {"id": "fa_new"}

    def broken_set_metadata(db, account, **updates):
        raise OperationalError("UPDATE", {}, Exception("database is locked"))

    monkeypatch.setattr(razorpay_service, "create_fund_account", create_fund_account)
    monkeypatch.setattr(BankAccountRepository, "set_metadata", staticmethod(broken_set_metadata))

    response = client.post("/wallet/process-withdrawal", json={"amount": 2000, "bankAccountId": account.id})
    assert response.status_code == 500

    db.expire_all()
    txn = db.query(WalletTransaction).filter(WalletTransaction.transaction_type == "withdrawal").one()
    assert txn.status == "failed"
    assert WalletService(db).get_balance(designer.user_id) == 5000
