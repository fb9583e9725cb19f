import os

# Configuration is read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_JWT_SECRET"] = "test-jwt-secret"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "whsec_test"
os.environ["RAZORPAYX_ACCOUNT_NUMBER"] = "2323230000000000"
os.environ["PHONEPE_MERCHANT_ID"] = "TESTMERCHANT"
os.environ["PHONEPE_SALT_KEY"] = "test-salt"
os.environ["PHONEPE_SALT_INDEX"] = "1"
os.environ["UNIVERSAL_PAYMENTS_SANDBOX"] = "true"
os.environ["PLATFORM_TIMEZONE"] = "Asia/Kolkata"
os.environ.pop("REDIS_URL", None)

import pytest  # noqa: E402
from fastapi import Depends  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app.auth import get_current_user  # noqa: E402
from app.database import Base, SessionLocal, engine, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Profile  # noqa: E402
from app.rate_limiter import (  # noqa: E402
    rate_limit_otp_send,
    rate_limit_otp_verify,
    rate_limit_recharge,
    rate_limit_withdrawal,
)
from factories import make_designer, make_profile  # noqa: E402


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


class AuthState:
    """Which profile the overridden auth dependency resolves to"""

    def __init__(self):
        self.user_id = None

    def login(self, profile: Profile) -> None:
        self.user_id = profile.user_id


@pytest.fixture
def auth():
    return AuthState()


@pytest.fixture
def client(db, auth):
    def current_user_override(session: Session = Depends(get_db)) -> Profile:
        from fastapi import HTTPException

        if auth.user_id is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return session.query(Profile).filter(Profile.user_id == auth.user_id).first()

    async def no_rate_limit():
        return None

    app.dependency_overrides[get_current_user] = current_user_override
    for limiter in (rate_limit_otp_send, rate_limit_otp_verify, rate_limit_withdrawal, rate_limit_recharge):
        app.dependency_overrides[limiter] = no_rate_limit

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def customer(db):
    return make_profile(db, "customer-user", phone="+919876543210")


@pytest.fixture
def designer(db):
    return make_designer(db)
