"""Payment router - Wallet recharge and gateway callbacks"""

import json
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import FRONTEND_URL, RAZORPAY_WEBHOOK_SECRET
from ...database import get_db
from ...models import Profile
from ...rate_limiter import rate_limit_recharge
from ...webhook_security import verify_razorpay_webhook
from .schemas import (
    CreateOrderRequest,
    PhonePeCallbackPayload,
    PhonePeInitiateRequest,
    UniversalPaymentRequest,
    VerifyRazorpayPaymentRequest,
)
from .service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db)


# ============================================================================
# RAZORPAY
# ============================================================================


@router.post("/razorpay/create-order")
async def create_razorpay_order(
    data: CreateOrderRequest,
    current_user: Profile = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
    _: None = Depends(rate_limit_recharge),
):
    """Create a checkout order for a wallet recharge"""
    return await service.create_razorpay_order(current_user, data.amount)


@router.post("/razorpay/verify")
async def verify_razorpay_payment(
    data: VerifyRazorpayPaymentRequest,
    current_user: Profile = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return await service.verify_razorpay_payment(
        current_user, data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature
    )


@router.post("/razorpay/webhook")
async def razorpay_webhook(request: Request, service: PaymentService = Depends(get_payment_service)):
    """
    Razorpay webhook events.

    Events handled:
    - payment.captured - complete the pending recharge
    - payout.processed - complete the pending withdrawal
    - payment.failed / payout.failed / payout.reversed - mark the row failed
    """
    _, raw_body = await verify_razorpay_webhook(request, RAZORPAY_WEBHOOK_SECRET)

    try:
        event = json.loads(raw_body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.error("❌ Invalid JSON in Razorpay webhook")
        raise HTTPException(status_code=400, detail="Invalid JSON") from None

    return service.handle_razorpay_event(event)


# ============================================================================
# PHONEPE
# ============================================================================


@router.post("/phonepe/initiate")
async def initiate_phonepe_payment(
    data: PhonePeInitiateRequest,
    request: Request,
    current_user: Profile = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
    _: None = Depends(rate_limit_recharge),
):
    redirect_url = data.redirectUrl or f"{FRONTEND_URL}/customer-dashboard/wallet?payment_success=true"
    callback_url = str(request.url_for("phonepe_callback"))
    return await service.initiate_phonepe_payment(current_user, data.amount, redirect_url, callback_url)


@router.get("/phonepe/status/{transaction_id}")
async def phonepe_status(
    transaction_id: str,
    current_user: Profile = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Check the gateway status and settle the pending recharge"""
    return await service.check_phonepe_status(current_user, transaction_id)


@router.post("/phonepe/callback", name="phonepe_callback")
async def phonepe_callback(
    data: PhonePeCallbackPayload,
    x_verify: str = Header(None, alias="X-VERIFY"),
    service: PaymentService = Depends(get_payment_service),
):
    """Server-to-server callback; authenticated by its X-VERIFY checksum"""
    return service.handle_phonepe_callback(data.response, x_verify)


# ============================================================================
# SANDBOX
# ============================================================================


@router.post("/universal")
async def universal_payment(
    data: UniversalPaymentRequest,
    current_user: Profile = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return service.universal_payment(current_user, data.amount, data.paymentMethod, data.userDetails)
