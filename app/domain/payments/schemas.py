"""Payment schemas - Wallet recharge requests"""

from typing import Optional

from pydantic import BaseModel, field_validator


def _positive(v):
    if v is None or v <= 0:
        raise ValueError("Invalid amount")
    return round(v, 2)


class CreateOrderRequest(BaseModel):
    amount: float

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        return _positive(v)


class VerifyRazorpayPaymentRequest(BaseModel):
    # Field names match what Razorpay Checkout hands back to the browser
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class PhonePeInitiateRequest(BaseModel):
    amount: float
    redirectUrl: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        return _positive(v)


class PhonePeCallbackPayload(BaseModel):
    response: str


class UniversalPaymentRequest(BaseModel):
    amount: float
    paymentMethod: str
    userDetails: Optional[dict] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        return _positive(v)
