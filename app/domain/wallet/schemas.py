"""Wallet domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


def _positive(v):
    if v is None or v <= 0:
        raise ValueError("Invalid amount")
    return round(v, 2)


class ProcessPaymentRequest(BaseModel):
    """Customer pays a designer from the wallet"""

    amount: float
    designerId: str  # designer's user id
    bookingId: Optional[str] = None
    description: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        return _positive(v)


class ProcessSessionPaymentRequest(BaseModel):
    sessionId: str
    amount: float
    customerId: str
    designerId: str  # designer's user id
    sessionType: Optional[str] = None
    duration: Optional[float] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        return _positive(v)


class WithdrawalRequest(BaseModel):
    amount: float
    bankAccountId: str
    description: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        return _positive(v)


class TransactionResponse(BaseModel):
    id: str
    amount: float
    transactionType: str
    status: str
    description: str
    bookingId: Optional[str] = None
    metadata: Optional[dict] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, txn) -> "TransactionResponse":
        return cls(
            id=txn.id,
            amount=txn.amount,
            transactionType=txn.transaction_type,
            status=txn.status,
            description=txn.description or "",
            bookingId=txn.booking_id,
            metadata=txn.meta or {},
            createdAt=txn.created_at,
        )


class BalanceResponse(BaseModel):
    balance: float
    currency: str
