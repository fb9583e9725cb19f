"""Wallet router - Balance, ledger history, payments and withdrawals"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import PLATFORM_CURRENCY
from ...database import get_db
from ...models import Profile
from ...rate_limiter import rate_limit_withdrawal
from .schemas import (
    BalanceResponse,
    ProcessPaymentRequest,
    ProcessSessionPaymentRequest,
    TransactionResponse,
    WithdrawalRequest,
)
from .service import WalletService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wallet", tags=["Wallet"])


def get_wallet_service(db: Session = Depends(get_db)) -> WalletService:
    """Dependency injection for WalletService"""
    return WalletService(db)


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    current_user: Profile = Depends(get_current_user),
    service: WalletService = Depends(get_wallet_service),
):
    return BalanceResponse(balance=service.get_balance(current_user.user_id), currency=PLATFORM_CURRENCY)


@router.get("/transactions", response_model=list[TransactionResponse])
async def list_transactions(
    limit: int = Query(50, ge=1, le=200),
    current_user: Profile = Depends(get_current_user),
    service: WalletService = Depends(get_wallet_service),
):
    """Ledger history, newest first"""
    return [TransactionResponse.from_model(t) for t in service.list_transactions(current_user.user_id, limit)]


@router.post("/process-payment")
async def process_payment(
    data: ProcessPaymentRequest,
    current_user: Profile = Depends(get_current_user),
    service: WalletService = Depends(get_wallet_service),
):
    """Pay a designer from the caller's wallet"""
    return service.process_payment(
        current_user, data.amount, data.designerId, data.bookingId, data.description
    )


@router.post("/process-session-payment")
async def process_session_payment(
    data: ProcessSessionPaymentRequest,
    current_user: Profile = Depends(get_current_user),
    service: WalletService = Depends(get_wallet_service),
):
    """Charge a completed session; callable by either participant"""
    return service.process_session_payment(
        caller_user_id=current_user.user_id,
        session_id=data.sessionId,
        amount=data.amount,
        customer_id=data.customerId,
        designer_user_id=data.designerId,
        session_type=data.sessionType,
        duration=data.duration,
    )


@router.get("/withdrawal-limits")
async def withdrawal_limits(
    current_user: Profile = Depends(get_current_user),
    service: WalletService = Depends(get_wallet_service),
):
    min_amount, max_amount = service.get_withdrawal_limits()
    return {"minimum": min_amount, "maximum": max_amount, "currency": PLATFORM_CURRENCY}


@router.post("/process-withdrawal")
async def process_withdrawal(
    data: WithdrawalRequest,
    current_user: Profile = Depends(get_current_user),
    service: WalletService = Depends(get_wallet_service),
    _: None = Depends(rate_limit_withdrawal),
):
    """Withdraw to a verified bank account through a RazorpayX payout"""
    return await service.process_withdrawal(
        current_user, data.amount, data.bankAccountId, data.description
    )
