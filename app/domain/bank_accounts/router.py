"""Bank account router - Payout account management and verification"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from ...rate_limiter import rate_limit_otp_send, rate_limit_otp_verify
from .schemas import (
    BankAccountCreate,
    BankAccountResponse,
    BankAccountUpdate,
    SendOtpRequest,
    VerifyOtpRequest,
)
from .service import BankAccountService

router = APIRouter(prefix="/bank-accounts", tags=["Bank Accounts"])


def get_bank_account_service(db: Session = Depends(get_db)) -> BankAccountService:
    """Dependency injection for BankAccountService"""
    return BankAccountService(db)


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("", response_model=list[BankAccountResponse])
async def list_accounts(
    current_user: Profile = Depends(get_current_user),
    service: BankAccountService = Depends(get_bank_account_service),
):
    return [BankAccountResponse.from_model(a) for a in service.list_accounts(current_user)]


@router.post("", response_model=BankAccountResponse, status_code=201)
async def create_account(
    data: BankAccountCreate,
    current_user: Profile = Depends(get_current_user),
    service: BankAccountService = Depends(get_bank_account_service),
):
    return BankAccountResponse.from_model(service.create_account(current_user, data))


@router.get("/{account_id}", response_model=BankAccountResponse)
async def get_account(
    account_id: str,
    current_user: Profile = Depends(get_current_user),
    service: BankAccountService = Depends(get_bank_account_service),
):
    return BankAccountResponse.from_model(service.get_account(current_user, account_id))


@router.patch("/{account_id}", response_model=BankAccountResponse)
async def update_account(
    account_id: str,
    data: BankAccountUpdate,
    current_user: Profile = Depends(get_current_user),
    service: BankAccountService = Depends(get_bank_account_service),
):
    return BankAccountResponse.from_model(service.update_account(current_user, account_id, data))


@router.delete("/{account_id}")
async def delete_account(
    account_id: str,
    current_user: Profile = Depends(get_current_user),
    service: BankAccountService = Depends(get_bank_account_service),
):
    return service.delete_account(current_user, account_id)


@router.post("/{account_id}/primary", response_model=BankAccountResponse)
async def set_primary(
    account_id: str,
    current_user: Profile = Depends(get_current_user),
    service: BankAccountService = Depends(get_bank_account_service),
):
    return BankAccountResponse.from_model(service.set_primary(current_user, account_id))


# ============================================================================
# VERIFICATION
# ============================================================================


@router.post("/{account_id}/send-otp")
async def send_otp(
    account_id: str,
    data: SendOtpRequest,
    current_user: Profile = Depends(get_current_user),
    service: BankAccountService = Depends(get_bank_account_service),
    _: None = Depends(rate_limit_otp_send),
):
    """Send a one-time code by SMS or email"""
    return await service.send_otp(current_user, account_id, data.method)


@router.post("/{account_id}/verify-otp")
async def verify_otp(
    account_id: str,
    data: VerifyOtpRequest,
    current_user: Profile = Depends(get_current_user),
    service: BankAccountService = Depends(get_bank_account_service),
    _: None = Depends(rate_limit_otp_verify),
):
    return service.verify_otp(current_user, account_id, data.otp)


@router.post("/{account_id}/auto-verify")
async def auto_verify(
    account_id: str,
    current_user: Profile = Depends(get_current_user),
    service: BankAccountService = Depends(get_bank_account_service),
):
    return service.auto_verify(current_user, account_id)
