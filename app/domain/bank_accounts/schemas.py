"""Bank account schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import (
    mask_account_number,
    validate_account_number,
    validate_email,
    validate_ifsc,
    validate_indian_phone,
)


class BankAccountCreate(BaseModel):
    bankName: str
    accountHolderName: str
    accountNumber: str
    ifscCode: str
    accountType: Literal["savings", "current"] = "savings"
    phone: Optional[str] = None
    email: Optional[str] = None

    @field_validator("accountNumber")
    @classmethod
    def validate_number(cls, v):
        return validate_account_number(v)

    @field_validator("ifscCode")
    @classmethod
    def validate_ifsc_code(cls, v):
        return validate_ifsc(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_indian_phone(v)

    @field_validator("email")
    @classmethod
    def validate_email_address(cls, v):
        return validate_email(v)

    @field_validator("bankName", "accountHolderName")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Field is required")
        return v.strip()


class BankAccountUpdate(BaseModel):
    """Changing the account number or IFSC resets verification"""

    bankName: Optional[str] = None
    accountHolderName: Optional[str] = None
    accountNumber: Optional[str] = None
    ifscCode: Optional[str] = None
    accountType: Optional[Literal["savings", "current"]] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    @field_validator("accountNumber")
    @classmethod
    def validate_number(cls, v):
        return validate_account_number(v) if v is not None else v

    @field_validator("ifscCode")
    @classmethod
    def validate_ifsc_code(cls, v):
        return validate_ifsc(v) if v is not None else v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_indian_phone(v)

    @field_validator("email")
    @classmethod
    def validate_email_address(cls, v):
        return validate_email(v)


class BankAccountResponse(BaseModel):
    id: str
    bankName: str
    accountHolderName: str
    accountNumber: str  # masked
    ifscCode: str
    accountType: Optional[str] = None
    isVerified: bool
    isPrimary: bool
    verifiedAt: Optional[datetime] = None
    verificationMethod: Optional[str] = None

    @classmethod
    def from_model(cls, account) -> "BankAccountResponse":
        return cls(
            id=account.id,
            bankName=account.bank_name,
            accountHolderName=account.account_holder_name,
            accountNumber=mask_account_number(account.account_number),
            ifscCode=account.ifsc_code,
            accountType=account.account_type,
            isVerified=account.is_verified,
            isPrimary=account.is_primary,
            verifiedAt=account.verified_at,
            verificationMethod=account.verification_method,
        )


class SendOtpRequest(BaseModel):
    method: Literal["sms", "email"]


class VerifyOtpRequest(BaseModel):
    otp: str

    @field_validator("otp")
    @classmethod
    def validate_otp(cls, v):
        v = (v or "").strip()
        if not v.isdigit() or len(v) != 6:
            raise ValueError("OTP must be 6 digits")
        return v
