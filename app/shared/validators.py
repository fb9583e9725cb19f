"""Shared validation utilities"""

import re
from datetime import date
from typing import Optional

IFSC_PATTERN = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
ACCOUNT_NUMBER_PATTERN = re.compile(r"^\d{9,18}$")
HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_hhmm(value: Optional[str]) -> Optional[str]:
    """
    Validate a wall-clock time.

    Accepts "HH:MM" and "HH:MM:SS" (seconds are dropped).

    Raises:
        ValueError: If the time is malformed
    """
    if value is None:
        return value
    value = value.strip()
    if len(value) == 8 and value[5] == ":":
        value = value[:5]
    if not HHMM_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM format")
    return value


def validate_date_string(value: str) -> str:
    """YYYY-MM-DD"""
    if not value or not DATE_PATTERN.match(value.strip()):
        raise ValueError("Date must be in YYYY-MM-DD format")
    try:
        date.fromisoformat(value.strip())
    except ValueError:
        raise ValueError(f"{value.strip()} is not a calendar date") from None
    return value.strip()


def validate_ifsc(ifsc: str) -> str:
    """
    Validate and normalize an Indian IFSC code.

    Returns:
        Uppercase IFSC (e.g. HDFC0001234)

    Raises:
        ValueError: If the code does not match the IFSC format
    """
    ifsc = (ifsc or "").strip().upper()
    if not IFSC_PATTERN.match(ifsc):
        raise ValueError("Invalid IFSC code format")
    return ifsc


def validate_account_number(account_number: str) -> str:
    """Digits only, 9-18 long"""
    digits = re.sub(r"\s", "", account_number or "")
    if not ACCOUNT_NUMBER_PATTERN.match(digits):
        raise ValueError("Account number must be 9-18 digits")
    return digits


def validate_indian_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize an Indian mobile number to E.164 format.

    Returns:
        Normalized phone number (+91XXXXXXXXXX)

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)
    if digits.startswith("91") and len(digits) == 12:
        digits = digits[2:]
    elif digits.startswith("0") and len(digits) == 11:
        digits = digits[1:]

    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits")
    return f"+91{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()
    if not re.match(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$", email):
        raise ValueError("Invalid email format")
    return email


def mask_account_number(account_number: str) -> str:
    """Keep the last four digits only"""
    if not account_number:
        return ""
    return f"****{account_number[-4:]}"
