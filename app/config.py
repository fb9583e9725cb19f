import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./meetmydesigners.db")

# Auth - JWTs issued by the hosted auth provider (HS256, shared secret)
AUTH_JWT_SECRET = os.getenv("AUTH_JWT_SECRET")
if not AUTH_JWT_SECRET:
    import warnings

    warnings.warn(
        "AUTH_JWT_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    AUTH_JWT_SECRET = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
AUTH_JWT_AUDIENCE = os.getenv("AUTH_JWT_AUDIENCE", "authenticated")

# Frontend base URL for redirects
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:8080")

# Day boundaries, weekly slots and special days are all interpreted in this zone
PLATFORM_TIMEZONE = os.getenv("PLATFORM_TIMEZONE", "Asia/Kolkata")
PLATFORM_CURRENCY = os.getenv("PLATFORM_CURRENCY", "INR")
PLATFORM_NAME = os.getenv("PLATFORM_NAME", "meetmydesigners")

# Razorpay (wallet recharge) and RazorpayX (payouts)
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")
RAZORPAY_WEBHOOK_SECRET = os.getenv("RAZORPAY_WEBHOOK_SECRET")
RAZORPAY_BASE_URL = os.getenv("RAZORPAY_BASE_URL", "https://api.razorpay.com/v1")
# Source account for payouts
RAZORPAYX_ACCOUNT_NUMBER = os.getenv("RAZORPAYX_ACCOUNT_NUMBER")

# PhonePe - defaults point at the sandbox
PHONEPE_BASE_URL = os.getenv("PHONEPE_BASE_URL", "https://api-preprod.phonepe.com/apis/pg-sandbox")
PHONEPE_MERCHANT_ID = os.getenv("PHONEPE_MERCHANT_ID")
PHONEPE_SALT_KEY = os.getenv("PHONEPE_SALT_KEY")
PHONEPE_SALT_INDEX = os.getenv("PHONEPE_SALT_INDEX", "1")

# Multi-method recharge without a real gateway; only for sandbox/demo deployments
UNIVERSAL_PAYMENTS_SANDBOX = os.getenv("UNIVERSAL_PAYMENTS_SANDBOX", "false").lower() == "true"

# Withdrawal limits used when platform_settings has no override
DEFAULT_MIN_WITHDRAWAL = float(os.getenv("DEFAULT_MIN_WITHDRAWAL", "100"))
DEFAULT_MAX_WITHDRAWAL = float(os.getenv("DEFAULT_MAX_WITHDRAWAL", "50000"))

# Bank account OTP verification
OTP_TTL_MINUTES = int(os.getenv("OTP_TTL_MINUTES", "10"))
OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "3"))

# Resend Email Configuration (OTP delivery)
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "meetmydesigners <noreply@meetmydesigners.com>")

# Twilio (SMS OTP delivery)
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_FROM_NUMBER = os.getenv("TWILIO_FROM_NUMBER")
