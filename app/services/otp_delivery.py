"""
OTP delivery for bank account verification

Email goes through Resend, SMS through the Twilio REST API.
Both raise OTPDeliveryError on failure.
"""

import logging

import httpx
import resend

from ..config import (
    EMAIL_FROM_ADDRESS,
    OTP_TTL_MINUTES,
    PLATFORM_NAME,
    RESEND_API_KEY,
    TWILIO_ACCOUNT_SID,
    TWILIO_AUTH_TOKEN,
    TWILIO_FROM_NUMBER,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class OTPDeliveryError(Exception):
    pass


def _otp_email_html(otp: str, account_hint: str) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 480px; margin: 0 auto;">
      <h2>Verify your bank account</h2>
      <p>Use this code to verify the bank account ending in <strong>{account_hint}</strong>:</p>
      <p style="font-size: 28px; letter-spacing: 6px; font-weight: bold;">{otp}</p>
      <p>The code expires in {OTP_TTL_MINUTES} minutes. If you did not request it, ignore this email.</p>
      <p style="color: #888;">{PLATFORM_NAME}</p>
    </div>
    """


async def send_otp_email(to: str, otp: str, account_hint: str) -> dict:
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise OTPDeliveryError("Email service not configured")

    try:
        response = resend.Emails.send(
            {
                "from": EMAIL_FROM_ADDRESS,
                "to": [to],
                "subject": f"Your {PLATFORM_NAME} verification code",
                "html": _otp_email_html(otp, account_hint),
            }
        )
    except Exception as e:
        logger.error(f"❌ OTP email send error to {to}: {e}")
        raise OTPDeliveryError(f"Failed to send email: {str(e)}") from e

    logger.info(f"✅ OTP email sent via Resend: {response}")
    return response


async def send_otp_sms(to_phone: str, otp: str) -> str:
    """Send the code by SMS; returns the Twilio message SID"""
    if not (TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_FROM_NUMBER):
        raise OTPDeliveryError("SMS service not configured")
    if not to_phone or not to_phone.startswith("+"):
        raise OTPDeliveryError("Phone number must be in E.164 format (e.g., +919876543210)")

    body = (
        f"{otp} is your {PLATFORM_NAME} bank verification code. "
        f"It expires in {OTP_TTL_MINUTES} minutes."
    )
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"https://api.twilio.com/2010-04-01/Accounts/{TWILIO_ACCOUNT_SID}/Messages.json",
                auth=(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN),
                data={"To": to_phone, "From": TWILIO_FROM_NUMBER, "Body": body},
                timeout=10.0,
            )
    except httpx.HTTPError as e:
        logger.error(f"Twilio API error: {str(e)}")
        raise OTPDeliveryError(str(e)) from e

    if response.status_code not in (200, 201):
        error_data = response.json()
        error_message = error_data.get("message", "Unknown error")
        logger.error(f"❌ Twilio API error [{error_data.get('code')}]: {error_message}")
        raise OTPDeliveryError(error_message)

    sid = response.json().get("sid")
    logger.info(f"✅ OTP SMS sent to ****{to_phone[-4:]} (SID: {sid})")
    return sid


async def deliver_otp(method: str, otp: str, *, email: str = None, phone: str = None, account_hint: str = ""):
    if method == "email":
        if not email:
            raise OTPDeliveryError("No email address on file")
        await send_otp_email(email, otp, account_hint)
    elif method == "sms":
        await send_otp_sms(phone, otp)
    else:
        raise OTPDeliveryError(f"Unsupported verification method: {method}")
