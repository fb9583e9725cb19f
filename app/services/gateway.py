"""Shared plumbing for outbound payment gateway calls"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

GATEWAY_TIMEOUT = 20.0


class PaymentGatewayError(Exception):
    """A payment gateway rejected a request or could not be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None, payload=None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


def raise_for_gateway_status(provider: str, response: httpx.Response) -> dict:
    """Return the JSON body of a 2xx response, raise PaymentGatewayError otherwise"""
    try:
        body = response.json()
    except ValueError:
        body = {"raw": response.text[:500]}

    if response.status_code < 200 or response.status_code >= 300:
        message = body.get("error", {}).get("description") if isinstance(body.get("error"), dict) else None
        message = message or body.get("message") or f"HTTP {response.status_code}"
        logger.error(f"❌ {provider} API error ({response.status_code}): {message}")
        raise PaymentGatewayError(f"{provider}: {message}", response.status_code, body)
    return body
