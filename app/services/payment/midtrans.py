"""
Midtrans Payment Gateway Implementation

Production implementation talking to the Midtrans Snap API over httpx.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - MIDTRANS_SERVER_KEY must be set in environment
    - MIDTRANS_IS_PRODUCTION selects the live Snap endpoint

Security Notes:
    - The server key is only ever sent as HTTP basic auth
    - Notifications are authenticated by their signature_key,
      SHA-512(order_id + status_code + gross_amount + server_key)

Author: Khalil Bannouri
Version: 4.0.0
"""

import hashlib
import hmac
import logging
from datetime import datetime
from typing import Any, Optional

import httpx

from app.core.config import get_settings
from app.services.payment.base import (
    BasePaymentGateway,
    PaymentLinkResult,
    PaymentRequest,
)

logger = logging.getLogger(__name__)


def notification_signature(
    order_id: str,
    status_code: str,
    gross_amount: str,
    server_key: str,
) -> str:
    """Signature Midtrans attaches to every HTTP notification."""
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


class MidtransPaymentGateway(BasePaymentGateway):
    """
    Production Midtrans Snap gateway.

    Configuration:
        Requires MIDTRANS_SERVER_KEY environment variable.

    Example:
        >>> gateway = MidtransPaymentGateway()
        >>> result = await gateway.create_payment(request)
        >>> print(result.redirect_url)
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize the gateway with keys from settings.

        Args:
            client: Optional preconfigured httpx client (tests inject a
                mock transport here)

        Raises:
            ValueError: If MIDTRANS_SERVER_KEY is not configured
        """
        settings = get_settings()

        if not settings.midtrans_server_key:
            raise ValueError(
                "MIDTRANS_SERVER_KEY is required for production mode. "
                "Set it in your .env file or environment variables."
            )

        self._server_key = settings.midtrans_server_key
        self._snap_url = settings.midtrans_snap_url
        self._verify_signature = settings.midtrans_verify_signature
        self._finish_url = settings.app_base_url
        self._client = client or httpx.AsyncClient(
            timeout=settings.midtrans_timeout_seconds,
        )

        logger.info(
            f"MidtransPaymentGateway initialized "
            f"(production={settings.midtrans_is_production}, "
            f"verify_signature={self._verify_signature})"
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "midtrans"

    def _build_payload(self, request: PaymentRequest) -> dict[str, Any]:
        """Snap transaction body for a checkout."""
        first_name, _, last_name = request.customer_name.partition(" ")
        return {
            "transaction_details": {
                "order_id": request.order_reference,
                "gross_amount": request.gross_amount,
            },
            "customer_details": {
                "first_name": first_name,
                "last_name": last_name,
                "email": request.customer_email,
            },
            "item_details": [
                {
                    "id": item.id,
                    "name": item.name[:50],
                    "price": item.price,
                    "quantity": item.quantity,
                }
                for item in request.items
            ],
            "callbacks": {"finish": self._finish_url},
        }

    async def create_payment(self, request: PaymentRequest) -> PaymentLinkResult:
        """
        Create a Snap transaction.

        Returns the Snap token and hosted redirect URL; every failure is
        reported through PaymentLinkResult rather than raised.
        """
        start_time = datetime.now()

        logger.info(f"Midtrans: Creating Snap transaction for {request.order_reference}")

        try:
            response = await self._client.post(
                self._snap_url,
                json=self._build_payload(request),
                auth=(self._server_key, ""),
                headers={"Accept": "application/json"},
            )
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000

            try:
                body = response.json() if response.content else {}
            except ValueError:
                body = None
            if not isinstance(body, dict):
                body = None

            if response.status_code not in (200, 201):
                messages = (body or {}).get("error_messages") or [
                    response.text[:200] or f"HTTP {response.status_code}"
                ]
                logger.error(
                    f"Midtrans: Snap rejected {request.order_reference} - "
                    f"{response.status_code}: {messages}"
                )
                return PaymentLinkResult(
                    success=False,
                    error_message="; ".join(str(m) for m in messages),
                    response_time_ms=elapsed_ms,
                )

            if not body or not body.get("redirect_url"):
                logger.error(
                    f"Midtrans: Unreadable Snap reply for {request.order_reference}: "
                    f"{response.text[:200]}"
                )
                return PaymentLinkResult(
                    success=False,
                    error_message="Payment service returned an invalid response",
                    response_time_ms=elapsed_ms,
                )

            logger.info(f"Midtrans: Snap transaction created for {request.order_reference}")

            return PaymentLinkResult(
                success=True,
                token=body.get("token"),
                redirect_url=body.get("redirect_url"),
                response_time_ms=elapsed_ms,
            )

        except httpx.TimeoutException as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Midtrans: Timeout - {e}")

            return PaymentLinkResult(
                success=False,
                error_message="Payment service timed out",
                response_time_ms=elapsed_ms,
            )

        except httpx.HTTPError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Midtrans: Connection error - {e}")

            return PaymentLinkResult(
                success=False,
                error_message="Payment service temporarily unavailable",
                response_time_ms=elapsed_ms,
            )

    async def verify_notification(self, notification: dict[str, Any]) -> bool:
        """
        Verify a Midtrans HTTP notification.

        SECURITY: Keep MIDTRANS_VERIFY_SIGNATURE on in production
        to prevent spoofed payment notifications.
        """
        if not self._verify_signature:
            logger.warning("Midtrans: Signature verification disabled, accepting notification")
            return True

        order_id = notification.get("order_id")
        status_code = notification.get("status_code")
        gross_amount = notification.get("gross_amount")
        signature_key = notification.get("signature_key")

        if not all([order_id, status_code, gross_amount, signature_key]):
            logger.warning(f"Midtrans: Notification for {order_id} missing signature fields")
            return False

        expected = notification_signature(
            str(order_id), str(status_code), str(gross_amount), self._server_key
        )
        if not hmac.compare_digest(expected, str(signature_key)):
            logger.warning(f"Midtrans: Notification signature invalid for {order_id}")
            return False

        logger.debug(f"Midtrans: Notification verified for {order_id}")
        return True

    async def health_check(self) -> bool:
        """The gateway is usable once a server key is configured."""
        return bool(self._server_key)

    async def close(self) -> None:
        await self._client.aclose()
