"""
Payment Gateway Factory

Provides a single entry point for obtaining a payment gateway instance.
The factory pattern allows the rest of the application to remain agnostic
about which implementation is being used.

Usage:
    from app.services.payment import get_payment_gateway

    # Returns MockPaymentGateway or MidtransPaymentGateway based on ENV_MODE
    gateway = get_payment_gateway()

    result = await gateway.create_payment(request)

Environment Switching:
    - ENV_MODE=development → MockPaymentGateway (no API calls)
    - ENV_MODE=staging → MidtransPaymentGateway (sandbox keys)
    - ENV_MODE=production → MidtransPaymentGateway (live keys)

Author: Khalil Bannouri
Version: 4.0.0
"""

import logging
from functools import lru_cache

from app.core.config import get_settings
from app.services.payment.base import (
    BasePaymentGateway,
    PaymentLineItem,
    PaymentLinkResult,
    PaymentRequest,
)
from app.services.payment.mock import MockPaymentGateway
from app.services.payment.midtrans import MidtransPaymentGateway

logger = logging.getLogger(__name__)


@lru_cache()
def get_payment_gateway() -> BasePaymentGateway:
    """
    Get the configured payment gateway instance.

    The instance is cached (singleton pattern) so every request shares
    one HTTP client.

    Returns:
        BasePaymentGateway: Configured gateway instance

    Raises:
        ValueError: If production mode but the Midtrans server key is not configured
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Payment Gateway: Using MockPaymentGateway (development mode)")
        return MockPaymentGateway(failure_rate=settings.mock_failure_rate)
    else:
        logger.info(
            f"Payment Gateway: Using MidtransPaymentGateway "
            f"({settings.env_mode.value} mode)"
        )
        return MidtransPaymentGateway()


def reset_payment_gateway() -> None:
    """
    Clear the cached payment gateway instance.

    The next call to get_payment_gateway() will create a new instance.
    """
    get_payment_gateway.cache_clear()
    logger.debug("Payment gateway cache cleared")


__all__ = [
    "get_payment_gateway",
    "reset_payment_gateway",
    "BasePaymentGateway",
    "PaymentLineItem",
    "PaymentLinkResult",
    "PaymentRequest",
    "MockPaymentGateway",
    "MidtransPaymentGateway",
]
