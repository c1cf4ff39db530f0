"""
Mock Payment Gateway Implementation

Simulates Midtrans Snap without making real API calls.
Used in development mode (ENV_MODE=development) to:
    - Test the complete checkout and notification flow locally
    - Run simulations without a sandbox account
    - Develop without internet connectivity

Behavior:
    - Simulates realistic response times (100-400ms)
    - Randomly fails a configurable share of requests
    - Generates Snap-like tokens and redirect URLs
    - Accepts every notification without signature checks

Author: Khalil Bannouri
Version: 4.0.0
"""

import asyncio
import random
import uuid
import logging
from typing import Any

from app.services.payment.base import (
    BasePaymentGateway,
    PaymentLinkResult,
    PaymentRequest,
)

logger = logging.getLogger(__name__)


class MockPaymentGateway(BasePaymentGateway):
    """
    Mock implementation of the payment gateway.

    Attributes:
        failure_rate: Probability of simulated gateway failure (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds

    Example:
        >>> gateway = MockPaymentGateway(failure_rate=0.0)
        >>> result = await gateway.create_payment(request)
        >>> print(result.redirect_url)
    """

    def __init__(
        self,
        failure_rate: float = 0.05,
        min_latency: float = 0.1,
        max_latency: float = 0.4,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency

        logger.info(
            f"MockPaymentGateway initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    async def _simulate_latency(self) -> float:
        """
        Simulate network latency.

        Returns:
            float: Actual latency in milliseconds
        """
        latency = random.uniform(self.min_latency, self.max_latency)
        await asyncio.sleep(latency)
        return latency * 1000

    def _should_fail(self) -> bool:
        """Determine if this request should simulate a failure."""
        return random.random() < self.failure_rate

    async def create_payment(self, request: PaymentRequest) -> PaymentLinkResult:
        """Simulate opening a Snap payment page."""
        logger.debug(
            f"Mock: Opening payment page for {request.order_reference} "
            f"({request.gross_amount})"
        )

        if request.gross_amount <= 0:
            return PaymentLinkResult(
                success=False,
                error_message="gross_amount must be greater than 0",
            )

        latency_ms = await self._simulate_latency()

        if self._should_fail():
            logger.warning(f"Mock: Payment page failed (simulated) for {request.order_reference}")
            return PaymentLinkResult(
                success=False,
                error_message="Simulated gateway failure",
                response_time_ms=latency_ms,
            )

        token = uuid.uuid4().hex
        redirect_url = f"https://app.sandbox.midtrans.com/snap/v4/redirection/mock-{token}"

        logger.info(f"Mock: Payment page opened for {request.order_reference}: {redirect_url}")

        return PaymentLinkResult(
            success=True,
            token=token,
            redirect_url=redirect_url,
            response_time_ms=latency_ms,
        )

    async def verify_notification(self, notification: dict[str, Any]) -> bool:
        """
        Simulate notification verification.

        In mock mode every notification is accepted without
        cryptographic verification.
        """
        return True

    async def health_check(self) -> bool:
        """Mock health check always returns True."""
        logger.debug("Mock: Health check passed")
        return True
