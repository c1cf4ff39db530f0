"""
Payment Gateway Abstract Base Class

Defines the interface contract for all payment gateway implementations.
Both MockPaymentGateway and MidtransPaymentGateway must implement these
methods, ensuring consistent behavior regardless of which gateway is active.

Design Pattern: Strategy Pattern
    - Allows runtime switching between payment providers
    - New providers can be added without modifying existing code
    - Facilitates testing with mock implementations

Author: Khalil Bannouri
Version: 4.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class PaymentLineItem:
    """One line of the payment page, amounts in the smallest currency unit."""
    id: str
    name: str
    price: int
    quantity: int


@dataclass
class PaymentRequest:
    """
    Everything the gateway needs to open a payment page.

    Attributes:
        order_reference: Composite reference ``<prefix>-<transactionId>-<suffix>``
            the gateway echoes back in every notification as ``order_id``
        gross_amount: Total to charge
        customer_name: Shown on the payment page
        customer_email: Gateway receipt address
        items: Line items, must sum to gross_amount
    """
    order_reference: str
    gross_amount: int
    customer_name: str
    customer_email: str
    items: list[PaymentLineItem] = field(default_factory=list)


@dataclass
class PaymentLinkResult:
    """
    Standardized result from opening a payment page.

    Attributes:
        success: Whether the gateway accepted the request
        token: Snap token for the embedded payment popup
        redirect_url: Hosted payment page URL
        error_message: Error description if the request failed
        response_time_ms: Time taken by the gateway
    """
    success: bool
    token: Optional[str] = None
    redirect_url: Optional[str] = None
    error_message: Optional[str] = None
    response_time_ms: float = 0.0


class BasePaymentGateway(ABC):
    """
    Abstract base class for payment gateways.

    All gateway implementations (Mock, Midtrans, etc.) must inherit from
    this class and implement all abstract methods.

    Example:
        >>> gateway = get_payment_gateway()  # Returns Mock or Midtrans
        >>> result = await gateway.create_payment(request)
        >>> if result.success:
        ...     print(f"Pay at: {result.redirect_url}")
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the payment provider.

        Returns:
            str: Provider name (e.g., "mock", "midtrans")
        """
        pass

    @abstractmethod
    async def create_payment(self, request: PaymentRequest) -> PaymentLinkResult:
        """
        Open a hosted payment page for a checked-out transaction.

        Args:
            request: Order reference, amount, customer and items

        Returns:
            PaymentLinkResult: Token and redirect URL on success
        """
        pass

    @abstractmethod
    async def verify_notification(self, notification: dict[str, Any]) -> bool:
        """
        Check that a status notification really comes from the gateway.

        Args:
            notification: Parsed notification body

        Returns:
            bool: True if the notification is authentic
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify the gateway is usable.

        Returns:
            bool: True if the gateway is configured and reachable
        """
        pass
