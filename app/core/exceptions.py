"""
Application Exceptions

Every error the API reports on purpose derives from OrderingError and
carries the HTTP status it maps to. The exception handlers in app.main
render them as {"success": false, "message": ..., "data": null}.
"""

from typing import Optional

from fastapi import status


class OrderingError(Exception):
    """Base class for expected, client-visible failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# =============================================================================
# 400 - MALFORMED INPUT
# =============================================================================

class InvalidReference(OrderingError):
    """The gateway order reference has no transaction id segment."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid order_id format."


class InvalidStatusCode(OrderingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid status! Status must be between 1 and 6."


class InvalidTransactionId(OrderingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid transaction ID format!"


class InvalidRequest(OrderingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request body."


# =============================================================================
# 403 / 404 / 409
# =============================================================================

class InvalidSignature(OrderingError):
    """Notification signature does not match the configured server key."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Invalid notification signature."


class TransactionNotFound(OrderingError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(f'Transaction with ID "{transaction_id}" not found.')


class ItemsNotFound(OrderingError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(
            f'No transaction items found for transaction ID "{transaction_id}".'
        )


class CookingStatusLocked(OrderingError):
    """Kitchen progress can only be tracked for paid transactions."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Cooking status can only be changed for completed transactions."


# =============================================================================
# 502 - UPSTREAM
# =============================================================================

class PaymentGatewayError(OrderingError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Payment gateway request failed."


# =============================================================================
# 500 - UNEXPECTED
# =============================================================================

class InternalError(OrderingError):
    """Unexpected failure while handling a request; details stay in the log."""

    default_message = "Internal server error."
