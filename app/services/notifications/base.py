"""
Notification Service Abstract Base Class

Defines the interface for sending transactional emails.
Supports both Mock (development) and Real (production) implementations.

Author: Khalil Bannouri
Version: 4.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from app.models import EmailPayload, Transaction, TransactionItem
from app.services.notifications.templates import render_payment_email


@dataclass
class NotificationResult:
    """Result from sending a notification."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


class BaseNotificationService(ABC):
    """Abstract base class for notification services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        """Send an email."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service health."""
        pass

    async def send_payment_email(
        self,
        payload: EmailPayload,
        to_email: str,
        transaction: Transaction,
        items: Sequence[TransactionItem],
    ) -> NotificationResult:
        """Render and send the success or failure email for a transaction."""
        email = render_payment_email(payload, transaction, items)
        return await self.send_email(
            to_email=to_email,
            subject=email.subject,
            body_html=email.body_html,
            body_text=email.body_text,
        )

    async def send_success_email(
        self,
        to_email: str,
        transaction: Transaction,
        items: Sequence[TransactionItem],
    ) -> NotificationResult:
        """Tell the customer their payment went through."""
        return await self.send_payment_email(EmailPayload.SUCCESS, to_email, transaction, items)

    async def send_failed_email(
        self,
        to_email: str,
        transaction: Transaction,
        items: Sequence[TransactionItem],
    ) -> NotificationResult:
        """Tell the customer their payment was cancelled, expired or denied."""
        return await self.send_payment_email(EmailPayload.FAILURE, to_email, transaction, items)
