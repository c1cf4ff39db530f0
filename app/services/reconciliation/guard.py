"""
Notification Deduplication Guard

Sends each payment email at most once per (transaction, payload).

The guard claims the slot by inserting the EmailLog row *before* sending.
The unique constraint on (transaction_id, payload) decides the winner when
the gateway delivers the same notification twice at once: the losing
insert fails and that delivery sends nothing. If the email itself fails,
the claim is released so a later redelivery can try again.

Failures here are logged and never raised; by the time the guard runs
the HTTP response has already reported the status write.
"""

import logging
from typing import Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import EmailLog, EmailPayload, Transaction, TransactionItem
from app.services.notifications import BaseNotificationService

logger = logging.getLogger(__name__)


class NotificationGuard:
    """Claim-then-send wrapper around the notification service."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        notification_service: BaseNotificationService,
    ):
        self.session_maker = session_maker
        self.notification_service = notification_service

    async def already_sent(self, transaction_id: str, payload: EmailPayload) -> bool:
        async with self.session_maker() as session:
            result = await session.execute(
                select(EmailLog.id).where(
                    EmailLog.transaction_id == transaction_id,
                    EmailLog.payload == payload,
                )
            )
            return result.first() is not None

    async def _claim(self, transaction: Transaction, payload: EmailPayload) -> bool:
        async with self.session_maker() as session:
            session.add(EmailLog(
                transaction_id=transaction.id,
                customer_email=transaction.customer_email,
                payload=payload,
            ))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return False
        return True

    async def _release(self, transaction_id: str, payload: EmailPayload) -> None:
        async with self.session_maker() as session:
            await session.execute(
                delete(EmailLog).where(
                    EmailLog.transaction_id == transaction_id,
                    EmailLog.payload == payload,
                )
            )
            await session.commit()

    async def notify(
        self,
        payload: EmailPayload,
        transaction: Transaction,
        items: Sequence[TransactionItem],
    ) -> bool:
        """
        Send the payment email unless it was already sent.

        Returns:
            bool: True if this call sent the email
        """
        try:
            claimed = await self._claim(transaction, payload)
        except SQLAlchemyError:
            logger.exception(f"Email log write failed for transaction {transaction.id}")
            return False

        if not claimed:
            logger.info(f"Email {payload.value} already sent for transaction {transaction.id}")
            return False

        if payload == EmailPayload.SUCCESS:
            send = self.notification_service.send_success_email
        else:
            send = self.notification_service.send_failed_email

        try:
            result = await send(transaction.customer_email, transaction, items)
            error = None if result.success else result.error_message
        except Exception as e:
            logger.exception(f"Email sending failed for transaction {transaction.id}")
            error = str(e)

        if error is None:
            logger.info(f"Email {payload.value} sent to {transaction.customer_email}")
            return True

        logger.error(
            f"Email {payload.value} to {transaction.customer_email} failed: {error}; "
            f"releasing claim for transaction {transaction.id}"
        )
        try:
            await self._release(transaction.id, payload)
        except SQLAlchemyError:
            logger.exception(f"Could not release email claim for transaction {transaction.id}")
        return False
