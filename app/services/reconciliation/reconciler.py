"""
Status Reconciler

Applies a payment status to a stored transaction, either from a gateway
notification or from the operator override, and reports which payment
email the new status is owed. Sending that email is the NotificationGuard's
job; the reconciler never touches the email log.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import (
    InvalidTransactionId,
    ItemsNotFound,
    TransactionNotFound,
)
from app.models import (
    EmailPayload,
    Transaction,
    TransactionItem,
    TransactionStatus,
    utcnow,
)
from app.services.reconciliation.reference import (
    is_valid_transaction_id,
    parse_order_reference,
)
from app.services.reconciliation.status_map import (
    email_payload_for,
    map_provider_status,
    parse_manual_status_code,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """Outcome of applying a status to a transaction."""
    transaction: Transaction
    items: list[TransactionItem]
    previous_status: TransactionStatus
    status: TransactionStatus
    email_payload: Optional[EmailPayload]

    @property
    def changed(self) -> bool:
        return self.previous_status != self.status


class StatusReconciler:
    """
    Resolves a transaction, overwrites its status and decides the email.

    The transaction and its items are read concurrently on two sessions;
    the status write goes through the session that loaded the transaction.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def _fetch_items(self, transaction_id: str) -> list[TransactionItem]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(TransactionItem)
                .where(TransactionItem.transaction_id == transaction_id)
                .order_by(TransactionItem.id)
            )
            return list(result.scalars().all())

    async def _apply(
        self,
        transaction_id: str,
        resolve_status,
        require_items: bool,
    ) -> ReconciliationResult:
        async with self.session_maker() as session:
            transaction, items = await asyncio.gather(
                session.get(Transaction, transaction_id),
                self._fetch_items(transaction_id),
            )

            if transaction is None:
                raise TransactionNotFound(transaction_id)
            if require_items and not items:
                raise ItemsNotFound(transaction_id)

            previous_status = transaction.status
            status = resolve_status()

            # Written even when unchanged: updated_at always moves, so the
            # row is always part of the UPDATE.
            transaction.status = status
            transaction.updated_at = utcnow()
            await session.commit()

        email_payload = email_payload_for(status)

        logger.info(
            f"Transaction {transaction_id}: {previous_status.value} -> {status.value} "
            f"(email: {email_payload.value if email_payload else 'none'})"
        )

        return ReconciliationResult(
            transaction=transaction,
            items=items,
            previous_status=previous_status,
            status=status,
            email_payload=email_payload,
        )

    async def reconcile_notification(
        self,
        order_reference: Optional[str],
        external_status: Optional[str],
    ) -> ReconciliationResult:
        """
        Apply a gateway notification.

        Raises:
            InvalidReference: malformed order reference (nothing is read or written)
            TransactionNotFound: no transaction with the referenced id
            ItemsNotFound: the transaction has no items
        """
        transaction_id = parse_order_reference(order_reference)

        def resolve_status() -> TransactionStatus:
            status = map_provider_status(external_status)
            logger.info(f"Gateway status {external_status!r} mapped to {status.value}")
            return status

        return await self._apply(transaction_id, resolve_status, require_items=True)

    async def override_status(
        self,
        transaction_id: str,
        status_code: str,
    ) -> ReconciliationResult:
        """
        Apply an operator status code (1..6) to a transaction.

        The code and id are validated before any read. Unlike notifications,
        a transaction without items is accepted.

        Raises:
            InvalidStatusCode: code is not an integer in 1..6
            InvalidTransactionId: id is not a well-formed transaction id
            TransactionNotFound: no transaction with that id
        """
        status = parse_manual_status_code(status_code)
        if not is_valid_transaction_id(transaction_id):
            raise InvalidTransactionId()

        logger.info(f"Operator override: transaction {transaction_id} -> {status.value}")

        return await self._apply(transaction_id, lambda: status, require_items=False)
