"""
SQLAlchemy Database Models

Transactions created at checkout, their line items, and the email log
that records which payment email each transaction has already received.

Author: Khalil Bannouri
Version: 4.0.0
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)

from app.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_transaction_id() -> str:
    """24 lowercase hex characters, the same shape as a document ObjectId."""
    return uuid.uuid4().hex[:24]


class TransactionStatus(str, enum.Enum):
    """Payment status of a transaction."""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    DENIED = "denied"
    CHALLENGED_BY_FRAUD_CHECK = "challengedByFraudCheck"


class CookingStatus(str, enum.Enum):
    """Kitchen progress, tracked once a transaction is paid."""
    NOT_STARTED = "Not Started"
    BEING_COOKED = "Being Cooked"
    READY_TO_SERVE = "Ready to Serve"
    COMPLETED = "Completed"


class EmailPayload(str, enum.Enum):
    """Kind of payment email; at most one of each per transaction."""
    SUCCESS = "Success Transaction"
    FAILURE = "Fail Transaction"


# values_callable stores the enum *values* ("challengedByFraudCheck"),
# not the member names, so the column matches what the API reports.
def _enum_column(enum_cls: type[enum.Enum], length: int) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=length,
        validate_strings=True,
    )


class Transaction(Base):
    """
    A checked-out cart.

    Status is driven by payment notifications and the operator override;
    cooking status is driven by the kitchen once the payment completed.
    """
    __tablename__ = "transactions"

    id = Column(String(24), primary_key=True, default=new_transaction_id)

    # =========================================================================
    # CUSTOMER INFORMATION
    # =========================================================================
    table_code = Column(String(20), nullable=False)
    customer_name = Column(String(100), nullable=False)
    customer_email = Column(String(255), nullable=False, index=True)

    # =========================================================================
    # PAYMENT
    # =========================================================================
    total_amount = Column(Integer, nullable=False)
    order_reference = Column(String(100), nullable=True, unique=True)
    status = Column(
        _enum_column(TransactionStatus, 32),
        default=TransactionStatus.PENDING,
        nullable=False,
        index=True,
    )

    # =========================================================================
    # KITCHEN
    # =========================================================================
    cooking_status = Column(
        _enum_column(CookingStatus, 20),
        default=CookingStatus.NOT_STARTED,
        nullable=False,
    )

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Transaction {self.id} - {self.customer_name} - {self.status.value}>"


class TransactionItem(Base):
    """One cart line of a transaction."""
    __tablename__ = "transaction_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    transaction_id = Column(
        String(24),
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = Column(String(64), nullable=False)
    product_name = Column(String(100), nullable=False)
    price = Column(Integer, nullable=False)
    qty = Column(Integer, nullable=False)
    amount = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<TransactionItem {self.product_name} x{self.qty} ({self.transaction_id})>"


class EmailLog(Base):
    """
    Record of a payment email owed to a transaction.

    The row is written *before* the email goes out; the unique constraint
    makes that write the single point where concurrent deliveries of the
    same notification are serialized.
    """
    __tablename__ = "email_logs"
    __table_args__ = (
        UniqueConstraint("transaction_id", "payload", name="uq_email_logs_transaction_payload"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    transaction_id = Column(String(24), nullable=False, index=True)
    customer_email = Column(String(255), nullable=False)
    payload = Column(_enum_column(EmailPayload, 32), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<EmailLog {self.transaction_id} - {self.payload.value}>"
