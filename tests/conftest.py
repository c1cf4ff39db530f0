import os
from datetime import datetime, timedelta, timezone
from typing import Optional

# Settings are cached on first import of the app package.
os.environ["ENV_MODE"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["MOCK_FAILURE_RATE"] = "0"
os.environ["MIDTRANS_SERVER_KEY"] = "SB-Mid-server-test-key"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from app.database import Base, get_session_maker
from app.main import app
from app.models import (
    CookingStatus,
    EmailLog,
    EmailPayload,
    Transaction,
    TransactionItem,
    TransactionStatus,
    new_transaction_id,
)
from app.services.notifications import (
    BaseNotificationService,
    NotificationResult,
    get_notification_service,
)
from app.services.payment import MockPaymentGateway, get_payment_gateway

DEFAULT_ITEMS = (
    ("65b2c0f1e4a9d3b7c8e1f2a1", "Nasi Goreng", 25000, 2),
    ("65b2c0f1e4a9d3b7c8e1f2a4", "Es Teh Manis", 8000, 1),
)


class FakeNotificationService(BaseNotificationService):
    """Records every email instead of sending it."""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False
        self.error: Optional[Exception] = None

    @property
    def provider_name(self) -> str:
        return "fake"

    async def send_email(self, to_email, subject, body_html, body_text=None):
        if self.error is not None:
            raise self.error
        if self.fail:
            return NotificationResult(success=False, error_message="rejected", provider="fake")

        self.sent.append({"to": to_email, "subject": subject, "html": body_html, "text": body_text})
        return NotificationResult(success=True, message_id=f"fake-{len(self.sent)}", provider="fake")

    async def health_check(self) -> bool:
        return True


class BrokenSession:
    """Session whose every query fails, as when the database goes away."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def get(self, *args, **kwargs):
        raise SQLAlchemyError("connection lost")

    async def execute(self, *args, **kwargs):
        raise SQLAlchemyError("connection lost")


class Store:
    """Synchronous access to the test database for seeding and assertions."""

    def __init__(self, engine):
        self.engine = engine

    def add_transaction(
        self,
        transaction_id: Optional[str] = None,
        status: TransactionStatus = TransactionStatus.PENDING,
        cooking_status: CookingStatus = CookingStatus.NOT_STARTED,
        items=DEFAULT_ITEMS,
        customer_email: str = "budi@example.com",
        created_at: Optional[datetime] = None,
    ) -> Transaction:
        transaction_id = transaction_id or new_transaction_id()
        created_at = created_at or datetime.now(timezone.utc)

        transaction = Transaction(
            id=transaction_id,
            table_code="12",
            customer_name="Budi Santoso",
            customer_email=customer_email,
            total_amount=sum(price * qty for _, _, price, qty in items),
            order_reference=f"ORDER-{transaction_id}-1699999999",
            status=status,
            cooking_status=cooking_status,
            created_at=created_at,
            updated_at=created_at,
        )
        with Session(self.engine, expire_on_commit=False) as session:
            session.add(transaction)
            session.add_all([
                TransactionItem(
                    transaction_id=transaction_id,
                    product_id=product_id,
                    product_name=name,
                    price=price,
                    qty=qty,
                    amount=price * qty,
                )
                for product_id, name, price, qty in items
            ])
            session.commit()
        return transaction

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        with Session(self.engine) as session:
            transaction = session.get(Transaction, transaction_id)
            if transaction is not None:
                session.expunge(transaction)
            return transaction

    def items(self, transaction_id: str) -> list[TransactionItem]:
        with Session(self.engine) as session:
            result = session.scalars(
                select(TransactionItem)
                .where(TransactionItem.transaction_id == transaction_id)
                .order_by(TransactionItem.id)
            ).all()
            session.expunge_all()
            return list(result)

    def email_payloads(self, transaction_id: str) -> list[EmailPayload]:
        with Session(self.engine) as session:
            return list(session.scalars(
                select(EmailLog.payload)
                .where(EmailLog.transaction_id == transaction_id)
                .order_by(EmailLog.id)
            ).all())

    def count_transactions(self) -> int:
        with Session(self.engine) as session:
            return len(session.scalars(select(Transaction.id)).all())


@pytest.fixture()
def database_path(tmp_path):
    return tmp_path / "orders.db"


@pytest.fixture()
def store(database_path):
    engine = create_engine(f"sqlite:///{database_path}")
    Base.metadata.create_all(engine)
    yield Store(engine)
    engine.dispose()


@pytest.fixture()
def session_maker(store, database_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{database_path}", poolclass=NullPool)
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
def notifications():
    return FakeNotificationService()


@pytest.fixture()
def gateway():
    return MockPaymentGateway(failure_rate=0.0, min_latency=0.0, max_latency=0.0)


@pytest.fixture()
def client(session_maker, notifications, gateway):
    app.dependency_overrides[get_session_maker] = lambda: session_maker
    app.dependency_overrides[get_notification_service] = lambda: notifications
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def an_hour_ago():
    return datetime.now(timezone.utc) - timedelta(hours=1)


@pytest.fixture()
def broken_database(client):
    app.dependency_overrides[get_session_maker] = lambda: BrokenSession
