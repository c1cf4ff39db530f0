"""Tests for applying notifications and overrides to stored transactions."""

import pytest

from app.core.exceptions import (
    InvalidReference,
    InvalidStatusCode,
    InvalidTransactionId,
    ItemsNotFound,
    TransactionNotFound,
)
from app.models import EmailPayload, TransactionStatus
from app.services.reconciliation import StatusReconciler


@pytest.fixture()
def reconciler(session_maker):
    return StatusReconciler(session_maker)


class TestReconcileNotification:
    @pytest.mark.asyncio
    async def test_settlement_completes_transaction(self, reconciler, store):
        store.add_transaction("64a1f9")

        result = await reconciler.reconcile_notification("order-64a1f9-1699999999", "settlement")

        assert result.status == TransactionStatus.COMPLETED
        assert result.previous_status == TransactionStatus.PENDING
        assert result.changed
        assert result.email_payload == EmailPayload.SUCCESS
        assert [i.product_name for i in result.items] == ["Nasi Goreng", "Es Teh Manis"]
        assert store.get_transaction("64a1f9").status == TransactionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_expire_owes_failure_email(self, reconciler, store):
        store.add_transaction("64a1f9")

        result = await reconciler.reconcile_notification("order-64a1f9-1", "expire")

        assert result.status == TransactionStatus.EXPIRED
        assert result.email_payload == EmailPayload.FAILURE

    @pytest.mark.asyncio
    async def test_unknown_status_writes_pending(self, reconciler, store):
        store.add_transaction("64a1f9", status=TransactionStatus.COMPLETED)

        result = await reconciler.reconcile_notification("order-64a1f9-1", "authorize")

        assert result.status == TransactionStatus.PENDING
        assert result.email_payload is None
        assert store.get_transaction("64a1f9").status == TransactionStatus.PENDING

    @pytest.mark.asyncio
    async def test_same_status_is_still_written(self, reconciler, store, an_hour_ago):
        store.add_transaction("64a1f9", status=TransactionStatus.COMPLETED, created_at=an_hour_ago)

        result = await reconciler.reconcile_notification("order-64a1f9-1", "settlement")

        assert not result.changed
        assert result.email_payload == EmailPayload.SUCCESS
        stored = store.get_transaction("64a1f9")
        assert stored.updated_at.replace(tzinfo=None) > an_hour_ago.replace(tzinfo=None)

    @pytest.mark.asyncio
    async def test_malformed_reference_reads_nothing(self, reconciler, store):
        store.add_transaction("64a1f9")

        with pytest.raises(InvalidReference):
            await reconciler.reconcile_notification("order64a1f9", "settlement")

        assert store.get_transaction("64a1f9").status == TransactionStatus.PENDING

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, reconciler, store):
        with pytest.raises(TransactionNotFound) as exc_info:
            await reconciler.reconcile_notification("order-ffffff-1", "settlement")

        assert exc_info.value.transaction_id == "ffffff"

    @pytest.mark.asyncio
    async def test_transaction_without_items_is_not_updated(self, reconciler, store):
        store.add_transaction("64a1f9", items=())

        with pytest.raises(ItemsNotFound):
            await reconciler.reconcile_notification("order-64a1f9-1", "settlement")

        assert store.get_transaction("64a1f9").status == TransactionStatus.PENDING


class TestOverrideStatus:
    @pytest.mark.asyncio
    async def test_code_three_completes_transaction(self, reconciler, store):
        transaction = store.add_transaction()

        result = await reconciler.override_status(transaction.id, "3")

        assert result.status == TransactionStatus.COMPLETED
        assert result.email_payload == EmailPayload.SUCCESS
        assert store.get_transaction(transaction.id).status == TransactionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_code_two_owes_no_email(self, reconciler, store):
        transaction = store.add_transaction()

        result = await reconciler.override_status(transaction.id, "2")

        assert result.status == TransactionStatus.CHALLENGED_BY_FRAUD_CHECK
        assert result.email_payload is None

    @pytest.mark.asyncio
    async def test_transaction_without_items_is_accepted(self, reconciler, store):
        transaction = store.add_transaction(items=())

        result = await reconciler.override_status(transaction.id, "6")

        assert result.status == TransactionStatus.CANCELLED
        assert result.items == []
        assert result.email_payload == EmailPayload.FAILURE

    @pytest.mark.asyncio
    async def test_invalid_code_writes_nothing(self, reconciler, store):
        transaction = store.add_transaction()

        with pytest.raises(InvalidStatusCode):
            await reconciler.override_status(transaction.id, "7")

        assert store.get_transaction(transaction.id).status == TransactionStatus.PENDING

    @pytest.mark.asyncio
    async def test_code_is_checked_before_id(self, reconciler):
        with pytest.raises(InvalidStatusCode):
            await reconciler.override_status("not-an-id", "9")

    @pytest.mark.asyncio
    async def test_malformed_id(self, reconciler):
        with pytest.raises(InvalidTransactionId):
            await reconciler.override_status("64a1f9", "3")

    @pytest.mark.asyncio
    async def test_unknown_id(self, reconciler, store):
        with pytest.raises(TransactionNotFound):
            await reconciler.override_status("65b2c0f1e4a9d3b7c8e1f2a3", "3")
