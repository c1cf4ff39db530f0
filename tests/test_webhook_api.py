"""Tests for the payment notification webhook."""

import httpx
import pytest

from app.main import app
from app.models import EmailPayload, TransactionStatus
from app.services.payment import MidtransPaymentGateway, get_payment_gateway
from app.services.payment.midtrans import notification_signature

URL = "/api/payment-notification"


def notify(client, order_id, transaction_status="settlement", **extra):
    body = {"order_id": order_id, "transaction_status": transaction_status, **extra}
    return client.post(URL, json=body)


class TestSuccessfulNotification:
    def test_settlement_completes_and_sends_one_email(self, client, store, notifications):
        store.add_transaction("64a1f9")

        response = notify(client, "order-64a1f9-1699999999")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Payment notification received and transaction updated successfully."
        assert body["data"]["transaction"]["id"] == "64a1f9"
        assert body["data"]["transaction"]["status"] == "completed"
        assert len(body["data"]["transaction_items"]) == 2

        assert store.get_transaction("64a1f9").status == TransactionStatus.COMPLETED
        assert len(notifications.sent) == 1
        assert notifications.sent[0]["subject"].startswith("Payment received")
        assert store.email_payloads("64a1f9") == [EmailPayload.SUCCESS]

    def test_redelivery_sends_no_second_email(self, client, store, notifications):
        store.add_transaction("64a1f9")

        first = notify(client, "order-64a1f9-1699999999")
        second = notify(client, "order-64a1f9-1699999999")

        assert first.status_code == 200
        assert second.status_code == 200
        assert len(notifications.sent) == 1
        assert store.email_payloads("64a1f9") == [EmailPayload.SUCCESS]

    @pytest.mark.parametrize("gateway_status, expected", [
        ("cancel", "cancelled"),
        ("refund", "cancelled"),
        ("expire", "expired"),
        ("deny", "denied"),
    ])
    def test_failures_send_failure_email(self, client, store, notifications, gateway_status, expected):
        store.add_transaction("64a1f9")

        response = notify(client, "order-64a1f9-1", gateway_status)

        assert response.json()["data"]["transaction"]["status"] == expected
        assert notifications.sent[0]["subject"].startswith("Payment unsuccessful")
        assert store.email_payloads("64a1f9") == [EmailPayload.FAILURE]

    @pytest.mark.parametrize("gateway_status, expected", [
        ("pending", "pending"),
        ("challenge", "challengedByFraudCheck"),
        ("authorize", "pending"),
    ])
    def test_open_statuses_send_nothing(self, client, store, notifications, gateway_status, expected):
        store.add_transaction("64a1f9")

        response = notify(client, "order-64a1f9-1", gateway_status)

        assert response.status_code == 200
        assert response.json()["data"]["transaction"]["status"] == expected
        assert notifications.sent == []
        assert store.email_payloads("64a1f9") == []

    def test_missing_status_writes_pending(self, client, store):
        store.add_transaction("64a1f9", status=TransactionStatus.CHALLENGED_BY_FRAUD_CHECK)

        response = client.post(URL, json={"order_id": "order-64a1f9-1"})

        assert response.status_code == 200
        assert store.get_transaction("64a1f9").status == TransactionStatus.PENDING

    def test_success_then_failure_sends_both(self, client, store, notifications):
        store.add_transaction("64a1f9")

        notify(client, "order-64a1f9-1", "settlement")
        notify(client, "order-64a1f9-1", "refund")

        assert len(notifications.sent) == 2
        assert store.email_payloads("64a1f9") == [EmailPayload.SUCCESS, EmailPayload.FAILURE]

    def test_email_failure_does_not_fail_the_response(self, client, store, notifications):
        store.add_transaction("64a1f9")
        notifications.error = ConnectionError("smtp unreachable")

        response = notify(client, "order-64a1f9-1")

        assert response.status_code == 200
        assert store.get_transaction("64a1f9").status == TransactionStatus.COMPLETED
        assert store.email_payloads("64a1f9") == []

    def test_extra_gateway_fields_are_accepted(self, client, store):
        store.add_transaction("64a1f9")

        response = notify(
            client,
            "order-64a1f9-1",
            status_code="200",
            gross_amount=58000.00,
            payment_type="qris",
            custom_field1="table 12",
        )

        assert response.status_code == 200


class TestRejectedNotification:
    @pytest.mark.parametrize("order_id", ["nohyphen", "order--1699999999", ""])
    def test_malformed_reference(self, client, store, notifications, order_id):
        store.add_transaction("64a1f9")

        response = notify(client, order_id)

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Invalid order_id format.",
            "data": None,
        }
        assert store.get_transaction("64a1f9").status == TransactionStatus.PENDING
        assert notifications.sent == []

    def test_missing_reference(self, client):
        response = client.post(URL, json={"transaction_status": "settlement"})

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid order_id format."

    def test_unknown_transaction(self, client):
        response = notify(client, "order-ffffff-1")

        assert response.status_code == 404
        assert response.json()["message"] == 'Transaction with ID "ffffff" not found.'
        assert response.json()["data"] is None

    def test_transaction_without_items(self, client, store, notifications):
        store.add_transaction("64a1f9", items=())

        response = notify(client, "order-64a1f9-1")

        assert response.status_code == 404
        assert response.json()["success"] is False
        assert store.get_transaction("64a1f9").status == TransactionStatus.PENDING
        assert notifications.sent == []

    def test_body_that_is_not_json(self, client):
        response = client.post(
            URL,
            content="transaction_status=settlement",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["success"] is False


class TestSignatureVerification:
    @pytest.fixture()
    def midtrans(self, client):
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        gateway = MidtransPaymentGateway(client=httpx.AsyncClient(transport=transport))
        app.dependency_overrides[get_payment_gateway] = lambda: gateway
        return gateway

    def test_signed_notification_is_accepted(self, client, midtrans, store):
        store.add_transaction("64a1f9")
        signature = notification_signature(
            "order-64a1f9-1", "200", "58000.00", "SB-Mid-server-test-key"
        )

        response = notify(
            client,
            "order-64a1f9-1",
            status_code="200",
            gross_amount="58000.00",
            signature_key=signature,
        )

        assert response.status_code == 200
        assert store.get_transaction("64a1f9").status == TransactionStatus.COMPLETED

    def test_forged_notification_is_rejected(self, client, midtrans, store, notifications):
        store.add_transaction("64a1f9")

        response = notify(
            client,
            "order-64a1f9-1",
            status_code="200",
            gross_amount="58000.00",
            signature_key="0" * 128,
        )

        assert response.status_code == 403
        assert response.json()["message"] == "Invalid notification signature."
        assert store.get_transaction("64a1f9").status == TransactionStatus.PENDING
        assert notifications.sent == []

    def test_unsigned_notification_is_rejected(self, client, midtrans, store):
        store.add_transaction("64a1f9")

        response = notify(client, "order-64a1f9-1")

        assert response.status_code == 403


class TestUnexpectedFailure:
    def test_database_failure_is_a_500(self, client, broken_database, notifications):
        response = notify(client, "order-64a1f9-1699999999")

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "message": "Internal server error.",
            "data": None,
        }
        assert notifications.sent == []
