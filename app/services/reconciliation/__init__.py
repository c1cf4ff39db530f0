"""
Payment Reconciliation

Turns gateway notifications and operator overrides into transaction
status changes, and sends the resulting payment email at most once.
"""

from app.services.reconciliation.guard import NotificationGuard
from app.services.reconciliation.reconciler import ReconciliationResult, StatusReconciler
from app.services.reconciliation.reference import (
    build_order_reference,
    is_valid_transaction_id,
    parse_order_reference,
)
from app.services.reconciliation.status_map import (
    ProviderStatus,
    email_payload_for,
    map_provider_status,
    parse_manual_status_code,
)

__all__ = [
    "NotificationGuard",
    "ReconciliationResult",
    "StatusReconciler",
    "ProviderStatus",
    "build_order_reference",
    "email_payload_for",
    "is_valid_transaction_id",
    "map_provider_status",
    "parse_manual_status_code",
    "parse_order_reference",
]
