"""
Payment Status Vocabulary

Maps the gateway's transaction_status values and the operator's numeric
codes onto TransactionStatus, and decides which email a status is owed.

Mapping tables are checked for completeness when the module is imported:
adding a ProviderStatus or TransactionStatus member without updating the
tables fails at startup instead of silently falling through.
"""

import enum
from typing import Optional

from app.core.exceptions import InvalidStatusCode
from app.models import EmailPayload, TransactionStatus


class ProviderStatus(str, enum.Enum):
    """transaction_status values sent by Midtrans."""
    SETTLEMENT = "settlement"
    CAPTURE = "capture"
    PENDING = "pending"
    CANCEL = "cancel"
    REFUND = "refund"
    EXPIRE = "expire"
    DENY = "deny"
    CHALLENGE = "challenge"


PROVIDER_STATUS_MAP: dict[ProviderStatus, TransactionStatus] = {
    ProviderStatus.SETTLEMENT: TransactionStatus.COMPLETED,
    ProviderStatus.CAPTURE: TransactionStatus.COMPLETED,
    ProviderStatus.PENDING: TransactionStatus.PENDING,
    ProviderStatus.CANCEL: TransactionStatus.CANCELLED,
    ProviderStatus.REFUND: TransactionStatus.CANCELLED,
    ProviderStatus.EXPIRE: TransactionStatus.EXPIRED,
    ProviderStatus.DENY: TransactionStatus.DENIED,
    ProviderStatus.CHALLENGE: TransactionStatus.CHALLENGED_BY_FRAUD_CHECK,
}

FALLBACK_STATUS = TransactionStatus.PENDING

MANUAL_STATUS_CODES: dict[int, TransactionStatus] = {
    1: TransactionStatus.PENDING,
    2: TransactionStatus.CHALLENGED_BY_FRAUD_CHECK,
    3: TransactionStatus.COMPLETED,
    4: TransactionStatus.DENIED,
    5: TransactionStatus.EXPIRED,
    6: TransactionStatus.CANCELLED,
}

# None means the status is not final enough to tell the customer anything.
EMAIL_FOR_STATUS: dict[TransactionStatus, Optional[EmailPayload]] = {
    TransactionStatus.COMPLETED: EmailPayload.SUCCESS,
    TransactionStatus.CANCELLED: EmailPayload.FAILURE,
    TransactionStatus.EXPIRED: EmailPayload.FAILURE,
    TransactionStatus.DENIED: EmailPayload.FAILURE,
    TransactionStatus.PENDING: None,
    TransactionStatus.CHALLENGED_BY_FRAUD_CHECK: None,
}


def check_exhaustive() -> None:
    """Raise if a mapping table misses a member of its key enum."""
    missing = [s.value for s in ProviderStatus if s not in PROVIDER_STATUS_MAP]
    if missing:
        raise RuntimeError(f"Unmapped provider statuses: {missing}")

    missing = [s.value for s in TransactionStatus if s not in EMAIL_FOR_STATUS]
    if missing:
        raise RuntimeError(f"No email decision for statuses: {missing}")

    missing = [s.value for s in TransactionStatus if s not in MANUAL_STATUS_CODES.values()]
    if missing:
        raise RuntimeError(f"Statuses without a manual code: {missing}")


check_exhaustive()


def map_provider_status(external_status: Optional[str]) -> TransactionStatus:
    """
    Translate a gateway status into a TransactionStatus.

    Matching is case-sensitive; anything unknown (including a missing
    status) maps to pending.
    """
    try:
        provider_status = ProviderStatus(external_status)
    except ValueError:
        return FALLBACK_STATUS
    return PROVIDER_STATUS_MAP[provider_status]


def parse_manual_status_code(raw_code: str) -> TransactionStatus:
    """
    Translate an operator status code ("1".."6") into a TransactionStatus.

    Raises:
        InvalidStatusCode: not an integer, or outside 1..6
    """
    try:
        code = int(raw_code)
    except (TypeError, ValueError):
        raise InvalidStatusCode()

    status = MANUAL_STATUS_CODES.get(code)
    if status is None:
        raise InvalidStatusCode()
    return status


def email_payload_for(status: TransactionStatus) -> Optional[EmailPayload]:
    """Which payment email, if any, a transaction in this status is owed."""
    return EMAIL_FOR_STATUS[status]
