"""
Order Reference Handling

The gateway only knows the composite order reference we hand it at
checkout, ``<prefix>-<transactionId>[-<suffix>]``. Notifications echo it
back as ``order_id``; the transaction id is its second segment.
"""

import re
import time
from typing import Optional

from app.core.exceptions import InvalidReference

SEPARATOR = "-"

_TRANSACTION_ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")


def build_order_reference(prefix: str, transaction_id: str, suffix: Optional[str] = None) -> str:
    """
    Compose the reference sent to the gateway.

    The suffix defaults to the current unix time, so a transaction that is
    re-submitted gets a fresh reference (the gateway rejects reused ones).
    """
    if suffix is None:
        suffix = str(int(time.time()))
    return SEPARATOR.join([prefix, transaction_id, suffix])


def parse_order_reference(order_reference: Optional[str]) -> str:
    """
    Extract the transaction id from a gateway order reference.

    Raises:
        InvalidReference: reference missing, without a separator, or with
            an empty transaction id segment
    """
    if not order_reference or SEPARATOR not in order_reference:
        raise InvalidReference()

    transaction_id = order_reference.split(SEPARATOR)[1]
    if not transaction_id:
        raise InvalidReference()

    return transaction_id


def is_valid_transaction_id(transaction_id: str) -> bool:
    """True for ids shaped like the ones the service generates."""
    return bool(_TRANSACTION_ID_PATTERN.match(transaction_id))
