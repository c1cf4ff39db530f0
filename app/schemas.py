"""
Pydantic Schemas for Request/Response Validation

Checkout requests, gateway payment notifications, operator updates and
the {success, message, data} envelope every endpoint answers with.

Author: Khalil Bannouri
Version: 4.0.0
"""

import re
from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models import CookingStatus, EmailPayload, TransactionStatus

T = TypeVar("T")


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class TransactionItemCreate(BaseModel):
    """Single cart line."""
    product_id: str = Field(..., min_length=1, max_length=64, examples=["65b2c0f1e4a9d3b7c8e1f2a3"])
    product_name: str = Field(..., min_length=1, max_length=100, examples=["Nasi Goreng"])
    price: int = Field(..., gt=0, examples=[25000])
    qty: int = Field(..., ge=1, le=99, examples=[2])

    @property
    def amount(self) -> int:
        return self.price * self.qty


class TransactionCreate(BaseModel):
    """Request schema for checking out a cart."""
    table_code: str = Field(..., min_length=1, max_length=20, examples=["12"])
    customer_name: str = Field(..., min_length=2, max_length=100, examples=["Budi Santoso"])
    customer_email: str = Field(..., max_length=255, examples=["budi@example.com"])
    items: List[TransactionItemCreate] = Field(..., min_length=1)

    @field_validator("customer_email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not re.match(r'^[\w\.\+-]+@[\w\.-]+\.\w+$', v):
            raise ValueError('Invalid email format')
        return v

    @property
    def total_amount(self) -> int:
        return sum(item.amount for item in self.items)


class PaymentNotification(BaseModel):
    """
    Payment status callback from the gateway.

    Only ``transaction_status`` and ``order_id`` drive reconciliation; the
    remaining Midtrans fields are kept for signature checks and logging.
    Unknown fields are preserved.
    """
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    transaction_status: Optional[str] = None
    order_id: Optional[str] = None
    status_code: Optional[str] = None
    gross_amount: Optional[str] = None
    signature_key: Optional[str] = None
    fraud_status: Optional[str] = None
    payment_type: Optional[str] = None
    transaction_id: Optional[str] = None
    transaction_time: Optional[str] = None


class CookingStatusUpdate(BaseModel):
    cooking_status: CookingStatus


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class TransactionItemResponse(BaseModel):
    """Response schema for a single transaction item."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    transaction_id: str
    product_id: str
    product_name: str
    price: int
    qty: int
    amount: int


class TransactionResponse(BaseModel):
    """Response schema for a single transaction."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    table_code: str
    customer_name: str
    customer_email: str
    total_amount: int
    order_reference: Optional[str]
    status: TransactionStatus
    cooking_status: CookingStatus
    created_at: datetime
    updated_at: datetime


class EmailLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    transaction_id: str
    customer_email: str
    payload: EmailPayload
    created_at: datetime


class TransactionDetail(BaseModel):
    """A transaction together with its items."""
    transaction: TransactionResponse
    transaction_items: List[TransactionItemResponse]


class CheckoutDetail(TransactionDetail):
    """Checkout result: the stored transaction plus the payment page."""
    token: Optional[str] = None
    redirect_url: Optional[str] = None


class TransactionList(BaseModel):
    total: int
    transactions: List[TransactionDetail]


class ApiResponse(BaseModel, Generic[T]):
    """Envelope shared by every endpoint."""
    success: bool
    message: str
    data: Optional[T] = None


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    message: str
    data: Optional[Any] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    payment_gateway: str
    notification_service: str
    timestamp: datetime
