"""
FastAPI Application Entry Point

Restaurant Ordering Backend - checkout, payment reconciliation and
payment emails. Supports both Mock services (development) and Real APIs
(production).

Endpoints:
    - POST  /api/transactions: Check out a cart and open a payment page
    - GET   /api/transactions: Payment history, optionally by status
    - GET   /api/transactions/{id}: One transaction with its items
    - PATCH /api/transactions/{id}/status/{code}: Operator status override
    - PATCH /api/transactions/{id}/cooking-status: Kitchen progress
    - GET   /api/transactions/{id}/email-logs: Payment emails already sent
    - POST  /api/payment-notification: Payment gateway webhook
    - GET   /health: System health check

Author: Khalil Bannouri
Version: 4.0.0
"""

import asyncio
import sys
import logging
from datetime import datetime
from typing import Any, Optional, Sequence
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from app.core.config import get_settings, setup_logging
from app.core.exceptions import (
    CookingStatusLocked,
    InternalError,
    InvalidRequest,
    InvalidSignature,
    OrderingError,
    PaymentGatewayError,
    TransactionNotFound,
)
from app.database import engine, get_db, get_session_maker, init_db
from app.models import (
    CookingStatus,
    EmailLog,
    Transaction,
    TransactionItem,
    TransactionStatus,
    new_transaction_id,
    utcnow,
)
from app.schemas import (
    ApiResponse,
    CheckoutDetail,
    CookingStatusUpdate,
    EmailLogResponse,
    ErrorResponse,
    HealthResponse,
    PaymentNotification,
    TransactionCreate,
    TransactionDetail,
    TransactionItemResponse,
    TransactionList,
    TransactionResponse,
)
from app.services.notifications import BaseNotificationService, get_notification_service
from app.services.payment import (
    BasePaymentGateway,
    PaymentLineItem,
    PaymentRequest,
    get_payment_gateway,
)
from app.services.reconciliation import (
    NotificationGuard,
    ReconciliationResult,
    StatusReconciler,
    build_order_reference,
)

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("✅ Database initialized")

    payment_gateway = get_payment_gateway()
    notification_service = get_notification_service()
    logger.info(f"✅ Payment Gateway: {payment_gateway.provider_name}")
    logger.info(f"✅ Notification Service: {notification_service.provider_name}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("✅ Application ready!")

    yield

    logger.info("Shutting down...")
    close = getattr(payment_gateway, "close", None)
    if close is not None:
        await close()
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Restaurant ordering backend: cart checkout, payment gateway "
        "notification reconciliation and transactional payment emails."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def build_detail(
    transaction: Transaction,
    items: Sequence[TransactionItem],
) -> TransactionDetail:
    return TransactionDetail(
        transaction=TransactionResponse.model_validate(transaction),
        transaction_items=[TransactionItemResponse.model_validate(i) for i in items],
    )


def schedule_payment_email(
    result: ReconciliationResult,
    background_tasks: BackgroundTasks,
    session_maker: async_sessionmaker[AsyncSession],
    notification_service: BaseNotificationService,
) -> None:
    """Queue the owed payment email to run after the response is sent."""
    if result.email_payload is None:
        logger.info(
            f"No email for transaction {result.transaction.id} "
            f"(status {result.status.value})"
        )
        return

    guard = NotificationGuard(session_maker, notification_service)
    background_tasks.add_task(
        guard.notify, result.email_payload, result.transaction, result.items
    )


async def load_transaction(db: AsyncSession, transaction_id: str) -> Transaction:
    transaction = await db.get(Transaction, transaction_id)
    if transaction is None:
        raise TransactionNotFound(transaction_id)
    return transaction


async def load_items(db: AsyncSession, transaction_ids: Sequence[str]) -> dict[str, list[TransactionItem]]:
    grouped: dict[str, list[TransactionItem]] = {tid: [] for tid in transaction_ids}
    if not transaction_ids:
        return grouped

    result = await db.execute(
        select(TransactionItem)
        .where(TransactionItem.transaction_id.in_(transaction_ids))
        .order_by(TransactionItem.id)
    )
    for item in result.scalars().all():
        grouped[item.transaction_id].append(item)
    return grouped


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    payment_gateway: BasePaymentGateway = Depends(get_payment_gateway),
    notification_service: BaseNotificationService = Depends(get_notification_service),
) -> HealthResponse:
    """Verify all system components are operational."""

    db_status = "healthy"
    try:
        await db.execute(select(1))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    gateway_status = "healthy" if await payment_gateway.health_check() else "unhealthy"
    notification_status = "healthy" if await notification_service.health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [db_status, gateway_status, notification_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        payment_gateway=gateway_status,
        notification_service=notification_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# PAYMENT GATEWAY WEBHOOK
# =============================================================================

@app.post(
    "/api/payment-notification",
    response_model=ApiResponse[TransactionDetail],
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    tags=["Payment Webhook"],
    summary="Payment Notification URL",
)
async def payment_notification(
    notification: PaymentNotification,
    background_tasks: BackgroundTasks,
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
    payment_gateway: BasePaymentGateway = Depends(get_payment_gateway),
    notification_service: BaseNotificationService = Depends(get_notification_service),
) -> ApiResponse[TransactionDetail]:
    """
    Handle a payment status notification from the gateway.

    The response reflects only the transaction write; the payment email
    (if the new status is owed one) is sent afterwards, at most once.

    Configure this URL as the Payment Notification URL in the
    Midtrans dashboard:
        https://your-domain.com/api/payment-notification
    """
    logger.info(
        f"Payment notification: order_id={notification.order_id} "
        f"status={notification.transaction_status}"
    )
    logger.debug(f"Payload: {notification.model_dump()}")

    try:
        if not await payment_gateway.verify_notification(notification.model_dump()):
            raise InvalidSignature()

        reconciler = StatusReconciler(session_maker)
        result = await reconciler.reconcile_notification(
            notification.order_id, notification.transaction_status
        )
    except OrderingError:
        raise
    except Exception as e:
        logger.exception(f"Error processing payment notification: {e}")
        raise InternalError()

    schedule_payment_email(result, background_tasks, session_maker, notification_service)

    return ApiResponse(
        success=True,
        message="Payment notification received and transaction updated successfully.",
        data=build_detail(result.transaction, result.items),
    )


# =============================================================================
# TRANSACTION ENDPOINTS
# =============================================================================

@app.post(
    "/api/transactions",
    response_model=ApiResponse[CheckoutDetail],
    status_code=201,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    tags=["Transactions"],
    summary="Check Out Cart",
)
async def create_transaction(
    checkout: TransactionCreate,
    db: AsyncSession = Depends(get_db),
    payment_gateway: BasePaymentGateway = Depends(get_payment_gateway),
) -> ApiResponse[CheckoutDetail]:
    """
    Store a cart as a pending transaction and open its payment page.

    The transaction and its items are committed before the gateway is
    asked for a payment page, so a notification can never arrive for a
    transaction whose items are not stored yet.
    """
    logger.info(f"Checkout for {checkout.customer_name} at table {checkout.table_code}")

    now = utcnow()
    transaction_id = new_transaction_id()
    transaction = Transaction(
        id=transaction_id,
        table_code=checkout.table_code,
        customer_name=checkout.customer_name,
        customer_email=checkout.customer_email,
        total_amount=checkout.total_amount,
        order_reference=build_order_reference(settings.order_reference_prefix, transaction_id),
        status=TransactionStatus.PENDING,
        cooking_status=CookingStatus.NOT_STARTED,
        created_at=now,
        updated_at=now,
    )
    items = [
        TransactionItem(
            transaction_id=transaction_id,
            product_id=item.product_id,
            product_name=item.product_name,
            price=item.price,
            qty=item.qty,
            amount=item.amount,
            created_at=now,
        )
        for item in checkout.items
    ]

    db.add(transaction)
    db.add_all(items)
    await db.commit()

    payment_request = PaymentRequest(
        order_reference=transaction.order_reference,
        gross_amount=transaction.total_amount,
        customer_name=transaction.customer_name,
        customer_email=transaction.customer_email,
        items=[
            PaymentLineItem(
                id=item.product_id,
                name=item.product_name,
                price=item.price,
                quantity=item.qty,
            )
            for item in items
        ],
    )

    try:
        payment = await payment_gateway.create_payment(payment_request)
        error_message = None if payment.success else payment.error_message
    except Exception as e:
        logger.exception(f"Payment gateway raised for transaction {transaction_id}: {e}")
        payment = None
        error_message = PaymentGatewayError.default_message

    if payment is None or not payment.success:
        logger.error(f"Payment page failed for transaction {transaction_id}: {error_message}")
        await db.execute(delete(TransactionItem).where(TransactionItem.transaction_id == transaction_id))
        await db.execute(delete(Transaction).where(Transaction.id == transaction_id))
        await db.commit()
        raise PaymentGatewayError(error_message)

    logger.info(f"Transaction {transaction_id} created ({transaction.total_amount} {settings.currency})")

    detail = build_detail(transaction, items)
    return ApiResponse(
        success=True,
        message="Transaction created successfully!",
        data=CheckoutDetail(
            **detail.model_dump(),
            token=payment.token,
            redirect_url=payment.redirect_url,
        ),
    )


@app.get(
    "/api/transactions",
    response_model=ApiResponse[TransactionList],
    responses={400: {"model": ErrorResponse}},
    tags=["Transactions"],
    summary="Payment History",
)
async def list_transactions(
    status: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TransactionList]:
    """Retrieve paginated transactions, newest first."""

    query = select(Transaction).order_by(Transaction.created_at.desc())
    count_query = select(func.count(Transaction.id))

    if status:
        try:
            status_enum = TransactionStatus(status)
        except ValueError:
            raise InvalidRequest(
                f"Invalid status. Options: {[s.value for s in TransactionStatus]}"
            )
        query = query.where(Transaction.status == status_enum)
        count_query = count_query.where(Transaction.status == status_enum)

    total = (await db.execute(count_query)).scalar() or 0
    transactions = (await db.execute(query.offset(skip).limit(limit))).scalars().all()
    items = await load_items(db, [t.id for t in transactions])

    return ApiResponse(
        success=True,
        message="Transactions retrieved successfully.",
        data=TransactionList(
            total=total,
            transactions=[build_detail(t, items[t.id]) for t in transactions],
        ),
    )


@app.get(
    "/api/transactions/{transaction_id}",
    response_model=ApiResponse[TransactionDetail],
    responses={404: {"model": ErrorResponse}},
    tags=["Transactions"],
)
async def get_transaction(
    transaction_id: str,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TransactionDetail]:
    """Get a specific transaction with its items."""
    transaction = await load_transaction(db, transaction_id)
    items = await load_items(db, [transaction_id])

    return ApiResponse(
        success=True,
        message="Transaction retrieved successfully.",
        data=build_detail(transaction, items[transaction_id]),
    )


@app.patch(
    "/api/transactions/{transaction_id}/status/{status}",
    response_model=ApiResponse[TransactionDetail],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    tags=["Transactions"],
    summary="Operator Status Override",
)
async def override_transaction_status(
    transaction_id: str,
    status: str,
    background_tasks: BackgroundTasks,
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
    notification_service: BaseNotificationService = Depends(get_notification_service),
) -> ApiResponse[TransactionDetail]:
    """
    Force a transaction into a status by code.

    Codes: 1 pending, 2 challengedByFraudCheck, 3 completed, 4 denied,
    5 expired, 6 cancelled. Sends the same payment emails as the webhook.
    """
    try:
        reconciler = StatusReconciler(session_maker)
        result = await reconciler.override_status(transaction_id, status)
    except OrderingError:
        raise
    except Exception as e:
        logger.exception(f"Error overriding status of transaction {transaction_id}: {e}")
        raise InternalError("An internal server error occurred!")

    schedule_payment_email(result, background_tasks, session_maker, notification_service)

    return ApiResponse(
        success=True,
        message="Transaction updated successfully!",
        data=build_detail(result.transaction, result.items),
    )


@app.patch(
    "/api/transactions/{transaction_id}/cooking-status",
    response_model=ApiResponse[TransactionResponse],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    tags=["Transactions"],
    summary="Update Cooking Status",
)
async def update_cooking_status(
    transaction_id: str,
    update: CookingStatusUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TransactionResponse]:
    """Record kitchen progress for a paid transaction."""
    transaction = await load_transaction(db, transaction_id)

    if transaction.status != TransactionStatus.COMPLETED:
        raise CookingStatusLocked()

    transaction.cooking_status = update.cooking_status
    transaction.updated_at = utcnow()
    await db.commit()

    logger.info(f"Transaction {transaction_id} cooking status: {update.cooking_status.value}")

    return ApiResponse(
        success=True,
        message="Cooking status updated successfully!",
        data=TransactionResponse.model_validate(transaction),
    )


@app.get(
    "/api/transactions/{transaction_id}/email-logs",
    response_model=ApiResponse[list[EmailLogResponse]],
    responses={404: {"model": ErrorResponse}},
    tags=["Transactions"],
)
async def list_email_logs(
    transaction_id: str,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[list[EmailLogResponse]]:
    """Payment emails already sent for a transaction."""
    await load_transaction(db, transaction_id)

    result = await db.execute(
        select(EmailLog)
        .where(EmailLog.transaction_id == transaction_id)
        .order_by(EmailLog.created_at)
    )

    return ApiResponse(
        success=True,
        message="Email logs retrieved successfully.",
        data=[EmailLogResponse.model_validate(log) for log in result.scalars().all()],
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "data": None},
    )


@app.exception_handler(OrderingError)
async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    """Render expected failures with their own status code."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and parameters are reported as 400."""
    errors: list[dict[str, Any]] = exc.errors()
    detail = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
        for err in errors
    )
    logger.warning(f"{request.method} {request.url.path} invalid request: {detail}")
    return error_response(400, f"Invalid request: {detail}")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    message = str(exc) if settings.debug else "Internal server error."
    return error_response(500, message)
