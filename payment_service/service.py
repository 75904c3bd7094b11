"""
Payment lifecycle.

    PENDING -> COMPLETED -> REFUNDED
    PENDING -> FAILED
    PENDING -> CANCELLED

Every mutating operation loads the payment row with ``SELECT ... FOR UPDATE``
and either commits all of its effects (status, stock decrements) or rolls
back all of them. Events are published only after a successful commit.
"""
import logging
import re
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payment_service.catalog import decrement_stock_if_available
from payment_service.config import PAYMENT_TOKEN_EXPIRATION_SECONDS
from payment_service.errors import (
    ValidationError,
    NotFoundError,
    TokenMismatchError,
    InvalidStateError,
    AlreadyRefundedError,
    InsufficientStockError,
    ForbiddenError,
)
from payment_service.messaging import publish_event, PAYMENT_EXCHANGE
from payment_service.models import Payment, PaymentStatus, User
from payment_service.schemas import (
    PaymentInitiate,
    PaymentConfirm,
    ShippingDetails,
    InitiationResult,
    ConfirmationResult,
    dump_line_items,
    parse_line_items,
)
from payment_service.security import Principal, issue_payment_token, verify_payment_token

logger = logging.getLogger(__name__)

_CARD_NUMBER = re.compile(r"\d{16}", re.ASCII)
_CARD_NETWORKS = {"3": "AMEX", "4": "VISA", "5": "MASTERCARD", "6": "DISCOVER"}

def _strip_card_number(card_number: str) -> str:
    return re.sub(r"\s+", "", card_number or "")

def authorize_card(card_number: str) -> bool:
    """Stand-in for a payment gateway: approve exactly-16-digit card numbers."""
    return _CARD_NUMBER.fullmatch(_strip_card_number(card_number)) is not None

def card_network(card_number: str) -> str:
    digits = _strip_card_number(card_number)
    return _CARD_NETWORKS.get(digits[:1], "UNKNOWN")

def _event(event_type: str, payment: Payment) -> dict:
    return {
        "event_id": str(uuid4()),
        "event_type": event_type,
        "timestamp": datetime.utcnow().isoformat(),
        "payment_id": payment.id,
        "user_id": payment.user_id,
        "status": payment.status.value,
        "transaction_id": payment.transaction_id,
        "total_amount": str(payment.total_amount),
    }

async def _load_payment(db: AsyncSession, payment_id: int, for_update: bool = False) -> Payment:
    stmt = select(Payment).where(Payment.id == payment_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(stmt)
    payment = result.scalar_one_or_none()
    if not payment:
        raise NotFoundError(f"Payment not found with id: {payment_id}")
    return payment

def _apply_shipping(payment: Payment, details: ShippingDetails):
    for field in ShippingDetails.model_fields:
        value = getattr(details, field)
        if value is not None:
            setattr(payment, field, value)

async def _complete_payment(db: AsyncSession, payment: Payment, card_number: Optional[str] = None):
    payment.status = PaymentStatus.COMPLETED
    payment.status_message = "Payment processed successfully"
    payment.transaction_id = str(uuid4())
    payment.completed_at = datetime.utcnow()
    if card_number:
        payment.card_last_four = _strip_card_number(card_number)[-4:]
        payment.card_type = card_network(card_number)

    for item in parse_line_items(payment.items):
        affected = await decrement_stock_if_available(db, item.product_id, item.quantity)
        if affected == 0:
            logger.warning(
                f"Payment {payment.id}: insufficient stock for product {item.product_id} "
                f"(requested {item.quantity})"
            )
            raise InsufficientStockError(item.product_id, item.quantity)

async def initiate_payment(db: AsyncSession, principal: Principal, request: PaymentInitiate) -> InitiationResult:
    if request.total_amount is None or request.total_amount <= 0:
        raise ValidationError("Total amount must be greater than zero")
    if not request.items:
        raise ValidationError("At least one line item is required")

    user = await db.get(User, principal.user_id)
    if not user:
        raise NotFoundError(f"User not found with id: {principal.user_id}")

    payment = Payment(
        user_id=user.id,
        user_email=user.email,
        user_name=user.full_name,
        items=dump_line_items(request.items),
        total_amount=request.total_amount,
        tax_amount=request.tax_amount,
        shipping_cost=request.shipping_cost,
        payment_method=request.payment_method,
        status=PaymentStatus.PENDING,
        status_message="Payment token generated, awaiting confirmation",
        created_at=datetime.utcnow(),
    )
    _apply_shipping(payment, request)
    db.add(payment)
    try:
        # The token is scoped to the payment id, which exists only after flush
        await db.flush()
        payment.payment_token = issue_payment_token(payment.id, user.id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Payment {payment.id} initiated by user {user.id} for {payment.total_amount}")
    await publish_event(PAYMENT_EXCHANGE, "payment.initiated", _event("PaymentInitiated", payment))

    return InitiationResult(
        payment_id=payment.id,
        payment_token=payment.payment_token,
        status=payment.status,
        total_amount=payment.total_amount,
        expires_in=PAYMENT_TOKEN_EXPIRATION_SECONDS,
    )

async def confirm_payment(db: AsyncSession, payment_id: int, token: Optional[str], request: PaymentConfirm) -> ConfirmationResult:
    verify_payment_token(token)

    try:
        payment = await _load_payment(db, payment_id, for_update=True)
        if payment.status is not PaymentStatus.PENDING:
            raise InvalidStateError("Payment already processed or cancelled")
        if payment.payment_token != token:
            raise TokenMismatchError("Payment token does not belong to this payment")

        _apply_shipping(payment, request)
        if authorize_card(request.card_number):
            await _complete_payment(db, payment, request.card_number)
        else:
            payment.status = PaymentStatus.FAILED
            payment.status_message = "Payment declined by card issuer"
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if payment.status is PaymentStatus.COMPLETED:
        logger.info(f"Payment {payment.id} completed, transaction {payment.transaction_id}")
        await publish_event(PAYMENT_EXCHANGE, "payment.completed", _event("PaymentCompleted", payment))
    else:
        logger.info(f"Payment {payment.id} declined")
        await publish_event(PAYMENT_EXCHANGE, "payment.failed", _event("PaymentFailed", payment))

    return ConfirmationResult(
        success=payment.status is PaymentStatus.COMPLETED,
        message=payment.status_message,
        transaction_id=payment.transaction_id,
        status=payment.status,
    )

async def admin_confirm_payment(db: AsyncSession, payment_id: int) -> ConfirmationResult:
    """Complete a stuck pending payment without a token or card check."""
    try:
        payment = await _load_payment(db, payment_id, for_update=True)
        if payment.status is not PaymentStatus.PENDING:
            raise InvalidStateError("Payment already processed or cancelled")
        await _complete_payment(db, payment)
        payment.status_message = "Payment confirmed by administrator"
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Payment {payment.id} confirmed by administrator, transaction {payment.transaction_id}")
    await publish_event(PAYMENT_EXCHANGE, "payment.completed", _event("PaymentCompleted", payment))

    return ConfirmationResult(
        success=True,
        message=payment.status_message,
        transaction_id=payment.transaction_id,
        status=payment.status,
    )

async def refund_payment(db: AsyncSession, payment_id: int) -> Payment:
    # Stock is not restored on refund; restocking is handled outside this service.
    try:
        payment = await _load_payment(db, payment_id, for_update=True)
        if payment.refunded_at is not None:
            raise AlreadyRefundedError("Payment has already been refunded")
        if payment.status is not PaymentStatus.COMPLETED:
            raise InvalidStateError("Only completed payments can be refunded")

        payment.status = PaymentStatus.REFUNDED
        payment.status_message = "Payment refunded"
        payment.refunded_at = datetime.utcnow()
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Payment {payment.id} refunded")
    await publish_event(PAYMENT_EXCHANGE, "payment.refunded", _event("PaymentRefunded", payment))
    return payment

async def cancel_payment(db: AsyncSession, principal: Principal, payment_id: int) -> Payment:
    try:
        payment = await _load_payment(db, payment_id, for_update=True)
        if payment.user_id != principal.user_id and not principal.is_admin:
            raise ForbiddenError("Not allowed to cancel this payment")
        if payment.status is not PaymentStatus.PENDING:
            raise InvalidStateError("Only pending payments can be cancelled")

        payment.status = PaymentStatus.CANCELLED
        payment.status_message = "Payment cancelled by user"
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Payment {payment.id} cancelled by user {principal.user_id}")
    await publish_event(PAYMENT_EXCHANGE, "payment.cancelled", _event("PaymentCancelled", payment))
    return payment

async def get_payment(db: AsyncSession, principal: Principal, payment_id: int) -> Payment:
    payment = await _load_payment(db, payment_id)
    if payment.user_id != principal.user_id and not principal.is_admin:
        raise ForbiddenError("Not allowed to view this payment")
    return payment

def _newest_first(stmt):
    return stmt.order_by(Payment.created_at.desc(), Payment.id.desc())

async def list_user_payments(db: AsyncSession, principal: Principal) -> List[Payment]:
    result = await db.execute(_newest_first(select(Payment).where(Payment.user_id == principal.user_id)))
    return list(result.scalars().all())

async def list_payments_for_user(
    db: AsyncSession, principal: Principal, user_id: int, status: Optional[PaymentStatus] = None
) -> List[Payment]:
    """Payment history of one user, optionally narrowed to a status. Owner or admin only."""
    if user_id != principal.user_id and not principal.is_admin:
        raise ForbiddenError("Not allowed to view payments of this user")
    stmt = select(Payment).where(Payment.user_id == user_id)
    if status is not None:
        stmt = stmt.where(Payment.status == status)
    result = await db.execute(_newest_first(stmt))
    return list(result.scalars().all())

async def list_all_payments(db: AsyncSession) -> List[Payment]:
    result = await db.execute(_newest_first(select(Payment)))
    return list(result.scalars().all())

async def list_payments_by_status(db: AsyncSession, status: PaymentStatus) -> List[Payment]:
    result = await db.execute(_newest_first(select(Payment).where(Payment.status == status)))
    return list(result.scalars().all())
