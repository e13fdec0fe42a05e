from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from sqlalchemy import desc, func, or_
from starlette.concurrency import run_in_threadpool
from typing import Optional
import logging

import stripe

from app.database import get_db
from app.models import Payment, PaymentStatus, Refund, User, UserRole
from app.payments.schemas import (
    PaymentData, PaymentHistoryData, PaymentIntentCreate, PaymentIntentData, RefundCreate, RefundData, WebhookAck
)
from app.auth.dependencies import get_current_user, require_admin
from app.core.rate_limit import rate_limit, RateLimitPresets
from app.core.responses import ApiResponse, paginate, resolve_pagination, success_response
from app.integrations import stripe_client
from app.integrations.stripe_client import PaymentProviderNotConfigured
from app.services.activity_service import record_activity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])

FINAL_STATUSES = (PaymentStatus.COMPLETED, PaymentStatus.CANCELED)

HISTORY_STATUS_LABELS = {
    PaymentStatus.COMPLETED: "completed",
    PaymentStatus.REFUNDED: "refunded",
    PaymentStatus.FAILED: "failed",
    PaymentStatus.CANCELED: "failed",
    PaymentStatus.PENDING: "pending",
    PaymentStatus.PROCESSING: "pending",
}

WEBHOOK_EVENT_STATUSES = {
    "payment_intent.succeeded": PaymentStatus.COMPLETED,
    "payment_intent.payment_failed": PaymentStatus.FAILED,
    "payment_intent.canceled": PaymentStatus.CANCELED,
}


async def call_stripe(fn, *args, **kwargs):
    """Run a blocking Stripe SDK call and translate provider failures into API errors."""
    try:
        return await run_in_threadpool(fn, *args, **kwargs)
    except PaymentProviderNotConfigured as e:
        logger.error(f"Payment provider unavailable: {e}")
        raise HTTPException(status_code=503, detail="Payment service is not configured")
    except stripe.StripeError as e:
        logger.error(f"Stripe request failed: {e}")
        raise HTTPException(status_code=502, detail="Payment provider error")


def get_payment_for_user(db: Session, payment_id: str, current_user: User) -> Payment:
    payment = db.query(Payment).filter(
        or_(Payment.id == payment_id, Payment.stripe_intent_id == payment_id)
    ).first()
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    if current_user.role != UserRole.ADMIN and payment.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="You do not have permission to perform this action")
    return payment


def ensure_not_final(payment: Payment) -> None:
    if payment.status in FINAL_STATUSES:
        raise HTTPException(status_code=400, detail=f"Payment is already {payment.status.value.lower()}")

# =====================================================
# PAYMENT INTENTS
# =====================================================

@router.post(
    "/intents",
    response_model=ApiResponse[PaymentIntentData],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(RateLimitPresets.STRICT))],
)
async def create_intent(
    payload: PaymentIntentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    amount_cents = stripe_client.to_cents(payload.amount)
    if amount_cents < stripe_client.MIN_AMOUNT_CENTS:
        raise HTTPException(status_code=400, detail="Amount must be at least 0.50")

    currency = payload.currency.lower()
    intent = await call_stripe(
        stripe_client.create_payment_intent,
        amount_cents,
        currency,
        payload.description,
        {"user_id": current_user.id, "case_number": payload.case_number or ""},
    )

    payment = Payment(
        user_id=current_user.id,
        stripe_intent_id=intent.id,
        amount=amount_cents,
        currency=currency,
        description=payload.description,
        status=PaymentStatus.PENDING,
        case_number=payload.case_number,
        client_secret=intent.client_secret,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)

    logger.info(f"Payment {payment.id} ({amount_cents} {currency}) created for {current_user.id}")
    return success_response(
        {"payment": payment, "client_secret": intent.client_secret},
        "Payment intent created successfully",
    )

@router.get(
    "/intents/{payment_id}",
    response_model=ApiResponse[PaymentIntentData],
    dependencies=[Depends(rate_limit(RateLimitPresets.STANDARD))],
)
async def get_intent(
    payment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    payment = get_payment_for_user(db, payment_id, current_user)
    return success_response(
        {"payment": payment, "client_secret": payment.client_secret},
        "Payment retrieved successfully",
    )

@router.post(
    "/intents/{payment_id}/confirm",
    response_model=ApiResponse[PaymentData],
    dependencies=[Depends(rate_limit(RateLimitPresets.STANDARD))],
)
async def confirm_intent(
    payment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Sync the local payment with the provider's view of the intent."""
    payment = get_payment_for_user(db, payment_id, current_user)
    ensure_not_final(payment)

    intent = await call_stripe(stripe_client.retrieve_payment_intent, payment.stripe_intent_id)
    payment.status = stripe_client.map_intent_status(intent.status)
    db.commit()
    db.refresh(payment)

    logger.info(f"Payment {payment.id} confirmed with status {payment.status.value}")
    return success_response({"payment": payment}, "Payment status updated")

@router.post(
    "/intents/{payment_id}/cancel",
    response_model=ApiResponse[PaymentData],
    dependencies=[Depends(rate_limit(RateLimitPresets.STANDARD))],
)
async def cancel_intent(
    payment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    payment = get_payment_for_user(db, payment_id, current_user)
    ensure_not_final(payment)

    await call_stripe(stripe_client.cancel_payment_intent, payment.stripe_intent_id)
    payment.status = PaymentStatus.CANCELED
    db.commit()
    db.refresh(payment)

    logger.info(f"Payment {payment.id} canceled by {current_user.id}")
    return success_response({"payment": payment}, "Payment canceled successfully")

# =====================================================
# HISTORY AND REFUNDS
# =====================================================

@router.get(
    "/history",
    response_model=ApiResponse[PaymentHistoryData],
    dependencies=[Depends(rate_limit(RateLimitPresets.STANDARD))],
)
async def payment_history(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    user_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    page, limit, offset = resolve_pagination(page, limit)
    query = db.query(Payment)
    if current_user.role == UserRole.ADMIN:
        if user_id:
            query = query.filter(Payment.user_id == user_id)
    else:
        query = query.filter(Payment.user_id == current_user.id)

    total = query.count()
    payments = query.order_by(desc(Payment.created_at)).offset(offset).limit(limit).all()
    items = [
        {
            "id": payment.id,
            "amount": payment.amount / 100,
            "currency": payment.currency,
            "description": payment.description,
            "status": HISTORY_STATUS_LABELS[payment.status],
            "case_number": payment.case_number,
            "created_at": payment.created_at,
        }
        for payment in payments
    ]
    return success_response(
        {"payments": items, "pagination": paginate(page, limit, total)},
        "Payment history retrieved successfully",
    )

@router.post(
    "/refunds",
    response_model=ApiResponse[RefundData],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(RateLimitPresets.STRICT))],
)
async def create_refund(
    payload: RefundCreate,
    request: Request,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    payment = get_payment_for_user(db, payload.payment_id, current_user)
    if payment.status != PaymentStatus.COMPLETED:
        raise HTTPException(status_code=400, detail="Only completed payments can be refunded")

    already_refunded = db.query(func.coalesce(func.sum(Refund.amount), 0)).filter(
        Refund.payment_id == payment.id
    ).scalar()
    remaining = payment.amount - already_refunded
    amount_cents = stripe_client.to_cents(payload.amount) if payload.amount else remaining
    if amount_cents <= 0 or amount_cents > remaining:
        raise HTTPException(status_code=400, detail="Refund amount exceeds the refundable balance")

    refund = await call_stripe(
        stripe_client.create_refund, payment.stripe_intent_id, amount_cents, payload.reason
    )

    record = Refund(
        payment_id=payment.id,
        stripe_refund_id=refund.id,
        amount=amount_cents,
        reason=payload.reason,
        status=refund.status,
        created_by_id=current_user.id,
    )
    db.add(record)
    if already_refunded + amount_cents >= payment.amount:
        payment.status = PaymentStatus.REFUNDED
    record_activity(
        db, current_user.id, "PAYMENT_REFUNDED",
        f"Refunded {amount_cents} {payment.currency} on payment {payment.id}",
        request=request,
        details={"payment_id": payment.id, "amount": amount_cents},
    )
    db.commit()
    db.refresh(record)
    db.refresh(payment)

    logger.info(f"Refund {record.id} of {amount_cents} issued on payment {payment.id} by {current_user.id}")
    return success_response({"refund": record, "payment": payment}, "Refund created successfully")

# =====================================================
# WEBHOOK
# =====================================================

@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db)
):
    """Apply Stripe payment intent events to the matching payment."""
    payload = await request.body()
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="Missing Stripe-Signature header")
    try:
        event = stripe_client.construct_webhook_event(payload, stripe_signature)
    except PaymentProviderNotConfigured as e:
        logger.error(f"Webhook received but provider is not configured: {e}")
        raise HTTPException(status_code=503, detail="Payment service is not configured")
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"Rejected Stripe webhook: {e}")
        raise HTTPException(status_code=400, detail="Invalid webhook signature")

    new_status = WEBHOOK_EVENT_STATUSES.get(event["type"])
    if new_status is None:
        logger.info(f"Ignoring Stripe event {event['type']}")
        return {"received": True}

    intent_id = event["data"]["object"]["id"]
    payment = db.query(Payment).filter(Payment.stripe_intent_id == intent_id).first()
    if not payment:
        logger.warning(f"Stripe event {event['type']} for unknown intent {intent_id}")
        return {"received": True}

    if payment.status != PaymentStatus.REFUNDED:
        payment.status = new_status
        db.commit()
    logger.info(f"Payment {payment.id} set to {payment.status.value} from {event['type']}")
    return {"received": True}
