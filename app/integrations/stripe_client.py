import logging
from typing import Optional

import stripe

from app import config
from app.models import PaymentStatus

logger = logging.getLogger(__name__)

MIN_AMOUNT_CENTS = 50

# Stripe PaymentIntent.status -> our PaymentStatus
INTENT_STATUS_MAP = {
    "succeeded": PaymentStatus.COMPLETED,
    "processing": PaymentStatus.PROCESSING,
    "requires_payment_method": PaymentStatus.PENDING,
    "requires_confirmation": PaymentStatus.PENDING,
    "requires_action": PaymentStatus.PENDING,
    "requires_capture": PaymentStatus.PROCESSING,
    "canceled": PaymentStatus.CANCELED,
}


class PaymentProviderNotConfigured(Exception):
    pass


def _configure() -> None:
    if not config.STRIPE_SECRET_KEY:
        raise PaymentProviderNotConfigured("Stripe is not configured")
    stripe.api_key = config.STRIPE_SECRET_KEY


def to_cents(amount: float) -> int:
    return int(round(amount * 100))


def map_intent_status(intent_status: str) -> PaymentStatus:
    return INTENT_STATUS_MAP.get(intent_status, PaymentStatus.FAILED)


def create_payment_intent(amount_cents: int, currency: str, description: str, metadata: dict):
    _configure()
    intent = stripe.PaymentIntent.create(
        amount=amount_cents,
        currency=currency,
        description=description,
        metadata=metadata,
        automatic_payment_methods={"enabled": True},
    )
    logger.info(f"Stripe payment intent {intent.id} created for {amount_cents} {currency}")
    return intent


def retrieve_payment_intent(intent_id: str):
    _configure()
    return stripe.PaymentIntent.retrieve(intent_id)


def cancel_payment_intent(intent_id: str):
    _configure()
    return stripe.PaymentIntent.cancel(intent_id)


def create_refund(intent_id: str, amount_cents: Optional[int] = None, reason: Optional[str] = None):
    _configure()
    params = {"payment_intent": intent_id}
    if amount_cents:
        params["amount"] = amount_cents
    if reason:
        params["reason"] = reason
    refund = stripe.Refund.create(**params)
    logger.info(f"Stripe refund {refund.id} created for intent {intent_id}")
    return refund


def construct_webhook_event(payload: bytes, signature: str):
    if not config.STRIPE_WEBHOOK_SECRET:
        raise PaymentProviderNotConfigured("Stripe webhook secret is not configured")
    return stripe.Webhook.construct_event(payload, signature, config.STRIPE_WEBHOOK_SECRET)
