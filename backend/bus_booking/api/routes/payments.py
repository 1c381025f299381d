"""
Payment confirmation endpoints: mock client confirm and Stripe webhooks.
"""

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from bus_booking.api.deps import rate_limited
from bus_booking.core.config import get_settings
from bus_booking.core.logging import get_logger
from bus_booking.db.session import get_db
from bus_booking.schemas.booking import booking_detail
from bus_booking.schemas.payment import PaymentConfirmRequest, PaymentConfirmResponse, WebhookAck
from bus_booking.services.payment_processors import MockPaymentProcessor, verify_webhook_signature
from bus_booking.services.payment_service import confirm_mock_payment, handle_webhook_event
from bus_booking.services.strategy_factory import get_mock_processor

logger = get_logger(__name__)
router = APIRouter(tags=["Payments"])


@router.post(
    "/payments/confirm",
    response_model=PaymentConfirmResponse,
    dependencies=[Depends(rate_limited("payments_confirm"))],
)
async def confirm_payment(
    confirm_data: PaymentConfirmRequest,
    db: AsyncSession = Depends(get_db),
    processor: MockPaymentProcessor = Depends(get_mock_processor),
):
    """
    Complete a mock payment and confirm its booking.

    Stripe payments are confirmed by webhook; their intents are rejected
    here with 400. A declined mock charge cancels the booking and returns 402.
    """
    booking = await confirm_mock_payment(db, confirm_data.payment_intent_id, processor)
    return PaymentConfirmResponse(
        booking=booking_detail(booking),
        payment_status=booking.payment_status,
    )


@router.post("/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="stripe-signature"),
    db: AsyncSession = Depends(get_db),
):
    """Verify and apply a Stripe payment_intent event."""
    if not stripe_signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header",
        )

    payload = await request.body()
    try:
        event = verify_webhook_signature(payload, stripe_signature, get_settings().STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("webhook_signature_invalid", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")

    await handle_webhook_event(db, event)
    return WebhookAck(received=True)
