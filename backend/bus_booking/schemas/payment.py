"""
Pydantic schemas for payment confirmation.
"""

from pydantic import BaseModel, Field

from bus_booking.schemas.booking import BookingDetailResponse


class PaymentConfirmRequest(BaseModel):
    payment_intent_id: str = Field(..., min_length=1, max_length=255)


class PaymentConfirmResponse(BaseModel):
    booking: BookingDetailResponse
    payment_status: str


class WebhookAck(BaseModel):
    received: bool = True
