"""
Booking, BookingSeat, BookingPassenger and Payment models.

Key design decisions:
- Unique constraint on `pnr`: the reference code is random, so collisions are
  detected by the database and the booking transaction is retried
- Status fields allow cancellation without deleting records (audit trail)
- BookingSeat snapshots the price charged; later schedule price changes never
  touch it
- A Booking may collect several Payment attempts; the payment intent id is
  the lookup key for processor callbacks
"""

import enum

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from bus_booking.db.base import Base, TimestampMixin, UTCDateTime


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# Bookings in these states hold their seats
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    pnr = Column(String(25), nullable=False)
    schedule_id = Column(Integer, ForeignKey("schedules.id"), nullable=False, index=True)
    session_id = Column(String(128), nullable=False)
    passenger_name = Column(String(255), nullable=False)
    passenger_phone = Column(String(50), nullable=False)
    passenger_email = Column(String(255), nullable=False, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    discount_code = Column(String(50), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    payment_intent_id = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    schedule = relationship("Schedule", lazy="joined")
    seats = relationship(
        "BookingSeat", back_populates="booking", lazy="selectin", cascade="all, delete-orphan"
    )
    passengers = relationship(
        "BookingPassenger", back_populates="booking", lazy="selectin", cascade="all, delete-orphan"
    )
    payments = relationship(
        "Payment", back_populates="booking", lazy="selectin", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("pnr", name="uq_bookings_pnr"),
        CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED')", name="check_booking_status"
        ),
        CheckConstraint(
            "payment_status IN ('PENDING', 'COMPLETED', 'FAILED')",
            name="check_booking_payment_status",
        ),
        Index("ix_bookings_schedule_status", "schedule_id", "status"),
    )

    @property
    def seat_ids(self) -> list[int]:
        return [booking_seat.seat_id for booking_seat in self.seats]

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, pnr={self.pnr}, status={self.status})>"


class BookingSeat(Base):
    __tablename__ = "booking_seats"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    seat_id = Column(Integer, ForeignKey("seats.id"), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)

    booking = relationship("Booking", back_populates="seats")
    seat = relationship("Seat", lazy="joined")

    __table_args__ = (
        UniqueConstraint("booking_id", "seat_id", name="uq_booking_seat"),
        CheckConstraint("price >= 0", name="check_booking_seat_price_non_negative"),
    )


class BookingPassenger(Base):
    __tablename__ = "booking_passengers"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    seat_id = Column(Integer, ForeignKey("seats.id"), nullable=False)
    passenger_name = Column(String(255), nullable=False)

    booking = relationship("Booking", back_populates="passengers")
    seat = relationship("Seat", lazy="joined")


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    provider = Column(String(20), nullable=False)  # stripe, mock
    transaction_id = Column(String(255), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    processed_at = Column(UTCDateTime, nullable=True)

    booking = relationship("Booking", back_populates="payments")

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'COMPLETED', 'FAILED')", name="check_payment_status"
        ),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, booking={self.booking_id}, status={self.status})>"
