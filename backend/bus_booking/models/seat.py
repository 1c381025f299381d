"""
Seat and SeatLock models.

Key design decisions:
- Seat belongs to a Bus and is reused by every Schedule of that Bus.
  `is_available` is an administrative flag only (broken seat, crew seat);
  whether a seat is taken on a given trip is derived from bookings and locks
- SeatLock is a soft, time-bounded reservation of one seat on one schedule
  for one client session. The unique constraint on (schedule_id, seat_id)
  is the database backstop against two sessions locking the same seat:
  expired rows are deleted inside the locking transaction before inserts,
  so at most one row (and therefore one live lock) exists per seat per trip
"""

import enum

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from bus_booking.db.base import Base, TimestampMixin, UTCDateTime


class SeatType(str, enum.Enum):
    REGULAR = "REGULAR"
    PREMIUM = "PREMIUM"
    SLEEPER = "SLEEPER"


class Seat(Base, TimestampMixin):
    __tablename__ = "seats"

    id = Column(Integer, primary_key=True, index=True)
    bus_id = Column(Integer, ForeignKey("buses.id"), nullable=False, index=True)
    seat_number = Column(String(10), nullable=False)
    seat_type = Column(String(20), nullable=False, default=SeatType.REGULAR.value)
    is_available = Column(Boolean, nullable=False, default=True)

    bus = relationship("Bus", back_populates="seats")

    __table_args__ = (
        UniqueConstraint("bus_id", "seat_number", name="uq_seat_bus_number"),
        CheckConstraint(
            "seat_type IN ('REGULAR', 'PREMIUM', 'SLEEPER')", name="check_seat_type"
        ),
    )

    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, bus={self.bus_id}, number={self.seat_number})>"


class SeatLock(Base):
    __tablename__ = "seat_locks"

    id = Column(Integer, primary_key=True, index=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id"), nullable=False)
    seat_id = Column(Integer, ForeignKey("seats.id"), nullable=False)
    session_id = Column(String(128), nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)

    seat = relationship("Seat", lazy="joined")

    __table_args__ = (
        UniqueConstraint("schedule_id", "seat_id", name="uq_seat_lock_schedule_seat"),
        # Session release/renew and the passive expiry sweep
        Index("ix_seat_locks_session_id", "session_id"),
        Index("ix_seat_locks_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<SeatLock(schedule={self.schedule_id}, seat={self.seat_id}, "
            f"session={self.session_id}, expires={self.expires_at})>"
        )
