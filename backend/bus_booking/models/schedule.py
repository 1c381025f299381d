"""
Trip inventory models: routes, buses, schedules and per-schedule pricing.

Key design decisions:
- A Schedule is one dated trip of a Route operated by a Bus; its seats are
  the Bus's seats, so per-trip availability is derived, never stored
- PricingTier is unique per (schedule, seat_type); seats without a tier
  fall back to Schedule.base_price
- Index on (is_active, departure_time) for "bookable trips" lookups
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from bus_booking.db.base import Base, TimestampMixin, UTCDateTime


class Route(Base, TimestampMixin):
    __tablename__ = "routes"

    id = Column(Integer, primary_key=True, index=True)
    origin_name = Column(String(100), nullable=False)
    origin_code = Column(String(10), nullable=False)
    destination_name = Column(String(100), nullable=False)
    destination_code = Column(String(10), nullable=False)
    operator_name = Column(String(100), nullable=False)
    duration_minutes = Column(Integer, nullable=True)
    distance_km = Column(Integer, nullable=True)

    schedules = relationship("Schedule", back_populates="route")

    def __repr__(self) -> str:
        return f"<Route(id={self.id}, {self.origin_code}->{self.destination_code})>"


class Bus(Base, TimestampMixin):
    __tablename__ = "buses"

    id = Column(Integer, primary_key=True, index=True)
    bus_number = Column(String(20), unique=True, nullable=False)
    bus_type = Column(String(30), nullable=False, default="STANDARD")
    total_seats = Column(Integer, nullable=False)

    seats = relationship("Seat", back_populates="bus", order_by="Seat.seat_number")
    schedules = relationship("Schedule", back_populates="bus")

    __table_args__ = (
        CheckConstraint("total_seats > 0", name="check_bus_total_seats_positive"),
    )

    def __repr__(self) -> str:
        return f"<Bus(id={self.id}, number={self.bus_number})>"


class Schedule(Base, TimestampMixin):
    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True, index=True)
    route_id = Column(Integer, ForeignKey("routes.id"), nullable=False, index=True)
    bus_id = Column(Integer, ForeignKey("buses.id"), nullable=False, index=True)
    departure_time = Column(UTCDateTime, nullable=False)
    arrival_time = Column(UTCDateTime, nullable=False)
    base_price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    route = relationship("Route", back_populates="schedules", lazy="joined")
    bus = relationship("Bus", back_populates="schedules", lazy="joined")
    pricing_tiers = relationship("PricingTier", back_populates="schedule", lazy="selectin")

    __table_args__ = (
        CheckConstraint("base_price >= 0", name="check_schedule_base_price_non_negative"),
        CheckConstraint("arrival_time > departure_time", name="check_schedule_arrival_after_departure"),
        Index("ix_schedules_active_departure", "is_active", "departure_time"),
    )

    def price_for(self, seat_type: str):
        """Price of a seat type on this trip, falling back to the base price."""
        for tier in self.pricing_tiers:
            if tier.seat_type == seat_type:
                return tier.price
        return self.base_price

    def __repr__(self) -> str:
        return f"<Schedule(id={self.id}, bus={self.bus_id}, departs={self.departure_time})>"


class PricingTier(Base, TimestampMixin):
    __tablename__ = "pricing_tiers"

    id = Column(Integer, primary_key=True, index=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id"), nullable=False)
    seat_type = Column(String(20), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    schedule = relationship("Schedule", back_populates="pricing_tiers")

    __table_args__ = (
        UniqueConstraint("schedule_id", "seat_type", name="uq_pricing_tier_schedule_seat_type"),
        CheckConstraint("price >= 0", name="check_pricing_tier_price_non_negative"),
    )
