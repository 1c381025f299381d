"""Initial schema: routes, buses, schedules, seats, seat locks, bookings, payments.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Routes table
    op.create_table(
        "routes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("origin_name", sa.String(100), nullable=False),
        sa.Column("origin_code", sa.String(10), nullable=False),
        sa.Column("destination_name", sa.String(100), nullable=False),
        sa.Column("destination_code", sa.String(10), nullable=False),
        sa.Column("operator_name", sa.String(100), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("distance_km", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_routes_id", "routes", ["id"])

    # Buses table
    op.create_table(
        "buses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("bus_number", sa.String(20), nullable=False, unique=True),
        sa.Column("bus_type", sa.String(30), nullable=False, server_default=sa.text("'STANDARD'")),
        sa.Column("total_seats", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("total_seats > 0", name="check_bus_total_seats_positive"),
    )
    op.create_index("ix_buses_id", "buses", ["id"])

    # Schedules table
    op.create_table(
        "schedules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("route_id", sa.Integer(), sa.ForeignKey("routes.id"), nullable=False),
        sa.Column("bus_id", sa.Integer(), sa.ForeignKey("buses.id"), nullable=False),
        sa.Column("departure_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("arrival_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("base_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("base_price >= 0", name="check_schedule_base_price_non_negative"),
        sa.CheckConstraint("arrival_time > departure_time", name="check_schedule_arrival_after_departure"),
    )
    op.create_index("ix_schedules_id", "schedules", ["id"])
    op.create_index("ix_schedules_route_id", "schedules", ["route_id"])
    op.create_index("ix_schedules_bus_id", "schedules", ["bus_id"])
    # Bookable trips: WHERE is_active AND departure_time > now()
    op.create_index("ix_schedules_active_departure", "schedules", ["is_active", "departure_time"])

    # Pricing tiers table
    op.create_table(
        "pricing_tiers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("schedule_id", sa.Integer(), sa.ForeignKey("schedules.id"), nullable=False),
        sa.Column("seat_type", sa.String(20), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("schedule_id", "seat_type", name="uq_pricing_tier_schedule_seat_type"),
        sa.CheckConstraint("price >= 0", name="check_pricing_tier_price_non_negative"),
    )
    op.create_index("ix_pricing_tiers_id", "pricing_tiers", ["id"])

    # Seats table
    op.create_table(
        "seats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("bus_id", sa.Integer(), sa.ForeignKey("buses.id"), nullable=False),
        sa.Column("seat_number", sa.String(10), nullable=False),
        sa.Column("seat_type", sa.String(20), nullable=False, server_default=sa.text("'REGULAR'")),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("bus_id", "seat_number", name="uq_seat_bus_number"),
        sa.CheckConstraint("seat_type IN ('REGULAR', 'PREMIUM', 'SLEEPER')", name="check_seat_type"),
    )
    op.create_index("ix_seats_id", "seats", ["id"])
    op.create_index("ix_seats_bus_id", "seats", ["bus_id"])

    # Seat locks table
    op.create_table(
        "seat_locks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("schedule_id", sa.Integer(), sa.ForeignKey("schedules.id"), nullable=False),
        sa.Column("seat_id", sa.Integer(), sa.ForeignKey("seats.id"), nullable=False),
        sa.Column("session_id", sa.String(128), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        # One row per seat per trip: the backstop against two sessions
        # locking the same seat when their checks interleave
        sa.UniqueConstraint("schedule_id", "seat_id", name="uq_seat_lock_schedule_seat"),
    )
    op.create_index("ix_seat_locks_id", "seat_locks", ["id"])
    op.create_index("ix_seat_locks_session_id", "seat_locks", ["session_id"])
    op.create_index("ix_seat_locks_expires_at", "seat_locks", ["expires_at"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("pnr", sa.String(25), nullable=False),
        sa.Column("schedule_id", sa.Integer(), sa.ForeignKey("schedules.id"), nullable=False),
        sa.Column("session_id", sa.String(128), nullable=False),
        sa.Column("passenger_name", sa.String(255), nullable=False),
        sa.Column("passenger_phone", sa.String(50), nullable=False),
        sa.Column("passenger_email", sa.String(255), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("discount_code", sa.String(50), nullable=True),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_intent_id", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        *_timestamps(),
        sa.UniqueConstraint("pnr", name="uq_bookings_pnr"),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        sa.CheckConstraint("status IN ('PENDING', 'CONFIRMED', 'CANCELLED')", name="check_booking_status"),
        sa.CheckConstraint(
            "payment_status IN ('PENDING', 'COMPLETED', 'FAILED')", name="check_booking_payment_status"
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_schedule_id", "bookings", ["schedule_id"])
    op.create_index("ix_bookings_passenger_email", "bookings", ["passenger_email"])
    # Seat availability: active bookings of one trip
    op.create_index("ix_bookings_schedule_status", "bookings", ["schedule_id", "status"])

    # Booking seats table
    op.create_table(
        "booking_seats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("seat_id", sa.Integer(), sa.ForeignKey("seats.id"), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.UniqueConstraint("booking_id", "seat_id", name="uq_booking_seat"),
        sa.CheckConstraint("price >= 0", name="check_booking_seat_price_non_negative"),
    )
    op.create_index("ix_booking_seats_id", "booking_seats", ["id"])
    op.create_index("ix_booking_seats_booking_id", "booking_seats", ["booking_id"])
    op.create_index("ix_booking_seats_seat_id", "booking_seats", ["seat_id"])

    # Booking passengers table
    op.create_table(
        "booking_passengers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("seat_id", sa.Integer(), sa.ForeignKey("seats.id"), nullable=False),
        sa.Column("passenger_name", sa.String(255), nullable=False),
    )
    op.create_index("ix_booking_passengers_id", "booking_passengers", ["id"])
    op.create_index("ix_booking_passengers_booking_id", "booking_passengers", ["booking_id"])

    # Payments table
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("provider", sa.String(20), nullable=False),
        sa.Column("transaction_id", sa.String(255), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'usd'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("status IN ('PENDING', 'COMPLETED', 'FAILED')", name="check_payment_status"),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])
    # Webhook lookups by payment intent id
    op.create_index("ix_payments_transaction_id", "payments", ["transaction_id"])


def downgrade() -> None:
    op.drop_table("payments")
    op.drop_table("booking_passengers")
    op.drop_table("booking_seats")
    op.drop_table("bookings")
    op.drop_table("seat_locks")
    op.drop_table("seats")
    op.drop_table("pricing_tiers")
    op.drop_table("schedules")
    op.drop_table("buses")
    op.drop_table("routes")
