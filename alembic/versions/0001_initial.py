"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("role", sa.String(length=30), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"], unique=False)

    op.create_table(
        "movies",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="120"),
        sa.Column("rating", sa.String(length=10), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "theaters",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("city", sa.String(length=80), nullable=False),
        sa.Column("owner_user_id", sa.String(length=36), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_theaters_city", "theaters", ["city"])
    op.create_index("ix_theaters_owner_user_id", "theaters", ["owner_user_id"])

    op.create_table(
        "halls",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("theater_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=60), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("theater_id", "name", name="uq_hall_theater_name"),
    )
    op.create_index("ix_halls_theater_id", "halls", ["theater_id"])

    op.create_table(
        "hall_seats",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("hall_id", sa.String(length=36), sa.ForeignKey("halls.id", ondelete="CASCADE"), nullable=False),
        sa.Column("row", sa.String(length=4), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("seat_type", sa.String(length=12), nullable=False, server_default="regular"),
        sa.UniqueConstraint("hall_id", "row", "number", name="uq_hall_seat_position"),
    )
    op.create_index("ix_hall_seats_hall_id", "hall_seats", ["hall_id"])

    op.create_table(
        "showtimes",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("movie_id", sa.String(length=36), nullable=False),
        sa.Column("theater_id", sa.String(length=36), nullable=False),
        sa.Column("hall_id", sa.String(length=36), nullable=False),
        sa.Column("hall_name", sa.String(length=60), nullable=False),
        sa.Column("date_str", sa.String(length=10), nullable=False),
        sa.Column("start", sa.String(length=5), nullable=False),
        sa.Column("end", sa.String(length=5), nullable=False),
        sa.Column("base_price", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("price_regular", sa.Integer(), nullable=False),
        sa.Column("price_premium", sa.Integer(), nullable=False),
        sa.Column("price_vip", sa.Integer(), nullable=False),
        sa.Column("available_regular", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("available_premium", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("available_vip", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("available_wheelchair", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=12), nullable=False, server_default="scheduled"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_showtimes_movie_id", "showtimes", ["movie_id"])
    op.create_index("ix_showtimes_theater_id", "showtimes", ["theater_id"])
    op.create_index("ix_showtimes_hall_id", "showtimes", ["hall_id"])
    op.create_index("ix_showtimes_date_str", "showtimes", ["date_str"])
    op.create_index("ix_showtimes_hall_schedule", "showtimes", ["theater_id", "hall_name", "date_str"])

    op.create_table(
        "booked_seats",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("showtime_id", sa.String(length=36), nullable=False),
        sa.Column("row", sa.String(length=4), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("seat_type", sa.String(length=12), nullable=False),
        sa.Column("booking_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("showtime_id", "row", "number", name="uq_booked_seat_showtime_position"),
    )
    op.create_index("ix_booked_seats_showtime_id", "booked_seats", ["showtime_id"])
    op.create_index("ix_booked_seats_booking_id", "booked_seats", ["booking_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_number", sa.String(length=32), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("showtime_id", sa.String(length=36), nullable=False),
        sa.Column("movie_id", sa.String(length=36), nullable=False, server_default=""),
        sa.Column("theater_id", sa.String(length=36), nullable=False, server_default=""),
        sa.Column("hall_name", sa.String(length=60), nullable=False, server_default=""),
        sa.Column("show_date", sa.String(length=10), nullable=False),
        sa.Column("show_time", sa.String(length=5), nullable=False),
        sa.Column("show_end_time", sa.String(length=5), nullable=False),
        sa.Column("total_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("special_requests", sa.Text(), nullable=False, server_default=""),
        sa.Column("payment_method", sa.String(length=20), nullable=False),
        sa.Column("payment_transaction_id", sa.String(length=40), nullable=False),
        sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("payment_reference", sa.String(length=120), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_cancelled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(length=12), nullable=True),
        sa.Column("refund_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("refund_status", sa.String(length=20), nullable=False, server_default="none"),
        sa.Column("reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("payment_reference", name="uq_bookings_payment_reference"),
    )
    op.create_index("ix_bookings_booking_number", "bookings", ["booking_number"], unique=True)
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_showtime_id", "bookings", ["showtime_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_created_at", "bookings", ["created_at"])

    op.create_table(
        "booking_tickets",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_id", sa.String(length=36), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("ticket_id", sa.String(length=40), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("seat_row", sa.String(length=4), nullable=False),
        sa.Column("seat_number", sa.Integer(), nullable=False),
        sa.Column("seat_type", sa.String(length=12), nullable=False),
        sa.Column("seat_price", sa.Integer(), nullable=False),
        sa.UniqueConstraint("ticket_id", name="uq_booking_tickets_ticket_id"),
    )
    op.create_index("ix_booking_tickets_booking_id", "booking_tickets", ["booking_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("actor", sa.String(length=320), nullable=False),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=40), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("details_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_actor", "audit_logs", ["actor"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])

    op.create_table(
        "email_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("to_email", sa.String(length=320), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("event_kind", sa.String(length=30), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="queued"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("related_booking_number", sa.String(length=32), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_email_logs_to_email", "email_logs", ["to_email"])
    op.create_index("ix_email_logs_related_booking_number", "email_logs", ["related_booking_number"])


def downgrade() -> None:
    for table in (
        "email_logs",
        "audit_logs",
        "booking_tickets",
        "bookings",
        "booked_seats",
        "showtimes",
        "hall_seats",
        "halls",
        "theaters",
        "movies",
        "users",
    ):
        op.drop_table(table)
