"""refund processing

Revision ID: 0002_refund_processing
Revises: 0001_initial
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa

revision = "0002_refund_processing"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("bookings") as batch:
        batch.add_column(sa.Column("refund_reference", sa.String(length=120), nullable=True))
        batch.add_column(sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("bookings") as batch:
        batch.drop_column("refunded_at")
        batch.drop_column("refund_reference")
