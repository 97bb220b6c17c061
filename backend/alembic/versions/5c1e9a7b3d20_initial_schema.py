"""initial_schema

Revision ID: 5c1e9a7b3d20
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1e9a7b3d20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="guest"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "properties",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("host_id", sa.UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("city", sa.String(120), nullable=False),
        sa.Column("price_per_night", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_guests", sa.Integer(), nullable=True),
        sa.Column("amenities", sa.JSON(), nullable=True),
        sa.Column("image_urls", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="available"),
        *_timestamps(),
    )
    op.create_index("ix_properties_host_id", "properties", ["host_id"])
    op.create_index("ix_properties_city", "properties", ["city"])
    op.create_index("ix_properties_status", "properties", ["status"])

    op.create_table(
        "tour_packages",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("host_id", sa.UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("duration_days", sa.Integer(), nullable=True),
        sa.Column("max_guests", sa.Integer(), nullable=True),
        sa.Column("image_urls", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="available"),
        *_timestamps(),
    )
    op.create_index("ix_tour_packages_host_id", "tour_packages", ["host_id"])
    op.create_index("ix_tour_packages_status", "tour_packages", ["status"])

    # property_id / tour_package_id carry no FK: bookings outlive a hard-deleted resource.
    op.create_table(
        "bookings",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("user_id", sa.UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("property_id", sa.UUID(), nullable=True),
        sa.Column("tour_package_id", sa.UUID(), nullable=True),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("guests", sa.Integer(), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_details", sa.String(500), nullable=True),
        sa.Column("payment_images", sa.JSON(), nullable=True),
        sa.Column("cancellation_reason", sa.String(500), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("check_out > check_in", name="ck_bookings_date_order"),
        sa.CheckConstraint("guests >= 1 AND guests <= 20", name="ck_bookings_guest_range"),
        sa.CheckConstraint("total_price >= 0", name="ck_bookings_price_non_negative"),
        sa.CheckConstraint(
            "(property_id IS NULL) <> (tour_package_id IS NULL)",
            name="ck_bookings_single_resource",
        ),
    )
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_property_id", "bookings", ["property_id"])
    op.create_index("ix_bookings_tour_package_id", "bookings", ["tour_package_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_payment_status", "bookings", ["payment_status"])
    op.create_index("ix_bookings_dates", "bookings", ["check_in", "check_out"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("tour_packages")
    op.drop_table("properties")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
