"""add trip, trip_day and itinerary_item tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-01-20

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

item_category = sa.Enum(
    "activity",
    "food",
    "accommodation",
    "transport",
    "note",
    "other",
    name="itemcategory",
)


def upgrade() -> None:
    op.create_table(
        "trip",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("budget_goal", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("is_24hr", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("share_token", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_trip_owner_id", "trip", ["owner_id"])
    op.create_index("ix_trip_share_token", "trip", ["share_token"], unique=True)

    op.create_table(
        "trip_day",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.Column("day_number", sa.Integer(), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["trip_id"], ["trip.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_trip_day_trip_id", "trip_day", ["trip_id"])
    op.create_index(
        "idx_trip_day_trip_number", "trip_day", ["trip_id", "day_number"], unique=True
    )

    op.create_table(
        "itinerary_item",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.Column("trip_day_id", sa.Integer(), nullable=False),
        sa.Column("category", item_category, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("location_name", sa.String(length=255), nullable=True),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("website", sa.String(length=500), nullable=True),
        sa.Column("rating", sa.Float(), nullable=True),
        sa.Column("opening_hours", sa.Text(), nullable=True),
        sa.Column("cost", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("attachment_url", sa.String(length=1000), nullable=True),
        sa.Column("attachment_type", sa.String(length=16), nullable=True),
        sa.Column("is_reserved", sa.Boolean(), nullable=False),
        sa.Column("reservation_agent", sa.String(length=255), nullable=True),
        sa.Column("reservation_advance_time", sa.String(length=255), nullable=True),
        sa.Column("sort_order", sa.Float(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("derived_from_item_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["trip_id"], ["trip.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["trip_day_id"], ["trip_day.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["derived_from_item_id"], ["itinerary_item.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_itinerary_item_trip_id", "itinerary_item", ["trip_id"])
    op.create_index("ix_itinerary_item_trip_day_id", "itinerary_item", ["trip_day_id"])
    op.create_index(
        "ix_itinerary_item_derived_from_item_id",
        "itinerary_item",
        ["derived_from_item_id"],
    )
    op.create_index(
        "idx_itinerary_item_day_order", "itinerary_item", ["trip_day_id", "sort_order"]
    )


def downgrade() -> None:
    op.drop_index("idx_itinerary_item_day_order", table_name="itinerary_item")
    op.drop_index("ix_itinerary_item_derived_from_item_id", table_name="itinerary_item")
    op.drop_index("ix_itinerary_item_trip_day_id", table_name="itinerary_item")
    op.drop_index("ix_itinerary_item_trip_id", table_name="itinerary_item")
    op.drop_table("itinerary_item")
    op.drop_index("idx_trip_day_trip_number", table_name="trip_day")
    op.drop_index("ix_trip_day_trip_id", table_name="trip_day")
    op.drop_table("trip_day")
    op.drop_index("ix_trip_share_token", table_name="trip")
    op.drop_index("ix_trip_owner_id", table_name="trip")
    op.drop_table("trip")
    item_category.drop(op.get_bind(), checkfirst=True)
