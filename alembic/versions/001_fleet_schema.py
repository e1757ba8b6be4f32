"""Fleet scheduling schema.

Revision ID: 001
Revises:
Create Date: 2026-05-01

Creates fleet categories (with their roles and destination channels), fleets,
per-channel notification state and the channel fleet-list records.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUMS = {
    "fleet_status": ("scheduled", "reminder_sent", "forming_up", "cancelled"),
    "notification_kind": (
        "create",
        "reminder",
        "formup",
        "update",
        "reschedule",
        "cancel",
    ),
    "delivery_status": ("attempted", "confirmed", "abandoned"),
    "category_role_kind": ("viewer", "creator", "manager", "ping"),
}


def _enum(name: str) -> postgresql.ENUM:
    # Types are created up front in upgrade()
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "fleet_categories",
        sa.Column("category_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("guild_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column(
            "min_spacing_seconds", sa.Integer(), server_default="0", nullable=False
        ),
        sa.Column("max_advance_seconds", sa.Integer(), nullable=True),
        sa.Column("reminder_lead_seconds", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("category_id", name=op.f("pk_fleet_categories")),
    )
    op.create_index(
        "idx_fleet_categories_guild_id", "fleet_categories", ["guild_id"], unique=False
    )

    op.create_table(
        "fleet_category_roles",
        sa.Column("category_role_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("role_id", sa.Text(), nullable=False),
        sa.Column("kind", _enum("category_role_kind"), nullable=False),
        sa.ForeignKeyConstraint(
            ["category_id"],
            ["fleet_categories.category_id"],
            name=op.f("fk_fleet_category_roles_category_id_fleet_categories"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint(
            "category_role_id", name=op.f("pk_fleet_category_roles")
        ),
        sa.UniqueConstraint(
            "category_id", "role_id", "kind", name="fleet_category_roles_unique"
        ),
    )
    op.create_index(
        "idx_fleet_category_roles_category_id",
        "fleet_category_roles",
        ["category_id"],
        unique=False,
    )

    op.create_table(
        "fleet_category_channels",
        sa.Column(
            "category_channel_id", sa.Integer(), autoincrement=True, nullable=False
        ),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("channel_id", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), server_default="0", nullable=False),
        sa.ForeignKeyConstraint(
            ["category_id"],
            ["fleet_categories.category_id"],
            name=op.f("fk_fleet_category_channels_category_id_fleet_categories"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint(
            "category_channel_id", name=op.f("pk_fleet_category_channels")
        ),
        sa.UniqueConstraint(
            "category_id", "channel_id", name="fleet_category_channels_unique"
        ),
    )
    op.create_index(
        "idx_fleet_category_channels_category_id",
        "fleet_category_channels",
        ["category_id"],
        unique=False,
    )

    op.create_table(
        "fleets",
        sa.Column("fleet_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("guild_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("commander_id", sa.Text(), nullable=False),
        sa.Column(
            "form_up_time", postgresql.TIMESTAMP(timezone=True), nullable=False
        ),
        sa.Column(
            "status",
            _enum("fleet_status"),
            server_default="scheduled",
            nullable=False,
        ),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.Column("hidden", sa.Boolean(), server_default="false", nullable=False),
        sa.Column(
            "disable_reminder", sa.Boolean(), server_default="false", nullable=False
        ),
        sa.Column(
            "destination_channel_ids",
            postgresql.ARRAY(sa.Text()),
            server_default="{}",
            nullable=False,
        ),
        sa.Column(
            "content_revision", sa.Integer(), server_default="0", nullable=False
        ),
        sa.Column("time_revision", sa.Integer(), server_default="0", nullable=False),
        sa.Column("version", sa.Integer(), server_default="0", nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["category_id"],
            ["fleet_categories.category_id"],
            name=op.f("fk_fleets_category_id_fleet_categories"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("fleet_id", name=op.f("pk_fleets")),
    )
    op.create_index("idx_fleets_category_id", "fleets", ["category_id"], unique=False)
    op.create_index("idx_fleets_guild_id", "fleets", ["guild_id"], unique=False)
    op.create_index(
        "idx_fleets_form_up_time", "fleets", ["form_up_time"], unique=False
    )

    op.create_table(
        "fleet_messages",
        sa.Column("fleet_message_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("fleet_id", sa.Integer(), nullable=False),
        sa.Column("channel_id", sa.Text(), nullable=False),
        sa.Column("kind", _enum("notification_kind"), nullable=False),
        sa.Column("status", _enum("delivery_status"), nullable=False),
        sa.Column("message_id", sa.Text(), nullable=True),
        sa.Column("revision", sa.Integer(), server_default="0", nullable=False),
        sa.Column("time_revision", sa.Integer(), server_default="0", nullable=False),
        sa.Column("attempts", sa.Integer(), server_default="0", nullable=False),
        sa.Column(
            "next_attempt_at", postgresql.TIMESTAMP(timezone=True), nullable=True
        ),
        sa.Column("last_error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["fleet_id"],
            ["fleets.fleet_id"],
            name=op.f("fk_fleet_messages_fleet_id_fleets"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("fleet_message_id", name=op.f("pk_fleet_messages")),
        sa.UniqueConstraint(
            "fleet_id", "channel_id", "kind", name="fleet_messages_fleet_channel_kind"
        ),
    )
    op.create_index(
        "idx_fleet_messages_fleet_id", "fleet_messages", ["fleet_id"], unique=False
    )

    op.create_table(
        "channel_fleet_lists",
        sa.Column("channel_id", sa.Text(), nullable=False),
        sa.Column("guild_id", sa.Text(), nullable=False),
        sa.Column("message_id", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("channel_id", name=op.f("pk_channel_fleet_lists")),
    )
    op.create_index(
        "idx_channel_fleet_lists_guild_id",
        "channel_fleet_lists",
        ["guild_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("idx_channel_fleet_lists_guild_id", table_name="channel_fleet_lists")
    op.drop_table("channel_fleet_lists")
    op.drop_index("idx_fleet_messages_fleet_id", table_name="fleet_messages")
    op.drop_table("fleet_messages")
    op.drop_index("idx_fleets_form_up_time", table_name="fleets")
    op.drop_index("idx_fleets_guild_id", table_name="fleets")
    op.drop_index("idx_fleets_category_id", table_name="fleets")
    op.drop_table("fleets")
    op.drop_index(
        "idx_fleet_category_channels_category_id",
        table_name="fleet_category_channels",
    )
    op.drop_table("fleet_category_channels")
    op.drop_index(
        "idx_fleet_category_roles_category_id", table_name="fleet_category_roles"
    )
    op.drop_table("fleet_category_roles")
    op.drop_index("idx_fleet_categories_guild_id", table_name="fleet_categories")
    op.drop_table("fleet_categories")

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        sa.Enum(name=name).drop(bind, checkfirst=True)
