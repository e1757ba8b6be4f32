"""SQLAlchemy Core table definitions for the database schema."""

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, TIMESTAMP

from .enums import (
    category_role_kind_enum,
    delivery_status_enum,
    fleet_status_enum,
    notification_kind_enum,
)

# Naming convention for constraints (helps Alembic generate better names)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


# =====================================================
# 1. FLEET CATEGORIES
# =====================================================
# Owned by configuration management; read-only for the scheduling engine.
fleet_categories = Table(
    "fleet_categories",
    metadata,
    Column("category_id", Integer, primary_key=True, autoincrement=True),
    Column("guild_id", Text, nullable=False),  # Discord server ID
    Column("name", Text, nullable=False),
    Column("min_spacing_seconds", Integer, nullable=False, server_default="0"),
    Column("max_advance_seconds", Integer),  # NULL = unlimited
    Column("reminder_lead_seconds", Integer),  # NULL = no reminder
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_fleet_categories_guild_id", "guild_id"),
)


# =====================================================
# 2. FLEET CATEGORY ROLES
# =====================================================
fleet_category_roles = Table(
    "fleet_category_roles",
    metadata,
    Column("category_role_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "category_id",
        Integer,
        ForeignKey("fleet_categories.category_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("role_id", Text, nullable=False),  # Discord role ID (guild ID = @everyone)
    Column("kind", category_role_kind_enum, nullable=False),
    Index("idx_fleet_category_roles_category_id", "category_id"),
    UniqueConstraint(
        "category_id", "role_id", "kind", name="fleet_category_roles_unique"
    ),
)


# =====================================================
# 3. FLEET CATEGORY CHANNELS
# =====================================================
fleet_category_channels = Table(
    "fleet_category_channels",
    metadata,
    Column("category_channel_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "category_id",
        Integer,
        ForeignKey("fleet_categories.category_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("channel_id", Text, nullable=False),  # Discord text channel ID
    Column("position", Integer, nullable=False, server_default="0"),
    Index("idx_fleet_category_channels_category_id", "category_id"),
    UniqueConstraint(
        "category_id", "channel_id", name="fleet_category_channels_unique"
    ),
)


# =====================================================
# 4. FLEETS
# =====================================================
fleets = Table(
    "fleets",
    metadata,
    Column("fleet_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "category_id",
        Integer,
        ForeignKey("fleet_categories.category_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("guild_id", Text, nullable=False),
    Column("name", Text, nullable=False),
    Column("commander_id", Text, nullable=False),  # Discord user ID
    Column("form_up_time", TIMESTAMP(timezone=True), nullable=False),
    Column("status", fleet_status_enum, nullable=False, server_default="scheduled"),
    Column("details", JSONB, nullable=False, server_default="{}"),
    Column("hidden", Boolean, nullable=False, server_default="false"),
    Column("disable_reminder", Boolean, nullable=False, server_default="false"),
    # Destinations snapshotted from the category at creation
    Column("destination_channel_ids", ARRAY(Text), nullable=False, server_default="{}"),
    Column("content_revision", Integer, nullable=False, server_default="0"),
    Column("time_revision", Integer, nullable=False, server_default="0"),
    Column("version", Integer, nullable=False, server_default="0"),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_fleets_category_id", "category_id"),
    Index("idx_fleets_guild_id", "guild_id"),
    Index("idx_fleets_form_up_time", "form_up_time"),
)


# =====================================================
# 5. FLEET MESSAGES
# =====================================================
# One row per (fleet, channel, kind). Rows are written as "attempted" before
# the Discord call and flipped to "confirmed" once Discord acknowledged it.
fleet_messages = Table(
    "fleet_messages",
    metadata,
    Column("fleet_message_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "fleet_id",
        Integer,
        ForeignKey("fleets.fleet_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("channel_id", Text, nullable=False),
    Column("kind", notification_kind_enum, nullable=False),
    Column("status", delivery_status_enum, nullable=False),
    Column("message_id", Text),
    Column("revision", Integer, nullable=False, server_default="0"),
    Column("time_revision", Integer, nullable=False, server_default="0"),
    Column("attempts", Integer, nullable=False, server_default="0"),
    Column("next_attempt_at", TIMESTAMP(timezone=True)),
    Column("last_error", Text),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_fleet_messages_fleet_id", "fleet_id"),
    UniqueConstraint(
        "fleet_id", "channel_id", "kind", name="fleet_messages_fleet_channel_kind"
    ),
)


# =====================================================
# 6. CHANNEL FLEET LISTS
# =====================================================
# The live "upcoming fleets" summary message per destination channel.
channel_fleet_lists = Table(
    "channel_fleet_lists",
    metadata,
    Column("channel_id", Text, primary_key=True),
    Column("guild_id", Text, nullable=False),
    Column("message_id", Text),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_channel_fleet_lists_guild_id", "guild_id"),
)
