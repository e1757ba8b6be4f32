"""Query layer for database operations using SQLAlchemy Core."""

from .fleets import (
    get_categories_for_guild,
    get_category,
    get_category_channels,
    get_category_roles,
    get_channel_fleet_list,
    get_destination_channels,
    get_fleet,
    get_fleet_messages,
    get_fleets,
    insert_fleet,
    update_fleet,
    upsert_channel_fleet_list,
    upsert_fleet_messages,
)

__all__ = [
    # Categories
    "get_category",
    "get_categories_for_guild",
    "get_category_roles",
    "get_category_channels",
    "get_destination_channels",
    # Fleets
    "get_fleet",
    "get_fleets",
    "insert_fleet",
    "update_fleet",
    # Notification state
    "get_fleet_messages",
    "upsert_fleet_messages",
    # Fleet lists
    "get_channel_fleet_list",
    "upsert_channel_fleet_list",
]
