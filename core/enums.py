"""SQLAlchemy enum definitions for the database schema."""

import enum

from sqlalchemy import Enum as SQLEnum


# =====================================================
# Python Enum Classes
# =====================================================


class FleetStatus(str, enum.Enum):
    scheduled = "scheduled"
    reminder_sent = "reminder_sent"
    forming_up = "forming_up"
    cancelled = "cancelled"


class NotificationKind(str, enum.Enum):
    create = "create"
    reminder = "reminder"
    formup = "formup"
    update = "update"
    reschedule = "reschedule"
    cancel = "cancel"


class DeliveryStatus(str, enum.Enum):
    attempted = "attempted"
    confirmed = "confirmed"
    abandoned = "abandoned"


class CategoryRoleKind(str, enum.Enum):
    viewer = "viewer"
    creator = "creator"
    manager = "manager"
    ping = "ping"


# =====================================================
# SQLAlchemy Enum Types
# These reference existing PostgreSQL types (create_type=False)
# =====================================================

fleet_status_enum = SQLEnum(
    FleetStatus, name="fleet_status", create_type=False, native_enum=True
)
notification_kind_enum = SQLEnum(
    NotificationKind, name="notification_kind", create_type=False, native_enum=True
)
delivery_status_enum = SQLEnum(
    DeliveryStatus, name="delivery_status", create_type=False, native_enum=True
)
category_role_kind_enum = SQLEnum(
    CategoryRoleKind, name="category_role_kind", create_type=False, native_enum=True
)
