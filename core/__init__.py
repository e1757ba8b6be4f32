"""
Core business logic - platform-agnostic.
Can be used by Discord bot, web API, or any other interface.
"""

# Database (SQLAlchemy)
from .database import get_connection, get_transaction, get_engine, close_engine, is_configured

# Fleet scheduling
from .fleets import (
    CategoryPolicy, Fleet, FleetStore,
    Accept, Reject, RejectReason,
    FleetError, FleetNotFoundError, CategoryNotFoundError, InvariantViolation,
    PersistenceError, DeliveryError,
    propose_fleet, reschedule_fleet, edit_fleet_details, cancel_fleet,
    list_visible_fleets, list_fleets_for_member, get_fleet,
)

__all__ = [
    # Database
    'get_connection', 'get_transaction', 'get_engine', 'close_engine', 'is_configured',
    # Fleets
    'CategoryPolicy', 'Fleet', 'FleetStore',
    'Accept', 'Reject', 'RejectReason',
    'FleetError', 'FleetNotFoundError', 'CategoryNotFoundError', 'InvariantViolation',
    'PersistenceError', 'DeliveryError',
    'propose_fleet', 'reschedule_fleet', 'edit_fleet_details', 'cancel_fleet',
    'list_visible_fleets', 'list_fleets_for_member', 'get_fleet',
]
