"""
Fleet scheduling: categories, fleets and their lifecycle.

Public API:
    propose_fleet(store, category_id, form_up_time, ...) - Validate and create
    reschedule_fleet(store, fleet_id, new_time, now) - Move form-up time
    edit_fleet_details(store, fleet_id, ...) - Change name/details
    cancel_fleet(store, fleet_id) - Cancel a fleet
    list_visible_fleets(store, category_ids, now) - What to show right now
    get_fleet(store, fleet_id) - Load a single fleet

Pure pieces (no I/O):
    validate_form_up_time(...) - Overlap validator
    due_transition / transition / cancel - State machine
    can_view / can_create / can_manage - Role checks
"""

from .errors import (
    CategoryNotFoundError,
    DeliveryError,
    FleetError,
    FleetNotFoundError,
    FleetValidationError,
    InvariantViolation,
    PersistenceError,
    StaleFleetError,
)
from .policy import CategoryPolicy, can_create, can_manage, can_view, viewable_category_ids
from .service import (
    cancel_fleet,
    edit_fleet_details,
    get_fleet,
    get_policy_for_fleet,
    list_fleets_for_member,
    list_visible_fleets,
    propose_fleet,
    reschedule_fleet,
)
from .state import (
    FLEET_EXPIRY,
    announcement_time,
    apply_reschedule,
    cancel,
    due_transition,
    is_expired,
    is_terminal,
    transition,
)
from .store import FleetStore
from .types import Delivery, DestinationState, Fleet
from .validation import Accept, Reject, RejectReason, accepted_fleet, validate_form_up_time

__all__ = [
    # Errors
    "FleetError",
    "FleetNotFoundError",
    "CategoryNotFoundError",
    "FleetValidationError",
    "InvariantViolation",
    "PersistenceError",
    "StaleFleetError",
    "DeliveryError",
    # Types
    "CategoryPolicy",
    "Fleet",
    "DestinationState",
    "Delivery",
    "FleetStore",
    # Validation
    "Accept",
    "accepted_fleet",
    "Reject",
    "RejectReason",
    "validate_form_up_time",
    # State machine
    "FLEET_EXPIRY",
    "due_transition",
    "transition",
    "cancel",
    "apply_reschedule",
    "is_expired",
    "is_terminal",
    "announcement_time",
    # Permissions
    "can_view",
    "can_create",
    "can_manage",
    "viewable_category_ids",
    # Service
    "propose_fleet",
    "reschedule_fleet",
    "edit_fleet_details",
    "cancel_fleet",
    "list_visible_fleets",
    "list_fleets_for_member",
    "get_fleet",
    "get_policy_for_fleet",
]
