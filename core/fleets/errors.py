"""Exceptions raised by the fleet scheduling engine."""


class FleetError(Exception):
    """Base exception for fleet scheduling errors."""

    pass


class FleetNotFoundError(FleetError):
    """Raised when a fleet ID does not exist."""

    def __init__(self, fleet_id: int):
        self.fleet_id = fleet_id
        super().__init__(f"Fleet {fleet_id} not found")


class CategoryNotFoundError(FleetError):
    """Raised when a category ID does not exist."""

    def __init__(self, category_id: int):
        self.category_id = category_id
        super().__init__(f"Fleet category {category_id} not found")


class FleetValidationError(FleetError):
    """Raised by adapters that prefer an exception over a Reject result."""

    def __init__(self, rejection):
        self.rejection = rejection
        super().__init__(rejection.message)


class InvariantViolation(FleetError):
    """A programming-contract failure, e.g. transitioning a cancelled fleet."""

    pass


class PersistenceError(FleetError):
    """Storage read/write failed. Fatal for the current operation."""

    pass


class StaleFleetError(PersistenceError):
    """The fleet was saved by someone else since it was loaded."""

    def __init__(self, fleet_id: int, expected_version: int):
        self.fleet_id = fleet_id
        self.expected_version = expected_version
        super().__init__(
            f"Fleet {fleet_id} was modified concurrently (expected version {expected_version})"
        )


class DeliveryError(FleetError):
    """A Discord send/edit/delete failed. Retried on a later tick."""

    def __init__(self, message: str, retryable: bool = True):
        self.retryable = retryable
        super().__init__(message)
