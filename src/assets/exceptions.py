"""Typed errors raised by the asset services.

Every error carries a machine-readable ``code`` and the HTTP status the API
answers with, so views translate them in one place::

    LifecycleError
    +-- AssetNotFound
    +-- IncidentNotFound
    +-- InvalidTransition
    |   +-- AlreadyAssigned
    |   +-- NoActiveAssignment
    |   +-- AlreadyInRepair
    |   +-- NotInRepair
    |   +-- AssetRetired
    |       +-- AssetAlreadyRetired
    +-- InvalidInput
    |   +-- InvalidAssignee
    |   +-- InvalidCost
    |   +-- InvalidPrice
    |   +-- InvalidLabel
    |   +-- InvalidField
    |   +-- InvalidIncident
    +-- NotAuthorized
    +-- ConcurrencyConflict
    +-- PersistenceFailure

Validation errors are raised before any write. ``ConcurrencyConflict`` may
be retried by the caller after re-reading the asset; nothing here retries
on its own.
"""


class LifecycleError(Exception):
    """Base class for every asset service error."""

    code: str = "LIFECYCLE_ERROR"
    http_status: int = 400
    default_message: str = "The operation could not be completed."

    def __init__(self, message: str | None = None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def as_dict(self) -> dict:
        data = {"error": self.message, "code": self.code}
        data.update(self.context)
        return data


class AssetNotFound(LifecycleError):
    code = "NOT_FOUND"
    http_status = 404
    default_message = "Asset not found."

    def __init__(self, asset_id=None, message: str | None = None):
        self.asset_id = asset_id
        super().__init__(
            message or f"No asset found with ID '{asset_id}'.",
            asset_id=asset_id,
        )


class IncidentNotFound(LifecycleError):
    code = "NOT_FOUND"
    http_status = 404
    default_message = "Incident not found."


# Transition errors


class InvalidTransition(LifecycleError):
    """The requested transition is not legal from the current status."""

    code = "INVALID_TRANSITION"
    http_status = 409
    default_message = "This transition is not allowed."

    def __init__(
        self,
        message: str | None = None,
        current_status: str | None = None,
        target_status: str | None = None,
    ):
        self.current_status = current_status
        self.target_status = target_status
        context = {}
        if current_status:
            context["current_status"] = current_status
        if target_status:
            context["target_status"] = target_status
        super().__init__(message, **context)


class AlreadyAssigned(InvalidTransition):
    code = "ALREADY_ASSIGNED"
    default_message = "Asset is already assigned. Return it first."


class NoActiveAssignment(InvalidTransition):
    code = "NO_ACTIVE_ASSIGNMENT"
    default_message = "Asset has no active assignment to return."


class AlreadyInRepair(InvalidTransition):
    code = "ALREADY_IN_REPAIR"
    default_message = "Asset is already in repair."


class NotInRepair(InvalidTransition):
    code = "NOT_IN_REPAIR"
    default_message = "Asset is not in repair."


class AssetRetired(InvalidTransition):
    code = "ASSET_RETIRED"
    default_message = "Asset is retired. No further transitions are allowed."


class AssetAlreadyRetired(AssetRetired):
    code = "ASSET_ALREADY_RETIRED"
    default_message = "Asset is already retired."


# Input validation errors


class InvalidInput(LifecycleError):
    code = "INVALID_INPUT"
    http_status = 400


class InvalidAssignee(InvalidInput):
    code = "INVALID_ASSIGNEE"
    default_message = "Assignee name or email is required."


class InvalidCost(InvalidInput):
    code = "INVALID_COST"
    default_message = "Cost must be a positive number."


class InvalidPrice(InvalidInput):
    code = "INVALID_PRICE"
    default_message = "Purchase price must be a positive number."


class InvalidLabel(InvalidInput):
    code = "INVALID_LABEL"
    default_message = "Label is required."


class InvalidField(InvalidInput):
    code = "INVALID_FIELD"
    default_message = "One or more fields cannot be edited."


class InvalidIncident(InvalidInput):
    code = "INVALID_INCIDENT"
    default_message = "Incident details are invalid."


# Access and storage errors


class NotAuthorized(LifecycleError):
    code = "NOT_AUTHORIZED"
    http_status = 403
    default_message = "You do not have permission to perform this action."


class ConcurrencyConflict(LifecycleError):
    """Another transition on the same asset won the race."""

    code = "CONCURRENCY_CONFLICT"
    http_status = 409
    default_message = (
        "The asset was modified by someone else. Reload and try again."
    )


class PersistenceFailure(LifecycleError):
    code = "PERSISTENCE_FAILURE"
    http_status = 503
    default_message = "The database is unavailable. Nothing was saved."
