"""Asset state machine and transition validation."""

from ..exceptions import (
    AlreadyAssigned,
    AlreadyInRepair,
    AssetAlreadyRetired,
    AssetRetired,
    InvalidTransition,
    NoActiveAssignment,
    NotInRepair,
)
from ..models import Asset

# Lifecycle action -> status the asset ends up in
ACTION_TARGETS = {
    "assign": "assigned",
    "return": "in_stock",
    "repair": "repair",
    "exit_repair": "in_stock",
    "retire": "retired",
}


def validate_transition(asset: Asset, action: str, active_assignment=None):
    """Validate and raise if ``action`` is not allowed on ``asset``.

    ``active_assignment`` is the asset's open Assignment, if any, read in
    the same transaction as the asset row. Returns the target status.
    """
    if action not in ACTION_TARGETS:
        raise ValueError(f"'{action}' is not a lifecycle action.")
    target = ACTION_TARGETS[action]
    current = asset.status

    # Retired is terminal
    if current == "retired":
        if action == "retire":
            raise AssetAlreadyRetired(current_status=current)
        raise AssetRetired(current_status=current, target_status=target)

    if action == "assign":
        if active_assignment is not None or current == "assigned":
            raise AlreadyAssigned(current_status=current)

    elif action == "return":
        if active_assignment is None:
            raise NoActiveAssignment(current_status=current)

    elif action == "repair":
        if current == "repair":
            raise AlreadyInRepair(current_status=current)
        # An asset must be returned before it goes to repair, otherwise it
        # would come back in stock with its assignment still open.
        if active_assignment is not None or current == "assigned":
            raise InvalidTransition(
                "Cannot send an assigned asset to repair. "
                "Return it first.",
                current_status=current,
                target_status=target,
            )

    elif action == "exit_repair":
        if current != "repair":
            raise NotInRepair(current_status=current)

    if not asset.can_transition_to(target):
        allowed = Asset.VALID_TRANSITIONS.get(current, [])
        raise InvalidTransition(
            f"Cannot transition from '{asset.get_status_display()}' to "
            f"'{target}'. Allowed transitions: "
            f"{', '.join(allowed) or 'none'}.",
            current_status=current,
            target_status=target,
        )
    return target
