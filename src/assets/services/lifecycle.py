"""Asset lifecycle engine: assign, return, repair, exit repair, retire.

Each operation validates its inputs, then locks the asset row and applies
every write (asset status, assignment row, timeline event, audit entry)
inside one transaction. A failure at any point rolls all of them back.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime

from django.db import DatabaseError, IntegrityError, OperationalError
from django.db import transaction as db_transaction
from django.utils import timezone

from ..exceptions import (
    AlreadyAssigned,
    AssetNotFound,
    ConcurrencyConflict,
    InvalidCost,
    InvalidInput,
    LifecycleError,
    PersistenceFailure,
)
from ..models import Asset, Assignment, LifecycleEvent
from . import audit
from .amounts import parse_amount
from .assignees import parse_assignee
from .permissions import require_admin
from .state import validate_transition

logger = logging.getLogger(__name__)

LOCK_CONFLICT_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock detected",
    "could not serialize",
    "lock not available",
)


@dataclass(frozen=True)
class TransitionResult:
    asset_id: int
    status: str
    event_id: int

    def as_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class AssignResult(TransitionResult):
    assignment_id: int
    assigned_at: datetime

    def as_dict(self):
        data = asdict(self)
        data["assigned_at"] = self.assigned_at.isoformat()
        return data


def _clean_notes(notes):
    if notes is not None and not isinstance(notes, str):
        raise InvalidInput("Notes must be text.")
    return notes.strip() if notes else ""


def _is_lock_conflict(exc):
    message = str(exc).lower()
    return any(marker in message for marker in LOCK_CONFLICT_MARKERS)


def _is_active_assignment_violation(exc):
    message = str(exc)
    return (
        "unique_active_assignment_per_asset" in message
        or "assets_assignment.asset_id" in message
    )


def _lock_asset(asset_id):
    """Re-read the asset with a row lock for the rest of the transaction."""
    try:
        return Asset.objects.select_for_update().get(pk=asset_id)
    except (Asset.DoesNotExist, ValueError, TypeError):
        raise AssetNotFound(asset_id)


def _record_event(asset, event_type, actor, notes="", **extra):
    return LifecycleEvent.objects.create(
        asset=asset,
        event_type=event_type,
        actor=actor if getattr(actor, "is_authenticated", False) else None,
        notes=notes,
        timestamp=timezone.now(),
        **extra,
    )


def _set_status(asset, status):
    asset.status = status
    asset.save(update_fields=["status", "updated_at"])


def _close_assignment(assignment):
    assignment.returned_at = timezone.now()
    assignment.save(update_fields=["returned_at"])
    return assignment


def _execute(asset_id, action, actor, perform):
    """Run one transition atomically and translate storage errors.

    ``perform(asset, active_assignment, target_status)`` does the writes
    and returns the result object.
    """
    require_admin(actor, "change the status of assets")
    try:
        with db_transaction.atomic():
            asset = _lock_asset(asset_id)
            active = asset.assignments.filter(
                returned_at__isnull=True
            ).first()
            target = validate_transition(asset, action, active)
            result = perform(asset, active, target)
    except LifecycleError as exc:
        logger.warning(
            "Lifecycle %s on asset #%s rejected: %s",
            action,
            asset_id,
            exc.code,
        )
        raise
    except IntegrityError as exc:
        if action == "assign" and _is_active_assignment_violation(exc):
            logger.warning(
                "Concurrent assignment of asset #%s lost the race", asset_id
            )
            raise AlreadyAssigned() from exc
        logger.exception("Lifecycle %s on asset #%s failed", action, asset_id)
        raise PersistenceFailure() from exc
    except OperationalError as exc:
        if _is_lock_conflict(exc):
            logger.warning(
                "Lifecycle %s on asset #%s hit a lock conflict",
                action,
                asset_id,
            )
            raise ConcurrencyConflict() from exc
        logger.exception("Lifecycle %s on asset #%s failed", action, asset_id)
        raise PersistenceFailure() from exc
    except DatabaseError as exc:
        logger.exception("Lifecycle %s on asset #%s failed", action, asset_id)
        raise PersistenceFailure() from exc

    logger.info(
        "Asset #%s: %s -> %s by %s", asset_id, action, result.status, actor
    )
    return result


def assign(asset_id, assignee_text, actor, notes="") -> AssignResult:
    """Assign an in-stock asset to a person.

    ``assignee_text`` is free text, ``Name <email>`` or a bare name.
    Raises InvalidAssignee, AlreadyAssigned, InvalidTransition,
    AssetNotFound.
    """
    assignee = parse_assignee(assignee_text)
    notes = _clean_notes(notes)

    def perform(asset, active, target):
        previous = asset.status
        assignment = Assignment.objects.create(
            asset=asset,
            assignee_name=assignee.name,
            assignee_email=assignee.email,
            assigned_at=timezone.now(),
            notes=notes,
            assigned_by=actor,
        )
        _set_status(asset, target)
        event = _record_event(
            asset, "assigned", actor, notes, assignment=assignment
        )
        audit.record(
            "asset_assigned",
            "asset",
            asset.pk,
            actor=actor,
            description=f"'{asset.label}' assigned to {assignee}.",
            old_values={"status": previous},
            new_values={
                "status": target,
                "assignee_name": assignee.name,
                "assignee_email": assignee.email,
            },
        )
        return AssignResult(
            asset_id=asset.pk,
            status=target,
            event_id=event.pk,
            assignment_id=assignment.pk,
            assigned_at=assignment.assigned_at,
        )

    return _execute(asset_id, "assign", actor, perform)


def return_asset(asset_id, actor, notes="") -> TransitionResult:
    """Close the active assignment and put the asset back in stock."""
    notes = _clean_notes(notes)

    def perform(asset, active, target):
        previous = asset.status
        _close_assignment(active)
        _set_status(asset, target)
        event = _record_event(
            asset, "returned", actor, notes, assignment=active
        )
        audit.record(
            "asset_returned",
            "asset",
            asset.pk,
            actor=actor,
            description=(
                f"'{asset.label}' returned by {active.display_assignee}."
            ),
            old_values={"status": previous},
            new_values={"status": target},
        )
        return TransitionResult(asset.pk, target, event.pk)

    return _execute(asset_id, "return", actor, perform)


def send_to_repair(asset_id, actor, notes="") -> TransitionResult:
    """Send an unassigned asset to repair."""
    notes = _clean_notes(notes)

    def perform(asset, active, target):
        previous = asset.status
        _set_status(asset, target)
        event = _record_event(asset, "repair", actor, notes)
        audit.record(
            "asset_repair",
            "asset",
            asset.pk,
            actor=actor,
            description=f"'{asset.label}' sent to repair.",
            old_values={"status": previous},
            new_values={"status": target},
        )
        return TransitionResult(asset.pk, target, event.pk)

    return _execute(asset_id, "repair", actor, perform)


def exit_repair(asset_id, actor, notes="", cost=None) -> TransitionResult:
    """Bring an asset back from repair, recording the optional cost.

    ``cost`` accepts "12,50"-style text and is rounded half-up to cents.
    Raises InvalidCost before anything is written.
    """
    cost = parse_amount(cost, InvalidCost, "Cost")
    notes = _clean_notes(notes)

    def perform(asset, active, target):
        previous = asset.status
        _set_status(asset, target)
        event = _record_event(asset, "maintenance", actor, notes, cost=cost)
        audit.record(
            "asset_exit_repair",
            "asset",
            asset.pk,
            actor=actor,
            description=f"'{asset.label}' back from repair.",
            old_values={"status": previous},
            new_values={"status": target, "cost": cost},
        )
        return TransitionResult(asset.pk, target, event.pk)

    return _execute(asset_id, "exit_repair", actor, perform)


def retire(asset_id, actor, notes="") -> TransitionResult:
    """Retire an asset for good.

    An open assignment is closed in the same transaction, so a retired
    asset never has a holder. There is no way back out of ``retired``.
    """
    notes = _clean_notes(notes)

    def perform(asset, active, target):
        previous = asset.status
        if active is not None:
            _close_assignment(active)
        _set_status(asset, target)
        event = _record_event(
            asset, "retired", actor, notes, assignment=active
        )
        audit.record(
            "asset_retired",
            "asset",
            asset.pk,
            actor=actor,
            description=f"'{asset.label}' retired.",
            old_values={"status": previous},
            new_values={"status": target},
        )
        return TransitionResult(asset.pk, target, event.pk)

    return _execute(asset_id, "retire", actor, perform)
