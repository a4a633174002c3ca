"""Incident reporting and follow-up on assets."""

import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction as db_transaction

from ..exceptions import (
    AssetNotFound,
    IncidentNotFound,
    InvalidIncident,
    NotAuthorized,
)
from ..models import Asset, Incident
from . import audit
from .permissions import can_manage_incidents, can_report_incident, is_admin

logger = logging.getLogger(__name__)

INCIDENT_TYPES = {choice for choice, _ in Incident.TYPE_CHOICES}
SEVERITIES = {choice for choice, _ in Incident.SEVERITY_CHOICES}
STATUSES = {choice for choice, _ in Incident.STATUS_CHOICES}


def _get_incident(incident_id, lock=False):
    qs = Incident.objects.select_related("asset", "reported_by", "assigned_to")
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=incident_id)
    except (Incident.DoesNotExist, ValueError, TypeError):
        raise IncidentNotFound(f"No incident found with ID '{incident_id}'.")


def report_incident(
    asset_id, actor, incident_type, description, severity="medium", location=""
) -> Incident:
    """Record a problem on an asset. Any signed-in user may report."""
    if not can_report_incident(actor):
        raise NotAuthorized("You must be signed in to report an incident.")
    if incident_type not in INCIDENT_TYPES:
        raise InvalidIncident(f"Unknown incident type '{incident_type}'.")
    severity = severity or "medium"
    if severity not in SEVERITIES:
        raise InvalidIncident(f"Unknown severity '{severity}'.")
    description = (description or "").strip()
    if not description:
        raise InvalidIncident("A description is required.")

    try:
        asset = Asset.objects.get(pk=asset_id)
    except (Asset.DoesNotExist, ValueError, TypeError):
        raise AssetNotFound(asset_id)

    with db_transaction.atomic():
        incident = Incident.objects.create(
            asset=asset,
            incident_type=incident_type,
            severity=severity,
            description=description,
            location=(location or "").strip(),
            reported_by=actor,
        )
        audit.record(
            "incident_reported",
            "incident",
            incident.pk,
            actor=actor,
            description=(
                f"{incident.get_incident_type_display()} reported on "
                f"'{asset.label}'."
            ),
            new_values={
                "asset_id": asset.pk,
                "incident_type": incident_type,
                "severity": severity,
            },
        )

    logger.info(
        "Incident #%s (%s, %s) reported on asset #%s by %s",
        incident.pk,
        incident_type,
        severity,
        asset.pk,
        actor,
    )
    return incident


def assign_incident(incident_id, actor, assignee_id) -> Incident:
    """Hand an incident to an administrator.

    An open incident moves to ``in_progress`` once someone is assigned.
    """
    if not can_manage_incidents(actor):
        raise NotAuthorized("Only administrators can assign incidents.")

    User = get_user_model()
    try:
        assignee = User.objects.get(pk=assignee_id, is_active=True)
    except (User.DoesNotExist, ValueError, TypeError):
        raise InvalidIncident(f"No active user with ID '{assignee_id}'.")
    if not is_admin(assignee):
        raise InvalidIncident(
            f"{assignee.get_display_name()} is not an administrator."
        )

    with db_transaction.atomic():
        incident = _get_incident(incident_id, lock=True)
        if not incident.is_open:
            raise InvalidIncident("Only open incidents can be assigned.")
        previous = incident.assigned_to_id
        incident.assigned_to = assignee
        incident.save(update_fields=["assigned_to", "updated_at"])
        if incident.status == "open":
            incident.transition_to("in_progress")
        audit.record(
            "incident_assigned",
            "incident",
            incident.pk,
            actor=actor,
            description=(
                f"Incident assigned to {assignee.get_display_name()}."
            ),
            old_values={"assigned_to": previous},
            new_values={"assigned_to": assignee.pk},
        )

    logger.info(
        "Incident #%s assigned to %s by %s", incident.pk, assignee, actor
    )
    return incident


def update_incident_status(incident_id, actor, new_status) -> Incident:
    """Move an incident through its own state machine."""
    if not can_manage_incidents(actor):
        raise NotAuthorized("Only administrators can update incidents.")
    if new_status not in STATUSES:
        raise InvalidIncident(f"Unknown incident status '{new_status}'.")

    with db_transaction.atomic():
        incident = _get_incident(incident_id, lock=True)
        previous = incident.status
        try:
            incident.transition_to(new_status)
        except ValidationError as exc:
            raise InvalidIncident(exc.messages[0])
        audit.record(
            "incident_status_changed",
            "incident",
            incident.pk,
            actor=actor,
            description=(
                f"Incident status changed from {previous} to {new_status}."
            ),
            old_values={"status": previous},
            new_values={"status": new_status},
        )

    logger.info(
        "Incident #%s: %s -> %s by %s",
        incident.pk,
        previous,
        new_status,
        actor,
    )
    return incident


def list_incidents(status=None, severity=None, asset_id=None):
    qs = Incident.objects.select_related(
        "asset", "asset__category", "reported_by", "assigned_to"
    )
    if status:
        qs = qs.filter(status=status)
    if severity:
        qs = qs.filter(severity=severity)
    if asset_id:
        qs = qs.filter(asset_id=asset_id)
    return [incident_payload(incident) for incident in qs]


def open_incident_count(asset_id):
    return Incident.objects.filter(
        asset_id=asset_id, status__in=["open", "in_progress"]
    ).count()


def incident_payload(incident):
    asset = incident.asset
    reporter = incident.reported_by
    handler = incident.assigned_to
    return {
        "id": incident.pk,
        "asset_id": asset.pk,
        "asset_label": asset.label,
        "serial_no": asset.serial_no,
        "category_name": asset.category.name if asset.category else None,
        "incident_type": incident.incident_type,
        "severity": incident.severity,
        "status": incident.status,
        "description": incident.description,
        "location": incident.location or None,
        "reported_by": reporter.get_display_name() if reporter else None,
        "reported_by_email": reporter.email if reporter else None,
        "assigned_to": handler.get_display_name() if handler else None,
        "assigned_to_email": handler.email if handler else None,
        "created_at": incident.created_at.isoformat(),
        "updated_at": incident.updated_at.isoformat(),
        "resolved_at": (
            incident.resolved_at.isoformat() if incident.resolved_at else None
        ),
    }
