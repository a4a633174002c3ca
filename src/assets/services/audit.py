"""Audit trail writer and query helpers."""

from django.core.serializers.json import DjangoJSONEncoder

from ..models import AuditEntry, LifecycleEvent

MAX_PAGE_SIZE = 200

_encoder = DjangoJSONEncoder()


def _jsonable(values):
    """Coerce dates and decimals so the JSONField can store them."""
    if values is None:
        return None
    return {
        key: (
            value
            if value is None or isinstance(value, (str, int, float, bool))
            else _encoder.default(value)
        )
        for key, value in values.items()
    }


def record(
    action,
    entity_type,
    entity_id,
    actor=None,
    description="",
    old_values=None,
    new_values=None,
):
    """Append one audit entry.

    Must be called inside the caller's transaction so that the entry is
    committed, or rolled back, together with the change it describes.
    """
    actor_email = ""
    if actor is not None and getattr(actor, "is_authenticated", False):
        actor_email = actor.email or ""
    else:
        actor = None
    return AuditEntry.objects.create(
        action=action,
        entity_type=entity_type,
        entity_id="" if entity_id is None else str(entity_id),
        actor=actor,
        actor_email=actor_email,
        description=description,
        old_values=_jsonable(old_values),
        new_values=_jsonable(new_values),
    )


def get_audit_log(
    limit=50,
    offset=0,
    entity_type=None,
    entity_id=None,
    action=None,
):
    """Return audit entries newest first as plain dicts.

    Filters are exact matches; ``limit`` is clamped to MAX_PAGE_SIZE.
    """
    limit = max(1, min(int(limit), MAX_PAGE_SIZE))
    offset = max(0, int(offset))

    qs = AuditEntry.objects.all()
    if entity_type:
        qs = qs.filter(entity_type=entity_type)
    if entity_id not in (None, ""):
        qs = qs.filter(entity_id=str(entity_id))
    if action:
        qs = qs.filter(action=action)

    total = qs.count()
    entries = [
        {
            "id": entry.pk,
            "action": entry.action,
            "entity_type": entry.entity_type,
            "entity_id": entry.entity_id,
            "actor_email": entry.actor_email,
            "description": entry.description,
            "old_values": entry.old_values,
            "new_values": entry.new_values,
            "created_at": entry.created_at.isoformat(),
        }
        for entry in qs[offset : offset + limit]
    ]
    return {"count": total, "results": entries}


def asset_timeline(asset_id):
    """Lifecycle events for one asset, newest first."""
    events = LifecycleEvent.objects.filter(asset_id=asset_id).select_related(
        "actor"
    )
    return [
        {
            "id": event.pk,
            "event_type": event.event_type,
            "timestamp": event.timestamp.isoformat(),
            "notes": event.notes,
            "actor": event.actor.get_display_name() if event.actor else None,
            "cost": str(event.cost) if event.cost is not None else None,
        }
        for event in events
    ]
