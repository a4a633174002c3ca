"""Asset record management: create, edit, delete, list and serialise."""

import logging
from datetime import date

from django.db import DatabaseError
from django.db import transaction as db_transaction
from django.db.models import Q
from django.utils.dateparse import parse_date

from ..exceptions import (
    AssetNotFound,
    InvalidField,
    InvalidLabel,
    InvalidPrice,
    LifecycleError,
    PersistenceFailure,
)
from ..models import Asset, LifecycleEvent
from . import audit
from .amounts import parse_amount
from .categories import get_or_create_category
from .permissions import require_admin

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "label",
    "serial_no",
    "category_name",
    "purchased_at",
    "purchase_price",
    "supplier",
    "warranty_end",
    "notes",
)
TEXT_FIELDS = ("serial_no", "supplier", "notes")
DATE_FIELDS = ("purchased_at", "warranty_end")


def _text(field, value):
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidField(f"{field} must be text.", fields=[field])
    return value


def _clean_label(value):
    if value is not None and not isinstance(value, str):
        raise InvalidLabel("Label must be text.")
    label = " ".join((value or "").split())
    if not label:
        raise InvalidLabel()
    if len(label) > Asset._meta.get_field("label").max_length:
        raise InvalidLabel("Label is too long.")
    return label


def _clean_date(field, value):
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(str(value).strip())
    except ValueError:
        parsed = None
    if parsed is None:
        raise InvalidField(
            f"'{value}' is not a valid date for {field} (use YYYY-MM-DD)."
        )
    return parsed


def _clean_values(fields):
    """Normalise the editable fields present in ``fields``."""
    unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
    if unknown:
        raise InvalidField(
            f"These fields cannot be set: {', '.join(unknown)}.",
            fields=unknown,
        )

    values = {}
    if "label" in fields:
        values["label"] = _clean_label(fields["label"])
    for name in TEXT_FIELDS:
        if name in fields:
            values[name] = _text(name, fields[name]).strip()
    if "category_name" in fields:
        _text("category_name", fields["category_name"])
    for name in DATE_FIELDS:
        if name in fields:
            values[name] = _clean_date(name, fields[name])
    if "purchase_price" in fields:
        values["purchase_price"] = parse_amount(
            fields["purchase_price"], InvalidPrice, "Purchase price"
        )
    return values


def _get_asset(asset_id, lock=False):
    qs = Asset.objects.select_for_update() if lock else Asset.objects.all()
    try:
        return qs.select_related("category").get(pk=asset_id)
    except (Asset.DoesNotExist, ValueError, TypeError):
        raise AssetNotFound(asset_id)


def _run_atomic(operation, asset_id, work):
    """Run ``work`` in a transaction, mapping database errors."""
    try:
        with db_transaction.atomic():
            return work()
    except LifecycleError:
        raise
    except DatabaseError as exc:
        logger.exception("Asset %s on #%s failed", operation, asset_id)
        raise PersistenceFailure() from exc


def create_asset(actor, fields) -> Asset:
    """Create an in-stock asset and its ``created`` timeline event.

    ``fields`` is a dict of editable fields; ``label`` is required and
    ``category_name`` is resolved with get-or-create. Any other key raises
    InvalidField.
    """
    require_admin(actor, "create assets")
    fields = fields or {}
    if "label" not in fields:
        raise InvalidLabel()
    values = _clean_values(fields)
    category_name = fields.get("category_name")

    def work():
        asset = Asset(
            **values,
            status="in_stock",
            created_by=actor,
        )
        asset.category = get_or_create_category(category_name, actor=actor)
        asset.save()
        asset.qr_slug = Asset.slug_for(asset.pk)
        asset.save(update_fields=["qr_slug"])
        LifecycleEvent.objects.create(
            asset=asset, event_type="created", actor=actor
        )
        audit.record(
            "asset_created",
            "asset",
            asset.pk,
            actor=actor,
            description=f"Asset '{asset.label}' created.",
            new_values=asset_values(asset),
        )
        return asset

    asset = _run_atomic("create", None, work)
    logger.info("Asset #%s '%s' created by %s", asset.pk, asset.label, actor)
    return asset


def asset_values(asset):
    """Snapshot of the editable fields, as stored in audit entries."""
    return {
        "label": asset.label,
        "serial_no": asset.serial_no,
        "category_name": asset.category.name if asset.category else None,
        "purchased_at": asset.purchased_at,
        "purchase_price": asset.purchase_price,
        "supplier": asset.supplier,
        "warranty_end": asset.warranty_end,
        "notes": asset.notes,
    }


def edit_asset(asset_id, actor, fields) -> Asset:
    """Update an asset's descriptive fields.

    Status and the public slug cannot be changed here. Retired assets can
    still be edited. Only the fields that actually change are written and
    audited.
    """
    require_admin(actor, "edit assets")
    fields = fields or {}
    values = _clean_values(fields)

    def work():
        asset = _get_asset(asset_id, lock=True)
        before = asset_values(asset)

        if "category_name" in fields:
            asset.category = get_or_create_category(
                fields["category_name"], actor=actor
            )
        for name, value in values.items():
            setattr(asset, name, value)

        after = asset_values(asset)
        changed = [key for key in after if after[key] != before[key]]
        if not changed:
            return asset

        update_fields = [
            "category" if key == "category_name" else key for key in changed
        ]
        asset.save(update_fields=update_fields + ["updated_at"])
        audit.record(
            "asset_updated",
            "asset",
            asset.pk,
            actor=actor,
            description=f"Asset '{asset.label}' updated.",
            old_values={key: before[key] for key in changed},
            new_values={key: after[key] for key in changed},
        )
        logger.info(
            "Asset #%s updated by %s: %s", asset.pk, actor, ", ".join(changed)
        )
        return asset

    return _run_atomic("edit", asset_id, work)


def delete_asset(asset_id, actor):
    """Delete an asset along with its assignments, events and incidents.

    The audit entry outlives the row and keeps a snapshot of it.
    """
    require_admin(actor, "delete assets")

    def work():
        asset = _get_asset(asset_id, lock=True)
        snapshot = asset_values(asset)
        snapshot["status"] = asset.status
        pk = asset.pk
        asset.delete()
        audit.record(
            "asset_deleted",
            "asset",
            pk,
            actor=actor,
            description=f"Asset '{snapshot['label']}' deleted.",
            old_values=snapshot,
        )
        return pk

    pk = _run_atomic("delete", asset_id, work)
    logger.info("Asset #%s deleted by %s", pk, actor)
    return {"ok": True}


def filter_assets(status=None, category=None, query=None):
    """Asset queryset narrowed by status, category name and free text."""
    qs = Asset.objects.with_related()
    if status:
        qs = qs.filter(status=status)
    if category:
        qs = qs.filter(category__name__iexact=category.strip())
    query = (query or "").strip()
    if query:
        qs = qs.filter(
            Q(label__icontains=query)
            | Q(serial_no__icontains=query)
            | Q(supplier__icontains=query)
            | Q(
                assignments__returned_at__isnull=True,
                assignments__assignee_name__icontains=query,
            )
        ).distinct()
    return qs


def asset_payload(asset, include_private=True):
    """Serialise an asset for the JSON API.

    The public variant leaves out the assignee's email, prices, supplier
    and notes.
    """
    active = asset.active_assignment
    data = {
        "id": asset.pk,
        "label": asset.label,
        "serial_no": asset.serial_no,
        "category": asset.category.name if asset.category else None,
        "status": asset.status,
        "status_display": asset.get_status_display(),
        "assignee_name": active.assignee_name if active else None,
    }
    if not include_private:
        return data

    data.update(
        {
            "assignee_email": active.assignee_email if active else None,
            "assigned_at": active.assigned_at.isoformat() if active else None,
            "purchased_at": (
                asset.purchased_at.isoformat() if asset.purchased_at else None
            ),
            "purchase_price": (
                str(asset.purchase_price)
                if asset.purchase_price is not None
                else None
            ),
            "supplier": asset.supplier,
            "warranty_end": (
                asset.warranty_end.isoformat() if asset.warranty_end else None
            ),
            "warranty_active": asset.warranty_active,
            "notes": asset.notes,
            "qr_slug": asset.qr_slug,
            "public_url": asset.public_url,
            "created_at": asset.created_at.isoformat(),
            "updated_at": asset.updated_at.isoformat(),
        }
    )
    return data


def asset_detail(asset_id):
    """Full asset payload with its last assignment and timeline."""
    asset = _get_asset(asset_id)
    data = asset_payload(asset)
    last = asset.assignments.order_by("-assigned_at", "-pk").first()
    data["last_assignment"] = (
        {
            "id": last.pk,
            "assignee_name": last.assignee_name,
            "assignee_email": last.assignee_email,
            "assigned_at": last.assigned_at.isoformat(),
            "returned_at": (
                last.returned_at.isoformat() if last.returned_at else None
            ),
            "notes": last.notes,
        }
        if last
        else None
    )
    data["timeline"] = audit.asset_timeline(asset.pk)
    return data
