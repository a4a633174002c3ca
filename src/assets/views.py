"""JSON API views for the assets app."""

import functools
import json
import logging

from django.conf import settings
from django.contrib.auth.decorators import login_required
from django.core.paginator import Paginator
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST
from django_ratelimit.decorators import ratelimit

from .exceptions import InvalidInput, LifecycleError
from .services import (
    assignees,
    audit,
    categories,
    incidents,
    inventory,
    lifecycle,
    stats,
)
from .services.permissions import (
    can_manage_incidents,
    can_report_incident,
    get_user_role,
    is_admin,
    is_super_admin,
    require_admin,
)
from .services.resolve import resolve_public_asset

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100


def api_view(view_func):
    """Translate service errors into JSON error responses."""

    @functools.wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except LifecycleError as exc:
            return JsonResponse(exc.as_dict(), status=exc.http_status)

    return wrapper


def _json_body(request):
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise InvalidInput("Request body is not valid JSON.")
    if not isinstance(data, dict):
        raise InvalidInput("Request body must be a JSON object.")
    return data


def _str_field(data, name, default=""):
    """String value from a JSON body; other types raise InvalidInput."""
    value = data.get(name, default)
    if value is None:
        return default
    if not isinstance(value, str):
        raise InvalidInput(f"'{name}' must be a string.", field=name)
    return value


def _int_param(request, name, default, maximum=None):
    try:
        value = int(request.GET.get(name, default))
    except (TypeError, ValueError):
        raise InvalidInput(f"'{name}' must be an integer.")
    value = max(value, 0)
    if maximum is not None:
        value = min(value, maximum)
    return value


# --- Assets ---


@login_required
@api_view
def asset_list(request):
    """GET lists assets, POST creates one."""
    if request.method == "POST":
        data = _json_body(request)
        asset = inventory.create_asset(request.user, data)
        return JsonResponse(inventory.asset_payload(asset), status=201)
    if request.method != "GET":
        return JsonResponse(
            {"error": "Method not allowed.", "code": "METHOD_NOT_ALLOWED"},
            status=405,
        )

    qs = inventory.filter_assets(
        status=request.GET.get("status"),
        category=request.GET.get("category"),
        query=request.GET.get("q"),
    )
    page_size = _int_param(
        request, "page_size", DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
    ) or DEFAULT_PAGE_SIZE
    paginator = Paginator(qs, page_size)
    page_obj = paginator.get_page(request.GET.get("page"))
    return JsonResponse(
        {
            "count": paginator.count,
            "page": page_obj.number,
            "num_pages": paginator.num_pages,
            "results": [
                inventory.asset_payload(asset) for asset in page_obj
            ],
        }
    )


@login_required
@require_GET
@api_view
def asset_detail(request, pk):
    data = inventory.asset_detail(pk)
    data["incidents"] = incidents.list_incidents(asset_id=data["id"])
    data["open_incident_count"] = incidents.open_incident_count(data["id"])
    return JsonResponse(data)


@login_required
@require_POST
@api_view
def asset_edit(request, pk):
    asset = inventory.edit_asset(pk, request.user, _json_body(request))
    return JsonResponse(inventory.asset_payload(asset))


@login_required
@require_POST
@api_view
def asset_delete(request, pk):
    return JsonResponse(inventory.delete_asset(pk, request.user))


# --- Lifecycle transitions ---


@login_required
@require_POST
@api_view
def asset_assign(request, pk):
    data = _json_body(request)
    result = lifecycle.assign(
        pk,
        _str_field(data, "assignee"),
        request.user,
        notes=_str_field(data, "notes"),
    )
    return JsonResponse(result.as_dict())


@login_required
@require_POST
@api_view
def asset_return(request, pk):
    data = _json_body(request)
    result = lifecycle.return_asset(
        pk, request.user, notes=_str_field(data, "notes")
    )
    return JsonResponse(result.as_dict())


@login_required
@require_POST
@api_view
def asset_repair(request, pk):
    data = _json_body(request)
    result = lifecycle.send_to_repair(
        pk, request.user, notes=_str_field(data, "notes")
    )
    return JsonResponse(result.as_dict())


@login_required
@require_POST
@api_view
def asset_exit_repair(request, pk):
    data = _json_body(request)
    result = lifecycle.exit_repair(
        pk,
        request.user,
        notes=_str_field(data, "notes"),
        cost=data.get("cost"),
    )
    return JsonResponse(result.as_dict())


@login_required
@require_POST
@api_view
def asset_retire(request, pk):
    data = _json_body(request)
    result = lifecycle.retire(
        pk, request.user, notes=_str_field(data, "notes")
    )
    return JsonResponse(result.as_dict())


# --- Categories and people ---


@login_required
@require_GET
def category_search(request):
    return JsonResponse(
        {"results": categories.search_categories(request.GET.get("q", ""))}
    )


@login_required
@require_GET
def people_suggest(request):
    return JsonResponse(
        {"results": assignees.suggest_people(request.GET.get("q", ""))}
    )


@login_required
@require_GET
@api_view
def assignee_list(request):
    page_size = _int_param(
        request, "page_size", DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
    ) or DEFAULT_PAGE_SIZE
    return JsonResponse(
        assignees.list_assignees(
            query=request.GET.get("q", ""),
            page=request.GET.get("page", 1),
            page_size=page_size,
        )
    )


@login_required
@require_POST
@api_view
def assignee_rename(request):
    data = _json_body(request)
    updated = assignees.rename_assignee(
        request.user,
        _str_field(data, "old_name"),
        _str_field(data, "old_email", None),
        _str_field(data, "new_name"),
        _str_field(data, "new_email", None),
    )
    return JsonResponse({"updated": updated})


@login_required
@require_POST
@api_view
def assignee_delete(request):
    data = _json_body(request)
    deleted = assignees.delete_assignee(
        request.user,
        _str_field(data, "name"),
        _str_field(data, "email", None),
    )
    return JsonResponse({"deleted": deleted})


# --- Audit and stats ---


@login_required
@require_GET
@api_view
def audit_log(request):
    require_admin(request.user, "read the audit log")
    return JsonResponse(
        audit.get_audit_log(
            limit=_int_param(request, "limit", 50, audit.MAX_PAGE_SIZE),
            offset=_int_param(request, "offset", 0),
            entity_type=request.GET.get("entity_type"),
            entity_id=request.GET.get("entity_id"),
            action=request.GET.get("action"),
        )
    )


@login_required
@require_GET
def inventory_stats(request):
    return JsonResponse(stats.inventory_stats())


@login_required
@require_GET
def me(request):
    """Role flags the client uses to show or hide actions."""
    user = request.user
    return JsonResponse(
        {
            "id": user.pk,
            "email": user.email,
            "display_name": user.get_display_name(),
            "role": get_user_role(user),
            "is_admin": is_admin(user),
            "is_super_admin": is_super_admin(user),
            "can_manage_incidents": can_manage_incidents(user),
            "can_report_incident": can_report_incident(user),
        }
    )


# --- Incidents ---


@login_required
@api_view
def incident_list(request):
    """GET lists incidents, POST reports one."""
    if request.method == "POST":
        data = _json_body(request)
        incident = incidents.report_incident(
            data.get("asset_id"),
            request.user,
            incident_type=_str_field(data, "incident_type", None),
            description=_str_field(data, "description"),
            severity=_str_field(data, "severity", "medium"),
            location=_str_field(data, "location"),
        )
        return JsonResponse(incidents.incident_payload(incident), status=201)
    if request.method != "GET":
        return JsonResponse(
            {"error": "Method not allowed.", "code": "METHOD_NOT_ALLOWED"},
            status=405,
        )
    return JsonResponse(
        {
            "results": incidents.list_incidents(
                status=request.GET.get("status"),
                severity=request.GET.get("severity"),
                asset_id=request.GET.get("asset_id"),
            )
        }
    )


@login_required
@require_POST
@api_view
def incident_assign(request, pk):
    data = _json_body(request)
    incident = incidents.assign_incident(
        pk, request.user, data.get("assigned_to")
    )
    return JsonResponse(incidents.incident_payload(incident))


@login_required
@require_POST
@api_view
def incident_status(request, pk):
    data = _json_body(request)
    incident = incidents.update_incident_status(
        pk, request.user, _str_field(data, "status", None)
    )
    return JsonResponse(incidents.incident_payload(incident))


# --- Public lookup ---


@require_GET
@ratelimit(key="ip", rate=settings.PUBLIC_LOOKUP_RATE, block=True)
@api_view
def public_asset(request, slug):
    """Public QR lookup. Exposes no email, price or notes."""
    asset = resolve_public_asset(slug)
    logger.debug("Public lookup of asset #%s", asset.pk)
    return JsonResponse(inventory.asset_payload(asset, include_private=False))
