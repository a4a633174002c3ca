"""Admin configuration for assets app using django-unfold."""

from unfold.admin import ModelAdmin, TabularInline
from unfold.contrib.filters.admin import (
    ChoicesDropdownFilter,
    RelatedDropdownFilter,
)
from unfold.decorators import action, display

from django.contrib import admin, messages
from django.db.models import Count

from .exceptions import LifecycleError
from .models import (
    Asset,
    Assignment,
    AuditEntry,
    Category,
    Incident,
    LifecycleEvent,
)
from .services import inventory, lifecycle


class ReadOnlyAdminMixin:
    """Append-only records: viewable, never added, changed or deleted."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class AssignmentInline(TabularInline):
    model = Assignment
    extra = 0
    fields = [
        "assignee_name",
        "assignee_email",
        "assigned_at",
        "returned_at",
        "assigned_by",
        "notes",
    ]
    readonly_fields = fields
    can_delete = False
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Category)
class CategoryAdmin(ModelAdmin):
    list_display = ["name", "display_asset_count", "created_at"]
    search_fields = ["name", "description"]

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(Count("assets"))

    @display(description="Assets", ordering="assets__count")
    def display_asset_count(self, obj):
        return obj.assets__count


@admin.register(Asset)
class AssetAdmin(ModelAdmin):
    list_display = [
        "display_header",
        "display_status",
        "category",
        "display_assignee",
        "warranty_end",
        "updated_at",
    ]
    list_filter = [
        ("status", ChoicesDropdownFilter),
        ("category", RelatedDropdownFilter),
    ]
    list_filter_submit = True
    search_fields = ["label", "serial_no", "supplier", "notes"]
    readonly_fields = [
        "status",
        "qr_slug",
        "created_by",
        "created_at",
        "updated_at",
    ]
    autocomplete_fields = ["category"]
    inlines = [AssignmentInline]
    actions = ["retire_selected"]

    fieldsets = (
        (
            None,
            {"fields": ("label", "serial_no", "category", "status", "notes")},
        ),
        (
            "Purchase",
            {
                "fields": (
                    "purchased_at",
                    "purchase_price",
                    "supplier",
                    "warranty_end",
                ),
                "classes": ["tab"],
            },
        ),
        (
            "Tracking",
            {
                "fields": (
                    "qr_slug",
                    "created_by",
                    "created_at",
                    "updated_at",
                ),
                "classes": ["tab"],
            },
        ),
    )

    def get_queryset(self, request):
        return Asset.objects.with_related()

    # --- Display methods ---

    @display(description="Asset", header=True, ordering="label")
    def display_header(self, obj):
        return obj.label, obj.serial_no or f"#{obj.pk}"

    @display(
        description="Status",
        label={
            "in_stock": "success",
            "assigned": "info",
            "repair": "warning",
            "retired": "default",
        },
    )
    def display_status(self, obj):
        return obj.status

    @display(description="Assigned To", empty_value="-")
    def display_assignee(self, obj):
        active = obj.active_assignment
        return active.display_assignee if active else None

    # --- Persistence goes through the same paths as the API ---

    def _service_fields(self, form):
        data = form.cleaned_data
        fields = {
            name: data[name]
            for name in inventory.EDITABLE_FIELDS
            if name in data
        }
        if "category" in data:
            category = data["category"]
            fields["category_name"] = category.name if category else ""
        return fields

    def save_model(self, request, obj, form, change):
        fields = self._service_fields(form)
        if change:
            inventory.edit_asset(obj.pk, request.user, fields)
        else:
            obj.pk = inventory.create_asset(request.user, fields).pk
        obj.refresh_from_db()

    def delete_model(self, request, obj):
        inventory.delete_asset(obj.pk, request.user)

    def delete_queryset(self, request, queryset):
        for pk in queryset.values_list("pk", flat=True):
            inventory.delete_asset(pk, request.user)

    @action(description="Retire selected assets")
    def retire_selected(self, request, queryset):
        retired = 0
        for asset in queryset:
            try:
                lifecycle.retire(
                    asset.pk, request.user, notes="Retired in admin"
                )
            except LifecycleError as exc:
                messages.warning(request, f"{asset.label}: {exc.message}")
            else:
                retired += 1
        if retired:
            messages.success(request, f"{retired} asset(s) retired.")


@admin.register(Assignment)
class AssignmentAdmin(ModelAdmin):
    list_display = [
        "asset",
        "assignee_name",
        "assignee_email",
        "display_active",
        "assigned_at",
        "returned_at",
    ]
    list_filter = [("asset__category", RelatedDropdownFilter)]
    search_fields = ["assignee_name", "assignee_email", "asset__label"]
    date_hierarchy = "assigned_at"
    readonly_fields = ["asset", "assigned_at", "returned_at", "assigned_by"]

    @display(description="Active", boolean=True)
    def display_active(self, obj):
        return obj.is_active

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(LifecycleEvent)
class LifecycleEventAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = [
        "asset",
        "display_event_type",
        "actor",
        "cost",
        "timestamp",
    ]
    list_filter = [("event_type", ChoicesDropdownFilter)]
    search_fields = ["asset__label", "notes"]
    date_hierarchy = "timestamp"

    @display(
        description="Event",
        label={
            "created": "default",
            "assigned": "info",
            "returned": "success",
            "repair": "warning",
            "maintenance": "success",
            "retired": "danger",
        },
    )
    def display_event_type(self, obj):
        return obj.event_type


@admin.register(AuditEntry)
class AuditEntryAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = [
        "action",
        "entity_type",
        "entity_id",
        "actor_email",
        "description",
        "created_at",
    ]
    list_filter = ["action", "entity_type"]
    search_fields = ["description", "actor_email", "entity_id"]
    date_hierarchy = "created_at"


@admin.register(Incident)
class IncidentAdmin(ModelAdmin):
    list_display = [
        "asset",
        "incident_type",
        "display_severity",
        "display_status",
        "reported_by",
        "assigned_to",
        "created_at",
    ]
    list_filter = [
        ("status", ChoicesDropdownFilter),
        ("severity", ChoicesDropdownFilter),
        ("incident_type", ChoicesDropdownFilter),
    ]
    search_fields = ["asset__label", "description", "location"]
    readonly_fields = ["status", "resolved_at", "created_at", "updated_at"]
    autocomplete_fields = ["asset"]

    @display(
        description="Severity",
        label={
            "low": "default",
            "medium": "info",
            "high": "warning",
            "critical": "danger",
        },
    )
    def display_severity(self, obj):
        return obj.severity

    @display(
        description="Status",
        label={
            "open": "danger",
            "in_progress": "warning",
            "resolved": "success",
            "closed": "default",
        },
    )
    def display_status(self, obj):
        return obj.status
