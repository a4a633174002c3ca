"""Models for PARC asset tracking."""

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.urls import reverse
from django.utils import timezone


class Category(models.Model):
    """Asset type classification, created on demand by name."""

    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "categories"
        ordering = ["name"]

    def __str__(self):
        return self.name


class AssetManager(models.Manager):
    """Custom manager with shared queryset builder for Asset."""

    def with_related(self):
        """Select the category and prefetch the open assignment."""
        return self.select_related("category").prefetch_related(
            models.Prefetch(
                "assignments",
                queryset=Assignment.objects.filter(returned_at__isnull=True),
                to_attr="open_assignments",
            )
        )


class Asset(models.Model):
    """Individual trackable piece of furniture or IT equipment."""

    STATUS_CHOICES = [
        ("in_stock", "In stock"),
        ("assigned", "Assigned"),
        ("repair", "In repair"),
        ("retired", "Retired"),
    ]

    # Valid state transitions: from_status -> [to_statuses]
    VALID_TRANSITIONS = {
        "in_stock": ["assigned", "repair", "retired"],
        "assigned": ["in_stock", "repair", "retired"],
        "repair": ["in_stock", "retired"],
        "retired": [],
    }

    label = models.CharField(max_length=200)
    serial_no = models.CharField(max_length=100, blank=True)
    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        related_name="assets",
        null=True,
        blank=True,
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="in_stock"
    )
    purchased_at = models.DateField(null=True, blank=True)
    purchase_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    supplier = models.CharField(max_length=200, blank=True)
    warranty_end = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)
    qr_slug = models.CharField(
        max_length=100,
        unique=True,
        null=True,
        blank=True,
        help_text="Public lookup path, set once at creation",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_assets",
    )

    objects = AssetManager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="idx_asset_status"),
            models.Index(fields=["created_at"], name="idx_asset_created_at"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    status__in=["in_stock", "assigned", "repair", "retired"]
                ),
                name="asset_status_valid",
            ),
        ]
        permissions = [
            ("can_manage_assets", "Can run asset lifecycle operations"),
            ("can_manage_incidents", "Can assign and update incidents"),
        ]

    def __str__(self):
        return f"{self.label} (#{self.pk})"

    def get_absolute_url(self):
        return reverse("assets:asset_detail", kwargs={"pk": self.pk})

    def clean(self):
        super().clean()
        if not (self.label or "").strip():
            raise ValidationError({"label": "Label is required."})

    def can_transition_to(self, new_status):
        """Check if the status transition is valid."""
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])

    @staticmethod
    def slug_for(pk):
        return f"asset/{pk}"

    @property
    def is_retired(self):
        return self.status == "retired"

    @property
    def active_assignment(self):
        """Return the open assignment, if any.

        Uses the prefetched ``open_assignments`` attribute when available
        (set by ``AssetManager.with_related()``).
        """
        if hasattr(self, "open_assignments"):
            return self.open_assignments[0] if self.open_assignments else None
        return self.assignments.filter(returned_at__isnull=True).first()

    @property
    def is_assigned(self):
        return self.active_assignment is not None

    @property
    def public_url(self):
        if not self.qr_slug:
            return None
        base = settings.SITE_URL.rstrip("/")
        return f"{base}/{settings.PUBLIC_LOOKUP_PREFIX}/{self.qr_slug}"

    @property
    def warranty_active(self):
        if not self.warranty_end:
            return False
        return self.warranty_end >= timezone.localdate()


class Assignment(models.Model):
    """One episode of an asset being held by a person.

    The assignee is stored by name and email rather than as a user, since
    most holders never sign in.
    """

    asset = models.ForeignKey(
        Asset, on_delete=models.CASCADE, related_name="assignments"
    )
    assignee_name = models.CharField(max_length=200)
    assignee_email = models.EmailField(blank=True, null=True)
    assigned_at = models.DateTimeField(default=timezone.now)
    returned_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assignments_made",
    )

    class Meta:
        ordering = ["-assigned_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["asset"],
                condition=models.Q(returned_at__isnull=True),
                name="unique_active_assignment_per_asset",
            ),
        ]
        indexes = [
            models.Index(
                fields=["assignee_email"], name="idx_assignment_email"
            ),
            models.Index(fields=["assignee_name"], name="idx_assignment_name"),
        ]

    def __str__(self):
        return f"{self.asset.label} -> {self.display_assignee}"

    @property
    def is_active(self):
        return self.returned_at is None

    @property
    def display_assignee(self):
        if self.assignee_email and self.assignee_email != self.assignee_name:
            return f"{self.assignee_name} <{self.assignee_email}>"
        return self.assignee_name


class ImmutableRecord(models.Model):
    """Rows that are written once and never changed or deleted.

    Bulk removal through a cascade from the parent row is still allowed;
    that path does not go through ``delete()``.
    """

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError(
                f"{self._meta.verbose_name_plural.capitalize()} are "
                f"immutable and cannot be modified."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            f"{self._meta.verbose_name_plural.capitalize()} are "
            f"immutable and cannot be deleted."
        )


class LifecycleEvent(ImmutableRecord):
    """Timeline entry recorded for asset creation and every transition."""

    EVENT_CHOICES = [
        ("created", "Created"),
        ("assigned", "Assigned"),
        ("returned", "Returned"),
        ("repair", "Sent to repair"),
        ("retired", "Retired"),
        ("maintenance", "Back from repair"),
    ]

    asset = models.ForeignKey(
        Asset, on_delete=models.CASCADE, related_name="events"
    )
    event_type = models.CharField(max_length=20, choices=EVENT_CHOICES)
    timestamp = models.DateTimeField(default=timezone.now)
    notes = models.TextField(blank=True)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="lifecycle_events",
    )
    # Soft link: deleting an assignment never touches its events
    assignment = models.ForeignKey(
        Assignment,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name="events",
    )
    cost = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text="Repair cost, only on maintenance events",
    )

    class Meta:
        ordering = ["-timestamp", "-pk"]
        indexes = [
            models.Index(
                fields=["asset", "timestamp"], name="idx_event_asset_ts"
            ),
            models.Index(fields=["event_type"], name="idx_event_type"),
        ]

    def __str__(self):
        return f"{self.asset.label} - {self.get_event_type_display()}"

    def clean(self):
        super().clean()
        if self.cost is not None and self.event_type != "maintenance":
            raise ValidationError(
                {"cost": "Only maintenance events carry a cost."}
            )


class AuditEntry(ImmutableRecord):
    """Append-only audit log across assets, assignees, users and incidents.

    ``entity_id`` is a plain string so entries outlive the rows they
    describe.
    """

    action = models.CharField(max_length=50)
    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=50, blank=True)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_entries",
    )
    actor_email = models.EmailField(blank=True)
    description = models.TextField(blank=True)
    old_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name_plural = "audit entries"
        ordering = ["-created_at", "-pk"]
        indexes = [
            models.Index(
                fields=["entity_type", "entity_id"],
                name="idx_audit_entity",
            ),
            models.Index(fields=["action"], name="idx_audit_action"),
            models.Index(fields=["created_at"], name="idx_audit_created_at"),
        ]

    def __str__(self):
        return f"{self.action} {self.entity_type}#{self.entity_id}"


class Incident(models.Model):
    """Problem reported against an asset (damage, loss, theft...)."""

    TYPE_CHOICES = [
        ("damage", "Damage"),
        ("loss", "Loss"),
        ("malfunction", "Malfunction"),
        ("theft", "Theft"),
        ("other", "Other"),
    ]

    SEVERITY_CHOICES = [
        ("low", "Low"),
        ("medium", "Medium"),
        ("high", "High"),
        ("critical", "Critical"),
    ]

    STATUS_CHOICES = [
        ("open", "Open"),
        ("in_progress", "In progress"),
        ("resolved", "Resolved"),
        ("closed", "Closed"),
    ]

    VALID_TRANSITIONS = {
        "open": ["in_progress", "resolved", "closed"],
        "in_progress": ["open", "resolved", "closed"],
        "resolved": ["in_progress", "closed"],
        "closed": [],
    }

    asset = models.ForeignKey(
        Asset, on_delete=models.CASCADE, related_name="incidents"
    )
    incident_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    severity = models.CharField(
        max_length=20, choices=SEVERITY_CHOICES, default="medium"
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default="open"
    )
    description = models.TextField()
    location = models.CharField(max_length=200, blank=True)
    reported_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="reported_incidents",
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_incidents",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["status", "severity"],
                name="idx_incident_status_sev",
            ),
        ]

    def __str__(self):
        return (
            f"{self.get_incident_type_display()} on {self.asset.label} "
            f"({self.get_status_display()})"
        )

    @property
    def is_open(self):
        return self.status in ("open", "in_progress")

    def transition_to(self, new_status):
        """Move to a new status, enforcing the incident state machine.

        Sets ``resolved_at`` when the incident is resolved or closed and
        clears it when the incident is reopened. Raises ValidationError
        for invalid transitions.
        """
        valid_targets = self.VALID_TRANSITIONS.get(self.status, [])
        if new_status not in valid_targets:
            raise ValidationError(
                f"Cannot transition incident from '{self.status}' "
                f"to '{new_status}'."
            )

        self.status = new_status
        if new_status in ("resolved", "closed"):
            if self.resolved_at is None:
                self.resolved_at = timezone.now()
        else:
            self.resolved_at = None
        self.save(update_fields=["status", "resolved_at", "updated_at"])
