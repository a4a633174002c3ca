"""Management command to create the Admin permission group."""

from django.contrib.auth.models import Group, Permission
from django.contrib.contenttypes.models import ContentType
from django.core.management.base import BaseCommand

from assets.models import Asset, Assignment, Category, Incident
from assets.services.permissions import ADMIN_GROUP

# (model, codenames) granted to the Admin group
ADMIN_PERMISSIONS = [
    (
        Asset,
        [
            "view_asset",
            "add_asset",
            "change_asset",
            "delete_asset",
            "can_manage_assets",
            "can_manage_incidents",
        ],
    ),
    (
        Category,
        ["view_category", "add_category", "change_category"],
    ),
    (Assignment, ["view_assignment", "change_assignment"]),
    (Incident, ["view_incident", "change_incident"]),
]


def configure_admin_group():
    """Create the Admin group if needed and reset its permissions."""
    group, created = Group.objects.get_or_create(name=ADMIN_GROUP)
    perms = []
    for model, codenames in ADMIN_PERMISSIONS:
        ct = ContentType.objects.get_for_model(model)
        perms.extend(
            Permission.objects.get(codename=codename, content_type=ct)
            for codename in codenames
        )
    group.permissions.set(perms)
    return group, created


class Command(BaseCommand):
    help = "Create the Admin permission group with lifecycle permissions"

    def handle(self, *args, **options):
        group, created = configure_admin_group()
        verb = "Created" if created else "Updated"
        self.stdout.write(
            self.style.SUCCESS(
                f"{verb} group '{group.name}' with "
                f"{group.permissions.count()} permission(s)."
            )
        )
