"""Role resolution and authorization checks."""

from django.contrib.auth import get_user_model

from ..exceptions import NotAuthorized

User = get_user_model()

ADMIN_GROUP = "Admin"


def get_user_role(user: User | None) -> str:
    """Determine the user's highest role.

    Returns one of: 'super_admin', 'admin', 'user' or 'anonymous'.

    Uses permission-based checks rather than group names, so
    deployments that rename the admin group keep working.
    """
    if user is None or not user.is_authenticated:
        return "anonymous"

    if not user.is_active:
        return "anonymous"

    if user.is_superuser:
        return "super_admin"

    if user.has_perm("assets.can_manage_assets"):
        return "admin"

    return "user"


def is_admin(user: User | None) -> bool:
    """Super admins are admins too."""
    return get_user_role(user) in ("super_admin", "admin")


def is_super_admin(user: User | None) -> bool:
    return get_user_role(user) == "super_admin"


def can_manage_incidents(user: User | None) -> bool:
    if is_admin(user):
        return True
    return bool(user and user.has_perm("assets.can_manage_incidents"))


def can_report_incident(user: User | None) -> bool:
    return get_user_role(user) != "anonymous"


def require_admin(user: User | None, action: str = "perform this action"):
    """Raise NotAuthorized unless the user is an admin."""
    if not is_admin(user):
        raise NotAuthorized(f"Only administrators can {action}.")
