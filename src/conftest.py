"""Shared pytest fixtures for PARC tests."""

import pytest

from django.conf import settings

# Use in-memory cache for tests (avoids Redis connection errors)
settings.CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

# Plain static storage so tests never need collectstatic output
settings.STORAGES["staticfiles"] = {
    "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
}


@pytest.fixture(autouse=True)
def _clear_cache():
    """Clear the in-memory cache before each test.

    Prevents rate-limit counters (django_ratelimit) from bleeding
    across tests.
    """
    from django.core.cache import cache

    cache.clear()


def _ensure_admin_group():
    """Create the Admin group with the same permissions as setup_groups."""
    from assets.management.commands.setup_groups import configure_admin_group

    group, _ = configure_admin_group()
    return group


from assets.factories import (  # noqa: E402
    AssetFactory,
    AssignmentFactory,
    CategoryFactory,
    UserFactory,
)

# --- User fixtures ---


@pytest.fixture
def password():
    return "testpass123!"


@pytest.fixture
def user(db, password):
    return UserFactory(
        username="testuser",
        email="test@example.com",
        password=password,
        display_name="Test User",
    )


@pytest.fixture
def admin_user(db, password):
    group = _ensure_admin_group()
    u = UserFactory(
        username="manager",
        email="manager@example.com",
        password=password,
        display_name="Asset Manager",
    )
    u.groups.add(group)
    return u


@pytest.fixture
def super_admin(db, password):
    return UserFactory(
        username="admin",
        email="admin@example.com",
        password=password,
        is_staff=True,
        is_superuser=True,
    )


@pytest.fixture
def client_logged_in(client, user, password):
    client.login(username=user.username, password=password)
    return client


@pytest.fixture
def admin_client(client, admin_user, password):
    client.login(username=admin_user.username, password=password)
    return client


@pytest.fixture
def super_admin_client(client, super_admin, password):
    client.login(username=super_admin.username, password=password)
    return client


# --- Core model fixtures ---


@pytest.fixture
def category(db):
    return CategoryFactory(
        name="Laptops",
        description="Portable computers",
    )


@pytest.fixture
def asset(category, admin_user):
    return AssetFactory(
        label="ThinkPad T14",
        serial_no="PF-3X9K2",
        category=category,
        status="in_stock",
        created_by=admin_user,
    )


@pytest.fixture
def assigned_asset(category, admin_user):
    assignment = AssignmentFactory(
        asset__label="Dell Latitude 5440",
        asset__category=category,
        asset__created_by=admin_user,
        assignee_name="Ama Boateng",
        assignee_email="ama@example.org",
        assigned_by=admin_user,
    )
    return assignment.asset


@pytest.fixture
def repair_asset(category, admin_user):
    return AssetFactory(
        label="Office chair",
        category=category,
        status="repair",
        created_by=admin_user,
    )


@pytest.fixture
def retired_asset(category, admin_user):
    return AssetFactory(
        label="Old monitor",
        category=category,
        status="retired",
        created_by=admin_user,
    )
