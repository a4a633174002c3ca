"""Factory Boy factories for PARC test data generation."""

import factory
from factory.django import DjangoModelFactory

from django.utils import timezone


class UserFactory(DjangoModelFactory):
    """Factory for CustomUser model."""

    class Meta:
        model = "accounts.CustomUser"
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    display_name = factory.Faker("name")
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        pwd = extracted or "testpass123!"
        self.set_password(pwd)
        if create:
            self.save(update_fields=["password"])


class CategoryFactory(DjangoModelFactory):
    """Factory for Category model."""

    class Meta:
        model = "assets.Category"
        django_get_or_create = ("name",)

    name = factory.Sequence(lambda n: f"Category {n}")


class AssetFactory(DjangoModelFactory):
    """Factory for Asset model.

    Sets ``qr_slug`` after insert the way asset creation does. The
    status is written as given; use the lifecycle services to build
    consistent assigned assets (see ``AssignmentFactory``).
    """

    class Meta:
        model = "assets.Asset"
        skip_postgeneration_save = True

    label = factory.Sequence(lambda n: f"Asset {n}")
    serial_no = factory.Sequence(lambda n: f"SN-{n:05d}")
    category = factory.SubFactory(CategoryFactory)
    status = "in_stock"
    supplier = "Bureau Vallée"

    @factory.post_generation
    def qr_slug(self, create, extracted, **kwargs):
        if not create:
            return
        self.qr_slug = extracted or f"asset/{self.pk}"
        self.save(update_fields=["qr_slug"])


class AssignmentFactory(DjangoModelFactory):
    """Factory for Assignment model.

    Active by default; the asset is created as ``assigned`` so the pair
    is consistent.
    """

    class Meta:
        model = "assets.Assignment"

    asset = factory.SubFactory(AssetFactory, status="assigned")
    assignee_name = factory.Faker("name")
    assignee_email = factory.Sequence(lambda n: f"person{n}@example.org")
    assigned_at = factory.LazyFunction(timezone.now)
    returned_at = None


class IncidentFactory(DjangoModelFactory):
    """Factory for Incident model."""

    class Meta:
        model = "assets.Incident"

    asset = factory.SubFactory(AssetFactory)
    incident_type = "damage"
    severity = "medium"
    status = "open"
    description = factory.Faker("sentence")
    reported_by = factory.SubFactory(UserFactory)
