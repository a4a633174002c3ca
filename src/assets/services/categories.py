"""Category get-or-create, tolerant of concurrent creation."""

import logging

from django.db import IntegrityError
from django.db import transaction as db_transaction

from ..exceptions import InvalidInput, PersistenceFailure
from ..models import Category
from . import audit

logger = logging.getLogger(__name__)


def get_or_create_category(name, actor=None):
    """Return the category named ``name``, creating it if needed.

    Blank names return None. The insert runs in a savepoint; if another
    request created the same name first, the unique constraint fires and
    the row is read back once instead of failing.
    """
    if name is not None and not isinstance(name, str):
        raise InvalidInput("Category name must be text.")
    name = " ".join((name or "").split())
    if not name:
        return None

    existing = Category.objects.filter(name=name).first()
    if existing:
        return existing

    try:
        with db_transaction.atomic():
            category = Category.objects.create(name=name)
            audit.record(
                "category_created",
                "category",
                category.pk,
                actor=actor,
                description=f"Category '{name}' created.",
                new_values={"name": name},
            )
    except IntegrityError:
        logger.info("Category '%s' created concurrently, re-reading", name)
        category = Category.objects.filter(name=name).first()
        if category is None:
            raise PersistenceFailure(
                f"Could not create or find category '{name}'."
            )
    return category


def search_categories(query="", limit=10):
    qs = Category.objects.all()
    query = (query or "").strip()
    if query:
        qs = qs.filter(name__icontains=query)
    return list(qs.order_by("name").values("id", "name")[:limit])
