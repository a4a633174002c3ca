"""Tests for category get-or-create."""

import pytest

from django.db import IntegrityError

from assets.exceptions import InvalidInput, PersistenceFailure
from assets.models import AuditEntry, Category
from assets.services.categories import (
    get_or_create_category,
    search_categories,
)


class TestGetOrCreateCategory:
    def test_creates_once(self, db, admin_user):
        first = get_or_create_category("Monitors", actor=admin_user)
        second = get_or_create_category("Monitors", actor=admin_user)
        assert first.pk == second.pk
        assert Category.objects.filter(name="Monitors").count() == 1
        assert AuditEntry.objects.filter(action="category_created").count() == 1

    def test_name_is_trimmed_and_collapsed(self, db):
        category = get_or_create_category("  Office   chairs ")
        assert category.name == "Office chairs"
        assert get_or_create_category("Office chairs").pk == category.pk

    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_blank_means_no_category(self, db, name):
        assert get_or_create_category(name) is None
        assert not Category.objects.exists()

    @pytest.mark.parametrize("name", [7, ["Laptops"]])
    def test_non_text_name_rejected(self, db, name):
        with pytest.raises(InvalidInput):
            get_or_create_category(name)
        assert not Category.objects.exists()

    def test_lookup_is_exact(self, category):
        other = get_or_create_category("laptops")
        assert other.pk != category.pk

    def test_concurrent_insert_is_read_back(self, db, monkeypatch):
        winner = Category.objects.create(name="Phones")
        real_filter = Category.objects.filter
        calls = {"n": 0}

        def racing_filter(*args, **kwargs):
            # First lookup misses, as if the other request had not
            # committed yet
            calls["n"] += 1
            if calls["n"] == 1:
                return Category.objects.none()
            return real_filter(*args, **kwargs)

        monkeypatch.setattr(Category.objects, "filter", racing_filter)

        assert get_or_create_category("Phones").pk == winner.pk

    def test_insert_failure_without_row_raises(self, db, monkeypatch):
        def failing_create(**kwargs):
            raise IntegrityError("UNIQUE constraint failed")

        monkeypatch.setattr(Category.objects, "create", failing_create)

        with pytest.raises(PersistenceFailure):
            get_or_create_category("Ghost")


class TestSearchCategories:
    def test_search(self, db):
        for name in ["Laptops", "Laptop bags", "Chairs"]:
            Category.objects.create(name=name)
        names = [c["name"] for c in search_categories("lap")]
        assert names == ["Laptop bags", "Laptops"]

    def test_limit(self, db):
        for i in range(15):
            Category.objects.create(name=f"Cat {i:02d}")
        assert len(search_categories("", limit=10)) == 10
