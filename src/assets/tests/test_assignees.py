"""Tests for assignee parsing and the people directory."""

from datetime import timedelta

import pytest

from django.utils import timezone

from assets.exceptions import InvalidAssignee, NotAuthorized
from assets.factories import AssetFactory, AssignmentFactory
from assets.models import Assignment, AuditEntry, LifecycleEvent
from assets.services import audit
from assets.services.assignees import (
    Assignee,
    delete_assignee,
    list_assignees,
    parse_assignee,
    rename_assignee,
    suggest_people,
)


class TestParseAssignee:
    @pytest.mark.parametrize(
        "text, name, email",
        [
            ("Ama Boateng <ama@example.org>", "Ama Boateng", "ama@example.org"),
            (
                "  Ama   Boateng   < AMA@Example.ORG > ",
                "Ama Boateng",
                "ama@example.org",
            ),
            ("<ama@example.org>", "ama@example.org", "ama@example.org"),
            ("Kofi Mensah", "Kofi Mensah", None),
            ("kofi@example.org", "kofi@example.org", None),
            ("Ama <>", "Ama", None),
        ],
    )
    def test_parse(self, text, name, email):
        assert parse_assignee(text) == Assignee(name=name, email=email)

    @pytest.mark.parametrize("text", [None, "", "   ", "<>", "< >"])
    def test_empty_rejected(self, text):
        with pytest.raises(InvalidAssignee):
            parse_assignee(text)

    @pytest.mark.parametrize("text", [42, ["Ama"], {"name": "Ama"}])
    def test_non_text_rejected(self, text):
        with pytest.raises(InvalidAssignee):
            parse_assignee(text)

    def test_invalid_email_rejected(self):
        with pytest.raises(InvalidAssignee, match="not a valid email"):
            parse_assignee("Ama <ama at example>")

    def test_str_round_trips_display_form(self):
        assert str(Assignee("Ama", "ama@example.org")) == (
            "Ama <ama@example.org>"
        )
        assert str(Assignee("Kofi")) == "Kofi"


@pytest.fixture
def history(db):
    """Two people: Ama with one returned and one active row, Kofi with one."""
    now = timezone.now()
    returned = AssignmentFactory(
        asset__status="in_stock",
        assignee_name="Ama B.",
        assignee_email="ama@example.org",
        assigned_at=now - timedelta(days=30),
        returned_at=now - timedelta(days=20),
    )
    active = AssignmentFactory(
        assignee_name="Ama Boateng",
        assignee_email="ama@example.org",
        assigned_at=now - timedelta(days=1),
    )
    kofi = AssignmentFactory(
        assignee_name="Kofi Mensah",
        assignee_email=None,
        assigned_at=now - timedelta(days=5),
    )
    return {"returned": returned, "active": active, "kofi": kofi}


class TestListAssignees:
    def test_aggregates_by_email(self, history):
        data = list_assignees()
        assert data["count"] == 2
        ama, kofi = data["results"]
        assert ama["key"] == "ama@example.org"
        assert ama["full_name"] == "Ama Boateng"
        assert ama["total_count"] == 2
        assert ama["active_count"] == 1
        assert kofi["key"] == "name:kofi mensah"
        assert kofi["email"] is None
        assert kofi["total_count"] == 1

    def test_search(self, history):
        data = list_assignees(query="kofi")
        assert [p["full_name"] for p in data["results"]] == ["Kofi Mensah"]

    def test_search_by_email(self, history):
        data = list_assignees(query="AMA@EXAMPLE")
        assert [p["key"] for p in data["results"]] == ["ama@example.org"]

    def test_pagination(self, history):
        data = list_assignees(page=2, page_size=1)
        assert data["page"] == 2
        assert data["num_pages"] == 2
        assert len(data["results"]) == 1

    def test_empty_directory(self, db):
        data = list_assignees()
        assert data["count"] == 0
        assert data["results"] == []


class TestSuggestPeople:
    def test_suggestions(self, history):
        assert suggest_people("ama") == [
            "Ama B. <ama@example.org>",
            "Ama Boateng <ama@example.org>",
        ]
        assert suggest_people("mensah") == ["Kofi Mensah"]

    def test_limit(self, history):
        assert len(suggest_people("", limit=2)) == 2


class TestRenameAssignee:
    def test_rename_by_email(self, history, admin_user):
        updated = rename_assignee(
            admin_user,
            "Ama Boateng",
            "ama@example.org",
            "Ama Boateng-Owusu",
            "ama.owusu@example.org",
        )
        assert updated == 2
        assert set(
            Assignment.objects.filter(
                assignee_email="ama.owusu@example.org"
            ).values_list("assignee_name", flat=True)
        ) == {"Ama Boateng-Owusu"}
        entry = AuditEntry.objects.get(action="assignee_renamed")
        assert entry.new_values["email"] == "ama.owusu@example.org"

    def test_rename_by_name_only_touches_rows_without_email(
        self, history, admin_user
    ):
        AssignmentFactory(
            asset__status="in_stock",
            assignee_name="Kofi Mensah",
            assignee_email="other.kofi@example.org",
            returned_at=timezone.now(),
        )
        updated = rename_assignee(
            admin_user, "Kofi Mensah", None, "Kofi A. Mensah", ""
        )
        assert updated == 1
        remaining = Assignment.objects.filter(assignee_name="Kofi Mensah")
        assert remaining.count() == 1

    def test_rename_leaves_assets_and_events_alone(self, history, admin_user):
        asset = history["active"].asset
        events_before = LifecycleEvent.objects.count()
        rename_assignee(
            admin_user, "", "ama@example.org", "Ama", "ama@example.org"
        )
        asset.refresh_from_db()
        assert asset.status == "assigned"
        assert LifecycleEvent.objects.count() == events_before

    def test_rename_invalid_email(self, history, admin_user):
        with pytest.raises(InvalidAssignee):
            rename_assignee(admin_user, "Kofi Mensah", None, "Kofi", "nope")

    def test_rename_requires_identity(self, history, admin_user):
        with pytest.raises(InvalidAssignee):
            rename_assignee(admin_user, "", "", "Someone", None)

    def test_rename_requires_admin(self, history, user):
        with pytest.raises(NotAuthorized):
            rename_assignee(user, "Kofi Mensah", None, "Kofi", None)

    def test_rename_unknown_person_updates_nothing(self, db, admin_user):
        assert rename_assignee(admin_user, "Nobody", None, "X", None) == 0
        assert not AuditEntry.objects.exists()


class TestDeleteAssignee:
    def test_delete_keeps_active_rows(self, history, admin_user):
        deleted = delete_assignee(admin_user, "Ama", "ama@example.org")
        assert deleted == 1
        assert not Assignment.objects.filter(
            pk=history["returned"].pk
        ).exists()
        assert Assignment.objects.filter(pk=history["active"].pk).exists()
        assert AuditEntry.objects.filter(action="assignees_deleted").exists()

    def test_delete_nothing_returned(self, history, admin_user):
        assert delete_assignee(admin_user, "Kofi Mensah", None) == 0

    def test_delete_requires_admin(self, history, user):
        with pytest.raises(NotAuthorized):
            delete_assignee(user, "Kofi Mensah", None)

    def test_delete_leaves_timeline_untouched(self, db, admin_user):
        from assets.services import lifecycle

        asset = AssetFactory()
        lifecycle.assign(asset.pk, "Yaw <yaw@example.org>", admin_user)
        lifecycle.return_asset(asset.pk, admin_user)

        events = LifecycleEvent.objects.filter(asset=asset).order_by("pk")
        fields = ("pk", "event_type", "assignment_id", "timestamp")
        before = list(events.values_list(*fields))
        assert all(row[2] is not None for row in before)

        assert delete_assignee(admin_user, "Yaw", "yaw@example.org") == 1
        assert list(events.values_list(*fields)) == before
        assert len(audit.asset_timeline(asset.pk)) == 2
