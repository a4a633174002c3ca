"""Tests for the JSON API views."""

import json

import pytest

from django.urls import reverse

from assets.factories import IncidentFactory
from assets.models import Asset, Assignment, AuditEntry


def post_json(client, url, data=None):
    return client.post(
        url, data=json.dumps(data or {}), content_type="application/json"
    )


class TestAuthentication:
    @pytest.mark.parametrize(
        "name, kwargs",
        [
            ("assets:asset_list", {}),
            ("assets:asset_detail", {"pk": 1}),
            ("assets:audit_log", {}),
            ("assets:inventory_stats", {}),
        ],
    )
    def test_login_required(self, client, db, name, kwargs):
        response = client.get(reverse(name, kwargs=kwargs))
        assert response.status_code == 302

    def test_me(self, admin_client, admin_user):
        data = admin_client.get(reverse("assets:me")).json()
        assert data["role"] == "admin"
        assert data["is_admin"] is True
        assert data["is_super_admin"] is False
        assert data["display_name"] == "Asset Manager"


class TestAssetEndpoints:
    def test_list(self, admin_client, asset, assigned_asset):
        data = admin_client.get(reverse("assets:asset_list")).json()
        assert data["count"] == 2
        labels = {a["label"] for a in data["results"]}
        assert labels == {"ThinkPad T14", "Dell Latitude 5440"}

    def test_list_filters(self, admin_client, asset, assigned_asset):
        url = reverse("assets:asset_list")
        data = admin_client.get(url, {"status": "assigned"}).json()
        assert [a["id"] for a in data["results"]] == [assigned_asset.pk]
        data = admin_client.get(url, {"q": "thinkpad"}).json()
        assert [a["id"] for a in data["results"]] == [asset.pk]

    def test_create(self, admin_client):
        response = post_json(
            admin_client,
            reverse("assets:asset_list"),
            {"label": "Standing desk", "category_name": "Furniture"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "in_stock"
        assert data["category"] == "Furniture"
        assert data["qr_slug"] == f"asset/{data['id']}"

    def test_create_invalid_label(self, admin_client):
        response = post_json(
            admin_client, reverse("assets:asset_list"), {"label": " "}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_LABEL"

    @pytest.mark.parametrize(
        "body, code",
        [
            ({"label": "Desk", "actor": 1}, "INVALID_FIELD"),
            ({"label": "Desk", "status": "retired"}, "INVALID_FIELD"),
            ({"label": "Desk", "category_name": ["Desk"]}, "INVALID_FIELD"),
            ({"label": 42}, "INVALID_LABEL"),
        ],
    )
    def test_create_rejects_bad_fields(self, admin_client, body, code):
        response = post_json(admin_client, reverse("assets:asset_list"), body)
        assert response.status_code == 400
        assert response.json()["code"] == code
        assert not Asset.objects.exists()

    def test_create_forbidden_for_plain_user(self, client_logged_in):
        response = post_json(
            client_logged_in, reverse("assets:asset_list"), {"label": "X"}
        )
        assert response.status_code == 403
        assert response.json()["code"] == "NOT_AUTHORIZED"

    def test_malformed_json(self, admin_client):
        response = admin_client.post(
            reverse("assets:asset_list"),
            data="{not json",
            content_type="application/json",
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"

    def test_wrong_method(self, admin_client, asset):
        response = admin_client.delete(reverse("assets:asset_list"))
        assert response.status_code == 405
        response = admin_client.get(
            reverse("assets:asset_assign", kwargs={"pk": asset.pk})
        )
        assert response.status_code == 405

    def test_detail(self, admin_client, assigned_asset):
        IncidentFactory(asset=assigned_asset)
        response = admin_client.get(
            reverse("assets:asset_detail", kwargs={"pk": assigned_asset.pk})
        )
        data = response.json()
        assert data["assignee_name"] == "Ama Boateng"
        assert data["last_assignment"]["returned_at"] is None
        assert data["open_incident_count"] == 1
        assert data["timeline"] == []

    def test_detail_not_found(self, admin_client):
        response = admin_client.get(
            reverse("assets:asset_detail", kwargs={"pk": 404404})
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_edit(self, admin_client, asset):
        response = post_json(
            admin_client,
            reverse("assets:asset_edit", kwargs={"pk": asset.pk}),
            {"notes": "Charger missing"},
        )
        assert response.status_code == 200
        assert response.json()["notes"] == "Charger missing"

    def test_edit_status_rejected(self, admin_client, asset):
        response = post_json(
            admin_client,
            reverse("assets:asset_edit", kwargs={"pk": asset.pk}),
            {"status": "retired"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_FIELD"

    def test_delete(self, admin_client, asset):
        response = post_json(
            admin_client,
            reverse("assets:asset_delete", kwargs={"pk": asset.pk}),
        )
        assert response.json() == {"ok": True}
        assert not Asset.objects.filter(pk=asset.pk).exists()


class TestLifecycleEndpoints:
    def test_assign(self, admin_client, asset):
        response = post_json(
            admin_client,
            reverse("assets:asset_assign", kwargs={"pk": asset.pk}),
            {"assignee": "Ama <ama@example.org>", "notes": "Onboarding"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["asset_id"] == asset.pk
        assert data["status"] == "assigned"
        assignment = Assignment.objects.get(pk=data["assignment_id"])
        assert assignment.assigned_at.isoformat() == data["assigned_at"]

    def test_assign_conflict(self, admin_client, assigned_asset):
        response = post_json(
            admin_client,
            reverse("assets:asset_assign", kwargs={"pk": assigned_asset.pk}),
            {"assignee": "Kofi"},
        )
        assert response.status_code == 409
        assert response.json()["code"] == "ALREADY_ASSIGNED"

    def test_assign_missing_assignee(self, admin_client, asset):
        response = post_json(
            admin_client,
            reverse("assets:asset_assign", kwargs={"pk": asset.pk}),
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_ASSIGNEE"

    @pytest.mark.parametrize(
        "route, body",
        [
            ("assets:asset_assign", {"assignee": 42}),
            ("assets:asset_assign", {"assignee": "Kofi", "notes": 7}),
            ("assets:asset_repair", {"notes": ["x"]}),
            ("assets:asset_retire", {"notes": {"why": "old"}}),
        ],
    )
    def test_non_string_fields_rejected(
        self, admin_client, asset, route, body
    ):
        response = post_json(
            admin_client, reverse(route, kwargs={"pk": asset.pk}), body
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"
        assert response.json()["field"] in body
        asset.refresh_from_db()
        assert asset.status == "in_stock"
        assert not asset.events.exists()

    def test_return(self, admin_client, assigned_asset):
        response = post_json(
            admin_client,
            reverse("assets:asset_return", kwargs={"pk": assigned_asset.pk}),
        )
        assert response.json()["status"] == "in_stock"

    def test_repair_and_exit(self, admin_client, asset):
        post_json(
            admin_client,
            reverse("assets:asset_repair", kwargs={"pk": asset.pk}),
            {"notes": "Fan noise"},
        )
        response = post_json(
            admin_client,
            reverse("assets:asset_exit_repair", kwargs={"pk": asset.pk}),
            {"cost": "35,00"},
        )
        assert response.status_code == 200
        asset.refresh_from_db()
        assert asset.status == "in_stock"

    def test_exit_repair_invalid_cost(self, admin_client, repair_asset):
        response = post_json(
            admin_client,
            reverse(
                "assets:asset_exit_repair", kwargs={"pk": repair_asset.pk}
            ),
            {"cost": "cheap"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_COST"

    def test_retire_twice(self, admin_client, retired_asset):
        response = post_json(
            admin_client,
            reverse("assets:asset_retire", kwargs={"pk": retired_asset.pk}),
        )
        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "ASSET_ALREADY_RETIRED"
        assert body["current_status"] == "retired"

    def test_plain_user_cannot_transition(self, client_logged_in, asset):
        response = post_json(
            client_logged_in,
            reverse("assets:asset_retire", kwargs={"pk": asset.pk}),
        )
        assert response.status_code == 403


class TestDirectoryEndpoints:
    def test_categories(self, admin_client, category):
        data = admin_client.get(
            reverse("assets:category_search"), {"q": "lap"}
        ).json()
        assert data["results"] == [{"id": category.pk, "name": "Laptops"}]

    def test_people_and_directory(self, admin_client, assigned_asset):
        people = admin_client.get(
            reverse("assets:people_suggest"), {"q": "ama"}
        ).json()
        assert people["results"] == ["Ama Boateng <ama@example.org>"]
        directory = admin_client.get(reverse("assets:assignee_list")).json()
        assert directory["results"][0]["active_count"] == 1

    def test_rename_and_delete(self, admin_client, assigned_asset):
        response = post_json(
            admin_client,
            reverse("assets:assignee_rename"),
            {
                "old_name": "Ama Boateng",
                "old_email": "ama@example.org",
                "new_name": "Ama Owusu",
                "new_email": "ama@example.org",
            },
        )
        assert response.json() == {"updated": 1}
        response = post_json(
            admin_client,
            reverse("assets:assignee_delete"),
            {"name": "Ama Owusu", "email": "ama@example.org"},
        )
        assert response.json() == {"deleted": 0}


class TestAuditAndStatsEndpoints:
    def test_audit_log_for_admins(self, admin_client, asset, admin_user):
        post_json(
            admin_client,
            reverse("assets:asset_retire", kwargs={"pk": asset.pk}),
        )
        data = admin_client.get(
            reverse("assets:audit_log"), {"entity_id": asset.pk}
        ).json()
        assert data["count"] == 1
        assert data["results"][0]["action"] == "asset_retired"

    def test_audit_log_forbidden_for_users(self, client_logged_in):
        response = client_logged_in.get(reverse("assets:audit_log"))
        assert response.status_code == 403
        assert response.json()["code"] == "NOT_AUTHORIZED"

    def test_audit_log_bad_limit(self, admin_client):
        response = admin_client.get(
            reverse("assets:audit_log"), {"limit": "many"}
        )
        assert response.status_code == 400

    def test_stats(self, client_logged_in, asset, retired_asset):
        data = client_logged_in.get(reverse("assets:inventory_stats")).json()
        assert data["total"] == 1
        assert data["retired"] == 1


class TestIncidentEndpoints:
    def test_report_and_list(self, client_logged_in, asset):
        response = post_json(
            client_logged_in,
            reverse("assets:incident_list"),
            {
                "asset_id": asset.pk,
                "incident_type": "damage",
                "description": "Dented lid",
            },
        )
        assert response.status_code == 201
        assert response.json()["severity"] == "medium"
        data = client_logged_in.get(
            reverse("assets:incident_list"), {"status": "open"}
        ).json()
        assert len(data["results"]) == 1

    def test_report_with_non_string_type(self, client_logged_in, asset):
        response = post_json(
            client_logged_in,
            reverse("assets:incident_list"),
            {"asset_id": asset.pk, "incident_type": ["damage"]},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"

    def test_status_change(self, admin_client):
        incident = IncidentFactory()
        response = post_json(
            admin_client,
            reverse("assets:incident_status", kwargs={"pk": incident.pk}),
            {"status": "closed"},
        )
        assert response.json()["status"] == "closed"

    def test_assign(self, admin_client, admin_user):
        incident = IncidentFactory()
        response = post_json(
            admin_client,
            reverse("assets:incident_assign", kwargs={"pk": incident.pk}),
            {"assigned_to": admin_user.pk},
        )
        data = response.json()
        assert data["assigned_to"] == "Asset Manager"
        assert data["status"] == "in_progress"

    def test_unknown_incident(self, admin_client):
        response = post_json(
            admin_client,
            reverse("assets:incident_status", kwargs={"pk": 999}),
            {"status": "closed"},
        )
        assert response.status_code == 404


class TestPublicLookup:
    def test_public_lookup_without_login(self, client, assigned_asset):
        response = client.get(f"/public/asset/{assigned_asset.pk}")
        assert response.status_code == 200
        data = response.json()
        assert data["label"] == "Dell Latitude 5440"
        assert data["assignee_name"] == "Ama Boateng"
        assert "assignee_email" not in data
        assert "purchase_price" not in data

    def test_public_lookup_unknown(self, client, db):
        response = client.get("/public/asset/999999")
        assert response.status_code == 404

    def test_public_lookup_writes_nothing(self, client, asset):
        client.get(f"/public/asset/{asset.pk}")
        assert not AuditEntry.objects.exists()

    def test_rate_limited(self, client, asset):
        # Twice the limit, so one window overflows even across a boundary
        statuses = [
            client.get(f"/public/asset/{asset.pk}").status_code
            for _ in range(65)
        ]
        assert statuses[0] == 200
        assert 429 in statuses
        assert set(statuses) == {200, 429}
