"""URL configuration for the assets JSON API."""

from django.urls import path

from . import views

app_name = "assets"

urlpatterns = [
    # Assets
    path("assets/", views.asset_list, name="asset_list"),
    path("assets/<int:pk>/", views.asset_detail, name="asset_detail"),
    path("assets/<int:pk>/edit/", views.asset_edit, name="asset_edit"),
    path("assets/<int:pk>/delete/", views.asset_delete, name="asset_delete"),
    # Lifecycle
    path("assets/<int:pk>/assign/", views.asset_assign, name="asset_assign"),
    path("assets/<int:pk>/return/", views.asset_return, name="asset_return"),
    path("assets/<int:pk>/repair/", views.asset_repair, name="asset_repair"),
    path(
        "assets/<int:pk>/exit-repair/",
        views.asset_exit_repair,
        name="asset_exit_repair",
    ),
    path("assets/<int:pk>/retire/", views.asset_retire, name="asset_retire"),
    # Categories and people
    path("categories/", views.category_search, name="category_search"),
    path("people/", views.people_suggest, name="people_suggest"),
    path("assignees/", views.assignee_list, name="assignee_list"),
    path(
        "assignees/rename/", views.assignee_rename, name="assignee_rename"
    ),
    path(
        "assignees/delete/", views.assignee_delete, name="assignee_delete"
    ),
    # Audit and stats
    path("audit/", views.audit_log, name="audit_log"),
    path("stats/", views.inventory_stats, name="inventory_stats"),
    path("me/", views.me, name="me"),
    # Incidents
    path("incidents/", views.incident_list, name="incident_list"),
    path(
        "incidents/<int:pk>/assign/",
        views.incident_assign,
        name="incident_assign",
    ),
    path(
        "incidents/<int:pk>/status/",
        views.incident_status,
        name="incident_status",
    ),
]
