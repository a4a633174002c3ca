"""URL configuration for the PARC project."""

from django.contrib import admin
from django.urls import include, path

from assets import views as asset_views
from parc.views import health_check

urlpatterns = [
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/", include("assets.urls")),
    path(
        "public/<path:slug>",
        asset_views.public_asset,
        name="public_asset",
    ),
]
