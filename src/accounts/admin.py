"""Admin configuration for accounts app."""

from unfold.admin import ModelAdmin
from unfold.decorators import display

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from assets.services.permissions import get_user_role

from .models import CustomUser


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin, ModelAdmin):
    model = CustomUser
    list_display = [
        "display_user",
        "email",
        "display_role",
        "display_active",
    ]
    list_filter = ["is_active", "is_staff", "is_superuser", "groups"]
    search_fields = [
        "username",
        "email",
        "display_name",
        "first_name",
        "last_name",
    ]
    filter_horizontal = ["groups", "user_permissions"]
    fieldsets = (
        (
            "Profile",
            {
                "classes": ["tab"],
                "fields": (
                    "username",
                    "password",
                    "display_name",
                    "first_name",
                    "last_name",
                    "email",
                ),
            },
        ),
        (
            "Permissions",
            {
                "classes": ["tab"],
                "fields": (
                    "is_active",
                    "is_staff",
                    "is_superuser",
                    "groups",
                    "user_permissions",
                ),
            },
        ),
        (
            "Activity",
            {
                "classes": ["tab"],
                "fields": ("last_login", "date_joined"),
            },
        ),
    )
    readonly_fields = ["last_login", "date_joined"]
    add_fieldsets = UserAdmin.add_fieldsets + (
        ("Additional Info", {"fields": ("email", "display_name")}),
    )

    @display(description="User", ordering="username")
    def display_user(self, obj):
        return obj.get_display_name()

    @display(
        description="Role",
        label={
            "super_admin": "danger",
            "admin": "warning",
            "user": "info",
        },
    )
    def display_role(self, obj):
        return get_user_role(obj)

    @display(description="Active", boolean=True)
    def display_active(self, obj):
        return obj.is_active
