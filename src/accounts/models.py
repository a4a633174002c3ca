"""Custom user model for PARC."""

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models.signals import pre_delete
from django.dispatch import receiver


class CustomUser(AbstractUser):
    """Staff account that can sign in and act on assets.

    People who merely hold assets do not need an account; they are recorded
    by name and email on the assignment rows.
    """

    display_name = models.CharField(
        max_length=255,
        blank=True,
        help_text="Human-readable name shown in the asset history",
    )
    email = models.EmailField("email address", blank=False, unique=True)

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"

    def get_display_name(self):
        """Return display_name if set, otherwise full name or username."""
        if self.display_name:
            return self.display_name
        full = self.get_full_name()
        return full if full else self.username

    def __str__(self):
        return self.get_display_name()


@receiver(pre_delete, sender=CustomUser)
def record_user_deletion(sender, instance, **kwargs):
    """Keep a trace of deleted accounts in the audit log.

    Lifecycle events and audit entries keep their rows (actor is set to
    NULL), so the email snapshot is the only link left to the person.
    """
    from assets.services import audit

    audit.record(
        "user_deleted",
        "user",
        instance.pk,
        actor=None,
        description=(
            f"User '{instance.get_display_name()}' "
            f"<{instance.email}> deleted."
        ),
        old_values={"username": instance.username, "email": instance.email},
    )
