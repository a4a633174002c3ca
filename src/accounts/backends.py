"""Authentication backend for PARC."""

import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

User = get_user_model()

logger = logging.getLogger(__name__)


def _find_user(identifier):
    """Look a user up by email (case-insensitive) or exact username."""
    identifier = identifier.strip()
    if "@" in identifier:
        matches = list(User.objects.filter(email__iexact=identifier)[:2])
        # Ambiguous emails never authenticate
        return matches[0] if len(matches) == 1 else None
    return User.objects.filter(username=identifier).first()


class EmailOrUsernameBackend(ModelBackend):
    """Allow login with either email address or username."""

    def authenticate(self, request, username=None, password=None, **kwargs):
        if username is None or password is None:
            return None

        user = _find_user(username)
        if user is None:
            # Run the hasher anyway so timing does not reveal unknown users
            User().set_password(password)
            return None
        if not user.check_password(password):
            logger.info("Failed login for user #%s", user.pk)
            return None
        if not self.user_can_authenticate(user):
            return None
        return user
