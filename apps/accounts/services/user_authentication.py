"""Login: credentials check and JWT pair for a collaborator."""

import logging
from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.contrib.auth.models import update_last_login
from rest_framework_simplejwt.tokens import RefreshToken

from .exceptions import InvalidCredentialsError, InactiveAccountError

User = get_user_model()

logger = logging.getLogger(__name__)


@dataclass
class LoginSession:
    user: User
    refresh: str
    access: str


def _find_user(email):
    try:
        return User.objects.get(email__iexact=email.strip())
    except User.DoesNotExist:
        raise InvalidCredentialsError("Invalid email or password")


def start_session(*, email: str, password: str) -> LoginSession:
    """
    Check email/password and issue a token pair.

    Deactivated collaborators keep their balance and history but cannot log
    in; they get a distinct error so the client can say so.

    Raises:
        InvalidCredentialsError: Unknown email or wrong password
        InactiveAccountError: The account was deactivated by an admin
    """
    user = _find_user(email)
    if not user.check_password(password):
        raise InvalidCredentialsError("Invalid email or password")
    if not user.is_active:
        raise InactiveAccountError("Account is deactivated")

    update_last_login(None, user)
    refresh = RefreshToken.for_user(user)
    logger.info("User %s logged in", user.id)

    return LoginSession(user=user, refresh=str(refresh), access=str(refresh.access_token))
