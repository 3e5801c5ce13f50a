"""User directory service - who takes part in the cake fund."""

import logging
from typing import Optional
from uuid import UUID

from django.contrib.auth import get_user_model
from django.db import transaction

from apps.ledger.services import reset_round_baseline

from .exceptions import UserNotFoundError, SelfModificationError

User = get_user_model()

logger = logging.getLogger(__name__)


def get_active_users():
    """
    Return all active collaborators ordered by name.

    The balance on each row is whatever was last committed; callers that
    need a consistent view across several reads must lock the rows
    themselves.
    """
    return User.objects.active().order_by('name', 'email')


def get_user_by_id(*, user_id: UUID) -> User:
    try:
        return User.objects.get(id=user_id)
    except User.DoesNotExist:
        raise UserNotFoundError(f"User {user_id} not found")


@transaction.atomic
def set_user_flags(
    *,
    user_id: UUID,
    acting_user: User,
    is_active: Optional[bool] = None,
    is_admin: Optional[bool] = None,
) -> User:
    """
    Toggle the active/admin flags of a user.

    Users are deactivated rather than deleted: contributions reference
    them and must stay replayable.

    A reactivated user starts the current round from their present
    balance.

    Raises:
        UserNotFoundError: If the user does not exist
        SelfModificationError: If the acting admin would lock themselves out
    """
    try:
        user = User.objects.select_for_update().get(id=user_id)
    except User.DoesNotExist:
        raise UserNotFoundError(f"User {user_id} not found")

    if user.id == acting_user.id and (is_active is False or is_admin is False):
        raise SelfModificationError("You cannot deactivate or demote yourself")

    update_fields = []
    if is_active is not None and is_active != user.is_active:
        user.is_active = is_active
        update_fields.append('is_active')
    if is_admin is not None and is_admin != user.is_admin:
        user.is_admin = is_admin
        update_fields.append('is_admin')

    if update_fields:
        user.save(update_fields=update_fields)
        if 'is_active' in update_fields and user.is_active:
            reset_round_baseline(user)
        logger.info(
            "User %s flags changed by %s: %s",
            user.id, acting_user.id, {f: getattr(user, f) for f in update_fields},
        )

    return user


def update_profile(*, user: User, name: Optional[str] = None, photo_url: Optional[str] = None) -> User:
    """Update the non-financial profile fields of a user."""
    update_fields = []
    if name is not None:
        user.name = name.strip()
        update_fields.append('name')
    if photo_url is not None:
        user.photo_url = photo_url
        update_fields.append('photo_url')

    if update_fields:
        user.save(update_fields=update_fields)
    return user
