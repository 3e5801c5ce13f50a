"""Services for accounts business logic."""

from .exceptions import (
    AccountsServiceError,
    InvalidCredentialsError,
    InactiveAccountError,
    UserNotFoundError,
    SelfModificationError,
)
from .user_authentication import LoginSession, start_session
from .user_directory import (
    get_active_users,
    get_user_by_id,
    set_user_flags,
    update_profile,
)

__all__ = [
    # Exceptions
    'AccountsServiceError',
    'InvalidCredentialsError',
    'InactiveAccountError',
    'UserNotFoundError',
    'SelfModificationError',
    # Services
    'LoginSession',
    'start_session',
    'get_active_users',
    'get_user_by_id',
    'set_user_flags',
    'update_profile',
]
