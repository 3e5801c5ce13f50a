"""
API exceptions for the ledger app.

Views translate the service layer's domain exceptions
(``apps.ledger.services.exceptions``) into these.
"""
from rest_framework.exceptions import APIException

from .services.exceptions import (
    ContributionNotDividedError,
    ContributionNotFoundError,
    ContributionValidationError,
    InvalidConfigurationError,
    LedgerConflictError,
    MaintenanceInProgressError,
)


class ContributionInvalid(APIException):
    """Contribution input rejected."""
    status_code = 400
    default_detail = 'Invalid contribution.'
    default_code = 'contribution_invalid'


class ContributionNotFound(APIException):
    """Contribution not found."""
    status_code = 404
    default_detail = 'Contribution not found.'
    default_code = 'contribution_not_found'


class ContributionNotDivided(APIException):
    """Details requested for a contribution that is not divided."""
    status_code = 400
    default_detail = 'Contribution is not divided.'
    default_code = 'contribution_not_divided'


class LedgerConflict(APIException):
    """Write could not complete because of concurrent writers."""
    status_code = 409
    default_detail = 'Ledger is busy, please retry.'
    default_code = 'ledger_conflict'


class LedgerMaintenance(APIException):
    """Balances are being recomputed."""
    status_code = 409
    default_detail = 'Balances are being recomputed, please retry shortly.'
    default_code = 'ledger_maintenance'


class ConfigurationInvalid(APIException):
    """Configuration value rejected."""
    status_code = 400
    default_detail = 'Invalid configuration value.'
    default_code = 'configuration_invalid'


def to_api_exception(error):
    """Map a ledger service exception to the matching APIException."""
    if isinstance(error, MaintenanceInProgressError):
        return LedgerMaintenance(str(error))
    if isinstance(error, LedgerConflictError):
        return LedgerConflict(str(error))
    if isinstance(error, ContributionNotFoundError):
        return ContributionNotFound(str(error))
    if isinstance(error, ContributionNotDividedError):
        return ContributionNotDivided(str(error))
    if isinstance(error, ContributionValidationError):
        return ContributionInvalid(str(error))
    if isinstance(error, InvalidConfigurationError):
        return ConfigurationInvalid(str(error))
    return error
