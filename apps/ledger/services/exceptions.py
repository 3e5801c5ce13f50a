"""Domain exceptions for the ledger services."""


class LedgerServiceError(Exception):
    """Base exception for all ledger service errors."""
    pass


class ContributionValidationError(LedgerServiceError):
    """Bad contribution input. Nothing was written."""
    pass


class ContributionNotFoundError(LedgerServiceError):
    """Contribution does not exist."""
    pass


class ContributionNotDividedError(LedgerServiceError):
    """Share details were requested for a contribution that is not divided."""
    pass


class LedgerConflictError(LedgerServiceError):
    """A balance write could not commit against concurrent updates."""
    pass


class MaintenanceInProgressError(LedgerConflictError):
    """Balances are being recomputed; writers must not interleave."""
    pass


class InvalidConfigurationError(LedgerServiceError):
    """Configuration value rejected (e.g. non-positive cake price)."""
    pass


class ConsistencyError(LedgerServiceError):
    """A live balance diverged from the replayed history."""

    def __init__(self, user_id, previous, recomputed):
        self.user_id = user_id
        self.previous = previous
        self.recomputed = recomputed
        super().__init__(
            f"Balance of user {user_id} diverged: live {previous}, replay {recomputed}"
        )


class UploadError(LedgerServiceError):
    """The evidence store rejected or failed an upload."""
    pass


class InvariantViolationError(LedgerServiceError):
    """A computed write would break a ledger invariant; it was rolled back."""
    pass
