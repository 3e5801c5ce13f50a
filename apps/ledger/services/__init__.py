"""Services for ledger business logic."""

from .exceptions import (
    LedgerServiceError,
    ContributionValidationError,
    ContributionNotFoundError,
    ContributionNotDividedError,
    LedgerConflictError,
    MaintenanceInProgressError,
    InvalidConfigurationError,
    ConsistencyError,
    UploadError,
    InvariantViolationError,
)
from .configuration import (
    get_configuration,
    get_cake_unit_price,
    set_cake_unit_price,
    maintenance_mode,
    is_maintenance_active,
)
from .contribution_writer import (
    ContributionResult,
    create_contribution,
    update_contribution,
    edit_contribution_financials,
    get_contribution,
    get_contribution_details,
)
from .round_closure import (
    RoundClosureResult,
    evaluate_round_closure,
    get_round_status,
    reset_round_baseline,
)
from .recomputation import RecomputationReport, recompute_all_balances
from .evidence import (
    EvidenceSession,
    DriveEvidenceStore,
    Readiness,
    check_readiness,
    attach_evidence,
)
from .invariants import LEDGER_EPSILON, ledger_totals

__all__ = [
    # Exceptions
    'LedgerServiceError',
    'ContributionValidationError',
    'ContributionNotFoundError',
    'ContributionNotDividedError',
    'LedgerConflictError',
    'MaintenanceInProgressError',
    'InvalidConfigurationError',
    'ConsistencyError',
    'UploadError',
    'InvariantViolationError',
    # Configuration
    'get_configuration',
    'get_cake_unit_price',
    'set_cake_unit_price',
    'maintenance_mode',
    'is_maintenance_active',
    # Contributions
    'ContributionResult',
    'create_contribution',
    'update_contribution',
    'edit_contribution_financials',
    'get_contribution',
    'get_contribution_details',
    # Rounds
    'RoundClosureResult',
    'evaluate_round_closure',
    'get_round_status',
    'reset_round_baseline',
    # Recomputation
    'RecomputationReport',
    'recompute_all_balances',
    # Evidence
    'EvidenceSession',
    'DriveEvidenceStore',
    'Readiness',
    'check_readiness',
    'attach_evidence',
    # Invariants
    'LEDGER_EPSILON',
    'ledger_totals',
]
