"""
Contribution writer.

The single path through which balances change during normal operation.
Every write runs in one transaction that:

    1. locks the configuration row, so the contribution is tagged with
       the round that is open when it commits, and refuses to run while a
       recomputation holds the maintenance flag,
    2. returns the earlier result when the idempotency key was already used,
    3. locks the affected users (ordered by id, so concurrent writers
       cannot deadlock),
    4. stores the contribution and its shares,
    5. applies the cake deltas with F() expressions.

Transient database errors (lock timeouts, serialization failures) are
retried with bounded exponential backoff; once retries are exhausted
the caller gets a LedgerConflictError. Round closure is evaluated after
the commit; a closure that cannot run is logged and left to the next
write, never reported as a failed contribution.
"""

import datetime
import logging
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, OperationalError, transaction
from django.db.models import F
from django.utils import timezone
from django.utils.dateparse import parse_date

from apps.accounts.models import User

from ..models import (
    Contribution,
    ContributionShare,
    LedgerConfiguration,
    MONEY_QUANTUM,
    derive_quantity_cakes,
)
from .exceptions import (
    ContributionNotDividedError,
    ContributionNotFoundError,
    ContributionValidationError,
    LedgerConflictError,
    MaintenanceInProgressError,
)
from .invariants import verify_deltas_conserve, verify_share_partition
from .round_closure import RoundClosureResult, evaluate_round_closure
from .splitting import (
    calculate_shares,
    compute_balance_deltas,
    contribution_deltas,
    normalize_participants,
)

logger = logging.getLogger(__name__)


@dataclass
class ContributionResult:
    contribution_id: uuid.UUID
    compensation_created: bool
    contribution: Contribution
    last_place_user_ids: list = field(default_factory=list)
    # False when an idempotent replay returned an already committed write
    created: bool = True


def run_with_retries(operation, *, description):
    """
    Run ``operation`` and retry it on transient database errors.

    Sleeps ``LEDGER_WRITE_BACKOFF_SECONDS * 2 ** (attempt - 1)`` between
    attempts, at most ``LEDGER_WRITE_MAX_RETRIES`` attempts in total.

    Raises:
        LedgerConflictError: When every attempt failed
    """
    max_attempts = max(1, settings.LEDGER_WRITE_MAX_RETRIES)
    backoff = settings.LEDGER_WRITE_BACKOFF_SECONDS

    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except OperationalError as e:
            if attempt == max_attempts:
                logger.error(
                    "%s failed after %s attempts: %s", description, attempt, e
                )
                raise LedgerConflictError(
                    f"{description} could not be completed due to concurrent writes, "
                    "please retry"
                ) from e

            delay = backoff * (2 ** (attempt - 1))
            logger.warning(
                "%s hit a transient database error (attempt %s/%s), retrying in %.3fs: %s",
                description, attempt, max_attempts, delay, e
            )
            time.sleep(delay)


def _coerce_value(value):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ContributionValidationError(f"Invalid value: {value!r}")

    if not amount.is_finite() or amount <= 0:
        raise ContributionValidationError("Value must be greater than zero")

    amount = amount.quantize(MONEY_QUANTUM)
    if amount <= 0:
        raise ContributionValidationError("Value must be at least 0.01")
    return amount


def _coerce_purchase_date(purchase_date):
    if isinstance(purchase_date, str):
        parsed = parse_date(purchase_date)
        if parsed is None:
            raise ContributionValidationError(f"Invalid purchase date: {purchase_date!r}")
        purchase_date = parsed
    elif isinstance(purchase_date, datetime.datetime):
        purchase_date = purchase_date.date()
    elif not isinstance(purchase_date, datetime.date):
        raise ContributionValidationError("Purchase date is required")

    if purchase_date > timezone.localdate():
        raise ContributionValidationError("Purchase date cannot be in the future")
    return purchase_date


def _resolve_participants(payer_id, is_divided, participant_user_ids):
    if not is_divided:
        return []

    participants = normalize_participants(payer_id, participant_user_ids)
    if not participants:
        raise ContributionValidationError(
            "A divided contribution needs at least one participant besides the payer"
        )
    return participants


def _lock_users(user_ids):
    """
    Lock the given users in id order and return them keyed by str(id).

    Raises:
        ContributionValidationError: If any id does not exist
    """
    keys = sorted({str(user_id) for user_id in user_ids})
    try:
        users = list(
            User.objects.select_for_update().filter(id__in=keys).order_by('id')
        )
    except (DjangoValidationError, ValueError, TypeError):
        raise ContributionValidationError("Invalid user id")

    by_id = {str(user.id): user for user in users}
    missing = [key for key in keys if key not in by_id]
    if missing:
        raise ContributionValidationError(f"Unknown user(s): {', '.join(missing)}")
    return by_id


def _require_active(users, user_ids):
    inactive = [user_id for user_id in user_ids if not users[user_id].is_active]
    if inactive:
        raise ContributionValidationError(
            f"Inactive user(s) cannot take part: {', '.join(inactive)}"
        )


def _apply_deltas(deltas):
    # Keys are iterated in sorted order to keep update order stable
    for user_id in sorted(deltas):
        delta = deltas[user_id]
        if delta:
            User.objects.filter(id=user_id).update(balance=F('balance') + delta)


def _store_shares(contribution):
    shares = calculate_shares(
        payer_id=contribution.payer_id,
        value=contribution.value,
        quantity_cakes=contribution.quantity_cakes,
        participant_ids=contribution.participant_user_ids,
    )
    verify_share_partition(
        value=contribution.value,
        quantity_cakes=contribution.quantity_cakes,
        shares=shares,
    )
    ContributionShare.objects.bulk_create([
        ContributionShare(
            contribution=contribution,
            user_id=share.user_id,
            value_share=share.value_share,
            quantity_cakes_share=share.quantity_cakes_share,
        )
        for share in shares
    ])


def _ensure_not_in_maintenance(config):
    if config.maintenance_mode:
        raise MaintenanceInProgressError(
            "Balances are being recomputed, try again shortly"
        )


def _evaluate_closure_after_commit():
    try:
        return run_with_retries(evaluate_round_closure, description="Round closure")
    except LedgerConflictError:
        logger.warning("Round closure postponed to the next contribution write")
        return RoundClosureResult(compensation_created=False, round_id=None)


def _write_contribution(*, payer_id, purchase_date, value, is_divided,
                        participants, idempotency_key, note):
    with transaction.atomic():
        config = LedgerConfiguration.load(for_update=True)
        _ensure_not_in_maintenance(config)

        if idempotency_key:
            existing = Contribution.objects.filter(idempotency_key=idempotency_key).first()
            if existing is not None:
                return existing, False

        payer_key = str(payer_id)
        users = _lock_users([payer_key] + participants)
        _require_active(users, [payer_key] + participants)

        contribution = Contribution.objects.create(
            payer_id=users[payer_key].id,
            purchase_date=purchase_date,
            value=value,
            cake_unit_price_at_creation=config.cake_unit_price,
            is_divided=is_divided,
            participant_user_ids=participants,
            note=note or '',
            round_id=config.current_round_id,
            idempotency_key=idempotency_key or None,
        )

        quantity = derive_quantity_cakes(value, config.cake_unit_price)
        deltas = compute_balance_deltas(
            payer_id=payer_key,
            value=value,
            quantity_cakes=quantity,
            is_divided=is_divided,
            participant_ids=participants,
        )
        verify_deltas_conserve(deltas, quantity)

        if is_divided:
            _store_shares(contribution)

        _apply_deltas(deltas)

    return contribution, True


def create_contribution(*, payer_id, purchase_date, value, is_divided,
                        participant_user_ids=None, idempotency_key=None,
                        note='') -> ContributionResult:
    """
    Record a purchase and credit the cakes it covers.

    Args:
        payer_id: Id of the collaborator who paid.
        purchase_date: Date (or ISO string) of the purchase, not in the future.
        value: Amount paid, > 0; stored with two decimal places.
        is_divided: Whether the purchase is split with participants.
        participant_user_ids: Other collaborators sharing the purchase.
            The payer is always included implicitly and removed from the list.
        idempotency_key: Optional key; a repeated call with the same key
            returns the original contribution without writing again.
        note: Free text.

    Returns:
        ContributionResult

    Raises:
        ContributionValidationError: Invalid input or unknown/inactive users
        MaintenanceInProgressError: A recomputation is running
        LedgerConflictError: Transient conflicts persisted past the retry budget
    """
    value = _coerce_value(value)
    purchase_date = _coerce_purchase_date(purchase_date)
    participants = _resolve_participants(payer_id, is_divided, participant_user_ids)

    def operation():
        return _write_contribution(
            payer_id=payer_id,
            purchase_date=purchase_date,
            value=value,
            is_divided=is_divided,
            participants=participants,
            idempotency_key=idempotency_key,
            note=note,
        )

    try:
        contribution, created = run_with_retries(operation, description="Contribution write")
    except IntegrityError:
        # A concurrent request with the same key won the race
        if not idempotency_key:
            raise
        contribution = Contribution.objects.filter(idempotency_key=idempotency_key).first()
        if contribution is None:
            raise
        created = False

    if not created:
        logger.info(
            "Idempotent replay of contribution %s (key %s)", contribution.id, idempotency_key
        )
        return ContributionResult(
            contribution_id=contribution.id,
            compensation_created=False,
            contribution=contribution,
            created=False,
        )

    logger.info(
        "Contribution %s recorded: payer %s, value %s, %s cakes, %s",
        contribution.id,
        contribution.payer_id,
        contribution.value,
        contribution.quantity_cakes,
        f"divided among {contribution.people_count}" if contribution.is_divided else "not divided",
    )

    closure = _evaluate_closure_after_commit()

    return ContributionResult(
        contribution_id=contribution.id,
        compensation_created=closure.compensation_created,
        contribution=contribution,
        last_place_user_ids=closure.last_place_user_ids,
    )


def get_contribution(contribution_id) -> Contribution:
    """
    Raises:
        ContributionNotFoundError: If no contribution has this id
    """
    try:
        return Contribution.objects.select_related('payer').get(id=contribution_id)
    except (Contribution.DoesNotExist, DjangoValidationError, ValueError):
        raise ContributionNotFoundError(f"Contribution {contribution_id} not found")


@transaction.atomic
def update_contribution(contribution_id, *, purchase_evidence_url=None, note=None,
                        purchase_date=None) -> Contribution:
    """
    Update the non-financial fields of a contribution.

    Balances are not touched. Arguments left as None are not changed.

    Raises:
        ContributionNotFoundError: If no contribution has this id
        ContributionValidationError: If the new purchase date is invalid
    """
    try:
        contribution = Contribution.objects.select_for_update().get(id=contribution_id)
    except (Contribution.DoesNotExist, DjangoValidationError, ValueError):
        raise ContributionNotFoundError(f"Contribution {contribution_id} not found")

    update_fields = []
    if purchase_evidence_url is not None:
        contribution.purchase_evidence_url = purchase_evidence_url or None
        update_fields.append('purchase_evidence_url')
    if note is not None:
        contribution.note = note
        update_fields.append('note')
    if purchase_date is not None:
        contribution.purchase_date = _coerce_purchase_date(purchase_date)
        update_fields.append('purchase_date')

    if update_fields:
        update_fields.append('updated_at')
        contribution.save(update_fields=update_fields)
        logger.info("Contribution %s updated: %s", contribution.id, ', '.join(update_fields[:-1]))

    return contribution


def _rewrite_financials(contribution_id, *, value, is_divided, participant_user_ids):
    with transaction.atomic():
        config = LedgerConfiguration.load()
        _ensure_not_in_maintenance(config)

        try:
            contribution = Contribution.objects.select_for_update().get(id=contribution_id)
        except (Contribution.DoesNotExist, DjangoValidationError, ValueError):
            raise ContributionNotFoundError(f"Contribution {contribution_id} not found")

        payer_key = str(contribution.payer_id)
        new_value = _coerce_value(value) if value is not None else contribution.value
        new_is_divided = contribution.is_divided if is_divided is None else is_divided
        if participant_user_ids is None:
            participant_user_ids = contribution.participant_user_ids
        new_participants = _resolve_participants(payer_key, new_is_divided, participant_user_ids)

        old_deltas = contribution_deltas(contribution)
        users = _lock_users(set(old_deltas) | {payer_key} | set(new_participants))
        added = set(new_participants) - set(contribution.participant_user_ids)
        _require_active(users, sorted(added))

        contribution.value = new_value
        contribution.is_divided = new_is_divided
        contribution.participant_user_ids = new_participants
        contribution.save(update_fields=['value', 'is_divided', 'participant_user_ids', 'updated_at'])

        new_deltas = contribution_deltas(contribution)
        verify_deltas_conserve(new_deltas, contribution.quantity_cakes)

        combined = {}
        for user_id, delta in old_deltas.items():
            combined[user_id] = combined.get(user_id, Decimal('0')) - delta
        for user_id, delta in new_deltas.items():
            combined[user_id] = combined.get(user_id, Decimal('0')) + delta

        contribution.shares.all().delete()
        if new_is_divided:
            _store_shares(contribution)

        _apply_deltas(combined)

    return contribution


def edit_contribution_financials(contribution_id, *, value=None, is_divided=None,
                                 participant_user_ids=None) -> ContributionResult:
    """
    Change value, division or participants of an existing contribution.

    The old contribution's deltas are reversed and the new ones applied in
    the same transaction, using the price recorded at creation. The
    contribution keeps its round.

    Raises:
        ContributionNotFoundError, ContributionValidationError,
        MaintenanceInProgressError, LedgerConflictError
    """
    contribution = run_with_retries(
        lambda: _rewrite_financials(
            contribution_id,
            value=value,
            is_divided=is_divided,
            participant_user_ids=participant_user_ids,
        ),
        description="Contribution edit",
    )

    logger.info(
        "Contribution %s financials changed: value %s, %s",
        contribution.id,
        contribution.value,
        f"divided among {contribution.people_count}" if contribution.is_divided else "not divided",
    )

    closure = _evaluate_closure_after_commit()

    return ContributionResult(
        contribution_id=contribution.id,
        compensation_created=closure.compensation_created,
        contribution=contribution,
        last_place_user_ids=closure.last_place_user_ids,
    )


def get_contribution_details(contribution_id):
    """
    Per-person shares of a divided contribution, payer first.

    Raises:
        ContributionNotFoundError: If no contribution has this id
        ContributionNotDividedError: If the contribution is not divided
    """
    contribution = get_contribution(contribution_id)
    if not contribution.is_divided:
        raise ContributionNotDividedError(
            f"Contribution {contribution_id} is not divided"
        )

    shares = list(contribution.shares.select_related('user'))
    payer_key = str(contribution.payer_id)
    shares.sort(key=lambda share: (str(share.user_id) != payer_key, str(share.user_id)))
    return shares
