"""
Ledger invariant checks.

Used by the writer before it commits (a failed check rolls the write back)
and by the recomputation engine and the health of the ledger as a whole.
"""

from decimal import Decimal

from django.db.models import Sum

from apps.accounts.models import User

from ..models import Contribution
from .exceptions import InvariantViolationError

# Tolerance for comparing cake amounts; equals the storage precision
LEDGER_EPSILON = Decimal('0.000001')


def within_tolerance(a, b, epsilon=LEDGER_EPSILON):
    return abs(Decimal(a) - Decimal(b)) <= epsilon


def verify_share_partition(*, value, quantity_cakes, shares):
    """
    Shares of a divided contribution must add up to the whole.

    Raises:
        InvariantViolationError: If value or cake shares do not sum exactly
    """
    value_total = sum((share.value_share for share in shares), Decimal('0'))
    cake_total = sum((share.quantity_cakes_share for share in shares), Decimal('0'))

    if value_total != Decimal(value):
        raise InvariantViolationError(
            f"Value shares sum to {value_total}, expected {value}"
        )
    if cake_total != Decimal(quantity_cakes):
        raise InvariantViolationError(
            f"Cake shares sum to {cake_total}, expected {quantity_cakes}"
        )


def verify_deltas_conserve(deltas, quantity_cakes):
    """A contribution adds exactly its quantity to the sum of all balances."""
    total = sum(deltas.values(), Decimal('0'))
    if total != Decimal(quantity_cakes):
        raise InvariantViolationError(
            f"Balance deltas sum to {total}, expected {quantity_cakes}"
        )


def ledger_totals():
    """
    Compare the sum of all balances with the cakes recorded in contributions.

    Returns:
        dict with ``balances_total``, ``contributions_total``, ``difference``
        and ``consistent``.
    """
    balances_total = User.objects.aggregate(total=Sum('balance'))['total'] or Decimal('0')

    contributions_total = Decimal('0')
    for contribution in Contribution.objects.only('value', 'cake_unit_price_at_creation').iterator():
        contributions_total += contribution.quantity_cakes

    difference = balances_total - contributions_total
    return {
        'balances_total': balances_total,
        'contributions_total': contributions_total,
        'difference': difference,
        'consistent': within_tolerance(balances_total, contributions_total),
    }
