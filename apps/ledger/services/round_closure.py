"""
Round closure detection.

A round closes once every active collaborator has covered at least one
cake since the previous closure. Each user's *standing* in the current
round is their balance minus their round baseline: zero for a newcomer,
advanced by the settled amount at every closure, and reset to the current
balance on reactivation. When every active user's standing is strictly
positive a CompensationRecord is written, the baselines advance by the
settled amount and the round counter moves on.

Compensation is an audit marker only: balances are never modified here.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import Sum

from apps.accounts.models import User

from ..models import CompensationRecord, Contribution, LedgerConfiguration, RoundBaseline
from .invariants import LEDGER_EPSILON

logger = logging.getLogger(__name__)


@dataclass
class RoundClosureResult:
    compensation_created: bool
    round_id: int
    last_place_user_ids: list = field(default_factory=list)
    compensation: Optional[CompensationRecord] = None


def get_settled_total() -> Decimal:
    """Cakes settled by all closed rounds so far."""
    total = CompensationRecord.objects.aggregate(total=Sum('settled_cakes'))['total']
    return total or Decimal('0')


def get_baselines(users):
    """Map user id (str) to the balance their standing is measured from."""
    rows = RoundBaseline.objects.filter(user_id__in=[user.id for user in users])
    baselines = {str(row.user_id): row.baseline_cakes for row in rows}
    return {str(user.id): baselines.get(str(user.id), Decimal('0')) for user in users}


def compute_standings(users, baselines):
    """Map user id (str) to balance minus the user's round baseline."""
    return {str(user.id): user.balance - baselines[str(user.id)] for user in users}


def _advance_baselines(users, baselines, settled):
    existing = set(
        str(user_id) for user_id in RoundBaseline.objects.filter(
            user_id__in=[user.id for user in users]
        ).values_list('user_id', flat=True)
    )
    to_update, to_create = [], []
    for user in users:
        row = RoundBaseline(user_id=user.id, baseline_cakes=baselines[str(user.id)] + settled)
        (to_update if str(user.id) in existing else to_create).append(row)

    RoundBaseline.objects.bulk_update(to_update, ['baseline_cakes'])
    RoundBaseline.objects.bulk_create(to_create)


def reset_round_baseline(user):
    """
    Measure ``user``'s standing from their current balance.

    Called when a user is reactivated: cakes covered before they left do
    not count towards the round they come back into.
    """
    RoundBaseline.objects.update_or_create(
        user_id=user.id,
        defaults={'baseline_cakes': user.balance},
    )


def find_last_place(standings):
    """
    Users with the lowest standing (ties within tolerance), sorted by id.

    They are the ones expected to buy next.
    """
    if not standings:
        return []
    minimum = min(standings.values())
    return sorted(
        user_id for user_id, standing in standings.items()
        if standing - minimum <= LEDGER_EPSILON
    )


@transaction.atomic
def evaluate_round_closure() -> RoundClosureResult:
    """
    Close the current round if every active user has a positive standing.

    Serialized on the configuration row, and balances are read from the
    database after the lock is taken, so concurrent callers cannot create
    two records for one round. Calling it again after a closure is a no-op
    until the new round has contributions of its own.
    """
    config = LedgerConfiguration.load(for_update=True)
    round_id = config.current_round_id

    if CompensationRecord.objects.filter(round_id=round_id).exists():
        return RoundClosureResult(compensation_created=False, round_id=round_id)

    if not Contribution.objects.filter(round_id=round_id).exists():
        return RoundClosureResult(compensation_created=False, round_id=round_id)

    users = list(User.objects.active().only('id', 'balance'))
    if not users:
        return RoundClosureResult(compensation_created=False, round_id=round_id)

    baselines = get_baselines(users)
    standings = compute_standings(users, baselines)
    last_place = find_last_place(standings)
    minimum = min(standings.values())

    if minimum <= LEDGER_EPSILON:
        return RoundClosureResult(
            compensation_created=False,
            round_id=round_id,
            last_place_user_ids=last_place,
        )

    try:
        with transaction.atomic():
            record = CompensationRecord.objects.create(
                round_id=round_id,
                settled_cakes=minimum,
                last_place_user_ids=last_place,
            )
    except IntegrityError:
        logger.info("Round %s already closed by a concurrent writer", round_id)
        return RoundClosureResult(compensation_created=False, round_id=round_id)

    _advance_baselines(users, baselines, minimum)

    config.current_round_id = round_id + 1
    config.save(update_fields=['current_round_id', 'updated_at'])

    logger.info(
        "Round %s closed: settled %s cakes, last place %s",
        round_id, minimum, ', '.join(last_place)
    )

    return RoundClosureResult(
        compensation_created=True,
        round_id=round_id,
        last_place_user_ids=last_place,
        compensation=record,
    )


def get_round_status():
    """
    Snapshot of the current round for display.

    Returns:
        dict: round_id, settled_total, contributions_in_round, standings
        (one entry per active user, lowest first), pending_user_ids (users
        that have not covered a cake yet this round) and last_place_user_ids.
    """
    config = LedgerConfiguration.load()
    settled_total = get_settled_total()
    users = list(User.objects.active())
    standings = compute_standings(users, get_baselines(users))

    rows = sorted(
        (
            {
                'user_id': str(user.id),
                'name': user.get_display_name(),
                'balance': user.balance,
                'standing': standings[str(user.id)],
            }
            for user in users
        ),
        key=lambda row: (row['standing'], row['user_id'])
    )

    return {
        'round_id': config.current_round_id,
        'settled_total': settled_total,
        'contributions_in_round': Contribution.objects.filter(
            round_id=config.current_round_id
        ).count(),
        'standings': rows,
        'pending_user_ids': sorted(
            user_id for user_id, standing in standings.items()
            if standing <= LEDGER_EPSILON
        ),
        'last_place_user_ids': find_last_place(standings),
    }
