"""
Balance recomputation.

Rebuilds every balance from the contribution history: all balances start
at zero and each contribution is replayed in (created_at, id) order with
the same splitting function the live writer uses. Live balances that
differ from the replay are reported and overwritten.

While it runs the maintenance flag is held, so contribution writers fail
fast instead of interleaving with the rebuild.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal

from django.db import transaction

from apps.accounts.models import User

from ..models import Contribution
from .configuration import maintenance_mode
from .exceptions import ConsistencyError
from .splitting import contribution_deltas

logger = logging.getLogger(__name__)


@dataclass
class RecomputationReport:
    users_updated: int
    divergences: list = field(default_factory=list)
    contributions_replayed: int = 0
    dry_run: bool = False

    @property
    def consistent(self):
        return not self.divergences


def replay_contributions():
    """
    Balances implied by the full contribution history.

    Returns:
        tuple: (defaultdict of str(user_id) -> Decimal, number of contributions)
    """
    balances = defaultdict(Decimal)
    replayed = 0

    contributions = Contribution.objects.order_by('created_at', 'id').only(
        'id', 'payer_id', 'value', 'cake_unit_price_at_creation',
        'is_divided', 'participant_user_ids', 'created_at',
    )
    for contribution in contributions.iterator():
        for user_id, delta in contribution_deltas(contribution).items():
            balances[user_id] += delta
        replayed += 1

    return balances, replayed


def _find_divergences(users, balances):
    divergences = []
    for user in users:
        recomputed = balances.get(str(user.id), Decimal('0'))
        if user.balance != recomputed:
            divergences.append(ConsistencyError(user.id, user.balance, recomputed))
    return divergences


def _log_divergences(divergences, *, dry_run):
    for divergence in divergences:
        logger.warning(
            "%sBalance divergence for user %s: live %s, replayed %s",
            "[dry run] " if dry_run else "",
            divergence.user_id, divergence.previous, divergence.recomputed
        )


def recompute_all_balances(*, dry_run=False) -> RecomputationReport:
    """
    Rebuild all balances from the contribution history.

    Idempotent: a second run on an unchanged history reports no divergences
    and updates nobody.

    Args:
        dry_run: Only report divergences; nothing is written and the
            maintenance flag is not taken.

    Returns:
        RecomputationReport whose ``divergences`` are ConsistencyError
        instances (user_id, previous, recomputed).

    Raises:
        MaintenanceInProgressError: If another recomputation is running
    """
    if dry_run:
        users = list(User.objects.order_by('id'))
        balances, replayed = replay_contributions()
        divergences = _find_divergences(users, balances)
        _log_divergences(divergences, dry_run=True)
        return RecomputationReport(
            users_updated=0,
            divergences=divergences,
            contributions_replayed=replayed,
            dry_run=True,
        )

    with maintenance_mode():
        with transaction.atomic():
            users = list(User.objects.select_for_update().order_by('id'))
            balances, replayed = replay_contributions()
            divergences = _find_divergences(users, balances)

            by_id = {user.id: user for user in users}
            changed = []
            for divergence in divergences:
                user = by_id[divergence.user_id]
                user.balance = divergence.recomputed
                changed.append(user)

            if changed:
                User.objects.bulk_update(changed, ['balance'])

    _log_divergences(divergences, dry_run=False)
    logger.info(
        "Recomputed balances from %s contributions: %s user(s) corrected",
        replayed, len(changed)
    )

    return RecomputationReport(
        users_updated=len(changed),
        divergences=divergences,
        contributions_replayed=replayed,
    )
