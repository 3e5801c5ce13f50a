"""
Share splitting for contributions.

Splits a contribution's value and cake quantity evenly across the people
that share it, with exact precision: amounts are converted to integer minor
units (cents for money, micro-cakes for quantity), divided, and the
remainder is handed out one unit at a time. Shares therefore always sum to
the whole, and the result depends only on the inputs, so the live writer
and the recomputation engine produce identical numbers.

Example:
    Splitting 100.00 three ways::

        >>> split_evenly(Decimal('100.00'), 3, MONEY_QUANTUM)
        [Decimal('33.34'), Decimal('33.33'), Decimal('33.33')]
"""

from dataclasses import dataclass
from decimal import Decimal

from ..models import CAKE_QUANTUM, MONEY_QUANTUM


@dataclass(frozen=True)
class ShareAllocation:
    """One person's part of a contribution."""

    user_id: str
    value_share: Decimal
    quantity_cakes_share: Decimal


def split_evenly(total, people_count, quantum):
    """
    Split ``total`` into ``people_count`` parts of granularity ``quantum``.

    Algorithm:
        1. Convert to minor units: ``units = total / quantum``
        2. Base part: ``units // N``, remainder: ``units % N``
        3. The first ``remainder`` people get one extra unit

    Raises:
        ValueError: If people_count < 1 or the parts do not sum to total.
    """
    if people_count < 1:
        raise ValueError("At least one person required")

    total = Decimal(total)
    total_units = int((total / quantum).to_integral_value())
    base_units, remainder_units = divmod(total_units, people_count)

    parts = []
    for i in range(people_count):
        units = base_units + 1 if i < remainder_units else base_units
        parts.append(Decimal(units) * quantum)

    if sum(parts) != total.quantize(quantum):
        raise ValueError(f"Split calculation error: {sum(parts)} != {total}")

    return parts


def normalize_participants(payer_id, participant_ids):
    """
    Return the effective participant list: unique, payer removed, sorted.

    The payer is always implicitly part of a divided contribution, so it
    never appears in the stored participant list.
    """
    payer_key = str(payer_id)
    unique = {str(pid) for pid in (participant_ids or [])}
    unique.discard(payer_key)
    return sorted(unique)


def calculate_shares(*, payer_id, value, quantity_cakes, participant_ids):
    """
    Allocate value and cakes to the payer and every participant.

    The payer comes first, then participants in the given (sorted) order;
    that order decides who receives the remainder units.

    Returns:
        list[ShareAllocation] with len(participant_ids) + 1 entries.
    """
    people = [str(payer_id)] + [str(pid) for pid in participant_ids]

    value_parts = split_evenly(value, len(people), MONEY_QUANTUM)
    cake_parts = split_evenly(quantity_cakes, len(people), CAKE_QUANTUM)

    return [
        ShareAllocation(user_id=user_id, value_share=value_part, quantity_cakes_share=cake_part)
        for user_id, value_part, cake_part in zip(people, value_parts, cake_parts)
    ]


def compute_balance_deltas(*, payer_id, value, quantity_cakes, is_divided, participant_ids):
    """
    Cake delta per user for one contribution.

    Not divided: the payer receives the full quantity.
    Divided: every person (payer included) receives their share.
    The deltas always sum to ``quantity_cakes``.
    """
    if not is_divided:
        return {str(payer_id): Decimal(quantity_cakes)}

    shares = calculate_shares(
        payer_id=payer_id,
        value=value,
        quantity_cakes=quantity_cakes,
        participant_ids=participant_ids,
    )
    return {share.user_id: share.quantity_cakes_share for share in shares}


def contribution_deltas(contribution):
    """Cake deltas of a stored contribution."""
    return compute_balance_deltas(
        payer_id=contribution.payer_id,
        value=contribution.value,
        quantity_cakes=contribution.quantity_cakes,
        is_divided=contribution.is_divided,
        participant_ids=contribution.participant_user_ids,
    )
