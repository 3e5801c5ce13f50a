"""
Analytics Module
=================

Read-only indicators computed from the contribution ledger, the numbers
shown on the cake fund dashboard.

Classes:
    LedgerIndicators: Static methods for fund-wide and per-user indicators.

Key Features:
    - Totals of value and cakes over all contributions
    - Monthly averages over the months that saw contributions
    - Average spending per active collaborator (all time and last six months)
    - Per-user totals counting only the user's share of divided purchases

Example:
    Getting the dashboard indicators::

        from apps.analytics.analytics import LedgerIndicators

        overview = LedgerIndicators.overview()
        print(f"{overview['total_cakes']} cakes bought so far")

        mine = LedgerIndicators.user_totals(user_id=user.id)
        print(f"You covered {mine['total_cakes']} cakes")

Note:
    Cake quantities are derived from each contribution's value and the
    price recorded when it was created, so a price change never alters
    historical totals.
"""

import calendar
from datetime import date
from decimal import Decimal

from django.db.models import Count, Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone

from apps.accounts.models import User
from apps.ledger.models import (
    CAKE_QUANTUM,
    MONEY_QUANTUM,
    Contribution,
    ContributionShare,
    derive_quantity_cakes,
)
from .exceptions import InvalidDateRangeError, UserNotFoundError


RECENT_SPENDING_MONTHS = 6


def months_before(day, months):
    """Same day ``months`` months earlier, clamped to the month's length."""
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def _cakes_of(contributions):
    total = Decimal('0')
    for value, price in contributions.values_list('value', 'cake_unit_price_at_creation'):
        total += derive_quantity_cakes(value, price)
    return total


def _filter_dates(queryset, field, start_date, end_date):
    if start_date:
        queryset = queryset.filter(**{f'{field}__gte': start_date})
    if end_date:
        queryset = queryset.filter(**{f'{field}__lte': end_date})
    return queryset


class LedgerIndicators:
    """
    Aggregations over the contribution ledger.

    Methods:
        overview: Fund-wide totals and averages.
        user_totals: Value and cakes attributable to one user.

    Note:
        All methods return plain dictionaries, suitable for the response
        serializers in ``apps.analytics.serializers``.
    """

    @staticmethod
    def overview(today=None):
        """
        Fund-wide indicators.

        Args:
            today (date, optional): Reference date for the six-month
                window. Defaults to the current local date.

        Returns:
            dict: A dictionary containing:
                - contributions_count (int)
                - total_value (Decimal): Sum of all contribution values.
                - total_cakes (Decimal): Sum of all contribution cakes.
                - months_with_contributions (int): Distinct purchase months.
                - avg_monthly_value (Decimal): total_value per month with
                  contributions (at least one month is assumed).
                - avg_monthly_cakes (Decimal): total_cakes per such month.
                - active_users_count (int)
                - avg_value_per_active_user (Decimal): total_value divided by
                  the number of active users, 0 when there are none.
                - avg_recent_spending_per_active_user (Decimal): value of
                  contributions purchased in the last six months divided by
                  the number of active users.
                - recent_period_start (date), recent_period_end (date)
        """
        today = today or timezone.localdate()
        contributions = Contribution.objects.order_by()

        totals = contributions.aggregate(total_value=Sum('value'), count=Count('id'))
        total_value = totals['total_value'] or Decimal('0')
        total_cakes = _cakes_of(contributions)

        months_with_contributions = (
            contributions
            .annotate(month=TruncMonth('purchase_date'))
            .values('month')
            .distinct()
            .count()
        )
        months_divisor = max(months_with_contributions, 1)

        active_users_count = User.objects.active().count()

        recent_start = months_before(today, RECENT_SPENDING_MONTHS)
        recent_value = _filter_dates(
            contributions, 'purchase_date', recent_start, today
        ).aggregate(total=Sum('value'))['total'] or Decimal('0')

        if active_users_count:
            avg_per_active = (total_value / active_users_count).quantize(MONEY_QUANTUM)
            avg_recent_per_active = (recent_value / active_users_count).quantize(MONEY_QUANTUM)
        else:
            avg_per_active = Decimal('0.00')
            avg_recent_per_active = Decimal('0.00')

        return {
            'contributions_count': totals['count'],
            'total_value': total_value,
            'total_cakes': total_cakes,
            'months_with_contributions': months_with_contributions,
            'avg_monthly_value': (total_value / months_divisor).quantize(MONEY_QUANTUM),
            'avg_monthly_cakes': (total_cakes / months_divisor).quantize(CAKE_QUANTUM),
            'active_users_count': active_users_count,
            'avg_value_per_active_user': avg_per_active,
            'avg_recent_spending_per_active_user': avg_recent_per_active,
            'recent_period_start': recent_start,
            'recent_period_end': today,
        }

    @staticmethod
    def user_totals(user_id, start_date=None, end_date=None):
        """
        Value and cakes attributable to one user.

        Undivided contributions count fully for their payer; divided ones
        count only with the user's own share (whether payer or participant).

        Args:
            user_id (UUID): The user's unique identifier.
            start_date (date, optional): Only purchases from this date.
            end_date (date, optional): Only purchases up to this date.

        Returns:
            dict: user_id, name, balance, total_value, total_cakes,
            contributions_paid (all contributions the user paid),
            shares_count (divided contributions the user took part in),
            period_start, period_end.

        Raises:
            UserNotFoundError: If the user does not exist.
            InvalidDateRangeError: If start_date is after end_date.
        """
        if start_date and end_date and start_date > end_date:
            raise InvalidDateRangeError("Start date must be before end date")

        try:
            user = User.objects.get(id=user_id)
        except User.DoesNotExist:
            raise UserNotFoundError("User not found")

        single = _filter_dates(
            Contribution.objects.order_by().filter(payer_id=user.id, is_divided=False),
            'purchase_date', start_date, end_date,
        )
        shares = _filter_dates(
            ContributionShare.objects.order_by().filter(user_id=user.id),
            'contribution__purchase_date', start_date, end_date,
        )
        paid = _filter_dates(
            Contribution.objects.order_by().filter(payer_id=user.id),
            'purchase_date', start_date, end_date,
        )

        single_value = single.aggregate(total=Sum('value'))['total'] or Decimal('0')
        share_totals = shares.aggregate(
            value=Sum('value_share'),
            cakes=Sum('quantity_cakes_share'),
            count=Count('id'),
        )

        return {
            'user_id': user.id,
            'name': user.get_display_name(),
            'balance': user.balance,
            'total_value': single_value + (share_totals['value'] or Decimal('0')),
            'total_cakes': _cakes_of(single) + (share_totals['cakes'] or Decimal('0')),
            'contributions_paid': paid.count(),
            'shares_count': share_totals['count'],
            'period_start': start_date,
            'period_end': end_date,
        }
