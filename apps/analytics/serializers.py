"""
Serializers for analytics app.

This module contains:
1. Input serializers - Query parameter validation
2. Response serializers - API documentation and output formatting

Input Serializers:
    PeriodQuerySerializer - Validates period and date range parameters

Response Serializers:
    OverviewSerializer - Fund-wide indicators
    UserTotalsSerializer - Per-user totals
"""

from rest_framework import serializers
from datetime import datetime, timedelta


# =============================================================================
# Input Serializers (Query Parameter Validation)
# =============================================================================

class PeriodQuerySerializer(serializers.Serializer):
    """
    Validate period and date range query parameters.

    Used by: user_totals

    Query Parameters:
        period (str): Month period in YYYY-MM format (e.g., '2025-01')
        start_date (date): Start of date range
        end_date (date): End of date range

    Note:
        If 'period' is provided, it takes precedence and is converted
        to start_date and end_date for the full month.
    """

    period = serializers.RegexField(
        regex=r'^\d{4}-(0[1-9]|1[0-2])$',
        required=False,
        allow_blank=True,
        help_text='Month period in YYYY-MM format'
    )
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)

    def validate(self, attrs):
        """Parse period into date range if provided."""
        period = attrs.get('period')

        if period:
            year, month = (int(part) for part in period.split('-'))
            attrs['start_date'] = datetime(year, month, 1).date()
            if month == 12:
                attrs['end_date'] = datetime(year + 1, 1, 1).date() - timedelta(days=1)
            else:
                attrs['end_date'] = datetime(year, month + 1, 1).date() - timedelta(days=1)

        start = attrs.get('start_date')
        end = attrs.get('end_date')
        if start and end and start > end:
            raise serializers.ValidationError({
                'start_date': 'Start date must be before end date'
            })

        return attrs


# =============================================================================
# Response Serializers (API Documentation)
# =============================================================================

class OverviewSerializer(serializers.Serializer):
    """Fund-wide indicators."""
    contributions_count = serializers.IntegerField()
    total_value = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_cakes = serializers.DecimalField(max_digits=18, decimal_places=6)
    months_with_contributions = serializers.IntegerField()
    avg_monthly_value = serializers.DecimalField(max_digits=14, decimal_places=2)
    avg_monthly_cakes = serializers.DecimalField(max_digits=18, decimal_places=6)
    active_users_count = serializers.IntegerField()
    avg_value_per_active_user = serializers.DecimalField(max_digits=14, decimal_places=2)
    avg_recent_spending_per_active_user = serializers.DecimalField(max_digits=14, decimal_places=2)
    recent_period_start = serializers.DateField()
    recent_period_end = serializers.DateField()


class UserTotalsSerializer(serializers.Serializer):
    """Value and cakes attributable to one user."""
    user_id = serializers.UUIDField()
    name = serializers.CharField()
    balance = serializers.DecimalField(max_digits=18, decimal_places=6)
    total_value = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_cakes = serializers.DecimalField(max_digits=18, decimal_places=6)
    contributions_paid = serializers.IntegerField()
    shares_count = serializers.IntegerField()
    period_start = serializers.DateField(allow_null=True)
    period_end = serializers.DateField(allow_null=True)


class ErrorSerializer(serializers.Serializer):
    """Error response."""
    error = serializers.CharField()
