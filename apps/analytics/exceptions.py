"""
Domain exceptions for analytics app.

This module defines domain-specific exceptions that are raised by the
analytics queries. These exceptions represent invalid requests, separate
from HTTP concerns.

Exception Hierarchy:
    AnalyticsServiceError (base)
    ├── InvalidDateRangeError
    └── UserNotFoundError

Usage:
    from apps.analytics.exceptions import InvalidDateRangeError

    if start_date > end_date:
        raise InvalidDateRangeError("Start date must be before end date")
"""


class AnalyticsServiceError(Exception):
    """
    Base exception for all analytics service errors.

    Views catch this to translate any analytics error into a 400:

        try:
            data = LedgerIndicators.user_totals(user_id, start, end)
        except AnalyticsServiceError as e:
            return Response({'error': str(e)}, status=400)
    """

    pass


class InvalidDateRangeError(AnalyticsServiceError):
    """
    Raised when date range is invalid.

    Typically when start_date is after end_date.
    """

    pass


class UserNotFoundError(AnalyticsServiceError):
    """
    Raised when the specified user does not exist.
    """

    pass
