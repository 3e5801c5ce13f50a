"""
Custom permission classes shared by the cake fund apps.

Ledger administration (price changes, recomputation, financial edits,
user flags) is restricted to users with ``is_admin`` set.
"""
from rest_framework.permissions import BasePermission, SAFE_METHODS


class IsLedgerAdmin(BasePermission):
    """
    Allow access only to active ledger administrators.

    Usage:
        @permission_classes([IsAuthenticated, IsLedgerAdmin])
        def recompute_balances(request):
            ...
    """

    message = 'Only administrators can perform this action.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_active and user.is_admin)


class IsLedgerAdminOrReadOnly(IsLedgerAdmin):
    """Read access for any authenticated user, writes for admins only."""

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return bool(request.user and request.user.is_authenticated)
        return super().has_permission(request, view)
