"""
Custom permission classes for the ledger app.
"""
from rest_framework.permissions import BasePermission


class CanManageContribution(BasePermission):
    """
    Permission to change the non-financial fields of a contribution or
    attach evidence to it.

    Allows if:
    - User paid the contribution
    - User is a ledger admin

    Usage:
        def get_permissions(self):
            if self.action == 'partial_update':
                return [IsAuthenticated(), CanManageContribution()]
    """

    message = 'Only the payer or an administrator can modify this contribution.'

    def has_object_permission(self, request, view, obj):
        if request.user.is_admin:
            return True
        return obj.payer_id == request.user.id
