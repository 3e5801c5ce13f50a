# ==========================================
# apps/ledger/admin.py
# ==========================================

from django.contrib import admin
from django.utils.html import format_html
from .models import CompensationRecord, Contribution, ContributionShare, LedgerConfiguration


class ContributionShareInline(admin.TabularInline):
    """Inline admin for shares within a contribution."""
    model = ContributionShare
    extra = 0
    fields = ['user', 'value_share', 'quantity_cakes_share']
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        """Shares are created by the contribution writer only."""
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Contribution)
class ContributionAdmin(admin.ModelAdmin):
    """
    Admin interface for contributions.

    Read-only apart from note and evidence: balance-affecting changes
    must go through the ledger services so balances stay consistent.
    """

    list_display = [
        'payer',
        'value',
        'get_quantity_display',
        'divided_badge',
        'round_id',
        'purchase_date',
        'created_at',
    ]

    list_filter = [
        'is_divided',
        'round_id',
        'purchase_date',
    ]

    search_fields = [
        'payer__email',
        'payer__name',
        'note',
    ]

    date_hierarchy = 'purchase_date'
    inlines = [ContributionShareInline]

    readonly_fields = [
        'id',
        'payer',
        'purchase_date',
        'value',
        'cake_unit_price_at_creation',
        'is_divided',
        'participant_user_ids',
        'round_id',
        'idempotency_key',
        'created_at',
        'updated_at',
    ]

    fieldsets = (
        ('Purchase', {
            'fields': ('id', 'payer', 'purchase_date', 'value', 'cake_unit_price_at_creation')
        }),
        ('Division', {
            'fields': ('is_divided', 'participant_user_ids'),
        }),
        ('Evidence & Notes', {
            'fields': ('purchase_evidence_url', 'note'),
        }),
        ('Metadata', {
            'fields': ('round_id', 'idempotency_key', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    def get_quantity_display(self, obj):
        return f"{obj.quantity_cakes} cakes"
    get_quantity_display.short_description = 'Cakes'

    def divided_badge(self, obj):
        """Display division as colored badge."""
        if obj.is_divided:
            return format_html(
                '<span style="background: #A47449; color: white; padding: 3px 8px; '
                'border-radius: 10px; font-size: 11px;">Divided ({})</span>',
                obj.people_count
            )
        return format_html(
            '<span style="background: #ccc; color: #666; padding: 3px 8px; '
            'border-radius: 10px; font-size: 11px;">Single</span>'
        )
    divided_badge.short_description = 'Division'

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CompensationRecord)
class CompensationRecordAdmin(admin.ModelAdmin):
    list_display = ['round_id', 'settled_cakes', 'created_at']
    readonly_fields = ['id', 'round_id', 'settled_cakes', 'last_place_user_ids', 'created_at']

    def has_add_permission(self, request):
        return False


@admin.register(LedgerConfiguration)
class LedgerConfigurationAdmin(admin.ModelAdmin):
    list_display = ['cake_unit_price', 'current_round_id', 'maintenance_mode', 'updated_at']
    readonly_fields = ['current_round_id', 'maintenance_mode', 'updated_at', 'updated_by']

    def has_add_permission(self, request):
        return not LedgerConfiguration.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False
