from rest_framework import serializers
from .models import (
    CompensationRecord,
    Contribution,
    ContributionShare,
    LedgerConfiguration,
    MONEY_QUANTUM,
)
from apps.accounts.models import User


# =============================================================================
# Input Serializers
# =============================================================================

class ContributionFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for contribution filtering.

    Query Parameters:
        user (UUID): Contributions paid by or shared with this user
        payer (UUID): Contributions paid by this user
        round (int): Contributions of this round
        date_from (date): Purchases from this date
        date_to (date): Purchases up to this date
    """

    user = serializers.UUIDField(required=False)
    payer = serializers.UUIDField(required=False)
    round = serializers.IntegerField(required=False, min_value=1)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def validate(self, attrs):
        """Validate date range."""
        date_from = attrs.get('date_from')
        date_to = attrs.get('date_to')

        if date_from and date_to:
            if date_from > date_to:
                raise serializers.ValidationError({
                    'date_to': 'End date must be after start date'
                })

        return attrs


class ContributionCreateSerializer(serializers.Serializer):
    """
    Input for recording a contribution.

    ``payer`` defaults to the authenticated user; only admins may record
    a contribution on behalf of someone else. Evidence can be given as a
    link or as an uploaded file, not both.
    """

    payer = serializers.UUIDField(required=False)
    purchase_date = serializers.DateField()
    value = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=MONEY_QUANTUM)
    is_divided = serializers.BooleanField(default=False)
    participant_user_ids = serializers.ListField(
        child=serializers.UUIDField(),
        required=False,
        default=list,
    )
    note = serializers.CharField(required=False, allow_blank=True, default='')
    idempotency_key = serializers.CharField(max_length=100, required=False, allow_blank=True)
    purchase_evidence_link = serializers.CharField(max_length=1000, required=False, allow_blank=True)
    purchase_evidence_file = serializers.FileField(required=False)

    def validate(self, attrs):
        if attrs.get('is_divided') and not attrs.get('participant_user_ids'):
            raise serializers.ValidationError({
                'participant_user_ids': 'A divided contribution needs participants'
            })
        if attrs.get('purchase_evidence_link') and attrs.get('purchase_evidence_file'):
            raise serializers.ValidationError(
                'Provide either purchase_evidence_link or purchase_evidence_file, not both'
            )
        return attrs


class ContributionUpdateSerializer(serializers.Serializer):
    """Non-financial fields; balances are not affected."""

    purchase_date = serializers.DateField(required=False)
    note = serializers.CharField(required=False, allow_blank=True)
    purchase_evidence_url = serializers.URLField(max_length=1000, required=False, allow_blank=True)


class ContributionFinancialsSerializer(serializers.Serializer):
    """Admin edit of value, division and participants."""

    value = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=MONEY_QUANTUM, required=False
    )
    is_divided = serializers.BooleanField(required=False)
    participant_user_ids = serializers.ListField(
        child=serializers.UUIDField(),
        required=False,
    )

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Nothing to change')
        return attrs


class EvidenceInputSerializer(serializers.Serializer):
    link = serializers.CharField(max_length=1000, required=False, allow_blank=False)
    file = serializers.FileField(required=False)

    def validate(self, attrs):
        if bool(attrs.get('link')) == bool(attrs.get('file')):
            raise serializers.ValidationError('Provide exactly one of link or file')
        return attrs


class ConfigurationUpdateSerializer(serializers.Serializer):
    cake_unit_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=MONEY_QUANTUM
    )


class RecomputeInputSerializer(serializers.Serializer):
    dry_run = serializers.BooleanField(default=False)


# =============================================================================
# Output Serializers
# =============================================================================


class UserMinimalSerializer(serializers.ModelSerializer):
    """Minimal user info for nested serialization."""

    display_name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'display_name']
        read_only_fields = fields

    def get_display_name(self, obj):
        return obj.get_display_name()


class ContributionShareSerializer(serializers.ModelSerializer):
    """One person's part of a divided contribution."""

    user = UserMinimalSerializer(read_only=True)

    class Meta:
        model = ContributionShare
        fields = ['id', 'user', 'value_share', 'quantity_cakes_share']
        read_only_fields = fields


class ContributionSerializer(serializers.ModelSerializer):
    """Main serializer for contributions."""

    payer = UserMinimalSerializer(read_only=True)
    quantity_cakes = serializers.DecimalField(max_digits=18, decimal_places=6, read_only=True)
    people_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Contribution
        fields = [
            'id',
            'payer',
            'purchase_date',
            'value',
            'cake_unit_price_at_creation',
            'quantity_cakes',
            'is_divided',
            'participant_user_ids',
            'people_count',
            'purchase_evidence_url',
            'note',
            'round_id',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class ContributionCreateResponseSerializer(serializers.Serializer):
    contribution = ContributionSerializer()
    compensation_created = serializers.BooleanField()
    last_place_user_ids = serializers.ListField(child=serializers.CharField())
    warnings = serializers.ListField(child=serializers.CharField())


class EvidenceResponseSerializer(serializers.Serializer):
    purchase_evidence_url = serializers.URLField(allow_null=True)
    warnings = serializers.ListField(child=serializers.CharField())


class ConfigurationSerializer(serializers.ModelSerializer):
    class Meta:
        model = LedgerConfiguration
        fields = ['cake_unit_price', 'current_round_id', 'maintenance_mode', 'updated_at']
        read_only_fields = fields


class CompensationRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = CompensationRecord
        fields = ['id', 'round_id', 'settled_cakes', 'last_place_user_ids', 'created_at']
        read_only_fields = fields


class StandingSerializer(serializers.Serializer):
    user_id = serializers.CharField()
    name = serializers.CharField()
    balance = serializers.DecimalField(max_digits=18, decimal_places=6)
    standing = serializers.DecimalField(max_digits=18, decimal_places=6)


class RoundStatusSerializer(serializers.Serializer):
    round_id = serializers.IntegerField()
    settled_total = serializers.DecimalField(max_digits=18, decimal_places=6)
    contributions_in_round = serializers.IntegerField()
    standings = StandingSerializer(many=True)
    pending_user_ids = serializers.ListField(child=serializers.CharField())
    last_place_user_ids = serializers.ListField(child=serializers.CharField())


class DivergenceSerializer(serializers.Serializer):
    user_id = serializers.CharField()
    previous = serializers.DecimalField(max_digits=18, decimal_places=6)
    recomputed = serializers.DecimalField(max_digits=18, decimal_places=6)


class RecomputationReportSerializer(serializers.Serializer):
    users_updated = serializers.IntegerField()
    contributions_replayed = serializers.IntegerField()
    dry_run = serializers.BooleanField()
    divergences = DivergenceSerializer(many=True)
