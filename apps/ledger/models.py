from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from decimal import Decimal, ROUND_HALF_EVEN
import uuid


CAKE_QUANTUM = Decimal('0.000001')
MONEY_QUANTUM = Decimal('0.01')


def derive_quantity_cakes(value, cake_unit_price):
    """Convert a monetary value into cakes at the given unit price."""
    return (Decimal(value) / Decimal(cake_unit_price)).quantize(
        CAKE_QUANTUM, rounding=ROUND_HALF_EVEN
    )


class LedgerConfiguration(models.Model):
    """
    Singleton holding the cake price and the round counter.

    Always access through ``LedgerConfiguration.load()``; the row lives at
    primary key 1.
    """

    SINGLETON_ID = 1

    id = models.PositiveSmallIntegerField(primary_key=True, default=SINGLETON_ID, editable=False)
    cake_unit_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(MONEY_QUANTUM)]
    )
    current_round_id = models.PositiveIntegerField(default=1)

    # Set while the recomputation engine owns the balances
    maintenance_mode = models.BooleanField(default=False)

    updated_at = models.DateTimeField(auto_now=True)
    updated_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    class Meta:
        db_table = 'ledger_configuration'

    def __str__(self):
        return f"Cake price {self.cake_unit_price} (round {self.current_round_id})"

    @classmethod
    def load(cls, *, for_update=False):
        queryset = cls.objects.select_for_update() if for_update else cls.objects
        config, _ = queryset.get_or_create(
            id=cls.SINGLETON_ID,
            defaults={'cake_unit_price': settings.LEDGER_DEFAULT_CAKE_UNIT_PRICE},
        )
        return config


class Contribution(models.Model):
    """A purchase paid by one collaborator, optionally split with others."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    payer = models.ForeignKey(
        'accounts.User',
        on_delete=models.PROTECT,
        related_name='contributions_paid'
    )

    purchase_date = models.DateField()
    value = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(MONEY_QUANTUM)]
    )
    # Copied from the configuration at write time, never changed afterwards
    cake_unit_price_at_creation = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        editable=False
    )

    is_divided = models.BooleanField(default=False)
    # Sorted user id strings, payer excluded
    participant_user_ids = models.JSONField(default=list, blank=True)

    purchase_evidence_url = models.URLField(max_length=1000, null=True, blank=True)
    note = models.TextField(blank=True)

    round_id = models.PositiveIntegerField(db_index=True)

    # Client supplied key so a retried request is committed at most once
    idempotency_key = models.CharField(max_length=100, unique=True, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'contributions'
        indexes = [
            models.Index(fields=['payer', 'purchase_date'], name='contrib_payer_date_idx'),
            models.Index(fields=['purchase_date'], name='contrib_date_idx'),
            models.Index(fields=['created_at', 'id'], name='contrib_replay_order_idx'),
        ]
        ordering = ['-purchase_date', '-created_at']

    def __str__(self):
        kind = 'divided' if self.is_divided else 'single'
        return f"{self.payer} - {self.value} ({kind}, round {self.round_id})"

    @property
    def quantity_cakes(self):
        return derive_quantity_cakes(self.value, self.cake_unit_price_at_creation)

    @property
    def people_count(self):
        """Number of people sharing the contribution (payer included)."""
        if not self.is_divided:
            return 1
        return len(self.participant_user_ids) + 1


class ContributionShare(models.Model):
    """One person's part of a divided contribution."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    contribution = models.ForeignKey(
        Contribution,
        on_delete=models.CASCADE,
        related_name='shares'
    )
    user = models.ForeignKey(
        'accounts.User',
        on_delete=models.PROTECT,
        related_name='contribution_shares'
    )

    value_share = models.DecimalField(max_digits=10, decimal_places=2)
    quantity_cakes_share = models.DecimalField(max_digits=18, decimal_places=6)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'contribution_shares'
        unique_together = [['contribution', 'user']]
        indexes = [
            models.Index(fields=['user', 'contribution'], name='share_user_contrib_idx'),
        ]
        ordering = ['created_at']

    def __str__(self):
        return f"{self.user} - {self.quantity_cakes_share} cakes"


class CompensationRecord(models.Model):
    """Audit marker written once when a round closes. Balances are untouched."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    round_id = models.PositiveIntegerField(unique=True)

    # Minimum round standing at closure, i.e. what every active user had covered
    settled_cakes = models.DecimalField(
        max_digits=18,
        decimal_places=6,
        default=Decimal('0.000000')
    )
    last_place_user_ids = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'compensation_records'
        ordering = ['-round_id']

    def __str__(self):
        return f"Round {self.round_id} closed at {self.created_at:%Y-%m-%d}"


class RoundBaseline(models.Model):
    """
    Balance from which a user's round standing is measured.

    Advanced by the settled amount at every closure and reset to the
    current balance when a user is reactivated. Users without a row are
    measured from zero, which is their balance when they join.
    """

    user = models.OneToOneField(
        'accounts.User',
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='round_baseline'
    )
    baseline_cakes = models.DecimalField(
        max_digits=18,
        decimal_places=6,
        default=Decimal('0.000000')
    )

    class Meta:
        db_table = 'round_baselines'

    def __str__(self):
        return f"{self.user} from {self.baseline_cakes} cakes"
