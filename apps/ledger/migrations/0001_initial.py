# Generated manually for the cake fund ledger app

import uuid
from decimal import Decimal
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='LedgerConfiguration',
            fields=[
                ('id', models.PositiveSmallIntegerField(default=1, editable=False, primary_key=True, serialize=False)),
                ('cake_unit_price', models.DecimalField(decimal_places=2, max_digits=10, validators=[MinValueValidator(Decimal('0.01'))])),
                ('current_round_id', models.PositiveIntegerField(default=1)),
                ('maintenance_mode', models.BooleanField(default=False)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'ledger_configuration',
            },
        ),
        migrations.CreateModel(
            name='Contribution',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('purchase_date', models.DateField()),
                ('value', models.DecimalField(decimal_places=2, max_digits=10, validators=[MinValueValidator(Decimal('0.01'))])),
                ('cake_unit_price_at_creation', models.DecimalField(decimal_places=2, editable=False, max_digits=10)),
                ('is_divided', models.BooleanField(default=False)),
                ('participant_user_ids', models.JSONField(blank=True, default=list)),
                ('purchase_evidence_url', models.URLField(blank=True, max_length=1000, null=True)),
                ('note', models.TextField(blank=True)),
                ('round_id', models.PositiveIntegerField(db_index=True)),
                ('idempotency_key', models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('payer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='contributions_paid', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'contributions',
                'ordering': ['-purchase_date', '-created_at'],
                'indexes': [
                    models.Index(fields=['payer', 'purchase_date'], name='contrib_payer_date_idx'),
                    models.Index(fields=['purchase_date'], name='contrib_date_idx'),
                    models.Index(fields=['created_at', 'id'], name='contrib_replay_order_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ContributionShare',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('value_share', models.DecimalField(decimal_places=2, max_digits=10)),
                ('quantity_cakes_share', models.DecimalField(decimal_places=6, max_digits=18)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('contribution', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='shares', to='ledger.contribution')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='contribution_shares', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'contribution_shares',
                'ordering': ['created_at'],
                'indexes': [
                    models.Index(fields=['user', 'contribution'], name='share_user_contrib_idx'),
                ],
                'unique_together': {('contribution', 'user')},
            },
        ),
        migrations.CreateModel(
            name='CompensationRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('round_id', models.PositiveIntegerField(unique=True)),
                ('settled_cakes', models.DecimalField(decimal_places=6, default=Decimal('0.000000'), max_digits=18)),
                ('last_place_user_ids', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'compensation_records',
                'ordering': ['-round_id'],
            },
        ),
    ]
