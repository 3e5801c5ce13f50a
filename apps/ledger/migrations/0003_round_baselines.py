# Generated manually for per-user round baselines

from decimal import Decimal
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


def seed_baselines(apps, schema_editor):
    """Start every user from the cakes already settled by closed rounds."""
    User = apps.get_model('accounts', 'User')
    CompensationRecord = apps.get_model('ledger', 'CompensationRecord')
    RoundBaseline = apps.get_model('ledger', 'RoundBaseline')

    settled = sum(
        (record.settled_cakes for record in CompensationRecord.objects.all()),
        Decimal('0'),
    )
    if not settled:
        return

    RoundBaseline.objects.bulk_create([
        RoundBaseline(user_id=user_id, baseline_cakes=settled)
        for user_id in User.objects.values_list('id', flat=True)
    ])


class Migration(migrations.Migration):

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('ledger', '0002_seed_configuration'),
    ]

    operations = [
        migrations.CreateModel(
            name='RoundBaseline',
            fields=[
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='round_baseline', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('baseline_cakes', models.DecimalField(decimal_places=6, default=Decimal('0.000000'), max_digits=18)),
            ],
            options={
                'db_table': 'round_baselines',
            },
        ),
        migrations.RunPython(seed_baselines, migrations.RunPython.noop),
    ]
