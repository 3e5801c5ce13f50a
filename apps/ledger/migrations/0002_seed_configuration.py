# Generated manually to create the configuration singleton
from django.conf import settings
from django.db import migrations


def create_configuration(apps, schema_editor):
    """Create the configuration row with the default cake price."""
    LedgerConfiguration = apps.get_model('ledger', 'LedgerConfiguration')

    LedgerConfiguration.objects.get_or_create(
        id=1,
        defaults={'cake_unit_price': settings.LEDGER_DEFAULT_CAKE_UNIT_PRICE},
    )


def reverse_create(apps, schema_editor):
    """Leave the row in place (for rollback)."""
    pass


class Migration(migrations.Migration):

    dependencies = [
        ('ledger', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(create_configuration, reverse_create),
    ]
