import pytest
from decimal import Decimal
from io import StringIO
from django.core.management import call_command
from django.core.management.base import CommandError
from apps.accounts.models import User
from apps.ledger.services import maintenance_mode


@pytest.mark.django_db
class TestRecomputeBalancesCommand:

    def test_consistent_ledger(self, single_contribution):
        out = StringIO()
        call_command('recompute_balances', stdout=out)

        assert 'All good' in out.getvalue()

    def test_dry_run_reports_without_changes(self, single_contribution, alice):
        User.objects.filter(id=alice.id).update(balance=Decimal('2.500000'))
        out = StringIO()

        call_command('recompute_balances', '--dry-run', stdout=out)

        output = out.getvalue()
        assert str(alice.id) in output
        assert 'No changes made' in output
        alice.refresh_from_db()
        assert alice.balance == Decimal('2.500000')

    def test_fixes_divergence(self, single_contribution, alice):
        User.objects.filter(id=alice.id).update(balance=Decimal('2.500000'))
        out = StringIO()

        call_command('recompute_balances', stdout=out)

        assert 'Corrected 1 balance' in out.getvalue()
        alice.refresh_from_db()
        assert alice.balance == Decimal('4.000000')

    def test_refused_during_maintenance(self, ledger_config):
        with maintenance_mode():
            with pytest.raises(CommandError):
                call_command('recompute_balances', stdout=StringIO())
