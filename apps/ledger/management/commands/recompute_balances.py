"""
Management command to rebuild all cake balances from the contribution history.

Replays every contribution in creation order and overwrites balances that
differ from the replay. Contribution writes are refused while it runs.

Usage:
    python manage.py recompute_balances
    python manage.py recompute_balances --dry-run
"""

from django.core.management.base import BaseCommand, CommandError
from apps.ledger.services import MaintenanceInProgressError, recompute_all_balances


class Command(BaseCommand):
    help = 'Recompute every user balance from the contribution history'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report divergences without changing any balance',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']

        try:
            report = recompute_all_balances(dry_run=dry_run)
        except MaintenanceInProgressError as e:
            raise CommandError(str(e))

        self.stdout.write(f'\nReplayed {report.contributions_replayed} contribution(s).')

        if not report.divergences:
            self.stdout.write(
                self.style.SUCCESS('All balances match the contribution history. All good!')
            )
            return

        self.stdout.write(f'\nFound {len(report.divergences)} diverging balance(s):\n')
        for divergence in report.divergences:
            self.stdout.write(
                f'  - {divergence.user_id} | live {divergence.previous} | replayed {divergence.recomputed}'
            )

        if dry_run:
            self.stdout.write(
                self.style.WARNING('\n--dry-run mode: No changes made.')
            )
            return

        self.stdout.write(
            self.style.SUCCESS(f'\n✓ Corrected {report.users_updated} balance(s).')
        )
