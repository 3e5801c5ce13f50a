"""
Management command to create sample data for testing the API.

Usage:
    python manage.py create_sample_data

This creates:
- 4 users (admin, alice, bob, charlie)
- The ledger configuration with a cake price of 25.00
- A handful of single and divided contributions

Contributions are recorded through the ledger services with fixed
idempotency keys, so running the command twice does not double the
balances.
"""

from django.core.management.base import BaseCommand
from django.db import transaction
from decimal import Decimal
from datetime import timedelta

from django.utils import timezone

from apps.accounts.models import User
from apps.ledger.models import CompensationRecord, Contribution, LedgerConfiguration
from apps.ledger.services import create_contribution, set_cake_unit_price


class Command(BaseCommand):
    help = 'Create sample data for testing the API'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before creating new sample data',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self.clear_data()

        self.stdout.write('Creating sample data...')

        users = self.create_users()
        set_cake_unit_price(Decimal('25.00'), updated_by=users['admin'])
        self.create_contributions(users)

        self.stdout.write(self.style.SUCCESS('Sample data created successfully!'))
        self.stdout.write('')
        self.stdout.write('Test accounts:')
        self.stdout.write('  admin@example.com / admin123 (superuser)')
        self.stdout.write('  alice@example.com / password123')
        self.stdout.write('  bob@example.com / password123')
        self.stdout.write('  charlie@example.com / password123')

    @transaction.atomic
    def clear_data(self):
        """Clear all ledger data and sample users."""
        Contribution.objects.all().delete()
        CompensationRecord.objects.all().delete()
        LedgerConfiguration.objects.all().delete()
        User.objects.filter(is_superuser=False).delete()
        User.objects.filter(email='admin@example.com').delete()

    def create_users(self):
        """Create test users."""
        self.stdout.write('  Creating users...')

        admin, _ = User.objects.get_or_create(
            email='admin@example.com',
            defaults={
                'name': 'Admin User',
                'is_staff': True,
                'is_superuser': True,
                'is_admin': True,
            }
        )
        admin.set_password('admin123')
        admin.save()

        users = {'admin': admin}
        for key, name in [('alice', 'Alice Baker'), ('bob', 'Bob Frosting'), ('charlie', 'Charlie Crumb')]:
            user, _ = User.objects.get_or_create(
                email=f'{key}@example.com',
                defaults={'name': name},
            )
            user.set_password('password123')
            user.save()
            users[key] = user

        return users

    def create_contributions(self, users):
        """Record contributions through the ledger services."""
        self.stdout.write('  Creating contributions...')

        today = timezone.localdate()
        everyone = [users[key].id for key in ('admin', 'alice', 'bob', 'charlie')]

        contributions = [
            # Alice brings two cakes for herself
            dict(payer='alice', days_ago=20, value='50.00', is_divided=False, note='Birthday cakes'),
            # Bob pays one cake for the whole office
            dict(payer='bob', days_ago=12, value='100.00', is_divided=True, note='Team lunch dessert'),
            # Charlie splits a cake with Alice
            dict(payer='charlie', days_ago=5, value='37.50', is_divided=True,
                 participants=[users['alice'].id], note='Cheesecake'),
            dict(payer='admin', days_ago=1, value='25.00', is_divided=False, note=''),
        ]

        for index, data in enumerate(contributions, start=1):
            payer = users[data['payer']]
            participants = data.get('participants', everyone) if data['is_divided'] else None
            result = create_contribution(
                payer_id=payer.id,
                purchase_date=today - timedelta(days=data['days_ago']),
                value=Decimal(data['value']),
                is_divided=data['is_divided'],
                participant_user_ids=participants,
                idempotency_key=f'sample-data-{index}',
                note=data['note'],
            )
            if result.compensation_created:
                self.stdout.write(f'    Round {result.compensation.round_id} closed')
