import pytest
from decimal import Decimal
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.ledger.models import LedgerConfiguration
from apps.ledger.services import create_contribution


def authenticated_client(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def ledger_config(db):
    """Ledger configuration with a cake price of 25.00."""
    config = LedgerConfiguration.load()
    config.cake_unit_price = Decimal('25.00')
    config.current_round_id = 1
    config.maintenance_mode = False
    config.save()
    return config


@pytest.fixture
def alice(db, ledger_config):
    """Create and return a collaborator."""
    return User.objects.create_user(
        email='alice@example.com',
        password='TestPass123!',
        name='Alice',
    )


@pytest.fixture
def bob(db, ledger_config):
    """Create and return another collaborator."""
    return User.objects.create_user(
        email='bob@example.com',
        password='TestPass123!',
        name='Bob',
    )


@pytest.fixture
def carol(db, ledger_config):
    """Create and return a third collaborator."""
    return User.objects.create_user(
        email='carol@example.com',
        password='TestPass123!',
        name='Carol',
    )


@pytest.fixture
def retired_user(db, ledger_config):
    """Create and return a deactivated collaborator."""
    return User.objects.create_user(
        email='retired@example.com',
        password='TestPass123!',
        name='Retired',
        is_active=False,
    )


@pytest.fixture
def ledger_admin(db, ledger_config):
    """Create and return a ledger administrator."""
    return User.objects.create_user(
        email='admin@example.com',
        password='TestPass123!',
        name='Admin',
        is_admin=True,
    )


@pytest.fixture
def alice_client(alice):
    """Return API client authenticated as alice."""
    return authenticated_client(alice)


@pytest.fixture
def bob_client(bob):
    """Return API client authenticated as bob."""
    return authenticated_client(bob)


@pytest.fixture
def admin_client(ledger_admin):
    """Return API client authenticated as the ledger admin."""
    return authenticated_client(ledger_admin)


@pytest.fixture
def today():
    return timezone.localdate()


@pytest.fixture
def single_contribution(alice, today):
    """100.00 paid by alice alone: 4 cakes at 25.00."""
    return create_contribution(
        payer_id=alice.id,
        purchase_date=today,
        value=Decimal('100.00'),
        is_divided=False,
    ).contribution


@pytest.fixture
def divided_contribution(alice, bob, carol, today):
    """75.00 paid by alice, divided with bob and carol: 1 cake each."""
    return create_contribution(
        payer_id=alice.id,
        purchase_date=today,
        value=Decimal('75.00'),
        is_divided=True,
        participant_user_ids=[bob.id, carol.id],
    ).contribution
