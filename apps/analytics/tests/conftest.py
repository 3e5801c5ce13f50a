import pytest
from decimal import Decimal
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.analytics.analytics import months_before
from apps.ledger.models import LedgerConfiguration
from apps.ledger.services import create_contribution


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def today():
    return timezone.localdate()


@pytest.fixture
def cake_price(db):
    """Cake price of 25.00."""
    config = LedgerConfiguration.load()
    config.cake_unit_price = Decimal('25.00')
    config.save()
    return config.cake_unit_price


# =============================================================================
# Users
# =============================================================================

@pytest.fixture
def analytics_user(db, cake_price):
    """Create the main analytics test user."""
    return User.objects.create_user(
        email='analytics_user@example.com',
        password='TestPass123!',
        name='Analytics User',
    )


@pytest.fixture
def analytics_member1(db, cake_price):
    """Create a collaborator for analytics tests."""
    return User.objects.create_user(
        email='analytics_member1@example.com',
        password='TestPass123!',
        name='Analytics Member 1',
    )


@pytest.fixture
def analytics_member2(db, cake_price):
    """Create another collaborator for analytics tests."""
    return User.objects.create_user(
        email='analytics_member2@example.com',
        password='TestPass123!',
        name='Analytics Member 2',
    )


@pytest.fixture
def analytics_user_client(api_client, analytics_user):
    """Return API client authenticated as the main analytics user."""
    refresh = RefreshToken.for_user(analytics_user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client


# =============================================================================
# Ledger history
# =============================================================================

@pytest.fixture
def ledger_history(analytics_user, analytics_member1, analytics_member2, today):
    """
    Three contributions over three different months:

    - user pays 100.00 alone today (4 cakes)
    - member1 pays 75.00 two months ago, divided with user and member2
      (25.00 / 1 cake each)
    - member2 pays 50.00 alone eight months ago (2 cakes), outside the
      six-month window
    """
    return [
        create_contribution(
            payer_id=analytics_user.id,
            purchase_date=today,
            value=Decimal('100.00'),
            is_divided=False,
        ).contribution,
        create_contribution(
            payer_id=analytics_member1.id,
            purchase_date=months_before(today, 2),
            value=Decimal('75.00'),
            is_divided=True,
            participant_user_ids=[analytics_user.id, analytics_member2.id],
        ).contribution,
        create_contribution(
            payer_id=analytics_member2.id,
            purchase_date=months_before(today, 8),
            value=Decimal('50.00'),
            is_divided=False,
        ).contribution,
    ]
