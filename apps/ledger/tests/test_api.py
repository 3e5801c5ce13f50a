import pytest
from datetime import timedelta
from decimal import Decimal
from django.urls import reverse
from rest_framework import status
from apps.accounts.models import User
from apps.ledger.models import CompensationRecord, Contribution, LedgerConfiguration
from apps.ledger.services import create_contribution, maintenance_mode


def contribution_payload(today, **overrides):
    payload = {
        'purchase_date': today.isoformat(),
        'value': '100.00',
        'is_divided': False,
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Contribution create
# =============================================================================

@pytest.mark.django_db
class TestContributionCreate:
    """Tests for POST /api/ledger/contributions/"""

    def test_create_single_contribution(self, alice_client, alice, bob, today):
        url = reverse('ledger:contribution-list')
        response = alice_client.post(url, contribution_payload(today), format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['contribution']['quantity_cakes'] == '4.000000'
        assert response.data['contribution']['payer']['id'] == str(alice.id)
        assert response.data['compensation_created'] is False
        assert response.data['warnings'] == []
        alice.refresh_from_db()
        assert alice.balance == Decimal('4.000000')

    def test_create_divided_contribution(self, alice_client, alice, bob, carol, today):
        url = reverse('ledger:contribution-list')
        payload = contribution_payload(
            today,
            value='75.00',
            is_divided=True,
            participant_user_ids=[str(bob.id), str(carol.id)],
        )
        response = alice_client.post(url, payload, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['contribution']['people_count'] == 3
        assert response.data['compensation_created'] is True
        for user in (alice, bob, carol):
            user.refresh_from_db()
            assert user.balance == Decimal('1.000000')

    def test_create_requires_authentication(self, api_client, today):
        url = reverse('ledger:contribution-list')
        response = api_client.post(url, contribution_payload(today), format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_zero_value_rejected(self, alice_client, today):
        url = reverse('ledger:contribution-list')
        response = alice_client.post(url, contribution_payload(today, value='0'), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Contribution.objects.count() == 0

    def test_future_date_rejected(self, alice_client, today):
        url = reverse('ledger:contribution-list')
        payload = contribution_payload(today, purchase_date=(today + timedelta(days=1)).isoformat())
        response = alice_client.post(url, payload, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_divided_without_participants_rejected(self, alice_client, today):
        url = reverse('ledger:contribution-list')
        response = alice_client.post(url, contribution_payload(today, is_divided=True), format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_member_cannot_record_for_someone_else(self, alice_client, bob, today):
        url = reverse('ledger:contribution-list')
        response = alice_client.post(
            url, contribution_payload(today, payer=str(bob.id)), format='json'
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert Contribution.objects.count() == 0

    def test_admin_can_record_for_someone_else(self, admin_client, bob, today):
        url = reverse('ledger:contribution-list')
        response = admin_client.post(
            url, contribution_payload(today, payer=str(bob.id)), format='json'
        )

        assert response.status_code == status.HTTP_201_CREATED
        bob.refresh_from_db()
        assert bob.balance == Decimal('4.000000')

    def test_idempotent_retry_returns_original(self, alice_client, alice, bob, today):
        url = reverse('ledger:contribution-list')
        payload = contribution_payload(today, idempotency_key='client-req-7')

        first = alice_client.post(url, payload, format='json')
        second = alice_client.post(url, payload, format='json')

        assert first.status_code == status.HTTP_201_CREATED
        assert second.status_code == status.HTTP_200_OK
        assert second.data['contribution']['id'] == first.data['contribution']['id']
        alice.refresh_from_db()
        assert alice.balance == Decimal('4.000000')

    def test_maintenance_returns_conflict(self, alice_client, alice, today):
        url = reverse('ledger:contribution-list')

        with maintenance_mode():
            response = alice_client.post(url, contribution_payload(today), format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert Contribution.objects.count() == 0

    def test_create_with_evidence_link(self, alice_client, bob, today):
        url = reverse('ledger:contribution-list')
        payload = contribution_payload(
            today, purchase_evidence_link='https://drive.google.com/file/d/ev1/view?usp=sharing'
        )
        response = alice_client.post(url, payload, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert (response.data['contribution']['purchase_evidence_url']
                == 'https://drive.google.com/file/d/ev1/view')
        assert response.data['warnings'] == []

    def test_failed_evidence_keeps_contribution(self, alice_client, alice, bob, today):
        url = reverse('ledger:contribution-list')
        payload = contribution_payload(today, purchase_evidence_link='not a link')
        response = alice_client.post(url, payload, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert len(response.data['warnings']) == 1
        assert response.data['contribution']['purchase_evidence_url'] is None
        alice.refresh_from_db()
        assert alice.balance == Decimal('4.000000')


# =============================================================================
# Contribution read / update
# =============================================================================

@pytest.mark.django_db
class TestContributionReadUpdate:

    def test_list_contributions(self, bob_client, single_contribution):
        url = reverse('ledger:contribution-list')
        response = bob_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1
        assert response.data['results'][0]['id'] == str(single_contribution.id)

    def test_list_filter_by_user(self, alice_client, divided_contribution, bob, carol, today):
        create_contribution(
            payer_id=carol.id, purchase_date=today, value=Decimal('10.00'), is_divided=False,
        )
        url = reverse('ledger:contribution-list')

        response = alice_client.get(url, {'user': str(bob.id)})

        assert response.status_code == status.HTTP_200_OK
        ids = [c['id'] for c in response.data['results']]
        assert ids == [str(divided_contribution.id)]

    def test_list_invalid_date_range(self, alice_client):
        url = reverse('ledger:contribution-list')
        response = alice_client.get(url, {'date_from': '2024-05-02', 'date_to': '2024-05-01'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_retrieve(self, alice_client, single_contribution):
        url = reverse('ledger:contribution-detail', kwargs={'pk': single_contribution.id})
        response = alice_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data['value'] == '100.00'

    def test_payer_updates_note(self, alice_client, single_contribution):
        url = reverse('ledger:contribution-detail', kwargs={'pk': single_contribution.id})
        response = alice_client.patch(url, {'note': 'Birthday cake'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['note'] == 'Birthday cake'

    def test_other_member_cannot_update(self, bob_client, single_contribution):
        url = reverse('ledger:contribution-detail', kwargs={'pk': single_contribution.id})
        response = bob_client.patch(url, {'note': 'Mine now'}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_details_of_divided(self, bob_client, divided_contribution, alice):
        url = reverse('ledger:contribution-details', kwargs={'pk': divided_contribution.id})
        response = bob_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 3
        assert response.data[0]['user']['id'] == str(alice.id)
        assert response.data[0]['quantity_cakes_share'] == '1.000000'

    def test_details_of_single_rejected(self, alice_client, single_contribution):
        url = reverse('ledger:contribution-details', kwargs={'pk': single_contribution.id})
        response = alice_client.get(url)

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_contribution(self, alice_client):
        url = reverse(
            'ledger:contribution-detail', kwargs={'pk': '9b2f4a4e-0000-4000-8000-000000000000'}
        )
        response = alice_client.get(url)

        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestContributionFinancials:
    """Tests for POST /api/ledger/contributions/{id}/financials/"""

    def test_member_cannot_edit(self, alice_client, single_contribution):
        url = reverse('ledger:contribution-financials', kwargs={'pk': single_contribution.id})
        response = alice_client.post(url, {'value': '50.00'}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_edits_value(self, admin_client, single_contribution, alice):
        url = reverse('ledger:contribution-financials', kwargs={'pk': single_contribution.id})
        response = admin_client.post(url, {'value': '50.00'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['contribution']['value'] == '50.00'
        alice.refresh_from_db()
        assert alice.balance == Decimal('2.000000')

    def test_empty_edit_rejected(self, admin_client, single_contribution):
        url = reverse('ledger:contribution-financials', kwargs={'pk': single_contribution.id})
        response = admin_client.post(url, {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestContributionEvidence:

    def test_attach_link(self, alice_client, single_contribution):
        url = reverse('ledger:contribution-evidence', kwargs={'pk': single_contribution.id})
        response = alice_client.post(url, {'link': 'https://example.com/r.jpg'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['purchase_evidence_url'] == 'https://example.com/r.jpg'
        assert response.data['warnings'] == []

    def test_invalid_link_reported_as_warning(self, alice_client, single_contribution):
        url = reverse('ledger:contribution-evidence', kwargs={'pk': single_contribution.id})
        response = alice_client.post(url, {'link': 'nope'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['purchase_evidence_url'] is None
        assert len(response.data['warnings']) == 1

    def test_requires_link_or_file(self, alice_client, single_contribution):
        url = reverse('ledger:contribution-evidence', kwargs={'pk': single_contribution.id})
        response = alice_client.post(url, {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST


# =============================================================================
# Configuration, rounds, recomputation
# =============================================================================

@pytest.mark.django_db
class TestConfigurationApi:

    def test_get_configuration(self, alice_client):
        response = alice_client.get(reverse('ledger:configuration'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['cake_unit_price'] == '25.00'
        assert response.data['maintenance_mode'] is False

    def test_member_cannot_change_price(self, alice_client):
        response = alice_client.put(
            reverse('ledger:configuration'), {'cake_unit_price': '30.00'}, format='json'
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_changes_price(self, admin_client, ledger_admin):
        response = admin_client.put(
            reverse('ledger:configuration'), {'cake_unit_price': '30.00'}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        config = LedgerConfiguration.load()
        assert config.cake_unit_price == Decimal('30.00')
        assert config.updated_by == ledger_admin

    def test_non_positive_price_rejected(self, admin_client):
        response = admin_client.put(
            reverse('ledger:configuration'), {'cake_unit_price': '0.00'}, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestRoundsApi:

    def test_round_status(self, alice_client, alice, bob, today):
        create_contribution(
            payer_id=alice.id, purchase_date=today, value=Decimal('25.00'), is_divided=False,
        )

        response = alice_client.get(reverse('ledger:round-status'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['round_id'] == 1
        assert response.data['pending_user_ids'] == [str(bob.id)]

    def test_compensation_list(self, alice_client, single_contribution):
        response = alice_client.get(reverse('ledger:compensation-list'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == CompensationRecord.objects.count()


@pytest.mark.django_db
class TestRecomputeApi:

    def test_member_cannot_recompute(self, alice_client):
        response = alice_client.post(reverse('ledger:recompute'), {}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_recompute_fixes_balance(self, admin_client, single_contribution, alice):
        User.objects.filter(id=alice.id).update(balance=Decimal('7.000000'))

        response = admin_client.post(reverse('ledger:recompute'), {}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['users_updated'] == 1
        assert response.data['divergences'][0]['recomputed'] == '4.000000'
        alice.refresh_from_db()
        assert alice.balance == Decimal('4.000000')

    def test_dry_run(self, admin_client, single_contribution, alice):
        User.objects.filter(id=alice.id).update(balance=Decimal('7.000000'))

        response = admin_client.post(reverse('ledger:recompute'), {'dry_run': True}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['dry_run'] is True
        assert response.data['users_updated'] == 0
        alice.refresh_from_db()
        assert alice.balance == Decimal('7.000000')
