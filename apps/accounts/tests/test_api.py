import uuid

import pytest
from django.urls import reverse
from rest_framework import status
from apps.accounts.models import User


# =============================================================================
# Login Tests
# =============================================================================

@pytest.mark.django_db
class TestLogin:
    """Tests for POST /api/auth/login/"""

    def test_login_success(self, api_client, user):
        """Successfully login with valid credentials."""
        url = reverse('users:login')
        data = {
            'email': user.email,
            'password': 'TestPass123!',
        }
        response = api_client.post(url, data)

        assert response.status_code == status.HTTP_200_OK
        assert 'access' in response.data['tokens']
        assert 'refresh' in response.data['tokens']
        assert response.data['user']['email'] == user.email
        assert response.data['user']['balance'] == '0.000000'

    def test_login_case_insensitive_email(self, api_client, user):
        url = reverse('users:login')
        response = api_client.post(url, {'email': 'TestUser@Example.com', 'password': 'TestPass123!'})

        assert response.status_code == status.HTTP_200_OK

    def test_login_wrong_password(self, api_client, user):
        """Login fails with wrong password."""
        url = reverse('users:login')
        data = {
            'email': user.email,
            'password': 'WrongPassword123!',
        }
        response = api_client.post(url, data)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert 'error' in response.data

    def test_login_nonexistent_user(self, api_client):
        """Login fails for non-existent user."""
        url = reverse('users:login')
        data = {
            'email': 'nonexistent@example.com',
            'password': 'SomePass123!',
        }
        response = api_client.post(url, data)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_login_inactive_user(self, api_client, user_inactive):
        """Deactivated collaborators cannot log in."""
        url = reverse('users:login')
        data = {
            'email': user_inactive.email,
            'password': 'TestPass123!',
        }
        response = api_client.post(url, data)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_login_updates_last_login(self, api_client, user):
        """Login updates last_login timestamp."""
        url = reverse('users:login')
        data = {
            'email': user.email,
            'password': 'TestPass123!',
        }
        response = api_client.post(url, data)

        assert response.status_code == status.HTTP_200_OK
        user.refresh_from_db()
        assert user.last_login is not None


# =============================================================================
# Current User Tests
# =============================================================================

@pytest.mark.django_db
class TestCurrentUser:
    """Tests for GET/PATCH /api/auth/user/"""

    def test_get_current_user(self, authenticated_client, user):
        """Get current authenticated user profile."""
        url = reverse('users:current-user')
        response = authenticated_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data['email'] == user.email
        assert response.data['name'] == 'Test User'
        assert 'balance' in response.data

    def test_get_current_user_unauthenticated(self, api_client):
        """Cannot get user profile when not authenticated."""
        url = reverse('users:current-user')
        response = api_client.get(url)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_update_name(self, authenticated_client, user):
        url = reverse('users:current-user')
        response = authenticated_client.patch(url, {'name': '  Renamed  '}, format='json')

        assert response.status_code == status.HTTP_200_OK
        user.refresh_from_db()
        assert user.name == 'Renamed'

    def test_balance_not_editable(self, authenticated_client, user):
        """Balance in the payload is ignored."""
        url = reverse('users:current-user')
        response = authenticated_client.patch(url, {'balance': '99.000000'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        user.refresh_from_db()
        assert user.balance == 0

    def test_invalid_photo_url(self, authenticated_client):
        url = reverse('users:current-user')
        response = authenticated_client.patch(url, {'photo_url': 'not-a-url'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST


# =============================================================================
# User Directory Tests
# =============================================================================

@pytest.mark.django_db
class TestActiveUsers:
    """Tests for GET /api/auth/users/active/"""

    def test_lists_only_active(self, authenticated_client, user, other_user, user_inactive):
        url = reverse('users:active-users')
        response = authenticated_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        ids = {entry['id'] for entry in response.data}
        assert ids == {str(user.id), str(other_user.id)}

    def test_entries_show_balance(self, authenticated_client, user):
        url = reverse('users:active-users')
        response = authenticated_client.get(url)

        assert response.data[0]['balance'] == '0.000000'
        assert response.data[0]['is_active'] is True

    def test_unauthenticated(self, api_client):
        response = api_client.get(reverse('users:active-users'))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestGetUserById:
    """Tests for GET /api/auth/users/{id}/"""

    def test_get_user_by_id(self, authenticated_client, other_user):
        """Get another user's profile by ID."""
        url = reverse('users:user-detail', args=[other_user.id])
        response = authenticated_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data['email'] == other_user.email

    def test_get_user_by_id_not_found(self, authenticated_client):
        """Return 404 for non-existent user ID."""
        url = reverse('users:user-detail', args=[uuid.uuid4()])
        response = authenticated_client.get(url)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_get_user_by_id_unauthenticated(self, api_client, user):
        """Cannot get user by ID when not authenticated."""
        url = reverse('users:user-detail', args=[user.id])
        response = api_client.get(url)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


# =============================================================================
# User Flags Tests
# =============================================================================

@pytest.mark.django_db
class TestUserFlags:
    """Tests for PATCH /api/auth/users/{id}/flags/"""

    def test_admin_deactivates_user(self, admin_client, user):
        url = reverse('users:user-flags', args=[user.id])
        response = admin_client.patch(url, {'is_active': False}, format='json')

        assert response.status_code == status.HTTP_200_OK
        user.refresh_from_db()
        assert user.is_active is False

    def test_admin_grants_admin(self, admin_client, user):
        url = reverse('users:user-flags', args=[user.id])
        response = admin_client.patch(url, {'is_admin': True}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['is_admin'] is True

    def test_admin_cannot_demote_self(self, admin_client, admin_user):
        url = reverse('users:user-flags', args=[admin_user.id])
        response = admin_client.patch(url, {'is_admin': False}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        admin_user.refresh_from_db()
        assert admin_user.is_admin is True

    def test_empty_payload(self, admin_client, user):
        url = reverse('users:user-flags', args=[user.id])
        response = admin_client.patch(url, {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_user(self, admin_client):
        url = reverse('users:user-flags', args=[uuid.uuid4()])
        response = admin_client.patch(url, {'is_active': False}, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_non_admin_forbidden(self, authenticated_client, other_user):
        url = reverse('users:user-flags', args=[other_user.id])
        response = authenticated_client.patch(url, {'is_active': False}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN


# =============================================================================
# User Model Tests
# =============================================================================

@pytest.mark.django_db
class TestUserModel:
    """Tests for User model methods."""

    def test_create_user(self, db):
        """Create user with create_user method."""
        user = User.objects.create_user(
            email='model@example.com',
            password='TestPass123!',
        )

        assert user.email == 'model@example.com'
        assert user.check_password('TestPass123!')
        assert user.is_active is True
        assert user.is_admin is False
        assert user.balance == 0

    def test_create_superuser(self, db):
        """Superusers are ledger administrators."""
        user = User.objects.create_superuser(
            email='super@example.com',
            password='AdminPass123!',
        )

        assert user.is_staff is True
        assert user.is_superuser is True
        assert user.is_admin is True

    def test_get_display_name(self, user):
        """get_display_name returns name or email prefix."""
        assert user.get_display_name() == 'Test User'

        user.name = ''
        user.save()
        assert user.get_display_name() == 'testuser'

    def test_user_str(self, user):
        """User string representation is email."""
        assert str(user) == user.email
