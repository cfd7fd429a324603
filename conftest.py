"""
Pytest configuration and fixtures.
"""
import pytest
from django.conf import settings


def pytest_configure(config):
    """Configure Django settings for tests."""
    settings.DATABASES['default'] = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
    settings.SECURE_SSL_REDIRECT = False
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']


@pytest.fixture(autouse=True)
def fresh_permission_catalog():
    """Each test starts and ends without a cached catalog index."""
    from apps.rbac.catalog import PermissionCatalog
    PermissionCatalog.invalidate()
    yield
    PermissionCatalog.invalidate()


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def venue(db):
    """Create a venue; saving it provisions the default roles."""
    from apps.venues.models import Venue
    return Venue.objects.create(name='Salon Aurora')


@pytest.fixture
def other_venue(db):
    """Create another venue for isolation tests."""
    from apps.venues.models import Venue
    return Venue.objects.create(name='Quinta del Sol')


@pytest.fixture
def make_user(db):
    """
    Factory creating a user in `venue` bound to the named role.

    Usage:
        user = make_user(venue, 'Staff')
    """
    from apps.rbac.models import Role, User
    from apps.rbac.services import UserPermissionService

    counter = {'n': 0}

    def _make_user(venue, role_name=None, email=None, password='testpass123'):
        counter['n'] += 1
        email = email or f"member{counter['n']}@{venue.slug}.test"
        user = User.objects.create_user(email=email, password=password, venue=venue)
        if role_name:
            role = Role.objects.get(venue=venue, name=role_name)
            UserPermissionService.bind_role(user, role)
        return user

    return _make_user


@pytest.fixture
def owner(venue, make_user):
    return make_user(venue, 'Owner', email='owner@salonaurora.test')


@pytest.fixture
def manager(venue, make_user):
    return make_user(venue, 'Manager', email='manager@salonaurora.test')


@pytest.fixture
def staff(venue, make_user):
    return make_user(venue, 'Staff', email='staff@salonaurora.test')


@pytest.fixture
def viewer(venue, make_user):
    return make_user(venue, 'Viewer', email='viewer@salonaurora.test')


@pytest.fixture
def other_owner(other_venue, make_user):
    return make_user(other_venue, 'Owner', email='owner@quintadelsol.test')


@pytest.fixture
def client_for(db):
    """
    Factory returning an APIClient authenticated with a JWT for `user`.

    Usage:
        client = client_for(manager)
    """
    from rest_framework.test import APIClient
    from apps.rbac.services import AuthService

    def _client_for(user):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {AuthService.generate_jwt(user)}')
        return client

    return _client_for
