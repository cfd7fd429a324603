"""
API tests for GET/PUT /v1/venues/me.
"""
import pytest
from apps.rbac.models import User
from apps.rbac.services import RoleService, UserPermissionService


@pytest.mark.django_db
class TestVenueMeAPI:
    """Test the current-venue endpoint."""

    def test_requires_authentication(self, api_client, venue):
        response = api_client.get('/v1/venues/me')

        assert response.status_code == 401

    def test_any_member_reads_own_venue(self, client_for, viewer, venue):
        response = client_for(viewer).get('/v1/venues/me')

        assert response.status_code == 200
        assert response.data['id'] == str(venue.id)
        assert response.data['slug'] == 'salon-aurora'

    def test_reading_venue_requires_venue_read(self, client_for, venue, make_user):
        role = RoleService.create_role(venue, 'Event Watcher', permission_refs=['events.read.all'])
        watcher = make_user(venue)
        UserPermissionService.set_role(watcher, role)

        response = client_for(watcher).get('/v1/venues/me')

        assert response.status_code == 403
        assert 'venue.read' in str(response.data)

    def test_user_without_venue_is_denied(self, client_for, db):
        admin = User.objects.create_superuser(email='admin@fiesta.test', password='adminpass123')

        response = client_for(admin).get('/v1/venues/me')

        assert response.status_code == 403

    def test_owner_updates_venue(self, client_for, owner, venue):
        response = client_for(owner).put('/v1/venues/me', {
            'name': 'Salon Aurora Grande',
            'contact_email': 'events@salonaurora.test',
        }, format='json')

        assert response.status_code == 200
        assert response.data['name'] == 'Salon Aurora Grande'
        venue.refresh_from_db()
        assert venue.contact_email == 'events@salonaurora.test'

    def test_manager_cannot_update_venue(self, client_for, manager, venue):
        response = client_for(manager).put('/v1/venues/me', {'name': 'Renamed'}, format='json')

        assert response.status_code == 403
        venue.refresh_from_db()
        assert venue.name == 'Salon Aurora'

    def test_granted_manager_can_update_venue(self, client_for, manager):
        UserPermissionService.grant(manager, 'venue.update')

        response = client_for(manager).put('/v1/venues/me', {'description': 'Weddings and galas'}, format='json')

        assert response.status_code == 200
        assert response.data['description'] == 'Weddings and galas'

    def test_unknown_time_zone_is_rejected(self, client_for, owner):
        response = client_for(owner).put('/v1/venues/me', {'time_zone': 'Mars/Olympus_Mons'}, format='json')

        assert response.status_code == 400
        assert 'time_zone' in response.data
