"""
Tests for VenueService and the Venue model.
"""
import logging

import pytest
from apps.core.exceptions import ValidationError
from apps.rbac.models import AuditLog, User
from apps.venues.models import Venue
from apps.venues.services import VenueService


@pytest.mark.django_db
class TestRegisterVenue:
    """Test venue registration."""

    def test_register_venue(self):
        result = VenueService.register_venue(
            email='ana@casaluna.test',
            password='Fiesta-Event-2026!',
            venue_name='Casa Luna',
            first_name='Ana',
            phone='+34600111222',
        )

        venue = result['venue']
        user = result['user']
        assert venue.slug == 'casa-luna'
        assert venue.owner == user
        assert venue.contact_email == 'ana@casaluna.test'
        assert user.role_type == 'owner'
        assert user.check_password('Fiesta-Event-2026!')
        assert result['token']
        assert AuditLog.objects.filter(action='venue_registered', venue=venue, user=user).exists()

    def test_register_venue_with_info_logging(self, caplog):
        with caplog.at_level(logging.INFO, logger='apps'):
            result = VenueService.register_venue(
                email='ana@casaluna.test',
                password='Fiesta-Event-2026!',
                venue_name='Casa Luna',
            )

        assert result['user'].role_type == 'owner'
        assert any(r.name == 'apps.rbac.catalog' for r in caplog.records)

    def test_duplicate_email_is_rejected(self, owner):
        with pytest.raises(ValidationError):
            VenueService.register_venue(
                email='OWNER@SalonAurora.test',
                password='Fiesta-Event-2026!',
                venue_name='Second Salon',
            )

        assert not Venue.objects.filter(name='Second Salon').exists()

    def test_same_venue_name_gets_unique_slug(self):
        first = VenueService.register_venue(
            email='a@casaluna.test', password='Fiesta-Event-2026!', venue_name='Casa Luna'
        )
        second = VenueService.register_venue(
            email='b@casaluna.test', password='Fiesta-Event-2026!', venue_name='Casa Luna'
        )

        assert first['venue'].slug == 'casa-luna'
        assert second['venue'].slug == 'casa-luna-2'

    def test_users_are_isolated_per_venue(self):
        first = VenueService.register_venue(
            email='a@casaluna.test', password='Fiesta-Event-2026!', venue_name='Casa Luna'
        )
        VenueService.register_venue(
            email='b@quintadelsol.test', password='Fiesta-Event-2026!', venue_name='Quinta del Sol'
        )

        assert list(User.objects.for_venue(first['venue'])) == [first['user']]


@pytest.mark.django_db
class TestUpdateVenue:
    """Test venue profile updates."""

    def test_update_records_diff(self, venue, owner):
        VenueService.update_venue(venue, updated_by=owner, name='Salon Aurora Grande', contact_phone='')

        venue.refresh_from_db()
        assert venue.name == 'Salon Aurora Grande'
        entry = AuditLog.objects.get(action='venue_updated', target_id=venue.id)
        assert entry.diff == {'name': {'old': 'Salon Aurora', 'new': 'Salon Aurora Grande'}}

    def test_noop_update_writes_nothing(self, venue):
        VenueService.update_venue(venue, name='Salon Aurora')

        assert not AuditLog.objects.filter(action='venue_updated').exists()

    def test_slug_is_stable_on_rename(self, venue):
        VenueService.update_venue(venue, name='Aurora Events')

        venue.refresh_from_db()
        assert venue.slug == 'salon-aurora'

    def test_unknown_fields_are_ignored(self, venue):
        VenueService.update_venue(venue, slug='hijacked', is_active=False)

        venue.refresh_from_db()
        assert venue.slug == 'salon-aurora'
        assert venue.is_active is True
