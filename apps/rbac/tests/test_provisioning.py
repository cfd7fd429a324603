"""
Tests for venue provisioning and the venue creation signal.
"""
import pytest
from apps.rbac.catalog import CANONICAL_PERMISSIONS, PermissionCatalogService
from apps.rbac.exceptions import CatalogConfigurationError
from apps.rbac.models import AuditLog, Permission, Role, RolePermission, User
from apps.rbac.provisioning import ProvisioningService
from apps.rbac.roles import ALL, DEFAULT_ROLES
from apps.rbac.services import RBACService
from apps.venues.models import Venue
from apps.venues.services import VenueService


@pytest.mark.django_db
class TestProvisionVenue:
    """Test default role provisioning."""

    def test_new_venue_gets_system_roles(self, venue):
        roles = {role.name: role for role in Role.objects.filter(venue=venue)}

        assert set(roles) == {'Owner', 'Manager', 'Staff', 'Viewer'}
        assert {name: role.level for name, role in roles.items()} == {
            'Owner': 100, 'Manager': 75, 'Staff': 50, 'Viewer': 10,
        }
        assert all(role.is_system for role in roles.values())

    def test_owner_role_holds_entire_catalog(self, venue):
        owner_role = Role.objects.get(venue=venue, name='Owner')

        assert owner_role.get_permission_ids() == frozenset(
            Permission.objects.values_list('id', flat=True)
        )
        assert Permission.objects.count() == len(CANONICAL_PERMISSIONS)

    def test_template_roles_hold_listed_permissions(self, venue):
        for name, template in DEFAULT_ROLES.items():
            if template['permissions'] == ALL:
                continue
            role = Role.objects.get(venue=venue, name=name)
            assert {p.name for p in role.get_permissions()} == set(template['permissions'])

    def test_reprovisioning_is_idempotent(self, venue):
        before = RolePermission.objects.filter(role__venue=venue).count()

        result = ProvisioningService.provision_venue(venue)

        assert result.created_roles == []
        assert Role.objects.filter(venue=venue).count() == 4
        assert RolePermission.objects.filter(role__venue=venue).count() == before

    def test_reprovisioning_picks_up_new_permissions(self, venue):
        PermissionCatalogService.seed_catalog(CANONICAL_PERMISSIONS + [{
            'name': 'settings.manage',
            'display_name': 'Full Settings Management',
            'module': 'settings',
            'action': 'manage',
            'scope': 'all',
        }])
        owner_role = Role.objects.get(venue=venue, name='Owner')
        new_permission = Permission.objects.get(name='settings.manage')
        assert new_permission.id not in owner_role.get_permission_ids()

        ProvisioningService.provision_venue(venue)

        assert new_permission.id in owner_role.get_permission_ids()
        manager_role = Role.objects.get(venue=venue, name='Manager')
        assert new_permission.id not in manager_role.get_permission_ids()

    def test_reprovisioning_restores_drifted_system_role(self, venue):
        staff_role = Role.objects.get(venue=venue, name='Staff')
        Role.objects.filter(id=staff_role.id).update(level=5, is_active=False)
        RolePermission.objects.filter(role=staff_role).delete()

        ProvisioningService.provision_venue(venue)

        staff_role.refresh_from_db()
        assert staff_role.level == 50
        assert staff_role.is_active is True
        assert {p.name for p in staff_role.get_permissions()} == set(DEFAULT_ROLES['Staff']['permissions'])

    def test_creator_is_bound_as_owner(self, venue, make_user):
        creator = make_user(venue)

        result = ProvisioningService.provision_venue(venue, creator=creator)

        creator.refresh_from_db()
        venue.refresh_from_db()
        assert creator.role == result.owner_role
        assert creator.role_type == 'owner'
        assert venue.owner == creator
        assert RBACService.authorize(creator, 'roles.manage').allowed

    def test_unknown_template_permission_fails(self, venue):
        templates = {
            'Greeter': {'level': 20, 'role_type': 'custom', 'permissions': ['doors.open']},
        }

        with pytest.raises(CatalogConfigurationError):
            ProvisioningService.provision_venue(venue, templates=templates)

        assert not Role.objects.filter(venue=venue, name='Greeter').exists()

    def test_provisioning_writes_audit_entry(self, venue):
        entry = AuditLog.objects.get(action='venue_provisioned', target_id=venue.id)

        assert sorted(entry.metadata['roles_created']) == ['Manager', 'Owner', 'Staff', 'Viewer']
        assert entry.metadata['owner_id'] is None


@pytest.mark.django_db
class TestProvisioningRollback:
    """Test that a failed provisioning leaves no venue or user behind."""

    def test_registration_rolls_back_on_template_error(self, monkeypatch):
        broken = dict(DEFAULT_ROLES)
        broken['Greeter'] = {'level': 20, 'role_type': 'custom', 'permissions': ['doors.open']}
        monkeypatch.setattr('apps.rbac.provisioning.DEFAULT_ROLES', broken)

        with pytest.raises(CatalogConfigurationError):
            VenueService.register_venue(
                email='founder@brokenhall.test',
                password='securepass123',
                venue_name='Broken Hall',
            )

        assert not Venue.objects_with_deleted.filter(name='Broken Hall').exists()
        assert not User.objects_with_deleted.filter(email='founder@brokenhall.test').exists()
        assert not Role.objects_with_deleted.filter(venue__name='Broken Hall').exists()

    def test_template_without_owner_role_fails_with_creator(self, venue, make_user):
        creator = make_user(venue)
        templates = {
            'Helper': {'level': 20, 'role_type': 'custom', 'permissions': ['events.read.all']},
        }

        with pytest.raises(CatalogConfigurationError):
            ProvisioningService.provision_venue(venue, creator=creator, templates=templates)

        creator.refresh_from_db()
        assert creator.role_id is None


@pytest.mark.django_db
class TestVenueCreationSignal:
    """Test the venue post_save receiver."""

    def test_signal_binds_created_by_user(self):
        user = User.objects.create_user(email='host@villaverde.test', password='testpass123')
        venue = Venue(name='Villa Verde')
        venue._created_by_user = user

        venue.save()

        user.refresh_from_db()
        assert user.venue == venue
        assert user.role.name == 'Owner'
        assert user.role_type == 'owner'

    def test_updating_venue_does_not_reprovision(self, venue):
        Role.objects.filter(venue=venue, name='Viewer').update(level=3)

        venue.name = 'Salon Aurora Grande'
        venue.save()

        assert Role.objects.get(venue=venue, name='Viewer').level == 3
