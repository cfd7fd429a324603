"""
Tests for the user permission overlay: role binding, owner protection,
overrides and team membership.
"""
import pytest
from apps.rbac.exceptions import (
    CrossVenueAssignment, InvalidPermission, MemberRemovalForbidden, OwnerProtected,
    RoleInactive,
)
from apps.rbac.models import AuditLog, Role, UserPermission
from apps.rbac.services import RBACService, RoleService, UserPermissionService


@pytest.mark.django_db
class TestSetRole:
    """Test role binding and role_type derivation."""

    @pytest.mark.parametrize('role_name,role_type', [
        ('Owner', 'owner'),
        ('Manager', 'manager'),
        ('Staff', 'staff'),
        ('Viewer', 'viewer'),
    ])
    def test_system_roles_map_to_role_type(self, venue, make_user, role_name, role_type):
        user = make_user(venue)

        UserPermissionService.set_role(user, Role.objects.get(venue=venue, name=role_name))

        user.refresh_from_db()
        assert user.role_type == role_type

    def test_custom_role_maps_to_custom(self, venue, make_user):
        user = make_user(venue)
        role = RoleService.create_role(venue, 'Bartender')

        UserPermissionService.set_role(user, role)

        assert user.role_type == 'custom'
        assert user.role == role

    def test_role_from_other_venue_is_rejected(self, venue, other_venue, make_user):
        user = make_user(venue, 'Staff')
        foreign = Role.objects.get(venue=other_venue, name='Manager')

        with pytest.raises(CrossVenueAssignment):
            UserPermissionService.set_role(user, foreign)

        user.refresh_from_db()
        assert user.role.venue == venue

    def test_inactive_role_is_rejected(self, venue, staff):
        role = RoleService.create_role(venue, 'Dormant', permission_refs=['events.read.all'])
        RoleService.update_role(role, is_active=False)

        with pytest.raises(RoleInactive):
            UserPermissionService.set_role(staff, role)

        staff.refresh_from_db()
        assert staff.role.name == 'Staff'

    def test_set_role_writes_audit_entry(self, venue, owner, staff):
        UserPermissionService.set_role(
            staff, Role.objects.get(venue=venue, name='Manager'), assigned_by=owner
        )

        entry = AuditLog.objects.get(action='role_assigned', target_id=staff.id, user=owner)
        assert entry.diff['old']['role_type'] == 'staff'
        assert entry.diff['new']['role_type'] == 'manager'


@pytest.mark.django_db
class TestOwnerProtection:
    """Test that owner bindings only change in owners' hands."""

    def test_owner_cannot_change_own_owner_binding(self, venue, owner):
        with pytest.raises(OwnerProtected) as exc_info:
            UserPermissionService.set_role(
                owner, Role.objects.get(venue=venue, name='Viewer'), assigned_by=owner
            )

        assert exc_info.value.message == 'Cannot modify your own owner role'
        owner.refresh_from_db()
        assert owner.role_type == 'owner'

    def test_non_owner_cannot_modify_owner(self, venue, owner, manager):
        with pytest.raises(OwnerProtected) as exc_info:
            UserPermissionService.set_role(
                owner, Role.objects.get(venue=venue, name='Staff'), assigned_by=manager
            )

        assert exc_info.value.message == 'Only owners can modify other owners'

    def test_non_owner_cannot_hand_out_owner_role(self, venue, manager, staff):
        with pytest.raises(OwnerProtected) as exc_info:
            UserPermissionService.set_role(
                staff, Role.objects.get(venue=venue, name='Owner'), assigned_by=manager
            )

        assert exc_info.value.message == 'Only owners can assign an owner role'
        staff.refresh_from_db()
        assert staff.role_type == 'staff'

    def test_owner_can_promote_to_owner(self, venue, owner, staff):
        UserPermissionService.set_role(
            staff, Role.objects.get(venue=venue, name='Owner'), assigned_by=owner
        )

        assert staff.role_type == 'owner'

    def test_owner_can_rebind_other_owner(self, venue, owner, make_user):
        co_owner = make_user(venue, 'Owner')

        UserPermissionService.set_role(
            co_owner, Role.objects.get(venue=venue, name='Manager'), assigned_by=owner
        )

        assert co_owner.role_type == 'manager'

    def test_non_owner_cannot_override_owner_permissions(self, manager, owner):
        with pytest.raises(OwnerProtected):
            UserPermissionService.revoke(owner, 'events.read.all', revoked_by=manager)

        assert not UserPermission.objects.filter(user=owner).exists()


@pytest.mark.django_db
class TestOverrides:
    """Test grant and revoke sets."""

    def test_grant_is_idempotent(self, staff):
        first = UserPermissionService.grant(staff, 'finance.read.all', reason='Month end')
        second = UserPermissionService.grant(staff, 'finance.read.all')

        assert first.id == second.id
        assert UserPermission.objects.grants(staff).count() == 1
        assert AuditLog.objects.filter(action='permission_granted', target_id=staff.id).count() == 1

    def test_grant_does_not_remove_revoke(self, staff):
        UserPermissionService.revoke(staff, 'events.read.all')
        UserPermissionService.grant(staff, 'events.read.all')

        effects = set(
            UserPermission.objects.for_user(staff).values_list('effect', flat=True)
        )
        assert effects == {'grant', 'revoke'}
        assert not RBACService.has_permission(staff, 'events.read.all')

    def test_unknown_permission_is_rejected(self, staff):
        with pytest.raises(InvalidPermission):
            UserPermissionService.grant(staff, 'events.teleport')

    def test_remove_override(self, staff):
        UserPermissionService.revoke(staff, 'events.read.all', reason='Suspended')
        assert not RBACService.has_permission(staff, 'events.read.all')

        removed = UserPermissionService.remove_override(staff, 'events.read.all', 'revoke')

        assert removed is True
        assert RBACService.has_permission(staff, 'events.read.all')
        assert UserPermissionService.remove_override(staff, 'events.read.all', 'revoke') is False

    def test_set_overrides_replaces_both_sets(self, staff):
        UserPermissionService.grant(staff, 'finance.read.all')
        UserPermissionService.revoke(staff, 'events.read.all')

        UserPermissionService.set_overrides(
            staff, granted=['reports.read.all'], revoked=['clients.read.all']
        )

        assert set(UserPermission.objects.grants(staff).values_list('permission__name', flat=True)) == {'reports.read.all'}
        assert set(UserPermission.objects.revokes(staff).values_list('permission__name', flat=True)) == {'clients.read.all'}

    def test_set_overrides_validates_before_writing(self, staff):
        UserPermissionService.grant(staff, 'finance.read.all')

        with pytest.raises(InvalidPermission) as exc_info:
            UserPermissionService.set_overrides(
                staff, granted=['reports.read.all', 'bogus.one'], revoked=['bogus.two']
            )

        assert exc_info.value.missing == ['bogus.one', 'bogus.two']
        assert set(UserPermission.objects.for_user(staff).values_list('permission__name', flat=True)) == {'finance.read.all'}


@pytest.mark.django_db
class TestUpdateMember:
    """Test the combined team-member update."""

    def test_role_and_overrides_in_one_call(self, venue, manager, staff):
        UserPermissionService.update_member(
            staff,
            actor=manager,
            role=Role.objects.get(venue=venue, name='Viewer'),
            granted=['tasks.create'],
            revoked=[],
        )

        staff.refresh_from_db()
        assert staff.role_type == 'viewer'
        assert RBACService.has_permission(staff, 'tasks.create')

    def test_deactivate_member(self, manager, staff):
        UserPermissionService.update_member(staff, actor=manager, is_active=False)

        staff.refresh_from_db()
        assert staff.is_active is False
        assert AuditLog.objects.filter(action='user_deactivated', target_id=staff.id).exists()

    def test_invalid_override_leaves_role_unchanged(self, venue, manager, staff):
        with pytest.raises(InvalidPermission):
            UserPermissionService.update_member(
                staff,
                actor=manager,
                role=Role.objects.get(venue=venue, name='Viewer'),
                granted=['bogus.permission'],
            )

        staff.refresh_from_db()
        assert staff.role_type == 'staff'

    def test_inactive_role_rolls_back_member_update(self, venue, owner, staff):
        role = RoleService.create_role(venue, 'Dormant')
        RoleService.update_role(role, is_active=False)

        with pytest.raises(RoleInactive):
            UserPermissionService.update_member(staff, actor=owner, role=role, is_active=False)

        staff.refresh_from_db()
        assert staff.role.name == 'Staff'
        assert staff.is_active is True


@pytest.mark.django_db
class TestTeamMembership:
    """Test member listing, removal and team statistics."""

    def test_list_members_filters(self, venue, owner, staff, viewer, other_owner):
        staff_role = Role.objects.get(venue=venue, name='Staff')

        assert set(UserPermissionService.list_members(venue)) == {owner, staff, viewer}
        assert list(UserPermissionService.list_members(venue, role_id=staff_role.id)) == [staff]
        assert list(UserPermissionService.list_members(venue, search='viewer@')) == [viewer]

    def test_remove_member_deactivates(self, owner, staff):
        UserPermissionService.remove_member(staff, removed_by=owner)

        staff.refresh_from_db()
        assert staff.is_active is False
        assert staff.role.name == 'Staff'
        assert AuditLog.objects.filter(action='user_removed', target_id=staff.id, user=owner).exists()

    def test_removing_inactive_member_is_a_no_op(self, owner, staff):
        UserPermissionService.remove_member(staff, removed_by=owner)
        UserPermissionService.remove_member(staff, removed_by=owner)

        assert AuditLog.objects.filter(action='user_removed', target_id=staff.id).count() == 1

    def test_owner_cannot_be_removed(self, owner, make_user, venue):
        second_owner = make_user(venue, 'Owner')

        with pytest.raises(MemberRemovalForbidden):
            UserPermissionService.remove_member(owner, removed_by=second_owner)

        owner.refresh_from_db()
        assert owner.is_active is True

    def test_cannot_remove_self(self, manager):
        with pytest.raises(MemberRemovalForbidden):
            UserPermissionService.remove_member(manager, removed_by=manager)

    def test_team_stats(self, venue, owner, manager, staff, other_owner):
        UserPermissionService.remove_member(staff, removed_by=owner)

        stats = UserPermissionService.team_stats(venue)

        assert stats['total_members'] == 3
        assert stats['active_members'] == 2
        assert stats['inactive_members'] == 1
        assert {'role_type': 'staff', 'count': 1} in stats['role_distribution']
