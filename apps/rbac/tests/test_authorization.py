"""
Tests for permission resolution and the authorization decision procedure.
"""
import logging

import pytest
from apps.rbac.catalog import CANONICAL_PERMISSIONS
from apps.rbac.models import Permission, Role, User
from apps.rbac.services import (
    CROSS_VENUE, GRANTED, NOT_GRANTED, NOT_RESOURCE_OWNER, OWNER_BYPASS,
    UNAUTHENTICATED, UNKNOWN_PERMISSION, Decision, Principal, RBACService,
    RoleService, UserPermissionService,
)


def perm_id(name):
    return Permission.objects.get(name=name).id


@pytest.mark.django_db
class TestLoadPrincipal:
    """Test the per-request authorization snapshot."""

    def test_principal_snapshot(self, venue, staff):
        principal = RBACService.load_principal(staff)
        staff_role = Role.objects.get(venue=venue, name='Staff')

        assert isinstance(principal, Principal)
        assert principal.venue_id == venue.id
        assert principal.role_id == staff_role.id
        assert principal.role_level == 50
        assert principal.role_permission_ids == staff_role.get_permission_ids()

    def test_principal_is_immutable(self, staff):
        principal = RBACService.load_principal(staff)

        with pytest.raises(Exception):
            principal.role_type = 'owner'

    def test_inactive_role_degrades_to_empty(self, venue, make_user, caplog):
        role = RoleService.create_role(venue, 'Planner', permission_refs=['events.read.all'])
        user = make_user(venue)
        UserPermissionService.set_role(user, role)
        RoleService.update_role(role, is_active=False)

        with caplog.at_level(logging.WARNING):
            principal = RBACService.load_principal(user)

        assert principal.role_id is None
        assert principal.role_level == 0
        assert principal.role_permission_ids == frozenset()
        assert 'Dangling role reference' in caplog.text

    def test_role_of_other_venue_degrades_to_empty(self, other_venue, staff):
        foreign = Role.objects.get(venue=other_venue, name='Manager')
        User.objects.filter(id=staff.id).update(role=foreign)
        staff.refresh_from_db()

        principal = RBACService.load_principal(staff)

        assert principal.role_permission_ids == frozenset()
        assert not RBACService.has_permission(principal, 'events.read.all')


@pytest.mark.django_db
class TestEffectivePermissions:
    """Test (role | granted) - revoked."""

    def test_role_permission_not_revoked_is_effective(self, staff):
        assert perm_id('events.read.all') in RBACService.resolve_effective_permissions(staff)

    def test_role_permission_revoked_is_not_effective(self, staff):
        UserPermissionService.revoke(staff, 'events.read.all')

        assert perm_id('events.read.all') not in RBACService.resolve_effective_permissions(staff)

    def test_granted_and_revoked_is_not_effective(self, staff):
        UserPermissionService.grant(staff, 'finance.read.all')
        UserPermissionService.revoke(staff, 'finance.read.all')

        assert perm_id('finance.read.all') not in RBACService.resolve_effective_permissions(staff)

    def test_grant_adds_to_role_permissions(self, staff):
        UserPermissionService.grant(staff, 'finance.read.all')

        assert perm_id('finance.read.all') in RBACService.resolve_effective_permissions(staff)

    def test_resolution_is_idempotent(self, staff):
        UserPermissionService.grant(staff, 'finance.read.all')
        UserPermissionService.revoke(staff, 'events.read.all')
        principal = RBACService.load_principal(staff)

        first = RBACService.resolve_effective_permissions(principal)
        second = RBACService.resolve_effective_permissions(principal)

        assert first == second
        assert RBACService.resolve_effective_permissions(staff) == first

    def test_revoke_applies_on_next_load(self, staff):
        assert RBACService.has_permission(staff, 'clients.read.all')

        UserPermissionService.revoke(staff, 'clients.read.all')

        assert not RBACService.has_permission(staff, 'clients.read.all')

    def test_user_without_role(self, venue, make_user):
        user = make_user(venue)

        assert RBACService.resolve_effective_permissions(user) == frozenset()
        assert not RBACService.has_permission(user, 'events.read.all')

    def test_effective_names_for_owner_cover_catalog(self, owner):
        names = RBACService.effective_permission_names(owner)

        assert names == sorted(d['name'] for d in CANONICAL_PERMISSIONS)

    def test_effective_names_for_staff(self, staff):
        UserPermissionService.revoke(staff, 'venue.read')

        names = RBACService.effective_permission_names(staff)

        assert 'tasks.read.own' in names
        assert 'venue.read' not in names
        assert names == sorted(names)


@pytest.mark.django_db
class TestAuthorize:
    """Test the decision procedure and its reasons."""

    def test_owner_bypass_precedes_unknown_permission(self, owner):
        decision = RBACService.authorize(owner, 'events.teleport')

        assert decision.allowed
        assert decision.reason == OWNER_BYPASS
        assert RBACService.has_permission(owner, 'events.teleport')

    def test_unknown_permission_for_non_owner(self, manager):
        decision = RBACService.authorize(manager, 'events.teleport')

        assert decision == Decision(False, UNKNOWN_PERMISSION, 'events.teleport')

    def test_inactive_permission_behaves_as_unknown(self, manager):
        permission = Permission.objects.get(name='events.export')
        permission.is_active = False
        permission.save()

        assert RBACService.authorize(manager, 'events.export').reason == UNKNOWN_PERMISSION

    def test_granted_and_not_granted(self, staff):
        assert RBACService.authorize(staff, 'events.create').reason == GRANTED
        assert RBACService.authorize(staff, 'finance.read.all').reason == NOT_GRANTED

    def test_anonymous_is_unauthenticated(self):
        decision = RBACService.authorize(None, 'events.read.all')

        assert not decision
        assert decision.reason == UNAUTHENTICATED

    def test_cross_venue_denied_even_for_owner(self, owner, other_venue):
        decision = RBACService.authorize(owner, 'events.read.all', venue_id=other_venue.id)

        assert not decision.allowed
        assert decision.reason == CROSS_VENUE

    def test_same_venue_passes(self, venue, manager):
        assert RBACService.authorize(manager, 'events.read.all', venue_id=venue.id).allowed

    def test_own_scope_requires_ownership_predicate(self, staff):
        assert RBACService.authorize(staff, 'tasks.update.own', is_owner=True).allowed

        decision = RBACService.authorize(staff, 'tasks.update.own', is_owner=lambda: False)
        assert decision.reason == NOT_RESOURCE_OWNER

    def test_predicate_ignored_for_all_scope(self, manager):
        assert RBACService.authorize(manager, 'tasks.update.all', is_owner=False).allowed

    def test_decision_is_falsy_when_denied(self, staff):
        assert bool(RBACService.authorize(staff, 'roles.create')) is False


@pytest.mark.django_db
class TestOwnAllScopes:
    """Test that .own and .all are distinct permissions."""

    def test_staff_with_only_own_task_read(self, staff):
        assert not RBACService.has_permission(staff, 'tasks.read.all')
        assert RBACService.has_permission(staff, 'tasks.read.own')

        UserPermissionService.revoke(staff, 'tasks.read.own')

        assert not RBACService.has_permission(staff, 'tasks.read.own')

    def test_all_does_not_imply_own(self, venue, make_user):
        role = RoleService.create_role(venue, 'Lead', permission_refs=['tasks.read.all'])
        user = make_user(venue)
        UserPermissionService.set_role(user, role)

        assert RBACService.has_permission(user, 'tasks.read.all')
        assert not RBACService.has_permission(user, 'tasks.read.own')

    def test_authorize_scoped_prefers_all(self, manager):
        decision = RBACService.authorize_scoped(manager, 'tasks', 'read', is_owner=False)

        assert decision.allowed
        assert decision.permission == 'tasks.read.all'

    def test_authorize_scoped_falls_back_to_own(self, staff):
        allowed = RBACService.authorize_scoped(staff, 'tasks', 'read', is_owner=True)
        denied = RBACService.authorize_scoped(staff, 'tasks', 'read', is_owner=False)

        assert allowed.allowed and allowed.permission == 'tasks.read.own'
        assert denied.reason == NOT_RESOURCE_OWNER

    def test_authorize_scoped_without_either(self, venue, make_user):
        user = make_user(venue)

        decision = RBACService.authorize_scoped(user, 'tasks', 'read', is_owner=True)

        assert decision.reason == NOT_GRANTED
        assert decision.permission == 'tasks.read.all'

    def test_authorize_scoped_for_module_without_own_variant(self, staff):
        decision = RBACService.authorize_scoped(staff, 'clients', 'read')

        assert decision.allowed
        assert decision.permission == 'clients.read.all'

    def test_visible_scope(self, manager, staff, viewer):
        assert RBACService.visible_scope(manager, 'tasks', 'read') == 'all'
        assert RBACService.visible_scope(staff, 'tasks', 'read') == 'own'
        assert RBACService.visible_scope(viewer, 'tasks', 'update') is None


@pytest.mark.django_db
class TestRoleLevel:
    """Test minimum role level checks."""

    def test_levels(self, owner, manager, staff, viewer):
        assert RBACService.has_role_level(owner, 100)
        assert RBACService.has_role_level(manager, 75)
        assert not RBACService.has_role_level(staff, 75)
        assert not RBACService.has_role_level(viewer, 50)

    def test_user_without_role_has_no_level(self, venue, make_user):
        assert not RBACService.has_role_level(make_user(venue), 0)
