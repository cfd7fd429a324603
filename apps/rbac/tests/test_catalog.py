"""
Tests for the permission catalog: seeding, validation and the in-memory index.
"""
import logging

import pytest
from apps.rbac.catalog import (
    CANONICAL_PERMISSIONS, PermissionCatalog, PermissionCatalogService,
)
from apps.rbac.exceptions import CatalogConfigurationError
from apps.rbac.models import Permission


def definition(name, module, action, scope='all', display_name=None):
    return {
        'name': name,
        'display_name': display_name or name,
        'module': module,
        'action': action,
        'scope': scope,
    }


@pytest.mark.django_db
class TestSeedCatalog:
    """Test idempotent seeding keyed by name."""

    def test_seed_creates_every_canonical_permission(self):
        permissions = PermissionCatalogService.seed_catalog()

        assert len(permissions) == len(CANONICAL_PERMISSIONS)
        assert Permission.objects.count() == len(CANONICAL_PERMISSIONS)

    def test_seed_logs_counts_at_info_level(self, caplog):
        with caplog.at_level(logging.INFO, logger='apps'):
            PermissionCatalogService.seed_catalog()

        record = next(r for r in caplog.records if r.name == 'apps.rbac.catalog')
        assert record.created_count == len(CANONICAL_PERMISSIONS)
        assert record.permission_total == len(CANONICAL_PERMISSIONS)

    def test_seeding_twice_yields_one_permission_per_name(self):
        PermissionCatalogService.seed_catalog()
        PermissionCatalogService.seed_catalog()

        assert Permission.objects.count() == len(CANONICAL_PERMISSIONS)
        assert Permission.objects.filter(name='events.read.all').count() == 1

    def test_same_definition_twice_in_one_call_collapses(self):
        events_read = definition('events.read.all', 'events', 'read')

        permissions = PermissionCatalogService.seed_catalog([events_read, dict(events_read)])

        assert len(permissions) == 1
        assert Permission.objects.filter(name='events.read.all').count() == 1

    def test_reseed_refreshes_display_fields(self):
        PermissionCatalogService.seed_catalog([
            definition('events.read.all', 'events', 'read', display_name='View Events')
        ])
        PermissionCatalogService.seed_catalog([
            definition('events.read.all', 'events', 'read', display_name='See Every Event')
        ])

        permission = Permission.objects.get(name='events.read.all')
        assert permission.display_name == 'See Every Event'

    def test_module_action_scope_derived_from_name(self):
        PermissionCatalogService.seed_catalog()

        own = Permission.objects.get(name='tasks.read.own')
        assert (own.module, own.action, own.scope) == ('tasks', 'read', 'own')

        create = Permission.objects.get(name='roles.create')
        assert (create.module, create.action, create.scope) == ('roles', 'create', 'all')

    def test_canonical_names_are_unique(self):
        names = [d['name'] for d in CANONICAL_PERMISSIONS]
        assert len(names) == len(set(names))


@pytest.mark.django_db
class TestSeedCatalogConflicts:
    """Test that inconsistent definitions fail fast without writing."""

    def test_same_name_with_different_triple_fails(self):
        with pytest.raises(CatalogConfigurationError):
            PermissionCatalogService.seed_catalog([
                definition('events.read.all', 'events', 'read', 'all'),
                definition('events.read.all', 'events', 'read', 'own'),
            ])

        assert Permission.objects.count() == 0

    def test_two_names_sharing_a_triple_fails(self):
        with pytest.raises(CatalogConfigurationError):
            PermissionCatalogService.seed_catalog([
                definition('events.read.all', 'events', 'read', 'all'),
                definition('events.view', 'events', 'read', 'all'),
            ])

        assert Permission.objects.count() == 0

    def test_conflict_with_stored_row_fails(self):
        PermissionCatalogService.seed_catalog()

        with pytest.raises(CatalogConfigurationError):
            PermissionCatalogService.seed_catalog([
                definition('events.read.all', 'events', 'read', 'own'),
            ])

        permission = Permission.objects.get(name='events.read.all')
        assert permission.scope == 'all'

    def test_triple_owned_by_stored_row_fails(self):
        PermissionCatalogService.seed_catalog()

        with pytest.raises(CatalogConfigurationError):
            PermissionCatalogService.seed_catalog([
                definition('events.view_everything', 'events', 'read', 'all'),
            ])

        assert not Permission.objects.filter(name='events.view_everything').exists()

    def test_unknown_module_fails(self):
        with pytest.raises(CatalogConfigurationError):
            PermissionCatalogService.seed_catalog([
                definition('inventory.read.all', 'inventory', 'read'),
            ])


@pytest.mark.django_db
class TestPermissionCatalogIndex:
    """Test the immutable in-memory index."""

    def test_lookup_after_seed(self):
        PermissionCatalogService.seed_catalog()

        entry = PermissionCatalog.current().lookup('events.read.all')

        assert entry is not None
        assert entry.id == Permission.objects.get(name='events.read.all').id
        assert entry.triple == ('events', 'read', 'all')

    def test_unknown_name_is_absent(self):
        PermissionCatalogService.seed_catalog()

        assert PermissionCatalog.current().lookup('events.teleport') is None
        assert 'events.teleport' not in PermissionCatalog.current()

    def test_snapshot_is_reused_until_invalidated(self):
        PermissionCatalogService.seed_catalog()

        first = PermissionCatalog.current()
        assert PermissionCatalog.current() is first

        PermissionCatalog.invalidate()
        assert PermissionCatalog.current() is not first

    def test_deactivated_permission_drops_out_of_index(self):
        PermissionCatalogService.seed_catalog()
        assert 'events.export' in PermissionCatalog.current()

        permission = Permission.objects.get(name='events.export')
        permission.is_active = False
        permission.save()

        assert 'events.export' not in PermissionCatalog.current()
        assert len(PermissionCatalog.current()) == len(CANONICAL_PERMISSIONS) - 1

    def test_index_is_read_only(self):
        PermissionCatalogService.seed_catalog()
        catalog = PermissionCatalog.current()

        with pytest.raises(TypeError):
            catalog._by_name['events.fake'] = None


@pytest.mark.django_db
class TestCatalogListings:
    """Test listing helpers used by the permissions API."""

    def test_grouped_by_module(self):
        PermissionCatalogService.seed_catalog()

        grouped = PermissionCatalogService.grouped_by_module()

        assert list(grouped) == sorted(grouped)
        assert {p.name for p in grouped['roles']} == {
            'roles.create', 'roles.read.all', 'roles.update.all',
            'roles.delete.all', 'roles.manage',
        }

    def test_list_active_excludes_inactive(self):
        PermissionCatalogService.seed_catalog()
        Permission.objects.filter(name='settings.update').update(is_active=False)

        names = {p.name for p in PermissionCatalogService.list_active()}

        assert 'settings.update' not in names
        assert 'settings.read' in names
