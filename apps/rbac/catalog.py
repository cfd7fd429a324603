"""
Permission catalog: canonical definitions, seeding and the in-memory index.

Implements:
- CANONICAL_PERMISSIONS: the permission definitions every venue shares
- PermissionCatalog: immutable name -> CatalogEntry index of active permissions
- PermissionCatalogService: validated, idempotent seeding and catalog listings
"""
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from django.db import transaction

from apps.rbac.exceptions import CatalogConfigurationError
from apps.rbac.models import Permission

logger = logging.getLogger(__name__)


def _perm(name, display_name, description=''):
    """Build a definition dict, deriving module/action/scope from the dotted name."""
    parts = name.split('.')
    return {
        'name': name,
        'display_name': display_name,
        'description': description,
        'module': parts[0],
        'action': parts[1],
        'scope': parts[2] if len(parts) > 2 else Permission.SCOPE_ALL,
    }


CANONICAL_PERMISSIONS = [
    # Events
    _perm('events.create', 'Create Events', 'Create new events and bookings'),
    _perm('events.read.all', 'View All Events', 'View every event in the venue'),
    _perm('events.read.own', 'View Own Events', 'View events the user created'),
    _perm('events.update.all', 'Edit All Events', 'Edit any event in the venue'),
    _perm('events.update.own', 'Edit Own Events', 'Edit events the user created'),
    _perm('events.delete.all', 'Delete Events', 'Delete any event in the venue'),
    _perm('events.export', 'Export Events', 'Export event data'),

    # Clients
    _perm('clients.create', 'Create Clients', 'Add new clients'),
    _perm('clients.read.all', 'View All Clients', 'View every client of the venue'),
    _perm('clients.update.all', 'Edit Clients', 'Edit client records'),
    _perm('clients.delete.all', 'Delete Clients', 'Delete client records'),

    # Partners
    _perm('partners.create', 'Create Partners', 'Add suppliers and partners'),
    _perm('partners.read.all', 'View All Partners', 'View every partner of the venue'),
    _perm('partners.update.all', 'Edit Partners', 'Edit partner records'),
    _perm('partners.delete.all', 'Delete Partners', 'Delete partner records'),

    # Finance
    _perm('finance.create', 'Create Finance Records', 'Record income and expenses'),
    _perm('finance.read.all', 'View All Finance Records', 'View all financial records'),
    _perm('finance.update.all', 'Edit Finance Records', 'Edit financial records'),
    _perm('finance.delete.all', 'Delete Finance Records', 'Delete financial records'),
    _perm('finance.export', 'Export Financial Data', 'Export financial data'),

    # Payments
    _perm('payments.create', 'Process Payments', 'Record client payments'),
    _perm('payments.read.all', 'View All Payments', 'View every payment'),
    _perm('payments.update.all', 'Edit Payments', 'Edit payment records'),
    _perm('payments.delete.all', 'Delete Payments', 'Delete payment records'),

    # Tasks
    _perm('tasks.create', 'Create Tasks', 'Create tasks and assign them'),
    _perm('tasks.read.all', 'View All Tasks', 'View every task in the venue'),
    _perm('tasks.read.own', 'View Assigned Tasks', 'View tasks assigned to the user'),
    _perm('tasks.update.all', 'Edit All Tasks', 'Edit any task in the venue'),
    _perm('tasks.update.own', 'Edit Assigned Tasks', 'Edit tasks assigned to the user'),
    _perm('tasks.delete.all', 'Delete Tasks', 'Delete any task in the venue'),

    # Reminders
    _perm('reminders.create', 'Create Reminders', 'Create reminders'),
    _perm('reminders.read.all', 'View All Reminders', 'View every reminder'),
    _perm('reminders.update.all', 'Edit Reminders', 'Edit reminders'),
    _perm('reminders.delete.all', 'Delete Reminders', 'Delete reminders'),

    # Users & Team
    _perm('users.create', 'Invite Team Members', 'Invite new team members'),
    _perm('users.read.all', 'View All Team Members', 'View the venue team and their permissions'),
    _perm('users.update.all', 'Edit Team Members', 'Change roles and permission overrides'),
    _perm('users.delete.all', 'Remove Team Members', 'Remove team members from the venue'),

    # Roles
    _perm('roles.create', 'Create Custom Roles', 'Create custom roles'),
    _perm('roles.read.all', 'View Roles', 'View roles and the permission catalog'),
    _perm('roles.update.all', 'Edit Roles', 'Edit custom roles'),
    _perm('roles.delete.all', 'Delete Custom Roles', 'Delete custom roles'),
    _perm('roles.manage', 'Full Role Management', 'Full control over roles'),

    # Venue
    _perm('venue.read', 'View Venue Settings', 'View venue profile and settings'),
    _perm('venue.update', 'Edit Venue Settings', 'Edit venue profile and settings'),
    _perm('venue.manage', 'Full Venue Management', 'Full control over the venue'),

    # Reports
    _perm('reports.read.all', 'View All Reports', 'View all reports'),
    _perm('reports.export', 'Export Reports', 'Export reports'),

    # Settings
    _perm('settings.read', 'View Settings', 'View application settings'),
    _perm('settings.update', 'Edit Settings', 'Edit application settings'),
]


@dataclass(frozen=True)
class CatalogEntry:
    """Snapshot of one active catalog permission."""
    id: UUID
    name: str
    module: str
    action: str
    scope: str
    display_name: str = ''

    @property
    def triple(self):
        return (self.module, self.action, self.scope)


class PermissionCatalog:
    """
    Immutable index of active permissions keyed by name.

    One snapshot is built per process on first use and replaced only when
    the catalog is reseeded or a Permission row changes (see signals).
    Inactive permissions are absent, so they behave exactly like unknown
    names during authorization.
    """

    _current = None
    _lock = threading.Lock()

    def __init__(self, entries: Iterable[CatalogEntry]):
        entries = list(entries)
        self._by_name = MappingProxyType({entry.name: entry for entry in entries})
        self._by_id = MappingProxyType({entry.id: entry for entry in entries})

    @classmethod
    def from_database(cls) -> 'PermissionCatalog':
        rows = Permission.objects.active().values_list(
            'id', 'name', 'module', 'action', 'scope', 'display_name'
        )
        return cls(CatalogEntry(*row) for row in rows)

    @classmethod
    def current(cls) -> 'PermissionCatalog':
        """Return the process-wide snapshot, building it on first use."""
        catalog = cls._current
        if catalog is None:
            with cls._lock:
                catalog = cls._current
                if catalog is None:
                    catalog = cls.from_database()
                    cls._current = catalog
        return catalog

    @classmethod
    def reload(cls) -> 'PermissionCatalog':
        """Rebuild the snapshot from the database."""
        catalog = cls.from_database()
        with cls._lock:
            cls._current = catalog
        logger.debug("Permission catalog index reloaded", extra={'permission_count': len(catalog)})
        return catalog

    @classmethod
    def invalidate(cls):
        """Drop the snapshot; the next lookup rebuilds it."""
        with cls._lock:
            cls._current = None

    def lookup(self, name: str) -> Optional[CatalogEntry]:
        return self._by_name.get(name)

    def get_by_id(self, permission_id) -> Optional[CatalogEntry]:
        return self._by_id.get(permission_id)

    def ids(self) -> frozenset:
        return frozenset(self._by_id)

    def names(self) -> frozenset:
        return frozenset(self._by_name)

    def __contains__(self, name):
        return name in self._by_name

    def __iter__(self):
        return iter(self._by_name.values())

    def __len__(self):
        return len(self._by_name)


class PermissionCatalogService:
    """
    Service for catalog operations: seeding and listing permissions.
    """

    @classmethod
    def _normalize(cls, definitions) -> List[Dict]:
        """
        Validate definitions and collapse identical duplicates.

        Raises:
            CatalogConfigurationError: on malformed definitions, a name bound
                to two triples, or a triple claimed by two names
        """
        modules = {choice for choice, _ in Permission.MODULE_CHOICES}
        actions = {choice for choice, _ in Permission.ACTION_CHOICES}
        scopes = {choice for choice, _ in Permission.SCOPE_CHOICES}

        by_name = OrderedDict()
        by_triple = {}

        for raw in definitions:
            name = (raw.get('name') or '').strip()
            if not name:
                raise CatalogConfigurationError(f"Permission definition without a name: {raw!r}")

            definition = {
                'name': name,
                'display_name': raw.get('display_name') or name,
                'description': raw.get('description') or '',
                'module': raw.get('module'),
                'action': raw.get('action'),
                'scope': raw.get('scope') or Permission.SCOPE_ALL,
            }

            if definition['module'] not in modules:
                raise CatalogConfigurationError(f"{name}: unknown module '{definition['module']}'")
            if definition['action'] not in actions:
                raise CatalogConfigurationError(f"{name}: unknown action '{definition['action']}'")
            if definition['scope'] not in scopes:
                raise CatalogConfigurationError(f"{name}: unknown scope '{definition['scope']}'")

            triple = (definition['module'], definition['action'], definition['scope'])

            existing = by_name.get(name)
            if existing is not None:
                existing_triple = (existing['module'], existing['action'], existing['scope'])
                if existing_triple != triple:
                    raise CatalogConfigurationError(
                        f"Permission '{name}' is defined twice with different "
                        f"module/action/scope: {existing_triple} vs {triple}"
                    )
                continue

            owner = by_triple.get(triple)
            if owner is not None:
                raise CatalogConfigurationError(
                    f"Permissions '{owner}' and '{name}' share module/action/scope {triple}"
                )

            by_name[name] = definition
            by_triple[triple] = name

        return list(by_name.values())

    @classmethod
    def _check_against_database(cls, definitions: List[Dict]):
        """Reject definitions that contradict rows already in the catalog."""
        rows = {
            permission.name: permission
            for permission in Permission.objects_with_deleted.all()
        }
        triples = {
            (p.module, p.action, p.scope): name for name, p in rows.items()
        }

        for definition in definitions:
            name = definition['name']
            triple = (definition['module'], definition['action'], definition['scope'])

            row = rows.get(name)
            if row is not None and (row.module, row.action, row.scope) != triple:
                raise CatalogConfigurationError(
                    f"Permission '{name}' already exists with module/action/scope "
                    f"{(row.module, row.action, row.scope)}, cannot redefine as {triple}"
                )

            owner = triples.get(triple)
            if owner is not None and owner != name:
                raise CatalogConfigurationError(
                    f"Module/action/scope {triple} already belongs to permission '{owner}'"
                )

    @classmethod
    def seed_catalog(cls, definitions=None) -> List[Permission]:
        """
        Upsert permission definitions keyed by name (idempotent).

        All definitions are validated before anything is written; display
        fields of existing rows are refreshed, names never change. The
        in-memory index is reloaded afterwards.

        Args:
            definitions: Iterable of definition dicts (defaults to CANONICAL_PERMISSIONS)

        Returns:
            Permission rows for the definitions, in definition order

        Raises:
            CatalogConfigurationError: if the definitions are inconsistent
                with each other or with the stored catalog
        """
        if definitions is None:
            definitions = CANONICAL_PERMISSIONS

        normalized = cls._normalize(definitions)

        created_count = 0
        permissions = []

        with transaction.atomic():
            cls._check_against_database(normalized)

            for definition in normalized:
                permission, created = Permission.objects_with_deleted.update_or_create(
                    name=definition['name'],
                    defaults={
                        'display_name': definition['display_name'],
                        'description': definition['description'],
                        'module': definition['module'],
                        'action': definition['action'],
                        'scope': definition['scope'],
                        'deleted_at': None,
                    }
                )
                if created:
                    created_count += 1
                permissions.append(permission)

        PermissionCatalog.reload()
        transaction.on_commit(PermissionCatalog.invalidate)

        logger.info(
            f"Permission catalog seeded: {created_count} created, "
            f"{len(permissions) - created_count} refreshed",
            extra={'created_count': created_count, 'permission_total': len(permissions)}
        )

        return permissions

    @classmethod
    def list_active(cls):
        """Active permissions ordered by module then name."""
        return Permission.objects.active().order_by('module', 'name')

    @classmethod
    def grouped_by_module(cls) -> 'OrderedDict[str, List[Permission]]':
        """Active permissions grouped by module, modules in alphabetical order."""
        grouped = OrderedDict()
        for permission in cls.list_active():
            grouped.setdefault(permission.module, []).append(permission)
        return grouped
