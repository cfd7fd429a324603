"""
Venue provisioning: seed the catalog and the default system roles for a venue.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from django.db import transaction

from apps.rbac.catalog import PermissionCatalog, PermissionCatalogService
from apps.rbac.exceptions import CatalogConfigurationError
from apps.rbac.models import AuditLog, Role
from apps.rbac.roles import ALL, DEFAULT_ROLES
from apps.rbac.services import RoleService, UserPermissionService

logger = logging.getLogger(__name__)


@dataclass
class ProvisioningResult:
    venue: object
    roles: Dict[str, Role] = field(default_factory=dict)
    created_roles: List[str] = field(default_factory=list)
    owner_role: Optional[Role] = None
    owner: Optional[object] = None


class ProvisioningService:
    """
    Service that brings a venue's system roles in line with DEFAULT_ROLES.

    Safe to re-run: roles are upserted by (venue, name) and their permission
    sets synced exactly.
    """

    @classmethod
    def resolve_template_permissions(cls, template, catalog: PermissionCatalog) -> frozenset:
        """
        Resolve a role template's permissions to catalog ids.

        ALL means every permission in the catalog snapshot at call time.

        Raises:
            CatalogConfigurationError: if a named permission is not in the catalog
        """
        permissions = template['permissions']
        if permissions == ALL:
            return catalog.ids()

        missing = [name for name in permissions if name not in catalog]
        if missing:
            raise CatalogConfigurationError(
                f"Role template references unknown permissions: {', '.join(missing)}"
            )
        return frozenset(catalog.lookup(name).id for name in permissions)

    @classmethod
    def provision_venue(cls, venue, creator=None, templates=None) -> ProvisioningResult:
        """
        Seed the catalog, upsert the template roles and bind the creator as owner.

        Runs in one transaction: any failure rolls back the whole provisioning
        (and the venue itself when called from the venue's post_save).

        Args:
            venue: Venue to provision
            creator: User to bind to the owner-template role, if any
            templates: Role templates (defaults to DEFAULT_ROLES)

        Raises:
            CatalogConfigurationError: on an inconsistent catalog or template
            CrossVenueAssignment: if the creator belongs to another venue
        """
        templates = templates or DEFAULT_ROLES
        result = ProvisioningResult(venue=venue)

        with transaction.atomic():
            PermissionCatalogService.seed_catalog()
            catalog = PermissionCatalog.reload()

            resolved = {
                name: cls.resolve_template_permissions(template, catalog)
                for name, template in templates.items()
            }

            owner_role_name = None
            for name, template in templates.items():
                role, created = Role.objects.update_or_create(
                    venue=venue,
                    name=name,
                    defaults={
                        'description': template.get('description', ''),
                        'level': template['level'],
                        'is_system': True,
                        'is_active': True,
                    }
                )
                RoleService.sync_role_permissions(role, resolved[name])

                result.roles[name] = role
                if created:
                    result.created_roles.append(name)
                if template.get('is_owner_template'):
                    owner_role_name = name

            if owner_role_name is not None:
                result.owner_role = result.roles[owner_role_name]

            if creator is not None:
                if result.owner_role is None:
                    raise CatalogConfigurationError("Role templates define no owner role")

                if creator.venue_id is None:
                    creator.venue = venue
                    creator.save(update_fields=['venue', 'updated_at'])

                UserPermissionService.bind_role(creator, result.owner_role, assigned_by=creator)

                venue.owner = creator
                venue.save(update_fields=['owner', 'updated_at'])
                result.owner = creator

            AuditLog.log_action(
                action='venue_provisioned',
                user=creator,
                venue=venue,
                target_type='Venue',
                target_id=venue.id,
                metadata={
                    'roles_created': result.created_roles,
                    'total_roles': len(templates),
                    'owner_id': str(creator.id) if creator else None,
                }
            )

        logger.info(
            f"Venue provisioned: {venue.name}",
            extra={
                'venue_id': str(venue.id),
                'roles_created': result.created_roles,
            }
        )

        return result
