"""
RBAC and Authentication services.

Implements:
- RBACService: principal loading, permission resolution, authorization decisions
- RoleService: per-venue role registry (create, update, delete, list)
- UserPermissionService: role binding, grant/revoke overrides and team membership
- AuthService: JWT issuing and validation, login
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional

import jwt
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, Q
from django.utils import timezone

from apps.core.exceptions import ValidationError
from apps.core.logging import SecurityLogger
from apps.core.middleware import set_request_venue
from apps.rbac.catalog import PermissionCatalog
from apps.rbac.exceptions import (
    CrossVenueAssignment, DuplicateName, InvalidPermission, MemberRemovalForbidden,
    OwnerProtected, RoleInactive, RoleInUse, RoleNotFound, SystemRoleImmutable,
)
from apps.rbac.models import (
    ROLE_TYPE_OWNER, AuditLog, Permission, Role, RolePermission, User,
    UserPermission,
)
from apps.rbac.roles import role_type_for

logger = logging.getLogger(__name__)


# Decision reasons
GRANTED = 'granted'
OWNER_BYPASS = 'owner_bypass'
UNKNOWN_PERMISSION = 'unknown_permission'
NOT_GRANTED = 'not_granted'
CROSS_VENUE = 'cross_venue'
NOT_RESOURCE_OWNER = 'not_resource_owner'
UNAUTHENTICATED = 'unauthenticated'


@dataclass(frozen=True)
class Principal:
    """
    Authorization snapshot of one user, loaded once per request.
    """
    user_id: uuid.UUID
    venue_id: Optional[uuid.UUID]
    role_type: str
    role_id: Optional[uuid.UUID] = None
    role_level: int = 0
    role_permission_ids: frozenset = frozenset()
    granted_ids: frozenset = frozenset()
    revoked_ids: frozenset = frozenset()

    @property
    def is_owner(self):
        return self.role_type == ROLE_TYPE_OWNER


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization check. Denials are values, not exceptions."""
    allowed: bool
    reason: str
    permission: Optional[str] = None

    def __bool__(self):
        return self.allowed


def _same_id(left, right):
    if left is None or right is None:
        return False
    return str(left) == str(right)


def resolve_permission_refs(refs):
    """
    Resolve permission references to active Permission rows.

    A reference is a Permission instance, a UUID (or UUID string) or a
    permission name. Inactive permissions do not resolve.

    Returns:
        List of Permission instances, deduplicated, in reference order

    Raises:
        InvalidPermission: listing every reference that did not resolve
    """
    refs = list(refs or [])
    if not refs:
        return []

    ids, names = set(), set()
    for ref in refs:
        if isinstance(ref, Permission):
            ids.add(ref.id)
        elif isinstance(ref, uuid.UUID):
            ids.add(ref)
        else:
            value = str(ref).strip()
            try:
                ids.add(uuid.UUID(value))
            except ValueError:
                names.add(value)

    found = Permission.objects.active().filter(Q(id__in=ids) | Q(name__in=names))
    by_id = {p.id: p for p in found}
    by_name = {p.name: p for p in found}

    resolved, missing = [], []
    seen = set()
    for ref in refs:
        if isinstance(ref, Permission):
            permission = by_id.get(ref.id)
        elif isinstance(ref, uuid.UUID):
            permission = by_id.get(ref)
        else:
            value = str(ref).strip()
            try:
                permission = by_id.get(uuid.UUID(value))
            except ValueError:
                permission = by_name.get(value)

        if permission is None:
            missing.append(ref.name if isinstance(ref, Permission) else ref)
        elif permission.id not in seen:
            seen.add(permission.id)
            resolved.append(permission)

    if missing:
        raise InvalidPermission(missing)

    return resolved


class RBACService:
    """
    Service for RBAC resolution: effective permission sets and authorization decisions.

    Nothing is cached across requests; a Principal is a per-request snapshot.
    """

    @classmethod
    def load_principal(cls, user: User) -> Principal:
        """
        Load the authorization snapshot for a user.

        A role that is missing, soft-deleted, inactive or owned by another
        venue contributes no permissions and level 0. This is logged, not
        raised.
        """
        role = None
        if user.role_id:
            role = Role.objects_with_deleted.filter(id=user.role_id).first()
            dangling = (
                role is None
                or role.is_deleted
                or not role.is_active
                or not _same_id(role.venue_id, user.venue_id)
            )
            if dangling:
                logger.warning(
                    "Dangling role reference; treating role permissions as empty",
                    extra={
                        'user_id': str(user.id),
                        'role_id': str(user.role_id),
                        'venue_id': str(user.venue_id) if user.venue_id else None,
                    }
                )
                role = None

        role_permission_ids = frozenset()
        if role is not None:
            role_permission_ids = frozenset(
                RolePermission.objects.filter(role=role).values_list('permission_id', flat=True)
            )

        granted, revoked = set(), set()
        for permission_id, effect in UserPermission.objects.filter(user_id=user.id).values_list('permission_id', 'effect'):
            if effect == UserPermission.EFFECT_GRANT:
                granted.add(permission_id)
            else:
                revoked.add(permission_id)

        return Principal(
            user_id=user.id,
            venue_id=user.venue_id,
            role_type=user.role_type,
            role_id=role.id if role else None,
            role_level=role.level if role else 0,
            role_permission_ids=role_permission_ids,
            granted_ids=frozenset(granted),
            revoked_ids=frozenset(revoked),
        )

    @classmethod
    def principal_for_request(cls, request) -> Optional[Principal]:
        """
        Return the Principal of the authenticated request user.

        Loaded once per request and stored on the underlying Django request.
        """
        django_request = getattr(request, '_request', request)
        principal = getattr(django_request, 'rbac_principal', None)
        if principal is not None:
            return principal

        user = getattr(request, 'user', None)
        if user is None or not getattr(user, 'is_authenticated', False):
            return None

        principal = cls.load_principal(user)
        django_request.rbac_principal = principal
        set_request_venue(principal.venue_id)
        return principal

    @classmethod
    def _as_principal(cls, user_or_principal) -> Optional[Principal]:
        if isinstance(user_or_principal, Principal):
            return user_or_principal
        if user_or_principal is None or not getattr(user_or_principal, 'is_authenticated', False):
            return None
        return cls.load_principal(user_or_principal)

    @classmethod
    def resolve_effective_permissions(cls, user_or_principal) -> frozenset:
        """
        Effective permission ids: (role permissions | granted) - revoked.
        """
        principal = cls._as_principal(user_or_principal)
        if principal is None:
            return frozenset()
        return (principal.role_permission_ids | principal.granted_ids) - principal.revoked_ids

    @classmethod
    def has_permission(cls, user_or_principal, permission_name: str) -> bool:
        """
        Check a single permission.

        Owners pass before any catalog lookup; unknown or inactive names are
        denied; otherwise membership in the effective set decides.
        """
        principal = cls._as_principal(user_or_principal)
        if principal is None:
            return False
        if principal.is_owner:
            return True
        entry = PermissionCatalog.current().lookup(permission_name)
        if entry is None:
            return False
        return entry.id in cls.resolve_effective_permissions(principal)

    @classmethod
    def effective_permission_names(cls, user_or_principal) -> list:
        """Sorted names of the active permissions the user holds."""
        principal = cls._as_principal(user_or_principal)
        if principal is None:
            return []
        catalog = PermissionCatalog.current()
        if principal.is_owner:
            return sorted(catalog.names())
        effective = cls.resolve_effective_permissions(principal)
        return sorted(entry.name for entry in catalog if entry.id in effective)

    @classmethod
    def authorize(cls, user_or_principal, permission_name: str, venue_id=None, is_owner=None) -> Decision:
        """
        Decide whether a principal may use a permission.

        Args:
            user_or_principal: Principal (or User) making the request, None if anonymous
            permission_name: Dotted permission name
            venue_id: Venue owning the target resource, if any
            is_owner: Ownership predicate for own-scope permissions, a bool or
                a zero-argument callable. Only consulted when the permission
                has scope 'own'.

        Returns:
            Decision with one of the reason constants
        """
        principal = cls._as_principal(user_or_principal)
        if principal is None:
            return Decision(False, UNAUTHENTICATED, permission_name)

        if venue_id is not None and not _same_id(venue_id, principal.venue_id):
            return Decision(False, CROSS_VENUE, permission_name)

        if principal.is_owner:
            return Decision(True, OWNER_BYPASS, permission_name)

        entry = PermissionCatalog.current().lookup(permission_name)
        if entry is None:
            return Decision(False, UNKNOWN_PERMISSION, permission_name)

        if entry.id not in cls.resolve_effective_permissions(principal):
            return Decision(False, NOT_GRANTED, permission_name)

        if is_owner is not None and entry.scope == Permission.SCOPE_OWN:
            holds = is_owner() if callable(is_owner) else bool(is_owner)
            if not holds:
                return Decision(False, NOT_RESOURCE_OWNER, permission_name)

        return Decision(True, GRANTED, permission_name)

    @classmethod
    def authorize_scoped(cls, user_or_principal, module: str, action: str,
                         is_owner=None, venue_id=None) -> Decision:
        """
        Check `<module>.<action>.all`, falling back to `<module>.<action>.own`.

        The own variant additionally requires the ownership predicate when
        one is given. The returned decision names the variant that decided.
        """
        principal = cls._as_principal(user_or_principal)
        all_decision = cls.authorize(principal, f"{module}.{action}.all", venue_id=venue_id)
        if all_decision.allowed or all_decision.reason in (UNAUTHENTICATED, CROSS_VENUE):
            return all_decision

        own_decision = cls.authorize(principal, f"{module}.{action}.own", venue_id=venue_id, is_owner=is_owner)
        if own_decision.allowed or own_decision.reason == NOT_RESOURCE_OWNER:
            return own_decision

        if all_decision.reason == UNKNOWN_PERMISSION:
            return own_decision
        return all_decision

    @classmethod
    def visible_scope(cls, user_or_principal, module: str, action: str) -> Optional[str]:
        """
        Return 'all', 'own' or None for list endpoints that narrow their queries.
        """
        principal = cls._as_principal(user_or_principal)
        if cls.authorize(principal, f"{module}.{action}.all").allowed:
            return Permission.SCOPE_ALL
        if cls.authorize(principal, f"{module}.{action}.own").allowed:
            return Permission.SCOPE_OWN
        return None

    @classmethod
    def has_role_level(cls, user_or_principal, min_level: int) -> bool:
        """True when the principal's bound role is at least `min_level`."""
        principal = cls._as_principal(user_or_principal)
        if principal is None or principal.role_id is None:
            return False
        return principal.role_level >= min_level


class RoleService:
    """
    Service for the per-venue role registry.
    """

    PATCHABLE_FIELDS = {'name', 'description', 'permission_refs', 'level', 'is_active'}

    @classmethod
    def _validate_name(cls, name):
        name = (name or '').strip()
        if not name:
            raise ValidationError("Role name is required", details={'field': 'name'})
        if len(name) > 50:
            raise ValidationError("Role name cannot exceed 50 characters", details={'field': 'name'})
        return name

    @classmethod
    def _validate_description(cls, description):
        description = description or ''
        if len(description) > 200:
            raise ValidationError("Description cannot exceed 200 characters", details={'field': 'description'})
        return description

    @classmethod
    def _validate_level(cls, level):
        try:
            level = int(level)
        except (TypeError, ValueError):
            raise ValidationError("Role level must be an integer", details={'field': 'level'})
        if level < 0 or level > 100:
            raise ValidationError("Role level must be between 0 and 100", details={'field': 'level'})
        return level

    @classmethod
    def sync_role_permissions(cls, role: Role, permission_ids) -> Dict[str, list]:
        """
        Make the role hold exactly `permission_ids`.

        Returns:
            Dict with 'added' and 'removed' permission id lists
        """
        target = set(permission_ids)
        current = set(
            RolePermission.objects.filter(role=role).values_list('permission_id', flat=True)
        )

        to_add = target - current
        to_remove = current - target

        if to_remove:
            RolePermission.objects.filter(role=role, permission_id__in=to_remove).delete()
        if to_add:
            RolePermission.objects.bulk_create([
                RolePermission(role=role, permission_id=permission_id)
                for permission_id in to_add
            ])

        return {
            'added': sorted(str(pid) for pid in to_add),
            'removed': sorted(str(pid) for pid in to_remove),
        }

    @classmethod
    def create_role(cls, venue, name, description='', permission_refs=(), level=None,
                    created_by=None, request=None) -> Role:
        """
        Create a custom role in a venue.

        Raises:
            DuplicateName: if a role with this name exists in the venue
            InvalidPermission: if any permission ref does not resolve
            ValidationError: on invalid name, description or level
        """
        name = cls._validate_name(name)
        description = cls._validate_description(description)
        if level is None:
            level = getattr(settings, 'RBAC_DEFAULT_CUSTOM_ROLE_LEVEL', 50)
        level = cls._validate_level(level)

        if Role.objects.filter(venue=venue, name=name).exists():
            raise DuplicateName(name)

        permissions = resolve_permission_refs(permission_refs)

        try:
            with transaction.atomic():
                role = Role.objects.create(
                    venue=venue,
                    name=name,
                    description=description,
                    level=level,
                    is_system=False,
                    created_by=created_by,
                )
                cls.sync_role_permissions(role, [p.id for p in permissions])
        except IntegrityError:
            raise DuplicateName(name)

        AuditLog.log_action(
            action='role_created',
            user=created_by,
            venue=venue,
            target_type='Role',
            target_id=role.id,
            diff={
                'name': name,
                'level': level,
                'permissions': sorted(p.name for p in permissions),
            },
            request=request,
        )

        logger.info(
            f"Role created: {name}",
            extra={'venue_id': str(venue.id), 'role_id': str(role.id)}
        )

        return role

    @classmethod
    def update_role(cls, role: Role, updated_by=None, request=None, **patch) -> Role:
        """
        Update a custom role.

        Patchable fields: name, description, permission_refs (full
        replacement), level, is_active.

        Raises:
            SystemRoleImmutable: for system roles
            DuplicateName: if the new name collides within the venue
            InvalidPermission: if any permission ref does not resolve
            ValidationError: on unknown fields or invalid values
        """
        unknown = set(patch) - cls.PATCHABLE_FIELDS
        if unknown:
            raise ValidationError(
                "Unknown role fields",
                details={'fields': sorted(unknown)}
            )

        if role.is_system:
            raise SystemRoleImmutable(role)

        changes = {}

        if 'name' in patch:
            name = cls._validate_name(patch['name'])
            if name != role.name:
                if Role.objects.filter(venue_id=role.venue_id, name=name).exclude(id=role.id).exists():
                    raise DuplicateName(name)
                changes['name'] = name

        if 'description' in patch:
            description = cls._validate_description(patch['description'])
            if description != role.description:
                changes['description'] = description

        if 'level' in patch:
            level = cls._validate_level(patch['level'])
            if level != role.level:
                changes['level'] = level

        if 'is_active' in patch:
            is_active = bool(patch['is_active'])
            if is_active != role.is_active:
                changes['is_active'] = is_active

        permissions = None
        if 'permission_refs' in patch:
            permissions = resolve_permission_refs(patch['permission_refs'])

        diff = {
            field: {'old': getattr(role, field), 'new': value}
            for field, value in changes.items()
        }

        try:
            with transaction.atomic():
                if changes:
                    for field, value in changes.items():
                        setattr(role, field, value)
                    role.save(update_fields=list(changes) + ['updated_at'])

                if permissions is not None:
                    synced = cls.sync_role_permissions(role, [p.id for p in permissions])
                    if synced['added'] or synced['removed']:
                        diff['permissions'] = synced
        except IntegrityError:
            raise DuplicateName(changes.get('name', role.name))

        if diff:
            AuditLog.log_action(
                action='role_updated',
                user=updated_by,
                venue=role.venue,
                target_type='Role',
                target_id=role.id,
                diff=diff,
                request=request,
            )

        return role

    @classmethod
    def delete_role(cls, role: Role, deleted_by=None, request=None):
        """
        Soft-delete a custom role that no user is bound to.

        The "no user references this role" check runs at call time without
        locking; a concurrent assignment can still slip in between.

        Raises:
            SystemRoleImmutable: for system roles, even with zero users
            RoleInUse: if any user is bound to the role
        """
        if role.is_system:
            raise SystemRoleImmutable(role)

        user_count = User.objects.filter(role=role).count()
        if user_count:
            raise RoleInUse(user_count)

        role.delete()

        AuditLog.log_action(
            action='role_deleted',
            user=deleted_by,
            venue=role.venue,
            target_type='Role',
            target_id=role.id,
            metadata={'name': role.name},
            request=request,
        )

        logger.info(
            f"Role deleted: {role.name}",
            extra={'venue_id': str(role.venue_id), 'role_id': str(role.id)}
        )

    @classmethod
    def list_roles(cls, venue, include_inactive=False):
        """
        Roles of a venue, highest level first then by name, annotated with user_count.
        """
        queryset = Role.objects.filter(venue=venue)
        if not include_inactive:
            queryset = queryset.filter(is_active=True)
        return queryset.annotate(
            user_count=Count('users', filter=Q(users__deleted_at__isnull=True))
        ).prefetch_related('permissions').order_by('-level', 'name')

    @classmethod
    def get_role(cls, venue, role_id) -> Role:
        """
        Fetch a role of the venue.

        Raises:
            RoleNotFound: if no such role exists in that venue
        """
        try:
            return Role.objects.annotate(
                user_count=Count('users', filter=Q(users__deleted_at__isnull=True))
            ).get(venue=venue, id=role_id)
        except (Role.DoesNotExist, ValueError, DjangoValidationError):
            raise RoleNotFound(role_id)


class UserPermissionService:
    """
    Service for the user permission overlay: role binding and overrides.

    When an acting user is passed, owner protection applies: nobody changes
    their own owner binding, only owners modify owners, and only owners hand
    out owner-type roles.
    """

    @classmethod
    def check_owner_protection(cls, actor, target, new_role_type=None):
        """
        Raises:
            OwnerProtected: when `actor` may not modify `target`
        """
        if actor is None:
            return

        if target.role_type == ROLE_TYPE_OWNER and _same_id(actor.id, target.id):
            SecurityLogger.log_owner_protection_violation(actor, target, 'modify_own_owner_binding')
            raise OwnerProtected("Cannot modify your own owner role")

        if target.role_type == ROLE_TYPE_OWNER and actor.role_type != ROLE_TYPE_OWNER:
            SecurityLogger.log_owner_protection_violation(actor, target, 'modify_owner')
            raise OwnerProtected("Only owners can modify other owners")

        if new_role_type == ROLE_TYPE_OWNER and actor.role_type != ROLE_TYPE_OWNER:
            SecurityLogger.log_owner_protection_violation(actor, target, 'assign_owner_role')
            raise OwnerProtected("Only owners can assign an owner role")

    @classmethod
    def _resolve_single(cls, permission_ref) -> Permission:
        return resolve_permission_refs([permission_ref])[0]

    @classmethod
    def bind_role(cls, user: User, role: Role, assigned_by=None, request=None) -> User:
        """
        Bind a role without owner protection. Used by provisioning and by
        callers that already checked protection.

        Raises:
            CrossVenueAssignment: if the role belongs to another venue
            RoleNotFound: if the role was deleted
            RoleInactive: if the role was deactivated
        """
        if not _same_id(role.venue_id, user.venue_id):
            raise CrossVenueAssignment(user, role)
        if role.is_deleted:
            raise RoleNotFound(role.id)
        if not role.is_active:
            raise RoleInactive(role)

        previous = {
            'role_id': str(user.role_id) if user.role_id else None,
            'role_type': user.role_type,
        }

        user.role = role
        user.role_type = role_type_for(role)
        user.save(update_fields=['role', 'role_type', 'updated_at'])

        AuditLog.log_action(
            action='role_assigned',
            user=assigned_by,
            venue=role.venue,
            target_type='User',
            target_id=user.id,
            diff={
                'old': previous,
                'new': {'role_id': str(role.id), 'role_type': user.role_type},
            },
            request=request,
        )
        return user

    @classmethod
    def set_role(cls, user: User, role: Role, assigned_by=None, request=None) -> User:
        """
        Bind `user` to `role` and derive role_type from it.

        Raises:
            CrossVenueAssignment: if the role belongs to another venue
            OwnerProtected: if `assigned_by` may not make this change
        """
        if not _same_id(role.venue_id, user.venue_id):
            raise CrossVenueAssignment(user, role)
        cls.check_owner_protection(assigned_by, user, role_type_for(role))
        return cls.bind_role(user, role, assigned_by=assigned_by, request=request)

    @classmethod
    def _add_override(cls, user, permission_ref, effect, reason, actor, request):
        cls.check_owner_protection(actor, user)
        permission = cls._resolve_single(permission_ref)

        override, created = UserPermission.objects.get_or_create(
            user=user,
            permission=permission,
            effect=effect,
            defaults={'reason': reason or '', 'granted_by': actor},
        )

        if created:
            AuditLog.log_action(
                action='permission_granted' if effect == UserPermission.EFFECT_GRANT else 'permission_revoked',
                user=actor,
                venue=user.venue,
                target_type='User',
                target_id=user.id,
                metadata={'permission': permission.name, 'reason': reason or ''},
                request=request,
            )

        return override

    @classmethod
    def grant(cls, user: User, permission_ref, reason='', granted_by=None, request=None) -> UserPermission:
        """
        Add a permission to the user's granted set (idempotent).

        Raises:
            InvalidPermission: if the ref is not in the catalog
        """
        return cls._add_override(user, permission_ref, UserPermission.EFFECT_GRANT, reason, granted_by, request)

    @classmethod
    def revoke(cls, user: User, permission_ref, reason='', revoked_by=None, request=None) -> UserPermission:
        """
        Add a permission to the user's revoked set (idempotent).

        A revoke removes the permission from the effective set even if the
        role or a grant provides it.
        """
        return cls._add_override(user, permission_ref, UserPermission.EFFECT_REVOKE, reason, revoked_by, request)

    @classmethod
    def remove_override(cls, user: User, permission_ref, effect, removed_by=None, request=None) -> bool:
        """
        Drop a permission from the granted or revoked set.

        Returns:
            True if an override was removed
        """
        if effect not in (UserPermission.EFFECT_GRANT, UserPermission.EFFECT_REVOKE):
            raise ValidationError("effect must be 'grant' or 'revoke'", details={'field': 'effect'})

        cls.check_owner_protection(removed_by, user)
        permission = cls._resolve_single(permission_ref)

        deleted, _ = UserPermission.objects.filter(
            user=user, permission=permission, effect=effect
        ).delete()

        if deleted:
            AuditLog.log_action(
                action='permission_override_removed',
                user=removed_by,
                venue=user.venue,
                target_type='User',
                target_id=user.id,
                metadata={'permission': permission.name, 'effect': effect},
                request=request,
            )

        return bool(deleted)

    @classmethod
    def _replace_overrides(cls, user, granted, revoked, actor):
        """Replace both override sets with already-resolved permissions."""
        desired = {
            (p.id, UserPermission.EFFECT_GRANT) for p in granted
        } | {
            (p.id, UserPermission.EFFECT_REVOKE) for p in revoked
        }
        current = set(
            UserPermission.objects.filter(user=user).values_list('permission_id', 'effect')
        )

        to_remove = current - desired
        to_add = desired - current

        for permission_id, effect in to_remove:
            UserPermission.objects.filter(user=user, permission_id=permission_id, effect=effect).delete()

        UserPermission.objects.bulk_create([
            UserPermission(user=user, permission_id=permission_id, effect=effect, granted_by=actor)
            for permission_id, effect in to_add
        ])

        names = {p.id: p.name for p in list(granted) + list(revoked)}
        return {
            'added': sorted(f"{effect}:{names.get(pid, pid)}" for pid, effect in to_add),
            'removed': sorted(f"{effect}:{pid}" for pid, effect in to_remove),
        }

    @classmethod
    def set_overrides(cls, user: User, granted=(), revoked=(), updated_by=None, request=None) -> Dict[str, list]:
        """
        Replace the user's granted and revoked sets.

        Both lists are validated as a whole before anything is written.

        Raises:
            InvalidPermission: listing every unresolved ref across both lists
            OwnerProtected: if `updated_by` may not modify this user
        """
        cls.check_owner_protection(updated_by, user)
        granted_perms, revoked_perms = cls._resolve_override_lists(granted, revoked)

        with transaction.atomic():
            diff = cls._replace_overrides(user, granted_perms, revoked_perms, updated_by)

        if diff['added'] or diff['removed']:
            AuditLog.log_action(
                action='permission_overrides_replaced',
                user=updated_by,
                venue=user.venue,
                target_type='User',
                target_id=user.id,
                diff=diff,
                request=request,
            )
        return diff

    @classmethod
    def _resolve_override_lists(cls, granted, revoked):
        missing = []
        try:
            granted_perms = resolve_permission_refs(granted)
        except InvalidPermission as e:
            missing.extend(e.missing)
            granted_perms = []
        try:
            revoked_perms = resolve_permission_refs(revoked)
        except InvalidPermission as e:
            missing.extend(e.missing)
            revoked_perms = []
        if missing:
            raise InvalidPermission(missing)
        return granted_perms, revoked_perms

    @classmethod
    def update_member(cls, user: User, actor: User, role=None, is_active=None,
                      granted=None, revoked=None, request=None) -> User:
        """
        Apply a team-member update (role, active flag, overrides) atomically.

        Overrides are replaced only when `granted` or `revoked` is given;
        a missing list counts as empty.
        """
        new_role_type = role_type_for(role) if role is not None else None
        if role is not None and not _same_id(role.venue_id, user.venue_id):
            raise CrossVenueAssignment(user, role)
        cls.check_owner_protection(actor, user, new_role_type)

        replace_overrides = granted is not None or revoked is not None
        if replace_overrides:
            granted_perms, revoked_perms = cls._resolve_override_lists(granted or [], revoked or [])

        with transaction.atomic():
            if role is not None:
                cls.bind_role(user, role, assigned_by=actor, request=request)

            if is_active is not None and bool(is_active) != user.is_active:
                user.is_active = bool(is_active)
                user.save(update_fields=['is_active', 'updated_at'])
                AuditLog.log_action(
                    action='user_activated' if user.is_active else 'user_deactivated',
                    user=actor,
                    venue=user.venue,
                    target_type='User',
                    target_id=user.id,
                    request=request,
                )

            if replace_overrides:
                diff = cls._replace_overrides(user, granted_perms, revoked_perms, actor)
                if diff['added'] or diff['removed']:
                    AuditLog.log_action(
                        action='permission_overrides_replaced',
                        user=actor,
                        venue=user.venue,
                        target_type='User',
                        target_id=user.id,
                        diff=diff,
                        request=request,
                    )

        return user

    @classmethod
    def list_members(cls, venue, status=None, role_id=None, search=None):
        """
        Team members of the venue, newest first.

        Args:
            status: 'active' or 'inactive' to filter on the active flag
            role_id: only members bound to this role
            search: case-insensitive match on email, first or last name
        """
        queryset = User.objects.select_related('role').filter(venue=venue)
        if status in ('active', 'inactive'):
            queryset = queryset.filter(is_active=(status == 'active'))
        if role_id:
            queryset = queryset.filter(role_id=role_id)
        if search:
            queryset = queryset.filter(
                Q(email__icontains=search)
                | Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
            )
        return queryset.order_by('-created_at')

    @classmethod
    def remove_member(cls, user: User, removed_by: User, request=None) -> User:
        """
        Remove a member from the team by deactivating the account.

        Raises:
            MemberRemovalForbidden: for the venue owner or the acting user
        """
        if user.role_type == ROLE_TYPE_OWNER:
            raise MemberRemovalForbidden(
                "Cannot remove venue owner", details={'user_id': str(user.id)}
            )
        if removed_by is not None and _same_id(user.id, removed_by.id):
            raise MemberRemovalForbidden(
                "Cannot remove yourself", details={'user_id': str(user.id)}
            )

        if user.is_active:
            user.is_active = False
            user.save(update_fields=['is_active', 'updated_at'])
            AuditLog.log_action(
                action='user_removed',
                user=removed_by,
                venue=user.venue,
                target_type='User',
                target_id=user.id,
                request=request,
            )
            logger.info(
                "Team member removed",
                extra={'venue_id': str(user.venue_id), 'user_id': str(user.id)}
            )
        return user

    @classmethod
    def team_stats(cls, venue) -> Dict[str, Any]:
        """Member counts of the venue, overall and per role_type."""
        members = User.objects.filter(venue=venue)
        total = members.count()
        active = members.filter(is_active=True).count()
        distribution = (
            members.values('role_type')
            .annotate(count=Count('id'))
            .order_by('role_type')
        )
        return {
            'total_members': total,
            'active_members': active,
            'inactive_members': total - active,
            'role_distribution': [
                {'role_type': row['role_type'], 'count': row['count']}
                for row in distribution
            ],
        }


class AuthService:
    """
    Service for authentication operations: JWT issuing/validation and login.

    Tokens carry only the user id; authorization is re-resolved per request.
    """

    @classmethod
    def generate_jwt(cls, user: User) -> str:
        """
        Generate JWT token for a user.

        Args:
            user: User instance

        Returns:
            JWT token string
        """
        now = timezone.now()
        payload = {
            'user_id': str(user.id),
            'exp': now + timedelta(hours=getattr(settings, 'JWT_EXPIRATION_HOURS', 24)),
            'iat': now,
        }

        return jwt.encode(
            payload,
            settings.JWT_SECRET_KEY,
            algorithm=getattr(settings, 'JWT_ALGORITHM', 'HS256')
        )

    @classmethod
    def validate_jwt(cls, token: str) -> Optional[Dict[str, Any]]:
        """
        Validate JWT token and return payload.

        Returns:
            Decoded payload dict or None if invalid or expired
        """
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[getattr(settings, 'JWT_ALGORITHM', 'HS256')]
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def get_user_from_jwt(cls, token: str) -> Optional[User]:
        """
        Extract and return the active user from a JWT token.
        """
        payload = cls.validate_jwt(token)
        if not payload:
            return None

        user_id = payload.get('user_id')
        if not user_id:
            return None

        try:
            return User.objects.select_related('venue').get(id=user_id, is_active=True)
        except (User.DoesNotExist, ValueError, DjangoValidationError):
            return None

    @classmethod
    def login(cls, email: str, password: str, request=None) -> Optional[Dict[str, Any]]:
        """
        Authenticate user and return JWT token.

        Returns:
            Dict with user and token, or None if authentication failed
        """
        user = User.objects.by_email(email)
        if user is None:
            # Hash once anyway to keep timing similar for unknown emails
            User().set_password(password)
            return None
        if not user.is_active or not user.check_password(password):
            return None

        user.update_last_login()
        token = cls.generate_jwt(user)

        AuditLog.log_action(
            action='user_login',
            user=user,
            venue=user.venue,
            target_type='User',
            target_id=user.id,
            request=request,
        )

        return {
            'user': user,
            'token': token,
        }
