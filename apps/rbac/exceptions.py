"""
RBAC error taxonomy.

Authorization denials are not exceptions (see Decision in services); these
cover invalid mutations of the catalog, roles and user overlay.
"""
from apps.core.exceptions import FiestaException, NotFoundError, PermissionDeniedError


class DuplicateName(FiestaException):
    """A role with this name already exists in the venue."""
    code = 'DUPLICATE_NAME'

    def __init__(self, name):
        super().__init__(
            f"A role named '{name}' already exists in this venue",
            details={'name': name}
        )


class InvalidPermission(FiestaException):
    """One or more permission references are not in the catalog."""
    code = 'INVALID_PERMISSION'

    def __init__(self, missing):
        self.missing = [str(ref) for ref in missing]
        super().__init__(
            "One or more permissions are invalid",
            details={'missing': self.missing}
        )


class SystemRoleImmutable(FiestaException):
    """System roles cannot be modified or deleted."""
    code = 'SYSTEM_ROLE_IMMUTABLE'

    def __init__(self, role):
        super().__init__(
            f"System role '{role.name}' cannot be modified or deleted",
            details={'role_id': str(role.id)}
        )


class RoleInUse(FiestaException):
    """The role is still bound to users and cannot be deleted."""
    code = 'ROLE_IN_USE'

    def __init__(self, count):
        self.count = count
        super().__init__(
            f"Cannot delete role. {count} user(s) are assigned to this role",
            details={'count': count}
        )


class RoleNotFound(NotFoundError):
    """No role with this id exists in the venue."""
    code = 'ROLE_NOT_FOUND'

    def __init__(self, role_id):
        super().__init__(
            "Role not found",
            details={'role_id': str(role_id)}
        )


class CrossVenueAssignment(FiestaException):
    """A user cannot be bound to a role of another venue."""
    code = 'CROSS_VENUE_ASSIGNMENT'

    def __init__(self, user, role):
        super().__init__(
            "Role does not belong to the user's venue",
            details={'user_id': str(user.id), 'role_id': str(role.id)}
        )


class RoleInactive(FiestaException):
    """Users cannot be bound to a deactivated role."""
    code = 'ROLE_INACTIVE'

    def __init__(self, role):
        super().__init__(
            f"Role '{role.name}' is inactive and cannot be assigned",
            details={'role_id': str(role.id)}
        )


class OwnerProtected(PermissionDeniedError):
    """Owner bindings can only be changed by another owner."""
    code = 'OWNER_PROTECTED'


class MemberRemovalForbidden(FiestaException):
    """The venue owner and the acting user cannot be removed from the team."""
    code = 'MEMBER_REMOVAL_FORBIDDEN'


class CatalogConfigurationError(Exception):
    """
    The permission catalog or a role template is inconsistent.

    Raised at seed/provisioning time, never while serving a request.
    """
