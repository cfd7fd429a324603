"""
DRF permission classes and decorators for venue-scoped RBAC enforcement.

This module provides:
- HasVenuePermission: enforces the permissions a view declares, plus venue isolation on objects
- @requires_permissions: declares required permissions on views or view methods
- HasRoleLevel: enforces a minimum role level
- OwnershipScope: own/all helper for views guarding creator-owned records
"""
import logging
from functools import wraps
from rest_framework.permissions import BasePermission

from apps.core.logging import SecurityLogger

logger = logging.getLogger(__name__)


def _client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def _required_permissions(request, view):
    """
    Collect the permissions required for this request.

    A method-level declaration (via @requires_permissions on the handler)
    wins over the view-level `required_permissions` attribute. The view
    attribute may also be a dict keyed by HTTP method.
    """
    handler = getattr(view, request.method.lower(), None)
    required = getattr(handler, 'required_permissions', None)

    if required is None:
        required = getattr(view, 'required_permissions', None)
        if isinstance(required, dict):
            required = required.get(request.method.upper())

    if not required:
        return ()
    if isinstance(required, str):
        return (required,)
    return tuple(required)


class HasVenuePermission(BasePermission):
    """
    DRF permission class that enforces permission requirements on API endpoints.

    This permission class:
    1. Reads required permissions from the view (see requires_permissions)
    2. Authorizes each through RBACService against the request principal
    3. Returns 401/403 if any required permission is denied
    4. Implements has_object_permission to keep objects inside the principal's venue
    5. Logs denials with the decision reason

    Usage in views:
        class RoleListView(APIView):
            permission_classes = [HasVenuePermission]
            required_permissions = ['roles.read.all']
    """

    message = "You don't have permission to perform this action"

    def _deny(self, request, view, principal, decision):
        SecurityLogger.log_permission_denied(
            principal,
            decision,
            ip_address=_client_ip(request),
            path=request.path,
        )
        logger.warning(
            f"Permission denied: {decision.permission} ({decision.reason})",
            extra={
                'permission': decision.permission,
                'reason': decision.reason,
                'view': view.__class__.__name__,
                'method': request.method,
                'path': request.path,
            }
        )
        self.message = f"You don't have permission to perform this action ({decision.permission})"
        return False

    def has_permission(self, request, view):
        """
        Check every required permission for the view.

        Returns:
            bool: True if all required permissions are allowed
        """
        from apps.rbac.services import RBACService

        required = _required_permissions(request, view)
        if not required:
            return True

        principal = RBACService.principal_for_request(request)
        for name in required:
            decision = RBACService.authorize(principal, name)
            if not decision.allowed:
                return self._deny(request, view, principal, decision)

        return True

    def has_object_permission(self, request, view, obj):
        """
        Verify that the object belongs to the principal's venue.

        Objects without a venue are not venue-scoped and pass; the
        permission check in has_permission already ran.
        """
        from apps.rbac.services import RBACService, Decision, CROSS_VENUE

        principal = RBACService.principal_for_request(request)

        if not hasattr(obj, 'venue_id'):
            return True

        required = _required_permissions(request, view)
        for name in required:
            decision = RBACService.authorize(principal, name, venue_id=obj.venue_id)
            if not decision.allowed:
                return self._deny(request, view, principal, decision)

        if not required and principal is not None and str(obj.venue_id) != str(principal.venue_id):
            return self._deny(request, view, principal, Decision(False, CROSS_VENUE, None))

        return True


class HasRoleLevel(BasePermission):
    """
    Require the request principal's role level to be at least `min_role_level`.

    Usage:
        class SettingsView(APIView):
            permission_classes = [HasRoleLevel]
            min_role_level = 75
    """

    message = "Insufficient role level for this action"

    def has_permission(self, request, view):
        from apps.rbac.services import RBACService

        min_level = getattr(view, 'min_role_level', None)
        if min_level is None:
            return True

        principal = RBACService.principal_for_request(request)
        if RBACService.has_role_level(principal, min_level):
            return True

        logger.warning(
            "Role level check failed",
            extra={
                'required_level': min_level,
                'role_level': principal.role_level if principal else None,
                'view': view.__class__.__name__,
                'path': request.path,
            }
        )
        return False


def requires_permissions(*permissions):
    """
    Decorator to declare required permissions on view classes or methods.

    Usage:
        @requires_permissions('roles.read.all')
        class RoleListView(APIView):
            permission_classes = [HasVenuePermission]

    Or on individual methods:
        class RoleListView(APIView):
            permission_classes = [HasVenuePermission]

            @requires_permissions('roles.read.all')
            def get(self, request):
                pass

            @requires_permissions('roles.create')
            def post(self, request):
                pass

    Method declarations are read before the permission check runs, so a
    method may declare different permissions than its class.
    """
    def decorator(view_or_method):
        if isinstance(view_or_method, type):
            view_or_method.required_permissions = tuple(permissions)
            return view_or_method

        @wraps(view_or_method)
        def wrapped(self, request, *args, **kwargs):
            return view_or_method(self, request, *args, **kwargs)

        wrapped.required_permissions = tuple(permissions)
        return wrapped

    return decorator


class OwnershipScope:
    """
    Own/all access helper for records that carry a creator or assignee.

    A principal holding `<module>.<action>.all` sees every record of its
    venue; one holding only `<module>.<action>.own` sees the records where
    `owner_field` is its user id; anyone else sees nothing.

    Usage:
        scope = OwnershipScope('tasks', 'read', owner_field='assigned_to_id')
        tasks = scope.filter_queryset(request, Task.objects.all())
        decision = scope.check_object(request, task)
    """

    def __init__(self, module, action, owner_field='created_by_id'):
        self.module = module
        self.action = action
        self.owner_field = owner_field

    def visible_scope(self, request):
        from apps.rbac.services import RBACService

        principal = RBACService.principal_for_request(request)
        return RBACService.visible_scope(principal, self.module, self.action)

    def filter_queryset(self, request, queryset):
        """Narrow `queryset` to the records the request principal may see."""
        from apps.rbac.services import RBACService

        principal = RBACService.principal_for_request(request)
        scope = RBACService.visible_scope(principal, self.module, self.action)

        if scope is None:
            return queryset.none()

        queryset = queryset.filter(venue_id=principal.venue_id)
        if scope == 'own':
            queryset = queryset.filter(**{self.owner_field: principal.user_id})
        return queryset

    def check_object(self, request, obj):
        """Return the Decision for acting on a single record."""
        from apps.rbac.services import RBACService

        principal = RBACService.principal_for_request(request)
        return RBACService.authorize_scoped(
            principal,
            self.module,
            self.action,
            is_owner=lambda: principal is not None and str(getattr(obj, self.owner_field)) == str(principal.user_id),
            venue_id=getattr(obj, 'venue_id', None),
        )
