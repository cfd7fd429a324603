"""
RBAC REST API views.

Implements endpoints for:
- Permission catalog listing
- Role management (CRUD)
- Team members: listing, statistics, role binding, removal and permission overrides
"""
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import NotFoundError
from apps.core.permissions import HasVenuePermission, requires_permissions
from apps.rbac.catalog import PermissionCatalogService
from apps.rbac.models import User, UserPermission
from apps.rbac.serializers import (
    PermissionSerializer, RoleSerializer, RoleWriteSerializer,
    TeamMemberFilterSerializer, TeamMemberUpdateSerializer, UserPermissionCreateSerializer,
    UserPermissionRemoveSerializer, UserPermissionSerializer, UserSerializer,
)
from apps.rbac.services import RBACService, RoleService, UserPermissionService


def _get_team_member(principal, user_id):
    user = User.objects.select_related('role', 'venue').filter(
        id=user_id, venue_id=principal.venue_id
    ).first()
    if user is None:
        raise NotFoundError('Team member not found', details={'user_id': str(user_id)})
    return user


def _role_payload(validated):
    patch = {}
    for field in ('name', 'description', 'level', 'is_active'):
        if field in validated:
            patch[field] = validated[field]
    if 'permissions' in validated:
        patch['permission_refs'] = validated['permissions']
    return patch


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Permissions'],
        summary='List permission catalog',
        description='''
List all active permissions, both as a flat list and grouped by module.

**Required permission:** `roles.read.all`
        ''',
        responses={200: OpenApiTypes.OBJECT}
    )
)
@requires_permissions('roles.read.all')
class PermissionListView(APIView):
    """
    GET /v1/permissions
    """
    permission_classes = [IsAuthenticated, HasVenuePermission]

    def get(self, request):
        permissions = PermissionCatalogService.list_active()
        grouped = PermissionCatalogService.grouped_by_module()
        return Response({
            'count': len(permissions),
            'permissions': PermissionSerializer(permissions, many=True).data,
            'grouped': {
                module: PermissionSerializer(items, many=True).data
                for module, items in grouped.items()
            },
        })


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Roles'],
        summary='List roles',
        description='''
List the venue's roles, highest level first, each with its permissions
and the number of users bound to it. Pass `include_inactive=true` to
include deactivated roles.

**Required permission:** `roles.read.all`
        ''',
        responses={200: RoleSerializer(many=True)}
    ),
    post=extend_schema(
        tags=['RBAC - Roles'],
        summary='Create custom role',
        description='''
Create a custom role. Permissions may be given as ids or names.

**Required permission:** `roles.create`
        ''',
        request=RoleWriteSerializer,
        responses={201: RoleSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT}
    )
)
class RoleListView(APIView):
    """
    GET  /v1/roles
    POST /v1/roles
    """
    permission_classes = [IsAuthenticated, HasVenuePermission]

    @requires_permissions('roles.read.all')
    def get(self, request):
        principal = RBACService.principal_for_request(request)
        include_inactive = request.query_params.get('include_inactive') == 'true'
        roles = RoleService.list_roles(principal.venue_id, include_inactive=include_inactive)
        return Response({
            'count': len(roles),
            'roles': RoleSerializer(roles, many=True).data,
        })

    @requires_permissions('roles.create')
    def post(self, request):
        principal = RBACService.principal_for_request(request)
        serializer = RoleWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        role = RoleService.create_role(
            venue=request.user.venue,
            name=data['name'],
            description=data.get('description', ''),
            permission_refs=data.get('permissions', []),
            level=data.get('level'),
            created_by=request.user,
            request=request,
        )

        role = RoleService.get_role(principal.venue_id, role.id)
        return Response(RoleSerializer(role).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Roles'],
        summary='Get role details',
        description='**Required permission:** `roles.read.all`',
        responses={200: RoleSerializer, 404: OpenApiTypes.OBJECT}
    ),
    put=extend_schema(
        tags=['RBAC - Roles'],
        summary='Update role',
        description='''
Update a custom role. `permissions` replaces the role's permission set.
System roles cannot be modified.

**Required permission:** `roles.update.all`
        ''',
        request=RoleWriteSerializer,
        responses={200: RoleSerializer, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    ),
    patch=extend_schema(
        tags=['RBAC - Roles'],
        summary='Partially update role',
        description='**Required permission:** `roles.update.all`',
        request=RoleWriteSerializer,
        responses={200: RoleSerializer, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    ),
    delete=extend_schema(
        tags=['RBAC - Roles'],
        summary='Delete role',
        description='''
Delete a custom role. Fails while any user is bound to it, and always
fails for system roles.

**Required permission:** `roles.delete.all`
        ''',
        responses={204: None, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    )
)
class RoleDetailView(APIView):
    """
    GET/PUT/PATCH/DELETE /v1/roles/{role_id}
    """
    permission_classes = [IsAuthenticated, HasVenuePermission]

    def _get_role(self, request, role_id):
        principal = RBACService.principal_for_request(request)
        role = RoleService.get_role(principal.venue_id, role_id)
        self.check_object_permissions(request, role)
        return role

    @requires_permissions('roles.read.all')
    def get(self, request, role_id):
        role = self._get_role(request, role_id)
        return Response(RoleSerializer(role).data)

    @requires_permissions('roles.update.all')
    def put(self, request, role_id):
        return self._update(request, role_id)

    @requires_permissions('roles.update.all')
    def patch(self, request, role_id):
        return self._update(request, role_id)

    def _update(self, request, role_id):
        role = self._get_role(request, role_id)
        serializer = RoleWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        RoleService.update_role(
            role,
            updated_by=request.user,
            request=request,
            **_role_payload(serializer.validated_data)
        )

        role = RoleService.get_role(role.venue_id, role.id)
        return Response(RoleSerializer(role).data)

    @requires_permissions('roles.delete.all')
    def delete(self, request, role_id):
        role = self._get_role(request, role_id)
        RoleService.delete_role(role, deleted_by=request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


class TeamMemberPagination(PageNumberPagination):
    """Pagination for team member listings."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Team'],
        summary='List team members',
        description='''
List the members of the venue, newest first.

Filters: `status` (`active` or `inactive`), `role_id`, and `search`
(matches email, first name and last name).

**Required permission:** `users.read.all`
        ''',
        parameters=[
            OpenApiParameter(name='status', type=OpenApiTypes.STR, location=OpenApiParameter.QUERY),
            OpenApiParameter(name='role_id', type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY),
            OpenApiParameter(name='search', type=OpenApiTypes.STR, location=OpenApiParameter.QUERY),
            OpenApiParameter(name='page', type=OpenApiTypes.INT, location=OpenApiParameter.QUERY),
            OpenApiParameter(name='page_size', type=OpenApiTypes.INT, location=OpenApiParameter.QUERY),
        ],
        responses={200: UserSerializer(many=True)}
    )
)
@requires_permissions('users.read.all')
class TeamListView(APIView):
    """
    GET /v1/team
    """
    permission_classes = [IsAuthenticated, HasVenuePermission]

    def get(self, request):
        principal = RBACService.principal_for_request(request)
        serializer = TeamMemberFilterSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        filters = serializer.validated_data

        members = UserPermissionService.list_members(
            principal.venue_id,
            status=filters.get('status'),
            role_id=filters.get('role_id'),
            search=filters.get('search'),
        )

        paginator = TeamMemberPagination()
        page = paginator.paginate_queryset(members, request, view=self)
        return paginator.get_paginated_response(UserSerializer(page, many=True).data)


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Team'],
        summary='Team statistics',
        description='''
Total, active and inactive member counts plus the distribution of role types.

**Required permission:** `users.read.all`
        ''',
        responses={200: OpenApiTypes.OBJECT}
    )
)
@requires_permissions('users.read.all')
class TeamStatsView(APIView):
    """
    GET /v1/team/stats
    """
    permission_classes = [IsAuthenticated, HasVenuePermission]

    def get(self, request):
        principal = RBACService.principal_for_request(request)
        return Response(UserPermissionService.team_stats(principal.venue_id))


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Team'],
        summary='Get team member',
        description='**Required permission:** `users.read.all`',
        responses={200: UserSerializer, 404: OpenApiTypes.OBJECT}
    ),
    put=extend_schema(
        tags=['RBAC - Team'],
        summary='Update team member',
        description='''
Change a team member's role, active flag and custom permissions.
`custom_permissions` replaces both the granted and revoked lists.

Owners cannot change their own owner binding, and only owners can modify
other owners or hand out the Owner role. Inactive roles cannot be assigned.

**Required permission:** `users.update.all`
        ''',
        request=TeamMemberUpdateSerializer,
        responses={200: UserSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    ),
    delete=extend_schema(
        tags=['RBAC - Team'],
        summary='Remove team member',
        description='''
Remove a member by deactivating the account. The venue owner and the
acting user cannot be removed.

**Required permission:** `users.delete.all`
        ''',
        responses={204: None, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    )
)
class TeamMemberView(APIView):
    """
    GET/PUT/DELETE /v1/team/{user_id}
    """
    permission_classes = [IsAuthenticated, HasVenuePermission]

    @requires_permissions('users.read.all')
    def get(self, request, user_id):
        principal = RBACService.principal_for_request(request)
        member = _get_team_member(principal, user_id)
        return Response(UserSerializer(member).data)

    @requires_permissions('users.update.all')
    def put(self, request, user_id):
        principal = RBACService.principal_for_request(request)
        member = _get_team_member(principal, user_id)

        serializer = TeamMemberUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        role = None
        if 'role_id' in data:
            role = RoleService.get_role(principal.venue_id, data['role_id'])

        custom = data.get('custom_permissions')
        UserPermissionService.update_member(
            member,
            actor=request.user,
            role=role,
            is_active=data.get('is_active'),
            granted=custom['granted'] if custom is not None else None,
            revoked=custom['revoked'] if custom is not None else None,
            request=request,
        )

        member.refresh_from_db()
        return Response(UserSerializer(member).data)

    @requires_permissions('users.delete.all')
    def delete(self, request, user_id):
        principal = RBACService.principal_for_request(request)
        member = _get_team_member(principal, user_id)
        UserPermissionService.remove_member(member, removed_by=request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Team'],
        summary='Get team member permissions',
        description='''
Return the member's role, grant/revoke overrides and effective permissions.

**Required permission:** `users.read.all`
        ''',
        responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    ),
    post=extend_schema(
        tags=['RBAC - Team'],
        summary='Add permission override',
        description='''
Grant or revoke one permission for a member. Idempotent.

**Required permission:** `users.update.all`
        ''',
        request=UserPermissionCreateSerializer,
        responses={201: UserPermissionSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT}
    ),
    delete=extend_schema(
        tags=['RBAC - Team'],
        summary='Remove permission override',
        description='**Required permission:** `users.update.all`',
        request=UserPermissionRemoveSerializer,
        responses={204: None, 404: OpenApiTypes.OBJECT}
    )
)
class TeamMemberPermissionsView(APIView):
    """
    GET/POST/DELETE /v1/team/{user_id}/permissions
    """
    permission_classes = [IsAuthenticated, HasVenuePermission]

    @requires_permissions('users.read.all')
    def get(self, request, user_id):
        principal = RBACService.principal_for_request(request)
        member = _get_team_member(principal, user_id)
        overrides = UserPermission.objects.for_user(member).select_related('permission', 'granted_by')

        return Response({
            'user': UserSerializer(member).data,
            'granted': UserPermissionSerializer(
                [o for o in overrides if o.effect == UserPermission.EFFECT_GRANT], many=True
            ).data,
            'revoked': UserPermissionSerializer(
                [o for o in overrides if o.effect == UserPermission.EFFECT_REVOKE], many=True
            ).data,
            'effective_permissions': RBACService.effective_permission_names(member),
        })

    @requires_permissions('users.update.all')
    def post(self, request, user_id):
        principal = RBACService.principal_for_request(request)
        member = _get_team_member(principal, user_id)

        serializer = UserPermissionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data['effect'] == UserPermission.EFFECT_GRANT:
            override = UserPermissionService.grant(
                member, data['permission'], reason=data['reason'],
                granted_by=request.user, request=request
            )
        else:
            override = UserPermissionService.revoke(
                member, data['permission'], reason=data['reason'],
                revoked_by=request.user, request=request
            )

        return Response(UserPermissionSerializer(override).data, status=status.HTTP_201_CREATED)

    @requires_permissions('users.update.all')
    def delete(self, request, user_id):
        principal = RBACService.principal_for_request(request)
        member = _get_team_member(principal, user_id)

        serializer = UserPermissionRemoveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        removed = UserPermissionService.remove_override(
            member,
            serializer.validated_data['permission'],
            serializer.validated_data['effect'],
            removed_by=request.user,
            request=request,
        )
        if not removed:
            raise NotFoundError('Permission override not found')

        return Response(status=status.HTTP_204_NO_CONTENT)
