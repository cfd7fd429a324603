"""
RBAC API URLs.

Provides endpoints for:
- Permission catalog
- Role management
- Team members, their roles and permission overrides
"""
from django.urls import path
from apps.rbac.views import (
    PermissionListView,
    RoleListView,
    RoleDetailView,
    TeamListView,
    TeamStatsView,
    TeamMemberView,
    TeamMemberPermissionsView,
)

app_name = 'rbac'

urlpatterns = [
    # Permission catalog
    path('permissions', PermissionListView.as_view(), name='permission-list'),

    # Role endpoints
    path('roles', RoleListView.as_view(), name='role-list'),
    path('roles/<uuid:role_id>', RoleDetailView.as_view(), name='role-detail'),

    # Team endpoints
    path('team', TeamListView.as_view(), name='team-list'),
    path('team/stats', TeamStatsView.as_view(), name='team-stats'),
    path('team/<uuid:user_id>', TeamMemberView.as_view(), name='team-member'),
    path('team/<uuid:user_id>/permissions', TeamMemberPermissionsView.as_view(), name='team-member-permissions'),
]
