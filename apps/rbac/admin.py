"""
Django admin configuration for RBAC app.
"""
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import AuditLog, Permission, Role, RolePermission, User, UserPermission


@admin.register(User)
class CustomUserAdmin(BaseUserAdmin):
    """
    Admin for the email-based User model (no username field).
    """
    list_display = ['email', 'first_name', 'last_name', 'venue', 'role', 'role_type', 'is_active', 'created_at']
    list_filter = ['role_type', 'is_active', 'is_superuser', 'created_at']
    search_fields = ['email', 'first_name', 'last_name']
    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('email', 'password_hash')
        }),
        ('Personal Info', {
            'fields': ('first_name', 'last_name', 'phone')
        }),
        ('Venue Access', {
            'fields': ('venue', 'role', 'role_type')
        }),
        ('Status', {
            'fields': ('is_active', 'is_superuser')
        }),
        ('Activity', {
            'fields': ('last_login_at', 'created_at', 'updated_at')
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'password_hash', 'is_active', 'is_superuser'),
        }),
    )

    readonly_fields = ['role_type', 'created_at', 'updated_at', 'last_login_at']
    filter_horizontal = ()


@admin.register(Permission)
class PermissionAdmin(admin.ModelAdmin):
    list_display = ['name', 'display_name', 'module', 'action', 'scope', 'is_active']
    list_filter = ['module', 'action', 'scope', 'is_active']
    search_fields = ['name', 'display_name']
    readonly_fields = ['name', 'module', 'action', 'scope']


class RolePermissionInline(admin.TabularInline):
    model = RolePermission
    extra = 0
    autocomplete_fields = ['permission']


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ['name', 'venue', 'level', 'is_system', 'is_active']
    list_filter = ['is_system', 'is_active']
    search_fields = ['name', 'venue__name']
    inlines = [RolePermissionInline]


@admin.register(UserPermission)
class UserPermissionAdmin(admin.ModelAdmin):
    list_display = ['user', 'permission', 'effect', 'granted_by', 'created_at']
    list_filter = ['effect']
    search_fields = ['user__email', 'permission__name']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['action', 'venue', 'user', 'target_type', 'target_id', 'created_at']
    list_filter = ['action', 'target_type']
    search_fields = ['action', 'user__email']
    readonly_fields = [f.name for f in AuditLog._meta.fields]
