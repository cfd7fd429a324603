"""
RBAC models for venue-scoped access control.

Implements:
- User identity with its venue, role binding and permission overlay
- Permission (global catalog shared by all venues)
- Role (per-venue role definitions, system or custom)
- RolePermission (maps permissions to roles)
- UserPermission (per-user grant/revoke overrides)
- AuditLog (audit trail for RBAC mutations and provisioning)
"""
import logging
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models, transaction
from django.db.models import Q
from django.contrib.auth.hashers import make_password, check_password
from apps.core.models import BaseModel, BaseModelManager

logger = logging.getLogger(__name__)


ROLE_TYPE_OWNER = 'owner'
ROLE_TYPE_CUSTOM = 'custom'

ROLE_TYPE_CHOICES = [
    ('owner', 'Owner'),
    ('manager', 'Manager'),
    ('staff', 'Staff'),
    ('viewer', 'Viewer'),
    ('custom', 'Custom'),
]


class UserManager(BaseModelManager):
    """
    Manager for User queries.

    Compatible with Django's authentication system and admin interface.
    """

    def active(self):
        """Return only active users."""
        return self.filter(is_active=True)

    def for_venue(self, venue):
        """Return users belonging to a venue."""
        return self.filter(venue=venue)

    def by_email(self, email):
        """Find user by email."""
        return self.filter(email__iexact=self.normalize_email(email)).first()

    def create_user(self, email, password=None, **extra_fields):
        """
        Create a new user with hashed password.

        This method is compatible with Django's authentication system.
        """
        if not email:
            raise ValueError('Email address is required')

        email = self.normalize_email(email)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('is_superuser', False)

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """
        Create a platform superuser (no venue).

        Required for Django's createsuperuser command.
        """
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)

        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True')

        return self.create_user(email, password, **extra_fields)

    def normalize_email(self, email):
        """
        Normalize the email address by lowercasing the domain part.
        """
        email = email or ''
        try:
            email_name, domain_part = email.strip().rsplit('@', 1)
        except ValueError:
            pass
        else:
            email = email_name + '@' + domain_part.lower()
        return email

    def get_by_natural_key(self, email):
        """Get user by natural key (email)."""
        return self.get(**{self.model.USERNAME_FIELD: email})


class User(BaseModel):
    """
    User identity bound to exactly one venue.

    Carries the permission overlay: one role binding plus grant/revoke
    overrides (UserPermission). Platform superusers have no venue.

    This is the AUTH_USER_MODEL for the entire application, including Django admin.
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        help_text="User email address (unique globally)"
    )
    password_hash = models.CharField(
        max_length=255,
        help_text="Hashed password",
        db_column='password_hash'
    )
    first_name = models.CharField(
        max_length=100,
        blank=True,
        help_text="User first name"
    )
    last_name = models.CharField(
        max_length=100,
        blank=True,
        help_text="User last name"
    )
    phone = models.CharField(
        max_length=32,
        blank=True,
        help_text="Contact phone number"
    )

    # Venue membership and role binding
    venue = models.ForeignKey(
        'venues.Venue',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='users',
        db_index=True,
        help_text="Venue this user belongs to (null only for platform superusers)"
    )
    role = models.ForeignKey(
        'rbac.Role',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='users',
        help_text="Role bound to this user within their venue"
    )
    role_type = models.CharField(
        max_length=20,
        choices=ROLE_TYPE_CHOICES,
        default='viewer',
        db_index=True,
        help_text="Coarse role classification; 'owner' bypasses permission checks"
    )

    # Status
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether user account is active"
    )
    is_superuser = models.BooleanField(
        default=False,
        help_text="Platform administrator (Django admin only)"
    )
    last_login_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last login timestamp"
    )

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['venue', 'is_active'], name='users_venue_active_idx'),
            models.Index(fields=['venue', 'role'], name='users_venue_role_idx'),
        ]

    def __str__(self):
        return self.email

    @property
    def password(self):
        """Alias for password_hash, expected by Django admin."""
        return self.password_hash

    @password.setter
    def password(self, value):
        self.password_hash = value

    def check_password(self, raw_password):
        """Check if provided password matches stored hash."""
        return check_password(raw_password, self.password_hash)

    def set_password(self, raw_password):
        """Set user password (hashes automatically)."""
        self.password_hash = make_password(raw_password)

    def get_full_name(self):
        """Return full name or email if name not set."""
        if self.first_name or self.last_name:
            return f"{self.first_name} {self.last_name}".strip()
        return self.email

    def update_last_login(self):
        """Update last_login_at to current time."""
        from django.utils import timezone
        self.last_login_at = timezone.now()
        self.save(update_fields=['last_login_at', 'updated_at'])

    @property
    def is_owner(self):
        return self.role_type == ROLE_TYPE_OWNER

    @property
    def is_authenticated(self):
        """Always True for User instances (Django auth compatibility)."""
        return True

    @property
    def is_anonymous(self):
        """Always False for User instances (Django auth compatibility)."""
        return False

    @property
    def is_staff(self):
        """Superusers get Django admin access."""
        return self.is_superuser

    def has_perm(self, perm, obj=None):
        """Django admin permission hook; venue permissions go through RBACService."""
        return self.is_superuser

    def has_perms(self, perm_list, obj=None):
        return self.is_superuser

    def has_module_perms(self, app_label):
        return self.is_superuser

    def natural_key(self):
        return (self.email,)


class PermissionManager(BaseModelManager):
    """Manager for Permission queries."""

    def active(self):
        """Return permissions that take part in authorization."""
        return self.filter(is_active=True)

    def by_name(self, name):
        """Find permission by its dotted name."""
        return self.filter(name=name).first()

    def by_module(self, module):
        """Get all permissions in a module."""
        return self.filter(module=module)


class Permission(BaseModel):
    """
    Global permission catalog entry, shared across all venues.

    Names are dotted `<module>.<action>[.<scope>]` strings. Entries are
    seeded from CANONICAL_PERMISSIONS and never deleted, only deactivated.
    """

    MODULE_CHOICES = [
        ('events', 'Events'),
        ('clients', 'Clients'),
        ('partners', 'Partners'),
        ('finance', 'Finance'),
        ('payments', 'Payments'),
        ('tasks', 'Tasks'),
        ('reminders', 'Reminders'),
        ('users', 'Users & Team'),
        ('roles', 'Roles'),
        ('venue', 'Venue'),
        ('reports', 'Reports'),
        ('settings', 'Settings'),
    ]

    ACTION_CHOICES = [
        ('create', 'Create'),
        ('read', 'Read'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('manage', 'Manage'),
        ('export', 'Export'),
    ]

    SCOPE_OWN = 'own'
    SCOPE_TEAM = 'team'
    SCOPE_ALL = 'all'

    SCOPE_CHOICES = [
        (SCOPE_OWN, 'Own'),
        (SCOPE_TEAM, 'Team'),
        (SCOPE_ALL, 'All'),
    ]

    name = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        help_text="Unique permission name (e.g., 'events.read.all')"
    )
    display_name = models.CharField(
        max_length=255,
        help_text="Human-readable label (e.g., 'View All Events')"
    )
    description = models.CharField(
        max_length=200,
        blank=True,
        help_text="What this permission grants"
    )
    module = models.CharField(
        max_length=20,
        choices=MODULE_CHOICES,
        db_index=True,
        help_text="Functional area this permission belongs to"
    )
    action = models.CharField(
        max_length=20,
        choices=ACTION_CHOICES,
        help_text="Operation this permission allows"
    )
    scope = models.CharField(
        max_length=10,
        choices=SCOPE_CHOICES,
        default=SCOPE_ALL,
        help_text="Breadth of the grant: own records, team or all"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive permissions are treated as unknown"
    )

    objects = PermissionManager()

    class Meta:
        db_table = 'permissions'
        ordering = ['module', 'name']
        constraints = [
            models.UniqueConstraint(
                fields=['module', 'action', 'scope'],
                name='unique_permission_triple'
            ),
        ]

    def __str__(self):
        return self.name


class RoleManager(BaseModelManager):
    """Manager for Role queries."""

    def for_venue(self, venue):
        """Get all roles for a venue."""
        return self.filter(venue=venue)

    def system_roles(self, venue):
        """Get system roles for a venue."""
        return self.filter(venue=venue, is_system=True)

    def custom_roles(self, venue):
        """Get custom roles for a venue."""
        return self.filter(venue=venue, is_system=False)

    def by_name(self, venue, name):
        """Get role by name within a venue."""
        return self.filter(venue=venue, name=name).first()


class Role(BaseModel):
    """
    Per-venue role definition.

    System roles are provisioned from DEFAULT_ROLES when a venue is created
    and cannot be edited or deleted; venues can add custom roles.
    """

    venue = models.ForeignKey(
        'venues.Venue',
        on_delete=models.CASCADE,
        related_name='roles',
        db_index=True,
        help_text="Venue this role belongs to"
    )
    name = models.CharField(
        max_length=50,
        help_text="Role name (e.g., 'Owner', 'Event Coordinator')"
    )
    description = models.CharField(
        max_length=200,
        blank=True,
        help_text="Role description"
    )
    is_system = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether this role was provisioned from the default template"
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Inactive roles contribute no permissions"
    )
    level = models.PositiveSmallIntegerField(
        default=50,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text="Hierarchy level 0-100 (higher is more privileged)"
    )
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='roles_created',
        help_text="User who created this role (null for system roles)"
    )
    permissions = models.ManyToManyField(
        Permission,
        through='RolePermission',
        related_name='roles',
        blank=True
    )

    objects = RoleManager()

    class Meta:
        db_table = 'roles'
        ordering = ['-level', 'name']
        constraints = [
            models.UniqueConstraint(
                fields=['venue', 'name'],
                condition=Q(deleted_at__isnull=True),
                name='unique_active_role_name_per_venue'
            ),
        ]
        indexes = [
            models.Index(fields=['venue', 'is_system'], name='roles_venue_system_idx'),
            models.Index(fields=['venue', 'level'], name='roles_venue_level_idx'),
        ]

    def __str__(self):
        return f"{self.venue.name} - {self.name}"

    def get_permission_ids(self):
        """Return the ids of the permissions granted by this role."""
        return frozenset(
            self.role_permissions.values_list('permission_id', flat=True)
        )

    def get_permissions(self):
        """Get all permissions granted by this role."""
        return Permission.objects.filter(
            role_permissions__role=self
        ).distinct()


class RolePermissionManager(models.Manager):
    """Manager for RolePermission queries."""

    def for_role(self, role):
        return self.filter(role=role)

    def for_venue(self, venue):
        return self.filter(role__venue=venue)


class RolePermission(BaseModel):
    """
    Maps permissions to roles. Rows are removed with hard_delete.
    """

    role = models.ForeignKey(
        Role,
        on_delete=models.CASCADE,
        related_name='role_permissions',
        db_index=True,
        help_text="Role that grants this permission"
    )
    permission = models.ForeignKey(
        Permission,
        on_delete=models.CASCADE,
        related_name='role_permissions',
        db_index=True,
        help_text="Permission being granted"
    )

    objects = RolePermissionManager()

    class Meta:
        db_table = 'role_permissions'
        unique_together = [('role', 'permission')]
        ordering = ['role', 'permission']

    def __str__(self):
        return f"{self.role.name} -> {self.permission.name}"


class UserPermissionManager(models.Manager):
    """Manager for UserPermission queries."""

    def for_user(self, user):
        return self.filter(user=user)

    def grants(self, user):
        return self.filter(user=user, effect=UserPermission.EFFECT_GRANT)

    def revokes(self, user):
        return self.filter(user=user, effect=UserPermission.EFFECT_REVOKE)


class UserPermission(BaseModel):
    """
    Per-user permission override.

    A grant adds the permission on top of the role; a revoke removes it from
    the effective set no matter where it came from. The same permission may
    be both granted and revoked, in which case the revoke wins. Rows are
    removed with hard_delete.
    """

    EFFECT_GRANT = 'grant'
    EFFECT_REVOKE = 'revoke'

    EFFECT_CHOICES = [
        (EFFECT_GRANT, 'Grant'),
        (EFFECT_REVOKE, 'Revoke'),
    ]

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='permission_overrides',
        db_index=True,
        help_text="User this override applies to"
    )
    permission = models.ForeignKey(
        Permission,
        on_delete=models.CASCADE,
        related_name='user_overrides',
        db_index=True,
        help_text="Permission being granted or revoked"
    )
    effect = models.CharField(
        max_length=10,
        choices=EFFECT_CHOICES,
        help_text="grant adds to the effective set, revoke removes from it"
    )
    reason = models.TextField(
        blank=True,
        help_text="Reason for this override"
    )
    granted_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='permission_overrides_made',
        help_text="User who created this override"
    )

    objects = UserPermissionManager()

    class Meta:
        db_table = 'user_permissions'
        unique_together = [('user', 'permission', 'effect')]
        ordering = ['user', 'permission']
        indexes = [
            models.Index(fields=['user', 'effect'], name='user_perms_user_effect_idx'),
        ]

    def __str__(self):
        return f"{self.effect.upper()} {self.permission.name} to {self.user.email}"


class AuditLogManager(models.Manager):
    """Manager for AuditLog queries with venue scoping."""

    def for_venue(self, venue):
        return self.filter(venue=venue)

    def for_user(self, user):
        return self.filter(user=user)

    def by_action(self, action):
        return self.filter(action=action)

    def by_target(self, target_type, target_id=None):
        qs = self.filter(target_type=target_type)
        if target_id:
            qs = qs.filter(target_id=target_id)
        return qs


class AuditLog(BaseModel):
    """
    Audit trail for RBAC mutations and venue provisioning.
    """

    venue = models.ForeignKey(
        'venues.Venue',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='audit_logs',
        db_index=True,
        help_text="Venue this action belongs to (null for platform-level)"
    )
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        db_index=True,
        help_text="User who performed the action (null for system actions)"
    )

    action = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Action performed (e.g., 'role_created', 'permission_revoked')"
    )
    target_type = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Type of target entity (e.g., 'Role', 'User')"
    )
    target_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="ID of target entity"
    )
    diff = models.JSONField(
        default=dict,
        blank=True,
        help_text="Before/after changes in JSON format"
    )

    ip_address = models.GenericIPAddressField(
        null=True,
        blank=True,
        help_text="IP address of the request"
    )
    user_agent = models.TextField(
        blank=True,
        help_text="User agent string"
    )
    request_id = models.CharField(
        max_length=64,
        blank=True,
        db_index=True,
        help_text="Request ID for tracing"
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Additional context metadata"
    )

    objects = AuditLogManager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['venue', 'created_at'], name='audit_venue_created_idx'),
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['target_type', 'target_id'], name='audit_target_idx'),
        ]

    def __str__(self):
        user_str = self.user.email if self.user else 'System'
        return f"{self.venue_id or 'Platform'} - {user_str} - {self.action}"

    @classmethod
    def log_action(cls, action, user=None, venue=None, target_type=None,
                   target_id=None, diff=None, metadata=None, request=None):
        """
        Convenience method to create an audit log entry.

        Failures are logged and swallowed so that auditing never breaks the
        operation being audited. The insert runs in a savepoint so a failed
        write leaves the surrounding transaction usable.

        Args:
            action: Action being performed
            user: User performing the action
            venue: Venue context
            target_type: Type of target entity
            target_id: ID of target entity
            diff: Before/after changes
            metadata: Additional context
            request: Django request object (for IP, user agent, request ID)

        Returns:
            AuditLog instance or None
        """
        if user is not None and not getattr(user, 'pk', None):
            user = None

        log_data = {
            'action': action,
            'user': user,
            'venue': venue,
            'target_type': target_type or '',
            'target_id': target_id,
            'diff': diff or {},
            'metadata': metadata or {},
        }

        if request is not None:
            log_data['ip_address'] = cls._get_client_ip(request)
            log_data['user_agent'] = request.META.get('HTTP_USER_AGENT', '')
            log_data['request_id'] = getattr(request, 'request_id', None) or ''

        try:
            with transaction.atomic():
                return cls.objects.create(**log_data)
        except Exception as e:
            logger.error(
                f"Failed to create audit log: {str(e)}",
                extra={'action': action, 'venue_id': str(venue.id) if venue else None},
                exc_info=True
            )
            return None

    @staticmethod
    def _get_client_ip(request):
        """Extract client IP from request."""
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            ip = x_forwarded_for.split(',')[0].strip()
        else:
            ip = request.META.get('REMOTE_ADDR')
        return ip or None
