import uuid
import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('venues', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Permission',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, db_index=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('name', models.CharField(db_index=True, help_text="Unique permission name (e.g., 'events.read.all')", max_length=100, unique=True)),
                ('display_name', models.CharField(help_text="Human-readable label (e.g., 'View All Events')", max_length=255)),
                ('description', models.CharField(blank=True, help_text='What this permission grants', max_length=200)),
                ('module', models.CharField(choices=[('events', 'Events'), ('clients', 'Clients'), ('partners', 'Partners'), ('finance', 'Finance'), ('payments', 'Payments'), ('tasks', 'Tasks'), ('reminders', 'Reminders'), ('users', 'Users & Team'), ('roles', 'Roles'), ('venue', 'Venue'), ('reports', 'Reports'), ('settings', 'Settings')], db_index=True, help_text='Functional area this permission belongs to', max_length=20)),
                ('action', models.CharField(choices=[('create', 'Create'), ('read', 'Read'), ('update', 'Update'), ('delete', 'Delete'), ('manage', 'Manage'), ('export', 'Export')], help_text='Operation this permission allows', max_length=20)),
                ('scope', models.CharField(choices=[('own', 'Own'), ('team', 'Team'), ('all', 'All')], default='all', help_text='Breadth of the grant: own records, team or all', max_length=10)),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Inactive permissions are treated as unknown')),
            ],
            options={
                'db_table': 'permissions',
                'ordering': ['module', 'name'],
            },
        ),
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, db_index=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('email', models.EmailField(db_index=True, help_text='User email address (unique globally)', max_length=254, unique=True)),
                ('password_hash', models.CharField(db_column='password_hash', help_text='Hashed password', max_length=255)),
                ('first_name', models.CharField(blank=True, help_text='User first name', max_length=100)),
                ('last_name', models.CharField(blank=True, help_text='User last name', max_length=100)),
                ('phone', models.CharField(blank=True, help_text='Contact phone number', max_length=32)),
                ('role_type', models.CharField(choices=[('owner', 'Owner'), ('manager', 'Manager'), ('staff', 'Staff'), ('viewer', 'Viewer'), ('custom', 'Custom')], db_index=True, default='viewer', help_text="Coarse role classification; 'owner' bypasses permission checks", max_length=20)),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Whether user account is active')),
                ('is_superuser', models.BooleanField(default=False, help_text='Platform administrator (Django admin only)')),
                ('last_login_at', models.DateTimeField(blank=True, help_text='Last login timestamp', null=True)),
                ('venue', models.ForeignKey(blank=True, help_text='Venue this user belongs to (null only for platform superusers)', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='users', to='venues.venue')),
            ],
            options={
                'db_table': 'users',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Role',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, db_index=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('name', models.CharField(help_text="Role name (e.g., 'Owner', 'Event Coordinator')", max_length=50)),
                ('description', models.CharField(blank=True, help_text='Role description', max_length=200)),
                ('is_system', models.BooleanField(db_index=True, default=False, help_text='Whether this role was provisioned from the default template')),
                ('is_active', models.BooleanField(default=True, help_text='Inactive roles contribute no permissions')),
                ('level', models.PositiveSmallIntegerField(default=50, help_text='Hierarchy level 0-100 (higher is more privileged)', validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('created_by', models.ForeignKey(blank=True, help_text='User who created this role (null for system roles)', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='roles_created', to='rbac.user')),
                ('venue', models.ForeignKey(help_text='Venue this role belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='roles', to='venues.venue')),
            ],
            options={
                'db_table': 'roles',
                'ordering': ['-level', 'name'],
            },
        ),
        migrations.CreateModel(
            name='RolePermission',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, db_index=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('permission', models.ForeignKey(help_text='Permission being granted', on_delete=django.db.models.deletion.CASCADE, related_name='role_permissions', to='rbac.permission')),
                ('role', models.ForeignKey(help_text='Role that grants this permission', on_delete=django.db.models.deletion.CASCADE, related_name='role_permissions', to='rbac.role')),
            ],
            options={
                'db_table': 'role_permissions',
                'ordering': ['role', 'permission'],
                'unique_together': {('role', 'permission')},
            },
        ),
        migrations.AddField(
            model_name='role',
            name='permissions',
            field=models.ManyToManyField(blank=True, related_name='roles', through='rbac.RolePermission', to='rbac.permission'),
        ),
        migrations.AddField(
            model_name='user',
            name='role',
            field=models.ForeignKey(blank=True, help_text='Role bound to this user within their venue', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='users', to='rbac.role'),
        ),
        migrations.CreateModel(
            name='UserPermission',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, db_index=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('effect', models.CharField(choices=[('grant', 'Grant'), ('revoke', 'Revoke')], help_text='grant adds to the effective set, revoke removes from it', max_length=10)),
                ('reason', models.TextField(blank=True, help_text='Reason for this override')),
                ('granted_by', models.ForeignKey(blank=True, help_text='User who created this override', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='permission_overrides_made', to='rbac.user')),
                ('permission', models.ForeignKey(help_text='Permission being granted or revoked', on_delete=django.db.models.deletion.CASCADE, related_name='user_overrides', to='rbac.permission')),
                ('user', models.ForeignKey(help_text='User this override applies to', on_delete=django.db.models.deletion.CASCADE, related_name='permission_overrides', to='rbac.user')),
            ],
            options={
                'db_table': 'user_permissions',
                'ordering': ['user', 'permission'],
                'unique_together': {('user', 'permission', 'effect')},
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, db_index=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('action', models.CharField(db_index=True, help_text="Action performed (e.g., 'role_created', 'permission_revoked')", max_length=100)),
                ('target_type', models.CharField(db_index=True, help_text="Type of target entity (e.g., 'Role', 'User')", max_length=50)),
                ('target_id', models.UUIDField(blank=True, db_index=True, help_text='ID of target entity', null=True)),
                ('diff', models.JSONField(blank=True, default=dict, help_text='Before/after changes in JSON format')),
                ('ip_address', models.GenericIPAddressField(blank=True, help_text='IP address of the request', null=True)),
                ('user_agent', models.TextField(blank=True, help_text='User agent string')),
                ('request_id', models.CharField(blank=True, db_index=True, help_text='Request ID for tracing', max_length=64)),
                ('metadata', models.JSONField(blank=True, default=dict, help_text='Additional context metadata')),
                ('user', models.ForeignKey(blank=True, help_text='User who performed the action (null for system actions)', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='audit_logs', to='rbac.user')),
                ('venue', models.ForeignKey(blank=True, help_text='Venue this action belongs to (null for platform-level)', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='audit_logs', to='venues.venue')),
            ],
            options={
                'db_table': 'audit_logs',
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='permission',
            constraint=models.UniqueConstraint(fields=('module', 'action', 'scope'), name='unique_permission_triple'),
        ),
        migrations.AddConstraint(
            model_name='role',
            constraint=models.UniqueConstraint(condition=models.Q(('deleted_at__isnull', True)), fields=('venue', 'name'), name='unique_active_role_name_per_venue'),
        ),
        migrations.AddIndex(
            model_name='user',
            index=models.Index(fields=['venue', 'is_active'], name='users_venue_active_idx'),
        ),
        migrations.AddIndex(
            model_name='user',
            index=models.Index(fields=['venue', 'role'], name='users_venue_role_idx'),
        ),
        migrations.AddIndex(
            model_name='role',
            index=models.Index(fields=['venue', 'is_system'], name='roles_venue_system_idx'),
        ),
        migrations.AddIndex(
            model_name='role',
            index=models.Index(fields=['venue', 'level'], name='roles_venue_level_idx'),
        ),
        migrations.AddIndex(
            model_name='userpermission',
            index=models.Index(fields=['user', 'effect'], name='user_perms_user_effect_idx'),
        ),
        migrations.AddIndex(
            model_name='auditlog',
            index=models.Index(fields=['venue', 'created_at'], name='audit_venue_created_idx'),
        ),
        migrations.AddIndex(
            model_name='auditlog',
            index=models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
        ),
        migrations.AddIndex(
            model_name='auditlog',
            index=models.Index(fields=['target_type', 'target_id'], name='audit_target_idx'),
        ),
    ]
