"""
Management command to seed the permission catalog.

Creates or refreshes every Permission in CANONICAL_PERMISSIONS. This command
is idempotent and safe to re-run.
"""
from django.core.management.base import BaseCommand, CommandError

from apps.rbac.catalog import CANONICAL_PERMISSIONS, PermissionCatalogService
from apps.rbac.exceptions import CatalogConfigurationError
from apps.rbac.models import Permission


class Command(BaseCommand):
    help = 'Seed the permission catalog (idempotent)'

    def handle(self, *args, **options):
        """Create or update all canonical permissions."""
        existing = set(Permission.objects.values_list('name', flat=True))

        self.stdout.write('Seeding permission catalog...\n')

        try:
            permissions = PermissionCatalogService.seed_catalog(CANONICAL_PERMISSIONS)
        except CatalogConfigurationError as e:
            raise CommandError(f'Catalog configuration error: {e}')

        created = [p for p in permissions if p.name not in existing]
        for permission in created:
            self.stdout.write(self.style.SUCCESS(f'✓ Created: {permission.name}'))

        self.stdout.write(
            self.style.SUCCESS(
                f'\n✓ Seeding complete: {len(created)} created, '
                f'{len(permissions) - len(created)} refreshed'
            )
        )

        self.stdout.write('\n' + '=' * 70)
        self.stdout.write('Permissions Summary by Module:')
        self.stdout.write('=' * 70)

        for module, items in PermissionCatalogService.grouped_by_module().items():
            self.stdout.write(f'\n{module.upper()}:')
            for permission in items:
                self.stdout.write(f'  • {permission.name:<30} {permission.display_name}')

        self.stdout.write(f'\nTotal permissions: {Permission.objects.count()}')
