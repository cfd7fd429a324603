"""
Management command to (re)provision default roles for existing venues.

Upserts the DEFAULT_ROLES system roles and syncs their permission sets, so
permissions added to the catalog after a venue was created reach its Owner
role. Idempotent and safe to re-run.
"""
from uuid import UUID

from django.core.management.base import BaseCommand, CommandError

from apps.rbac.exceptions import CatalogConfigurationError
from apps.rbac.provisioning import ProvisioningService
from apps.venues.models import Venue


class Command(BaseCommand):
    help = 'Provision default roles for a venue or all venues (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--venue',
            type=str,
            help='Venue ID or slug to provision roles for',
        )
        parser.add_argument(
            '--all',
            action='store_true',
            help='Provision roles for all venues',
        )

    def _find_venue(self, ref):
        venue = Venue.objects.by_slug(ref)
        if venue is None:
            try:
                venue = Venue.objects.filter(id=UUID(ref)).first()
            except ValueError:
                venue = None
        if venue is None:
            raise CommandError(f'Venue not found: {ref}')
        return venue

    def handle(self, *args, **options):
        venue_ref = options.get('venue')
        seed_all = options.get('all')

        if not venue_ref and not seed_all:
            raise CommandError('You must specify either --venue=<id|slug> or --all')

        if venue_ref and seed_all:
            raise CommandError('Cannot specify both --venue and --all')

        if seed_all:
            venues = list(Venue.objects.all())
            self.stdout.write(f'Provisioning roles for all {len(venues)} venues...\n')
        else:
            venues = [self._find_venue(venue_ref)]
            self.stdout.write(f'Provisioning roles for venue: {venues[0].name}\n')

        total_created = 0
        for venue in venues:
            try:
                result = ProvisioningService.provision_venue(venue)
            except CatalogConfigurationError as e:
                raise CommandError(f'{venue.slug}: {e}')

            total_created += len(result.created_roles)
            created = ', '.join(result.created_roles) or 'none'
            self.stdout.write(
                self.style.SUCCESS(f'✓ {venue.slug}: {len(result.roles)} roles synced (created: {created})')
            )

        self.stdout.write(
            self.style.SUCCESS(
                f'\n✓ Provisioning complete: {len(venues)} venue(s), {total_created} role(s) created'
            )
        )
