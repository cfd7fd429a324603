"""
RBAC signals.

Provisions default roles when a new venue is created (binding the creating
user as owner when one is attached) and keeps the in-memory permission
catalog index in step with the Permission table.
"""
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from apps.rbac.catalog import PermissionCatalog
from apps.rbac.models import Permission


@receiver(post_save, sender='venues.Venue')
def provision_roles_on_venue_creation(sender, instance, created, **kwargs):
    """
    Provision the default roles for a newly created venue.

    The creating user is read from `instance._created_by_user`, which
    VenueService sets before saving. Errors propagate so the surrounding
    transaction rolls back the venue as well.
    """
    if not created:
        return

    from apps.rbac.provisioning import ProvisioningService

    creator = getattr(instance, '_created_by_user', None)
    ProvisioningService.provision_venue(instance, creator=creator)


@receiver(post_save, sender=Permission)
@receiver(post_delete, sender=Permission)
def invalidate_permission_catalog(sender, **kwargs):
    """Drop the catalog index whenever a permission row changes."""
    PermissionCatalog.invalidate()
