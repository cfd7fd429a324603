"""
RBAC app configuration.
"""
from django.apps import AppConfig


class RbacConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.rbac'
    verbose_name = 'Access Control'

    def ready(self):
        """Connect venue provisioning and catalog invalidation signals."""
        import apps.rbac.signals  # noqa
