"""
Venue models.

A venue is the tenant: every role, user and business record belongs to
exactly one venue.
"""
from django.conf import settings
from django.db import models
from django.utils.text import slugify
from apps.core.models import BaseModel, BaseModelManager


class VenueManager(BaseModelManager):
    """Manager for venue queries."""

    def active(self):
        """Return only active venues."""
        return self.filter(is_active=True)

    def by_slug(self, slug):
        """Find venue by slug."""
        return self.filter(slug=slug).first()

    def unique_slug(self, name):
        """Build a slug from `name` that no existing venue uses."""
        base = slugify(name)[:90] or 'venue'
        slug = base
        suffix = 2
        while self.model.objects_with_deleted.filter(slug=slug).exists():
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug


class Venue(BaseModel):
    """
    Venue account (tenant).

    Creating a venue provisions its default system roles (see
    apps.rbac.signals). Set `_created_by_user` before the first save to bind
    that user as the venue owner.
    """

    name = models.CharField(
        max_length=255,
        help_text="Venue name"
    )
    slug = models.SlugField(
        unique=True,
        max_length=100,
        help_text="URL-friendly identifier"
    )
    description = models.TextField(
        blank=True,
        help_text="Public description of the venue"
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='owned_venues',
        help_text="User who registered the venue"
    )

    # Contact
    contact_email = models.EmailField(
        blank=True,
        help_text="Contact email"
    )
    contact_phone = models.CharField(
        max_length=32,
        blank=True,
        help_text="Contact phone number"
    )
    time_zone = models.CharField(
        max_length=64,
        default='UTC',
        help_text="IANA time zone used for scheduling"
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether the venue account is active"
    )

    objects = VenueManager()

    class Meta:
        db_table = 'venues'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.slug})"

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = Venue.objects.unique_slug(self.name)
        super().save(*args, **kwargs)
