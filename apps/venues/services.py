"""
Venue services: registration and profile updates.
"""
import logging
from typing import Any, Dict

from django.db import transaction

from apps.core.exceptions import ValidationError
from apps.rbac.models import AuditLog, User
from apps.rbac.services import AuthService
from apps.venues.models import Venue

logger = logging.getLogger(__name__)


class VenueService:
    """
    Service for venue lifecycle operations.
    """

    UPDATABLE_FIELDS = ('name', 'description', 'contact_email', 'contact_phone', 'time_zone')

    @classmethod
    @transaction.atomic
    def register_venue(cls, email: str, password: str, venue_name: str,
                       first_name: str = '', last_name: str = '', phone: str = '',
                       request=None) -> Dict[str, Any]:
        """
        Register a new venue together with its owner account.

        Creates the user, then the venue. Saving the venue provisions the
        default roles and binds the user to the Owner role. Everything runs
        in one transaction, so a provisioning failure leaves nothing behind.

        Returns:
            Dict with user, venue and token

        Raises:
            ValidationError: if the email is already registered
            CatalogConfigurationError: if provisioning fails
        """
        email = User.objects.normalize_email(email)
        if User.objects_with_deleted.filter(email__iexact=email).exists():
            raise ValidationError("Email already registered", details={'field': 'email'})

        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
        )
        user.set_password(password)
        user.save()

        venue = Venue(
            name=venue_name,
            description=f"Welcome to {venue_name}",
            contact_email=email,
            contact_phone=phone,
        )
        venue._created_by_user = user
        venue.save()

        user.refresh_from_db()
        token = AuthService.generate_jwt(user)

        AuditLog.log_action(
            action='venue_registered',
            user=user,
            venue=venue,
            target_type='Venue',
            target_id=venue.id,
            metadata={'venue_name': venue_name},
            request=request,
        )

        logger.info(
            f"Venue registered: {venue.name}",
            extra={'venue_id': str(venue.id), 'user_id': str(user.id)}
        )

        return {
            'user': user,
            'venue': venue,
            'token': token,
        }

    @classmethod
    def update_venue(cls, venue: Venue, updated_by=None, request=None, **fields) -> Venue:
        """
        Update venue profile fields and audit the change.
        """
        diff = {}
        for field in cls.UPDATABLE_FIELDS:
            if field in fields and fields[field] != getattr(venue, field):
                diff[field] = {'old': getattr(venue, field), 'new': fields[field]}
                setattr(venue, field, fields[field])

        if diff:
            venue.save(update_fields=list(diff) + ['updated_at'])
            AuditLog.log_action(
                action='venue_updated',
                user=updated_by,
                venue=venue,
                target_type='Venue',
                target_id=venue.id,
                diff=diff,
                request=request,
            )

        return venue
