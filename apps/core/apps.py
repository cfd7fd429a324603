from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging

logger = logging.getLogger(__name__)


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Perform startup validation checks when Django initializes.

        Token signing depends on JWT_SECRET_KEY, so a weak or reused key
        stops the server from starting.
        """
        import sys
        if 'runserver' not in sys.argv and 'gunicorn' not in sys.argv[0]:
            # Management commands other than runserver skip validation
            if len(sys.argv) > 1 and sys.argv[1] not in ['runserver', 'test']:
                return

        self._validate_jwt_configuration()
        self._validate_security_settings()

        logger.info("Startup security validations passed")

    def _validate_jwt_configuration(self):
        """Validate JWT secret key configuration."""
        jwt_secret = getattr(settings, 'JWT_SECRET_KEY', None)
        secret_key = getattr(settings, 'SECRET_KEY', None)
        hint = (
            "Generate a strong key with: "
            "python -c \"import secrets; print(secrets.token_urlsafe(32))\""
        )

        if not jwt_secret:
            raise ImproperlyConfigured(f"JWT_SECRET_KEY must be set in environment variables. {hint}")

        if len(jwt_secret) < 32:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY must be at least 32 characters long. "
                f"Current length: {len(jwt_secret)}. {hint}"
            )

        if jwt_secret == secret_key:
            raise ImproperlyConfigured(f"JWT_SECRET_KEY must be different from SECRET_KEY. {hint}")

        unique_chars = len(set(jwt_secret))
        if unique_chars < 16:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY has insufficient entropy. "
                f"Found only {unique_chars} unique characters, need at least 16. {hint}"
            )

        logger.info("JWT configuration validated")

    def _validate_security_settings(self):
        """Validate general security settings."""
        debug = getattr(settings, 'DEBUG', False)
        secret_key = getattr(settings, 'SECRET_KEY', None)

        if not secret_key:
            raise ImproperlyConfigured("SECRET_KEY must be set in environment variables.")

        if not debug:
            weak_patterns = ['your-secret-key', 'change-me', 'insecure', '12345', 'password']
            secret_lower = secret_key.lower()
            for pattern in weak_patterns:
                if pattern in secret_lower:
                    raise ImproperlyConfigured(
                        f"SECRET_KEY appears to be a default or weak value (contains '{pattern}')."
                    )

            if not getattr(settings, 'SESSION_COOKIE_SECURE', False):
                logger.warning(
                    "SESSION_COOKIE_SECURE is not enabled in production. "
                    "Cookies should only be sent over HTTPS."
                )
