"""
Email authentication backend for Django admin.
"""
from django.contrib.auth.backends import BaseBackend
from django.contrib.auth import get_user_model

User = get_user_model()


class EmailAuthBackend(BaseBackend):
    """
    Authenticate using email address instead of username.

    Used by the Django admin login; API requests authenticate with JWT.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        # Django admin passes email as 'username'
        email = username or kwargs.get('email')

        if not email or not password:
            return None

        user = User.objects.by_email(email)
        if user is None:
            # Hash once anyway to keep timing similar for unknown emails
            User().set_password(password)
            return None

        if user.check_password(password) and user.is_active:
            return user

        return None

    def get_user(self, user_id):
        try:
            return User.objects.get(pk=user_id)
        except User.DoesNotExist:
            return None
