"""
Custom DRF authentication classes.
"""
from rest_framework.authentication import BaseAuthentication, get_authorization_header
from rest_framework import exceptions


class JWTAuthentication(BaseAuthentication):
    """
    Bearer-token authentication backed by AuthService.

    The token carries only the user id. Role and permissions are never read
    from the token; they are resolved from the database on every request.
    """

    keyword = 'Bearer'

    def authenticate(self, request):
        """
        Return (user, token) for a valid bearer token.

        Returns None when no Authorization header is present so that public
        endpoints keep working; raises AuthenticationFailed for a malformed or
        invalid token.
        """
        from apps.rbac.services import AuthService

        auth = get_authorization_header(request).split()
        if not auth or auth[0].lower() != self.keyword.lower().encode():
            return None

        if len(auth) != 2:
            raise exceptions.AuthenticationFailed('Invalid Authorization header.')

        try:
            token = auth[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed('Invalid token encoding.')

        user = AuthService.get_user_from_jwt(token)
        if user is None:
            raise exceptions.AuthenticationFailed('Invalid or expired token.')

        return (user, token)

    def authenticate_header(self, request):
        return self.keyword
