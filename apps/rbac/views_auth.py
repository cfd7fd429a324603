"""
Authentication API views.

Implements endpoints for:
- Venue registration (owner account + venue + default roles)
- Login (JWT issuing)
- Current user profile with role and effective permissions
"""
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import AuthenticationError
from apps.core.logging import SecurityLogger
from apps.rbac.serializers import LoginSerializer, RegistrationSerializer, UserSerializer
from apps.rbac.services import AuthService, RBACService
from apps.venues.serializers import VenueSerializer
from apps.venues.services import VenueService


@extend_schema(
    tags=['Authentication'],
    summary='Register a venue',
    description='''
Create an owner account and a venue in one step.

The venue is provisioned with the default roles (Owner, Manager, Staff,
Viewer) and the new account is bound to Owner. Returns a JWT token.

**No authentication required** - this is a public endpoint.
    ''',
    request=RegistrationSerializer,
    responses={
        201: OpenApiTypes.OBJECT,
        400: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Registration Request',
            value={
                'email': 'owner@salonaurora.com',
                'password': 'S3cure-Passw0rd',
                'first_name': 'Ana',
                'last_name': 'Ruiz',
                'venue_name': 'Salon Aurora'
            },
            request_only=True
        ),
    ]
)
class RegistrationView(APIView):
    """
    POST /v1/auth/register

    Register a venue with its owner account.
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        serializer = RegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = VenueService.register_venue(
            email=data['email'],
            password=data['password'],
            venue_name=data['venue_name'],
            first_name=data.get('first_name', ''),
            last_name=data.get('last_name', ''),
            phone=data.get('phone', ''),
            request=request,
        )

        return Response(
            {
                'user': UserSerializer(result['user']).data,
                'venue': VenueSerializer(result['venue']).data,
                'token': result['token'],
            },
            status=status.HTTP_201_CREATED
        )


@extend_schema(
    tags=['Authentication'],
    summary='Login',
    description='Authenticate with email and password and receive a JWT token.',
    request=LoginSerializer,
    responses={
        200: OpenApiTypes.OBJECT,
        401: OpenApiTypes.OBJECT,
    }
)
class LoginView(APIView):
    """
    POST /v1/auth/login

    Authenticate user and return JWT token.
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AuthService.login(
            email=serializer.validated_data['email'],
            password=serializer.validated_data['password'],
            request=request,
        )

        if not result:
            SecurityLogger.log_failed_login(
                email=serializer.validated_data['email'],
                ip_address=request.META.get('REMOTE_ADDR', 'unknown'),
                reason='Invalid credentials'
            )
            raise AuthenticationError('Invalid email or password')

        return Response(
            {
                'user': UserSerializer(result['user']).data,
                'token': result['token'],
            },
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Authentication'],
    summary='Current user',
    description='''
Return the authenticated user with their role and effective permissions.

Permissions are resolved from the database on every call: role permissions
plus grants, minus revokes. Owners receive the full catalog.
    ''',
    responses={200: OpenApiTypes.OBJECT}
)
class UserProfileView(APIView):
    """
    GET /v1/auth/me
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        principal = RBACService.principal_for_request(request)
        return Response({
            'user': UserSerializer(request.user).data,
            'venue': VenueSerializer(request.user.venue).data if request.user.venue_id else None,
            'role_level': principal.role_level,
            'permissions': RBACService.effective_permission_names(principal),
        })
