"""
Venue API views.
"""
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, extend_schema_view
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import NotFoundError
from apps.core.permissions import HasVenuePermission, requires_permissions
from apps.venues.serializers import VenueSerializer, VenueUpdateSerializer
from apps.venues.services import VenueService


@extend_schema_view(
    get=extend_schema(
        tags=['Venues'],
        summary='Get current venue',
        description='''
Return the venue of the authenticated user.

**Required permission:** `venue.read`
        ''',
        responses={200: VenueSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    ),
    put=extend_schema(
        tags=['Venues'],
        summary='Update current venue',
        description='''
Update the venue profile.

**Required permission:** `venue.update`
        ''',
        request=VenueUpdateSerializer,
        responses={200: VenueSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT}
    )
)
class VenueMeView(APIView):
    """
    GET /v1/venues/me
    PUT /v1/venues/me
    """
    permission_classes = [IsAuthenticated, HasVenuePermission]

    def _get_venue(self, request):
        venue = request.user.venue
        if venue is None:
            raise NotFoundError('No venue is associated with this account')
        return venue

    @requires_permissions('venue.read')
    def get(self, request):
        return Response(VenueSerializer(self._get_venue(request)).data)

    @requires_permissions('venue.update')
    def put(self, request):
        venue = self._get_venue(request)

        serializer = VenueUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        VenueService.update_venue(
            venue,
            updated_by=request.user,
            request=request,
            **serializer.validated_data
        )

        return Response(VenueSerializer(venue).data)
