"""
Venue serializers.
"""
from rest_framework import serializers
from apps.venues.models import Venue


class VenueSerializer(serializers.ModelSerializer):
    """Read representation of a venue."""

    owner = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = Venue
        fields = [
            'id', 'name', 'slug', 'description', 'owner',
            'contact_email', 'contact_phone', 'time_zone', 'is_active',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class VenueUpdateSerializer(serializers.Serializer):
    """Input for PUT /v1/venues/me."""

    name = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    contact_email = serializers.EmailField(required=False, allow_blank=True)
    contact_phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    time_zone = serializers.CharField(max_length=64, required=False)

    def validate_time_zone(self, value):
        from zoneinfo import available_timezones
        if value not in available_timezones():
            raise serializers.ValidationError(f"Unknown time zone: {value}")
        return value
