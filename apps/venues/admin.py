"""
Django admin configuration for venues app.
"""
from django.contrib import admin
from .models import Venue


@admin.register(Venue)
class VenueAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'owner', 'is_active', 'created_at']
    list_filter = ['is_active', 'created_at']
    search_fields = ['name', 'slug', 'contact_email']
    readonly_fields = ['slug', 'created_at', 'updated_at']
