"""
Venue API URLs.
"""
from django.urls import path
from apps.venues.views import VenueMeView

app_name = 'venues'

urlpatterns = [
    path('venues/me', VenueMeView.as_view(), name='venue-me'),
]
