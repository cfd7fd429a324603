"""
URL configuration for Fiesta.
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path('admin/', admin.site.urls),

    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # Authentication endpoints
    path('v1/auth/', include('apps.rbac.urls_auth')),  # Register, login, me

    # Venue endpoints
    path('v1/', include('apps.venues.urls')),

    # RBAC endpoints
    path('v1/', include('apps.rbac.urls')),  # Permissions, roles, team members
]
