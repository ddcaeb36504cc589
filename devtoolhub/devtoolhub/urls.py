"""
URL configuration for the devtoolhub project.

Browser sign-in lives under ``/accounts/`` (django-allauth); the companion
client talks to the JSON API under ``/api/``.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('core.urls')),
    path('', include('django_prometheus.urls')),  # /metrics endpoint
    path('accounts/', include('allauth.urls')),  # allauth authentication URLs
    path('api/auth/', include('accounts.urls')),
    path('api/tools/', include('tools.urls')),
    path('api/', include('library.urls')),
    path('api/passwords/', include('vault.urls')),
    path('api/convert/', include('conversion.urls')),
]
