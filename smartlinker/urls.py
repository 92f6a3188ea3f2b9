"""URL configuration for the smartlinker app.

This module defines the URL patterns for the JSON API. It also specifies
the ``app_name`` to allow namespacing from the project URL configuration.
"""

from django.urls import path

from . import views

app_name = 'smartlinker'

urlpatterns = [
    path('api/smart-link', views.smart_link, name='smart_link'),
    path('api/remove-link', views.remove_link, name='remove_link'),
    path('api/health', views.health, name='health'),
]
