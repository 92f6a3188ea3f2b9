"""Root URL configuration for smartlinker_tool."""

from django.urls import include, path

urlpatterns = [
    path('', include('smartlinker.urls')),
]
