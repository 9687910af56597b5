"""
Root URL configuration for the FreshCheck project.

All classifier functionality lives under ``/classifier/``.
"""

from django.urls import include, path

urlpatterns = [
    path("classifier/", include("classifier.urls")),
]
