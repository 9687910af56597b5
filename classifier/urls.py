"""
URL configuration for the classifier app.

Route groups
------------
- Classify API : POST endpoint for image classification.
- Training API : start a background run, poll its status.
"""

from django.urls import path

from . import views

urlpatterns = [
    # ── Classification ──────────────────────────────────────────────────
    path("classify/", views.classify, name="classify"),

    # ── Training ────────────────────────────────────────────────────────
    path("api/training/start/", views.api_training_start, name="api_training_start"),
    path("api/training/status/", views.api_training_status, name="api_training_status"),
]
