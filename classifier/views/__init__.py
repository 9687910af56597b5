"""
View package for the FreshCheck classifier app.

Modules
-------
helpers.py        – Shared constants and helper functions.
classification.py – Image upload and fresh / rotten verdict endpoint.
training_api.py   – Training run lifecycle APIs (start, status).
"""

# Re-export all views so urls.py can do: from .views import classify, …
from .classification import classify                                  # noqa: F401
from .training_api import api_training_start, api_training_status     # noqa: F401
