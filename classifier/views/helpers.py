"""
Shared constants and helper functions used across views.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from django.conf import settings

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_UPLOAD_SIZE: int = settings.MAX_UPLOAD_SIZE

ALLOWED_CONTENT_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/bmp",
    "image/gif",
    "image/webp",
})


# ---------------------------------------------------------------------------
# Utility functions
# ---------------------------------------------------------------------------

def parse_json_body(request) -> Dict[str, Any]:
    """Parse a JSON object request body.

    Raises ``ValueError`` if the body is not valid JSON or not an object.
    An empty body parses to ``{}``.
    """
    if not request.body:
        return {}
    data = json.loads(request.body)
    if not isinstance(data, dict):
        raise ValueError("JSON body must be an object.")
    return data
