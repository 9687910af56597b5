"""
Image classification endpoint — accept an upload, return a fresh / rotten verdict.
"""

from __future__ import annotations

import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from classifier.inference import classify_image

from .helpers import ALLOWED_CONTENT_TYPES, MAX_UPLOAD_SIZE

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def classify(request):
    """Accept an uploaded image, run inference, and return the verdict.

    Workflow
    -------
    1. Validate the upload (presence, size, content-type).
    2. Read the bytes in memory; nothing is written to disk.
    3. Classify and apply the fresh / rotten decision rule.
    4. Return JSON ``{label, score, is_rotten, degraded}``.

    Classifier failures still answer 200 with a degraded verdict.
    """
    if "image" not in request.FILES:
        return JsonResponse({"error": "No image file provided."}, status=400)

    image_file = request.FILES["image"]

    if image_file.content_type not in ALLOWED_CONTENT_TYPES:
        return JsonResponse(
            {"error": f"Unsupported file type: {image_file.content_type}"},
            status=400,
        )

    if image_file.size > MAX_UPLOAD_SIZE:
        return JsonResponse(
            {"error": f"File too large ({image_file.size:,} bytes). "
                      f"Max {MAX_UPLOAD_SIZE:,}."},
            status=400,
        )

    verdict = classify_image(image_file.read())

    logger.info(
        "Classified %s → %s (score=%.4f, rotten=%s, degraded=%s)",
        image_file.name, verdict.label, verdict.score, verdict.is_rotten, verdict.degraded,
    )
    return JsonResponse(verdict.to_dict())
