"""
Training API endpoints.

POST /api/training/start/    – Kick off a new training run (background).
GET  /api/training/status/   – Latest run status and per-epoch history.
"""

from __future__ import annotations

import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from training.config import TrainingConfig
from training.exceptions import ConfigurationError
from training.tasks import get_status, is_training_running, start_training

from .helpers import parse_json_body

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def api_training_start(request):
    """Start a new training run.

    Accepts a JSON body of ``TrainingConfig`` overrides; ``dataset_path``
    is required.  Returns 409 if a run is already in progress.
    """
    if is_training_running():
        return JsonResponse(
            {"error": "A training run is already in progress."},
            status=409,
        )

    try:
        overrides = parse_json_body(request)
    except ValueError:
        return JsonResponse({"error": "Invalid JSON body."}, status=400)

    try:
        config = TrainingConfig(**overrides)
        config.validate()
    except ConfigurationError as exc:
        return JsonResponse({"error": str(exc)}, status=400)
    except (TypeError, ValueError) as exc:
        return JsonResponse({"error": f"Bad config: {exc}"}, status=400)

    if not start_training(config):
        return JsonResponse(
            {"error": "Could not start training (lock contention)."},
            status=409,
        )

    return JsonResponse({"status": "started", "config": config.to_dict()}, status=202)


@require_GET
def api_training_status(request):
    """Return the latest training run status."""
    return JsonResponse({
        "training_running": is_training_running(),
        "run": get_status(),
    })
