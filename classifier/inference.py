"""
Inference entry point: image bytes in, verdict out.
"""

from __future__ import annotations

import random
from typing import Callable, Optional

from . import model_loader
from .decision import InferenceState, Verdict, resolve


def _classify(image_bytes: bytes):
    return model_loader.get_classifier().classify(image_bytes)


def classify_image(
    image_bytes: bytes,
    *,
    on_state: Optional[Callable[[InferenceState], None]] = None,
    rng: Optional[random.Random] = None,
) -> Verdict:
    """Classify one uploaded image.  Never raises on classifier errors.

    The first call in a process also loads the model; concurrent calls
    share that single load.
    """
    return resolve(_classify, image_bytes, on_state=on_state, rng=rng)
