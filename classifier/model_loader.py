"""
Model loader and inference utilities for freshness classification.

Wraps a trained Keras model (sigmoid output) and its two-class list in a
read-only classifier session shared by every request in the process.

Architecture : frozen backbone + head  (square RGB input, /255 normalisation)
Output       : p = P(class_names[1]); the top label is class_names[1] with
               score p when p >= 0.5, else class_names[0] with score 1 - p.
Lifecycle    : loaded lazily on first use, never torn down; concurrent
               first callers trigger exactly one load.
"""

from __future__ import annotations

import io
import logging
import threading
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
import tensorflow as tf
from django.conf import settings
from PIL import Image, UnidentifiedImageError

from training.artifacts import load_class_names, load_model

from .decision import ClassificationResult
from .exceptions import ClassifierFailure

logger = logging.getLogger(__name__)

DEFAULT_CLASS_NAMES: List[str] = ["fresh", "rotten"]


class KerasFreshnessClassifier:
    """Read-only classifier session around a trained freshness model.

    Forward passes are serialised behind a lock, so one instance can be
    shared by concurrent requests.
    """

    def __init__(self, model: tf.keras.Model, class_names: List[str]):
        self.model = model
        self.class_names = list(class_names)
        self.input_size: Tuple[int, int] = tuple(model.input_shape[1:3])
        self._predict_lock = threading.Lock()

    def preprocess(self, image_bytes: bytes) -> np.ndarray:
        """Decode upload bytes into a (1, H, W, 3) float32 array in [0, 1]."""
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                img = img.convert("RGB").resize((self.input_size[1], self.input_size[0]))
                arr = np.asarray(img, dtype=np.float32) / 255.0
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise ClassifierFailure(f"Could not decode image: {exc}") from exc
        return np.expand_dims(arr, axis=0)

    def classify(self, image_bytes: bytes) -> ClassificationResult:
        """Return the top label and its confidence for one image."""
        batch = self.preprocess(image_bytes)
        try:
            with self._predict_lock:
                prob = float(self.model(batch, training=False).numpy()[0, 0])
        except Exception as exc:
            raise ClassifierFailure(f"Inference failed: {exc}") from exc

        if prob >= 0.5:
            return ClassificationResult(label=self.class_names[1], score=prob)
        return ClassificationResult(label=self.class_names[0], score=1.0 - prob)


# ── Process-wide singleton ──────────────────────────────────────────────────

_classifier: Optional[KerasFreshnessClassifier] = None
_classifier_lock = threading.Lock()


def _load_classifier() -> KerasFreshnessClassifier:
    model_path = Path(settings.FRESHCHECK_MODEL_PATH)
    classes_path = Path(settings.FRESHCHECK_CLASSES_PATH)

    try:
        model = load_model(model_path)
    except Exception as exc:
        raise ClassifierFailure(f"Could not load model from {model_path}: {exc}") from exc

    if classes_path.exists():
        class_names = load_class_names(classes_path)
    else:
        logger.warning("No class list at %s; using %s", classes_path, DEFAULT_CLASS_NAMES)
        class_names = DEFAULT_CLASS_NAMES

    logger.info("Loaded classification model from %s (classes %s)", model_path, class_names)
    return KerasFreshnessClassifier(model, class_names)


def get_classifier() -> KerasFreshnessClassifier:
    """Return the shared classifier, loading it on first use.

    A failed load is not cached; the next call tries again.
    """
    global _classifier
    if _classifier is None:
        with _classifier_lock:
            if _classifier is None:
                _classifier = _load_classifier()
    return _classifier
