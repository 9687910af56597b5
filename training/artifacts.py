"""
Model artefact store — one ``.keras`` file per trained model.

The file holds the architecture and every weight, frozen backbone
included.  Writes are not atomic: a failed ``save_model`` leaves the
target path in an unspecified state.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import tensorflow as tf

from .exceptions import ArtifactFormatError, ArtifactIOError
from .train import HEAD_NAME, get_backbone

logger = logging.getLogger(__name__)

MODEL_SUFFIX = ".keras"


def save_model(model: tf.keras.Model, path) -> Path:
    """Serialise *model* to *path* (must end in ``.keras``)."""
    path = Path(path)
    if path.suffix != MODEL_SUFFIX:
        raise ArtifactFormatError(f"Model path must end in {MODEL_SUFFIX}: {path}")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        model.save(str(path))
    except Exception as exc:
        raise ArtifactIOError(f"Could not write model to {path}: {exc}") from exc
    logger.info("Saved model to %s", path)
    return path


def load_model(path) -> tf.keras.Model:
    """Load a model written by :func:`save_model`.

    Raises
    ------
    ArtifactIOError
        If the file is missing, unreadable, or not a Keras archive.
    ArtifactFormatError
        If the archive is not a backbone + head binary classifier.
    """
    path = Path(path)
    if not path.is_file():
        raise ArtifactIOError(f"Model file not found: {path}")
    try:
        model = tf.keras.models.load_model(str(path), compile=False)
    except Exception as exc:
        raise ArtifactIOError(f"Could not read model from {path}: {exc}") from exc

    _check_architecture(model, path)
    logger.info("Loaded model from %s", path)
    return model


def _check_architecture(model, path: Path) -> None:
    names = [layer.name for layer in getattr(model, "layers", [])]
    if HEAD_NAME not in names:
        raise ArtifactFormatError(f"{path}: no '{HEAD_NAME}' sub-model (layers: {names})")
    try:
        get_backbone(model)
    except ValueError as exc:
        raise ArtifactFormatError(f"{path}: {exc}") from None
    if tuple(model.output_shape) != (None, 1):
        raise ArtifactFormatError(
            f"{path}: expected output shape (None, 1), got {model.output_shape}"
        )


# ── Class list ──────────────────────────────────────────────────────────────

def save_class_names(class_names: List[str], path) -> None:
    Path(path).write_text("\n".join(class_names) + "\n", encoding="utf-8")


def load_class_names(path) -> List[str]:
    """Read a ``classes.txt`` written by :func:`save_class_names`."""
    try:
        lines = Path(path).read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise ArtifactIOError(f"Could not read class list {path}: {exc}") from exc
    names = [line.strip() for line in lines if line.strip()]
    if len(names) != 2:
        raise ArtifactFormatError(f"{path}: expected two class names, got {names}")
    return names
