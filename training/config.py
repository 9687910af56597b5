"""
Training configuration and paths.

All tuneable settings live here so they are easy to find, review,
and override without touching training logic.

Directory conventions
---------------------
::

    freshcheck/
    ├── models/
    │   ├── freshness.keras           ← Model served by the classify endpoint
    │   ├── classes.txt               ← Class list for the served model
    │   └── versions/                 ← One directory per training run
    │       └── freshness_20260224_…/
    │           ├── model.keras                ← Final saved model
    │           ├── classes.txt                ← Class list for this model
    │           ├── metrics.json               ← Validation results
    │           ├── classification_report.txt  ← Per-class report
    │           ├── config.json                ← Training config snapshot
    │           ├── training_log.json          ← Loss / accuracy per epoch
    │           ├── training_log.csv           ← Same, CSV for tooling
    │           └── model_summary.txt          ← Architecture summary
    │
    ├── datasets/                     ← Labeled image sets (on disk)
    │   └── fruits/
    │       ├── fresh/
    │       └── rotten/
    │
    └── training/                     ← This package
"""

from __future__ import annotations

import numbers
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from django.conf import settings

from .exceptions import ConfigurationError

# ── Paths ───────────────────────────────────────────────────────────────────

BASE_DIR: Path = Path(settings.BASE_DIR)
DATASETS_ROOT: Path = Path(settings.DATASETS_ROOT)
MODEL_VERSIONS_DIR: Path = Path(settings.MODEL_VERSIONS_DIR)

# Feature extractors available from ``tf.keras.applications``
SUPPORTED_BACKBONES = ("mobilenet_v2", "efficientnet_b0", "resnet50", "inception_v3")


def _is_int(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _is_real(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


@dataclass
class TrainingConfig:
    """All hyperparameters and settings for a single training run.

    The backbone is frozen for the whole run; only the classification
    head (GlobalAveragePooling2D → Dense 128 → Dropout → Dense 1 sigmoid)
    is trained, with Adam and binary cross-entropy.

    Attributes
    ----------
    dataset_path : str
        Root of the labeled image set.  Relative paths resolve against
        ``DATASETS_ROOT``.
    class_names : list[str] | None
        Explicit ``[negative, positive]`` class directories.  ``None``
        discovers the two subdirectories and sorts them.
    image_size : int
        Square input resolution in pixels (default 224).
    batch_size : int
        Mini-batch size (default 32).
    epochs : int
        Full passes over the training split (default 10).
    validation_split : float
        Fraction of each class held out for validation (default 0.2).
    seed : int | None
        Drives the split, the per-pass shuffle, and head initialisation.
    learning_rate : float
        Adam learning rate for the head (default 1e-3).
    backbone : str
        One of ``SUPPORTED_BACKBONES``.
    backbone_weights : str | None
        ``"imagenet"`` or ``None`` for random weights.
    head_units : int
        Width of the hidden dense layer (default 128).
    dropout : float
        Dropout rate before the output layer (default 0.3).
    cache_images : bool
        Keep raw image bytes in memory after the first pass.
    output_root : str | None
        Where run directories are created (default ``MODEL_VERSIONS_DIR``).
    """

    # ── Dataset ─────────────────────────────────────────────────────────
    dataset_path: str = ""
    class_names: Optional[list] = None

    # ── Hyperparameters ─────────────────────────────────────────────────
    image_size: int = 224
    batch_size: int = 32
    epochs: int = 10
    validation_split: float = 0.2
    seed: Optional[int] = 42
    learning_rate: float = 1e-3

    # ── Model ───────────────────────────────────────────────────────────
    backbone: str = "mobilenet_v2"
    backbone_weights: Optional[str] = "imagenet"
    head_units: int = 128
    dropout: float = 0.3

    # ── Runtime ─────────────────────────────────────────────────────────
    cache_images: bool = False
    output_root: Optional[str] = None

    # ── Metadata ────────────────────────────────────────────────────────
    notes: str = ""

    # ── Helpers ──────────────────────────────────────────────────────────

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` for any invalid setting."""
        if not isinstance(self.dataset_path, str) or not self.dataset_path:
            raise ConfigurationError(
                f"dataset_path must be a non-empty string, got {self.dataset_path!r}."
            )
        for name in ("image_size", "batch_size", "epochs", "head_units"):
            value = getattr(self, name)
            if not _is_int(value) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}.")
        if not _is_real(self.validation_split) or not 0.0 < self.validation_split < 1.0:
            raise ConfigurationError(
                f"validation_split must be in (0, 1), got {self.validation_split!r}."
            )
        if not _is_real(self.dropout) or not 0.0 <= self.dropout < 1.0:
            raise ConfigurationError(f"dropout must be in [0, 1), got {self.dropout!r}.")
        if not _is_real(self.learning_rate) or self.learning_rate <= 0:
            raise ConfigurationError(
                f"learning_rate must be positive, got {self.learning_rate!r}."
            )
        if self.seed is not None and not _is_int(self.seed):
            raise ConfigurationError(f"seed must be an integer or null, got {self.seed!r}.")
        if self.backbone not in SUPPORTED_BACKBONES:
            raise ConfigurationError(
                f"Unknown backbone {self.backbone!r}; "
                f"choose one of {', '.join(SUPPORTED_BACKBONES)}."
            )
        if self.backbone_weights not in ("imagenet", None):
            raise ConfigurationError(
                f"backbone_weights must be 'imagenet' or null, got {self.backbone_weights!r}."
            )
        if self.class_names is not None:
            names = self.class_names
            if (
                not isinstance(names, (list, tuple))
                or not all(isinstance(n, str) and n for n in names)
                or len(names) != 2
                or len(set(names)) != 2
            ):
                raise ConfigurationError(
                    f"class_names must name exactly two distinct classes, got {names!r}."
                )

    def resolve_dataset_path(self) -> Path:
        """Return the dataset root, resolving relative paths against ``DATASETS_ROOT``."""
        path = Path(self.dataset_path).expanduser()
        if not path.is_absolute():
            path = DATASETS_ROOT / path
        return path

    def model_output_dir(self, run_name: str) -> Path:
        """Return (and create) the output directory for a named run."""
        root = Path(self.output_root) if self.output_root else MODEL_VERSIONS_DIR
        out = root / run_name
        out.mkdir(parents=True, exist_ok=True)
        return out

    def to_dict(self) -> dict:
        """Serialise to a JSON-safe dict (for saving alongside artefacts)."""
        data = asdict(self)
        if data["class_names"] is not None:
            data["class_names"] = list(data["class_names"])
        return data
