"""
Dataset loading from a two-class directory tree.

The label of every image is the directory it lives in — never inferred
from content.  The class list is resolved once per run (explicitly from
the config, or by discovering the two subdirectories) and then passed
around as plain data, so everything below ``discover_samples`` works
without touching the filesystem layout again.

Public API
----------
discover_samples – Class directories → sorted ``Sample`` list.
split_samples    – Reproducible, stratified train / validation partition.
BatchSequence    – Lazy, restartable iterable of ``(images, labels)`` batches.
load_datasets    – Everything above in one call (convenience wrapper).

Usage::

    from training.config import TrainingConfig
    from training.data   import load_datasets

    config = TrainingConfig(dataset_path="fruits")
    train_seq, val_seq, class_names, counts = load_datasets(config)
"""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Sequence

import numpy as np
import tensorflow as tf
from sklearn.model_selection import train_test_split
from sklearn.utils import check_random_state

from .config import TrainingConfig
from .exceptions import DatasetError, DecodeWarning

logger = logging.getLogger(__name__)

# Formats tf.io.decode_image understands
IMG_EXTS = frozenset({".jpg", ".jpeg", ".png", ".bmp", ".gif"})


@dataclass(frozen=True)
class Sample:
    """One image file and the index of the class directory it belongs to."""

    path: Path
    label: int


# ═══════════════════════════════════════════════════════════════════════════
# Discovery
# ═══════════════════════════════════════════════════════════════════════════

def _list_images(class_dir: Path) -> list[Path]:
    return sorted(
        f for f in class_dir.iterdir()
        if f.is_file() and f.suffix.lower() in IMG_EXTS
    )


def discover_samples(
    root: Path,
    class_names: Optional[Sequence[str]] = None,
) -> tuple[list[str], list[Sample]]:
    """Resolve the class list under *root* and collect every image.

    Parameters
    ----------
    root : Path
        Dataset root containing one subdirectory per class.
    class_names : sequence of str, optional
        Explicit ``[negative, positive]`` directory names.  When omitted,
        the subdirectories of *root* are discovered and sorted.

    Returns
    -------
    (class_names, samples)
        The two class names and all samples, sorted by path.

    Raises
    ------
    DatasetError
        If *root* is missing, does not resolve to exactly two classes,
        or a class directory is missing or holds no images.
    """
    root = Path(root)
    if not root.is_dir():
        raise DatasetError(f"Dataset directory not found: {root}")

    if class_names is None:
        class_names = sorted(d.name for d in root.iterdir() if d.is_dir())
        if len(class_names) != 2:
            raise DatasetError(
                f"Expected exactly two class subdirectories in {root}, "
                f"found {len(class_names)}: {class_names}"
            )
    class_names = list(class_names)

    samples: list[Sample] = []
    for idx, name in enumerate(class_names):
        class_dir = root / name
        if not class_dir.is_dir():
            raise DatasetError(f"Class directory not found: {class_dir}")
        images = _list_images(class_dir)
        if not images:
            raise DatasetError(f"Class directory is empty: {class_dir}")
        samples.extend(Sample(path, idx) for path in images)
        logger.info("Class %d '%s': %d images", idx, name, len(images))

    samples.sort(key=lambda s: str(s.path))
    return class_names, samples


# ═══════════════════════════════════════════════════════════════════════════
# Train / validation split
# ═══════════════════════════════════════════════════════════════════════════

def split_samples(
    samples: Sequence[Sample],
    validation_fraction: float,
    seed: Optional[int] = None,
) -> tuple[list[Sample], list[Sample]]:
    """Partition *samples* into disjoint training and validation lists.

    Stratified: each class goes through its own ``train_test_split`` with
    ``test_size = round(n * validation_fraction)``, clamped so that every
    class with two or more images keeps at least one image on each side.
    A single-image class goes to training.  All calls draw from one
    random state seeded by *seed*, and samples are sorted by path first,
    so input order does not matter.

    Raises
    ------
    DatasetError
        If either side of the split ends up empty.
    """
    if not 0.0 < validation_fraction < 1.0:
        raise ValueError(f"validation_fraction must be in (0, 1), got {validation_fraction}")

    random_state = check_random_state(seed)
    ordered = sorted(samples, key=lambda s: str(s.path))

    train: list[Sample] = []
    val: list[Sample] = []
    for label in sorted({s.label for s in ordered}):
        members = [s for s in ordered if s.label == label]
        if len(members) < 2:
            train.extend(members)
            continue
        n_val = int(round(len(members) * validation_fraction))
        n_val = min(max(n_val, 1), len(members) - 1)
        class_train, class_val = train_test_split(
            members, test_size=n_val, random_state=random_state,
        )
        train.extend(class_train)
        val.extend(class_val)

    if not train or not val:
        raise DatasetError(
            f"Split produced train={len(train)}, validation={len(val)}; "
            f"add more images or change validation_split."
        )

    train.sort(key=lambda s: str(s.path))
    val.sort(key=lambda s: str(s.path))
    return train, val


# ═══════════════════════════════════════════════════════════════════════════
# Batch sequence
# ═══════════════════════════════════════════════════════════════════════════

class BatchSequence:
    """Lazy, finite, restartable sequence of ``(images, labels)`` batches.

    ``images`` is float32 ``[b, size, size, 3]`` in ``[0, 1]``; ``labels``
    is float32 ``[b, 1]``.  Iterating again starts a new pass.  With
    ``shuffle=True`` every pass draws a new order from the sequence's own
    seeded generator; otherwise the order is the same on every pass.

    A batch containing an unreadable image is skipped with a
    :class:`DecodeWarning`.
    """

    def __init__(
        self,
        samples: Sequence[Sample],
        image_size: int,
        batch_size: int,
        *,
        shuffle: bool = False,
        seed: Optional[int] = None,
        cache_images: bool = False,
    ):
        self.samples = list(samples)
        self.image_size = image_size
        self.batch_size = batch_size
        self.shuffle = shuffle
        self.cache_images = cache_images
        self._rng = np.random.default_rng(seed)
        self._cache: dict[Path, bytes] = {}

    def __len__(self) -> int:
        return math.ceil(len(self.samples) / self.batch_size)

    @property
    def num_samples(self) -> int:
        return len(self.samples)

    def __iter__(self) -> Iterator[tuple[np.ndarray, np.ndarray]]:
        if self.shuffle:
            order = self._rng.permutation(len(self.samples))
        else:
            order = np.arange(len(self.samples))

        for start in range(0, len(order), self.batch_size):
            batch = [self.samples[i] for i in order[start:start + self.batch_size]]
            try:
                images = np.stack([self._load_image(s.path) for s in batch])
            except (OSError, tf.errors.InvalidArgumentError) as exc:
                message = f"Skipping batch at offset {start}: {exc}"
                logger.warning("%s", message)
                warnings.warn(message, DecodeWarning, stacklevel=2)
                continue
            labels = np.array([[s.label] for s in batch], dtype=np.float32)
            yield images, labels

    def _read(self, path: Path) -> bytes:
        if path in self._cache:
            return self._cache[path]
        raw = path.read_bytes()
        if self.cache_images:
            self._cache[path] = raw
        return raw

    def _load_image(self, path: Path) -> np.ndarray:
        """Read, decode, resize, normalise one image."""
        raw = self._read(path)
        img = tf.io.decode_image(raw, channels=3, expand_animations=False)
        img = tf.image.resize(img, [self.image_size, self.image_size])
        img = tf.clip_by_value(tf.cast(img, tf.float32) / 255.0, 0.0, 1.0)
        return img.numpy()


# ═══════════════════════════════════════════════════════════════════════════
# All-in-one loader (convenience)
# ═══════════════════════════════════════════════════════════════════════════

def load_datasets(
    config: TrainingConfig,
) -> tuple[BatchSequence, BatchSequence, list[str], dict]:
    """Load and split the dataset for a training run.

    Parameters
    ----------
    config : TrainingConfig
        Full training configuration.

    Returns
    -------
    (train_seq, val_seq, class_names, split_counts)
        * Shuffled training and stable-order validation sequences.
        * The two class names, negative class first.
        * ``{"train": N, "validation": N}`` sample counts.

    Raises
    ------
    DatasetError
        If the directory tree is missing, malformed, or too small to split.
    """
    root = config.resolve_dataset_path()
    class_names, samples = discover_samples(root, config.class_names)

    logger.info("Dataset '%s': classes %s, %d images", root, class_names, len(samples))

    train, val = split_samples(samples, config.validation_split, config.seed)

    train_seq = BatchSequence(
        train, config.image_size, config.batch_size,
        shuffle=True, seed=config.seed, cache_images=config.cache_images,
    )
    val_seq = BatchSequence(
        val, config.image_size, config.batch_size,
        shuffle=False, cache_images=config.cache_images,
    )

    split_counts = {"train": len(train), "validation": len(val)}
    logger.info(
        "Splits loaded — train=%d, val=%d  (total %d)",
        split_counts["train"], split_counts["validation"], len(samples),
    )
    return train_seq, val_seq, class_names, split_counts
