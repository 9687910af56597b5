"""
Validation evaluation and per-epoch training history.

Produces:
- Validation loss / accuracy (one deterministic, non-shuffled pass).
- ``sklearn.metrics.classification_report`` saved as ``classification_report.txt``.
- ``metrics.json`` with all numbers for programmatic use.
- ``training_log.json`` / ``training_log.csv`` with one row per epoch.
"""

from __future__ import annotations

import csv
import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List

import numpy as np
import tensorflow as tf
from sklearn.metrics import classification_report, confusion_matrix

from .exceptions import DatasetError

logger = logging.getLogger(__name__)

HISTORY_FIELDS = ("epoch", "train_loss", "train_accuracy", "val_loss", "val_accuracy")


# ═══════════════════════════════════════════════════════════════════════════
# Training history
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EpochRecord:
    epoch: int
    train_loss: float
    train_accuracy: float
    val_loss: float
    val_accuracy: float


class TrainingHistory:
    """Append-only, ordered list of :class:`EpochRecord`."""

    def __init__(self) -> None:
        self._records: List[EpochRecord] = []

    def append(self, record: EpochRecord) -> None:
        expected = len(self._records) + 1
        if record.epoch != expected:
            raise ValueError(f"Expected epoch {expected}, got {record.epoch}")
        self._records.append(record)

    @property
    def records(self) -> tuple:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[EpochRecord]:
        return iter(tuple(self._records))

    def __getitem__(self, index: int) -> EpochRecord:
        return self._records[index]

    def to_list(self) -> List[Dict[str, float]]:
        return [asdict(r) for r in self._records]

    def save(self, output_dir: Path) -> None:
        """Write ``training_log.json`` and ``training_log.csv`` to *output_dir*."""
        rows = self.to_list()
        (output_dir / "training_log.json").write_text(
            json.dumps(rows, indent=2), encoding="utf-8",
        )
        with open(output_dir / "training_log.csv", "w", newline="", encoding="utf-8") as fh:
            writer = csv.DictWriter(fh, fieldnames=HISTORY_FIELDS)
            writer.writeheader()
            writer.writerows(rows)
        logger.info("Training log saved to %s", output_dir / "training_log.json")


# ═══════════════════════════════════════════════════════════════════════════
# Core evaluation
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EvaluationResult:
    loss: float
    accuracy: float
    num_samples: int


def _predict_all(model: tf.keras.Model, batches: Iterable):
    """Yield ``(probs, labels)`` per batch with the model in inference mode."""
    for images, labels in batches:
        probs = model(tf.convert_to_tensor(images), training=False).numpy()
        yield probs, np.asarray(labels, dtype=np.float32)


def evaluate(model: tf.keras.Model, val_seq: Iterable) -> EvaluationResult:
    """Mean binary cross-entropy and accuracy over one full pass of *val_seq*.

    No parameters are updated and dropout is disabled, so evaluating the
    same model on the same sequence always yields the same numbers.

    Raises
    ------
    DatasetError
        If the sequence yields no samples.
    """
    loss_sum = 0.0
    correct = 0
    seen = 0
    for probs, labels in _predict_all(model, val_seq):
        per_sample = tf.keras.losses.binary_crossentropy(labels, probs).numpy()
        loss_sum += float(np.sum(per_sample))
        correct += int(np.sum((probs >= 0.5) == (labels >= 0.5)))
        seen += len(labels)

    if seen == 0:
        raise DatasetError("Validation sequence produced no samples")

    return EvaluationResult(loss=loss_sum / seen, accuracy=correct / seen, num_samples=seen)


def _class_row(name: str, stats: Dict[str, float]) -> Dict[str, Any]:
    return {
        "class": name,
        "precision": round(stats["precision"], 4),
        "recall": round(stats["recall"], 4),
        "f1": round(stats["f1-score"], 4),
        "support": int(stats["support"]),
    }


def evaluate_model(
    model: tf.keras.Model,
    val_seq: Iterable,
    class_names: List[str],
    output_dir: Path,
) -> Dict[str, Any]:
    """Evaluate *model* on the validation split and save report artefacts.

    Parameters
    ----------
    model : tf.keras.Model
        Trained model (sigmoid output).
    val_seq : iterable
        Validation batches (images in [0, 1], labels ``[b, 1]``).
    class_names : list[str]
        ``[negative, positive]`` class names.
    output_dir : Path
        Directory to save ``classification_report.txt`` and ``metrics.json``.

    Returns
    -------
    dict
        Keys: loss, accuracy, macro_f1, per_class (list),
        confusion_matrix (nested list), num_samples.
    """
    result = evaluate(model, val_seq)

    y_true: list[int] = []
    y_pred: list[int] = []
    for probs, labels in _predict_all(model, val_seq):
        y_pred.extend((probs[:, 0] >= 0.5).astype(int).tolist())
        y_true.extend(labels[:, 0].astype(int).tolist())

    # Both classes are always listed, even if one never appears in y_pred
    report_kwargs = dict(target_names=class_names, labels=[0, 1], zero_division=0)
    text_report = classification_report(y_true, y_pred, digits=4, **report_kwargs)
    scores = classification_report(y_true, y_pred, output_dict=True, **report_kwargs)

    report_path = output_dir / "classification_report.txt"
    report_path.write_text(text_report, encoding="utf-8")
    logger.info("Classification report written to %s", report_path)

    metrics = {
        "loss": round(result.loss, 4),
        "accuracy": round(result.accuracy, 4),
        "macro_f1": round(scores["macro avg"]["f1-score"], 4),
        "num_samples": result.num_samples,
        "per_class": [_class_row(name, scores[name]) for name in class_names],
        "confusion_matrix": confusion_matrix(y_true, y_pred, labels=[0, 1]).tolist(),
    }

    (output_dir / "metrics.json").write_text(json.dumps(metrics, indent=2), encoding="utf-8")
    logger.info(
        "Validation — accuracy=%.4f, loss=%.4f, macro_f1=%.4f",
        metrics["accuracy"], metrics["loss"], metrics["macro_f1"],
    )
    return metrics
