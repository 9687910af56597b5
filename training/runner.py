"""
Training run orchestrator — ties data → model → train → evaluate → save.

This is the main entry point for a complete training cycle:

1. Validate the configuration (fail before any compute is spent).
2. Discover the two classes and split train / validation.
3. Build the frozen-backbone model with a new head.
4. Fine-tune the head for ``config.epochs`` passes.
5. Evaluate on the validation split → metrics, classification report.
6. Save all artefacts under ``<output_root>/<run_name>/``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import tensorflow as tf

from .artifacts import save_class_names, save_model
from .config import TrainingConfig
from .data import load_datasets
from .evaluate import EpochRecord, TrainingHistory, evaluate_model
from .train import build_model, train

logger = logging.getLogger(__name__)


@dataclass
class TrainingResult:
    run_name: str
    output_dir: Path
    model_path: Path
    class_names: List[str]
    split_counts: Dict[str, int]
    history: TrainingHistory
    metrics: Dict[str, Any]

    @property
    def val_accuracy(self) -> float:
        return self.metrics["accuracy"]

    @property
    def val_loss(self) -> float:
        return self.metrics["loss"]


def run_training(
    config: TrainingConfig,
    *,
    backbone: Optional[tf.keras.Model] = None,
    on_epoch_end: Optional[Callable[[EpochRecord], None]] = None,
) -> TrainingResult:
    """Execute a full training run end-to-end.

    Parameters
    ----------
    config : TrainingConfig
        All hyperparameters and settings.
    backbone : tf.keras.Model, optional
        Feature extractor to use instead of ``config.backbone``.
    on_epoch_end : callable, optional
        Called with each :class:`EpochRecord` as it completes.

    Raises
    ------
    ConfigurationError, DatasetError
        Before any epoch runs.
    ArtifactIOError
        If the trained model cannot be written.
    """
    config.validate()

    # ── 1. Load data ────────────────────────────────────────────────────
    train_seq, val_seq, class_names, split_counts = load_datasets(config)

    # ── 2. Build model ──────────────────────────────────────────────────
    model = build_model(config, backbone=backbone)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_name = f"freshness_{timestamp}"
    output_dir = config.model_output_dir(run_name)
    logger.info("Run '%s' → %s", run_name, output_dir)

    save_class_names(class_names, output_dir / "classes.txt")
    (output_dir / "config.json").write_text(
        json.dumps(config.to_dict(), indent=2), encoding="utf-8",
    )

    summary_lines: list[str] = []
    model.summary(print_fn=lambda s, **kwargs: summary_lines.append(s))
    (output_dir / "model_summary.txt").write_text(
        "\n".join(summary_lines), encoding="utf-8",
    )

    # ── 3. Fine-tune the head ───────────────────────────────────────────
    history = train(
        model, train_seq, val_seq, config.epochs,
        learning_rate=config.learning_rate,
        on_epoch_end=on_epoch_end,
    )
    history.save(output_dir)

    # ── 4. Evaluate ─────────────────────────────────────────────────────
    metrics = evaluate_model(model, val_seq, class_names, output_dir)

    # ── 5. Persist ──────────────────────────────────────────────────────
    model_path = save_model(model, output_dir / "model.keras")

    logger.info(
        "═══ TRAINING COMPLETE: %s ═══\n"
        "  Val accuracy: %.4f\n"
        "  Val loss    : %.4f\n"
        "  Macro F1    : %.4f\n"
        "  Artefacts   : %s",
        run_name, metrics["accuracy"], metrics["loss"], metrics["macro_f1"], output_dir,
    )

    return TrainingResult(
        run_name=run_name,
        output_dir=output_dir,
        model_path=model_path,
        class_names=class_names,
        split_counts=split_counts,
        history=history,
        metrics=metrics,
    )
