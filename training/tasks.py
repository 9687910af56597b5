"""
Background thread launcher and status helpers for training runs.

Simple threading-based approach for single-user / development use.
Run status is kept in memory and reset when the process restarts.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict
from typing import Any, Dict, Optional

from .config import TrainingConfig
from .evaluate import EpochRecord
from .runner import run_training

logger = logging.getLogger(__name__)

# Module-level lock to prevent concurrent training runs
_training_lock = threading.Lock()

_status_lock = threading.Lock()
_status: Dict[str, Any] = {}


def _update_status(**fields) -> None:
    with _status_lock:
        _status.update(fields)


def start_training(config: TrainingConfig) -> bool:
    """Launch a training run in a background thread.

    The config should already have passed ``validate()``.

    Returns
    -------
    bool
        True if the run started, False if another run is in progress.
    """
    if not _training_lock.acquire(blocking=False):
        logger.warning("Training already in progress — refusing to start.")
        return False

    with _status_lock:
        _status.clear()
        _status.update(
            status="running",
            config=config.to_dict(),
            epochs_completed=0,
            history=[],
            run_name=None,
            val_accuracy=None,
            model_path=None,
            error_message="",
        )

    def _on_epoch_end(record: EpochRecord) -> None:
        with _status_lock:
            _status["epochs_completed"] = record.epoch
            _status["history"].append(asdict(record))

    def _run():
        try:
            result = run_training(config, on_epoch_end=_on_epoch_end)
        except Exception as exc:
            logger.exception("Background training failed")
            _update_status(status="failed", error_message=str(exc))
        else:
            _update_status(
                status="completed",
                run_name=result.run_name,
                val_accuracy=result.val_accuracy,
                model_path=str(result.model_path),
            )
        finally:
            _training_lock.release()

    thread = threading.Thread(target=_run, name="training-runner", daemon=True)
    try:
        thread.start()
    except RuntimeError as exc:
        _training_lock.release()
        _update_status(status="failed", error_message=f"Could not start training thread: {exc}")
        raise
    logger.info("Background training started for dataset '%s'", config.dataset_path)
    return True


def is_training_running() -> bool:
    """Return True if a training run is currently in progress."""
    return _training_lock.locked()


def get_status() -> Optional[Dict[str, Any]]:
    """Return a snapshot of the latest run, or None if none was started."""
    with _status_lock:
        if not _status:
            return None
        snapshot = dict(_status)
        snapshot["history"] = list(_status["history"])
        return snapshot
