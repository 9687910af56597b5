"""
Error taxonomy for the training pipeline.

Construction-time problems (bad config, bad dataset) are fatal and raised
before any epoch runs.  Per-item problems (one unreadable image) are
reported as :class:`DecodeWarning` and never abort the surrounding run.
"""

from __future__ import annotations


class FreshCheckError(Exception):
    """Base class for fatal pipeline errors."""


class ConfigurationError(FreshCheckError, ValueError):
    """Invalid hyperparameter or model setting."""


class DatasetError(FreshCheckError):
    """Missing, empty, or unusable dataset directory."""


class TrainingInProgressError(FreshCheckError, RuntimeError):
    """A model (or the process) is already being trained."""


class ArtifactIOError(FreshCheckError, OSError):
    """Model artifact could not be written, read, or parsed."""


class ArtifactFormatError(FreshCheckError):
    """Model artifact does not have the expected architecture."""


class DecodeWarning(UserWarning):
    """An image could not be read or decoded; its batch was skipped."""
