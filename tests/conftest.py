"""
Global pytest fixtures for FreshCheck tests.
"""

import os

os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "2")

import numpy as np
import pytest
from PIL import Image

# Tiny resolution so the stub backbone trains in milliseconds
IMAGE_SIZE = 16


def _write_images(class_dir, count, color, seed):
    class_dir.mkdir(parents=True, exist_ok=True)
    rng = np.random.default_rng(seed)
    for i in range(count):
        noise = rng.integers(-20, 20, size=(24, 24, 3))
        pixels = np.clip(np.array(color) + noise, 0, 255).astype(np.uint8)
        Image.fromarray(pixels).save(class_dir / f"img_{i:03d}.png")


@pytest.fixture
def make_dataset(tmp_path):
    """Factory: create a two-class PNG dataset and return its root."""

    def _make(n_fresh=10, n_rotten=10, name="fruits"):
        root = tmp_path / name
        _write_images(root / "fresh", n_fresh, (80, 200, 60), seed=1)
        _write_images(root / "rotten", n_rotten, (90, 60, 30), seed=2)
        return root

    return _make


@pytest.fixture
def dataset_dir(make_dataset):
    """A balanced 10 + 10 image dataset."""
    return make_dataset()


@pytest.fixture
def make_backbone():
    """Factory: small convolutional feature extractor with random weights."""
    import tensorflow as tf

    def _make(size=IMAGE_SIZE):
        inputs = tf.keras.Input(shape=(size, size, 3))
        x = tf.keras.layers.Conv2D(4, 3, activation="relu")(inputs)
        return tf.keras.Model(inputs, x, name="stub_backbone")

    return _make


@pytest.fixture
def stub_backbone(make_backbone):
    return make_backbone()


@pytest.fixture
def config(dataset_dir, tmp_path):
    """Training config sized for the stub backbone and the tiny dataset."""
    from training.config import TrainingConfig

    return TrainingConfig(
        dataset_path=str(dataset_dir),
        image_size=IMAGE_SIZE,
        batch_size=4,
        epochs=2,
        validation_split=0.2,
        seed=7,
        head_units=8,
        output_root=str(tmp_path / "runs"),
    )


@pytest.fixture
def png_bytes():
    """Encoded bytes of a small RGB PNG."""
    import io

    buf = io.BytesIO()
    Image.new("RGB", (32, 32), (120, 180, 90)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def reset_classifier():
    """Drop the process-wide classifier before and after a test."""
    from classifier import model_loader

    model_loader._classifier = None
    yield model_loader
    model_loader._classifier = None
