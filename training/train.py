"""
Frozen-backbone transfer learning: model building and head fine-tuning.

Architecture::

    Input(size, size, 3)
      → backbone (pretrained, include_top=False, frozen)
      → head: GlobalAveragePooling2D
              → Dense(128, relu)
              → Dropout(0.3)
              → Dense(1, sigmoid)

The backbone and the head are two separately owned sub-models inside one
``tf.keras.Model``.  Training computes gradients for the head's variables
only, so the backbone stays byte-for-byte identical across a run.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Optional

import numpy as np
import tensorflow as tf
from tensorflow.keras.layers import Dense, Dropout, GlobalAveragePooling2D, Input
from tensorflow.keras.optimizers import Adam

from .config import TrainingConfig
from .evaluate import EpochRecord, TrainingHistory, evaluate
from .exceptions import ConfigurationError, DatasetError, TrainingInProgressError

logger = logging.getLogger(__name__)

HEAD_NAME = "head"

_BACKBONES = {
    "mobilenet_v2": tf.keras.applications.MobileNetV2,
    "efficientnet_b0": tf.keras.applications.EfficientNetB0,
    "resnet50": tf.keras.applications.ResNet50,
    "inception_v3": tf.keras.applications.InceptionV3,
}

# ids of models with a train() call in flight
_models_in_training: set[int] = set()
_models_lock = threading.Lock()


# ═══════════════════════════════════════════════════════════════════════════
# Model building
# ═══════════════════════════════════════════════════════════════════════════

def load_backbone(config: TrainingConfig) -> tf.keras.Model:
    """Instantiate the pretrained feature extractor named by ``config.backbone``."""
    try:
        factory = _BACKBONES[config.backbone]
    except KeyError:
        raise ConfigurationError(f"Unknown backbone {config.backbone!r}") from None

    size = config.image_size
    base = factory(
        input_shape=(size, size, 3),
        include_top=False,
        weights=config.backbone_weights,
    )
    logger.info(
        "Loaded %s backbone (%s weights, %d layers)",
        config.backbone, config.backbone_weights or "random", len(base.layers),
    )
    return base


def build_head(units: int, dropout: float, seed: Optional[int] = None) -> tf.keras.Sequential:
    """Return a freshly initialised classification head.

    With a *seed*, the head starts from the same weights every time.
    Process-wide random state is left alone.
    """

    def kernel_init(offset: int):
        return tf.keras.initializers.GlorotUniform(
            seed=None if seed is None else seed + offset
        )

    return tf.keras.Sequential(
        [
            GlobalAveragePooling2D(),
            Dense(units, activation="relu", kernel_initializer=kernel_init(0)),
            Dropout(dropout, seed=seed),
            Dense(1, activation="sigmoid", kernel_initializer=kernel_init(1)),
        ],
        name=HEAD_NAME,
    )


def build_model(
    config: TrainingConfig,
    backbone: Optional[tf.keras.Model] = None,
) -> tf.keras.Model:
    """Compose a frozen backbone with a new trainable head.

    Parameters
    ----------
    config : TrainingConfig
        Provides ``image_size``, ``head_units``, ``dropout``, ``seed``, and
        (when *backbone* is None) the backbone name and weights.
    backbone : tf.keras.Model, optional
        Feature extractor to use instead of ``config.backbone``.  Must map
        ``(size, size, 3)`` images to a 4-D feature map.

    Returns
    -------
    tf.keras.Model
        Uncompiled model whose only trainable weights belong to the head.

    Raises
    ------
    ConfigurationError
        On a non-positive resolution, invalid head dimensions, or a
        backbone that does not produce a spatial feature map.
    """
    size = config.image_size
    if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
        raise ConfigurationError(f"image_size must be a positive integer, got {size!r}")
    if isinstance(config.head_units, bool) or not isinstance(config.head_units, int) \
            or config.head_units <= 0:
        raise ConfigurationError(f"head_units must be a positive integer, got {config.head_units!r}")
    if not 0.0 <= float(config.dropout) < 1.0:
        raise ConfigurationError(f"dropout must be in [0, 1), got {config.dropout!r}")

    if backbone is None:
        backbone = load_backbone(config)
    if not isinstance(backbone, tf.keras.Model):
        raise ConfigurationError("backbone must be a tf.keras.Model")
    if len(backbone.output.shape) != 4:
        raise ConfigurationError(
            f"backbone must output a spatial feature map, got shape {backbone.output.shape}"
        )

    backbone.trainable = False

    inputs = Input(shape=(size, size, 3))
    features = backbone(inputs, training=False)
    outputs = build_head(config.head_units, config.dropout, seed=config.seed)(features)
    model = tf.keras.Model(inputs, outputs, name="freshness_classifier")

    logger.info(
        "Built model: backbone '%s' frozen (%d weights), head %d trainable weights",
        backbone.name, len(backbone.weights), len(model.trainable_weights),
    )
    return model


def get_head(model: tf.keras.Model) -> tf.keras.Model:
    """Return the trainable classification head of *model*."""
    return model.get_layer(HEAD_NAME)


def get_backbone(model: tf.keras.Model) -> tf.keras.Model:
    """Return the frozen feature extractor of *model*."""
    for layer in model.layers:
        if isinstance(layer, tf.keras.Model) and layer.name != HEAD_NAME:
            return layer
    raise ValueError(f"No backbone sub-model found in '{model.name}'")


# ═══════════════════════════════════════════════════════════════════════════
# Fine-tuning
# ═══════════════════════════════════════════════════════════════════════════

def train(
    model: tf.keras.Model,
    train_seq: Iterable,
    val_seq: Iterable,
    epochs: int,
    *,
    learning_rate: float = 1e-3,
    on_epoch_end: Optional[Callable[[EpochRecord], None]] = None,
) -> TrainingHistory:
    """Fine-tune the head of *model* for *epochs* full passes.

    Each pass updates the head on every training batch (Adam, binary
    cross-entropy), then evaluates once over the whole validation
    sequence.  The backbone is never updated.

    Returns
    -------
    TrainingHistory
        One record per completed epoch.

    Raises
    ------
    ConfigurationError
        If *epochs* or *learning_rate* is not positive.
    DatasetError
        If a pass yields no usable batches.
    TrainingInProgressError
        If another ``train`` call is already mutating *model*.
    """
    if isinstance(epochs, bool) or not isinstance(epochs, int) or epochs <= 0:
        raise ConfigurationError(f"epochs must be a positive integer, got {epochs!r}")
    if learning_rate <= 0:
        raise ConfigurationError(f"learning_rate must be positive, got {learning_rate!r}")

    with _models_lock:
        if id(model) in _models_in_training:
            raise TrainingInProgressError(f"Model '{model.name}' is already being trained")
        _models_in_training.add(id(model))

    try:
        return _fit(model, train_seq, val_seq, epochs, learning_rate, on_epoch_end)
    finally:
        with _models_lock:
            _models_in_training.discard(id(model))


def _fit(model, train_seq, val_seq, epochs, learning_rate, on_epoch_end) -> TrainingHistory:
    head = get_head(model)
    variables = head.trainable_variables
    optimizer = Adam(learning_rate=learning_rate)
    loss_fn = tf.keras.losses.BinaryCrossentropy()
    history = TrainingHistory()

    def train_step(images, labels):
        with tf.GradientTape() as tape:
            probs = model(images, training=True)
            loss = loss_fn(labels, probs)
        grads = tape.gradient(loss, variables)
        optimizer.apply_gradients(zip(grads, variables))
        return loss, probs

    logger.info("═══ TRAINING HEAD: %d epochs, lr=%g ═══", epochs, learning_rate)

    for epoch in range(1, epochs + 1):
        loss_sum = 0.0
        correct = 0
        seen = 0
        for images, labels in train_seq:
            loss, probs = train_step(tf.convert_to_tensor(images), tf.convert_to_tensor(labels))
            n = len(labels)
            loss_sum += float(loss) * n
            correct += int(np.sum((probs.numpy() >= 0.5) == (labels >= 0.5)))
            seen += n

        if seen == 0:
            raise DatasetError(f"Epoch {epoch}: no usable training batches")

        val = evaluate(model, val_seq)
        record = EpochRecord(
            epoch=epoch,
            train_loss=loss_sum / seen,
            train_accuracy=correct / seen,
            val_loss=val.loss,
            val_accuracy=val.accuracy,
        )
        history.append(record)

        logger.info(
            "Epoch %d/%d — loss=%.4f acc=%.4f | val_loss=%.4f val_acc=%.4f",
            epoch, epochs, record.train_loss, record.train_accuracy,
            record.val_loss, record.val_accuracy,
        )
        if on_epoch_end is not None:
            on_epoch_end(record)

    return history
