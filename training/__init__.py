"""
FreshCheck Training Pipeline
============================

Offline fine-tuning of a fresh / rotten produce classifier:

1. Discovers the two class directories of a labeled image set.
2. Splits it into reproducible, stratified train / validation subsets.
3. Composes a frozen pretrained backbone with a small trainable head.
4. Fine-tunes the head and records per-epoch loss / accuracy.
5. Evaluates on the validation split and saves the model + metrics
   under ``models/versions/<run_name>/``.

Package layout
--------------
config.py     – ``TrainingConfig`` dataclass, paths, hyperparameter defaults.
exceptions.py – Error taxonomy (DatasetError, ConfigurationError, …).
data.py       – Directory tree → split → restartable batch sequences.
train.py      – Model building and the head fine-tuning loop.
evaluate.py   – Validation metrics, classification report, training history.
artifacts.py  – Save / load the trained model as a single ``.keras`` file.
runner.py     – End-to-end orchestrator (data → train → evaluate → save).
tasks.py      – Background thread launcher and status helpers.
"""
