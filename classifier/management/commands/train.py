"""
Run a full training cycle in the foreground.

    python manage.py train --dataset fruits --epochs 5

The previously served model is NOT touched; the new one is saved under
``models/versions/<run_name>/model.keras``.
"""

from django.core.management.base import BaseCommand, CommandError

from training.config import TrainingConfig
from training.exceptions import FreshCheckError
from training.runner import run_training


class Command(BaseCommand):
    help = "Fine-tune a fresh / rotten classifier on a two-class image directory."

    def add_arguments(self, parser):
        defaults = TrainingConfig()
        parser.add_argument("--dataset", required=True,
                            help="Dataset root (relative paths resolve under DATASETS_ROOT).")
        parser.add_argument("--classes", nargs=2, metavar=("NEGATIVE", "POSITIVE"),
                            help="Explicit class directories, e.g. fresh rotten.")
        parser.add_argument("--image-size", type=int, default=defaults.image_size)
        parser.add_argument("--batch-size", type=int, default=defaults.batch_size)
        parser.add_argument("--epochs", type=int, default=defaults.epochs)
        parser.add_argument("--validation-split", type=float, default=defaults.validation_split)
        parser.add_argument("--seed", type=int, default=defaults.seed)
        parser.add_argument("--learning-rate", type=float, default=defaults.learning_rate)
        parser.add_argument("--backbone", default=defaults.backbone)
        parser.add_argument("--output-root", default=None,
                            help="Directory for run folders (default MODEL_VERSIONS_DIR).")
        parser.add_argument("--cache-images", action="store_true",
                            help="Keep raw image bytes in memory between epochs.")
        parser.add_argument("--notes", default="")

    def handle(self, *args, **options):
        config = TrainingConfig(
            dataset_path=options["dataset"],
            class_names=options["classes"],
            image_size=options["image_size"],
            batch_size=options["batch_size"],
            epochs=options["epochs"],
            validation_split=options["validation_split"],
            seed=options["seed"],
            learning_rate=options["learning_rate"],
            backbone=options["backbone"],
            output_root=options["output_root"],
            cache_images=options["cache_images"],
            notes=options["notes"],
        )

        self.stdout.write("=" * 60)
        self.stdout.write("STARTING TRAINING RUN")
        self.stdout.write("=" * 60)
        self.stdout.write(f"  Dataset          : {config.dataset_path}")
        self.stdout.write(f"  Backbone         : {config.backbone}")
        self.stdout.write(f"  Image size       : {config.image_size}")
        self.stdout.write(f"  Epochs           : {config.epochs}")
        self.stdout.write(f"  Batch size       : {config.batch_size}")
        self.stdout.write(f"  Validation split : {config.validation_split}")

        try:
            result = run_training(config)
        except FreshCheckError as exc:
            raise CommandError(f"Training aborted: {exc}") from exc

        self.stdout.write("=" * 60)
        self.stdout.write(self.style.SUCCESS(f"RUN COMPLETE: {result.run_name}"))
        self.stdout.write(f"  Validation accuracy : {result.val_accuracy:.4f}")
        self.stdout.write(f"  Validation loss     : {result.val_loss:.4f}")
        self.stdout.write(f"  Model saved         : {result.model_path}")
        self.stdout.write("=" * 60)
