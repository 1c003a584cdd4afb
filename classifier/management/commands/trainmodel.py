"""
Train the classifier from a dataset folder and optionally export it.

    python manage.py trainmodel
    python manage.py trainmodel --dataset /data/fruits --epochs 5 --export model.zip
"""

from dataclasses import replace
from pathlib import Path

from django.apps import apps
from django.core.management.base import BaseCommand, CommandError

from lifecycle.errors import LifecycleError
from lifecycle.export import ArtifactExporter
from lifecycle.manager import ModelLifecycleManager


class Command(BaseCommand):
    help = "Train the fruit classifier from <dataset>/<label>/<images> and persist it."

    def add_arguments(self, parser):
        parser.add_argument("--dataset", type=Path, help="Dataset root (default: settings).")
        parser.add_argument("--epochs", type=int, help="Override the number of epochs.")
        parser.add_argument("--export", type=Path, help="Also write the model archive here.")

    def handle(self, *args, **options):
        config = apps.get_app_config("classifier").lifecycle_config
        if options["epochs"]:
            config = replace(config, epochs=options["epochs"])
        manager = ModelLifecycleManager(config)

        self.stdout.write("=" * 60)
        self.stdout.write("STARTING TRAINING RUN")
        self.stdout.write("=" * 60)
        self.stdout.write(f"  Dataset   : {options['dataset'] or config.dataset_root}")
        self.stdout.write(f"  Epochs    : {config.epochs}")
        self.stdout.write(f"  Artefacts : {config.artifact_root}")
        self.stdout.write("=" * 60)

        try:
            dataset = manager.load_dataset(options["dataset"])
            result = manager.train(dataset)
        except LifecycleError as exc:
            raise CommandError(f"{exc.code}: {exc}") from exc

        self.stdout.write("")
        self.stdout.write("=" * 60)
        self.stdout.write(self.style.SUCCESS("RUN COMPLETE"))
        self.stdout.write(f"  Labels        : {', '.join(result.labels)}")
        self.stdout.write(f"  Images        : {result.total_images} ({result.skipped} skipped)")
        self.stdout.write(f"  Val accuracy  : {result.validation_accuracy}")

        if options["export"]:
            try:
                target = ArtifactExporter(manager.store).write_to(options["export"])
            except LifecycleError as exc:
                raise CommandError(f"{exc.code}: {exc}") from exc
            self.stdout.write(f"  Exported to   : {target}")
        self.stdout.write("=" * 60)
