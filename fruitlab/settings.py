"""
Django settings for the FruitLab project.

Only what the JSON API needs: no database models, no templates, no admin.
Lifecycle paths and hyperparameters live under ``CLASSIFIER`` and are read
by :meth:`lifecycle.config.LifecycleConfig.from_settings`.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "1") == "1"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")

INSTALLED_APPS = [
    "django.contrib.staticfiles",
    "classifier",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "fruitlab.urls"
WSGI_APPLICATION = "fruitlab.wsgi.application"

DATABASES = {}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_TZ = True

STATIC_URL = "static/"

# ── Uploads ─────────────────────────────────────────────────────────────────
# Training batches carry up to 100 images of up to 10 MB each.
DATA_UPLOAD_MAX_NUMBER_FILES = 100
FILE_UPLOAD_MAX_MEMORY_SIZE = 10 * 1024 * 1024

# ── Model lifecycle ─────────────────────────────────────────────────────────

CLASSIFIER = {
    "DATASET_ROOT": os.environ.get("FRUITLAB_DATASET_ROOT", "dataset/fruits"),
    "ARTIFACT_ROOT": os.environ.get("FRUITLAB_ARTIFACT_ROOT", "models/artifact"),
    "EPOCHS": int(os.environ.get("FRUITLAB_EPOCHS", "50")),
    "BATCH_SIZE": 32,
    "VALIDATION_SPLIT": 0.2,
    "LEARNING_RATE": 1e-3,
    "EXPECTED_LABELS": ("apple", "banana", "pear", "orange", "grape"),
    "MAX_UPLOAD_FILES": 100,
    "MAX_UPLOAD_SIZE": 10 * 1024 * 1024,
    "AUTO_INITIALIZE": os.environ.get("FRUITLAB_AUTO_INITIALIZE", "1") == "1",
}

# ── Logging ─────────────────────────────────────────────────────────────────

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "lifecycle": {"level": os.environ.get("FRUITLAB_LOG_LEVEL", "INFO")},
        "classifier": {"level": os.environ.get("FRUITLAB_LOG_LEVEL", "INFO")},
    },
}
