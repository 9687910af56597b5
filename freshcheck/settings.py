"""
Django settings for the FreshCheck project.

Everything deployment-specific can be overridden through ``FRESHCHECK_*``
environment variables.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("FRESHCHECK_SECRET_KEY", "dev-only-insecure-key")
DEBUG = os.environ.get("FRESHCHECK_DEBUG", "1") == "1"
ALLOWED_HOSTS = os.environ.get("FRESHCHECK_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")

INSTALLED_APPS = [
    "classifier",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "freshcheck.urls"
WSGI_APPLICATION = "freshcheck.wsgi.application"

# No models; run status lives in memory
DATABASES = {}

USE_TZ = True
TIME_ZONE = "UTC"

# ── Uploads ─────────────────────────────────────────────────────────────────

MAX_UPLOAD_SIZE = int(os.environ.get("FRESHCHECK_MAX_UPLOAD_SIZE", 10 * 1024 * 1024))
DATA_UPLOAD_MAX_MEMORY_SIZE = MAX_UPLOAD_SIZE + 1024 * 1024

# ── Models and datasets ─────────────────────────────────────────────────────

MODELS_ROOT = Path(os.environ.get("FRESHCHECK_MODELS_ROOT", BASE_DIR / "models"))
MODEL_VERSIONS_DIR = MODELS_ROOT / "versions"
DATASETS_ROOT = Path(os.environ.get("FRESHCHECK_DATASETS_ROOT", BASE_DIR / "datasets"))

# Model served by the classify endpoint (any run's model.keras can be copied here)
FRESHCHECK_MODEL_PATH = Path(
    os.environ.get("FRESHCHECK_MODEL_PATH", MODELS_ROOT / "freshness.keras")
)
FRESHCHECK_CLASSES_PATH = Path(
    os.environ.get("FRESHCHECK_CLASSES_PATH", FRESHCHECK_MODEL_PATH.parent / "classes.txt")
)

# ── Logging ─────────────────────────────────────────────────────────────────

LOG_LEVEL = os.environ.get("FRESHCHECK_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "loggers": {
        "classifier": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "training": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "django": {"handlers": ["console"], "level": "WARNING"},
    },
}
