"""
Training API endpoint.

POST /api/model/train/              – Train now; respond with the result.
POST /api/model/train/?background=1 – Start training on a background thread.

With multipart files under ``images`` the batch is labelled from the
filenames (``apple_01.jpg`` → ``apple``); without files the configured
dataset folder is used.
"""

from __future__ import annotations

import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from lifecycle.errors import AlreadyInProgress
from lifecycle.tasks import is_training_running, start_training

from .helpers import get_manager, lifecycle_view, read_uploads

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
@lifecycle_view
def api_train(request):
    """Ingest a dataset and train a new model.

    Returns 409 if a load or training run is already in progress.
    """
    manager = get_manager()
    config = manager.config

    # Fail fast before reading uploads or walking the dataset folder.
    if is_training_running(manager):
        raise AlreadyInProgress(
            f"Model is {manager.state.value}; retry once it finishes."
        )

    files = request.FILES.getlist("images")
    if files:
        logger.info("Processing %d uploaded images…", len(files))
        pairs = read_uploads(files, config.max_upload_files, config.max_upload_size)
        dataset = manager.load_uploads(pairs)
    else:
        dataset = manager.load_dataset()

    if request.GET.get("background") in ("1", "true", "yes"):
        total, skipped = len(dataset), dataset.skipped
        start_training(manager, dataset)
        return JsonResponse(
            {"status": "started", "totalImages": total, "skipped": skipped},
            status=202,
        )

    result = manager.train(dataset)
    return JsonResponse({
        "message": "Model trained successfully",
        **result.to_dict(),
    })
