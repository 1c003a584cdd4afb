"""
Lifecycle API endpoints.

GET  /api/model/info/        – Current state, labels, class count.
POST /api/model/initialize/  – Load the persisted model or train one.
GET  /api/model/export/      – Stream the persisted model as a zip archive.
"""

from __future__ import annotations

import logging

from django.http import JsonResponse, StreamingHttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from lifecycle.export import ArtifactExporter
from lifecycle.tasks import is_training_running

from .helpers import get_manager, lifecycle_view

logger = logging.getLogger(__name__)


@require_GET
@lifecycle_view
def api_info(request):
    """Return the model status."""
    manager = get_manager()
    return JsonResponse({
        **manager.status().to_dict(),
        "trainingRunning": is_training_running(manager),
    })


@csrf_exempt
@require_POST
@lifecycle_view
def api_initialize(request):
    """Bring the model up: load from disk, else train from the dataset folder.

    Returns 409 while another load or training run is in progress.
    """
    manager = get_manager()
    ready = manager.initialize()
    return JsonResponse({"ready": ready, "status": manager.status().to_dict()})


@require_GET
@lifecycle_view
def api_export(request):
    """Download the persisted model, its labels and metadata as one zip."""
    exporter = ArtifactExporter(get_manager().store)
    chunks = exporter.export()
    response = StreamingHttpResponse(chunks, content_type="application/zip")
    response["Content-Disposition"] = f'attachment; filename="{exporter.filename}"'
    return response
