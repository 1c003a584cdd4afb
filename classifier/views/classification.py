"""
Image classification endpoint — accept an upload, run inference, return results.
"""

from __future__ import annotations

import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from lifecycle.inference import InferenceService

from .helpers import get_manager, lifecycle_view, read_upload

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
@lifecycle_view
def api_predict(request):
    """Classify the uploaded ``image``.

    Workflow
    -------
    1. Validate the upload (presence, size, content-type).
    2. Run inference with the current model.
    3. Return the top label, its probability and the full distribution.
    """
    if "image" not in request.FILES:
        return JsonResponse(
            {"error": "invalid_upload", "detail": "No image file provided."},
            status=400,
        )

    manager = get_manager()
    data = read_upload(request.FILES["image"], manager.config.max_upload_size)
    prediction = InferenceService(manager).predict(data)
    return JsonResponse(prediction.to_dict())
