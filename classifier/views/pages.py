"""
Index view — a JSON map of the API.
"""

from __future__ import annotations

from django.http import JsonResponse
from django.urls import reverse
from django.views.decorators.http import require_GET


@require_GET
def index(request):
    """List the available endpoints."""
    return JsonResponse({
        "message": "FruitLab image classification API",
        "endpoints": [
            f"POST {reverse('api_train')} - train from uploaded images (field 'images') "
            "or, without files, from the dataset folder",
            f"POST {reverse('api_predict')} - classify one image (field 'image')",
            f"GET {reverse('api_info')} - model status",
            f"POST {reverse('api_initialize')} - load the persisted model or train one",
            f"GET {reverse('api_export')} - download the trained model as a zip",
        ],
    })
