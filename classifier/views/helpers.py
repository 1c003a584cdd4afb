"""
Shared constants, utilities, and helper functions used across views.
"""

from __future__ import annotations

import functools
import logging
from typing import List

from django.apps import apps
from django.core.files.uploadedfile import UploadedFile
from django.http import JsonResponse

from lifecycle.errors import (
    AlreadyInProgress,
    ArtifactNotFound,
    DatasetUnavailable,
    EmptyDataset,
    LifecycleError,
    ModelUnavailable,
    PersistenceFailure,
    TrainingFailure,
    UnsupportedImage,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ALLOWED_CONTENT_PREFIX = "image/"

ERROR_STATUS = {
    DatasetUnavailable: 404,
    EmptyDataset: 400,
    UnsupportedImage: 400,
    AlreadyInProgress: 409,
    ModelUnavailable: 503,
    ArtifactNotFound: 404,
    TrainingFailure: 500,
    PersistenceFailure: 500,
}


class UploadRejected(ValueError):
    """An upload failed transport-level validation (type, size, count)."""


# ---------------------------------------------------------------------------
# Utility functions
# ---------------------------------------------------------------------------

def get_manager():
    """Return the process-wide lifecycle manager."""
    return apps.get_app_config("classifier").get_manager()


def error_response(exc: LifecycleError) -> JsonResponse:
    status = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        500,
    )
    return JsonResponse(exc.to_dict(), status=status)


def lifecycle_view(view):
    """Translate lifecycle errors into JSON responses.

    Typed :class:`LifecycleError` subclasses map to their HTTP status;
    upload validation problems become 400; anything else is logged and
    reported as a 500.
    """

    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except LifecycleError as exc:
            logger.warning("%s %s → %s: %s", request.method, request.path, exc.code, exc)
            return error_response(exc)
        except UploadRejected as exc:
            return JsonResponse({"error": "invalid_upload", "detail": str(exc)}, status=400)
        except Exception:
            logger.exception("%s %s failed", request.method, request.path)
            return JsonResponse(
                {"error": "internal_error", "detail": "Unexpected server error."},
                status=500,
            )

    return wrapper


def read_upload(upload: UploadedFile, max_size: int) -> bytes:
    """Validate one uploaded file and return its bytes.

    Raises
    ------
    UploadRejected
        If the content type is not an image or the file is too large.
    """
    content_type = upload.content_type or ""
    if not content_type.startswith(ALLOWED_CONTENT_PREFIX):
        raise UploadRejected(
            f"{upload.name}: only image files are accepted (got {content_type or 'unknown'})."
        )
    if upload.size > max_size:
        raise UploadRejected(
            f"{upload.name}: file too large ({upload.size:,} bytes). Max {max_size:,}."
        )
    return upload.read()


def read_uploads(files: List[UploadedFile], max_files: int, max_size: int) -> List[tuple]:
    """Validate a training batch and return ``(filename, bytes)`` pairs."""
    if len(files) > max_files:
        raise UploadRejected(f"Too many files ({len(files)}). Max {max_files}.")
    return [(f.name, read_upload(f, max_size)) for f in files]
