"""
URL configuration for the classifier app (mounted at ``/api/model/``).

Route groups
------------
- Training   : batch uploads or the configured dataset folder.
- Inference  : single-image prediction.
- Lifecycle  : status, (re)initialisation, artifact export.
"""

from django.urls import path

from . import views

urlpatterns = [
    # ── Training ────────────────────────────────────────────────────────
    path("train/", views.api_train, name="api_train"),

    # ── Inference ───────────────────────────────────────────────────────
    path("predict/", views.api_predict, name="api_predict"),

    # ── Lifecycle ───────────────────────────────────────────────────────
    path("info/", views.api_info, name="api_info"),
    path("initialize/", views.api_initialize, name="api_initialize"),
    path("export/", views.api_export, name="api_export"),
]
