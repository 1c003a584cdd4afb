"""
View package for the FruitLab classifier app.

Modules
-------
helpers.py        – Shared constants, upload validation, error mapping.
pages.py          – JSON index of the available endpoints.
training_api.py   – Train from uploads or the dataset folder.
classification.py – Single-image prediction endpoint.
lifecycle_api.py  – Status, initialisation and artifact export.
"""

# Re-export all views so urls.py can do: from .views import api_train, …
from .pages import index                                   # noqa: F401
from .training_api import api_train                        # noqa: F401
from .classification import api_predict                    # noqa: F401
from .lifecycle_api import api_export, api_info, api_initialize  # noqa: F401
