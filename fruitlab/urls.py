"""
Root URL configuration for the FruitLab project.

All model functionality lives under ``/api/model/``; ``/`` lists the
available endpoints.
"""

from django.urls import include, path

from classifier import views

urlpatterns = [
    path("", views.index, name="index"),
    path("api/model/", include("classifier.urls")),
]
