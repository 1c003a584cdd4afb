import io
import threading
import time
import zipfile

import pytest
from django.apps import apps
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import Client

from lifecycle.manager import ModelLifecycleManager, ModelState
from tests.conftest import COLORS, image_bytes
from tests.fakes import FakeEngine


def upload(name, content=None, content_type="image/png"):
    label = name.split("_")[0].lower()
    return SimpleUploadedFile(name, content or image_bytes(COLORS.get(label, (1, 2, 3))), content_type)


@pytest.fixture
def app_config():
    return apps.get_app_config("classifier")


@pytest.fixture
def install(app_config):
    def _install(manager):
        app_config.install_manager(manager)
        return manager

    yield _install
    app_config.install_manager(None)


@pytest.fixture
def client(install, manager):
    install(manager)
    return Client()


def test_index_lists_endpoints(client):
    response = client.get("/")

    assert response.status_code == 200
    assert any("/api/model/predict/" in e for e in response.json()["endpoints"])


def test_info_before_training(client):
    body = client.get("/api/model/info/").json()

    assert body["ready"] is False
    assert body["state"] == "uninitialized"
    assert body["labels"] == []
    assert body["classCount"] == 0
    assert body["trainingRunning"] is False


def test_predict_without_model(client):
    response = client.post("/api/model/predict/", {"image": upload("x.png")})

    assert response.status_code == 503
    assert response.json()["error"] == "model_unavailable"


def test_predict_requires_a_file(client):
    assert client.post("/api/model/predict/").status_code == 400


def test_export_without_model(client):
    response = client.get("/api/model/export/")

    assert response.status_code == 404
    assert response.json()["error"] == "artifact_not_found"


def test_train_from_uploads_then_predict_and_export(client):
    files = [upload("apple_1.png"), upload("Apple_2.png"), upload("banana_1.png")]

    response = client.post("/api/model/train/", {"images": files})

    assert response.status_code == 200
    body = response.json()
    assert body["labels"] == ["apple", "banana"]
    assert body["totalImages"] == 3
    assert len(body["metricsHistory"]) == 2

    info = client.get("/api/model/info/").json()
    assert info["ready"] is True
    assert info["labels"] == ["apple", "banana"]

    prediction = client.post("/api/model/predict/", {"image": upload("q.png")}).json()
    assert prediction["label"] in ("apple", "banana")
    assert sum(d["probability"] for d in prediction["distribution"]) == pytest.approx(1.0, abs=1e-3)

    export = client.get("/api/model/export/")
    assert export.status_code == 200
    assert export["Content-Type"] == "application/zip"
    assert "fruitlab-model.zip" in export["Content-Disposition"]
    archive = zipfile.ZipFile(io.BytesIO(b"".join(export.streaming_content)))
    assert {"model/", "labels.json", "info.json"} <= set(archive.namelist())


def test_train_from_dataset_folder_without_files(client):
    response = client.post("/api/model/train/")

    assert response.status_code == 200
    assert response.json()["totalImages"] == 5


def test_train_rejects_non_images(client):
    response = client.post(
        "/api/model/train/",
        {"images": [upload("apple_1.txt", b"hello", content_type="text/plain")]},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_upload"


def test_train_with_only_corrupt_images(client):
    response = client.post("/api/model/train/", {"images": [upload("apple_1.png", b"junk")]})

    assert response.status_code == 400
    assert response.json()["error"] == "empty_dataset"


def test_train_with_missing_dataset_folder(install, config, tmp_path):
    config.dataset_root = tmp_path / "missing"
    install(ModelLifecycleManager(config, engine=FakeEngine()))

    response = Client().post("/api/model/train/")

    assert response.status_code == 404
    assert response.json()["error"] == "dataset_unavailable"


def test_training_failure_is_a_500(install, config):
    install(ModelLifecycleManager(config, engine=FakeEngine(fail_on="fit")))

    response = Client().post("/api/model/train/")

    assert response.status_code == 500
    assert response.json()["error"] == "training_failure"
    assert Client().get("/api/model/info/").json()["state"] == "failed"


def test_background_training_and_conflict(install, config):
    gate = threading.Event()
    engine = FakeEngine(gate=gate)
    manager = install(ModelLifecycleManager(config, engine=engine))
    client = Client()

    try:
        started = client.post("/api/model/train/?background=1")
        assert started.status_code == 202
        assert started.json()["totalImages"] == 5
        assert engine.fit_started.wait(5)

        conflict = client.post("/api/model/train/")
        assert conflict.status_code == 409
        assert conflict.json()["error"] == "already_in_progress"
        assert client.get("/api/model/info/").json()["trainingRunning"] is True
    finally:
        gate.set()

    deadline = time.monotonic() + 5
    while manager.state is not ModelState.READY and time.monotonic() < deadline:
        time.sleep(0.01)
    assert manager.state is ModelState.READY


def test_initialize_endpoint(client):
    response = client.post("/api/model/initialize/")

    assert response.status_code == 200
    assert response.json()["ready"] is True
    assert response.json()["status"]["labels"] == ["apple", "banana"]


def test_get_is_not_allowed_on_train(client):
    assert client.get("/api/model/train/").status_code == 405


def test_background_initialize_runs_once(app_config, install, config):
    manager = install(ModelLifecycleManager(config, engine=FakeEngine()))
    config.auto_initialize = True
    original = app_config.lifecycle_config
    app_config.lifecycle_config = config
    try:
        thread = app_config.start_background_initialize()
        thread.join(5)
        assert app_config.start_background_initialize() is None
    finally:
        app_config.lifecycle_config = original

    assert manager.state is ModelState.READY
