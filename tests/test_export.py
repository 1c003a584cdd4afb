import inspect
import io
import json
import zipfile

import pytest

from lifecycle.errors import ArtifactNotFound
from lifecycle.export import ArtifactExporter


def archive(exporter):
    return b"".join(exporter.export())


def test_export_before_training(manager):
    with pytest.raises(ArtifactNotFound):
        ArtifactExporter(manager.store).export()


def test_archive_holds_exactly_model_dir_and_metadata(manager):
    manager.train(manager.load_dataset())

    with zipfile.ZipFile(io.BytesIO(archive(ArtifactExporter(manager.store)))) as zf:
        assert zf.testzip() is None
        assert sorted(zf.namelist()) == ["info.json", "labels.json", "model/", "model/model.json"]
        assert json.loads(zf.read("labels.json"))["labels"] == ["apple", "banana"]
        assert json.loads(zf.read("info.json"))["sampleCount"] == 5


def test_archive_is_deterministic(manager):
    manager.train(manager.load_dataset())
    exporter = ArtifactExporter(manager.store)

    assert archive(exporter) == archive(exporter)


def test_export_streams_lazily(manager):
    manager.train(manager.load_dataset())

    chunks = ArtifactExporter(manager.store).export()

    assert inspect.isgenerator(chunks)
    assert next(chunks)


def test_export_survives_a_restart(config, manager):
    """Only the files on disk matter, not the in-memory model."""
    manager.train(manager.load_dataset())

    from lifecycle.storage import ArtifactStore

    fresh = ArtifactExporter(ArtifactStore(config.artifact_root))
    assert zipfile.ZipFile(io.BytesIO(archive(fresh))).namelist()


def test_write_to(manager, tmp_path):
    manager.train(manager.load_dataset())

    target = ArtifactExporter(manager.store).write_to(tmp_path / "out" / "model.zip")

    assert zipfile.is_zipfile(target)
