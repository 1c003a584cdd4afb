import json

import pytest

from lifecycle.data import LabelSet
from lifecycle.errors import ArtifactNotFound, PersistenceFailure
from lifecycle.storage import ArtifactStore, ModelMetadata


def metadata(labels=("apple", "banana")):
    return ModelMetadata(
        labels=LabelSet(tuple(labels)),
        sample_count=5,
        epochs=2,
        trained_at="2026-01-01T00:00:00+00:00",
        validation_accuracy=0.5,
        architecture={"name": "fake"},
    )


def write_model(content="v1"):
    def _write(model_dir):
        (model_dir / "model.bin").write_text(content)
    return _write


@pytest.fixture
def store(tmp_path):
    return ArtifactStore(tmp_path / "models" / "artifact")


def test_save_writes_fixed_layout(store):
    store.save(write_model(), metadata())

    assert store.exists()
    assert json.loads(store.labels_path.read_text()) == {
        "labels": ["apple", "banana"],
        "labelIndex": {"apple": 0, "banana": 1},
    }
    info = json.loads(store.info_path.read_text())
    assert set(info) == {
        "labels", "trainedAt", "sampleCount", "epochs", "architecture", "validationAccuracy",
    }
    assert [name for name, _ in store.files()] == ["info.json", "labels.json", "model/model.bin"]


def test_load_metadata_round_trip(store):
    store.save(write_model(), metadata(("pear", "grape")))

    loaded = store.load_metadata()

    assert list(loaded.labels) == ["pear", "grape"]
    assert loaded.sample_count == 5
    assert loaded.validation_accuracy == 0.5


def test_missing_artifact(store):
    assert not store.exists()
    with pytest.raises(ArtifactNotFound):
        store.files()
    with pytest.raises(ArtifactNotFound):
        store.load_metadata()


def test_incomplete_artifact_is_not_an_artifact(store):
    store.save(write_model(), metadata())
    store.info_path.unlink()

    assert not store.exists()


def test_corrupt_metadata(store):
    store.save(write_model(), metadata())
    store.labels_path.write_text("{not json")

    with pytest.raises(PersistenceFailure):
        store.load_metadata()


def test_failed_write_keeps_previous_artifact(store):
    store.save(write_model("old"), metadata(("apple",)))

    def explode(model_dir):
        (model_dir / "model.bin").write_text("half")
        raise OSError("disk full")

    with pytest.raises(PersistenceFailure):
        store.save(explode, metadata(("pear",)))

    assert (store.model_dir / "model.bin").read_text() == "old"
    assert list(store.load_metadata().labels) == ["apple"]
    assert not list(store.root.parent.glob(".artifact.tmp-*"))


def test_save_replaces_previous_artifact(store):
    store.save(write_model("old"), metadata(("apple",)))
    store.save(write_model("new"), metadata(("pear",)))

    assert (store.model_dir / "model.bin").read_text() == "new"
    assert list(store.load_metadata().labels) == ["pear"]
    assert not (store.root.parent / ".artifact.old").exists()


def test_recover_restores_interrupted_swap(store):
    store.save(write_model("old"), metadata())
    backup = store.root.parent / ".artifact.old"
    store.root.rename(backup)
    stale = store.root.parent / ".artifact.tmp-deadbeef"
    stale.mkdir()

    assert store.recover() is True
    assert store.exists()
    assert not stale.exists()
