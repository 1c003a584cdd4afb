import pytest

from lifecycle.errors import ModelUnavailable, TrainingFailure, UnsupportedImage
from lifecycle.inference import InferenceService
from lifecycle.manager import ModelLifecycleManager
from lifecycle.scope import TensorScope
from tests.conftest import image_bytes
from tests.fakes import FakeEngine


def test_predict_requires_ready_model(manager):
    with pytest.raises(ModelUnavailable):
        InferenceService(manager).predict(image_bytes())


def test_predict_after_training(manager):
    manager.train(manager.load_dataset())

    prediction = InferenceService(manager).predict(image_bytes((200, 30, 30)))

    assert prediction.label in ("apple", "banana")
    assert 0.0 <= prediction.probability <= 1.0
    assert [label for label, _ in prediction.distribution] == ["apple", "banana"]
    assert sum(p for _, p in prediction.distribution) == pytest.approx(1.0, abs=1e-3)


def test_ties_go_to_the_lowest_label_index(config):
    manager = ModelLifecycleManager(config, engine=FakeEngine(probabilities=[0.5, 0.5]))
    manager.train(manager.load_dataset())

    prediction = InferenceService(manager).predict(image_bytes())

    assert prediction.label == "apple"
    assert prediction.probability == pytest.approx(0.5)


def test_prediction_uses_the_artifacts_own_labels(config, tmp_path):
    manager = ModelLifecycleManager(config, engine=FakeEngine(probabilities=[0.1, 0.9]))
    manager.train(manager.load_dataset())

    prediction = InferenceService(manager).predict(image_bytes())

    assert prediction.label == "banana"
    assert prediction.to_dict()["distribution"][1] == {"label": "banana", "probability": 0.9}


def test_undecodable_image(manager):
    manager.train(manager.load_dataset())

    with pytest.raises(UnsupportedImage):
        InferenceService(manager).predict(b"not an image")


def test_predict_is_rejected_during_failed_state(config):
    engine = FakeEngine()
    manager = ModelLifecycleManager(config, engine=engine)
    manager.train(manager.load_dataset())
    engine.fail_on = "fit"
    with pytest.raises(TrainingFailure):
        manager.train(manager.load_dataset())

    with pytest.raises(ModelUnavailable):
        InferenceService(manager).predict(image_bytes())


class TestTensorScope:
    def test_releases_on_success(self):
        with TensorScope() as scope:
            scope.keep([1, 2, 3])
            assert len(scope) == 1
        assert scope.released
        assert len(scope) == 0

    def test_releases_on_error(self):
        scope = TensorScope(collect=True)
        with pytest.raises(ValueError):
            with scope:
                scope.keep(object())
                raise ValueError("boom")
        assert scope.released
        assert len(scope) == 0

    def test_calls_release_hooks(self):
        class Buffer:
            freed = False

            def release(self):
                self.freed = True

        buf = Buffer()
        with TensorScope() as scope:
            scope.keep(buf)
        assert buf.freed
