from pathlib import Path

import pytest
from django.conf import settings
from django.test import override_settings

from lifecycle.config import LifecycleConfig


def test_defaults_follow_the_fixed_recipe():
    config = LifecycleConfig()

    assert config.image_size == (64, 64)
    assert config.input_shape == (64, 64, 3)
    assert config.epochs == 50
    assert config.validation_split == 0.2
    assert config.batch_size == 32


@override_settings(CLASSIFIER={"DATASET_ROOT": "data/fruit", "EPOCHS": 3, "EXPECTED_LABELS": ["Apple"]})
def test_from_settings_resolves_relative_paths():
    config = LifecycleConfig.from_settings()

    assert config.dataset_root == Path(settings.BASE_DIR) / "data" / "fruit"
    assert config.artifact_root == Path(settings.BASE_DIR) / "models" / "artifact"
    assert config.epochs == 3
    assert config.expected_labels == ("apple",)


@override_settings(CLASSIFIER={"EPOCH": 3})
def test_from_settings_rejects_unknown_keys():
    with pytest.raises(TypeError):
        LifecycleConfig.from_settings()


@pytest.mark.parametrize("kwargs", [{"epochs": 0}, {"validation_split": 1.0}])
def test_invalid_values(kwargs):
    with pytest.raises(ValueError):
        LifecycleConfig(**kwargs)


@pytest.mark.parametrize("n, expected", [(1, None), (2, 1), (5, 4), (10, 8)])
def test_validation_start(n, expected):
    assert LifecycleConfig().validation_start(n) == expected


def test_to_dict_is_json_safe():
    import json

    assert json.loads(json.dumps(LifecycleConfig().to_dict()))["epochs"] == 50
