import json

import pytest

from zortag_scan.core.errors import ModelLoadError
from zortag_scan.core.model_factory import create_classifier
from zortag_scan.core.settings import Settings


def test_defaults_without_config_file(tmp_path):
    cfg = Settings(config_path=str(tmp_path / "missing.json"))

    assert cfg.MODEL_PATH.endswith(".tflite")
    assert cfg.LENS_PREFERENCE == ["ultra_wide", "wide"]
    assert cfg.WEB_PORT == 5000
    assert cfg.OVERLAY_ENABLED == (not cfg.HEADLESS_MODE)
    assert not hasattr(cfg, "web_port")


def test_json_overrides(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "MODEL_PATH": "/opt/models/tag.tflite",
        "WEB_PORT": 8080,
        "ENABLE_TORCH": False,
        "CAMERAS": [{"device_id": 2, "position": "back", "lens": "wide"}],
        "unknown_key": 1,
    }))

    cfg = Settings(config_path=str(path))

    assert cfg.MODEL_PATH == "/opt/models/tag.tflite"
    assert cfg.WEB_PORT == 8080
    assert cfg.ENABLE_TORCH is False
    assert cfg.CAMERAS[0]["device_id"] == 2
    assert not hasattr(cfg, "unknown_key")
    assert cfg.model_path_abs() == "/opt/models/tag.tflite"


def test_invalid_json_is_ignored(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")

    cfg = Settings(config_path=str(path))

    assert cfg.WEB_PORT == 5000


def test_missing_model_file_raises_model_load_error(tmp_path):
    with pytest.raises(ModelLoadError):
        create_classifier(str(tmp_path / "nope.tflite"))
