import logging

import numpy as np

from conftest import FakeModel
from zortag_scan.inference.classifier import InferenceAdapter, Label
from zortag_scan.processing.controller import ScanController
from zortag_scan.processing.display import WAITING_TEXT, format_label
from zortag_scan.processing.frame_convert import Bitmap, Frame


def test_initial_prediction_text(camera, classifier):
    controller = ScanController(camera, classifier)
    assert controller.prediction_text == WAITING_TEXT
    assert not controller.is_running


def test_start_enables_delivery_and_updates_label(camera, dispatcher, classifier):
    controller = ScanController(camera, classifier)
    camera.configure()

    controller.start()
    assert camera.is_delivering
    camera.process_frame(Frame(image=np.zeros((120, 160, 3), dtype=np.uint8)))
    dispatcher.run_pending()

    assert controller.last_label == Label.FAKE
    assert controller.prediction_text == "Fake"


def test_stop_disables_delivery(camera, classifier):
    controller = ScanController(camera, classifier)
    controller.start()
    controller.stop()

    assert not camera.is_delivering
    assert not controller.is_running


def test_frame_ignored_when_not_running(camera, bitmap, fake_model):
    controller = ScanController(camera, InferenceAdapter(fake_model))

    controller.on_frame(bitmap)

    assert fake_model.calls == []
    assert controller.last_label is None


def test_failures_keep_stale_label(camera, bitmap, caplog):
    model = FakeModel(confidence=(0.0, 3.0))
    controller = ScanController(camera, InferenceAdapter(model))
    controller.start()
    controller.on_frame(bitmap)
    assert controller.last_label == Label.REAL

    model.error = RuntimeError("model crashed")
    with caplog.at_level(logging.ERROR):
        controller.on_frame(bitmap)
        controller.on_frame(Bitmap(pixels=np.zeros((0, 0, 3), dtype=np.uint8)))

    assert controller.last_label == Label.REAL
    assert controller.failures == 2
    assert "model crashed" in caplog.text


def test_status_payload(camera, bitmap, classifier):
    controller = ScanController(camera, classifier)
    controller.start()
    controller.on_frame(bitmap)

    status = controller.status()

    assert status['label'] == "Fake"
    assert status['running'] is True
    assert len(status['scores']) == 2
    assert status['state'] == "idle"
    assert set(status) >= {'frames_delivered', 'frames_dropped', 'torch_on', 'failures'}


def test_display_text_adds_icons(camera, bitmap):
    model = FakeModel(outputs={"confidence": np.array([], dtype=np.float32)})
    controller = ScanController(camera, InferenceAdapter(model))
    assert controller.display_text == WAITING_TEXT

    controller.start()
    controller.on_frame(bitmap)

    assert controller.prediction_text == "No Prediction"
    assert controller.display_text == "⚠️ No Prediction"
    assert format_label(Label.REAL, decorated=True) == "🔹 Real"
