import logging
import threading

import numpy as np
import pytest

from conftest import FakeBackend, wait_until
from zortag_scan.core.camera import (
    CameraDevice, CameraSessionManager, OpenCVCaptureBackend, SessionState, select_best_camera
)
from zortag_scan.core.errors import CameraUnavailable, CaptureBindingError, TorchUnsupported
from zortag_scan.processing.frame_convert import Frame


def _frame():
    return Frame(image=np.zeros((48, 64, 3), dtype=np.uint8))


def test_select_prefers_ultra_wide_back_camera():
    devices = [
        CameraDevice(0, position="front", lens="ultra_wide"),
        CameraDevice(1, position="back", lens="wide"),
        CameraDevice(2, position="back", lens="ultra_wide"),
    ]
    assert select_best_camera(devices, ["ultra_wide", "wide"]).device_id == 2


def test_select_falls_back_to_wide():
    devices = [CameraDevice(1, position="back", lens="wide"), CameraDevice(3, position="back", lens="telephoto")]
    assert select_best_camera(devices, ["ultra_wide", "wide"]).device_id == 1


def test_select_without_back_camera():
    assert select_best_camera([CameraDevice(0, position="front")]) is None
    assert select_best_camera([]) is None


def test_configure_binds_selected_device(camera, backend):
    assert camera.configure()
    assert camera.device is backend.opened
    assert camera.configuration_error is None


def test_no_rear_camera_reports_camera_unavailable(dispatcher):
    backend = FakeBackend(devices=[CameraDevice(0, position="front")])
    manager = CameraSessionManager(backend, dispatcher)
    delivered = []

    assert not manager.configure()
    assert isinstance(manager.configuration_error, CameraUnavailable)
    assert manager.state == SessionState.IDLE

    manager.enable_frame_delivery(delivered.append)
    manager.start()
    assert not manager.is_running
    assert not dispatcher.run_pending(timeout=0.05)
    assert delivered == []


@pytest.mark.parametrize("kwargs", [{"open_ok": False}, {"open_error": OSError("busy")}])
def test_binding_failure_reports_capture_binding_error(dispatcher, kwargs):
    manager = CameraSessionManager(FakeBackend(**kwargs), dispatcher)

    assert not manager.configure()
    assert isinstance(manager.configuration_error, CaptureBindingError)
    assert not manager.is_configured


def test_frames_discarded_until_delivery_enabled(camera, dispatcher):
    camera.configure()

    assert not camera.process_frame(_frame())
    assert camera.frames_discarded == 1
    assert not dispatcher.has_pending()


def test_delivered_frame_reaches_callback_on_ui_thread(camera, dispatcher):
    delivered = []
    camera.configure()
    camera.enable_frame_delivery(delivered.append)

    assert camera.process_frame(_frame())
    assert delivered == []
    dispatcher.run_pending()

    assert len(delivered) == 1
    assert delivered[0].pixels.shape == (48, 64, 3)
    assert camera.frames_delivered == 1


def test_frame_dropped_while_ui_update_pending(camera, dispatcher):
    delivered = []
    camera.configure()
    camera.enable_frame_delivery(delivered.append)

    assert camera.process_frame(_frame())
    assert not camera.process_frame(_frame())
    dispatcher.run_pending()

    assert len(delivered) == 1
    assert camera.get_stats()['frames_dropped'] == 1


def test_disable_then_enable_resumes_without_reconfigure(camera, dispatcher):
    delivered = []
    camera.configure()
    camera.enable_frame_delivery(delivered.append)
    camera.disable_frame_delivery()

    assert not camera.process_frame(_frame())
    camera.enable_frame_delivery(delivered.append)
    assert camera.process_frame(_frame())
    dispatcher.run_pending()

    assert len(delivered) == 1


def test_undecodable_frame_is_skipped(camera, dispatcher):
    camera.configure()
    camera.enable_frame_delivery(lambda b: None)

    assert not camera.process_frame(Frame(image=None))
    assert camera.conversion_failures == 1
    assert not dispatcher.has_pending()


def test_offer_frame_keeps_single_slot(camera):
    camera.configure()
    first, second = _frame(), _frame()

    assert camera.offer_frame(first)
    assert not camera.offer_frame(second)
    assert camera.latest_frame() is second
    assert camera.frames_dropped == 1


def test_torch_unsupported_is_non_fatal(camera, backend, caplog):
    backend.torch_supported = False
    camera.configure()

    with caplog.at_level(logging.WARNING):
        camera.set_torch(True)

    assert not camera.torch_on
    assert "Flash not available" in caplog.text


def test_start_runs_pipeline_and_stop_returns_to_idle(camera, backend, dispatcher):
    delivered = []
    camera.configure()
    camera.enable_frame_delivery(delivered.append)
    camera.start()

    assert camera.is_running
    assert wait_until(lambda: camera.torch_on)
    assert wait_until(lambda: dispatcher.run_pending(timeout=0.05) and len(delivered) > 0)

    camera.stop()

    assert camera.state == SessionState.IDLE
    assert backend.opened is None
    assert backend.torch_calls == [True, False]
    assert not camera.torch_on


def test_disable_keeps_capture_running(camera, backend, dispatcher):
    camera.configure()
    camera.start()
    camera.disable_frame_delivery()

    reads_before = backend.reads
    assert wait_until(lambda: backend.reads > reads_before + 3)
    assert camera.is_running
    assert not dispatcher.has_pending()
    assert camera.latest_frame() is not None


def test_opencv_backend_uses_configured_devices():
    backend = OpenCVCaptureBackend(devices=[
        {"device_id": 3, "position": "back", "lens": "ultra_wide", "name": "usb"},
    ])

    devices = backend.discover()

    assert devices == [CameraDevice(3, position="back", lens="ultra_wide", name="usb")]


def test_opencv_backend_torch_via_led_file(tmp_path):
    led = tmp_path / "brightness"
    led.write_text("0")
    (tmp_path / "max_brightness").write_text("255\n")
    device = CameraDevice(0, torch_path=str(led))
    backend = OpenCVCaptureBackend()

    backend.set_torch(device, True)
    assert led.read_text() == "255"
    backend.set_torch(device, False)
    assert led.read_text() == "0"


def test_opencv_backend_without_led_raises_torch_unsupported():
    with pytest.raises(TorchUnsupported):
        OpenCVCaptureBackend().set_torch(CameraDevice(0), True)


def test_configured_session_stays_idle_until_start(camera):
    assert camera.configure()

    assert camera.state == SessionState.IDLE
    assert camera.is_configured
    assert camera.get_stats()['configured'] is True
    assert camera.configure()


def test_quick_toggles_alternate_torch(dispatcher):
    backend = FakeBackend()
    manager = CameraSessionManager(backend, dispatcher, enable_torch=False)
    manager.configure()
    manager.start()
    try:
        gate = threading.Event()
        manager.submit(lambda: gate.wait(2.0))
        manager.toggle_torch()
        manager.toggle_torch()
        gate.set()

        assert wait_until(lambda: len(backend.torch_calls) == 2)
        assert backend.torch_calls == [True, False]
        assert not manager.torch_on
    finally:
        manager.stop()
