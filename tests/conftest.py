"""
Pytest configuration và fixtures dùng chung.
"""
import time
from pathlib import Path

import numpy as np
import pytest

from zortag_scan.core.camera import CameraDevice, CaptureBackend, CameraSessionManager
from zortag_scan.core.dispatch import UiDispatcher
from zortag_scan.core.errors import TorchUnsupported
from zortag_scan.inference.classifier import InferenceAdapter
from zortag_scan.processing.frame_convert import Bitmap, Frame


class FakeBackend(CaptureBackend):
    """Camera giả: trả về frame BGR ngẫu nhiên."""

    def __init__(self, devices=None, open_ok=True, open_error=None, frame_shape=(480, 640, 3)):
        self.devices = devices if devices is not None else [
            CameraDevice(device_id=0, position="back", lens="wide", name="wide"),
        ]
        self.open_ok = open_ok
        self.open_error = open_error
        self.frame_shape = frame_shape
        self.opened = None
        self.closed = 0
        self.torch_calls = []
        self.torch_supported = True
        self.reads = 0

    def discover(self):
        return list(self.devices)

    def open(self, device):
        if self.open_error is not None:
            raise self.open_error
        if self.open_ok:
            self.opened = device
        return self.open_ok

    def read(self):
        if self.opened is None:
            return None
        time.sleep(0.005)
        self.reads += 1
        image = np.full(self.frame_shape, self.reads % 255, dtype=np.uint8)
        return Frame(image=image, device_id=self.opened.device_id)

    def close(self):
        self.opened = None
        self.closed += 1

    def set_torch(self, device, on):
        if not self.torch_supported:
            raise TorchUnsupported("no torch")
        self.torch_calls.append(on)


class FakeModel:
    """Model giả: trả về confidence cố định, ghi lại input."""

    def __init__(self, confidence=(2.0, 1.0), error=None, outputs=None):
        self.confidence = confidence
        self.error = error
        self.outputs = outputs
        self.calls = []

    def predict(self, pixel_buffer, iou_threshold, confidence_threshold):
        self.calls.append((pixel_buffer, iou_threshold, confidence_threshold))
        if self.error is not None:
            raise self.error
        if self.outputs is not None:
            return self.outputs
        return {"confidence": np.asarray(self.confidence, dtype=np.float32)}


@pytest.fixture
def project_root() -> Path:
    """Thư mục gốc của project."""
    return Path(__file__).parent.parent


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def dispatcher():
    return UiDispatcher()


@pytest.fixture
def camera(backend, dispatcher):
    manager = CameraSessionManager(backend, dispatcher, lens_preference=["ultra_wide", "wide"],
                                   enable_torch=True)
    yield manager
    manager.stop()


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def classifier(fake_model):
    return InferenceAdapter(fake_model)


@pytest.fixture
def bitmap():
    pixels = np.zeros((480, 640, 3), dtype=np.uint8)
    pixels[:, :, 0] = 200
    return Bitmap(pixels=pixels)


def wait_until(predicate, timeout=2.0, interval=0.01):
    """Chờ tới khi predicate() True hoặc hết timeout."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
