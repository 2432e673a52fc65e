# zortag_scan/processing/controller.py
"""
Scan Controller module.

Nối UI (nút Start/Stop, hộp kết quả) với camera và Inference Adapter.

Usage:
    from zortag_scan.processing.controller import ScanController

    controller = ScanController(camera, classifier)
    controller.start()           # Start: bật frame delivery
    ...
    text = controller.prediction_text
    controller.stop()            # Stop: frame bị bỏ, camera vẫn chạy
"""
import threading
import logging
from typing import Optional

import numpy as np

from ..core.errors import ConversionError, InferenceError
from ..inference.classifier import ClassificationResult, InferenceAdapter, Label
from .display import format_label
from .frame_convert import Bitmap

logger = logging.getLogger(__name__)


class ScanController:
    """
    Trạng thái UI: đang chạy hay không, label hiện tại.
    on_frame() chạy trên UI thread; các getter an toàn cho web thread.
    """

    def __init__(self, camera, classifier: InferenceAdapter):
        self.camera = camera
        self.classifier = classifier

        self._lock = threading.Lock()
        self._running = False
        self._last_result: Optional[ClassificationResult] = None
        self.failures = 0

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def last_label(self) -> Optional[Label]:
        with self._lock:
            return self._last_result.label if self._last_result else None

    @property
    def last_result(self) -> Optional[ClassificationResult]:
        with self._lock:
            return self._last_result

    @property
    def prediction_text(self) -> str:
        return format_label(self.last_label)

    @property
    def display_text(self) -> str:
        """Label kèm icon cho web UI."""
        return format_label(self.last_label, decorated=True)

    def start(self):
        """Nút Start."""
        with self._lock:
            self._running = True
        self.camera.enable_frame_delivery(self.on_frame)
        logger.info("▶️ Processing started")

    def stop(self):
        """Nút Stop."""
        with self._lock:
            self._running = False
        self.camera.disable_frame_delivery()
        logger.info("⏹️ Processing stopped")

    def on_frame(self, bitmap: Bitmap):
        """
        Callback frame delivery (UI thread).
        Lỗi convert/inference: log và giữ nguyên label cũ.
        """
        if not self.is_running:
            return

        try:
            result = self.classifier.predict(bitmap)
        except ConversionError as e:
            self.failures += 1
            logger.error(f"❌ Error: Image processing failed ({e})")
            return
        except InferenceError as e:
            self.failures += 1
            logger.error(f"❌ {e}")
            return

        with self._lock:
            previous = self._last_result
            self._last_result = result

        if previous is None or previous.label != result.label:
            logger.info(f"🔹 {result.label}")

    def status(self) -> dict:
        """Trạng thái cho web API."""
        stats = self.camera.get_stats()
        result = self.last_result
        return {
            'label': self.prediction_text,
            'running': self.is_running,
            'text': self.display_text,
            # NaN/inf (softmax tràn số) không hợp lệ trong JSON
            'scores': [round(float(s), 4) if np.isfinite(s) else None for s in result.scores] if result else [],
            'state': stats.get('state'),
            'configured': stats.get('configured', False),
            'frames_delivered': stats.get('frames_delivered', 0),
            'frames_dropped': stats.get('frames_dropped', 0),
            'torch_on': stats.get('torch_on', False),
            'failures': self.failures,
        }
