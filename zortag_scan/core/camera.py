# zortag_scan/core/camera.py
"""
Camera Session Manager module.

Quản lý camera, capture thread, background worker và đèn flash (torch).

Luồng xử lý:
    capture thread  -> đọc frame từ backend (OpenCV), lưu cho preview
    worker thread   -> convert Frame -> Bitmap, chạy các lệnh điều khiển
                       (torch) tuần tự
    UI thread       -> nhận Bitmap qua UiDispatcher, gọi callback

Frame bị bỏ (không xếp hàng) khi worker hoặc UI đang bận.

Usage:
    from zortag_scan.core.camera import CameraSessionManager, OpenCVCaptureBackend

    dispatcher = UiDispatcher()
    camera = CameraSessionManager(OpenCVCaptureBackend(), dispatcher)
    if camera.configure():
        camera.start()
        camera.enable_frame_delivery(on_bitmap)
        while True:
            dispatcher.run_pending(timeout=0.03)
    camera.stop()
"""
import os
import time
import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, List, Optional, Sequence

import cv2

from .dispatch import UiDispatcher
from .errors import CameraUnavailable, CaptureBindingError, TorchUnsupported
from .settings import settings as default_settings
from ..processing.frame_convert import Bitmap, Frame, frame_to_bitmap

logger = logging.getLogger(__name__)

DEFAULT_LENS_PREFERENCE = ("ultra_wide", "wide")


@dataclass
class CameraDevice:
    """Thông tin một camera."""
    device_id: int
    position: str = "back"        # back / front / external
    lens: str = "wide"            # ultra_wide / wide / telephoto
    torch_path: Optional[str] = None
    name: str = ""

    @property
    def has_torch(self) -> bool:
        return bool(self.torch_path) and os.path.exists(self.torch_path)

    @classmethod
    def from_dict(cls, data: dict) -> "CameraDevice":
        return cls(
            device_id=int(data.get("device_id", 0)),
            position=str(data.get("position", "back")),
            lens=str(data.get("lens", "wide")),
            torch_path=data.get("torch_path"),
            name=str(data.get("name", "")),
        )


@dataclass
class CameraConfig:
    """Cấu hình capture."""
    width: int = 1920
    height: int = 1080
    buffer_size: int = 1
    warmup_frames: int = 5
    max_retries: int = 3
    retry_delay: float = 2.0
    probe_count: int = 2
    use_mjpg: bool = False


class SessionState(Enum):
    """
    Trạng thái session.
    CONFIGURING chỉ trong lúc configure() chạy; camera đã bind thì xem is_configured.
    """
    IDLE = "idle"
    CONFIGURING = "configuring"
    RUNNING = "running"


def select_best_camera(
    devices: Sequence[CameraDevice],
    lens_preference: Sequence[str] = DEFAULT_LENS_PREFERENCE
) -> Optional[CameraDevice]:
    """
    Chọn camera sau tốt nhất theo thứ tự ưu tiên ống kính.

    Returns:
        CameraDevice hoặc None nếu không có camera sau phù hợp
    """
    back = [d for d in devices if d.position == "back"]
    for lens in lens_preference:
        for device in back:
            if device.lens == lens:
                return device
    return None


class CaptureBackend(ABC):
    """Giao diện phần cứng camera."""

    @abstractmethod
    def discover(self) -> List[CameraDevice]:
        """Liệt kê các camera có sẵn."""

    @abstractmethod
    def open(self, device: CameraDevice) -> bool:
        """Bind camera. True nếu thành công."""

    @abstractmethod
    def read(self) -> Optional[Frame]:
        """Đọc một frame, None nếu lỗi."""

    @abstractmethod
    def close(self):
        """Giải phóng camera."""

    @abstractmethod
    def set_torch(self, device: CameraDevice, on: bool):
        """Bật/tắt đèn. Raise TorchUnsupported nếu không có."""


class OpenCVCaptureBackend(CaptureBackend):
    """
    Backend dùng cv2.VideoCapture, retry khi mở camera.
    Torch điều khiển qua Linux LED class (/sys/class/leds/<name>/brightness).
    """

    def __init__(self, config: Optional[CameraConfig] = None, devices: Optional[List[dict]] = None):
        self.config = config or CameraConfig()
        self._configured_devices = devices or []
        self._cap: Optional[cv2.VideoCapture] = None
        self._device: Optional[CameraDevice] = None

    def discover(self) -> List[CameraDevice]:
        if self._configured_devices:
            return [CameraDevice.from_dict(d) for d in self._configured_devices]

        # Webcam không cho biết vị trí, coi như camera sau góc rộng
        found = []
        for idx in range(self.config.probe_count):
            cap = cv2.VideoCapture(idx)
            try:
                if cap.isOpened():
                    found.append(CameraDevice(device_id=idx, name=f"camera{idx}"))
            finally:
                cap.release()
        logger.debug(f"Probed cameras: {[d.device_id for d in found]}")
        return found

    def open(self, device: CameraDevice) -> bool:
        for attempt in range(self.config.max_retries):
            try:
                self._cap = cv2.VideoCapture(device.device_id)

                if self._cap.isOpened():
                    self._configure_capture()
                    self._warmup()
                    self._device = device

                    actual_w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
                    actual_h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
                    logger.info(f"📹 Camera {device.device_id} opened: {actual_w}x{actual_h}")
                    return True

            except cv2.error as e:
                logger.warning(f"Camera error: {e}")

            if attempt < self.config.max_retries - 1:
                logger.warning(
                    f"⚠️ Camera chưa sẵn sàng, thử lại "
                    f"({attempt + 1}/{self.config.max_retries})..."
                )
                time.sleep(self.config.retry_delay)

        self.close()
        return False

    def _configure_capture(self):
        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
        self._cap.set(cv2.CAP_PROP_BUFFERSIZE, self.config.buffer_size)
        if self.config.use_mjpg:
            self._cap.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*'MJPG'))

    def _warmup(self):
        """Đọc vài frame đầu để camera ổn định."""
        for _ in range(self.config.warmup_frames):
            self._cap.grab()

    def read(self) -> Optional[Frame]:
        if self._cap is None:
            return None

        ret, image = self._cap.read()
        if not ret:
            return None
        return Frame(image=image, timestamp=time.time(), device_id=self._device.device_id)

    def close(self):
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("📹 Camera released")
        self._device = None

    def set_torch(self, device: CameraDevice, on: bool):
        if not device.has_torch:
            raise TorchUnsupported(f"Camera {device.device_id} không có đèn flash")

        value = "0"
        if on:
            max_path = os.path.join(os.path.dirname(device.torch_path), "max_brightness")
            value = "1"
            if os.path.exists(max_path):
                with open(max_path, "r") as f:
                    value = f.read().strip() or "1"

        with open(device.torch_path, "w") as f:
            f.write(value)


class CameraSessionManager:
    """
    Sở hữu camera, capture thread và background worker.

    Tạo một lần khi khởi động, stop() một lần khi thoát.
    """

    def __init__(
        self,
        backend: CaptureBackend,
        dispatcher: UiDispatcher,
        lens_preference: Optional[Sequence[str]] = None,
        enable_torch: Optional[bool] = None
    ):
        self.backend = backend
        self.dispatcher = dispatcher
        self.lens_preference = tuple(lens_preference or default_settings.LENS_PREFERENCE
                                     or DEFAULT_LENS_PREFERENCE)
        self.enable_torch = default_settings.ENABLE_TORCH if enable_torch is None else enable_torch

        self.state = SessionState.IDLE
        self.device: Optional[CameraDevice] = None
        self.configuration_error: Optional[Exception] = None
        self.torch_on = False

        self._callback: Optional[Callable[[Bitmap], None]] = None
        self._delivering = False

        # Worker: lệnh điều khiển + slot 1 frame
        self._cond = threading.Condition()
        self._tasks: Deque[Callable[[], None]] = deque()
        self._slot: Optional[Frame] = None
        self._control_lock = threading.RLock()

        self._stop_event = threading.Event()
        self._capture_thread: Optional[threading.Thread] = None
        self._worker_thread: Optional[threading.Thread] = None

        self._latest_lock = threading.Lock()
        self._latest: Optional[Frame] = None

        # Stats
        self.frames_captured = 0
        self.frames_dropped = 0
        self.frames_discarded = 0
        self.frames_delivered = 0
        self.conversion_failures = 0

    # === CONFIGURE ===
    def configure(self) -> bool:
        """
        Chọn camera sau tốt nhất và bind vào backend.

        Returns:
            True nếu thành công. Lỗi được log và lưu vào configuration_error.
        """
        if self.device is not None:
            return True
        if self.state != SessionState.IDLE:
            return False

        self.state = SessionState.CONFIGURING
        self.configuration_error = None
        try:
            device = select_best_camera(self.backend.discover(), self.lens_preference)
            if device is None:
                raise CameraUnavailable("Không có camera sau")

            try:
                opened = self.backend.open(device)
            except (OSError, cv2.error) as e:
                raise CaptureBindingError(f"Không truy cập được camera {device.device_id}: {e}") from e
            if not opened:
                raise CaptureBindingError(f"Không truy cập được camera {device.device_id}")

        except (CameraUnavailable, CaptureBindingError) as e:
            logger.error(f"❌ {e}")
            self.configuration_error = e
            self.device = None
            self.state = SessionState.IDLE
            return False

        self.device = device
        self.state = SessionState.IDLE
        logger.info(f"📷 Camera: {device.name or device.device_id} ({device.position}/{device.lens})")
        return True

    @property
    def is_configured(self) -> bool:
        return self.device is not None

    @property
    def is_running(self) -> bool:
        return self.state == SessionState.RUNNING

    # === START / STOP ===
    def start(self):
        """Bắt đầu capture (không block), bật đèn nếu có."""
        if not self.is_configured:
            logger.warning("⚠️ Camera chưa được cấu hình, bỏ qua start()")
            return
        if self.state == SessionState.RUNNING:
            return

        self._stop_event.clear()
        self.state = SessionState.RUNNING

        self._worker_thread = threading.Thread(
            target=self._worker_loop, name="cameraFrameWorker", daemon=True
        )
        self._worker_thread.start()
        self._capture_thread = threading.Thread(
            target=self._capture_loop, name="cameraCapture", daemon=True
        )
        self._capture_thread.start()
        logger.info("📷 Camera session started")

        if self.enable_torch:
            self.set_torch(True)

    def stop(self, timeout: float = 2.0):
        """Tắt đèn, dừng các thread, giải phóng camera."""
        if self.state == SessionState.RUNNING:
            self.set_torch(False)

        self._stop_event.set()
        with self._cond:
            self._cond.notify_all()

        for thread in (self._capture_thread, self._worker_thread):
            if thread is not None and thread.is_alive() and thread is not threading.current_thread():
                thread.join(timeout)
        self._capture_thread = None
        self._worker_thread = None

        self.backend.close()
        self.device = None
        self.state = SessionState.IDLE
        logger.info("📷 Camera session stopped")

    # === FRAME DELIVERY ===
    def enable_frame_delivery(self, callback: Callable[[Bitmap], None]):
        """Các frame tiếp theo được convert và gửi tới callback trên UI thread."""
        self._callback = callback
        self._delivering = True

    def disable_frame_delivery(self):
        """Bỏ các frame tiếp theo, camera vẫn chạy."""
        self._delivering = False

    @property
    def is_delivering(self) -> bool:
        return self._delivering

    def latest_frame(self) -> Optional[Frame]:
        """Frame mới nhất cho preview (không phụ thuộc delivery)."""
        with self._latest_lock:
            return self._latest

    def offer_frame(self, frame: Frame) -> bool:
        """
        Đưa frame vào slot của worker.

        Returns:
            False nếu worker còn frame chưa xử lý (frame mới bị drop)
        """
        with self._latest_lock:
            self._latest = frame
            self.frames_captured += 1

        with self._cond:
            if self._slot is not None:
                self.frames_dropped += 1
                return False
            self._slot = frame
            self._cond.notify()
        return True

    def process_frame(self, frame: Frame) -> bool:
        """
        Bước xử lý của worker: convert và gửi sang UI thread.

        Returns:
            True nếu đã post được sang UI
        """
        callback = self._callback
        if not self._delivering or callback is None:
            self.frames_discarded += 1
            return False

        bitmap = frame_to_bitmap(frame)
        if bitmap is None:
            self.conversion_failures += 1
            logger.debug("Frame không decode được, bỏ qua")
            return False

        return self.dispatcher.post(lambda: self._deliver(callback, bitmap))

    def _deliver(self, callback: Callable[[Bitmap], None], bitmap: Bitmap):
        self.frames_delivered += 1
        logger.debug("📸 Processing new frame")
        callback(bitmap)

    # === CONTROL ===
    def submit(self, task: Callable[[], None]):
        """Chạy lệnh điều khiển tuần tự trên worker (inline nếu worker chưa chạy)."""
        worker = self._worker_thread
        if worker is None or not worker.is_alive():
            self._run_task(task)
            return
        with self._cond:
            self._tasks.append(task)
            self._cond.notify()

    def _run_task(self, task: Callable[[], None]):
        with self._control_lock:
            task()

    def set_torch(self, on: bool):
        """Bật/tắt đèn flash (non-fatal nếu không hỗ trợ)."""
        self.submit(lambda: self._apply_torch(on))

    def toggle_torch(self):
        # Đọc torch_on trong worker, sau các lệnh đang chờ
        self.submit(lambda: self._apply_torch(not self.torch_on))

    def _apply_torch(self, on: bool):
        device = self.device
        if device is None:
            return
        if not on and not self.torch_on:
            return
        try:
            self.backend.set_torch(device, on)
        except TorchUnsupported as e:
            logger.warning(f"⚠️ Flash not available: {e}")
            return
        except OSError as e:
            logger.error(f"❌ Error setting flash: {e}")
            return
        self.torch_on = on
        logger.info(f"✅ Flash turned {'ON' if on else 'OFF'}")

    # === THREADS ===
    def _capture_loop(self):
        while not self._stop_event.is_set():
            frame = self.backend.read()
            if frame is None:
                time.sleep(0.01)
                continue
            self.offer_frame(frame)

    def _worker_loop(self):
        while True:
            task = None
            frame = None
            with self._cond:
                while not self._tasks and self._slot is None and not self._stop_event.is_set():
                    self._cond.wait(0.5)
                if self._tasks:
                    task = self._tasks.popleft()
                elif self._stop_event.is_set():
                    return
                else:
                    frame, self._slot = self._slot, None

            if task is not None:
                self._run_task(task)
            elif frame is not None:
                self.process_frame(frame)

    def get_stats(self) -> dict:
        """Thống kê frame."""
        return {
            'state': self.state.value,
            'configured': self.is_configured,
            'frames_captured': self.frames_captured,
            'frames_dropped': self.frames_dropped + self.dispatcher.dropped,
            'frames_discarded': self.frames_discarded,
            'frames_delivered': self.frames_delivered,
            'conversion_failures': self.conversion_failures,
            'torch_on': self.torch_on,
        }

    def __enter__(self):
        if self.configure():
            self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False


def create_camera(
    dispatcher: UiDispatcher,
    cfg=None
) -> CameraSessionManager:
    """
    Factory tạo CameraSessionManager với OpenCV backend theo settings.
    """
    cfg = cfg or default_settings
    config = CameraConfig(
        width=cfg.CAMERA_WIDTH,
        height=cfg.CAMERA_HEIGHT,
        probe_count=cfg.CAMERA_PROBE_COUNT,
        use_mjpg=cfg.IS_PI
    )
    backend = OpenCVCaptureBackend(config=config, devices=cfg.CAMERAS)
    return CameraSessionManager(
        backend,
        dispatcher,
        lens_preference=cfg.LENS_PREFERENCE,
        enable_torch=cfg.ENABLE_TORCH
    )
