# zortag_scan/core/dispatch.py
"""
Hand-off giữa background worker và UI thread.

UI thread (main thread) gọi run_pending() trong vòng lặp hiển thị.
Worker gọi post(); nếu còn task chưa được UI chạy thì task mới bị bỏ
(capacity = 0, không có hàng đợi frame).
"""
import threading
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class UiDispatcher:
    """Chuyển callable từ worker sang UI thread, bỏ khi UI đang bận."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Optional[Callable[[], None]] = None
        self._wakeup = threading.Event()

        # Stats
        self.posted = 0
        self.dropped = 0
        self.executed = 0

    def post(self, task: Callable[[], None]) -> bool:
        """
        Gửi task sang UI thread.

        Returns:
            False nếu task bị drop (task trước chưa chạy xong)
        """
        with self._lock:
            if self._pending is not None:
                self.dropped += 1
                return False
            self._pending = task
            self.posted += 1
        self._wakeup.set()
        return True

    def has_pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def run_pending(self, timeout: float = 0.0) -> bool:
        """
        Chạy task đang chờ (gọi từ UI thread).

        Slot chỉ được giải phóng sau khi task chạy xong, nên frame đến
        trong lúc đang inference sẽ bị drop.

        Args:
            timeout: Thời gian chờ task (giây), 0 = không chờ

        Returns:
            True nếu đã chạy một task
        """
        if timeout > 0:
            self._wakeup.wait(timeout)

        with self._lock:
            task = self._pending
            self._wakeup.clear()
        if task is None:
            return False

        try:
            task()
        except Exception as e:
            logger.error(f"❌ UI task error: {e}")
        finally:
            with self._lock:
                self._pending = None
                self.executed += 1
        return True
