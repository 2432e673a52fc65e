# zortag_scan/core/tflite_helper.py
"""
Helper module để load TFLite interpreter.
Tự động chọn giữa tflite_runtime và tensorflow.lite.
Giúp code chạy được trên cả PC (TensorFlow) và Pi (tflite-runtime).
"""
import logging

from .settings import settings

logger = logging.getLogger(__name__)

# Cache để tránh log nhiều lần
_logged_runtime = False


def _resolve_thread_count(num_threads=None) -> int:
    default_threads = 2 if settings.IS_PI else 4
    configured = num_threads if num_threads is not None else settings.TFLITE_NUM_THREADS
    if configured is None:
        return default_threads

    try:
        return max(1, int(configured))
    except (TypeError, ValueError):
        return default_threads


def get_interpreter(model_path, num_threads=None):
    """
    Tạo TFLite Interpreter từ model path.
    Thử tflite_runtime trước (nhẹ hơn), fallback sang tensorflow.

    Args:
        model_path: Đường dẫn đến file .tflite
        num_threads: Số threads cho inference (mặc định lấy từ settings)
    """
    global _logged_runtime

    num_threads = _resolve_thread_count(num_threads)

    try:
        # tflite_runtime (nhẹ, phù hợp Pi)
        from tflite_runtime.interpreter import Interpreter
        if not _logged_runtime:
            logger.info(f"[TFLite] Sử dụng tflite_runtime (threads={num_threads})")
            _logged_runtime = True
        return Interpreter(model_path=model_path, num_threads=num_threads)
    except ImportError:
        pass

    try:
        # Fallback sang tensorflow đầy đủ
        import tensorflow as tf
        if not _logged_runtime:
            logger.info(f"[TFLite] Sử dụng tensorflow.lite (threads={num_threads})")
            _logged_runtime = True
        return tf.lite.Interpreter(model_path=model_path, num_threads=num_threads)
    except ImportError:
        pass

    raise ImportError(
        "Không tìm thấy TFLite interpreter!\n"
        "Cài đặt một trong hai:\n"
        "  - pip install tflite-runtime  (nhẹ, cho Pi)\n"
        "  - pip install tensorflow       (đầy đủ, cho PC)"
    )
