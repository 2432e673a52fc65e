# zortag_scan/core/errors.py
"""
Các exception dùng chung cho pipeline camera -> model -> label.

Mọi lỗi đều được xử lý tại chỗ (log + bỏ qua frame / bước cấu hình),
chỉ ModelLoadError khi khởi động là dừng chương trình.
"""


class ZortagScanError(Exception):
    """Base class cho mọi lỗi của zortag_scan."""


class CameraUnavailable(ZortagScanError):
    """Không tìm thấy camera sau phù hợp."""


class CaptureBindingError(ZortagScanError):
    """Camera bận hoặc không có quyền truy cập."""


class ConversionError(ZortagScanError):
    """Resize / chuyển đổi định dạng ảnh thất bại."""


class InferenceError(ZortagScanError):
    """Model raise lỗi khi chạy inference."""


class TorchUnsupported(ZortagScanError):
    """Thiết bị không có đèn flash (torch). Chỉ là warning."""


class ModelLoadError(ZortagScanError):
    """Không load được model hoặc model thiếu output bắt buộc."""
