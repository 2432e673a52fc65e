# zortag_scan/processing/frame_convert.py
"""
Frame Converter module.

Chuyển đổi giữa các định dạng ảnh trong pipeline:
- Frame (ảnh thô từ camera: BGR/BGRA/GRAY hoặc JPEG bytes) -> Bitmap (RGB)
- Bitmap -> PixelBuffer (ARGB 4 kênh, alpha đứng trước) cho model
- Resize Bitmap về kích thước input của model

Các hàm convert trả về None khi thất bại, caller bỏ qua frame đó.

Usage:
    from zortag_scan.processing.frame_convert import (
        frame_to_bitmap, resize_bitmap, bitmap_to_pixel_buffer
    )

    bitmap = frame_to_bitmap(frame)
    if bitmap is not None:
        buffer = bitmap_to_pixel_buffer(resize_bitmap(bitmap, 640, 640))
"""
import time
import logging
from dataclasses import dataclass, field
from typing import Optional, Union

import cv2
import numpy as np

from ..core.errors import ConversionError

logger = logging.getLogger(__name__)

# Alpha byte cố định (tương đương "none skip first")
ALPHA_OPAQUE = 255


@dataclass
class Frame:
    """Một frame lấy từ camera, chỉ sống trong 1 lần callback."""
    image: Optional[Union[np.ndarray, bytes]]
    timestamp: float = field(default_factory=time.time)
    device_id: Optional[int] = None


@dataclass
class Bitmap:
    """Ảnh RGB uint8 (H x W x 3)."""
    pixels: np.ndarray
    color_space: str = "sRGB"

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass
class PixelBuffer:
    """Buffer ARGB uint8 (H x W x 4) dùng làm input cho model."""
    data: np.ndarray

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def bytes_per_row(self) -> int:
        return self.width * 4

    def to_rgb(self) -> np.ndarray:
        """Bỏ kênh alpha, trả về view RGB."""
        return self.data[:, :, 1:]


def _decode_bytes(raw: bytes) -> Optional[np.ndarray]:
    """Decode JPEG/PNG bytes (ví dụ MJPG từ camera USB)."""
    if not raw:
        return None
    buf = np.frombuffer(raw, dtype=np.uint8)
    return cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)


def frame_to_bitmap(frame: Optional[Frame]) -> Optional[Bitmap]:
    """
    Chuyển Frame thô sang Bitmap RGB.

    Args:
        frame: Frame từ camera

    Returns:
        Bitmap hoặc None nếu frame không có ảnh decode được
    """
    if frame is None or frame.image is None:
        return None

    image = frame.image
    if isinstance(image, (bytes, bytearray, memoryview)):
        image = _decode_bytes(bytes(image))
        if image is None:
            return None

    if not isinstance(image, np.ndarray) or image.size == 0:
        return None

    if image.dtype != np.uint8:
        if image.dtype == np.uint16:
            image = (image >> 8).astype(np.uint8)
        else:
            return None

    try:
        if image.ndim == 2:
            rgb = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
        elif image.ndim == 3 and image.shape[2] == 1:
            rgb = cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2RGB)
        elif image.ndim == 3 and image.shape[2] == 3:
            rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        elif image.ndim == 3 and image.shape[2] == 4:
            rgb = cv2.cvtColor(image, cv2.COLOR_BGRA2RGB)
        else:
            return None
    except cv2.error as e:
        logger.debug(f"Frame convert error: {e}")
        return None

    return Bitmap(pixels=rgb)


def resize_bitmap(bitmap: Bitmap, width: int, height: int) -> Bitmap:
    """
    Resize (stretch, không giữ tỉ lệ) về width x height.

    Raises:
        ConversionError: kích thước nguồn/đích không hợp lệ
    """
    if width <= 0 or height <= 0:
        raise ConversionError(f"Invalid target size {width}x{height}")
    if bitmap is None or bitmap.pixels is None or bitmap.pixels.size == 0:
        raise ConversionError("Empty source bitmap")
    if bitmap.pixels.ndim != 3 or bitmap.width <= 0 or bitmap.height <= 0:
        raise ConversionError(f"Invalid source bitmap shape {bitmap.pixels.shape}")

    if bitmap.width == width and bitmap.height == height:
        return bitmap

    try:
        resized = cv2.resize(bitmap.pixels, (width, height), interpolation=cv2.INTER_LINEAR)
    except cv2.error as e:
        raise ConversionError(f"Resize failed: {e}") from e

    return Bitmap(pixels=resized, color_space=bitmap.color_space)


def bitmap_to_pixel_buffer(bitmap: Bitmap) -> Optional[PixelBuffer]:
    """
    Vẽ Bitmap vào buffer ARGB có cùng kích thước.

    Returns:
        PixelBuffer hoặc None nếu không cấp phát được buffer
    """
    if bitmap is None or bitmap.pixels is None:
        return None

    height, width = bitmap.height, bitmap.width
    if width <= 0 or height <= 0:
        return None

    try:
        data = np.empty((height, width, 4), dtype=np.uint8)
    except MemoryError:
        logger.error(f"❌ Không cấp phát được pixel buffer {width}x{height}")
        return None

    data[:, :, 0] = ALPHA_OPAQUE
    data[:, :, 1:] = bitmap.pixels[:, :, :3]
    return PixelBuffer(data=data)
