# zortag_scan/processing/__init__.py
"""
Processing modules - Frame & UI Processing.

- frame_convert: Frame -> Bitmap -> PixelBuffer
- display: UI/Overlay handler
- controller: Start/Stop + label state
"""

from .frame_convert import (
    Frame,
    Bitmap,
    PixelBuffer,
    frame_to_bitmap,
    bitmap_to_pixel_buffer,
    resize_bitmap,
)
from .display import DisplayHandler, format_label
from .controller import ScanController

__all__ = [
    'Frame',
    'Bitmap',
    'PixelBuffer',
    'frame_to_bitmap',
    'bitmap_to_pixel_buffer',
    'resize_bitmap',
    'DisplayHandler',
    'format_label',
    'ScanController',
]
