# zortag_scan/processing/display.py
"""
Display/UI Handler module.

Vẽ overlay lên preview: hộp kết quả dự đoán, gợi ý phím Start/Stop, stats.
Tách biệt logic hiển thị khỏi logic xử lý chính.

Usage:
    from zortag_scan.processing.display import DisplayHandler

    display = DisplayHandler(overlay_enabled=True)
    display.draw_prediction(frame, "Real")
    display.draw_controls(frame, running=True)
    key = display.show("ZortagScan", frame)
"""
import cv2
import numpy as np
from typing import Tuple, Optional, Dict, Any
from dataclasses import dataclass

WAITING_TEXT = "Waiting for Prediction..."
NO_PREDICTION_TEXT = "No Prediction"


def format_label(label, decorated: bool = False) -> str:
    """
    Text hiển thị cho label (None = chưa có kết quả).

    decorated=True thêm icon cho web UI: "🔹 Real", "⚠️ No Prediction".
    """
    if label is None:
        return WAITING_TEXT
    text = str(label)
    if decorated:
        icon = "⚠️" if text == NO_PREDICTION_TEXT else "🔹"
        return f"{icon} {text}"
    return text


@dataclass
class ColorScheme:
    """Bảng màu (BGR format)."""
    TEXT: Tuple[int, int, int] = (255, 255, 255)
    BOX_BG: Tuple[int, int, int] = (0, 0, 0)
    FAKE: Tuple[int, int, int] = (0, 0, 255)            # Đỏ
    REAL: Tuple[int, int, int] = (0, 255, 0)            # Xanh lá
    NO_PREDICTION: Tuple[int, int, int] = (0, 255, 255)  # Vàng
    START: Tuple[int, int, int] = (0, 160, 0)
    STOP: Tuple[int, int, int] = (0, 0, 200)
    STATS: Tuple[int, int, int] = (200, 200, 200)


class DisplayHandler:
    """
    Xử lý tất cả hiển thị UI/overlay trên frame.
    """

    def __init__(
        self,
        overlay_enabled: bool = True,
        colors: Optional[ColorScheme] = None,
        font: int = cv2.FONT_HERSHEY_SIMPLEX,
        font_scale: float = 1.0,
        thickness: int = 2,
        box_opacity: float = 0.7
    ):
        """
        Args:
            overlay_enabled: True để vẽ overlay
            colors: ColorScheme tùy chỉnh
            font: OpenCV font
            font_scale: Kích thước chữ
            thickness: Độ dày nét chữ (2 = bold)
            box_opacity: Độ mờ nền hộp kết quả
        """
        self.enabled = overlay_enabled
        self.colors = colors or ColorScheme()
        self.font = font
        self.font_scale = font_scale
        self.thickness = thickness
        self.box_opacity = box_opacity

    def _label_color(self, text: str) -> Tuple[int, int, int]:
        key = text.upper().replace(" ", "_")
        return getattr(self.colors, key, self.colors.TEXT)

    def draw_prediction(
        self,
        frame: np.ndarray,
        text: str,
        margin: int = 16
    ) -> Optional[Tuple[int, int, int, int]]:
        """
        Vẽ hộp kết quả (nền đen mờ, chữ trắng đậm) ở đáy màn hình.

        Returns:
            (x_min, y_min, x_max, y_max) của hộp, None nếu overlay tắt
        """
        if not self.enabled:
            return None

        h, w = frame.shape[:2]
        (text_w, text_h), baseline = cv2.getTextSize(text, self.font, self.font_scale, self.thickness)
        box_h = text_h + baseline + 2 * margin

        x_min, x_max = margin, w - margin
        y_max = h - 3 * margin - 40
        y_min = max(0, y_max - box_h)

        overlay = frame.copy()
        cv2.rectangle(overlay, (x_min, y_min), (x_max, y_max), self.colors.BOX_BG, -1)
        cv2.addWeighted(overlay, self.box_opacity, frame, 1 - self.box_opacity, 0, frame)

        text_x = max(x_min + margin, (w - text_w) // 2)
        text_y = y_max - margin - baseline
        cv2.putText(
            frame, text,
            (text_x, text_y),
            self.font, self.font_scale, self._label_color(text), self.thickness
        )
        return (x_min, y_min, x_max, y_max)

    def draw_controls(
        self,
        frame: np.ndarray,
        running: bool,
        margin: int = 16
    ):
        """
        Vẽ gợi ý phím Start (s) / Stop (x) ở dưới cùng.
        Nút đang active được tô đậm.
        """
        if not self.enabled:
            return

        h, w = frame.shape[:2]
        y_max = h - margin
        y_min = y_max - 40
        half = w // 2

        buttons = [
            ("[s] Start", (margin, y_min, half - margin // 2, y_max), self.colors.START, not running),
            ("[x] Stop", (half + margin // 2, y_min, w - margin, y_max), self.colors.STOP, running),
        ]
        for label, (x1, y1, x2, y2), color, active in buttons:
            cv2.rectangle(frame, (x1, y1), (x2, y2), color, -1 if active else 2)
            cv2.putText(
                frame, label,
                (x1 + 12, y2 - 12),
                self.font, 0.7, self.colors.TEXT, 2
            )

    def draw_stats(
        self,
        frame: np.ndarray,
        stats: Dict[str, Any],
        position: Optional[Tuple[int, int]] = None
    ):
        """
        Vẽ thông tin stats góc trên trái.

        Args:
            frame: Frame để vẽ
            stats: Dict chứa thông tin
            position: Vị trí (mặc định góc trên trái)
        """
        if not self.enabled:
            return

        if position is None:
            position = (10, 24)

        parts = []
        if 'elapsed_ms' in stats:
            parts.append(f"{stats['elapsed_ms']:.0f}ms")
        if 'frames_delivered' in stats:
            parts.append(f"Frames:{stats['frames_delivered']}")
        if 'frames_dropped' in stats:
            parts.append(f"Drop:{stats['frames_dropped']}")
        if stats.get('torch_on'):
            parts.append("Flash")

        cv2.putText(
            frame, " | ".join(parts),
            position,
            self.font, 0.5, self.colors.STATS, 1
        )

    def show(self, window_name: str, frame: np.ndarray) -> int:
        """
        Hiển thị frame và trả về phím nhấn.

        Returns:
            Mã phím nhấn hoặc -1 nếu không có
        """
        if not self.enabled:
            return -1

        cv2.imshow(window_name, frame)
        return cv2.waitKey(1) & 0xFF

    def destroy_windows(self):
        """Đóng tất cả cửa sổ."""
        cv2.destroyAllWindows()
