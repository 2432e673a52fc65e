# zortag_scan/core/settings.py
"""
Configuration cho ZortagScan.
Chỉ giữ những settings thực sự cần thiết, override được qua config/config.json.
"""
import os
import json
import platform
from dataclasses import dataclass, field
from typing import Dict, List, Optional


# === PLATFORM DETECTION ===
IS_WINDOWS = platform.system() == "Windows"
IS_PI = platform.system() == "Linux" and os.path.exists("/proc/device-tree/model")
HAS_DISPLAY = IS_WINDOWS or os.environ.get("DISPLAY", "") != ""

# === PATHS ===
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
CONFIG_PATH = os.path.join(BASE_DIR, 'config', 'config.json')


def _load_json_config(path: str) -> dict:
    """Load config từ JSON file, trả về {} nếu lỗi."""
    if not os.path.exists(path):
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


@dataclass
class Settings:
    """Configuration - giá trị mặc định + override từ JSON."""

    config_path: str = CONFIG_PATH

    # === PLATFORM (read-only) ===
    IS_WINDOWS: bool = field(default_factory=lambda: IS_WINDOWS)
    IS_PI: bool = field(default_factory=lambda: IS_PI)
    HAS_DISPLAY: bool = field(default_factory=lambda: HAS_DISPLAY)
    BASE_DIR: str = field(default_factory=lambda: BASE_DIR)

    # === MODEL ===
    MODEL_PATH: str = "models/zortag/best_float32.tflite"
    # {"confidence": "<tên output tensor>"} nếu tên tensor khác tên field
    OUTPUT_NAMES: Dict[str, str] = field(default_factory=dict)
    TFLITE_NUM_THREADS: int = 4

    # === CAMERA ===
    CAMERA_WIDTH: int = 1920
    CAMERA_HEIGHT: int = 1080
    CAMERA_PROBE_COUNT: int = 2
    # [{"device_id": 0, "position": "back", "lens": "ultra_wide", "torch_path": "..."}]
    CAMERAS: List[dict] = field(default_factory=list)
    LENS_PREFERENCE: List[str] = field(default_factory=lambda: ["ultra_wide", "wide"])
    ENABLE_TORCH: bool = True

    # === WEB SERVER ===
    ENABLE_WEB_SERVER: bool = True
    WEB_PORT: int = 5000

    # === DISPLAY ===
    FORCE_GUI_MODE: bool = False
    HEADLESS_MODE: bool = False
    OVERLAY_ENABLED: bool = True
    AUTOSTART: bool = False

    def __post_init__(self):
        """Tính toán giá trị phụ thuộc platform."""
        self._load_from_json()
        self._compute_defaults()

    def _load_from_json(self):
        """Load settings từ config.json nếu có."""
        config = _load_json_config(self.config_path)
        for key, value in config.items():
            if key.isupper() and hasattr(self, key) and value is not None:
                setattr(self, key, value)

    def _compute_defaults(self):
        """Tính giá trị mặc định theo platform."""
        # Pi không kéo nổi 1080p + model 640x640
        if self.IS_PI:
            if self.CAMERA_WIDTH > 640:
                self.CAMERA_WIDTH = 640
            if self.CAMERA_HEIGHT > 480:
                self.CAMERA_HEIGHT = 480
            self.TFLITE_NUM_THREADS = 2

        # Headless mode
        self.HEADLESS_MODE = not self.IS_WINDOWS and not self.FORCE_GUI_MODE and not self.HAS_DISPLAY
        self.OVERLAY_ENABLED = not self.HEADLESS_MODE

    def model_path_abs(self, path: Optional[str] = None) -> str:
        """Đường dẫn tuyệt đối tới model (tương đối so với BASE_DIR)."""
        path = path or self.MODEL_PATH
        if os.path.isabs(path):
            return path
        return os.path.join(self.BASE_DIR, path)


# === DEFAULT INSTANCE ===
settings = Settings()
