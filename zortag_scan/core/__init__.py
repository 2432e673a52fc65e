# zortag_scan/core/__init__.py
"""
Core modules - Infrastructure & Configuration.

- settings: Unified configuration
- errors: Exception taxonomy
- camera: Camera session management
- dispatch: Worker -> UI thread hand-off
- tflite_helper: TFLite interpreter helper
- model_factory: Factory for model/classifier
"""

from .settings import settings, Settings
from .errors import (
    ZortagScanError,
    CameraUnavailable,
    CaptureBindingError,
    ConversionError,
    InferenceError,
    TorchUnsupported,
    ModelLoadError,
)
from .dispatch import UiDispatcher
from .camera import (
    CameraSessionManager,
    CameraConfig,
    CameraDevice,
    CaptureBackend,
    OpenCVCaptureBackend,
    SessionState,
    create_camera,
    select_best_camera,
)
from .tflite_helper import get_interpreter
from .model_factory import create_model, create_classifier

__all__ = [
    'settings',
    'Settings',
    'ZortagScanError',
    'CameraUnavailable',
    'CaptureBindingError',
    'ConversionError',
    'InferenceError',
    'TorchUnsupported',
    'ModelLoadError',
    'UiDispatcher',
    'CameraSessionManager',
    'CameraConfig',
    'CameraDevice',
    'CaptureBackend',
    'OpenCVCaptureBackend',
    'SessionState',
    'create_camera',
    'select_best_camera',
    'get_interpreter',
    'create_model',
    'create_classifier',
]
