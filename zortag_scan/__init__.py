# zortag_scan package
"""
ZortagScan - Real/Fake classification trên camera trực tiếp

Structure:
    zortag_scan/
    ├── core/                     # Core infrastructure
    │   ├── settings.py           # Configuration
    │   ├── errors.py             # Exceptions
    │   ├── camera.py             # Camera session (capture + worker + torch)
    │   ├── dispatch.py           # Worker -> UI thread hand-off
    │   ├── tflite_helper.py      # TFLite interpreter helper
    │   └── model_factory.py      # Factory for model/classifier
    ├── processing/               # Processing modules
    │   ├── frame_convert.py      # Frame -> Bitmap -> PixelBuffer
    │   ├── display.py            # UI/Overlay handler
    │   └── controller.py         # Start/Stop + label state
    ├── inference/                # Model + Inference Adapter
    │   ├── model.py              # TFLite model, output schema
    │   └── classifier.py         # Resize, softmax, label
    ├── web/                      # Web UI (headless)
    │   └── server.py             # Flask server
    └── main.py                   # Main application

Usage:
    from zortag_scan import create_classifier

    classifier = create_classifier()
    label = classifier.classify(bitmap)
"""

from .core.settings import settings
from .core.model_factory import create_classifier
from .core.camera import CameraSessionManager
from .inference import InferenceAdapter, Label

__all__ = [
    'settings',
    'create_classifier',
    'CameraSessionManager',
    'InferenceAdapter',
    'Label',
]
