# zortag_scan/core/model_factory.py
"""
Factory module để tạo model và Inference Adapter.

Usage:
    from zortag_scan.core.model_factory import create_classifier

    classifier = create_classifier()
    label = classifier.classify(bitmap)
"""
import os
import logging

from .errors import ModelLoadError
from .settings import settings

logger = logging.getLogger(__name__)


def create_model(model_path=None, output_names=None, num_threads=None):
    """
    Load TFLite model real/fake.

    Raises:
        ModelLoadError: không có file hoặc model thiếu output "confidence"
    """
    from ..inference.model import TFLiteClassificationModel

    model_path = settings.model_path_abs(model_path)
    if not os.path.exists(model_path):
        raise ModelLoadError(f"Không tìm thấy model tại: {model_path}")

    logger.info(f"[Classifier] Model: {model_path}")
    return TFLiteClassificationModel(
        model_path,
        output_names=output_names if output_names is not None else settings.OUTPUT_NAMES,
        num_threads=num_threads if num_threads is not None else settings.TFLITE_NUM_THREADS
    )


def create_classifier(model_path=None, output_names=None, num_threads=None):
    """
    Tạo InferenceAdapter với TFLite model.

    Returns:
        InferenceAdapter instance
    """
    from ..inference.classifier import InferenceAdapter

    return InferenceAdapter(create_model(model_path, output_names, num_threads))
