# zortag_scan/inference/classifier.py
"""
Inference Adapter - Bitmap -> Label (Fake / Real / No Prediction).

Pipeline mỗi frame:
1. Resize về 640x640 (input cố định của model)
2. Bitmap -> PixelBuffer ARGB
3. Chạy model với IOU=0.5, confidence=0.5
4. Lấy output "confidence" (không có -> vector rỗng)
5. Softmax
6. softmax[0] > softmax[1] -> Fake, ngược lại Real (hoà -> Real)

Softmax không trừ max và không clamp: model trả giá trị nhỏ, với giá trị
quá lớn exp() sẽ overflow (inf/nan). Đây là giới hạn đã biết.
"""
import time
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Protocol, Sequence

import numpy as np

from ..core.errors import ConversionError, InferenceError
from ..processing.frame_convert import (
    Bitmap, PixelBuffer, bitmap_to_pixel_buffer, resize_bitmap
)

logger = logging.getLogger(__name__)

MODEL_INPUT_SIZE = 640
IOU_THRESHOLD = 0.5
CONFIDENCE_THRESHOLD = 0.5
CONFIDENCE_FIELD = "confidence"


class Label(Enum):
    """Kết quả phân loại."""
    FAKE = "Fake"
    REAL = "Real"
    NO_PREDICTION = "No Prediction"

    def __str__(self):
        return self.value


class ClassificationModel(Protocol):
    def predict(
        self,
        pixel_buffer: PixelBuffer,
        iou_threshold: float,
        confidence_threshold: float
    ) -> Mapping[str, np.ndarray]:
        ...


@dataclass
class ClassificationResult:
    """Kết quả một lần classify."""
    label: Label
    scores: np.ndarray
    elapsed_ms: float = 0.0


def softmax(values: Sequence[float]) -> np.ndarray:
    """exp(v[i]) / sum(exp(v)), float32, không chuẩn hoá trước."""
    v = np.asarray(values, dtype=np.float32).reshape(-1)
    exp_values = np.exp(v)
    return exp_values / np.sum(exp_values)


def label_for_scores(scores: Sequence[float]) -> Label:
    """Map softmax scores -> Label."""
    if len(scores) < 2:
        return Label.NO_PREDICTION
    return Label.FAKE if scores[0] > scores[1] else Label.REAL


class InferenceAdapter:
    """
    Chạy model trên một Bitmap và trả về Label.

    Lỗi được raise (ConversionError / InferenceError) để caller log và bỏ frame.
    """

    def __init__(self, model: ClassificationModel, input_size: int = MODEL_INPUT_SIZE):
        self.model = model
        self.input_size = input_size

    def prepare(self, bitmap: Bitmap) -> PixelBuffer:
        """Resize + convert sang PixelBuffer input_size x input_size."""
        resized = resize_bitmap(bitmap, self.input_size, self.input_size)
        pixel_buffer = bitmap_to_pixel_buffer(resized)
        if pixel_buffer is None:
            raise ConversionError("Image processing failed")
        return pixel_buffer

    def predict(self, bitmap: Bitmap) -> ClassificationResult:
        """
        Classify một bitmap.

        Raises:
            ConversionError: resize/convert thất bại
            InferenceError: model raise lỗi
        """
        start = time.perf_counter()
        pixel_buffer = self.prepare(bitmap)

        try:
            outputs = self.model.predict(
                pixel_buffer,
                iou_threshold=IOU_THRESHOLD,
                confidence_threshold=CONFIDENCE_THRESHOLD
            )
        except Exception as e:
            raise InferenceError(f"Error running model: {e}") from e

        confidence = outputs.get(CONFIDENCE_FIELD) if outputs else None
        if confidence is None:
            confidence = np.empty(0, dtype=np.float32)

        scores = softmax(confidence)
        label = label_for_scores(scores)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"Scores={np.round(scores, 3).tolist()} -> {label} ({elapsed_ms:.0f}ms)")

        return ClassificationResult(label=label, scores=scores, elapsed_ms=elapsed_ms)

    def classify(self, bitmap: Bitmap) -> Label:
        """Bitmap -> Label."""
        return self.predict(bitmap).label
