"""
Inference module - TFLite model real/fake.

- Input: 640x640 ARGB pixel buffer
- Output: "confidence" [fake, real]
"""

from .classifier import (
    InferenceAdapter,
    ClassificationResult,
    Label,
    softmax,
    label_for_scores,
)
from .model import TFLiteClassificationModel, ModelOutputSchema

__all__ = [
    'InferenceAdapter',
    'ClassificationResult',
    'Label',
    'softmax',
    'label_for_scores',
    'TFLiteClassificationModel',
    'ModelOutputSchema',
]
