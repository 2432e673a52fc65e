# zortag_scan/inference/model.py
"""
Model wrapper - TFLite classification model.

Model được coi là hộp đen: PixelBuffer + (iou, confidence threshold)
-> dict các output có tên. Output schema được kiểm tra một lần khi load.

Input pipeline:
1. Bỏ kênh alpha của buffer ARGB -> RGB
2. Normalize về [0, 1] (float) hoặc quantize theo tham số của tensor (INT8/UINT8)
3. Thêm batch dim, đổi sang NCHW nếu model yêu cầu

Thread-safe: Sử dụng Lock cho TFLite inference.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Tuple

import numpy as np

from ..core.errors import ModelLoadError
from ..core.tflite_helper import get_interpreter
from ..processing.frame_convert import PixelBuffer

logger = logging.getLogger(__name__)

# Tên input phụ của model YOLO export kèm NMS
IOU_INPUT_NAMES = ("iouThreshold", "iou_threshold")
CONFIDENCE_INPUT_NAMES = ("confidenceThreshold", "confidence_threshold")


@dataclass
class ModelOutputSchema:
    """Các output có tên mà model phải cung cấp."""
    required: Tuple[str, ...] = ("confidence",)
    optional: Tuple[str, ...] = ("coordinates",)

    @property
    def fields(self) -> Tuple[str, ...]:
        return self.required + self.optional

    def validate(self, available: Iterable[str]):
        """
        Raises:
            ModelLoadError: thiếu output bắt buộc
        """
        available = set(available)
        missing = [name for name in self.required if name not in available]
        if missing:
            raise ModelLoadError(
                f"Model thiếu output: {', '.join(missing)} (có: {', '.join(sorted(available)) or '-'})"
            )


DEFAULT_SCHEMA = ModelOutputSchema()


def _base_name(tensor_name: str) -> str:
    """'serving_default_iouThreshold:0' -> 'serving_default_iouThreshold'"""
    return tensor_name.split(':')[0]


class TFLiteClassificationModel:
    """
    Real/fake model dạng TFLite. Thread-safe.

    Args:
        model_path: Đường dẫn file .tflite
        output_names: {field: tên tensor} nếu tên tensor khác tên field
        num_threads: Số threads cho interpreter
        schema: Output schema cần kiểm tra
    """

    def __init__(
        self,
        model_path: str,
        output_names: Optional[Mapping[str, str]] = None,
        num_threads: Optional[int] = None,
        schema: ModelOutputSchema = DEFAULT_SCHEMA,
        interpreter=None
    ):
        self._inference_lock = threading.Lock()
        self.model_path = model_path
        self.schema = schema

        try:
            self.interpreter = interpreter or get_interpreter(model_path, num_threads)
            self.interpreter.allocate_tensors()
            self.input_details = self.interpreter.get_input_details()
            self.output_details = self.interpreter.get_output_details()
        except (ValueError, RuntimeError, OSError, ImportError) as e:
            raise ModelLoadError(f"Không load được model {model_path}: {e}") from e

        self._image_input, self._threshold_inputs = self._split_inputs(self.input_details)
        self._field_indices = self._map_outputs(self.output_details, output_names or {})
        self.schema.validate(self._field_indices.keys())

        # Input shape: [1, H, W, 3] hoặc [1, 3, H, W]
        shape = tuple(int(x) for x in self._image_input['shape'])
        self.channels_first = len(shape) == 4 and shape[1] == 3 and shape[3] != 3
        if self.channels_first:
            self.input_size = (shape[3], shape[2])
        else:
            self.input_size = (shape[2], shape[1])

        quant = self._image_input.get('quantization_parameters', {})
        scales = quant.get('scales')
        zero_points = quant.get('zero_points')
        self._input_scale = float(scales[0]) if scales is not None and len(scales) > 0 else 0.0
        self._input_zero_point = int(zero_points[0]) if zero_points is not None and len(zero_points) > 0 else 0

        logger.info(f"[Model] Loaded: {model_path}")
        logger.info(f"[Model] Input: {shape} {np.dtype(self._image_input['dtype']).name}, "
                    f"outputs: {sorted(self._field_indices)}")

    @staticmethod
    def _split_inputs(input_details):
        image_input = None
        thresholds = {}
        for detail in input_details:
            name = _base_name(detail.get('name', ''))
            if name.endswith(IOU_INPUT_NAMES):
                thresholds['iou'] = detail
            elif name.endswith(CONFIDENCE_INPUT_NAMES):
                thresholds['confidence'] = detail
            elif image_input is None:
                image_input = detail
        if image_input is None:
            raise ModelLoadError("Model không có image input")
        return image_input, thresholds

    def _map_outputs(self, output_details, output_names: Mapping[str, str]) -> Dict[str, dict]:
        """Map tên field -> output detail theo tên tensor."""
        by_name = {d.get('name', ''): d for d in output_details}
        mapped = {}
        for field_name in self.schema.fields:
            tensor_name = output_names.get(field_name, field_name)
            if tensor_name in by_name:
                mapped[field_name] = by_name[tensor_name]
                continue
            # Tensor name của TFLite thường có dạng "StatefulPartitionedCall:0"
            for name, detail in by_name.items():
                if _base_name(name).endswith(tensor_name):
                    mapped[field_name] = detail
                    break
        return mapped

    def _prepare_input(self, pixel_buffer: PixelBuffer) -> np.ndarray:
        rgb = pixel_buffer.to_rgb()
        dtype = np.dtype(self._image_input['dtype'])

        if dtype == np.float32:
            data = rgb.astype(np.float32) / 255.0
        else:
            info = np.iinfo(dtype)
            img_float = rgb.astype(np.float32) / 255.0
            scale = self._input_scale or 1.0 / 255.0
            data = np.clip(
                np.round(img_float / scale + self._input_zero_point),
                info.min, info.max
            ).astype(dtype)

        if self.channels_first:
            data = np.transpose(data, (2, 0, 1))
        return np.expand_dims(np.ascontiguousarray(data), axis=0)

    def _dequantize(self, output: np.ndarray, detail: dict) -> np.ndarray:
        """float_value = (int_value - zero_point) * scale"""
        if output.dtype in (np.int8, np.uint8):
            quant = detail.get('quantization_parameters', {})
            scales = quant.get('scales')
            zero_points = quant.get('zero_points')
            scale = float(scales[0]) if scales is not None and len(scales) > 0 else 1.0
            zp = int(zero_points[0]) if zero_points is not None and len(zero_points) > 0 else 0
            return (output.astype(np.float32) - zp) * scale
        return output.astype(np.float32)

    def predict(
        self,
        pixel_buffer: PixelBuffer,
        iou_threshold: float,
        confidence_threshold: float
    ) -> Dict[str, np.ndarray]:
        """
        Chạy model. Thread-safe.

        Returns:
            {field: mảng float32 1 chiều}
        """
        img_input = self._prepare_input(pixel_buffer)

        with self._inference_lock:
            self.interpreter.set_tensor(self._image_input['index'], img_input)
            for key, value in (('iou', iou_threshold), ('confidence', confidence_threshold)):
                detail = self._threshold_inputs.get(key)
                if detail is not None:
                    self.interpreter.set_tensor(
                        detail['index'],
                        np.full(detail['shape'], value, dtype=detail['dtype'])
                    )
            self.interpreter.invoke()

            # Copy để giải phóng interpreter
            raw = {
                name: np.array(self.interpreter.get_tensor(detail['index']), copy=True)
                for name, detail in self._field_indices.items()
            }

        return {
            name: self._dequantize(value, self._field_indices[name]).reshape(-1)
            for name, value in raw.items()
        }
