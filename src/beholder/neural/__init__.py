"""Neural network detectors."""

from .buffers import DetectionBuffers
from .config import PRINTABLE_CHARSET, ConfigurationError, DetectorConfig, ResizeMode
from .craft import CRAFTStrategy
from .db import DBStrategy
from .detector import DetectorNotReadyError, DetectorState, ExtractionStrategy, ObjectDetector
from .east import EASTStrategy
from .families import DETECTOR_FAMILIES, DetectorPool, create_detector
from .onnx_base import ONNXInferenceBase, ONNXRuntimeError
from .parseq import PARSeqStrategy
from .preprocess import BlobGeometry
from .yolov8 import YOLOv8Strategy

__all__ = [
    "BlobGeometry",
    "CRAFTStrategy",
    "ConfigurationError",
    "DBStrategy",
    "DETECTOR_FAMILIES",
    "DetectionBuffers",
    "DetectorConfig",
    "DetectorNotReadyError",
    "DetectorPool",
    "DetectorState",
    "EASTStrategy",
    "ExtractionStrategy",
    "ONNXInferenceBase",
    "ONNXRuntimeError",
    "ObjectDetector",
    "PARSeqStrategy",
    "PRINTABLE_CHARSET",
    "ResizeMode",
    "YOLOv8Strategy",
    "create_detector",
]
