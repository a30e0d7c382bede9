"""
beholder - image processing and neural detection pipelines
"""

from .export import ExportedResult, export_result, export_results, release_results
from .image import OP_TABLE, ProcessingOp, RawImage, create_op, create_operators, raw_to_array, read_image
from .neural import (
    DETECTOR_FAMILIES,
    DetectorConfig,
    DetectorNotReadyError,
    DetectorPool,
    ObjectDetector,
    create_detector,
)
from .pipeline import Pipeline, PipelineConfig, PipelineOutcome, load_pipeline_config
from .results import Rectangle, Result

__version__ = "0.1.0"

__all__ = [
    "DETECTOR_FAMILIES",
    "DetectorConfig",
    "DetectorNotReadyError",
    "DetectorPool",
    "ExportedResult",
    "OP_TABLE",
    "ObjectDetector",
    "Pipeline",
    "PipelineConfig",
    "PipelineOutcome",
    "ProcessingOp",
    "RawImage",
    "Rectangle",
    "Result",
    "create_detector",
    "create_op",
    "create_operators",
    "export_result",
    "export_results",
    "load_pipeline_config",
    "raw_to_array",
    "read_image",
    "release_results",
]
