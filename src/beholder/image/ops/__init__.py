"""
Registry of named image processing operations.

Operations are looked up by class name and configured with keyword
parameters, either one at a time::

    op = create_op("GaussianBlur", kernel_width=5, kernel_height=5)

or from a list of single-key dicts, in order::

    ops = create_operators([{"Grayscale": None}, {"Threshold": {"threshold": 128}}])
"""

import logging
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Type

from ..processing_op import ProcessingOp
from .color import (
    BGR,
    CLAHE,
    AdaptiveThreshold,
    CorrectGamma,
    EqualizeHistogram,
    Grayscale,
    Invert,
    NormalizeBrightnessContrast,
    Threshold,
    ThresholdType,
)
from .draw import DrawBoundingBoxes, DrawLabels
from .filters import (
    Deblur,
    DivGaussianBlur,
    FastNlMeansDenoise,
    GaussianBlur,
    MedianBlur,
    MorphShape,
    Morphology,
    MorphType,
    UnsharpMask,
)
from .geometry import (
    AddPadding,
    AutoCrop,
    AutoOrient,
    Crop,
    Landscape,
    Rescale,
    Resize,
    ResizeToHeight,
    Rotate,
)

logger = logging.getLogger(__name__)

OP_TABLE: Mapping[str, Type[ProcessingOp]] = MappingProxyType({
    cls.__name__: cls
    for cls in (
        AdaptiveThreshold,
        AddPadding,
        AutoCrop,
        AutoOrient,
        BGR,
        CLAHE,
        CorrectGamma,
        Crop,
        Deblur,
        DivGaussianBlur,
        DrawBoundingBoxes,
        DrawLabels,
        EqualizeHistogram,
        FastNlMeansDenoise,
        GaussianBlur,
        Grayscale,
        Invert,
        Landscape,
        MedianBlur,
        Morphology,
        NormalizeBrightnessContrast,
        Rescale,
        Resize,
        ResizeToHeight,
        Rotate,
        Threshold,
        UnsharpMask,
    )
})


def create_op(name: str, **params: Any) -> ProcessingOp:
    """Create an operation by registered name.

    Raises:
        KeyError: unknown operation name
        TypeError: unknown parameter for the operation
    """
    try:
        cls = OP_TABLE[name]
    except KeyError:
        raise KeyError(f"Unknown processing operation: {name!r}") from None
    return cls(**params)


def create_operators(op_param_list: List[Dict[str, Optional[Dict[str, Any]]]]) -> List[ProcessingOp]:
    """Create processing operations from a config list.

    Args:
        op_param_list: List of dicts like [{"OpName": {params}}]

    Returns:
        List of operation instances, in config order
    """
    assert isinstance(op_param_list, list), "operator config should be a list"
    ops = []
    for operator in op_param_list:
        assert isinstance(operator, dict) and len(operator) == 1
        op_name = list(operator)[0]
        param = {} if operator[op_name] is None else operator[op_name]
        ops.append(create_op(op_name, **param))
    logger.debug("created %d operators", len(ops))
    return ops


__all__ = [
    "OP_TABLE",
    "create_op",
    "create_operators",
    "MorphShape",
    "MorphType",
    "ThresholdType",
] + sorted(OP_TABLE)
