"""Image sources and processing operations."""

from .ops import OP_TABLE, create_op, create_operators
from .processing_op import OpResult, ProcessingOp
from .raw import PixelType, RawImage, ReadMode, array_to_raw, raw_to_array, read_image, write_image

__all__ = [
    "OP_TABLE",
    "OpResult",
    "PixelType",
    "ProcessingOp",
    "RawImage",
    "ReadMode",
    "array_to_raw",
    "create_op",
    "create_operators",
    "raw_to_array",
    "read_image",
    "write_image",
]
