"""Raw pixel buffers handed over by image sources (cameras, decoders)."""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, NamedTuple, Optional, Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class PixelType(str, Enum):
    MONO8 = "Mono8"
    MONO16 = "Mono16"
    BAYER_GR8 = "BayerGR8"
    BAYER_RG8 = "BayerRG8"
    BAYER_GB8 = "BayerGB8"
    BAYER_BG8 = "BayerBG8"
    BAYER_GR16 = "BayerGR16"
    BAYER_RG16 = "BayerRG16"
    BAYER_GB16 = "BayerGB16"
    BAYER_BG16 = "BayerBG16"
    RGB8 = "RGB8packed"
    BGR8 = "BGR8packed"
    RGBA8 = "RGBA8packed"
    BGRA8 = "BGRA8packed"


class ConversionInfo(NamedTuple):
    dtype: type
    in_channels: int
    color_conversion: Optional[int]  # None: copy as is


CONVERSION_TABLE: Dict[PixelType, ConversionInfo] = {
    PixelType.MONO8: ConversionInfo(np.uint8, 1, None),
    PixelType.MONO16: ConversionInfo(np.uint16, 1, None),
    PixelType.BAYER_GR8: ConversionInfo(np.uint8, 1, cv2.COLOR_BayerGR2BGR),
    PixelType.BAYER_RG8: ConversionInfo(np.uint8, 1, cv2.COLOR_BayerRG2BGR),
    PixelType.BAYER_GB8: ConversionInfo(np.uint8, 1, cv2.COLOR_BayerGB2BGR),
    PixelType.BAYER_BG8: ConversionInfo(np.uint8, 1, cv2.COLOR_BayerBG2BGR),
    PixelType.BAYER_GR16: ConversionInfo(np.uint16, 1, cv2.COLOR_BayerGR2BGR),
    PixelType.BAYER_RG16: ConversionInfo(np.uint16, 1, cv2.COLOR_BayerRG2BGR),
    PixelType.BAYER_GB16: ConversionInfo(np.uint16, 1, cv2.COLOR_BayerGB2BGR),
    PixelType.BAYER_BG16: ConversionInfo(np.uint16, 1, cv2.COLOR_BayerBG2BGR),
    PixelType.RGB8: ConversionInfo(np.uint8, 3, cv2.COLOR_RGB2BGR),
    PixelType.BGR8: ConversionInfo(np.uint8, 3, None),
    PixelType.RGBA8: ConversionInfo(np.uint8, 4, cv2.COLOR_RGBA2BGR),
    PixelType.BGRA8: ConversionInfo(np.uint8, 4, cv2.COLOR_BGRA2BGR),
}


@dataclass
class RawImage:
    """A row-major pixel buffer with its geometry and pixel format.

    ``step`` is the row stride in bytes; 0 means tightly packed.
    """
    rows: int
    cols: int
    pixel_type: Union[PixelType, str]
    buffer: Union[bytes, bytearray, memoryview, np.ndarray]
    step: int = 0
    id: int = 0


def raw_to_array(raw: RawImage) -> Optional[np.ndarray]:
    """Convert a raw image into a mono or BGR array.

    Returns None when the pixel type is unknown or the buffer is too small.
    """
    try:
        info = CONVERSION_TABLE[PixelType(raw.pixel_type)]
    except (KeyError, ValueError):
        logger.warning("unknown pixel type (ID: %s): %s", raw.id, raw.pixel_type)
        return None

    itemsize = np.dtype(info.dtype).itemsize
    row_bytes = raw.cols * info.in_channels * itemsize
    step = raw.step if raw.step > 0 else row_bytes
    data = np.frombuffer(raw.buffer, dtype=np.uint8)
    if raw.rows <= 0 or raw.cols <= 0 or step < row_bytes or data.size < step * (raw.rows - 1) + row_bytes:
        logger.warning("raw image buffer does not match its geometry (ID: %s)", raw.id)
        return None

    if data.size < step * raw.rows:
        data = np.concatenate([data, np.zeros(step * raw.rows - data.size, dtype=np.uint8)])
    rows = data[: step * raw.rows].reshape(raw.rows, step)[:, :row_bytes]
    img = np.ascontiguousarray(rows).view(info.dtype)
    if info.in_channels > 1:
        img = img.reshape(raw.rows, raw.cols, info.in_channels)
    else:
        img = img.reshape(raw.rows, raw.cols)

    if info.color_conversion is None:
        return img.copy()
    return cv2.cvtColor(img, info.color_conversion)


def array_to_raw(img: np.ndarray, id: int = 0) -> RawImage:
    """Wrap an 8-bit mono or BGR array as a raw image."""
    if img.ndim == 2:
        pixel_type = PixelType.MONO8
    elif img.ndim == 3 and img.shape[2] == 3:
        pixel_type = PixelType.BGR8
    else:
        raise ValueError(f"Unsupported image shape: {img.shape}")
    img = np.ascontiguousarray(img, dtype=np.uint8)
    return RawImage(
        rows=img.shape[0],
        cols=img.shape[1],
        pixel_type=pixel_type,
        buffer=img.tobytes(),
        step=img.strides[0],
        id=id,
    )


class ReadMode(int, Enum):
    UNCHANGED = cv2.IMREAD_UNCHANGED
    GRAYSCALE = cv2.IMREAD_GRAYSCALE
    COLOR = cv2.IMREAD_COLOR
    ANY_COLOR = cv2.IMREAD_ANYCOLOR


def read_image(path: Union[str, Path], mode: ReadMode = ReadMode.COLOR) -> Optional[np.ndarray]:
    """Read an image from disk, returning None if it can't be decoded."""
    img = cv2.imread(str(path), int(mode))
    if img is None:
        logger.warning("could not read image: %s", path)
    return img


def write_image(path: Union[str, Path], img: np.ndarray) -> bool:
    ok = cv2.imwrite(str(path), img)
    if not ok:
        logger.warning("could not write image: %s", path)
    return bool(ok)
