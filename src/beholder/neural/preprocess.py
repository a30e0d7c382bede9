"""Conversion of images into network input blobs.

The steps follow OpenCV's ``blobFromImageWithParams``: expand to 3 channels,
optionally swap R and B, fit to the input size, subtract the mean, multiply by
the scale and lay out as NCHW float32 with a batch of one.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np

from ..results import Rectangle
from .config import DetectorConfig, ResizeMode


@dataclass(frozen=True)
class BlobGeometry:
    """Mapping between blob and source image coordinates.

    A point ``x`` in the image lands at ``x * factor_x + offset_x`` in the blob.
    """
    image_size: Tuple[int, int]  # (width, height)
    blob_size: Tuple[int, int]  # (width, height)
    factor_x: float
    factor_y: float
    offset_x: float = 0.0
    offset_y: float = 0.0

    def to_image_rect(self, rect: Rectangle) -> Rectangle:
        """Map a blob-space box back to the image, clamped to its bounds."""
        width, height = self.image_size
        return (
            rect.shifted(-self.offset_x, -self.offset_y)
            .scaled(1.0 / self.factor_x, 1.0 / self.factor_y)
            .clamp(width, height)
        )

    def to_blob_rect(self, rect: Rectangle) -> Rectangle:
        return rect.scaled(self.factor_x, self.factor_y).shifted(self.offset_x, self.offset_y)


class ToBGR:
    """Expand the image to 3 channels, swapping R and B if requested."""

    def __init__(self, swap_rb=True, **kwargs):
        self.swap_rb = swap_rb

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        if img.ndim == 2 or img.shape[2] == 1:
            code = cv2.COLOR_GRAY2RGB if self.swap_rb else cv2.COLOR_GRAY2BGR
        elif img.shape[2] == 4:
            code = cv2.COLOR_BGRA2RGB if self.swap_rb else cv2.COLOR_BGRA2BGR
        else:
            code = cv2.COLOR_BGR2RGB if self.swap_rb else None

        if code is not None:
            img = cv2.cvtColor(img, code)
        data['image'] = img
        return data


class BlobResize:
    """Fit the image to the network input size and record the geometry."""

    def __init__(self, size=(640, 640), resize_mode=ResizeMode.LETTERBOX,
                 pad_value=(0.0, 0.0, 0.0), **kwargs):
        self.width, self.height = (int(s) for s in size)
        self.resize_mode = ResizeMode(resize_mode)
        self.pad_value = tuple(float(v) for v in pad_value)

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        src_h, src_w = img.shape[:2]
        dst_w, dst_h = self.width, self.height

        if self.resize_mode is ResizeMode.RAW:
            img = cv2.resize(img, (dst_w, dst_h))
            geometry = BlobGeometry((src_w, src_h), (dst_w, dst_h), dst_w / src_w, dst_h / src_h)

        elif self.resize_mode is ResizeMode.LETTERBOX:
            factor = min(dst_w / src_w, dst_h / src_h)
            resize_w = max(int(src_w * factor), 1)
            resize_h = max(int(src_h * factor), 1)
            img = cv2.resize(img, (resize_w, resize_h))

            top = (dst_h - resize_h) // 2
            left = (dst_w - resize_w) // 2
            img = cv2.copyMakeBorder(
                img, top, dst_h - resize_h - top, left, dst_w - resize_w - left,
                cv2.BORDER_CONSTANT, value=self.pad_value,
            )
            geometry = BlobGeometry((src_w, src_h), (dst_w, dst_h), factor, factor, left, top)

        else:  # crop
            factor = max(dst_w / src_w, dst_h / src_h)
            resize_w = max(int(round(src_w * factor)), dst_w)
            resize_h = max(int(round(src_h * factor)), dst_h)
            img = cv2.resize(img, (resize_w, resize_h))

            top = (resize_h - dst_h) // 2
            left = (resize_w - dst_w) // 2
            img = img[top:top + dst_h, left:left + dst_w]
            geometry = BlobGeometry((src_w, src_h), (dst_w, dst_h), factor, factor, -left, -top)

        data['image'] = img
        data['geometry'] = geometry
        return data


class NormalizeImage:
    """Compute ``(pixel - mean) * scale`` per channel."""

    def __init__(self, mean=(0.0, 0.0, 0.0), scale=(1.0, 1.0, 1.0), **kwargs):
        self.mean = np.array(mean).reshape((1, 1, 3)).astype('float32')
        self.scale = np.array(scale).reshape((1, 1, 3)).astype('float32')

    def __call__(self, data: Dict) -> Dict:
        img = data['image'].astype('float32')
        data['image'] = (img - self.mean) * self.scale
        return data


class ToCHWImage:
    """Convert image from HWC to CHW format."""

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        data['image'] = img.transpose((2, 0, 1))
        return data


class KeepKeys:
    """Keep only specified keys in data dict."""

    def __init__(self, keep_keys: List[str], **kwargs):
        self.keep_keys = keep_keys

    def __call__(self, data: Dict) -> Tuple:
        return tuple(data[key] for key in self.keep_keys)


def create_operators(op_param_list: List[Dict]):
    """Create preprocessing operators from config list.

    Args:
        op_param_list: List of dicts like [{"OpName": {params}}]

    Returns:
        List of operator instances
    """
    ops = []
    for operator in op_param_list:
        assert isinstance(operator, dict) and len(operator) == 1
        op_name = list(operator)[0]
        param = {} if operator[op_name] is None else operator[op_name]
        op = globals()[op_name](**param)
        ops.append(op)
    return ops


def transform(data: Dict, ops: List) -> Optional[Tuple]:
    """Apply preprocessing operators sequentially.

    Args:
        data: Dictionary containing 'image' key
        ops: List of operator instances

    Returns:
        Tuple of (chw_image, geometry) or None if error
    """
    for op in ops:
        data = op(data)
        if data is None:
            return None
    return data


def blob_operators(config: DetectorConfig) -> List:
    """Preprocessing operators for a detector configuration."""
    return create_operators([
        {"ToBGR": {"swap_rb": config.swap_rb}},
        {
            "BlobResize": {
                "size": config.size,
                "resize_mode": config.resize_mode,
                "pad_value": config.pad_value,
            }
        },
        {"NormalizeImage": {"mean": config.mean, "scale": config.scale}},
        {"ToCHWImage": None},
        {"KeepKeys": {"keep_keys": ["image", "geometry"]}},
    ])


def make_blob(
    image: np.ndarray,
    ops: List,
    out: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, BlobGeometry]:
    """Build an NCHW blob from an image.

    The input image is not modified. When ``out`` has the blob's shape it is
    filled in place and returned; otherwise a new array is allocated.

    Args:
        image: Input image (H, W) or (H, W, C)
        ops: Operators from :func:`blob_operators`
        out: Blob array to reuse

    Returns:
        Tuple of (blob, geometry)
    """
    result = transform({'image': image}, ops)
    if result is None:
        raise ValueError("preprocessing failed")
    chw, geometry = result

    shape = (1,) + chw.shape
    if out is not None and out.shape == shape and out.dtype == np.float32:
        out[0] = chw
        return out, geometry
    return np.ascontiguousarray(chw[np.newaxis], dtype=np.float32), geometry
