"""Operations which change the image geometry."""

import math
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from ..processing_op import OpResult, ProcessingOp, is_empty, to_gray


@dataclass(frozen=True)
class Crop(ProcessingOp):
    """Crop to ``[left, left + width) x [top, top + height)``.

    The requested rectangle is snapped to the image bounds. A width or height
    of None extends the crop to the image edge.
    """
    left: int = 0
    top: int = 0
    width: Optional[int] = None
    height: Optional[int] = None

    def execute(self, image: np.ndarray) -> OpResult:
        rows, cols = image.shape[:2]
        right = cols if self.width is None else self.left + self.width
        bottom = rows if self.height is None else self.top + self.height

        # snap to bounds
        x0 = min(max(self.left, 0), cols)
        y0 = min(max(self.top, 0), rows)
        x1 = min(max(right, 0), cols)
        y1 = min(max(bottom, 0), rows)
        if x1 <= x0 or y1 <= y0:
            return False, None
        return True, image[y0:y1, x0:x1].copy()


@dataclass(frozen=True)
class Resize(ProcessingOp):
    width: int = 640
    height: int = 640

    def execute(self, image: np.ndarray) -> OpResult:
        if self.width <= 0 or self.height <= 0 or is_empty(image):
            return False, None
        return True, cv2.resize(image, (self.width, self.height))


def _interpolation(enlarging: bool) -> int:
    # shrinking is the common case; enlarged images are usually small and
    # already blurry, where cubic beats linear
    return cv2.INTER_CUBIC if enlarging else cv2.INTER_AREA


@dataclass(frozen=True)
class Rescale(ProcessingOp):
    scale: float = 1.0

    def execute(self, image: np.ndarray) -> OpResult:
        if self.scale <= 0 or is_empty(image):
            return False, None
        rows, cols = image.shape[:2]
        size = (max(int(round(cols * self.scale)), 1), max(int(round(rows * self.scale)), 1))
        return True, cv2.resize(image, size, interpolation=_interpolation(self.scale > 1.0))


@dataclass(frozen=True)
class ResizeToHeight(ProcessingOp):
    """Resize to a fixed height, preserving the aspect ratio."""
    height: int = 64

    def execute(self, image: np.ndarray) -> OpResult:
        if self.height <= 0 or is_empty(image):
            return False, None
        rows, cols = image.shape[:2]
        width = max(int(round(self.height * cols / rows)), 1)
        interp = _interpolation(width * self.height > rows * cols)
        return True, cv2.resize(image, (width, self.height), interpolation=interp)


@dataclass(frozen=True)
class AddPadding(ProcessingOp):
    padding: int = 10
    pad_value: float = 255.0  # assume white background

    def execute(self, image: np.ndarray) -> OpResult:
        if self.padding < 0:
            return False, None
        p = self.padding
        value = (self.pad_value,) * 4
        return True, cv2.copyMakeBorder(image, p, p, p, p, cv2.BORDER_CONSTANT, value=value)


def _rotation_canvas(center, size, angle):
    """Bounding size of a ``size`` rectangle rotated by ``angle`` degrees."""
    pts = cv2.boxPoints((center, size, angle))
    width = float(pts[:, 0].max() - pts[:, 0].min())
    height = float(pts[:, 1].max() - pts[:, 1].min())
    return width, height


@dataclass(frozen=True)
class Rotate(ProcessingOp):
    """Rotate around the image center, growing the canvas to fit."""
    angle: float = 0.0

    def execute(self, image: np.ndarray) -> OpResult:
        if is_empty(image):
            return False, None
        rows, cols = image.shape[:2]
        center = ((cols - 1) / 2.0, (rows - 1) / 2.0)
        rot = cv2.getRotationMatrix2D(center, self.angle, 1.0)
        width, height = _rotation_canvas(center, (cols, rows), self.angle)
        rot[0, 2] += (width - cols) / 2.0
        rot[1, 2] += (height - rows) / 2.0
        size = (max(int(round(width)), 1), max(int(round(height)), 1))
        out = cv2.warpAffine(
            image, rot, size,
            flags=cv2.INTER_NEAREST,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=(255, 255, 255),
        )
        return True, out


@dataclass(frozen=True)
class Landscape(ProcessingOp):
    """Rotate portrait images by 90 degrees clockwise."""

    def execute(self, image: np.ndarray) -> OpResult:
        rows, cols = image.shape[:2]
        if cols > rows:
            return True, image.copy()
        return True, cv2.rotate(image, cv2.ROTATE_90_CLOCKWISE)


def find_text_box(
    image: np.ndarray,
    kernel_size: int,
    text_height: float,
    text_width: float,
    padding: float,
    gradient_kernel_size: int,
):
    """Locate the largest text-like region in an image.

    Returns a rotated rect ``((cx, cy), (w, h), angle)`` with ``w >= h``,
    grown by ``padding`` on each side, or None when nothing qualifies.
    """
    img = to_gray(image)
    if img.dtype != np.uint8:
        img = cv2.normalize(img, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)

    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (gradient_kernel_size, gradient_kernel_size))
    img = cv2.morphologyEx(img, cv2.MORPH_GRADIENT, kernel)
    _, img = cv2.threshold(img, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (kernel_size, kernel_size))
    img = cv2.morphologyEx(img, cv2.MORPH_CLOSE, kernel)

    contours, _ = cv2.findContours(img, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    best = None
    best_area = 0.0
    for contour in contours:
        (cx, cy), (w, h), angle = cv2.minAreaRect(contour)
        # width > height keeps the runtime parameters unambiguous
        if w < h:
            w, h = h, w
            angle -= 90.0
        if w > text_width and h > text_height and w * h > best_area:
            best = ((cx, cy), (w, h), angle)
            best_area = w * h

    if best is None:
        return None
    (cx, cy), (w, h), angle = best
    return (cx, cy), (w + 2 * padding, h + 2 * padding), angle


@dataclass(frozen=True)
class AutoOrient(ProcessingOp):
    """Level the largest text region and center it on the output image."""
    kernel_size: int = 30
    text_height: float = 40.0
    text_width: float = 300.0
    padding: float = 10.0
    pad_value: float = 255.0
    gradient_kernel_size: int = 3

    def execute(self, image: np.ndarray) -> OpResult:
        if is_empty(image):
            return False, None
        leveled = self.level(image)
        if leveled is None:
            return True, image.copy()
        return True, leveled[0]

    def level(self, image: np.ndarray):
        """Rotate the largest text box level and move it to the image center.

        Returns:
            ``(out, box_size, center)`` or None when no text box qualifies
        """
        box = find_text_box(
            image, self.kernel_size, self.text_height, self.text_width,
            self.padding, self.gradient_kernel_size,
        )
        if box is None:
            return None

        ctr, size, angle = box
        rows, cols = image.shape[:2]
        img_w, img_h = _rotation_canvas(ctr, (cols, rows), angle)
        width = max(img_w, size[0])
        height = max(img_h, size[1])

        # rotate around the text box, then move it to the new image center
        rot = cv2.getRotationMatrix2D(ctr, angle, 1.0)
        center = ((width - 1) / 2.0, (height - 1) / 2.0)
        rot[0, 2] += center[0] - ctr[0]
        rot[1, 2] += center[1] - ctr[1]
        out = cv2.warpAffine(
            image, rot, (max(int(round(width)), 1), max(int(round(height)), 1)),
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=(self.pad_value,) * 4,
        )
        return out, size, center


@dataclass(frozen=True)
class AutoCrop(AutoOrient):
    """Level the largest text region and crop the image to it."""

    def execute(self, image: np.ndarray) -> OpResult:
        if is_empty(image):
            return False, None
        leveled = self.level(image)
        if leveled is None:
            return True, image.copy()

        out, (width, height), (cx, cy) = leveled
        rows, cols = out.shape[:2]
        # snap to bounds, keeping at least one pixel
        x0 = min(max(int(math.floor(cx - width / 2)), 0), cols - 1)
        y0 = min(max(int(math.floor(cy - height / 2)), 0), rows - 1)
        x1 = min(int(math.ceil(cx + width / 2)) + 1, cols)
        y1 = min(int(math.ceil(cy + height / 2)) + 1, rows)
        return True, out[y0:y1, x0:x1].copy()
