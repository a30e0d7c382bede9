"""Color space, intensity and contrast operations."""

from dataclasses import dataclass
from enum import IntEnum

import cv2
import numpy as np

from ..processing_op import OpResult, ProcessingOp, is_empty, to_bgr, to_gray


@dataclass(frozen=True)
class BGR(ProcessingOp):
    def execute(self, image: np.ndarray) -> OpResult:
        return True, to_bgr(image)


@dataclass(frozen=True)
class Grayscale(ProcessingOp):
    def execute(self, image: np.ndarray) -> OpResult:
        return True, to_gray(image).copy()


@dataclass(frozen=True)
class Invert(ProcessingOp):
    def execute(self, image: np.ndarray) -> OpResult:
        return True, cv2.bitwise_not(image)


class ThresholdType(IntEnum):
    BINARY = cv2.THRESH_BINARY
    BINARY_INV = cv2.THRESH_BINARY_INV
    TRUNCATE = cv2.THRESH_TRUNC
    TO_ZERO = cv2.THRESH_TOZERO
    TO_ZERO_INV = cv2.THRESH_TOZERO_INV
    OTSU = cv2.THRESH_OTSU
    TRIANGLE = cv2.THRESH_TRIANGLE


@dataclass(frozen=True)
class Threshold(ProcessingOp):
    threshold: float = 0.0
    max_value: float = 255.0
    type: int = cv2.THRESH_BINARY | cv2.THRESH_OTSU

    def execute(self, image: np.ndarray) -> OpResult:
        img = image
        if int(self.type) & (cv2.THRESH_OTSU | cv2.THRESH_TRIANGLE):
            # automatic thresholds only work on 8-bit single channel images
            img = to_gray(image)
            if img.dtype != np.uint8:
                return False, None
        _, out = cv2.threshold(img, self.threshold, self.max_value, int(self.type))
        return True, out


@dataclass(frozen=True)
class AdaptiveThreshold(ProcessingOp):
    max_value: float = 255.0
    size: int = 11  # neighbourhood size, odd
    c: float = 2.0
    type: int = cv2.ADAPTIVE_THRESH_GAUSSIAN_C

    def execute(self, image: np.ndarray) -> OpResult:
        img = to_gray(image)
        if img.dtype != np.uint8 or self.size < 3 or self.size % 2 == 0:
            return False, None
        out = cv2.adaptiveThreshold(
            img, self.max_value, int(self.type), cv2.THRESH_BINARY, self.size, self.c
        )
        return True, out


@dataclass(frozen=True)
class CLAHE(ProcessingOp):
    """Contrast-limited adaptive histogram equalization.

    Color images are equalized on the lightness channel.
    """
    clip_limit: float = 40.0
    tile_rows: int = 8
    tile_columns: int = 8

    def execute(self, image: np.ndarray) -> OpResult:
        if image.dtype != np.uint8 or self.tile_rows < 1 or self.tile_columns < 1:
            return False, None
        clahe = cv2.createCLAHE(self.clip_limit, (self.tile_columns, self.tile_rows))
        if image.ndim == 2:
            return True, clahe.apply(image)
        lab = cv2.cvtColor(to_bgr(image), cv2.COLOR_BGR2LAB)
        lab[:, :, 0] = clahe.apply(lab[:, :, 0])
        return True, cv2.cvtColor(lab, cv2.COLOR_LAB2BGR)


@dataclass(frozen=True)
class EqualizeHistogram(ProcessingOp):
    def execute(self, image: np.ndarray) -> OpResult:
        if image.dtype != np.uint8:
            return False, None
        if image.ndim == 2:
            return True, cv2.equalizeHist(image)
        ycc = cv2.cvtColor(to_bgr(image), cv2.COLOR_BGR2YCrCb)
        ycc[:, :, 0] = cv2.equalizeHist(ycc[:, :, 0])
        return True, cv2.cvtColor(ycc, cv2.COLOR_YCrCb2BGR)


@dataclass(frozen=True)
class CorrectGamma(ProcessingOp):
    gamma: float = 1.0

    def execute(self, image: np.ndarray) -> OpResult:
        if image.dtype != np.uint8 or self.gamma <= 0:
            return False, None
        lut = np.clip(np.power(np.arange(256) / 255.0, self.gamma) * 255.0, 0, 255)
        return True, cv2.LUT(image, lut.astype(np.uint8))


@dataclass(frozen=True)
class NormalizeBrightnessContrast(ProcessingOp):
    """Stretch intensities after clipping a percentage of each histogram tail."""
    clip_low_pct: float = 0.25
    clip_high_pct: float = 0.25

    def execute(self, image: np.ndarray) -> OpResult:
        if image.dtype != np.uint8 or is_empty(image):
            return False, None
        hist = cv2.calcHist([to_gray(image)], [0], None, [256], [0, 256]).ravel()
        acc = np.cumsum(hist)
        total = acc[-1]
        lo = self.clip_low_pct * total / 100.0
        hi = self.clip_high_pct * total / 100.0

        min_gray = int(np.searchsorted(acc, lo, side="left"))
        max_gray = int(np.searchsorted(acc, total - hi, side="left")) - 1
        if max_gray <= min_gray:
            # flat image, nothing to stretch
            return True, image.copy()

        alpha = 255.0 / (max_gray - min_gray)
        beta = -min_gray * alpha
        return True, cv2.convertScaleAbs(image, alpha=alpha, beta=beta)
