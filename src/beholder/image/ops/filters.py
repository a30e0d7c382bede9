"""Blurring, sharpening, denoising and morphology operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Union

import cv2
import numpy as np

from ..processing_op import OpResult, ProcessingOp, is_empty, to_gray


@dataclass(frozen=True)
class GaussianBlur(ProcessingOp):
    kernel_width: int = 3
    kernel_height: int = 3
    sigma_x: float = 0.0
    sigma_y: float = 0.0

    def blur(self, image: np.ndarray) -> np.ndarray:
        return cv2.GaussianBlur(
            image, (self.kernel_width, self.kernel_height), self.sigma_x, sigmaY=self.sigma_y
        )

    def execute(self, image: np.ndarray) -> OpResult:
        if self.kernel_width % 2 == 0 or self.kernel_height % 2 == 0:
            return False, None
        return True, self.blur(image)


@dataclass(frozen=True)
class DivGaussianBlur(GaussianBlur):
    """Divide an image by a blurred copy of itself to flatten the background."""
    kernel_width: int = 51
    kernel_height: int = 51
    scale_factor: float = 255.0

    def execute(self, image: np.ndarray) -> OpResult:
        ok, blurred = super().execute(image)
        if not ok:
            return False, None
        return True, cv2.divide(image, blurred, scale=self.scale_factor)


@dataclass(frozen=True)
class MedianBlur(ProcessingOp):
    kernel_size: int = 3

    def execute(self, image: np.ndarray) -> OpResult:
        if self.kernel_size < 1 or self.kernel_size % 2 == 0:
            return False, None
        return True, cv2.medianBlur(image, self.kernel_size)


@dataclass(frozen=True)
class UnsharpMask(ProcessingOp):
    sigma: float = 1.0  # Gaussian kernel standard deviation
    threshold: float = 5.0  # low-contrast mask threshold
    amount: float = 1.0

    def execute(self, image: np.ndarray) -> OpResult:
        blurred = cv2.GaussianBlur(image, (0, 0), self.sigma, sigmaY=self.sigma)
        low_contrast = cv2.absdiff(image, blurred) < self.threshold
        sharp = cv2.addWeighted(image, 1.0 + self.amount, blurred, -self.amount, 0)
        np.copyto(sharp, image, where=low_contrast)
        return True, sharp


@dataclass(frozen=True)
class FastNlMeansDenoise(ProcessingOp):
    weight: float = 3.0
    template_window_size: int = 7
    search_window_size: int = 21

    def execute(self, image: np.ndarray) -> OpResult:
        if image.dtype != np.uint8:
            return False, None
        if image.ndim == 3 and image.shape[2] == 3:
            out = cv2.fastNlMeansDenoisingColored(
                image, None, self.weight, self.weight,
                self.template_window_size, self.search_window_size,
            )
        else:
            out = cv2.fastNlMeansDenoising(
                to_gray(image), None, self.weight,
                self.template_window_size, self.search_window_size,
            )
        return True, out


class MorphType(str, Enum):
    ERODE = "erode"
    DILATE = "dilate"
    OPEN = "open"
    CLOSE = "close"
    GRADIENT = "gradient"
    TOPHAT = "tophat"
    BLACKHAT = "blackhat"


class MorphShape(str, Enum):
    BOX = "box"
    CROSS = "cross"
    ELLIPSE = "ellipse"


_MORPH_TYPES = {
    MorphType.ERODE: cv2.MORPH_ERODE,
    MorphType.DILATE: cv2.MORPH_DILATE,
    MorphType.OPEN: cv2.MORPH_OPEN,
    MorphType.CLOSE: cv2.MORPH_CLOSE,
    MorphType.GRADIENT: cv2.MORPH_GRADIENT,
    MorphType.TOPHAT: cv2.MORPH_TOPHAT,
    MorphType.BLACKHAT: cv2.MORPH_BLACKHAT,
}

_MORPH_SHAPES = {
    MorphShape.BOX: cv2.MORPH_RECT,
    MorphShape.CROSS: cv2.MORPH_CROSS,
    MorphShape.ELLIPSE: cv2.MORPH_ELLIPSE,
}


@dataclass(frozen=True)
class Morphology(ProcessingOp):
    type: Union[MorphType, str] = MorphType.OPEN
    shape: Union[MorphShape, str] = MorphShape.BOX
    width: int = 3
    height: int = 3
    iterations: int = 1

    def execute(self, image: np.ndarray) -> OpResult:
        if self.width < 1 or self.height < 1:
            return False, None
        op = _MORPH_TYPES[MorphType(self.type)]
        el = cv2.getStructuringElement(_MORPH_SHAPES[MorphShape(self.shape)], (self.width, self.height))
        return True, cv2.morphologyEx(image, op, el, iterations=self.iterations)


def _disc_psf(shape, radius: int) -> np.ndarray:
    h = np.zeros(shape, dtype=np.float32)
    cv2.circle(h, (shape[1] // 2, shape[0] // 2), radius, 255, cv2.FILLED, cv2.LINE_8)
    return h / h.sum()


def _wiener_filter(psf: np.ndarray, nsr: float) -> np.ndarray:
    spectrum = np.real(np.fft.fft2(np.fft.fftshift(psf)))
    return spectrum / (np.abs(spectrum) ** 2 + nsr)


@dataclass(frozen=True)
class Deblur(ProcessingOp):
    """Wiener deconvolution with a disc point-spread function.

    Operates on grayscale data; the output is a normalized 8-bit image with
    even dimensions. Images too small to crop to even dimensions are returned
    as grayscale, unfiltered.
    """
    radius: int = 5
    snr: float = 100.0

    def execute(self, image: np.ndarray) -> OpResult:
        if self.radius < 1 or self.snr <= 0 or is_empty(image):
            return False, None
        gray = to_gray(image)
        rows, cols = gray.shape[0] & -2, gray.shape[1] & -2
        if rows == 0 or cols == 0:
            return True, gray.copy()
        roi = gray[:rows, :cols].astype(np.float32)

        hw = _wiener_filter(_disc_psf((rows, cols), self.radius), 1.0 / self.snr)
        out = np.real(np.fft.ifft2(np.fft.fft2(roi) * hw))
        out = np.clip(out, 0, 255).astype(np.uint8)
        return True, cv2.normalize(out, None, 0, 255, cv2.NORM_MINMAX)
