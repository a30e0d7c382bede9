"""Base class for image processing operations."""

from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from ..results import Result

OpResult = Tuple[bool, Optional[np.ndarray]]


class ProcessingOp(ABC):
    """An immutable image transform.

    Operations are called either with an image only (pre-processing) or with
    an image and the results of a detector (post-processing). Both forms
    return ``(ok, out)``; ``ok`` is False when the transform can't be applied
    to the given input, in which case ``out`` is None.

    Operations which don't use results simply ignore them. Subclasses are
    frozen dataclasses so a single instance can be reused across images.
    """

    def __call__(self, image: np.ndarray, results: Optional[Sequence[Result]] = None) -> OpResult:
        if image is None:
            raise TypeError(f"{type(self).__name__}: image must not be None")
        if results is None:
            return self.execute(image)
        return self.execute_with_results(image, results)

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def execute(self, image: np.ndarray) -> OpResult:
        """Execute the (pre-)processing operation."""

    def execute_with_results(self, image: np.ndarray, results: Sequence[Result]) -> OpResult:
        """Execute the (post-)processing operation."""
        return self.execute(image)


def to_gray(image: np.ndarray) -> np.ndarray:
    """Return a single-channel view/copy of an image."""
    if image.ndim == 2:
        return image
    channels = image.shape[2]
    if channels == 1:
        return image[:, :, 0]
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def to_bgr(image: np.ndarray) -> np.ndarray:
    """Return a 3-channel BGR copy of an image."""
    if image.ndim == 2 or image.shape[2] == 1:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image.copy()


def is_empty(image: np.ndarray) -> bool:
    return image.size == 0 or image.shape[0] == 0 or image.shape[1] == 0
