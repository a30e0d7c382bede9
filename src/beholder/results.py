"""Geometry and recognition result types."""

from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np
from shapely.geometry import Polygon


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned box in source-image pixel space.

    Edges are normalized on construction so that ``left <= right`` and
    ``top <= bottom``.
    """
    left: float = 0.0
    top: float = 0.0
    right: float = 0.0
    bottom: float = 0.0

    def __post_init__(self):
        if self.left > self.right:
            left, right = self.right, self.left
            object.__setattr__(self, "left", left)
            object.__setattr__(self, "right", right)
        if self.top > self.bottom:
            top, bottom = self.bottom, self.top
            object.__setattr__(self, "top", top)
            object.__setattr__(self, "bottom", bottom)

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "Rectangle":
        return cls(x, y, x + w, y + h)

    @classmethod
    def from_center(cls, cx: float, cy: float, w: float, h: float) -> "Rectangle":
        return cls(cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2)

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.left + self.right) / 2, (self.top + self.bottom) / 2

    @property
    def coordinates(self) -> Tuple[float, float, float, float]:
        return self.left, self.top, self.right, self.bottom

    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def intersection(self, other: "Rectangle") -> "Rectangle":
        """Return the overlap of two boxes (zero-sized when disjoint)."""
        left = max(self.left, other.left)
        top = max(self.top, other.top)
        right = max(left, min(self.right, other.right))
        bottom = max(top, min(self.bottom, other.bottom))
        return Rectangle(left, top, right, bottom)

    def iou(self, other: "Rectangle") -> float:
        inter = self.intersection(other).area
        union = self.area + other.area - inter
        if union <= 0:
            return 0.0
        return inter / union

    def clamp(self, width: float, height: float) -> "Rectangle":
        """Snap the box to ``[0, width] x [0, height]``."""
        return Rectangle(
            min(max(self.left, 0), width),
            min(max(self.top, 0), height),
            min(max(self.right, 0), width),
            min(max(self.bottom, 0), height),
        )

    def scaled(self, sx: float, sy: float) -> "Rectangle":
        return Rectangle(self.left * sx, self.top * sy, self.right * sx, self.bottom * sy)

    def shifted(self, dx: float, dy: float) -> "Rectangle":
        return Rectangle(self.left + dx, self.top + dy, self.right + dx, self.bottom + dy)


def rotated_points(box: Rectangle, angle: float) -> np.ndarray:
    """Return the 4 corners of ``box`` rotated clockwise by ``angle`` degrees
    around its center, as a float32 array of shape (4, 2)."""
    cx, cy = box.center
    return cv2.boxPoints(((cx, cy), (box.width, box.height), angle))


def rotated_iou(a: Rectangle, angle_a: float, b: Rectangle, angle_b: float) -> float:
    """Intersection-over-union of two rotated rectangles."""
    pa = Polygon(rotated_points(a, angle_a))
    pb = Polygon(rotated_points(b, angle_b))
    if not pa.is_valid or not pb.is_valid:
        return 0.0
    inter = pa.intersection(pb).area
    union = pa.area + pb.area - inter
    if union <= 0:
        return 0.0
    return inter / union


@dataclass(frozen=True)
class Result:
    """A single recognition outcome."""
    text: str = ""
    box: Rectangle = Rectangle()
    box_rot_angle: float = 0.0  # degrees, clockwise
    confidence: float = 0.0

    def to_dict(self) -> dict:
        """Converts the result to dictionary form."""
        return {
            "text": self.text,
            "box": list(self.box.coordinates),
            "box_rot_angle": self.box_rot_angle,
            "confidence": self.confidence,
        }
