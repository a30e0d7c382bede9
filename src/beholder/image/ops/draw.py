"""Operations which annotate an image with detector results."""

from dataclasses import dataclass
from typing import Sequence, Tuple

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from ...results import Result, rotated_points
from ..processing_op import OpResult, ProcessingOp, to_bgr

Color = Tuple[float, float, float, float]


def _load_font(size: int) -> ImageFont.FreeTypeFont:
    """Try to load a reasonable font; fall back to default bitmap font."""
    candidates = [
        "/System/Library/Fonts/Helvetica.ttc",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/TTF/DejaVuSans.ttf",
    ]
    for path in candidates:
        try:
            return ImageFont.truetype(path, size)
        except (OSError, IOError):
            continue
    return ImageFont.load_default()


@dataclass(frozen=True)
class DrawBoundingBoxes(ProcessingOp):
    """Draw the (possibly rotated) box of every result."""
    color: Color = (0, 255, 0, 0)
    thickness: int = 2

    def execute(self, image: np.ndarray) -> OpResult:
        # nothing to draw without results
        return True, image.copy()

    def execute_with_results(self, image: np.ndarray, results: Sequence[Result]) -> OpResult:
        out = to_bgr(image)
        for r in results:
            pts = np.round(rotated_points(r.box, r.box_rot_angle)).astype(np.int32)
            cv2.polylines(out, [pts], True, tuple(self.color), self.thickness)
        return True, out


@dataclass(frozen=True)
class DrawLabels(ProcessingOp):
    """Write ``text: confidence`` above the box of every result."""
    color: Color = (0, 0, 255, 0)
    font_scale: float = 1.0
    thickness: int = 2

    def execute(self, image: np.ndarray) -> OpResult:
        return True, image.copy()

    def execute_with_results(self, image: np.ndarray, results: Sequence[Result]) -> OpResult:
        if not results:
            return True, image.copy()

        # PIL works in RGB, colors are given as BGR(A)
        canvas = Image.fromarray(cv2.cvtColor(to_bgr(image), cv2.COLOR_BGR2RGB))
        draw = ImageDraw.Draw(canvas)
        font = _load_font(max(int(round(16 * self.font_scale)), 1))
        b, g, r = (int(c) for c in self.color[:3])

        for res in results:
            label = f"{res.text}: {res.confidence:.2f}"
            lbox = draw.textbbox((0, 0), label, font=font)
            lh = lbox[3] - lbox[1]
            x = res.box.left
            y = max(res.box.top - lh - self.thickness, 0)
            draw.text((x, y), label, fill=(r, g, b), font=font)

        return True, cv2.cvtColor(np.asarray(canvas), cv2.COLOR_RGB2BGR)
